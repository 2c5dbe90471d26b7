"""
Ascent - behavioral modeling core for a habit-formation coach.

Subpackages:
- behavior/: streaks, drive pool simulation, pattern analytics, rewards

Usage:
    from ascent.behavior import streaks, pool, analytics, rewards
"""

from pathlib import Path

# Path constants
PROJECT_ROOT = Path(__file__).parent.parent
PACKAGE_ROOT = Path(__file__).parent
ARGS_DIR = PACKAGE_ROOT / "args"

__all__ = ["ARGS_DIR", "PACKAGE_ROOT", "PROJECT_ROOT"]
