"""Shared test fixtures for the behavior engine tests.

This module provides common fixtures used across all test modules:
- A fixed reference day so window math is deterministic
- Default settings that never touch ascent/args/behavior.yaml
- Sample habits and completion-log builders

Usage:
    def test_something(today, daily_log):
        log = daily_log("meditate", days=30)
        ...
"""

from collections.abc import Callable
from datetime import date, datetime, timedelta
from pathlib import Path

import pytest

from ascent.behavior.config_models import BehaviorConfig, load_settings
from ascent.behavior.models import CompletionEvent, Habit


# ─────────────────────────────────────────────────────────────────────────────
# Path Constants
# ─────────────────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).parent.parent
ARGS_DIR = PROJECT_ROOT / "ascent" / "args"

# A Wednesday
REFERENCE_DAY = date(2025, 1, 15)


# ─────────────────────────────────────────────────────────────────────────────
# Time Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def today() -> date:
    """Fixed reference day (a Wednesday)."""
    return REFERENCE_DAY


@pytest.fixture
def settings() -> BehaviorConfig:
    """Default settings, independent of the YAML file on disk."""
    return BehaviorConfig()


@pytest.fixture(autouse=True)
def fresh_settings_cache():
    """Drop cached YAML settings so a test's ARGS_DIR patch takes effect."""
    load_settings.cache_clear()
    yield
    load_settings.cache_clear()


# ─────────────────────────────────────────────────────────────────────────────
# User Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def mock_user_id() -> str:
    """Standard test user ID."""
    return "test_user_123"


@pytest.fixture
def sample_habits() -> list[Habit]:
    """Three habits of increasing resistance."""
    return [
        Habit(id="meditate", name="Meditate", target_amount=5, unit="min", resistance=3, original_target=2),
        Habit(id="read", name="Read", target_amount=10, unit="pages", resistance=5, original_target=10),
        Habit(id="run", name="Run", target_amount=2, unit="km", resistance=8, original_target=1),
    ]


# ─────────────────────────────────────────────────────────────────────────────
# Completion Log Fixtures
# ─────────────────────────────────────────────────────────────────────────────


def make_event(habit_id: str, day: date, hour: int = 9, completed: bool = True) -> CompletionEvent:
    return CompletionEvent(habit_id=habit_id, timestamp=datetime(day.year, day.month, day.day, hour), completed=completed)


@pytest.fixture
def event_at() -> Callable[..., CompletionEvent]:
    """Builder for a single event: event_at("read", some_day, hour=20)."""
    return make_event


@pytest.fixture
def daily_log(today: date) -> Callable[..., list[CompletionEvent]]:
    """Builder for one completed event per day, ending `offset` days before today.

    Example:
        daily_log("read", days=7)            # today and the 6 days before
        daily_log("read", days=5, offset=1)  # yesterday and the 4 days before
    """

    def build(habit_id: str, days: int, offset: int = 0, hour: int = 9) -> list[CompletionEvent]:
        return [make_event(habit_id, today - timedelta(days=offset + i), hour) for i in range(days)]

    return build
