"""
Tool: Variable Rewards
Purpose: Pick what to say after a completion, and when to say nothing

Predictable praise stops registering. Each completion draws a reward
category from a weighted table (plain acknowledgment most of the time,
identity and pattern lines less often, science and delight rarely), with
the categories shown most recently dampened so the same kind does not
repeat back to back.

Milestones are separate: a fixed ladder of streak lengths, each unlocked
once.

Usage:
    from ascent.behavior import rewards

    if rewards.should_show_reward(completions_today=2, total_completions=41):
        reward = rewards.completion_reward(streak=12, habit_name="Read", recent=["identity"])

    milestone = rewards.check_milestone(14, unlocked=[3, 7])

Dependencies:
    - random (stdlib), seeded instances for reproducible draws
    - pydantic settings (ascent.behavior.config_models)
"""

from __future__ import annotations

import random
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from ascent.behavior.config_models import BehaviorConfig, resolve
from ascent.logging_config import get_logger


logger = get_logger(__name__)


class RewardCategory(str, Enum):
    ACKNOWLEDGMENT = "acknowledgment"
    IDENTITY = "identity"
    PATTERN = "pattern"
    SCIENCE = "science"
    DELIGHT = "delight"


REWARD_MESSAGES: dict[RewardCategory, list[str]] = {
    RewardCategory.ACKNOWLEDGMENT: [
        "Done.",
        "Logged.",
        "Check.",
        "One more rep.",
        "Noted.",
    ],
    RewardCategory.IDENTITY: [
        "One more vote for who you're becoming.",
        "This is who you are now.",
        "Notice: You didn't negotiate with yourself.",
        "The person who started would be proud.",
        "You're not trying anymore. You're just doing.",
        "This is becoming automatic.",
    ],
    # Templates: {streak}, {habit}, {time}
    RewardCategory.PATTERN: [
        "That's {streak} in a row. The pathway strengthens.",
        "{streak} days. Your neurons are rewiring.",
        "Day {streak}. This is past habit. It's becoming identity.",
        "{habit} again. Your best time to build.",
        "Faster than yesterday. The resistance is fading.",
        "Completed before {time}. A pattern emerges.",
    ],
    RewardCategory.SCIENCE: [
        "Your basal ganglia just got a little stronger.",
        "Dopamine spike, future craving, habit loop forming.",
        "Each rep myelinates the neural pathway.",
        "Your prefrontal cortex thanks you. Less willpower needed tomorrow.",
        "The habit circuit: cue, routine, reward. You just completed it.",
    ],
    RewardCategory.DELIGHT: [
        "Your future self just sent you a thank you note.",
        "Somewhere, your inner critic has nothing to say.",
        "Plot twist: you actually did the thing.",
        "Achievement unlocked: Being a person who does things.",
    ],
}


@dataclass(frozen=True)
class Reward:
    category: RewardCategory
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"category": self.category.value, "message": self.message}


@dataclass(frozen=True)
class Milestone:
    day: int
    title: str
    message: str
    icon: str

    def to_dict(self) -> dict[str, Any]:
        return {"day": self.day, "title": self.title, "message": self.message, "icon": self.icon}


MILESTONES: list[Milestone] = [
    Milestone(3, "First Summit", "Three days. The hardest part, starting, is behind you.", "campsite"),
    Milestone(
        7,
        "Base Camp",
        "One week. Neural encoding has begun. This is becoming a pattern, not an act of will.",
        "tent",
    ),
    Milestone(
        14,
        "Camp I",
        "Two weeks. Your brain is adapting. The same action requires less effort than day one.",
        "flag",
    ),
    Milestone(
        21,
        "Camp II",
        "Three weeks. The old research said 21 days makes a habit. That's a myth, but you're building something real.",
        "mountain",
    ),
    Milestone(
        30,
        "Camp III",
        "One month. If you stopped now, you'd feel the absence. That's identity formation.",
        "peak",
    ),
    Milestone(
        45,
        "High Camp",
        "45 days. Most people never make it this far. You're not most people anymore.",
        "sunrise",
    ),
    Milestone(
        60,
        "Summit",
        "60 days. This isn't something you do. It's who you are. The summit isn't the end, it's the view.",
        "trophy",
    ),
    Milestone(
        90,
        "Beyond the Summit",
        "90 days. Automaticity. The habit runs itself. Your job now is just to show up.",
        "sparkles",
    ),
]


# ─────────────────────────────────────────────────────────────────────────────
# Category selection
# ─────────────────────────────────────────────────────────────────────────────


def base_weights(settings: BehaviorConfig | None = None) -> dict[RewardCategory, float]:
    """Configured weights; unknown names in the config are ignored."""
    configured = resolve(settings).rewards.weights
    return {category: float(configured.get(category.value, 0)) for category in RewardCategory}


def dampen_weights(
    weights: Mapping[RewardCategory, float],
    recent: Iterable[RewardCategory | str],
    window: int = 3,
    factor: float = 0.5,
) -> dict[RewardCategory, float]:
    """
    Scale down categories shown recently.

    recent is newest first; only the first `window` entries count, and a
    category is dampened once no matter how often it appears there.
    """
    shown = set()
    for item in list(recent)[:window]:
        try:
            shown.add(RewardCategory(item))
        except ValueError:
            logger.debug("unknown_reward_category", category=item)

    return {category: weight * factor if category in shown else weight for category, weight in weights.items()}


def select_category(
    recent: Sequence[RewardCategory | str] = (),
    rng: random.Random | None = None,
    settings: BehaviorConfig | None = None,
) -> RewardCategory:
    cfg = resolve(settings).rewards
    rng = rng or random.Random()
    weights = dampen_weights(base_weights(settings), recent, cfg.recent_window, cfg.dampening_factor)

    categories = [c for c, w in weights.items() if w > 0]
    if not categories:
        return RewardCategory.ACKNOWLEDGMENT
    return rng.choices(categories, weights=[weights[c] for c in categories], k=1)[0]


def time_bucket(now: datetime) -> str:
    if now.hour < 12:
        return "noon"
    if now.hour < 17:
        return "5pm"
    return "evening"


def completion_reward(
    streak: int = 0,
    habit_name: str = "this",
    recent: Sequence[RewardCategory | str] = (),
    now: datetime | None = None,
    rng: random.Random | None = None,
    settings: BehaviorConfig | None = None,
) -> Reward:
    """Draw a category, then a message from it; pattern lines are filled in."""
    rng = rng or random.Random()
    category = select_category(recent, rng, settings)
    message = rng.choice(REWARD_MESSAGES[category])

    if category is RewardCategory.PATTERN:
        message = message.format(streak=streak, habit=habit_name, time=time_bucket(now or datetime.now()))

    return Reward(category=category, message=message)


def should_show_reward(
    completions_today: int,
    total_completions: int,
    rng: random.Random | None = None,
    settings: BehaviorConfig | None = None,
) -> bool:
    """Always for the first few of a day and every Nth lifetime completion, else a coin flip."""
    cfg = resolve(settings).rewards
    if completions_today <= cfg.always_show_first:
        return True
    if total_completions > 0 and total_completions % cfg.every_nth_completion == 0:
        return True
    return (rng or random.Random()).random() < cfg.show_probability


# ─────────────────────────────────────────────────────────────────────────────
# Milestones
# ─────────────────────────────────────────────────────────────────────────────


def check_milestone(
    current_streak: int,
    unlocked: Iterable[int] = (),
    settings: BehaviorConfig | None = None,
) -> Milestone | None:
    """Lowest milestone reached but not yet unlocked, or None."""
    enabled = set(resolve(settings).rewards.milestone_days)
    done = set(unlocked or ())
    for milestone in MILESTONES:
        if milestone.day not in enabled or milestone.day in done:
            continue
        if current_streak >= milestone.day:
            return milestone
    return None
