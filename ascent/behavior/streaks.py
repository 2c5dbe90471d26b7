"""
Tool: Resilient Streak Calculator
Purpose: Consistency-based streaks that survive a missed day

A binary streak resets to zero the moment a day is missed, which punishes
exactly the users who most need encouragement. This engine instead scores a
rolling window: what share of the last N days were "hits", how long the
current run is, and the best run inside the window.

What counts as a hit is a parameter, not a branch:
- habit_hit(habit_id): the habit has a completed event that day
- aggregate_hit(habit_ids, threshold): enough of the habits were done that day

Today is "pending": an incomplete today never breaks the current run.

Usage:
    from ascent.behavior import streaks

    result = streaks.compute("meditate", completions)
    overall = streaks.compute(streaks.ALL_HABITS, completions, habits=habits)

    recovery = streaks.miss_recovery(completions, habits)
    ratchet = streaks.should_ratchet_up(habit, completions)

Dependencies:
    - pydantic settings (ascent.behavior.config_models)
    - structlog (ascent.logging_config)
"""

from __future__ import annotations

import random
from collections.abc import Callable, Iterable, Sequence
from datetime import date, datetime, timedelta
from typing import Any

from ascent.behavior.config_models import BehaviorConfig, resolve
from ascent.behavior.models import (
    CompletionEvent,
    Habit,
    StreakResult,
    StreakStatus,
    coerce_events,
    events_by_day,
    round_half_up,
)
from ascent.logging_config import get_logger


logger = get_logger(__name__)

ALL_HABITS = "all"

# (day, that day's events) -> did the day count
HitPredicate = Callable[[date, Sequence[CompletionEvent]], bool]

# Rebuilding is neutral gray, never red.
STATUS_PRESENTATION: dict[StreakStatus, dict[str, Any]] = {
    StreakStatus.SOLID: {
        "color": "green",
        "messages": [
            "This is becoming who you are.",
            "Solid foundation. The neural pathways are strong.",
            "Consistency is identity. You're proving it.",
        ],
    },
    StreakStatus.BUILDING: {
        "color": "amber",
        "messages": [
            "Some wobble, but still in the game.",
            "The pathway is there. Keep showing up.",
            "Life happened. The pattern remembers you.",
        ],
    },
    StreakStatus.REBUILDING: {
        "color": "slate",
        "messages": [
            "Rebuilding phase. Every rep counts.",
            "Starting again is easier than starting fresh.",
            "The neural pathway is dormant, not dead.",
        ],
    },
}

NO_HABITS_MESSAGE = "Add your first habit to begin."


# ─────────────────────────────────────────────────────────────────────────────
# Hit predicates
# ─────────────────────────────────────────────────────────────────────────────


def habit_hit(habit_id: str) -> HitPredicate:
    """A day is a hit when the habit has at least one completed event."""

    def predicate(day: date, events: Sequence[CompletionEvent]) -> bool:
        return any(e.completed and e.habit_id == habit_id for e in events)

    return predicate


def aggregate_hit(habit_ids: Iterable[str], threshold: float = 1.0) -> HitPredicate:
    """A day is a hit when the share of habits completed reaches threshold."""
    ids = frozenset(habit_ids)

    def predicate(day: date, events: Sequence[CompletionEvent]) -> bool:
        if not ids:
            return False
        done = {e.habit_id for e in events if e.completed and e.habit_id in ids}
        return len(done) / len(ids) >= threshold

    return predicate


# ─────────────────────────────────────────────────────────────────────────────
# Series helpers
# ─────────────────────────────────────────────────────────────────────────────


def window_days_back(today: date, window_days: int) -> list[date]:
    """Calendar days of a trailing window, index 0 = today."""
    return [today - timedelta(days=offset) for offset in range(window_days)]


def hit_series(
    events: Iterable[CompletionEvent], hit: HitPredicate, window_days: int, today: date
) -> tuple[bool, ...]:
    """Boolean hit per day, newest first. Days without events are misses."""
    by_day = events_by_day(events)
    return tuple(hit(day, by_day.get(day, ())) for day in window_days_back(today, window_days))


def leading_run(series: Sequence[bool], today_pending: bool = False) -> int:
    """Consecutive hits from the newest day; optionally skip a missed today."""
    start = 1 if today_pending and series and not series[0] else 0
    run = 0
    for is_hit in series[start:]:
        if not is_hit:
            break
        run += 1
    return run


def longest_run(series: Iterable[bool]) -> int:
    best = current = 0
    for is_hit in series:
        current = current + 1 if is_hit else 0
        best = max(best, current)
    return best


def classify(score: float, settings: BehaviorConfig | None = None) -> StreakStatus:
    cfg = resolve(settings).streaks
    if score >= cfg.solid_threshold:
        return StreakStatus.SOLID
    if score >= cfg.building_threshold:
        return StreakStatus.BUILDING
    return StreakStatus.REBUILDING


def presentation(status: StreakStatus, rng: random.Random | None = None) -> tuple[str, str]:
    """Color token and message for a status; the first message unless rng is given."""
    entry = STATUS_PRESENTATION[status]
    messages = entry["messages"]
    message = rng.choice(messages) if rng is not None else messages[0]
    return entry["color"], message


# ─────────────────────────────────────────────────────────────────────────────
# Main calculation
# ─────────────────────────────────────────────────────────────────────────────


def compute(
    habit_id_or_all: str | None = ALL_HABITS,
    log: Iterable[Any] | None = None,
    window_days: int | None = None,
    *,
    habits: Iterable[Habit] | None = None,
    hit: HitPredicate | None = None,
    today: date | None = None,
    settings: BehaviorConfig | None = None,
    rng: random.Random | None = None,
) -> StreakResult:
    """
    Compute the resilient streak for one habit or for all habits.

    Args:
        habit_id_or_all: Habit id, or ALL_HABITS / None for the aggregate
        log: Completion events (CompletionEvent or dicts)
        window_days: Rolling window length (default from settings, 30)
        habits: Habits for the aggregate case (default: ids seen in the log)
        hit: Explicit hit predicate, overrides the default for the target
        today: Reference day (defaults to local today)
        settings: Behavior settings (defaults loaded from ascent/args/behavior.yaml)
        rng: Random source for message variety

    Returns:
        StreakResult; a zeroed result for an empty log, never raises
    """
    cfg = resolve(settings)
    window = window_days if window_days and window_days > 0 else cfg.streaks.window_days
    today = today or datetime.now().date()
    events = coerce_events(log)

    aggregate = habit_id_or_all in (None, ALL_HABITS)
    if aggregate:
        habit_ids = [h.id for h in habits] if habits is not None else sorted({e.habit_id for e in events})
        wanted = set(habit_ids)
        relevant = [e for e in events if e.habit_id in wanted]
        predicate = hit or aggregate_hit(habit_ids, cfg.streaks.aggregate_hit_threshold)
    else:
        habit_ids = [habit_id_or_all]
        relevant = [e for e in events if e.habit_id == habit_id_or_all]
        predicate = hit or habit_hit(habit_id_or_all)

    relevant = [e for e in relevant if e.day <= today]

    if not relevant:
        status = StreakStatus.REBUILDING
        color, message = presentation(status, rng)
        if aggregate and not habit_ids:
            message = NO_HABITS_MESSAGE
        return StreakResult(
            status=status,
            color_token=color,
            message=message,
            has_enough_data=False,
            window_days=window,
            daily_hits=(False,) * window,
        )

    series = hit_series(relevant, predicate, window, today)
    completed_days = sum(series)
    score = int(min(100, max(0, round_half_up(100 * completed_days / window))))

    earliest = min(e.day for e in relevant)
    history_days = (today - earliest).days + 1

    status = classify(score, cfg)
    color, message = presentation(status, rng)

    result = StreakResult(
        current_run=leading_run(series, today_pending=True),
        best_run=longest_run(series),
        consistency_score=score,
        status=status,
        color_token=color,
        message=message,
        has_enough_data=history_days >= cfg.streaks.min_history_days,
        completed_days=completed_days,
        window_days=window,
        daily_hits=series,
    )
    logger.debug(
        "streak_computed",
        target=habit_id_or_all or ALL_HABITS,
        score=score,
        current_run=result.current_run,
        best_run=result.best_run,
    )
    return result


# ─────────────────────────────────────────────────────────────────────────────
# Miss recovery
# ─────────────────────────────────────────────────────────────────────────────


def _previous_streak(events: list[CompletionEvent], habits: list[Habit], last_day: date) -> int:
    """Perfect days (every habit done) running back from last_day, inclusive."""
    predicate = aggregate_hit([h.id for h in habits], 1.0)
    by_day = events_by_day(events)
    streak = 0
    day = last_day
    for _ in range(365):
        if not predicate(day, by_day.get(day, ())):
            break
        streak += 1
        day -= timedelta(days=1)
    return streak


def miss_recovery(
    log: Iterable[Any] | None,
    habits: Iterable[Habit] | None,
    now: datetime | None = None,
) -> dict[str, Any] | None:
    """
    Describe a gap in activity for welcome-back messaging.

    Returns None when there are no habits or something was completed today.
    Days missed are counted in calendar days since the last completion.
    """
    habits = list(habits or [])
    if not habits:
        return None

    today = (now or datetime.now()).date()
    habit_ids = {h.id for h in habits}
    done = [e for e in coerce_events(log) if e.completed and e.habit_id in habit_ids and e.day <= today]

    if any(e.day == today for e in done):
        return None

    if not done:
        return {
            "days_missed": None,
            "previous_streak": 0,
            "type": "new_start",
            "message": {
                "title": "Let's begin.",
                "body": "No past data to worry about. Just today.",
                "cta": "Start now",
            },
        }

    last_day = max(e.day for e in done)
    days_missed = (today - last_day).days
    previous = _previous_streak(done, habits, last_day)

    if days_missed == 1:
        kind, message = "one_day", {
            "title": "Welcome back.",
            "body": "One day off doesn't erase neural adaptation. Your brain remembers the pattern. What matters is today.",
            "cta": "Let's continue",
        }
    elif days_missed <= 3:
        kind, message = "few_days", {
            "title": f"{days_missed} days away.",
            "body": "Life happened. It's not the miss that matters, it's the return. You came back.",
            "cta": "I'm back",
        }
    elif days_missed <= 7:
        kind, message = "week", {
            "title": "A week away.",
            "body": f"You built {previous} days of neural pathways before. They go dormant, they don't disappear.",
            "cta": "Reactivate",
        }
    else:
        lead = f"Your previous {previous}-day streak created pathways that are still there. " if previous else ""
        kind, message = "extended", {
            "title": "Fresh start isn't starting over.",
            "body": f"{lead}The neural architecture exists. It just needs reactivation.",
            "cta": "Begin again",
        }

    return {"days_missed": days_missed, "previous_streak": previous, "type": kind, "message": message}


# ─────────────────────────────────────────────────────────────────────────────
# Invisible ratchet
# ─────────────────────────────────────────────────────────────────────────────


def ratchet_increment(current: float) -> int:
    if current <= 2:
        return 1
    if current <= 5:
        return 2
    if current <= 10:
        return 3
    return 5


def should_ratchet_up(
    habit: Habit,
    log: Iterable[Any] | None,
    today: date | None = None,
    settings: BehaviorConfig | None = None,
) -> dict[str, Any]:
    """Check whether a habit's target can quietly go up."""
    cfg = resolve(settings).streaks
    today = today or datetime.now().date()

    if habit.last_ratchet_date and (today - habit.last_ratchet_date).days < cfg.ratchet_min_days:
        return {"should_increase": False, "reason": "too_soon"}

    if habit.failed_ratchet_count >= cfg.ratchet_max_failures:
        return {"should_increase": False, "reason": "plateau"}

    streak = compute(habit.id, log, today=today, settings=settings)
    if streak.consistency_score < cfg.ratchet_up_consistency:
        return {"should_increase": False, "reason": "inconsistent"}

    increment = ratchet_increment(habit.target_amount)
    return {
        "should_increase": True,
        "reason": "ready",
        "current_target": habit.target_amount,
        "new_target": habit.target_amount + increment,
        "increment": increment,
    }


def should_ratchet_down(
    habit: Habit,
    log: Iterable[Any] | None,
    today: date | None = None,
    settings: BehaviorConfig | None = None,
) -> dict[str, Any]:
    """Suggest stepping a struggling habit back toward its original target."""
    cfg = resolve(settings).streaks
    original = habit.original_target if habit.original_target is not None else 1
    streak = compute(habit.id, log, today=today, settings=settings)

    if streak.consistency_score < cfg.ratchet_down_consistency and habit.target_amount > original:
        return {
            "should_decrease": True,
            "current_target": habit.target_amount,
            "suggested_target": max(original, habit.target_amount - ratchet_increment(habit.target_amount)),
            "message": "Life's been harder lately. Want to drop back to what was working?",
        }
    return {"should_decrease": False}
