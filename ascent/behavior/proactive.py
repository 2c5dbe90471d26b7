"""
Tool: Proactive Insights
Purpose: Surface one timely observation about the user's patterns, unprompted

A table of triggers, each a condition over the user's recent data plus the
insight it produces. The coach asks for the single most urgent one that has
not been shown in the last few days (priority 0 first); a dashboard asks
for a short list with a shorter cooldown.

Cooldown state is a plain {insight_id: last_shown_at} mapping owned by the
caller. Nothing here stores it.

Usage:
    from ascent.behavior import proactive

    ctx = proactive.InsightContext(habits=habits, completions=log, streak_days=6, now=now)
    insight = proactive.check_for_insights(ctx, shown)
    if insight:
        shown = proactive.mark_insight_shown(insight.id, shown, now)

    cards = proactive.applicable_insights(ctx, shown)

Dependencies:
    - pydantic settings (ascent.behavior.config_models)
    - structlog (ascent.logging_config)
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

from ascent.behavior import DAY_PARTS
from ascent.behavior.analytics import in_day_part
from ascent.behavior.config_models import BehaviorConfig, resolve
from ascent.behavior.models import (
    CompletionEvent,
    Habit,
    PoolHistoryEntry,
    coerce_events,
    parse_timestamp,
    safe_mean,
)
from ascent.logging_config import get_logger


logger = get_logger(__name__)

LOOKBACK_DAYS = 30
HABIT_WINDOW_DAYS = 14
FRIDAY = 4
POOL_SPLIT_LEVEL = 60


# ─────────────────────────────────────────────────────────────────────────────
# Types
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class InsightContext:
    """Everything the trigger conditions look at."""

    habits: list[Habit]
    completions: list[CompletionEvent]
    streak_days: int = 0
    now: datetime = field(default_factory=datetime.now)
    pool_history: list[PoolHistoryEntry] = field(default_factory=list)
    morning_level: float | None = None
    two_minute_uses: int = 0
    seen_morning_optimizer: bool = False

    def __post_init__(self) -> None:
        self.now = parse_timestamp(self.now) or datetime.now()
        self.completions = [e for e in coerce_events(self.completions) if e.completed]

    @property
    def today(self) -> date:
        return self.now.date()

    def recent_days(self, count: int) -> list[date]:
        """Today and the count - 1 days before it."""
        return [self.today - timedelta(days=i) for i in range(count)]

    def done_by_day(self) -> dict[date, set[str]]:
        done: dict[date, set[str]] = defaultdict(set)
        for event in self.completions:
            done[event.day].add(event.habit_id)
        return done


@dataclass(frozen=True)
class ProactiveInsight:
    id: str
    kind: str
    priority: int
    title: str
    message: str
    action: dict[str, str] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "priority": self.priority,
            "title": self.title,
            "message": self.message,
            "action": dict(self.action) if self.action else None,
        }


@dataclass(frozen=True)
class InsightTrigger:
    id: str
    priority: int
    condition: Callable[[InsightContext], bool]
    build: Callable[[InsightContext], dict[str, Any]]

    def insight(self, ctx: InsightContext) -> ProactiveInsight:
        return ProactiveInsight(id=self.id, priority=self.priority, **self.build(ctx))


# ─────────────────────────────────────────────────────────────────────────────
# Measures
# ─────────────────────────────────────────────────────────────────────────────


def part_share(ctx: InsightContext, part: str) -> float:
    """Share of all completions that fell in a day-part."""
    if not ctx.completions:
        return 0.0
    bounds = DAY_PARTS[part]
    return sum(1 for e in ctx.completions if in_day_part(e.hour, bounds)) / len(ctx.completions)


def _missed(ctx: InsightContext, days: Iterable[date]) -> list[date]:
    """Days with no completion at all."""
    done = ctx.done_by_day()
    return [day for day in days if not done.get(day)]


def friday_miss_rate(ctx: InsightContext) -> float:
    fridays = [d for d in ctx.recent_days(LOOKBACK_DAYS) if d.weekday() == FRIDAY]
    if not fridays:
        return 0.0
    return len(_missed(ctx, fridays)) / len(fridays)


def average_miss_rate(ctx: InsightContext) -> float:
    return len(_missed(ctx, ctx.recent_days(LOOKBACK_DAYS))) / LOOKBACK_DAYS


def per_day_completions(ctx: InsightContext, weekend: bool) -> float:
    """Completions per calendar day over the lookback, weekdays or weekend days only."""
    days = {d for d in ctx.recent_days(LOOKBACK_DAYS) if (d.weekday() >= 5) == weekend}
    count = sum(1 for e in ctx.completions if e.day in days)
    return count / len(days) if days else 0.0


def habit_rate(ctx: InsightContext, habit_id: str, days: int = HABIT_WINDOW_DAYS) -> float:
    """Share of the last `days` days the habit was done, 0-1."""
    window = set(ctx.recent_days(days))
    done = {e.day for e in ctx.completions if e.habit_id == habit_id and e.day in window}
    return len(done) / days


def imperfect_day_rate(ctx: InsightContext, days: int = HABIT_WINDOW_DAYS) -> float:
    """Share of the last `days` days where at least one habit was left undone."""
    if not ctx.habits:
        return 0.0
    wanted = {h.id for h in ctx.habits}
    done = ctx.done_by_day()
    return sum(1 for d in ctx.recent_days(days) if not wanted <= done.get(d, set())) / days


def completion_rate_by_pool(ctx: InsightContext, high: bool) -> float:
    """Mean share of habits done on days whose morning pool was at or above 60 (or below)."""
    if not ctx.habits:
        return 0.0
    wanted = {h.id for h in ctx.habits}
    done = ctx.done_by_day()
    rates = [
        len(wanted & done.get(entry.date, set())) / len(wanted)
        for entry in ctx.pool_history
        if (entry.morning_level >= POOL_SPLIT_LEVEL) == high
    ]
    return safe_mean(rates)


def morning_pool_average(ctx: InsightContext) -> float:
    recent = sorted(ctx.pool_history, key=lambda e: e.date)[-7:]
    if recent:
        return safe_mean(e.morning_level for e in recent)
    return ctx.morning_level if ctx.morning_level is not None else 65.0


def days_since_last_completion(ctx: InsightContext) -> int | None:
    if not ctx.completions:
        return None
    return (ctx.today - max(e.day for e in ctx.completions)).days


def _done_today(ctx: InsightContext, habit_id: str) -> bool:
    return any(e.habit_id == habit_id and e.day == ctx.today for e in ctx.completions)


def _struggling_habit(ctx: InsightContext) -> Habit | None:
    return next((h for h in ctx.habits if 0 < habit_rate(ctx, h.id) < 0.4), None)


# ─────────────────────────────────────────────────────────────────────────────
# Trigger table
# ─────────────────────────────────────────────────────────────────────────────


def _fixed(kind: str, title: str, message: str, action: dict[str, str] | None = None):
    def build(_ctx: InsightContext) -> dict[str, Any]:
        return {"kind": kind, "title": title, "message": message, "action": action}

    return build


def _morning_advantage(ctx: InsightContext) -> bool:
    morning, evening = part_share(ctx, "morning"), part_share(ctx, "evening")
    return morning > 0 and evening > 0 and morning > evening * 1.25


def _friday_friction(ctx: InsightContext) -> bool:
    average = average_miss_rate(ctx)
    return average > 0 and friday_miss_rate(ctx) > average * 1.5


def _weekend_gap(ctx: InsightContext) -> bool:
    weekend = per_day_completions(ctx, weekend=True)
    return weekend > 0 and per_day_completions(ctx, weekend=False) > weekend * 1.3


def _streak_at_risk(ctx: InsightContext) -> bool:
    if ctx.now.hour < 20 or ctx.streak_days < 3:
        return False
    return any(not _done_today(ctx, h.id) for h in ctx.habits)


def _two_minute_underused(ctx: InsightContext) -> bool:
    return len(ctx.completions) > 20 and ctx.two_minute_uses < 3 and imperfect_day_rate(ctx) > 0.3


def _pool_correlation(ctx: InsightContext) -> bool:
    high, low = completion_rate_by_pool(ctx, high=True), completion_rate_by_pool(ctx, high=False)
    return high > 0 and low > 0 and high > low * 1.4


def _return_after_miss(ctx: InsightContext) -> bool:
    gap = days_since_last_completion(ctx)
    return gap is not None and 1 <= gap <= 3 and ctx.streak_days > 0


def _too_hard(ctx: InsightContext) -> dict[str, Any]:
    habit = _struggling_habit(ctx)
    name = habit.name if habit else "This habit"
    return {
        "kind": "diagnosis",
        "title": "Resistance signal",
        "message": f'"{name}" is landing under 40% of days. Shrink the scope, or look at what makes it hard.',
        "action": {"text": "Talk to coach about this", "type": "navigate", "target": "coach"},
    }


def _welcome_back(ctx: InsightContext) -> dict[str, Any]:
    gap = days_since_last_completion(ctx) or 1
    if gap == 1:
        message = "One day off doesn't erase the adaptation. Your brain remembers the pattern."
    else:
        message = f"{gap} days away. It's not the miss that matters, it's the return."
    return {
        "kind": "welcome_back",
        "title": "Welcome back",
        "message": message,
        "action": {"text": "Continue", "type": "dismiss"},
    }


TRIGGERS: list[InsightTrigger] = [
    InsightTrigger(
        "morning_advantage",
        2,
        _morning_advantage,
        _fixed(
            "pattern",
            "Pattern detected",
            "You finish more in the morning than in the evening. Your chronotype might be telling you something.",
            {"text": "Shift evening habits to morning?", "type": "suggestion"},
        ),
    ),
    InsightTrigger(
        "friday_friction",
        2,
        _friday_friction,
        _fixed(
            "pattern",
            "Friday pattern",
            "Fridays show more friction than other days. Consider making Friday a 2-minute-only day.",
            {"text": "Enable Friday easy mode?", "type": "toggle"},
        ),
    ),
    InsightTrigger(
        "weekend_warrior",
        3,
        _weekend_gap,
        _fixed(
            "observation",
            "Weekend gap",
            "Weekdays are steady, weekends show more resistance. Different routines need different triggers.",
        ),
    ),
    InsightTrigger(
        "streak_threshold_7",
        1,
        lambda ctx: ctx.streak_days == 6,
        _fixed(
            "milestone_preview",
            "Threshold moment",
            "Tomorrow is day 7. One more day and the pattern starts to stick.",
        ),
    ),
    InsightTrigger(
        "streak_threshold_21",
        1,
        lambda ctx: ctx.streak_days == 20,
        _fixed(
            "milestone_preview",
            "21-day approach",
            "Tomorrow is day 21. The old myth says habits form here. They don't, but your momentum is real.",
        ),
    ),
    InsightTrigger(
        "streak_at_risk",
        0,
        _streak_at_risk,
        _fixed(
            "urgent",
            "Streak at risk",
            "Still time today. Even the 2-minute version keeps the chain.",
            {"text": "Show 2-minute versions", "type": "navigate", "target": "two_minute"},
        ),
    ),
    InsightTrigger(
        "habit_too_hard",
        2,
        lambda ctx: _struggling_habit(ctx) is not None,
        _too_hard,
    ),
    InsightTrigger(
        "two_min_underused",
        3,
        _two_minute_underused,
        _fixed(
            "tip",
            "Tool unused",
            "You're missing days but rarely using the 2-minute version. On hard days the tiny version is the habit.",
            {"text": "Show 2-min automatically on hard days", "type": "toggle"},
        ),
    ),
    InsightTrigger(
        "pool_correlation",
        3,
        _pool_correlation,
        _fixed(
            "pattern",
            "Pool correlation confirmed",
            "You complete noticeably more on days your morning pool is above 60. The model holds for you.",
        ),
    ),
    InsightTrigger(
        "morning_pool_optimizer",
        3,
        lambda ctx: morning_pool_average(ctx) > 70 and not ctx.seen_morning_optimizer,
        _fixed(
            "tip",
            "Morning advantage",
            "Your morning pool runs high. Schedule your hardest habit before you check your phone.",
            {"text": "Got it", "type": "dismiss"},
        ),
    ),
    InsightTrigger(
        "return_after_miss",
        1,
        _return_after_miss,
        _welcome_back,
    ),
]


# ─────────────────────────────────────────────────────────────────────────────
# Selection
# ─────────────────────────────────────────────────────────────────────────────


def shown_at(value: Any) -> datetime | None:
    """Parse a stored last-shown time: datetime, ISO string or epoch milliseconds."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000)
        except (OverflowError, OSError, ValueError):
            return None
    return parse_timestamp(value)


def _cooling_down(trigger_id: str, shown: Mapping[str, Any], now: datetime, cooldown: timedelta) -> bool:
    last = shown_at(shown.get(trigger_id))
    return last is not None and now - last < cooldown


def check_for_insights(
    ctx: InsightContext,
    shown: Mapping[str, Any] | None = None,
    triggers: Iterable[InsightTrigger] | None = None,
    settings: BehaviorConfig | None = None,
) -> ProactiveInsight | None:
    """
    The highest-priority insight whose condition holds and that is not cooling down.

    Ties in priority keep table order.
    """
    cooldown = timedelta(days=resolve(settings).analytics.insight_cooldown_days)
    shown = shown or {}

    for trigger in sorted(triggers if triggers is not None else TRIGGERS, key=lambda t: t.priority):
        if _cooling_down(trigger.id, shown, ctx.now, cooldown):
            continue
        if trigger.condition(ctx):
            logger.debug("proactive_insight_selected", insight=trigger.id, priority=trigger.priority)
            return trigger.insight(ctx)
    return None


def mark_insight_shown(
    insight_id: str,
    shown: Mapping[str, Any] | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """A new cooldown mapping with insight_id stamped at now."""
    return {**(shown or {}), insight_id: now or datetime.now()}


def applicable_insights(
    ctx: InsightContext,
    shown: Mapping[str, Any] | None = None,
    limit: int | None = None,
    triggers: Iterable[InsightTrigger] | None = None,
    settings: BehaviorConfig | None = None,
) -> list[ProactiveInsight]:
    """
    Insights for a dashboard view: the first `limit` matches in table order,
    returned sorted by priority, with the shorter dashboard cooldown.
    """
    cfg = resolve(settings).analytics
    cooldown = timedelta(days=cfg.dashboard_cooldown_days)
    limit = cfg.dashboard_limit if limit is None else limit
    shown = shown or {}

    found: list[ProactiveInsight] = []
    for trigger in triggers if triggers is not None else TRIGGERS:
        if len(found) >= limit:
            break
        if _cooling_down(trigger.id, shown, ctx.now, cooldown):
            continue
        if trigger.condition(ctx):
            found.append(trigger.insight(ctx))

    return sorted(found, key=lambda insight: insight.priority)
