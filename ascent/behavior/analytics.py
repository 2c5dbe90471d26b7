"""
Tool: Pattern Analytics
Purpose: Turn the completion log into time, day, habit and pool patterns

Each analysis is gated on its own sample size and reports
has_enough_data=False instead of guessing from too little history. The
report combines them into at most four ranked insights, written as
observations, never as judgments.

Blocks:
- Time of day: hourly completion rates folded into day-parts
- Day of week: per-weekday rates, weekday vs weekend
- Per habit: week/month rates, trend, streaks, resistance
- Pool correlation: does a fuller morning pool mean more completions

Numbers accumulate unrounded; rounding happens in to_dict().

Usage:
    from ascent.behavior import analytics

    report = analytics.generate_report(habits, completions, pool_history)
    payload = report.to_dict()

Dependencies:
    - statistics (stdlib) for the Pearson coefficient
    - pydantic settings (ascent.behavior.config_models)
    - structlog (ascent.logging_config)
"""

from __future__ import annotations

import statistics
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from ascent.behavior import DAY_PARTS
from ascent.behavior.config_models import BehaviorConfig, resolve
from ascent.behavior.models import (
    Habit,
    Insight,
    InsightCategory,
    PoolHistoryEntry,
    coerce_events,
    events_by_day,
    round_half_up,
    safe_mean,
    safe_rate,
)
from ascent.behavior.streaks import habit_hit, hit_series, leading_run, longest_run
from ascent.logging_config import get_logger


logger = get_logger(__name__)

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
WEEKEND = (5, 6)

TREND_IMPROVING = "improving"
TREND_DECLINING = "declining"
TREND_STABLE = "stable"


def in_day_part(hour: int, bounds: tuple[int, int]) -> bool:
    """Whether an hour falls in [start, end), wrapping past midnight when start > end."""
    start, end = bounds
    if start < end:
        return start <= hour < end
    return hour >= start or hour < end


# ─────────────────────────────────────────────────────────────────────────────
# Result types
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class HourRate:
    hour: int
    rate: float
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"hour": self.hour, "rate": round_half_up(self.rate), "count": self.count}


@dataclass
class NamedRate:
    """A named bucket (day-part or weekday) and its completion rate."""

    name: str
    rate: float
    completed: int = 0
    total: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "rate": round_half_up(self.rate),
            "completed": self.completed,
            "total": self.total,
        }


@dataclass
class TimePatterns:
    has_enough_data: bool = False
    hourly_rates: list[HourRate] = field(default_factory=list)
    part_rates: dict[str, float] = field(default_factory=dict)
    best_part: NamedRate | None = None
    worst_part: NamedRate | None = None
    peak_hour: int | None = None
    peak_hour_rate: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        if not self.has_enough_data:
            return {"has_enough_data": False}
        return {
            "has_enough_data": True,
            "hourly_rates": [h.to_dict() for h in self.hourly_rates],
            "part_rates": {name: round_half_up(rate) for name, rate in self.part_rates.items()},
            "best_part": self.best_part.to_dict() if self.best_part else None,
            "worst_part": self.worst_part.to_dict() if self.worst_part else None,
            "peak_hour": self.peak_hour,
            "peak_hour_rate": round_half_up(self.peak_hour_rate),
        }


@dataclass
class DayPatterns:
    has_enough_data: bool = False
    day_rates: list[NamedRate] = field(default_factory=list)
    best_day: NamedRate | None = None
    worst_day: NamedRate | None = None
    weekday_rate: float = 0.0
    weekend_rate: float = 0.0
    weekend_warrior: bool = False
    weekday_dipper: bool = False

    def to_dict(self) -> dict[str, Any]:
        if not self.has_enough_data:
            return {"has_enough_data": False}
        return {
            "has_enough_data": True,
            "day_rates": [d.to_dict() for d in self.day_rates],
            "best_day": self.best_day.to_dict() if self.best_day else None,
            "worst_day": self.worst_day.to_dict() if self.worst_day else None,
            "weekday_rate": round_half_up(self.weekday_rate),
            "weekend_rate": round_half_up(self.weekend_rate),
            "weekend_warrior": self.weekend_warrior,
            "weekday_dipper": self.weekday_dipper,
        }


@dataclass
class HabitPerformance:
    habit_id: str
    habit_name: str = ""
    has_enough_data: bool = False
    week_rate: float = 0.0
    month_rate: float = 0.0
    trend: float = 0.0
    trend_direction: str = TREND_STABLE
    current_streak: int = 0
    longest_streak: int = 0
    best_time: NamedRate | None = None
    total_completions: int = 0
    resistance_level: str = "high"
    is_sticky: bool = False
    needs_attention: bool = False

    def to_dict(self) -> dict[str, Any]:
        if not self.has_enough_data:
            return {"has_enough_data": False, "habit_id": self.habit_id}
        return {
            "has_enough_data": True,
            "habit_id": self.habit_id,
            "habit_name": self.habit_name,
            "week_rate": round_half_up(self.week_rate),
            "month_rate": round_half_up(self.month_rate),
            "trend": round_half_up(self.trend),
            "trend_direction": self.trend_direction,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "best_time": self.best_time.to_dict() if self.best_time else None,
            "total_completions": self.total_completions,
            "resistance_level": self.resistance_level,
            "is_sticky": self.is_sticky,
            "needs_attention": self.needs_attention,
        }


@dataclass
class PoolCorrelation:
    has_enough_data: bool = False
    data_points: list[tuple[date, float, float]] = field(default_factory=list)
    high_pool_completion: float = 0.0
    low_pool_completion: float = 0.0
    pool_impact: float = 0.0
    correlation: float = 0.0
    correlation_strength: str = "none"
    pool_matters: bool = False
    insight: str = ""

    def to_dict(self) -> dict[str, Any]:
        if not self.has_enough_data:
            return {"has_enough_data": False}
        return {
            "has_enough_data": True,
            "data_points": [
                {"date": day.isoformat(), "pool_level": round_half_up(level), "completion_rate": round_half_up(rate)}
                for day, level, rate in self.data_points
            ],
            "high_pool_completion": round_half_up(self.high_pool_completion),
            "low_pool_completion": round_half_up(self.low_pool_completion),
            "pool_impact": round_half_up(self.pool_impact),
            "correlation": round_half_up(self.correlation * 100) / 100,
            "correlation_strength": self.correlation_strength,
            "pool_matters": self.pool_matters,
            "insight": self.insight,
        }


@dataclass
class AnalyticsReport:
    """Everything the analytics dashboard shows. Recomputed per request."""

    total_completions: int = 0
    active_days: int = 0
    active_habits: int = 0
    avg_completions_per_day: float = 0.0
    time_patterns: TimePatterns = field(default_factory=TimePatterns)
    day_patterns: DayPatterns = field(default_factory=DayPatterns)
    pool_correlation: PoolCorrelation = field(default_factory=PoolCorrelation)
    habit_analytics: list[HabitPerformance] = field(default_factory=list)
    best_habit: HabitPerformance | None = None
    needs_attention: list[HabitPerformance] = field(default_factory=list)
    sticky_habits: list[HabitPerformance] = field(default_factory=list)
    insights: list[Insight] = field(default_factory=list)
    generated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": {
                "total_completions": self.total_completions,
                "active_days": self.active_days,
                "active_habits": self.active_habits,
                "avg_completions_per_day": round_half_up(self.avg_completions_per_day * 10) / 10,
                "sticky_habits_count": len(self.sticky_habits),
            },
            "time_patterns": self.time_patterns.to_dict(),
            "day_patterns": self.day_patterns.to_dict(),
            "pool_correlation": self.pool_correlation.to_dict(),
            "habit_analytics": [h.to_dict() for h in self.habit_analytics],
            "best_habit": self.best_habit.to_dict() if self.best_habit else None,
            "needs_attention": [h.to_dict() for h in self.needs_attention],
            "sticky_habits": [h.to_dict() for h in self.sticky_habits],
            "insights": [i.to_dict() for i in self.insights],
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
        }


# ─────────────────────────────────────────────────────────────────────────────
# Time of day
# ─────────────────────────────────────────────────────────────────────────────


def analyze_time_patterns(log: Iterable[Any] | None, settings: BehaviorConfig | None = None) -> TimePatterns:
    """
    Completion rate by hour and by day-part.

    An hour only counts once it has min_bin_samples events. A day-part's rate
    is the mean of its qualifying hours; a part with none is 0.
    """
    cfg = resolve(settings).analytics
    events = coerce_events(log)
    if len(events) < cfg.min_events_time:
        return TimePatterns()

    completed = [0] * 24
    total = [0] * 24
    for event in events:
        total[event.hour] += 1
        if event.completed:
            completed[event.hour] += 1

    hourly = [
        HourRate(hour=hour, rate=safe_rate(completed[hour], total[hour]), count=total[hour])
        for hour in range(24)
        if total[hour] >= cfg.min_bin_samples
    ]
    # Stable sort keeps the earliest hour first on ties.
    hourly.sort(key=lambda h: h.rate, reverse=True)

    part_rates = {
        name: safe_mean(h.rate for h in hourly if in_day_part(h.hour, bounds))
        for name, bounds in DAY_PARTS.items()
    }

    ranked = sorted(part_rates.items(), key=lambda item: item[1], reverse=True)
    best_name, best_rate = ranked[0]
    positive = [(name, rate) for name, rate in part_rates.items() if rate > 0]
    worst = min(positive, key=lambda item: item[1]) if positive else None

    return TimePatterns(
        has_enough_data=True,
        hourly_rates=hourly,
        part_rates=part_rates,
        best_part=NamedRate(best_name, best_rate) if best_rate > 0 else None,
        worst_part=NamedRate(*worst) if worst else None,
        peak_hour=hourly[0].hour if hourly else None,
        peak_hour_rate=hourly[0].rate if hourly else 0.0,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Day of week
# ─────────────────────────────────────────────────────────────────────────────


def analyze_day_patterns(log: Iterable[Any] | None, settings: BehaviorConfig | None = None) -> DayPatterns:
    cfg = resolve(settings).analytics
    events = coerce_events(log)
    if len(events) < cfg.min_events_day:
        return DayPatterns()

    completed = [0] * 7
    total = [0] * 7
    for event in events:
        weekday = event.timestamp.weekday()
        total[weekday] += 1
        if event.completed:
            completed[weekday] += 1

    day_rates = [
        NamedRate(name=DAY_NAMES[i], rate=safe_rate(completed[i], total[i]), completed=completed[i], total=total[i])
        for i in range(7)
    ]

    weekday_rate = safe_mean(day_rates[i].rate for i in range(7) if i not in WEEKEND)
    weekend_rate = safe_mean(day_rates[i].rate for i in WEEKEND)

    observed = [d for d in day_rates if d.total > 0]
    gap = cfg.weekend_gap_points

    return DayPatterns(
        has_enough_data=True,
        day_rates=day_rates,
        best_day=max(day_rates, key=lambda d: d.rate),
        worst_day=min(observed, key=lambda d: d.rate) if observed else None,
        weekday_rate=weekday_rate,
        weekend_rate=weekend_rate,
        weekend_warrior=weekend_rate > weekday_rate + gap,
        weekday_dipper=weekday_rate > weekend_rate + gap,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Per habit
# ─────────────────────────────────────────────────────────────────────────────


def _trend_direction(trend: float, band: float) -> str:
    if trend > band:
        return TREND_IMPROVING
    if trend < -band:
        return TREND_DECLINING
    return TREND_STABLE


def _resistance(week_rate: float) -> str:
    if week_rate >= 80:
        return "low"
    if week_rate >= 50:
        return "medium"
    return "high"


def analyze_habit_performance(
    habit: Habit,
    log: Iterable[Any] | None,
    today: date | None = None,
    settings: BehaviorConfig | None = None,
) -> HabitPerformance:
    """
    Week and month performance of one habit, on trailing windows ending today.

    A day counts when any completed event for the habit falls on it. The
    trend compares the most recent 15 days with the 15 before them; the
    two halves are separate slices of the same 30-day series.
    """
    cfg = resolve(settings)
    today = today or datetime.now().date()
    events = [e for e in coerce_events(log) if e.habit_id == habit.id]

    if len(events) < cfg.analytics.min_events_habit:
        return HabitPerformance(habit_id=habit.id, habit_name=habit.name)

    month = hit_series(events, habit_hit(habit.id), 30, today)
    week = month[:7]
    recent_half = month[:15]
    prior_half = month[15:30]

    week_rate = safe_rate(sum(week), len(week))
    month_rate = safe_rate(sum(month), len(month))
    trend = safe_rate(sum(recent_half), len(recent_half)) - safe_rate(sum(prior_half), len(prior_half))
    current_streak = leading_run(month)

    time_patterns = analyze_time_patterns(events, cfg)

    return HabitPerformance(
        habit_id=habit.id,
        habit_name=habit.name,
        has_enough_data=True,
        week_rate=week_rate,
        month_rate=month_rate,
        trend=trend,
        trend_direction=_trend_direction(trend, cfg.analytics.trend_band_points),
        current_streak=current_streak,
        longest_streak=longest_run(reversed(month)),
        best_time=time_patterns.best_part,
        total_completions=sum(1 for e in events if e.completed),
        resistance_level=_resistance(week_rate),
        is_sticky=current_streak >= 7 and week_rate >= 80,
        needs_attention=week_rate < 50 and trend < 0,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Pool correlation
# ─────────────────────────────────────────────────────────────────────────────


def pearson(xs: Sequence[float], ys: Sequence[float]) -> float:
    """Pearson r; 0 when undefined (fewer than two points or no variance)."""
    if len(xs) != len(ys) or len(xs) < 2:
        return 0.0
    try:
        return statistics.correlation(xs, ys)
    except statistics.StatisticsError:
        return 0.0


def correlation_strength(r: float) -> str:
    magnitude = abs(r)
    if magnitude >= 0.7:
        return "strong"
    if magnitude >= 0.4:
        return "moderate"
    if magnitude >= 0.2:
        return "weak"
    return "none"


def _pool_insight(impact: float) -> str:
    if impact > 20:
        return (
            f"You complete {round_half_up(impact)}% more habits on high-pool days. "
            "Protecting morning reserves pays off."
        )
    if impact > 10:
        return "Pool level has a moderate effect on your completion rate."
    return "Your completion rate is consistent regardless of pool level."


def _coerce_history(pool_history: Iterable[Any] | None) -> list[PoolHistoryEntry]:
    entries = []
    for item in pool_history or ():
        entry = item if isinstance(item, PoolHistoryEntry) else None
        if entry is None and isinstance(item, dict):
            entry = PoolHistoryEntry.from_dict(item)
        if entry is None:
            logger.warning("skipped_malformed_pool_entry", entry=repr(item)[:120])
            continue
        entries.append(entry)
    return entries


def analyze_pool_correlation(
    pool_history: Iterable[Any] | None,
    log: Iterable[Any] | None,
    settings: BehaviorConfig | None = None,
) -> PoolCorrelation:
    """
    Relate each day's morning pool level to that day's completion rate.

    Days with no completion entries at all are dropped, not counted as 0%.
    """
    cfg = resolve(settings).analytics
    history = _coerce_history(pool_history)
    if len(history) < cfg.min_pool_history:
        return PoolCorrelation()

    by_day = events_by_day(coerce_events(log))
    points: list[tuple[date, float, float]] = []
    for entry in history:
        day_events = by_day.get(entry.date)
        if not day_events:
            continue
        rate = safe_rate(sum(1 for e in day_events if e.completed), len(day_events))
        points.append((entry.date, entry.morning_level, rate))

    if len(points) < cfg.min_pool_points:
        return PoolCorrelation()

    high = safe_mean(rate for _, level, rate in points if level >= cfg.high_pool_level)
    low = safe_mean(rate for _, level, rate in points if level < cfg.low_pool_level)
    impact = high - low
    r = pearson([level for _, level, _ in points], [rate for _, _, rate in points])

    logger.debug("pool_correlation", points=len(points), impact=impact, r=r)
    return PoolCorrelation(
        has_enough_data=True,
        data_points=points,
        high_pool_completion=high,
        low_pool_completion=low,
        pool_impact=impact,
        correlation=r,
        correlation_strength=correlation_strength(r),
        pool_matters=impact > cfg.pool_matters_threshold,
        insight=_pool_insight(impact),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Report
# ─────────────────────────────────────────────────────────────────────────────


def build_insights(
    time_patterns: TimePatterns,
    day_patterns: DayPatterns,
    pool_correlation: PoolCorrelation,
    best_habit: HabitPerformance | None,
    needs_attention: Sequence[HabitPerformance],
    limit: int = 4,
) -> list[Insight]:
    """Insights in fixed priority: time, day, pool, success, attention."""
    insights = []

    if time_patterns.has_enough_data and time_patterns.best_part:
        part = time_patterns.best_part
        insights.append(
            Insight(
                category=InsightCategory.TIME,
                icon="clock",
                title=f"{part.name.capitalize()} is your sweet spot",
                message=f"{round_half_up(part.rate)}% completion rate during {part.name} hours.",
            )
        )

    if day_patterns.has_enough_data and day_patterns.worst_day:
        day = day_patterns.worst_day
        insights.append(
            Insight(
                category=InsightCategory.DAY,
                icon="calendar",
                title=f"{day.name}s are tough",
                message=f"Only {round_half_up(day.rate)}% completion. Consider easier targets or 2-min versions.",
            )
        )

    if pool_correlation.has_enough_data and pool_correlation.pool_matters:
        insights.append(
            Insight(
                category=InsightCategory.POOL,
                icon="bolt",
                title="Pool level matters",
                message=pool_correlation.insight,
            )
        )

    if best_habit is not None:
        tail = "This one's automatic." if best_habit.is_sticky else "Keep building."
        insights.append(
            Insight(
                category=InsightCategory.SUCCESS,
                icon="star",
                title=f"{best_habit.habit_name} is solid",
                message=f"{round_half_up(best_habit.week_rate)}% this week. {tail}",
            )
        )

    if needs_attention:
        habit = needs_attention[0]
        insights.append(
            Insight(
                category=InsightCategory.ATTENTION,
                icon="wrench",
                title=f"{habit.habit_name} needs adjusting",
                message=(
                    f"{round_half_up(habit.week_rate)}% and {habit.trend_direction}. "
                    "Maybe lower the target or make it easier?"
                ),
            )
        )

    return insights[:limit]


def generate_report(
    habits: Iterable[Habit] | None,
    log: Iterable[Any] | None,
    pool_history: Iterable[Any] | None = (),
    today: date | None = None,
    settings: BehaviorConfig | None = None,
) -> AnalyticsReport:
    """
    Run every analysis and rank the insights.

    Args:
        habits: The user's habits
        log: Completion events (CompletionEvent or dicts)
        pool_history: Daily pool levels (PoolHistoryEntry or dicts)
        today: Reference day for the per-habit windows
        settings: Behavior settings

    Returns:
        AnalyticsReport; blocks without enough data say so
    """
    cfg = resolve(settings)
    habits = list(habits or [])
    events = coerce_events(log)

    time_patterns = analyze_time_patterns(events, cfg)
    day_patterns = analyze_day_patterns(events, cfg)
    pool_correlation = analyze_pool_correlation(pool_history, events, cfg)
    habit_analytics = [analyze_habit_performance(h, events, today, cfg) for h in habits]

    with_data = [h for h in habit_analytics if h.has_enough_data]
    best_habit = max(with_data, key=lambda h: h.week_rate) if with_data else None
    needs_attention = [h for h in with_data if h.needs_attention]
    sticky = [h for h in with_data if h.is_sticky]

    total_completions = sum(1 for e in events if e.completed)
    active_days = len({e.day for e in events})
    avg_per_day = total_completions / active_days if active_days else 0.0

    insights = build_insights(
        time_patterns,
        day_patterns,
        pool_correlation,
        best_habit,
        needs_attention,
        limit=cfg.analytics.max_insights,
    )

    logger.debug(
        "analytics_report_generated",
        habits=len(habits),
        events=len(events),
        insights=len(insights),
    )
    return AnalyticsReport(
        total_completions=total_completions,
        active_days=active_days,
        active_habits=len(habits),
        avg_completions_per_day=avg_per_day,
        time_patterns=time_patterns,
        day_patterns=day_patterns,
        pool_correlation=pool_correlation,
        habit_analytics=habit_analytics,
        best_habit=best_habit,
        needs_attention=needs_attention,
        sticky_habits=sticky,
        insights=insights,
        generated_at=datetime.now(),
    )
