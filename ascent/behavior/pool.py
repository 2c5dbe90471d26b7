"""
Tool: Drive Pool Simulator
Purpose: Model daily motivational capacity as one bounded scalar

The pool starts each morning at a base level, adjusted by how the last
days went (streak length, whether yesterday was complete, sleep). During the
day, screen time drains it and recovery activities recharge it. The level
is always clamped to [0, 100].

State is passed in and returned. Every function here takes a PoolState and
gives back a new one; nothing is cached at module level.

Clamped additive updates commute except at saturation: draining a full pool
then recharging can land somewhere different than the reverse order.

Usage:
    from ascent.behavior import pool

    state = pool.morning_reset(state, streak_days=12, last_sleep_hours=7.5)
    state = pool.drain(state, "Instagram", 20)
    state = pool.recharge(state, "exercise", "moderate")
    status = pool.status_message(state.current_level)
    ideas = pool.recovery_suggestions(state.current_level, hour=15, recent=state.recharge_events)

Dependencies:
    - pydantic settings (ascent.behavior.config_models)
    - structlog (ascent.logging_config)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import replace
from datetime import date, datetime
from typing import Any

from ascent.behavior.config_models import BehaviorConfig, resolve
from ascent.behavior.models import (
    Habit,
    PoolBand,
    PoolEvent,
    PoolEventKind,
    PoolHistoryEntry,
    PoolState,
    clamp,
    round_half_up,
)
from ascent.logging_config import get_logger


logger = get_logger(__name__)

# Impact per minute of use, by category. Drains are never positive.
DRAIN_RATES: dict[str, float] = {
    "social": -1.5,
    "video": -0.8,
    "communication": -0.3,
    "utility": 0.0,
}

APP_CATEGORIES: dict[str, list[str]] = {
    "social": ["TikTok", "Instagram", "Twitter", "X", "Facebook", "Reddit", "Snapchat"],
    "video": ["YouTube", "Netflix", "Hulu", "Disney+", "HBO", "Twitch"],
    "communication": ["Messages", "Slack", "Email", "Discord", "WhatsApp", "Telegram"],
    "utility": ["Maps", "Calendar", "Notes", "Reminders", "Weather", "Clock", "Settings"],
}

DEFAULT_CATEGORY = "utility"

# Extra drain per earlier session of the same app today
SESSION_DEPLETION = 0.3

# activity -> intensity -> boost
RECHARGE_ACTIVITIES: dict[str, dict[str, float]] = {
    "exercise": {"light": 8, "moderate": 15, "intense": 12},
    "meditation": {"short": 5, "standard": 10},
    "outdoors": {"walk": 8, "sunlight": 10},
    "social": {"in_person": 10, "deep_conversation": 15},
    "cold_exposure": {"shower": 12},
    "sleep": {"good": 25, "great": 30},
}

STATUS_MESSAGES: dict[PoolBand, dict[str, str]] = {
    PoolBand.HIGH: {
        "message": "Full reserves. Prime time for challenging work.",
        "suggestion": "Tackle your hardest habit now.",
        "color": "green",
    },
    PoolBand.MODERATE: {
        "message": "Moderate reserves. Stick to routines.",
        "suggestion": "Keep it simple today.",
        "color": "amber",
    },
    PoolBand.LOW: {
        "message": "Low reserves. Use 2-minute versions.",
        "suggestion": "Tiny moves only. No pressure.",
        "color": "orange",
    },
}


# ─────────────────────────────────────────────────────────────────────────────
# Morning reset
# ─────────────────────────────────────────────────────────────────────────────


def streak_bonus(streak_days: int, settings: BehaviorConfig | None = None) -> float:
    cfg = resolve(settings).pool
    tiers = sum(1 for days in cfg.streak_bonus_days if streak_days >= days)
    return tiers * cfg.streak_bonus_per_tier


def sleep_adjustment(last_sleep_hours: float | None, settings: BehaviorConfig | None = None) -> float:
    """Adjustment for last night's sleep; unknown sleep is neutral."""
    if last_sleep_hours is None:
        return 0.0
    for tier in resolve(settings).pool.sleep_adjustments:
        if last_sleep_hours >= tier.min_hours:
            return tier.delta
    return 0.0


def morning_level(
    *,
    streak_days: int = 0,
    prior_day_complete: bool = False,
    last_sleep_hours: float | None = None,
    settings: BehaviorConfig | None = None,
) -> float:
    cfg = resolve(settings)
    level = cfg.pool.base_level + streak_bonus(streak_days, cfg)
    if prior_day_complete:
        level += cfg.pool.prior_day_bonus
    level += sleep_adjustment(last_sleep_hours, cfg)
    return clamp(level)


def morning_reset(
    state: PoolState | None = None,
    *,
    streak_days: int = 0,
    prior_day_complete: bool = False,
    last_sleep_hours: float | None = None,
    today: date | None = None,
    settings: BehaviorConfig | None = None,
) -> PoolState:
    """
    Reset the pool for a new day.

    A no-op when the state was already reset today, so a second call on the
    same day (e.g. a reload) returns the state unchanged.
    """
    state = state or PoolState()
    today = today or datetime.now().date()

    if state.last_updated_date == today:
        logger.debug("pool_reset_skipped", date=today.isoformat())
        return state

    level = morning_level(
        streak_days=streak_days,
        prior_day_complete=prior_day_complete,
        last_sleep_hours=last_sleep_hours,
        settings=settings,
    )
    logger.debug(
        "pool_reset",
        date=today.isoformat(),
        level=level,
        streak_days=streak_days,
        prior_day_complete=prior_day_complete,
        last_sleep_hours=last_sleep_hours,
    )
    return PoolState(
        current_level=level,
        morning_level=level,
        last_updated_date=today,
        drain_events=(),
        recharge_events=(),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Drain and recharge
# ─────────────────────────────────────────────────────────────────────────────


def category_for_app(app_name: str, custom_mappings: Mapping[str, str] | None = None) -> str:
    """Category of an app; a known category name maps to itself."""
    if custom_mappings and app_name in custom_mappings:
        return custom_mappings[app_name]
    if app_name in DRAIN_RATES:
        return app_name

    lowered = app_name.lower()
    for category, apps in APP_CATEGORIES.items():
        if any(app.lower() == lowered for app in apps):
            return category
    return DEFAULT_CATEGORY


def drain_impact(category: str, minutes: float) -> float:
    return DRAIN_RATES.get(category, 0.0) * max(0.0, minutes)


def depletion_multiplier(sessions: int) -> float:
    """Each earlier session of the same app today makes the next one drain 30% more."""
    return 1 + SESSION_DEPLETION * max(0, sessions)


def sessions_today(state: PoolState, app_or_category: str) -> int:
    """Earlier drain sessions of this app in the state's day."""
    lowered = app_or_category.lower()
    return sum(1 for event in state.drain_events if event.label.lower() == lowered)


def drain(
    state: PoolState,
    app_or_category: str,
    minutes: float,
    *,
    impact: float | None = None,
    at: datetime | None = None,
    custom_mappings: Mapping[str, str] | None = None,
) -> PoolState:
    """
    Apply a drain event.

    The rate-table impact is scaled by the depletion multiplier for repeat
    sessions of the same app. impact, when given, overrides both. The level
    is clamped, so a drain never takes it below 0.
    """
    category = category_for_app(app_or_category, custom_mappings)
    if impact is not None:
        amount = impact
    else:
        multiplier = depletion_multiplier(sessions_today(state, app_or_category))
        amount = drain_impact(category, minutes) * multiplier
        if multiplier > 1:
            logger.debug("repeat_session_drain", app=app_or_category, multiplier=multiplier, impact=amount)

    event = PoolEvent(
        kind=PoolEventKind.DRAIN,
        label=app_or_category,
        impact=amount,
        category=category,
        minutes=minutes,
        timestamp=at or datetime.now(),
    )
    return replace(
        state,
        current_level=clamp(state.current_level + amount),
        drain_events=(*state.drain_events, event),
    )


def recharge_boost(activity: str, intensity: str | None = None) -> float:
    """Boost for an activity; unknown intensity falls back to the first one listed."""
    options = RECHARGE_ACTIVITIES.get(activity)
    if not options:
        return 0.0
    if intensity in options:
        return options[intensity]
    return next(iter(options.values()))


def recharge(
    state: PoolState,
    activity: str,
    intensity: str | None = None,
    *,
    boost: float | None = None,
    at: datetime | None = None,
) -> PoolState:
    amount = boost if boost is not None else recharge_boost(activity, intensity)
    label = f"{activity}:{intensity}" if intensity else activity

    event = PoolEvent(
        kind=PoolEventKind.RECHARGE,
        label=label,
        impact=amount,
        category=activity,
        timestamp=at or datetime.now(),
    )
    return replace(
        state,
        current_level=clamp(state.current_level + amount),
        recharge_events=(*state.recharge_events, event),
    )


def drain_from_screen_time(
    screen_time_by_app: Mapping[str, float],
    custom_mappings: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """
    Total drain for a day of screen time.

    Returns:
        Dict with total_drain (<= 0) and a per-app breakdown, most draining first
    """
    breakdown = []
    for app, minutes in screen_time_by_app.items():
        category = category_for_app(app, custom_mappings)
        breakdown.append(
            {
                "app": app,
                "minutes": minutes,
                "category": category,
                "drain": drain_impact(category, minutes),
            }
        )

    breakdown.sort(key=lambda item: item["drain"])
    return {
        "total_drain": sum(item["drain"] for item in breakdown),
        "breakdown": breakdown,
    }


# ─────────────────────────────────────────────────────────────────────────────
# Status
# ─────────────────────────────────────────────────────────────────────────────


def band_for(level: float, settings: BehaviorConfig | None = None) -> PoolBand:
    cfg = resolve(settings).pool
    if level >= cfg.high_threshold:
        return PoolBand.HIGH
    if level >= cfg.moderate_threshold:
        return PoolBand.MODERATE
    return PoolBand.LOW


def status_message(level: float, settings: BehaviorConfig | None = None) -> dict[str, Any]:
    """Band, message, suggestion and color token for a level."""
    band = band_for(level, settings)
    return {"level": band.value, **STATUS_MESSAGES[band]}


def recommended_habit_order(
    habits: Iterable[Habit], level: float, settings: BehaviorConfig | None = None
) -> list[Habit]:
    """Hardest habit first on a high-pool day, easiest first otherwise."""
    high = band_for(level, settings) is PoolBand.HIGH
    return sorted(habits, key=lambda h: h.resistance, reverse=high)


def _suggestion(activity: str, intensity: str, priority: int, reason: str) -> dict[str, Any]:
    return {
        "activity": activity,
        "intensity": intensity,
        "boost": recharge_boost(activity, intensity),
        "priority": priority,
        "reason": reason,
    }


def recovery_suggestions(
    level: float,
    hour: int | None = None,
    recent: Iterable[PoolEvent] = (),
    limit: int = 3,
) -> list[dict[str, Any]]:
    """
    Recharge activities worth doing now, given the level and the hour.

    Morning (06-10) suggests sunlight, a pool under 30 suggests cold exposure
    and a short sit, 30-60 suggests a light walk and meditation, and the
    14-16 trough suggests a walk outside. Activities already logged in
    `recent` are not suggested again.

    Returns:
        At most `limit` suggestion dicts, in the order above
    """
    hour = datetime.now().hour if hour is None else hour
    done = {event.label for event in recent}
    done_categories = {event.category for event in recent}
    suggestions = []

    if 6 <= hour < 10 and "outdoors:sunlight" not in done:
        suggestions.append(_suggestion("outdoors", "sunlight", 1, "Morning sunlight sets the rhythm for the day."))

    if level < 30:
        if "cold_exposure" not in done_categories:
            suggestions.append(_suggestion("cold_exposure", "shower", 1, "Cold exposure is the fastest recharge."))
        suggestions.append(_suggestion("meditation", "short", 2, "A few quiet minutes recalibrate sensitivity."))
    elif level < 60:
        suggestions.append(_suggestion("exercise", "light", 2, "Light movement restores without depleting."))
        suggestions.append(_suggestion("meditation", "standard", 3, "Meditation builds a steadier baseline."))

    if 14 <= hour < 16:
        suggestions.append(_suggestion("outdoors", "walk", 2, "A walk outside counters the afternoon dip."))

    return suggestions[:limit]


# ─────────────────────────────────────────────────────────────────────────────
# History
# ─────────────────────────────────────────────────────────────────────────────


def history_entry(state: PoolState) -> PoolHistoryEntry | None:
    """Morning and end level of the state's day; None when the pool was never reset."""
    if state.last_updated_date is None:
        return None
    return PoolHistoryEntry(
        date=state.last_updated_date,
        morning_level=state.morning_level,
        end_level=state.current_level,
    )


def daily_summary(state: PoolState, history: Iterable[PoolHistoryEntry] = ()) -> dict[str, Any]:
    """
    Summary of today's pool movement against recent history.

    Args:
        state: Today's pool state
        history: Earlier daily entries, any order. Days are compared by
            their end level, or the morning level when no end was recorded

    Returns:
        Dict with levels, totals, comparisons and short insights
    """
    total_drain = sum(e.impact for e in state.drain_events)
    total_recovery = sum(e.impact for e in state.recharge_events)
    net_change = state.current_level - state.morning_level

    by_date = {
        entry.date: entry.end_level if entry.end_level is not None else entry.morning_level for entry in history
    }
    vs_yesterday = vs_week_ago = None
    if state.last_updated_date is not None:
        ordinal = state.last_updated_date.toordinal()
        yesterday = by_date.get(date.fromordinal(ordinal - 1))
        week_ago = by_date.get(date.fromordinal(ordinal - 7))
        if yesterday is not None:
            vs_yesterday = state.current_level - yesterday
        if week_ago is not None:
            vs_week_ago = state.current_level - week_ago

    insights = []
    if total_drain < -50:
        insights.append({"type": "warning", "message": "Heavy drain today. Consider setting app limits."})
    if total_recovery > 30:
        insights.append({"type": "positive", "message": "Strong recovery activities today."})
    if vs_week_ago is not None and vs_week_ago > 10:
        insights.append({"type": "positive", "message": "Pool trending up compared to last week."})
    elif vs_week_ago is not None and vs_week_ago < -10:
        insights.append({"type": "neutral", "message": "Pool lower than last week. Check what changed."})

    return {
        "date": state.last_updated_date.isoformat() if state.last_updated_date else None,
        "morning_level": round_half_up(state.morning_level),
        "current_level": round_half_up(state.current_level),
        "net_change": round_half_up(net_change),
        "total_drain": round_half_up(total_drain),
        "total_recovery": round_half_up(total_recovery),
        "vs_yesterday": round_half_up(vs_yesterday) if vs_yesterday is not None else None,
        "vs_week_ago": round_half_up(vs_week_ago) if vs_week_ago is not None else None,
        "insights": insights,
    }
