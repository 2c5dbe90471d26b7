"""
Tool: User Document
Purpose: Typed shape of the persisted per-user document and its mutations

The storage layer reads and writes one document per user, whole. The
functions here never write anything; they take a document and return a new
one, and the caller persists it.

Usage:
    from ascent.behavior.document import UserDocument, next_insight, start_day, toggle_completion

    doc = UserDocument.from_dict(store.read(user_id))
    doc = start_day(doc, last_sleep_hours=7.5, reload=lambda: UserDocument.from_dict(store.read(user_id)))
    doc = toggle_completion(doc, "meditate")
    doc, insight = next_insight(doc)
    store.write(user_id, doc.to_dict())
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Any

from ascent.behavior import pool as pool_engine
from ascent.behavior import proactive, streaks
from ascent.behavior.config_models import BehaviorConfig, resolve
from ascent.behavior.models import (
    CompletionEvent,
    Habit,
    PoolHistoryEntry,
    PoolState,
    coerce_events,
    events_by_day,
)
from ascent.logging_config import get_logger


logger = get_logger(__name__)


@dataclass
class UserDocument:
    habits: list[Habit] = field(default_factory=list)
    completions: list[CompletionEvent] = field(default_factory=list)
    pool: PoolState = field(default_factory=PoolState)
    pool_history: list[PoolHistoryEntry] = field(default_factory=list)
    unlocked_milestones: list[int] = field(default_factory=list)
    total_completions: int = 0
    shown_insights: dict[str, datetime] = field(default_factory=dict)
    two_minute_uses: int = 0

    def habit(self, habit_id: str) -> Habit | None:
        return next((h for h in self.habits if h.id == habit_id), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "habits": [h.to_dict() for h in self.habits],
            "completions": [c.to_dict() for c in self.completions],
            "pool": self.pool.to_dict(),
            "pool_history": [e.to_dict() for e in self.pool_history],
            "unlocked_milestones": list(self.unlocked_milestones),
            "total_completions": self.total_completions,
            "shown_insights": {k: v.isoformat() for k, v in self.shown_insights.items()},
            "two_minute_uses": self.two_minute_uses,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> UserDocument:
        """Load a stored document; malformed entries are skipped, bad counters fall back."""
        data = data or {}

        habits = []
        for raw in data.get("habits", []):
            if not isinstance(raw, dict) or not raw.get("id"):
                logger.warning("skipped_malformed_habit", entry=repr(raw)[:120])
                continue
            habits.append(Habit.from_dict(raw))

        history = []
        for raw in data.get("pool_history", data.get("poolHistory", [])):
            entry = PoolHistoryEntry.from_dict(raw) if isinstance(raw, dict) else None
            if entry is None:
                logger.warning("skipped_malformed_pool_entry", entry=repr(raw)[:120])
                continue
            history.append(entry)

        milestones = []
        for raw in data.get("unlocked_milestones", data.get("unlockedMilestones", [])) or []:
            day = _as_count(raw)
            if day is None:
                logger.warning("skipped_malformed_milestone", entry=repr(raw)[:40])
                continue
            milestones.append(day)

        shown = {}
        stored_shown = data.get("shown_insights", data.get("lastShownInsights"))
        for insight_id, raw in (stored_shown if isinstance(stored_shown, dict) else {}).items():
            at = proactive.shown_at(raw)
            if at is None:
                logger.warning("skipped_malformed_shown_insight", insight=insight_id, entry=repr(raw)[:40])
                continue
            shown[str(insight_id)] = at

        completions = coerce_events(data.get("completions", []))
        return cls(
            habits=habits,
            completions=completions,
            pool=PoolState.from_dict(data.get("pool")),
            pool_history=history,
            unlocked_milestones=milestones,
            total_completions=_stored_count(
                data, "total_completions", default=sum(1 for c in completions if c.completed)
            ),
            shown_insights=shown,
            two_minute_uses=_stored_count(data, "two_minute_uses", default=0),
        )


def _as_count(value: Any) -> int | None:
    """A non-negative whole number, or None."""
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not number.is_integer() or number < 0:
        return None
    return int(number)


def _stored_count(data: dict[str, Any], key: str, default: int) -> int:
    if key not in data:
        return default
    count = _as_count(data[key])
    if count is None:
        logger.warning("invalid_stored_count", field=key, value=repr(data[key])[:40], fallback=default)
        return default
    return count


# ─────────────────────────────────────────────────────────────────────────────
# Mutations
# ─────────────────────────────────────────────────────────────────────────────


def toggle_completion(doc: UserDocument, habit_id: str, at: datetime | None = None) -> UserDocument:
    """Mark a habit done for the day of `at`, or undo it if it already is."""
    if doc.habit(habit_id) is None:
        logger.warning("toggle_unknown_habit", habit_id=habit_id)
        return doc

    at = at or datetime.now()
    day = at.date()
    done_today = [c for c in doc.completions if c.habit_id == habit_id and c.day == day and c.completed]

    if done_today:
        # Undo is removal; the log keeps no tombstones.
        kept = [c for c in doc.completions if c not in done_today]
        logger.debug("completion_undone", habit_id=habit_id, date=day.isoformat())
        return replace(doc, completions=kept, total_completions=max(0, doc.total_completions - 1))

    event = CompletionEvent(habit_id=habit_id, timestamp=at, completed=True)
    logger.debug("completion_logged", habit_id=habit_id, date=day.isoformat())
    return replace(doc, completions=[*doc.completions, event], total_completions=doc.total_completions + 1)


def delete_habit(doc: UserDocument, habit_id: str) -> UserDocument:
    """Remove a habit and every completion that belongs to it."""
    habits = [h for h in doc.habits if h.id != habit_id]
    completions = [c for c in doc.completions if c.habit_id != habit_id]
    logger.info(
        "habit_deleted",
        habit_id=habit_id,
        removed_completions=len(doc.completions) - len(completions),
    )
    return replace(doc, habits=habits, completions=completions)


def _prior_day_complete(doc: UserDocument, today: date) -> bool:
    if not doc.habits:
        return False
    yesterday = today - timedelta(days=1)
    predicate = streaks.aggregate_hit([h.id for h in doc.habits], 1.0)
    return predicate(yesterday, events_by_day(doc.completions).get(yesterday, ()))


def start_day(
    doc: UserDocument,
    *,
    last_sleep_hours: float | None = None,
    today: date | None = None,
    reload: Callable[[], UserDocument | None] | None = None,
    settings: BehaviorConfig | None = None,
) -> UserDocument:
    """
    Apply the morning pool reset once for today.

    Yesterday's morning and end levels are appended to the pool history.
    When `reload` is given, the freshly stored document is checked before
    anything is written: if another caller already started the day, that
    document is returned untouched.
    """
    cfg = resolve(settings)
    today = today or datetime.now().date()

    if doc.pool.last_updated_date == today:
        return doc

    if reload is not None:
        fresh = reload()
        if fresh is not None:
            if fresh.pool.last_updated_date == today:
                logger.info("day_already_started", date=today.isoformat())
                return fresh
            doc = fresh

    streak = streaks.compute(streaks.ALL_HABITS, doc.completions, habits=doc.habits, today=today, settings=cfg)
    pool = pool_engine.morning_reset(
        doc.pool,
        streak_days=streak.current_run,
        prior_day_complete=_prior_day_complete(doc, today),
        last_sleep_hours=last_sleep_hours,
        today=today,
        settings=cfg,
    )

    history = list(doc.pool_history)
    previous = pool_engine.history_entry(doc.pool)
    if previous is not None and all(e.date != previous.date for e in history):
        history.append(previous)

    logger.info("day_started", date=today.isoformat(), level=pool.current_level, streak=streak.current_run)
    return replace(doc, pool=pool, pool_history=history)


# ─────────────────────────────────────────────────────────────────────────────
# Coach context
# ─────────────────────────────────────────────────────────────────────────────


def coach_context(
    doc: UserDocument,
    today: date | None = None,
    settings: BehaviorConfig | None = None,
) -> dict[str, Any]:
    """Plain-data snapshot handed to the coaching text generator."""
    cfg = resolve(settings)
    today = today or datetime.now().date()
    streak = streaks.compute(streaks.ALL_HABITS, doc.completions, habits=doc.habits, today=today, settings=cfg)
    status = pool_engine.status_message(doc.pool.current_level, cfg)
    done_today = {c.habit_id for c in doc.completions if c.completed and c.day == today}

    return {
        "pool_level": doc.pool.to_dict()["current_level"],
        "pool_status": status["level"],
        "consistency_score": streak.consistency_score,
        "current_streak": streak.current_run,
        "streak_status": streak.status.value,
        "habits": [h.name for h in doc.habits],
        "completed_today": [h.name for h in doc.habits if h.id in done_today],
    }


# ─────────────────────────────────────────────────────────────────────────────
# Proactive insights
# ─────────────────────────────────────────────────────────────────────────────


def insight_context(
    doc: UserDocument,
    now: datetime | None = None,
    settings: BehaviorConfig | None = None,
) -> proactive.InsightContext:
    cfg = resolve(settings)
    now = now or datetime.now()
    today = now.date()
    streak = streaks.compute(streaks.ALL_HABITS, doc.completions, habits=doc.habits, today=today, settings=cfg)
    return proactive.InsightContext(
        habits=list(doc.habits),
        completions=list(doc.completions),
        streak_days=streak.current_run,
        now=now,
        pool_history=list(doc.pool_history),
        morning_level=doc.pool.morning_level if doc.pool.last_updated_date == today else None,
        two_minute_uses=doc.two_minute_uses,
        seen_morning_optimizer="morning_pool_optimizer" in doc.shown_insights,
    )


def next_insight(
    doc: UserDocument,
    now: datetime | None = None,
    settings: BehaviorConfig | None = None,
) -> tuple[UserDocument, proactive.ProactiveInsight | None]:
    """
    Pick the proactive insight to show now and stamp it as shown.

    Returns the updated document (unchanged when nothing applies) and the
    insight or None.
    """
    now = now or datetime.now()
    insight = proactive.check_for_insights(insight_context(doc, now, settings), doc.shown_insights, settings=settings)
    if insight is None:
        return doc, None

    logger.info("proactive_insight_shown", insight=insight.id, priority=insight.priority)
    return replace(doc, shown_insights=proactive.mark_insight_shown(insight.id, doc.shown_insights, now)), insight
