"""
Tool: Behavior Models
Purpose: Data structures shared by the streak, pool, analytics and reward engines

The completion log is the single source of truth. Everything else here is
either a small piece of user state (Habit, PoolState) or a derived, never
persisted result (StreakResult, the analytics blocks).

Usage:
    from ascent.behavior.models import (
        CompletionEvent,
        Habit,
        PoolState,
        StreakResult,
        coerce_events,
    )
"""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from ascent.logging_config import get_logger


logger = get_logger(__name__)


class StreakStatus(str, Enum):
    """Consistency band for a rolling window."""

    SOLID = "solid"
    BUILDING = "building"
    REBUILDING = "rebuilding"


class PoolBand(str, Enum):
    """Drive pool status band."""

    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"


class PoolEventKind(str, Enum):
    DRAIN = "drain"
    RECHARGE = "recharge"


class InsightCategory(str, Enum):
    """Category tag of a synthesized insight, in display priority order."""

    TIME = "time"
    DAY = "day"
    POOL = "pool"
    SUCCESS = "success"
    ATTENTION = "attention"


# ─────────────────────────────────────────────────────────────────────────────
# Numeric helpers
# ─────────────────────────────────────────────────────────────────────────────


def round_half_up(value: float) -> int:
    """Round to the nearest int with .5 going up (not banker's rounding)."""
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def safe_rate(part: float, whole: float) -> float:
    """Percentage of part over whole; an empty group yields 0."""
    if whole <= 0:
        return 0.0
    return 100 * part / whole


def safe_mean(values: Iterable[float]) -> float:
    values = list(values)
    if not values:
        return 0.0
    return sum(values) / len(values)


# ─────────────────────────────────────────────────────────────────────────────
# Timestamp parsing
# ─────────────────────────────────────────────────────────────────────────────


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse a timestamp into a naive local datetime.

    Aware datetimes are converted to the local timezone first, so the local
    calendar date decides the day bucket. Returns None for anything unusable.
    """
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, date):
        ts = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            ts = datetime.fromisoformat(raw)
        except ValueError:
            return None
    else:
        return None

    if ts.tzinfo is not None:
        ts = ts.astimezone().replace(tzinfo=None)
    return ts


def parse_date(value: Any) -> date | None:
    """Parse a calendar date from a date, datetime or ISO string."""
    if isinstance(value, datetime):
        return parse_timestamp(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        raw = value.strip()
        if len(raw) == 10:
            try:
                return date.fromisoformat(raw)
            except ValueError:
                return None
        ts = parse_timestamp(raw)
        return ts.date() if ts else None
    return None


_TRUE_STRINGS = {"true", "1", "yes", "y"}
_FALSE_STRINGS = {"false", "0", "no", "n", ""}


def parse_completed(value: Any) -> bool | None:
    """
    Parse a stored completed flag.

    Real booleans pass through, 0/1 and the usual string spellings are
    accepted. Returns None for anything else.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return None


def parse_level(value: Any) -> float | None:
    """A finite pool level as float, or None."""
    if isinstance(value, bool):
        return None
    try:
        level = float(value)
    except (TypeError, ValueError):
        return None
    return level if math.isfinite(level) else None


# ─────────────────────────────────────────────────────────────────────────────
# Event log
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CompletionEvent:
    """A habit marked done (or explicitly not done) at a point in time."""

    habit_id: str
    timestamp: datetime
    completed: bool = True

    @property
    def day(self) -> date:
        return self.timestamp.date()

    @property
    def hour(self) -> int:
        return self.timestamp.hour

    def to_dict(self) -> dict[str, Any]:
        return {
            "habit_id": self.habit_id,
            "timestamp": self.timestamp.isoformat(),
            "completed": self.completed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CompletionEvent | None:
        """Build from a stored dict; None when habit id or timestamp is unusable."""
        habit_id = data.get("habit_id", data.get("habitId"))
        if habit_id is None or habit_id == "":
            return None

        ts = parse_timestamp(data.get("timestamp", data.get("date")))
        if ts is None:
            return None

        completed = parse_completed(data.get("completed", True))
        if completed is None:
            return None

        return cls(habit_id=str(habit_id), timestamp=ts, completed=completed)


def coerce_events(raw: Iterable[Any] | None) -> list[CompletionEvent]:
    """
    Normalize a log of CompletionEvents and/or dicts.

    Malformed entries are skipped with a warning; they never abort the caller.
    """
    events: list[CompletionEvent] = []
    skipped = 0

    for index, item in enumerate(raw or ()):
        if isinstance(item, CompletionEvent):
            ts = parse_timestamp(item.timestamp)
            event = CompletionEvent(item.habit_id, ts, item.completed) if ts and item.habit_id else None
        elif isinstance(item, dict):
            event = CompletionEvent.from_dict(item)
        else:
            event = None

        if event is None:
            skipped += 1
            logger.warning("skipped_malformed_completion", index=index, entry=repr(item)[:120])
            continue
        events.append(event)

    if skipped:
        logger.debug("completion_log_coerced", kept=len(events), skipped=skipped)
    return events


def events_by_day(events: Iterable[CompletionEvent]) -> dict[date, list[CompletionEvent]]:
    grouped: dict[date, list[CompletionEvent]] = defaultdict(list)
    for event in events:
        grouped[event.day].append(event)
    return grouped


# ─────────────────────────────────────────────────────────────────────────────
# User state
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class Habit:
    """
    A habit the user tracks.

    target_amount is what the ratchet adjusts; original_target is the floor a
    downward ratchet never goes below.
    """

    id: str
    name: str
    target_amount: float = 1
    unit: str = ""
    resistance: int = 5
    original_target: float | None = None
    last_ratchet_date: date | None = None
    failed_ratchet_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "target_amount": self.target_amount,
            "unit": self.unit,
            "resistance": self.resistance,
            "original_target": self.original_target,
            "last_ratchet_date": self.last_ratchet_date.isoformat() if self.last_ratchet_date else None,
            "failed_ratchet_count": self.failed_ratchet_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Habit:
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            target_amount=data.get("target_amount", data.get("targetAmount", data.get("amount", 1))),
            unit=data.get("unit", ""),
            resistance=data.get("resistance", 5),
            original_target=data.get("original_target", data.get("originalTarget")),
            last_ratchet_date=parse_date(data.get("last_ratchet_date", data.get("lastRatchetDate"))),
            failed_ratchet_count=data.get("failed_ratchet_count", data.get("failedRatchetCount", 0)),
        )


@dataclass(frozen=True)
class PoolEvent:
    """A logged drain or recharge; impact is signed."""

    kind: PoolEventKind
    label: str
    impact: float
    category: str | None = None
    minutes: float | None = None
    timestamp: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "label": self.label,
            "category": self.category,
            "minutes": self.minutes,
            "impact": round_half_up(self.impact),
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PoolEvent | None:
        """Build from a stored dict; None for an unknown kind or a non-numeric impact."""
        try:
            kind = PoolEventKind(data.get("kind", "drain"))
        except ValueError:
            return None
        impact = parse_level(data.get("impact", 0))
        if impact is None:
            return None
        return cls(
            kind=kind,
            label=data.get("label", ""),
            impact=impact,
            category=data.get("category"),
            minutes=data.get("minutes"),
            timestamp=parse_timestamp(data.get("timestamp")),
        )


def _coerce_pool_events(raw: Any, field_name: str) -> tuple[PoolEvent, ...]:
    events = []
    for item in raw if isinstance(raw, list) else ():
        event = PoolEvent.from_dict(item) if isinstance(item, dict) else None
        if event is None:
            logger.warning("skipped_malformed_pool_event", field=field_name, entry=repr(item)[:120])
            continue
        events.append(event)
    return tuple(events)


def _stored_level(data: dict[str, Any], *keys: str, default: float = 65.0) -> float:
    raw = next((data[k] for k in keys if k in data), default)
    level = parse_level(raw)
    if level is None:
        logger.warning("invalid_pool_level", field=keys[0], value=repr(raw)[:40], fallback=default)
        return default
    return clamp(level)


@dataclass(frozen=True)
class PoolState:
    """
    Drive pool for one user.

    Passed into and returned from every pool function; there is no cached
    module-level level anywhere.
    """

    current_level: float = 65.0
    morning_level: float = 65.0
    last_updated_date: date | None = None
    drain_events: tuple[PoolEvent, ...] = ()
    recharge_events: tuple[PoolEvent, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_level": round_half_up(self.current_level),
            "morning_level": round_half_up(self.morning_level),
            "last_updated_date": self.last_updated_date.isoformat() if self.last_updated_date else None,
            "drain_events": [e.to_dict() for e in self.drain_events],
            "recharge_events": [e.to_dict() for e in self.recharge_events],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> PoolState:
        if not data:
            return cls()
        return cls(
            current_level=_stored_level(data, "current_level", "currentLevel"),
            morning_level=_stored_level(data, "morning_level", "morningLevel"),
            last_updated_date=parse_date(data.get("last_updated_date", data.get("lastUpdated"))),
            drain_events=_coerce_pool_events(data.get("drain_events", []), "drain_events"),
            recharge_events=_coerce_pool_events(data.get("recharge_events", []), "recharge_events"),
        )


_MORNING_KEYS = ("morning_level", "morningLevel", "level", "morningPool")
_END_KEYS = ("end_level", "endLevel")


@dataclass(frozen=True)
class PoolHistoryEntry:
    """
    Pool levels recorded for one calendar day.

    morning_level is the level right after the reset, before any of the
    day's activity; end_level is where the day finished.
    """

    date: date
    morning_level: float
    end_level: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "morning_level": round_half_up(self.morning_level),
            "end_level": round_half_up(self.end_level) if self.end_level is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PoolHistoryEntry | None:
        """Build from a stored dict; None without a date and a usable morning level."""
        day = parse_date(data.get("date"))
        morning = parse_level(next((data[k] for k in _MORNING_KEYS if data.get(k) is not None), None))
        if day is None or morning is None:
            return None
        end = parse_level(next((data[k] for k in _END_KEYS if data.get(k) is not None), None))
        return cls(date=day, morning_level=morning, end_level=end)


# ─────────────────────────────────────────────────────────────────────────────
# Derived results
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class StreakResult:
    """Resilient streak over a rolling window. Never persisted."""

    current_run: int = 0
    best_run: int = 0
    consistency_score: int = 0
    status: StreakStatus = StreakStatus.REBUILDING
    color_token: str = ""
    message: str = ""
    has_enough_data: bool = False
    completed_days: int = 0
    window_days: int = 30
    daily_hits: tuple[bool, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_run": self.current_run,
            "best_run": self.best_run,
            "consistency_score": self.consistency_score,
            "status": self.status.value,
            "color_token": self.color_token,
            "message": self.message,
            "has_enough_data": self.has_enough_data,
            "completed_days": self.completed_days,
            "window_days": self.window_days,
        }


@dataclass(frozen=True)
class Insight:
    """A short statement derived from a statistical pattern."""

    category: InsightCategory
    icon: str
    title: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "icon": self.icon,
            "title": self.title,
            "message": self.message,
        }
