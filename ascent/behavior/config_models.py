from __future__ import annotations

from functools import lru_cache
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from ascent import ARGS_DIR
from ascent.behavior import REWARD_WEIGHTS
from ascent.logging_config import get_logger

logger = get_logger(__name__)


# =============================================================================
# Streaks (behavior.yaml -> streaks)
# =============================================================================

class StreakSettings(BaseModel):
    model_config = ConfigDict(extra="allow")
    window_days: int = Field(default=30, ge=1)
    solid_threshold: int = Field(default=80, ge=0, le=100)
    building_threshold: int = Field(default=60, ge=0, le=100)
    min_history_days: int = Field(default=7, ge=1)
    aggregate_hit_threshold: float = Field(default=1.0, gt=0.0, le=1.0)
    ratchet_min_days: int = Field(default=14, ge=0)
    ratchet_max_failures: int = Field(default=3, ge=1)
    ratchet_up_consistency: int = Field(default=85, ge=0, le=100)
    ratchet_down_consistency: int = Field(default=50, ge=0, le=100)

    @model_validator(mode="after")
    def _ordered_thresholds(self) -> StreakSettings:
        if self.building_threshold > self.solid_threshold:
            raise ValueError("building_threshold must not exceed solid_threshold")
        return self


# =============================================================================
# Pool (behavior.yaml -> pool)
# =============================================================================

class SleepAdjustment(BaseModel):
    model_config = ConfigDict(extra="allow")
    min_hours: float = Field(ge=0)
    delta: float


class PoolSettings(BaseModel):
    model_config = ConfigDict(extra="allow")
    base_level: float = Field(default=65, ge=0, le=100)
    prior_day_bonus: float = Field(default=10)
    streak_bonus_days: list[int] = Field(default_factory=lambda: [7, 21, 60])
    streak_bonus_per_tier: float = Field(default=5)
    # Checked top-down; the first tier whose min_hours is met applies.
    sleep_adjustments: list[SleepAdjustment] = Field(
        default_factory=lambda: [
            SleepAdjustment(min_hours=8, delta=10),
            SleepAdjustment(min_hours=7, delta=5),
            SleepAdjustment(min_hours=6, delta=0),
            SleepAdjustment(min_hours=0, delta=-10),
        ]
    )
    high_threshold: float = Field(default=70, ge=0, le=100)
    moderate_threshold: float = Field(default=40, ge=0, le=100)


# =============================================================================
# Analytics (behavior.yaml -> analytics)
# =============================================================================

class AnalyticsSettings(BaseModel):
    model_config = ConfigDict(extra="allow")
    min_events_time: int = Field(default=14, ge=1)
    min_bin_samples: int = Field(default=3, ge=1)
    min_events_day: int = Field(default=21, ge=1)
    min_events_habit: int = Field(default=7, ge=1)
    min_pool_history: int = Field(default=14, ge=1)
    min_pool_points: int = Field(default=10, ge=2)
    high_pool_level: float = Field(default=70, ge=0, le=100)
    low_pool_level: float = Field(default=50, ge=0, le=100)
    pool_matters_threshold: float = Field(default=15)
    weekend_gap_points: float = Field(default=10, ge=0)
    trend_band_points: float = Field(default=5, ge=0)
    max_insights: int = Field(default=4, ge=0)
    insight_cooldown_days: float = Field(default=3.0, ge=0)
    dashboard_cooldown_days: float = Field(default=1.0, ge=0)
    dashboard_limit: int = Field(default=3, ge=0)


# =============================================================================
# Rewards (behavior.yaml -> rewards)
# =============================================================================

class RewardSettings(BaseModel):
    model_config = ConfigDict(extra="allow")
    weights: dict[str, float] = Field(default_factory=lambda: dict(REWARD_WEIGHTS))
    recent_window: int = Field(default=3, ge=0)
    dampening_factor: float = Field(default=0.5, gt=0.0, le=1.0)
    always_show_first: int = Field(default=3, ge=0)
    show_probability: float = Field(default=0.6, ge=0.0, le=1.0)
    every_nth_completion: int = Field(default=10, ge=1)
    milestone_days: list[int] = Field(default_factory=lambda: [3, 7, 14, 21, 30, 45, 60, 90])


class BehaviorConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    streaks: StreakSettings = Field(default_factory=StreakSettings)
    pool: PoolSettings = Field(default_factory=PoolSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    rewards: RewardSettings = Field(default_factory=RewardSettings)


# =============================================================================
# load_and_validate
# =============================================================================

_CONFIG_MAP: dict[str, type[BaseModel]] = {
    "behavior": BehaviorConfig,
}


def load_and_validate(config_name: str, model_class: Optional[type[BaseModel]] = None) -> BaseModel:
    if model_class is None:
        model_class = _CONFIG_MAP.get(config_name)
        if model_class is None:
            raise ValueError(f"Unknown config: {config_name}. Available: {list(_CONFIG_MAP.keys())}")

    yaml_path = ARGS_DIR / f"{config_name}.yaml"

    try:
        if yaml_path.exists():
            with open(yaml_path) as f:
                raw = yaml.safe_load(f) or {}
        else:
            raw = {}

        return model_class.model_validate(raw)
    except (OSError, yaml.YAMLError, ValueError) as e:
        logger.warning("config_validation_failed", config=config_name, error=str(e))
        return model_class()


@lru_cache(maxsize=1)
def load_settings() -> BehaviorConfig:
    """
    Validated behavior settings, falling back to defaults.

    Read once per process; call load_settings.cache_clear() after editing
    the YAML.
    """
    return load_and_validate("behavior")  # type: ignore[return-value]


def resolve(settings: Optional[BehaviorConfig]) -> BehaviorConfig:
    return settings if settings is not None else load_settings()
