"""Tests for ascent/behavior/rewards.py

Rewards are drawn at random, so these tests use seeded random.Random
instances and check distributions and invariants rather than exact picks.
"""

import random
from collections import Counter
from datetime import datetime

import pytest

from ascent.behavior import rewards
from ascent.behavior.config_models import BehaviorConfig, RewardSettings
from ascent.behavior.rewards import RewardCategory


def only(category: str, **overrides) -> BehaviorConfig:
    """Settings under which only one category can be drawn."""
    return BehaviorConfig(rewards=RewardSettings(weights={category: 1}, **overrides))


# ─────────────────────────────────────────────────────────────────────────────
# Weight Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestWeights:
    """Tests for the weight table and dampening."""

    def test_base_weights(self, settings):
        weights = rewards.base_weights(settings)

        assert weights == {
            RewardCategory.ACKNOWLEDGMENT: 55,
            RewardCategory.IDENTITY: 20,
            RewardCategory.PATTERN: 15,
            RewardCategory.SCIENCE: 7,
            RewardCategory.DELIGHT: 3,
        }

    def test_dampen_halves_recent(self, settings):
        weights = rewards.dampen_weights(rewards.base_weights(settings), ["identity", RewardCategory.SCIENCE])

        assert weights[RewardCategory.IDENTITY] == 10
        assert weights[RewardCategory.SCIENCE] == 3.5
        assert weights[RewardCategory.ACKNOWLEDGMENT] == 55

    def test_dampen_once_per_category(self, settings):
        """Repeats within the window do not compound."""
        weights = rewards.dampen_weights(rewards.base_weights(settings), ["acknowledgment"] * 3)
        assert weights[RewardCategory.ACKNOWLEDGMENT] == 27.5

    def test_dampen_only_last_three(self, settings):
        recent = ["identity", "pattern", "science", "delight"]
        weights = rewards.dampen_weights(rewards.base_weights(settings), recent)

        assert weights[RewardCategory.SCIENCE] == 3.5
        assert weights[RewardCategory.DELIGHT] == 3

    def test_dampen_is_pure(self, settings):
        base = rewards.base_weights(settings)
        rewards.dampen_weights(base, ["identity"])
        assert base[RewardCategory.IDENTITY] == 20

    def test_dampen_ignores_unknown(self, settings):
        base = rewards.base_weights(settings)
        assert rewards.dampen_weights(base, ["confetti"]) == base


# ─────────────────────────────────────────────────────────────────────────────
# Selection Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestSelection:
    """Tests for category draws and message building."""

    def test_distribution_matches_weights(self, settings):
        """1000 draws with no history land near 55/20/15/7/3."""
        rng = random.Random(2024)
        counts = Counter(rewards.select_category(rng=rng, settings=settings) for _ in range(1000))

        expected = {"acknowledgment": 0.55, "identity": 0.20, "pattern": 0.15, "science": 0.07, "delight": 0.03}
        for name, share in expected.items():
            assert counts[RewardCategory(name)] / 1000 == pytest.approx(share, abs=0.05)

    def test_dampening_shifts_distribution(self, settings):
        rng = random.Random(11)
        damped = Counter(
            rewards.select_category(["acknowledgment"], rng=rng, settings=settings) for _ in range(2000)
        )

        # 27.5 / 72.5 is about 38%
        assert damped[RewardCategory.ACKNOWLEDGMENT] / 2000 == pytest.approx(0.38, abs=0.05)

    def test_seeded_draws_repeat(self, settings):
        rng_a, rng_b = random.Random(9), random.Random(9)
        first = [rewards.select_category(rng=rng_a, settings=settings) for _ in range(20)]
        second = [rewards.select_category(rng=rng_b, settings=settings) for _ in range(20)]
        assert first == second

    def test_all_zero_weights_fall_back(self):
        cfg = BehaviorConfig(rewards=RewardSettings(weights={}))
        assert rewards.select_category(settings=cfg) is RewardCategory.ACKNOWLEDGMENT

    def test_pattern_templates_filled(self):
        rng = random.Random(1)
        for _ in range(30):
            reward = rewards.completion_reward(
                streak=12, habit_name="Read", now=datetime(2025, 1, 15, 9), rng=rng, settings=only("pattern")
            )
            assert reward.category is RewardCategory.PATTERN
            assert "{" not in reward.message
            assert reward.message in {
                t.format(streak=12, habit="Read", time="noon") for t in rewards.REWARD_MESSAGES[RewardCategory.PATTERN]
            }

    def test_message_from_category_pool(self):
        reward = rewards.completion_reward(rng=random.Random(3), settings=only("science"))

        assert reward.message in rewards.REWARD_MESSAGES[RewardCategory.SCIENCE]
        assert reward.to_dict()["category"] == "science"

    @pytest.mark.parametrize("hour,bucket", [(0, "noon"), (11, "noon"), (12, "5pm"), (16, "5pm"), (17, "evening"), (23, "evening")])
    def test_time_bucket(self, hour, bucket):
        assert rewards.time_bucket(datetime(2025, 1, 15, hour)) == bucket


# ─────────────────────────────────────────────────────────────────────────────
# Show / Skip Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestShouldShow:
    """Tests for when a reward is shown at all."""

    @pytest.mark.parametrize("today_count", [0, 1, 2, 3])
    def test_first_three_always(self, today_count):
        assert rewards.should_show_reward(today_count, 7, settings=only("identity", show_probability=0.0)) is True

    def test_every_tenth_lifetime(self):
        assert rewards.should_show_reward(8, 40, settings=only("identity", show_probability=0.0)) is True

    def test_otherwise_probability(self):
        assert rewards.should_show_reward(8, 41, settings=only("identity", show_probability=0.0)) is False
        assert rewards.should_show_reward(8, 41, settings=only("identity", show_probability=1.0)) is True

    def test_probability_roughly_sixty_percent(self, settings):
        rng = random.Random(77)
        shown = sum(rewards.should_show_reward(5, 41, rng=rng, settings=settings) for _ in range(2000))
        assert shown / 2000 == pytest.approx(0.6, abs=0.05)

    def test_zero_total_not_a_tenth(self):
        assert rewards.should_show_reward(8, 0, settings=only("identity", show_probability=0.0)) is False


# ─────────────────────────────────────────────────────────────────────────────
# Milestone Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestMilestones:
    """Tests for the milestone ladder."""

    def test_next_unlocked(self, settings):
        milestone = rewards.check_milestone(14, [3, 7], settings)

        assert milestone.day == 14
        assert milestone.title == "Camp I"

    def test_already_unlocked(self, settings):
        assert rewards.check_milestone(14, [3, 7, 14], settings) is None

    def test_lowest_missing_first(self, settings):
        """A long streak with nothing unlocked starts at the bottom."""
        assert rewards.check_milestone(50, [], settings).day == 3

    def test_below_first(self, settings):
        assert rewards.check_milestone(2, [], settings) is None

    def test_all_unlocked(self, settings):
        assert rewards.check_milestone(120, [3, 7, 14, 21, 30, 45, 60, 90], settings) is None

    def test_configured_days_only(self):
        cfg = BehaviorConfig(rewards=RewardSettings(milestone_days=[7, 30]))
        assert rewards.check_milestone(10, [], cfg).day == 7

    def test_ladder_is_ascending(self):
        days = [m.day for m in rewards.MILESTONES]
        assert days == sorted(days) == [3, 7, 14, 21, 30, 45, 60, 90]

    def test_to_dict(self, settings):
        data = rewards.check_milestone(3, [], settings).to_dict()
        assert data == {"day": 3, "title": "First Summit", "message": rewards.MILESTONES[0].message, "icon": "campsite"}
