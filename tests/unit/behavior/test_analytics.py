"""Tests for ascent/behavior/analytics.py

Each analysis must hold back when it has too little data, and otherwise
report rates that follow directly from the log.

Key behaviors:
- Sample-size gates per block (14 / 21 / 7 events, 14 history entries)
- Per-habit windows trail back from today
- Correlation drops days with no completion entries
- At most four insights, in fixed category order
"""

import random
from datetime import timedelta

import pytest

from ascent.behavior import DAY_PARTS, analytics
from ascent.behavior.analytics import DayPatterns, HabitPerformance, NamedRate, PoolCorrelation, TimePatterns
from ascent.behavior.models import Habit, InsightCategory, PoolHistoryEntry


def weekday_date(today, weekday, weeks_back=0):
    """Most recent date on or before today falling on `weekday` (Mon=0)."""
    return today - timedelta(days=(today.weekday() - weekday) % 7 + 7 * weeks_back)


# ─────────────────────────────────────────────────────────────────────────────
# Time of Day Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestTimePatterns:
    """Tests for hourly and day-part rates."""

    @pytest.fixture
    def time_log(self, today, event_at):
        log = []
        for i in range(5):
            log.append(event_at("read", today - timedelta(days=i), hour=8))
            log.append(event_at("read", today - timedelta(days=i), hour=20, completed=i < 2))
        for i in range(4):
            log.append(event_at("read", today - timedelta(days=i), hour=14, completed=False))
        # Two late-night events: too few for their hour to count.
        log.append(event_at("read", today, hour=23))
        log.append(event_at("read", today - timedelta(days=1), hour=23))
        return log

    def test_not_enough_data(self, settings, time_log):
        result = analytics.analyze_time_patterns(time_log[:13], settings)

        assert result.has_enough_data is False
        assert result.to_dict() == {"has_enough_data": False}

    def test_part_rates(self, settings, time_log):
        result = analytics.analyze_time_patterns(time_log, settings)

        assert result.has_enough_data is True
        assert result.part_rates == {"morning": 100.0, "afternoon": 0.0, "evening": 40.0, "night": 0.0}

    def test_best_and_worst_part(self, settings, time_log):
        """Worst is picked among parts with a rate above zero."""
        result = analytics.analyze_time_patterns(time_log, settings)

        assert result.best_part.name == "morning"
        assert result.worst_part.name == "evening"
        assert result.worst_part.rate == 40.0

    def test_small_bins_ignored(self, settings, time_log):
        result = analytics.analyze_time_patterns(time_log, settings)

        assert {h.hour for h in result.hourly_rates} == {8, 14, 20}

    def test_peak_hour(self, settings, time_log):
        result = analytics.analyze_time_patterns(time_log, settings)

        assert result.peak_hour == 8
        assert result.to_dict()["peak_hour_rate"] == 100

    def test_night_wraps_past_midnight(self, today, settings, event_at):
        """Hours after midnight count toward night, not toward any morning part."""
        log = [event_at("read", today - timedelta(days=i), hour=8) for i in range(10)]
        for i in range(3):
            log.append(event_at("read", today - timedelta(days=i), hour=1))
            log.append(event_at("read", today - timedelta(days=i), hour=3, completed=i < 2))
        result = analytics.analyze_time_patterns(log, settings)

        assert {h.hour for h in result.hourly_rates} == {1, 3, 8}
        assert result.part_rates["night"] == pytest.approx(250 / 3)
        assert result.part_rates["morning"] == 100.0
        assert result.worst_part.name == "night"

    @pytest.mark.parametrize(
        "hour,part",
        [(22, "night"), (23, "night"), (0, "night"), (4, "night"), (5, "morning"), (11, "morning"), (12, "afternoon"),
         (17, "evening"), (21, "evening")],
    )
    def test_day_part_bounds(self, hour, part):
        assert [name for name, bounds in DAY_PARTS.items() if analytics.in_day_part(hour, bounds)] == [part]


# ─────────────────────────────────────────────────────────────────────────────
# Day of Week Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestDayPatterns:
    """Tests for weekday vs weekend rates."""

    def build(self, today, event_at, weekday_done, weekend_done, per_day=20):
        log = []
        for weekday in range(7):
            done = weekend_done if weekday >= 5 else weekday_done
            for i in range(per_day):
                day = weekday_date(today, weekday, weeks_back=i % 4)
                log.append(event_at("read", day, hour=8 + i % 10, completed=i < done))
        return log

    def test_weekend_warrior(self, today, settings, event_at):
        """Weekend 85% against weekday 60%."""
        result = analytics.analyze_day_patterns(self.build(today, event_at, 12, 17), settings)

        assert result.weekend_rate == pytest.approx(85)
        assert result.weekday_rate == pytest.approx(60)
        assert result.weekend_warrior is True
        assert result.weekday_dipper is False

    def test_weekday_dipper(self, today, settings, event_at):
        result = analytics.analyze_day_patterns(self.build(today, event_at, 18, 8), settings)

        assert result.weekday_dipper is True
        assert result.weekend_warrior is False

    def test_within_gap_is_neither(self, today, settings, event_at):
        result = analytics.analyze_day_patterns(self.build(today, event_at, 14, 15), settings)

        assert result.weekend_warrior is False
        assert result.weekday_dipper is False

    def test_best_and_worst_day(self, today, settings, event_at):
        result = analytics.analyze_day_patterns(self.build(today, event_at, 12, 17), settings)

        assert result.best_day.name == "Saturday"
        assert result.worst_day.name == "Monday"

    def test_not_enough_data(self, today, settings, daily_log):
        assert analytics.analyze_day_patterns(daily_log("read", days=20), settings).has_enough_data is False

    def test_unobserved_days_not_worst(self, today, settings, event_at):
        """A weekday with no events at all is never reported as the worst day."""
        log = [event_at("read", weekday_date(today, 0, w), completed=w % 2 == 0) for w in range(11)]
        log += [event_at("read", weekday_date(today, 2, w)) for w in range(11)]
        result = analytics.analyze_day_patterns(log, settings)

        assert result.has_enough_data is True
        assert result.worst_day.name == "Monday"


# ─────────────────────────────────────────────────────────────────────────────
# Per Habit Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestHabitPerformance:
    """Tests for one habit's week/month performance."""

    @pytest.fixture
    def habit(self):
        return Habit(id="read", name="Read")

    def test_every_day_of_week(self, habit, today, settings, daily_log):
        result = analytics.analyze_habit_performance(habit, daily_log("read", days=7), today, settings)

        assert result.has_enough_data is True
        assert result.week_rate == 100
        assert result.resistance_level == "low"
        assert result.current_streak == 7
        assert result.is_sticky is True
        assert result.trend_direction == "improving"

    def test_not_enough_events(self, habit, today, settings, daily_log):
        result = analytics.analyze_habit_performance(habit, daily_log("read", days=6), today, settings)

        assert result.has_enough_data is False
        assert result.to_dict() == {"has_enough_data": False, "habit_id": "read"}

    def test_declining_needs_attention(self, habit, today, settings, daily_log):
        """Done on every day of the earlier half only."""
        result = analytics.analyze_habit_performance(habit, daily_log("read", days=15, offset=15), today, settings)

        assert result.week_rate == 0
        assert result.trend == pytest.approx(-100)
        assert result.trend_direction == "declining"
        assert result.needs_attention is True
        assert result.resistance_level == "high"
        assert result.current_streak == 0
        assert result.longest_streak == 15
        assert result.best_time.name == "morning"

    def test_window_trails_from_today(self, habit, today, settings, daily_log):
        """Day 30 back falls outside the month window."""
        result = analytics.analyze_habit_performance(habit, daily_log("read", days=31), today, settings)

        assert result.month_rate == 100
        assert result.total_completions == 31

    def test_current_streak_has_no_pending_allowance(self, habit, today, settings, daily_log):
        result = analytics.analyze_habit_performance(habit, daily_log("read", days=10, offset=1), today, settings)

        assert result.current_streak == 0
        assert result.longest_streak == 10
        assert result.is_sticky is False

    def test_trend_bands(self, habit, today, settings, event_at):
        """Every other day tips slightly toward the recent half; every third day is even."""
        log = [event_at("read", today - timedelta(days=i)) for i in range(0, 30, 2)]
        result = analytics.analyze_habit_performance(habit, log, today, settings)

        assert result.trend == pytest.approx(6.666, abs=0.01)
        assert result.trend_direction == "improving"

        log = [event_at("read", today - timedelta(days=i)) for i in range(0, 30, 3)]
        result = analytics.analyze_habit_performance(habit, log, today, settings)
        assert result.trend == pytest.approx(0)
        assert result.trend_direction == "stable"

    def test_ignores_other_habits(self, habit, today, settings, daily_log):
        assert analytics.analyze_habit_performance(habit, daily_log("run", days=30), today, settings).has_enough_data is False


# ─────────────────────────────────────────────────────────────────────────────
# Pool Correlation Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestPoolCorrelation:
    """Tests for pool level vs completion rate."""

    @pytest.fixture
    def split_data(self, today, event_at):
        """10 high-pool days at 90% and 10 low-pool days at 40%."""
        history, log = [], []
        for i in range(20):
            day = today - timedelta(days=i)
            if i % 2 == 0:
                history.append(PoolHistoryEntry(date=day, morning_level=85))
                log += [event_at("read", day, hour=8 + n, completed=n < 9) for n in range(10)]
            else:
                history.append(PoolHistoryEntry(date=day, morning_level=35))
                log += [event_at("read", day, hour=8 + n, completed=n < 2) for n in range(5)]
        return history, log

    def test_pool_matters(self, settings, split_data):
        history, log = split_data
        result = analytics.analyze_pool_correlation(history, log, settings)

        assert result.has_enough_data is True
        assert result.high_pool_completion == pytest.approx(90)
        assert result.low_pool_completion == pytest.approx(40)
        assert result.to_dict()["pool_impact"] == 50
        assert result.pool_matters is True
        assert result.correlation_strength in ("moderate", "strong")
        assert "50% more habits" in result.insight

    def test_order_does_not_change_r(self, settings, split_data):
        history, log = split_data
        shuffled = list(history)
        random.Random(3).shuffle(shuffled)

        a = analytics.analyze_pool_correlation(history, log, settings)
        b = analytics.analyze_pool_correlation(shuffled, list(reversed(log)), settings)
        assert a.correlation == pytest.approx(b.correlation)

    def test_days_without_completions_dropped(self, today, settings, split_data):
        """Extra low-pool days with no entries do not pull the low average to 0."""
        history, log = split_data
        extra = [PoolHistoryEntry(date=today - timedelta(days=40 + i), morning_level=20) for i in range(5)]
        result = analytics.analyze_pool_correlation(history + extra, log, settings)

        assert len(result.data_points) == 20
        assert result.low_pool_completion == pytest.approx(40)

    def test_end_level_ignored(self, settings, split_data):
        """Only the morning level is paired with the day's completions."""
        history, log = split_data
        flipped = [
            PoolHistoryEntry(date=e.date, morning_level=e.morning_level, end_level=100 - e.morning_level)
            for e in history
        ]

        a = analytics.analyze_pool_correlation(history, log, settings)
        b = analytics.analyze_pool_correlation(flipped, log, settings)
        assert b.pool_impact == pytest.approx(a.pool_impact)
        assert b.correlation == pytest.approx(a.correlation)

    def test_original_shape_history_rows(self, settings, split_data):
        history, log = split_data
        rows = [{"date": e.date.isoformat(), "morningLevel": e.morning_level, "endLevel": 5} for e in history]

        result = analytics.analyze_pool_correlation(rows, log, settings)
        assert result.has_enough_data is True
        assert result.pool_matters is True

    def test_too_few_history_entries(self, settings, split_data):
        history, log = split_data
        assert analytics.analyze_pool_correlation(history[:13], log, settings).has_enough_data is False

    def test_too_few_aligned_points(self, today, settings, split_data):
        history, log = split_data
        kept_days = {e.date for e in history[:9]}
        sparse = [e for e in log if e.day in kept_days]
        assert analytics.analyze_pool_correlation(history, sparse, settings).has_enough_data is False

    def test_constant_pool_level(self, today, settings, event_at):
        """No variance in pool level means r is 0, not an error."""
        history, log = [], []
        for i in range(15):
            day = today - timedelta(days=i)
            history.append({"date": day.isoformat(), "level": 60})
            log += [event_at("read", day, hour=9, completed=i % 3 == 0), event_at("read", day, hour=10)]
        result = analytics.analyze_pool_correlation(history, log, settings)

        assert result.correlation == 0
        assert result.correlation_strength == "none"
        assert result.pool_matters is False
        assert result.insight == "Your completion rate is consistent regardless of pool level."

    def test_pearson(self):
        assert analytics.pearson([1, 2, 3, 4], [2, 4, 6, 8]) == pytest.approx(1.0)
        assert analytics.pearson([1, 2, 3, 4], [8, 6, 4, 2]) == pytest.approx(-1.0)
        assert analytics.pearson([1], [1]) == 0.0
        assert analytics.pearson([1, 2], [1, 2, 3]) == 0.0

    @pytest.mark.parametrize(
        "r,strength",
        [(0.9, "strong"), (0.7, "strong"), (0.69, "moderate"), (-0.45, "moderate"), (0.2, "weak"), (0.19, "none")],
    )
    def test_strength_bands(self, r, strength):
        assert analytics.correlation_strength(r) == strength


# ─────────────────────────────────────────────────────────────────────────────
# Report Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestReport:
    """Tests for the combined report and insight ranking."""

    @pytest.fixture
    def report(self, today, settings, sample_habits, daily_log):
        log = daily_log("meditate", days=30, hour=7) + daily_log("read", days=15, offset=15, hour=21)
        return analytics.generate_report(sample_habits, log, today=today, settings=settings)

    def test_summary(self, report):
        data = report.to_dict()["summary"]

        assert data["total_completions"] == 45
        assert data["active_days"] == 30
        assert data["active_habits"] == 3
        assert data["avg_completions_per_day"] == 1.5
        assert data["sticky_habits_count"] == 1

    def test_best_and_attention(self, report):
        assert report.best_habit.habit_id == "meditate"
        assert [h.habit_id for h in report.needs_attention] == ["read"]
        assert [h.habit_id for h in report.sticky_habits] == ["meditate"]

    def test_insight_order(self, report):
        assert [i.category for i in report.insights] == [
            InsightCategory.TIME,
            InsightCategory.DAY,
            InsightCategory.SUCCESS,
            InsightCategory.ATTENTION,
        ]
        assert report.insights[0].title == "Morning is your sweet spot"
        assert report.insights[2].title == "Meditate is solid"
        assert report.insights[2].message == "100% this week. This one's automatic."
        assert report.insights[3].icon == "wrench"

    def test_pool_block_without_history(self, report):
        assert report.pool_correlation.has_enough_data is False

    def test_empty_report(self, today, settings):
        report = analytics.generate_report([], [], today=today, settings=settings)
        data = report.to_dict()

        assert data["summary"]["total_completions"] == 0
        assert data["summary"]["avg_completions_per_day"] == 0
        assert data["insights"] == []
        assert data["best_habit"] is None

    def test_malformed_entries_do_not_stop_the_report(self, today, settings, daily_log):
        """Broken log and history rows are skipped; the rest of the report is still computed."""
        log = [e.to_dict() for e in daily_log("meditate", days=30, hour=7)] + [
            {"habit_id": "meditate"},
            {"timestamp": "2025-01-15T07:00:00"},
            {"habit_id": "read", "timestamp": "yesterday"},
            {"habit_id": "read", "timestamp": "2025-01-14T07:00:00", "completed": "maybe"},
            "junk",
            None,
        ]
        history = [{"date": "bad", "level": 50}, "x", {"date": "2025-01-14", "morningLevel": None}]

        report = analytics.generate_report([Habit(id="meditate", name="Meditate")], log, history, today, settings)
        data = report.to_dict()

        assert data["summary"]["total_completions"] == 30
        assert data["summary"]["active_days"] == 30
        assert report.time_patterns.has_enough_data is True
        assert report.best_habit.habit_id == "meditate"
        assert data["pool_correlation"]["has_enough_data"] is False

    def test_insights_capped_at_four(self):
        """Five candidates, and the attention warning is the one dropped."""
        best = HabitPerformance(habit_id="a", habit_name="A", has_enough_data=True, week_rate=90)
        weak = HabitPerformance(habit_id="b", habit_name="B", has_enough_data=True, week_rate=20, needs_attention=True)
        insights = analytics.build_insights(
            TimePatterns(has_enough_data=True, best_part=NamedRate("evening", 80)),
            DayPatterns(has_enough_data=True, worst_day=NamedRate("Monday", 40)),
            PoolCorrelation(has_enough_data=True, pool_matters=True, insight="Pool helps."),
            best,
            [weak],
        )

        assert [i.category for i in insights] == [
            InsightCategory.TIME,
            InsightCategory.DAY,
            InsightCategory.POOL,
            InsightCategory.SUCCESS,
        ]
        assert insights[1].title == "Mondays are tough"
        assert insights[2].message == "Pool helps."
