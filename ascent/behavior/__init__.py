"""Behavior Engine - Streaks, drive pool, patterns and rewards

Philosophy:
    Consistency, not perfection.
    One missed day is data, not failure.
    Nothing here ever shows red for "you broke it".

Core Principle:
    The completion log is the single source of truth. Every number
    the coach shows is derived from it on demand, so there is no
    counter to drift out of sync and nothing to migrate.

Components:
    models.py: Completion events, habits, pool state, derived results
        - Local calendar date decides the day bucket
        - Malformed log entries are skipped, never fatal

    streaks.py: Resilient, window-based streaks
        - Pluggable hit predicate (one habit, or all habits)
        - Miss recovery messaging and the invisible target ratchet

    pool.py: Drive pool simulation in [0, 100]
        - Once-per-day morning reset
        - Screen time drains, recovery activities recharge

    analytics.py: Time, day, per-habit and pool correlation patterns
        - Each block gated on its own sample size
        - Ranked, category-tagged insights

    rewards.py: Variable reward selection and milestone ladder
        - Weighted categories with recent-history dampening

    proactive.py: Trigger-based nudges surfaced one at a time
        - Priority order, per-insight cooldown

    document.py: Typed user document and the mutations the UI performs

Configuration: ascent/args/behavior.yaml
    - Streak thresholds and window
    - Pool base level, bonuses and drain/recharge bands
    - Analytics sample gates and insight cooldowns
    - Reward weights and milestone days
"""

# Day-part boundaries, [start_hour, end_hour); night wraps midnight
DAY_PARTS = {
    "morning": (5, 12),
    "afternoon": (12, 17),
    "evening": (17, 22),
    "night": (22, 5),
}

# Reward categories and their base weights
REWARD_WEIGHTS = {
    "acknowledgment": 55,
    "identity": 20,
    "pattern": 15,
    "science": 7,
    "delight": 3,
}
