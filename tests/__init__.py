"""Ascent Behavior Test Suite

Test organization:
- unit/behavior/: Engine tests
  - models, config: event log coercion, settings loading
  - streaks: resilient streaks, miss recovery, ratchet
  - pool: morning reset, drain/recharge, summaries
  - analytics: time/day/habit patterns, pool correlation, report
  - rewards: weighted categories, dampening, milestones
  - document: user document mutations, start of day
"""
