"""Derived views: grouping, bucketing and report aggregations (pure functions)."""
