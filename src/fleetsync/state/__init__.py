"""State/store layer.

The row store is the single source of truth rendered by a dashboard. Fetch
results replace or extend it; live events are merged into it in place.
"""
