"""Offline degraded-mode package.

Architectural role:
    - `store`: injectable keyed stores, including the bounded, expiring store.
    - `cache`: offline question/answer cache, seed content, snapshot persistence
      and the rule-based question generator.
"""
