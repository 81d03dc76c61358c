"""
EATME Core Primitives
=======================
Engine-agnostic building blocks shared by the engines.

- Pure Python (no Django dependency)
- Immutable (frozen dataclasses)

Primitives:
    workflow — lifecycle state machines and timeline entries
"""
