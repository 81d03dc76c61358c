"""
EATME Core Time — Public API
==============================
Injectable clock. Engine code never calls datetime.now() directly.
"""

from core.time.clock import (
    Clock,
    FixedClock,
    SystemClock,
)

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
]
