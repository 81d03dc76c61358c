"""
EATME Workflow Primitive — Lifecycle State Machines
=====================================================
Frozen state-machine definitions for orders and reservations, and the
immutable timeline entry written on every transition.

Used by:
    Orders Engine — Order lifecycle (Pending → Confirmed → Ready → Completed)
                    Reservation lifecycle (Upcoming → Completed)

RULES:
- Invalid transitions are rejected, never skipped
- Terminal states have no outgoing transitions
- A timeline only grows; its last entry always matches the current status
- Definitions are immutable (frozen)

This file contains NO persistence logic.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, Tuple


# ══════════════════════════════════════════════════════════════
# STATUSES
# ══════════════════════════════════════════════════════════════

PENDING = "Pending"
CONFIRMED = "Confirmed"
READY = "Ready"
COMPLETED = "Completed"
CANCELLED = "Cancelled"
UPCOMING = "Upcoming"

TERMINAL_STATUSES = frozenset({COMPLETED, CANCELLED})


# ══════════════════════════════════════════════════════════════
# TIMELINE ENTRY
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TimelineEntry:
    """One status transition, including the initial creation status."""
    status: str
    timestamp: datetime

    def __post_init__(self):
        if not self.status or not isinstance(self.status, str):
            raise ValueError("status must be non-empty string.")
        if not isinstance(self.timestamp, datetime):
            raise TypeError("timestamp must be datetime.")

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> TimelineEntry:
        return cls(
            status=data["status"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


# ══════════════════════════════════════════════════════════════
# WORKFLOW DEFINITION (state machine schema)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class WorkflowDefinition:
    """
    Valid states and transitions for one lifecycle type.

    Fields:
        name:            Identifier for this workflow (e.g. "Order")
        initial_state:   Status written at creation
        terminal_states: Statuses with no outgoing transition
        transitions:     {from_state → frozenset(allowed_to_states)}
    """
    name: str
    initial_state: str
    terminal_states: FrozenSet[str]
    transitions: Dict[str, FrozenSet[str]]

    def __post_init__(self):
        if not self.name:
            raise ValueError("Workflow name must be non-empty.")
        if not self.initial_state:
            raise ValueError("initial_state must be non-empty.")
        if self.initial_state not in self.transitions:
            raise ValueError(
                f"initial_state '{self.initial_state}' not in transitions."
            )
        for state in self.terminal_states:
            if self.transitions.get(state):
                raise ValueError(
                    f"Terminal state '{state}' must not have transitions."
                )

    @property
    def states(self) -> FrozenSet[str]:
        return frozenset(self.transitions)

    def is_known(self, state: str) -> bool:
        return state in self.transitions

    def is_valid_transition(self, from_state: str, to_state: str) -> bool:
        allowed = self.transitions.get(from_state, frozenset())
        return to_state in allowed

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states

    def allowed_next_states(self, from_state: str) -> FrozenSet[str]:
        return self.transitions.get(from_state, frozenset())


def append_timeline(
    timeline: Tuple[TimelineEntry, ...],
    status: str,
    at: datetime,
) -> Tuple[TimelineEntry, ...]:
    """Return a new timeline with one entry appended."""
    return timeline + (TimelineEntry(status=status, timestamp=at),)


# ══════════════════════════════════════════════════════════════
# CANONICAL DEFINITIONS
# ══════════════════════════════════════════════════════════════

ORDER_WORKFLOW = WorkflowDefinition(
    name="Order",
    initial_state=PENDING,
    terminal_states=TERMINAL_STATUSES,
    transitions={
        PENDING: frozenset({CONFIRMED, CANCELLED}),
        CONFIRMED: frozenset({READY, CANCELLED}),
        READY: frozenset({COMPLETED, CANCELLED}),
        COMPLETED: frozenset(),
        CANCELLED: frozenset(),
    },
)

RESERVATION_WORKFLOW = WorkflowDefinition(
    name="Reservation",
    initial_state=UPCOMING,
    terminal_states=TERMINAL_STATUSES,
    transitions={
        UPCOMING: frozenset({COMPLETED, CANCELLED}),
        COMPLETED: frozenset(),
        CANCELLED: frozenset(),
    },
)
