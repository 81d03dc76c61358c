"""
EATME Orders Engine — Event Types
===================================
Lifecycle events handed to the Notification Emitter.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from core.primitives.workflow import CANCELLED
from engines.orders.models import KIND_RESERVATION, Order

# ── Event Types ───────────────────────────────────────────────

ORDER_PLACED_V1 = "orders.order.placed.v1"
ORDER_STATUS_CHANGED_V1 = "orders.order.status_changed.v1"
ORDER_CANCELLED_V1 = "orders.order.cancelled.v1"
RESERVATION_BOOKED_V1 = "orders.reservation.booked.v1"
RESERVATION_STATUS_CHANGED_V1 = "orders.reservation.status_changed.v1"
RESERVATION_CANCELLED_V1 = "orders.reservation.cancelled.v1"

ALL_EVENT_TYPES = (
    ORDER_PLACED_V1,
    ORDER_STATUS_CHANGED_V1,
    ORDER_CANCELLED_V1,
    RESERVATION_BOOKED_V1,
    RESERVATION_STATUS_CHANGED_V1,
    RESERVATION_CANCELLED_V1,
)

PLACED_EVENT_TYPES = frozenset({ORDER_PLACED_V1, RESERVATION_BOOKED_V1})
CANCELLED_EVENT_TYPES = frozenset({ORDER_CANCELLED_V1, RESERVATION_CANCELLED_V1})


@dataclass(frozen=True)
class LifecycleEvent:
    event_type: str
    record_id: str
    kind: str
    customer_id: str
    status: str
    occurred_at: datetime
    previous_status: Optional[str] = None
    reason: Optional[str] = None
    contact_phone: Optional[str] = None
    total: int = 0

    def __post_init__(self):
        if self.event_type not in ALL_EVENT_TYPES:
            raise ValueError(f"Unknown event type: {self.event_type}")
        if self.event_type in CANCELLED_EVENT_TYPES and not self.reason:
            raise ValueError("Cancellation events must carry the reason.")

    @property
    def is_placed(self) -> bool:
        return self.event_type in PLACED_EVENT_TYPES

    @property
    def is_reservation(self) -> bool:
        return self.kind == KIND_RESERVATION

    def to_dict(self) -> dict:
        return {
            "event_type": self.event_type,
            "record_id": self.record_id,
            "kind": self.kind,
            "customer_id": self.customer_id,
            "status": self.status,
            "occurred_at": self.occurred_at.isoformat(),
            "previous_status": self.previous_status,
            "reason": self.reason,
            "contact_phone": self.contact_phone,
            "total": self.total,
        }


# ── Builders ──────────────────────────────────────────────────

def placed_event(order: Order) -> LifecycleEvent:
    event_type = RESERVATION_BOOKED_V1 if order.is_reservation else ORDER_PLACED_V1
    return LifecycleEvent(
        event_type=event_type,
        record_id=order.order_id,
        kind=order.kind,
        customer_id=order.customer_id,
        status=order.status,
        occurred_at=order.created_at,
        contact_phone=order.contact_phone,
        total=order.total,
    )


def status_changed_event(order: Order, previous_status: str) -> LifecycleEvent:
    if order.status == CANCELLED:
        event_type = (
            RESERVATION_CANCELLED_V1 if order.is_reservation else ORDER_CANCELLED_V1
        )
    else:
        event_type = (
            RESERVATION_STATUS_CHANGED_V1 if order.is_reservation
            else ORDER_STATUS_CHANGED_V1
        )
    return LifecycleEvent(
        event_type=event_type,
        record_id=order.order_id,
        kind=order.kind,
        customer_id=order.customer_id,
        status=order.status,
        occurred_at=order.timeline[-1].timestamp,
        previous_status=previous_status,
        reason=order.cancellation_reason,
        contact_phone=order.contact_phone,
        total=order.total,
    )
