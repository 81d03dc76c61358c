"""
EATME Orders Engine — Order & Reservation Records
===================================================
One Order type covers both food orders (kind ORDER) and table
reservations (kind RESERVATION).

RULES:
- Line items are owned snapshots, never live catalog references
- timeline[-1].status == status; the timeline only grows
- cancellation_reason is present iff status == Cancelled
- discount <= subtotal
- Orders are never deleted
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Optional, Tuple

from core.primitives.workflow import (
    CANCELLED,
    ORDER_WORKFLOW,
    RESERVATION_WORKFLOW,
    TimelineEntry,
    WorkflowDefinition,
    append_timeline,
)

KIND_ORDER = "ORDER"
KIND_RESERVATION = "RESERVATION"
VALID_KINDS = frozenset({KIND_ORDER, KIND_RESERVATION})


def workflow_for(kind: str) -> WorkflowDefinition:
    if kind == KIND_RESERVATION:
        return RESERVATION_WORKFLOW
    return ORDER_WORKFLOW


# ══════════════════════════════════════════════════════════════
# LINE ITEM
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LineItem:
    """Snapshot of a menu item at checkout. Prices are minor units."""
    item_id: str
    name: str
    unit_price: int
    quantity: int
    image_url: str = ""

    def __post_init__(self):
        if not self.item_id:
            raise ValueError("item_id must be non-empty.")
        if not self.name:
            raise ValueError("name must be non-empty.")
        if not isinstance(self.unit_price, int) or self.unit_price < 0:
            raise ValueError("unit_price must be a non-negative int.")
        if not isinstance(self.quantity, int) or self.quantity <= 0:
            raise ValueError("quantity must be a positive int.")

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "name": self.name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "image_url": self.image_url,
        }

    @classmethod
    def from_dict(cls, data: dict) -> LineItem:
        return cls(
            item_id=data["item_id"],
            name=data["name"],
            unit_price=int(data["unit_price"]),
            quantity=int(data["quantity"]),
            image_url=data.get("image_url", ""),
        )


# ══════════════════════════════════════════════════════════════
# RESERVATION DETAILS
# ══════════════════════════════════════════════════════════════

_HOURS_RE = re.compile(r"^\s*(\d+)\s*(hrs?|hours?)?\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class ReservationDetails:
    guest_name: str
    phone: str
    date: date
    time: str
    guests: str
    duration: str
    occasion: str = ""
    special_instructions: str = ""

    def __post_init__(self):
        if not self.guest_name:
            raise ValueError("guest_name must be non-empty.")
        if not self.phone:
            raise ValueError("phone must be non-empty.")
        if not isinstance(self.date, date):
            raise TypeError("date must be date.")
        if not self.time:
            raise ValueError("time must be non-empty.")
        if not self.guests:
            raise ValueError("guests must be non-empty.")
        if not self.duration:
            raise ValueError("duration must be non-empty.")

    @property
    def duration_hours(self) -> Optional[int]:
        """'3hrs' → 3. None when the duration is not a plain hour count."""
        match = _HOURS_RE.match(self.duration)
        return int(match.group(1)) if match else None

    def to_dict(self) -> dict:
        return {
            "guest_name": self.guest_name,
            "phone": self.phone,
            "date": self.date.isoformat(),
            "time": self.time,
            "guests": self.guests,
            "duration": self.duration,
            "occasion": self.occasion,
            "special_instructions": self.special_instructions,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ReservationDetails:
        return cls(
            guest_name=data["guest_name"],
            phone=data["phone"],
            date=date.fromisoformat(data["date"]),
            time=data["time"],
            guests=data["guests"],
            duration=data["duration"],
            occasion=data.get("occasion", ""),
            special_instructions=data.get("special_instructions", ""),
        )


# ══════════════════════════════════════════════════════════════
# ORDER
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Order:
    order_id: str
    customer_id: str
    kind: str
    line_items: Tuple[LineItem, ...]
    subtotal: int
    status: str
    timeline: Tuple[TimelineEntry, ...]
    created_at: datetime
    cancellation_reason: Optional[str] = None
    points_applied: int = 0
    discount: int = 0
    contact_phone: Optional[str] = None
    reservation: Optional[ReservationDetails] = None

    def __post_init__(self):
        if not self.order_id:
            raise ValueError("order_id must be non-empty.")
        if not self.customer_id:
            raise ValueError("customer_id must be non-empty.")
        if self.kind not in VALID_KINDS:
            raise ValueError(f"Invalid kind: {self.kind}")
        if self.subtotal < 0:
            raise ValueError("subtotal must be >= 0.")
        if not self.timeline:
            raise ValueError("timeline must contain the creation status.")
        if self.timeline[-1].status != self.status:
            raise ValueError(
                f"Timeline corrupt for '{self.order_id}': last entry "
                f"'{self.timeline[-1].status}' != status '{self.status}'."
            )
        if (self.status == CANCELLED) != bool(self.cancellation_reason):
            raise ValueError(
                "cancellation_reason must be present iff status is Cancelled."
            )
        if self.points_applied < 0 or self.discount < 0:
            raise ValueError("points_applied and discount must be >= 0.")
        if self.discount > self.subtotal:
            raise ValueError("discount must not exceed subtotal.")
        if self.kind == KIND_RESERVATION and self.reservation is None:
            raise ValueError("Reservations require reservation details.")

    @property
    def total(self) -> int:
        return self.subtotal - self.discount

    @property
    def workflow(self) -> WorkflowDefinition:
        return workflow_for(self.kind)

    @property
    def is_reservation(self) -> bool:
        return self.kind == KIND_RESERVATION

    def advance(
        self,
        new_status: str,
        at: datetime,
        reason: Optional[str] = None,
    ) -> Order:
        """Return the order in new_status with one timeline entry appended."""
        return replace(
            self,
            status=new_status,
            timeline=append_timeline(self.timeline, new_status, at),
            cancellation_reason=reason if new_status == CANCELLED else None,
        )

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "customer_id": self.customer_id,
            "kind": self.kind,
            "line_items": [item.to_dict() for item in self.line_items],
            "subtotal": self.subtotal,
            "status": self.status,
            "timeline": [entry.to_dict() for entry in self.timeline],
            "created_at": self.created_at.isoformat(),
            "cancellation_reason": self.cancellation_reason,
            "points_applied": self.points_applied,
            "discount": self.discount,
            "contact_phone": self.contact_phone,
            "reservation": self.reservation.to_dict() if self.reservation else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Order:
        reservation = data.get("reservation")
        return cls(
            order_id=data["order_id"],
            customer_id=data["customer_id"],
            kind=data["kind"],
            line_items=tuple(LineItem.from_dict(i) for i in data.get("line_items", [])),
            subtotal=int(data["subtotal"]),
            status=data["status"],
            timeline=tuple(TimelineEntry.from_dict(e) for e in data["timeline"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            cancellation_reason=data.get("cancellation_reason") or None,
            points_applied=int(data.get("points_applied", 0)),
            discount=int(data.get("discount", 0)),
            contact_phone=data.get("contact_phone") or None,
            reservation=ReservationDetails.from_dict(reservation) if reservation else None,
        )
