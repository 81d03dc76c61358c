"""
EATME Orders Engine — Order Store
===================================
Protocol + InMemory and Django implementations.

Doctrine:
- update() loads and locks the order, hands it to a mutate callback and
  writes the result in the same atomic unit.
- A mutate callback returning None writes nothing.
- An exception raised by the callback aborts the update.
- Orders are never deleted.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, Tuple

from django.db import DatabaseError, IntegrityError, transaction

from core.errors import RecordNotFound, StoreUnavailable
from core.primitives.workflow import TimelineEntry
from engines.orders.models import LineItem, Order, ReservationDetails

Mutation = Callable[[Order], Optional[Order]]


@dataclass(frozen=True)
class OrderUpdate:
    previous: Order
    current: Order

    @property
    def changed(self) -> bool:
        return self.previous is not self.current


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

class OrderStore(Protocol):
    def add(self, order: Order) -> Order:
        ...

    def get(self, order_id: str) -> Order:
        """Return the order, or raise RecordNotFound."""
        ...

    def update(self, order_id: str, mutate: Mutation) -> OrderUpdate:
        ...

    def list_for_customer(self, customer_id: str) -> Tuple[Order, ...]:
        """Newest first."""
        ...


# ---------------------------------------------------------------------------
# InMemory Store
# ---------------------------------------------------------------------------

class InMemoryOrderStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._orders: Dict[str, Order] = {}

    def add(self, order: Order) -> Order:
        with self._lock:
            if order.order_id in self._orders:
                raise ValueError(f"Order '{order.order_id}' already exists.")
            self._orders[order.order_id] = order
        return order

    def get(self, order_id: str) -> Order:
        with self._lock:
            order = self._orders.get(order_id)
        if order is None:
            raise RecordNotFound("Order", order_id)
        return order

    def update(self, order_id: str, mutate: Mutation) -> OrderUpdate:
        with self._lock:
            previous = self._orders.get(order_id)
            if previous is None:
                raise RecordNotFound("Order", order_id)
            current = mutate(previous)
            if current is None:
                return OrderUpdate(previous=previous, current=previous)
            self._orders[order_id] = current
            return OrderUpdate(previous=previous, current=current)

    def list_for_customer(self, customer_id: str) -> Tuple[Order, ...]:
        with self._lock:
            orders = [o for o in self._orders.values() if o.customer_id == customer_id]
        return tuple(sorted(orders, key=lambda o: o.created_at, reverse=True))


# ---------------------------------------------------------------------------
# Django Store
# ---------------------------------------------------------------------------

def _order_from_row(row) -> Order:
    return Order(
        order_id=row.order_id,
        customer_id=row.customer_id,
        kind=row.kind,
        line_items=tuple(LineItem.from_dict(item) for item in row.line_items),
        subtotal=row.subtotal,
        status=row.status,
        timeline=tuple(TimelineEntry.from_dict(entry) for entry in row.timeline),
        created_at=row.created_at,
        cancellation_reason=row.cancellation_reason or None,
        points_applied=row.points_applied,
        discount=row.discount,
        contact_phone=row.contact_phone or None,
        reservation=(
            ReservationDetails.from_dict(row.reservation) if row.reservation else None
        ),
    )


class DjangoOrderStore:
    """Order Store backed by core.document_store.OrderDocument."""

    STORE_NAME = "orders"

    def add(self, order: Order) -> Order:
        from core.document_store.models import OrderDocument

        data = order.to_dict()
        try:
            with transaction.atomic():
                OrderDocument.objects.create(
                    order_id=order.order_id,
                    customer_id=order.customer_id,
                    kind=order.kind,
                    line_items=data["line_items"],
                    subtotal=order.subtotal,
                    points_applied=order.points_applied,
                    discount=order.discount,
                    status=order.status,
                    timeline=data["timeline"],
                    cancellation_reason=order.cancellation_reason or "",
                    contact_phone=order.contact_phone or "",
                    reservation=data["reservation"],
                    created_at=order.created_at,
                    updated_at=order.created_at,
                )
        except IntegrityError as exc:
            raise ValueError(f"Order '{order.order_id}' already exists.") from exc
        except DatabaseError as exc:
            raise StoreUnavailable(self.STORE_NAME, str(exc)) from exc
        return order

    def get(self, order_id: str) -> Order:
        from core.document_store.models import OrderDocument

        try:
            row = OrderDocument.objects.filter(order_id=order_id).first()
        except DatabaseError as exc:
            raise StoreUnavailable(self.STORE_NAME, str(exc)) from exc
        if row is None:
            raise RecordNotFound("Order", order_id)
        return _order_from_row(row)

    def update(self, order_id: str, mutate: Mutation) -> OrderUpdate:
        from core.document_store.models import OrderDocument

        try:
            with transaction.atomic():
                row = (
                    OrderDocument.objects.select_for_update()
                    .filter(order_id=order_id)
                    .first()
                )
                if row is None:
                    raise RecordNotFound("Order", order_id)
                previous = _order_from_row(row)
                current = mutate(previous)
                if current is None:
                    return OrderUpdate(previous=previous, current=previous)
                row.status = current.status
                row.timeline = [entry.to_dict() for entry in current.timeline]
                row.cancellation_reason = current.cancellation_reason or ""
                row.updated_at = current.timeline[-1].timestamp
                row.save(
                    update_fields=[
                        "status",
                        "timeline",
                        "cancellation_reason",
                        "updated_at",
                    ]
                )
                return OrderUpdate(previous=previous, current=current)
        except DatabaseError as exc:
            raise StoreUnavailable(self.STORE_NAME, str(exc)) from exc

    def list_for_customer(self, customer_id: str) -> Tuple[Order, ...]:
        from core.document_store.models import OrderDocument

        try:
            rows = list(
                OrderDocument.objects.filter(customer_id=customer_id)
                .order_by("-created_at")
            )
        except DatabaseError as exc:
            raise StoreUnavailable(self.STORE_NAME, str(exc)) from exc
        return tuple(_order_from_row(row) for row in rows)
