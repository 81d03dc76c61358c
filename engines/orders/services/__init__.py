"""
EATME Orders Engine — Lifecycle Service
=========================================
Creates orders and reservations, applies status transitions through
the transition policies, holds redeemed points at checkout and settles
them when the order ends, and hands lifecycle events to the notifier.

Creation sequence:
    1. Points applied → hold against the ledger (re-quoted; nothing
       written when not backed by available points)
    2. Order written (hold released again if the write fails)
    3. Placed event

Transition sequence:
    1. Cancelling without a reason → MissingReason (nothing read or written)
    2. Atomic store update: same status → no-op; otherwise policies,
       status + timeline append (+ cancellation reason)
    3. Completed → redemption debit; Cancelled → hold released
       (idempotent, also on a no-op re-application)
    4. Status changed → lifecycle event, even when step 3 raised

Notifier failures are logged; the persisted order stays the record of truth.
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable, Optional, Protocol, Tuple

from core.commands.rejection import ReasonCode
from core.errors import InvalidTransition, MissingReason
from core.primitives.workflow import (
    CANCELLED,
    COMPLETED,
    ORDER_WORKFLOW,
    RESERVATION_WORKFLOW,
    TimelineEntry,
)
from core.time import Clock, SystemClock
from engines.loyalty.policies import DEFAULT_PROGRAM, RedemptionQuote
from engines.orders.commands import (
    CreateOrderRequest,
    CreateReservationRequest,
    TransitionRequest,
)
from engines.orders.events import LifecycleEvent, placed_event, status_changed_event
from engines.orders.models import KIND_ORDER, KIND_RESERVATION, Order
from engines.orders.policies import cancellation_reason_policy, evaluate_transition
from engines.orders.repository import OrderStore

logger = logging.getLogger("eatme.orders")


class LifecycleNotifier(Protocol):
    def emit(self, event: LifecycleEvent):
        ...


class RedemptionCommitter(Protocol):
    def hold_for_order(
        self,
        customer_id: str,
        order_id: str,
        quote: RedemptionQuote,
        subtotal: int,
    ) -> int:
        ...

    def redeem_for_order(self, customer_id: str, order_id: str, points: int) -> int:
        ...

    def release_for_order(self, customer_id: str, order_id: str) -> bool:
        ...


def _new_order_id() -> str:
    return uuid.uuid4().hex


class OrderLifecycleService:
    def __init__(
        self,
        *,
        store: OrderStore,
        notifier: Optional[LifecycleNotifier] = None,
        redemption_committer: Optional[RedemptionCommitter] = None,
        clock: Optional[Clock] = None,
        point_value: int = DEFAULT_PROGRAM.point_value_minor,
        id_factory: Callable[[], str] = _new_order_id,
    ):
        self._store = store
        self._notifier = notifier
        self._redemptions = redemption_committer
        self._clock = clock or SystemClock()
        self._point_value = point_value
        self._id_factory = id_factory

    def _emit(self, event: LifecycleEvent) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.emit(event)
        except Exception as exc:
            logger.error(
                f"Lifecycle event {event.event_type} for {event.record_id} "
                f"not delivered: {exc}",
                exc_info=True,
            )

    # ── Creation ──────────────────────────────────────────────

    def create_order(self, request: CreateOrderRequest) -> Order:
        subtotal = request.subtotal
        points_applied, discount = 0, 0
        if request.redemption is not None:
            points_applied = request.redemption.points_applied
            discount = request.redemption.discount
            if discount > points_applied * self._point_value:
                raise ValueError(
                    f"Discount {discount} exceeds the value of "
                    f"{points_applied} points."
                )
            if points_applied > 0 and self._redemptions is None:
                raise ValueError("Redeemed points need a loyalty service to commit to.")

        now = self._clock.now_utc()
        order = Order(
            order_id=self._id_factory(),
            customer_id=request.customer_id,
            kind=KIND_ORDER,
            line_items=tuple(request.line_items),
            subtotal=subtotal,
            status=ORDER_WORKFLOW.initial_state,
            timeline=(TimelineEntry(ORDER_WORKFLOW.initial_state, now),),
            created_at=now,
            points_applied=points_applied,
            discount=discount,
            contact_phone=request.contact_phone,
        )
        if points_applied > 0:
            self._redemptions.hold_for_order(
                order.customer_id, order.order_id, request.redemption, subtotal
            )
        try:
            self._store.add(order)
        except Exception:
            if points_applied > 0:
                self._redemptions.release_for_order(order.customer_id, order.order_id)
            raise
        logger.info(
            f"Order {order.order_id} placed by {order.customer_id}: "
            f"subtotal {subtotal}, discount {discount} ({points_applied} pts)"
        )
        self._emit(placed_event(order))
        return order

    def create_reservation(self, request: CreateReservationRequest) -> Order:
        now = self._clock.now_utc()
        reservation = Order(
            order_id=self._id_factory(),
            customer_id=request.customer_id,
            kind=KIND_RESERVATION,
            line_items=(),
            subtotal=request.total,
            status=RESERVATION_WORKFLOW.initial_state,
            timeline=(TimelineEntry(RESERVATION_WORKFLOW.initial_state, now),),
            created_at=now,
            contact_phone=request.details.phone,
            reservation=request.details,
        )
        self._store.add(reservation)
        logger.info(
            f"Reservation {reservation.order_id} booked by "
            f"{reservation.customer_id} for {request.details.date.isoformat()}"
        )
        self._emit(placed_event(reservation))
        return reservation

    # ── Transitions ───────────────────────────────────────────

    def transition(
        self,
        order_id: str,
        new_status: str,
        reason: Optional[str] = None,
    ) -> Order:
        request = TransitionRequest(order_id=order_id, new_status=new_status, reason=reason)
        reason = request.clean_reason

        if new_status == CANCELLED:
            missing = cancellation_reason_policy(ORDER_WORKFLOW, "", new_status, reason)
            if missing is not None:
                raise MissingReason(missing)

        now = self._clock.now_utc()

        def mutate(order: Order) -> Optional[Order]:
            if order.status == new_status:
                return None
            rejection = evaluate_transition(order.workflow, order.status, new_status, reason)
            if rejection is None:
                return order.advance(new_status, now, reason)
            if rejection.code == ReasonCode.MISSING_CANCELLATION_REASON:
                raise MissingReason(rejection)
            raise InvalidTransition(rejection)

        update = self._store.update(order_id, mutate)
        order = update.current

        if update.changed:
            logger.info(
                f"{order.workflow.name} {order_id}: "
                f"{update.previous.status} → {order.status}"
            )
        else:
            logger.info(f"{order.workflow.name} {order_id} already {order.status}; no-op")

        try:
            self._settle_redemption(order)
        finally:
            if update.changed:
                self._emit(status_changed_event(order, update.previous.status))
        return order

    def _settle_redemption(self, order: Order) -> None:
        if order.points_applied == 0:
            return
        if order.status == COMPLETED:
            self._redemptions.redeem_for_order(
                order.customer_id, order.order_id, order.points_applied
            )
        elif order.status == CANCELLED:
            self._redemptions.release_for_order(order.customer_id, order.order_id)

    # ── Queries ───────────────────────────────────────────────

    def get_order(self, order_id: str) -> Order:
        return self._store.get(order_id)

    def list_orders(self, customer_id: str) -> Tuple[Order, ...]:
        return self._store.list_for_customer(customer_id)
