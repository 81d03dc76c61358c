"""
EATME Engine Facade
=====================
The operations the client screens call. Thin delegation to the
loyalty, orders and notifications services; no rules live here.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Optional, Tuple, Union

from engines.loyalty.models import LoyaltyRecord
from engines.loyalty.policies import RedemptionQuote
from engines.loyalty.services import AccrualSummary, LoyaltyService
from engines.notifications.models import Notification
from engines.notifications.services import NotificationEmitter
from engines.orders.commands import CreateOrderRequest, CreateReservationRequest
from engines.orders.models import LineItem, Order, ReservationDetails
from engines.orders.policies import reservation_total
from engines.orders.services import OrderLifecycleService


def _line_item(item: Union[LineItem, dict]) -> LineItem:
    return item if isinstance(item, LineItem) else LineItem.from_dict(item)


class EatmeEngine:
    def __init__(
        self,
        *,
        loyalty: LoyaltyService,
        orders: OrderLifecycleService,
        notifications: NotificationEmitter,
    ):
        self.loyalty = loyalty
        self.orders = orders
        self.notifications = notifications

    # ── Loyalty: accrual ──────────────────────────────────────

    def award_new_item_bonus(
        self,
        customer_id: str,
        ordered_item_ids: Iterable[str],
        idempotency_key: Optional[str] = None,
    ) -> int:
        return self.loyalty.award_new_item_bonus(
            customer_id, ordered_item_ids, idempotency_key=idempotency_key
        )

    def award_review_bonus(
        self,
        customer_id: str,
        idempotency_key: Optional[str] = None,
    ) -> int:
        return self.loyalty.award_review_bonus(customer_id, idempotency_key=idempotency_key)

    def award_birthday_bonus(
        self,
        customer_id: str,
        birth_date: date,
        today: Optional[date] = None,
    ) -> int:
        return self.loyalty.award_birthday_bonus(customer_id, birth_date, today)

    def award_referral_bonus(
        self,
        customer_id: str,
        idempotency_key: Optional[str] = None,
    ) -> int:
        return self.loyalty.award_referral_bonus(customer_id, idempotency_key=idempotency_key)

    def award_spend_points(self, customer_id: str, order_id: str, amount: int) -> int:
        return self.loyalty.award_spend_points(customer_id, order_id, amount)

    def award_checkout_bonuses(
        self,
        customer_id: str,
        order_id: str,
        item_ids: Iterable[str],
        amount: int,
        birth_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> AccrualSummary:
        return self.loyalty.award_checkout_bonuses(
            customer_id, order_id, item_ids, amount, birth_date=birth_date, today=today
        )

    # ── Loyalty: redemption & queries ─────────────────────────

    def compute_redemption(
        self,
        customer_id: str,
        requested_points: Optional[int],
        subtotal: int,
    ) -> RedemptionQuote:
        return self.loyalty.compute_redemption(customer_id, requested_points, subtotal)

    def get_loyalty_record(self, customer_id: str) -> LoyaltyRecord:
        return self.loyalty.get_loyalty_record(customer_id)

    # ── Orders & reservations ─────────────────────────────────

    def create_order(
        self,
        customer_id: str,
        line_items: Iterable[Union[LineItem, dict]],
        redemption: Optional[RedemptionQuote] = None,
        contact_phone: Optional[str] = None,
    ) -> str:
        request = CreateOrderRequest(
            customer_id=customer_id,
            line_items=tuple(_line_item(item) for item in line_items),
            redemption=redemption,
            contact_phone=contact_phone,
        )
        return self.orders.create_order(request).order_id

    def create_reservation(
        self,
        customer_id: str,
        details: Union[ReservationDetails, dict],
        total: Optional[int] = None,
    ) -> str:
        if not isinstance(details, ReservationDetails):
            details = ReservationDetails.from_dict(details)
        request = CreateReservationRequest(
            customer_id=customer_id,
            details=details,
            total=reservation_total(details) if total is None else total,
        )
        return self.orders.create_reservation(request).order_id

    def transition(
        self,
        order_id: str,
        new_status: str,
        reason: Optional[str] = None,
    ) -> Order:
        return self.orders.transition(order_id, new_status, reason)

    def get_order(self, order_id: str) -> Order:
        return self.orders.get_order(order_id)

    def list_orders(self, customer_id: str) -> Tuple[Order, ...]:
        return self.orders.list_orders(customer_id)

    # ── Notifications ─────────────────────────────────────────

    def broadcast(self, title: str, body: str) -> Notification:
        return self.notifications.broadcast(title, body)

    def notifications_for(self, customer_id: str) -> Tuple[Notification, ...]:
        return self.notifications.list_for(customer_id)
