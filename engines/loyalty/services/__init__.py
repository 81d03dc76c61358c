"""
EATME Loyalty Engine — Service Layer
======================================
Runs accrual rules atomically against the Ledger Store, holds and commits
redemption points for orders, and answers balance queries.

Balances are always read through the store; no process-wide
"current points" state exists.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from core.errors import RecordNotFound
from core.time import Clock, SystemClock
from engines.loyalty.models import LedgerWriteResult, LoyaltyRecord
from engines.loyalty.policies import (
    DEFAULT_PROGRAM,
    LoyaltyProgramPolicy,
    RedemptionQuote,
    birthday_bonus,
    new_item_bonus,
    redemption_amount,
    redemption_debit,
    redemption_hold,
    referral_bonus,
    release_redemption_hold,
    review_bonus,
    spend_points,
)
from engines.loyalty.repository import LedgerStore

logger = logging.getLogger("eatme.loyalty")


@dataclass(frozen=True)
class AccrualSummary:
    """Points awarded by each checkout-time rule."""
    new_item_points: int = 0
    spend_points: int = 0
    birthday_points: int = 0

    @property
    def total(self) -> int:
        return self.new_item_points + self.spend_points + self.birthday_points

    def to_dict(self) -> dict:
        return {
            "new_item_points": self.new_item_points,
            "spend_points": self.spend_points,
            "birthday_points": self.birthday_points,
            "total": self.total,
        }


class LoyaltyService:
    """Loyalty engine service. Every point mutation goes through the store."""

    def __init__(
        self,
        *,
        store: LedgerStore,
        program: Optional[LoyaltyProgramPolicy] = None,
        clock: Optional[Clock] = None,
    ):
        self._store = store
        self._program = program or DEFAULT_PROGRAM
        self._clock = clock or SystemClock()

    @property
    def program(self) -> LoyaltyProgramPolicy:
        return self._program

    def _awarded(self, customer_id: str, rule_name: str, result: LedgerWriteResult) -> int:
        if result.applied:
            logger.info(
                f"Awarded {result.points} pts to {customer_id} "
                f"({rule_name}); balance {result.record.balance}"
            )
        return result.points

    # ── Accrual ───────────────────────────────────────────────

    def award_new_item_bonus(
        self,
        customer_id: str,
        ordered_item_ids: Iterable[str],
        idempotency_key: Optional[str] = None,
    ) -> int:
        item_ids = frozenset(ordered_item_ids)
        result = self._store.apply_rule(
            customer_id,
            lambda record: new_item_bonus(
                record, item_ids, self._program, idempotency_key
            ),
        )
        return self._awarded(customer_id, "new_item_bonus", result)

    def award_review_bonus(
        self,
        customer_id: str,
        idempotency_key: Optional[str] = None,
    ) -> int:
        result = self._store.apply_rule(
            customer_id,
            lambda record: review_bonus(record, self._program, idempotency_key),
        )
        return self._awarded(customer_id, "review_bonus", result)

    def award_birthday_bonus(
        self,
        customer_id: str,
        birth_date: date,
        today: Optional[date] = None,
    ) -> int:
        today = today or self._clock.today()
        result = self._store.apply_rule(
            customer_id,
            lambda record: birthday_bonus(record, birth_date, today, self._program),
        )
        return self._awarded(customer_id, "birthday_bonus", result)

    def award_referral_bonus(
        self,
        customer_id: str,
        idempotency_key: Optional[str] = None,
    ) -> int:
        result = self._store.apply_rule(
            customer_id,
            lambda record: referral_bonus(record, self._program, idempotency_key),
        )
        return self._awarded(customer_id, "referral_bonus", result)

    def award_spend_points(self, customer_id: str, order_id: str, amount: int) -> int:
        result = self._store.apply_rule(
            customer_id,
            lambda record: spend_points(record, order_id, amount, self._program),
        )
        return self._awarded(customer_id, "spend_points", result)

    def award_checkout_bonuses(
        self,
        customer_id: str,
        order_id: str,
        item_ids: Iterable[str],
        amount: int,
        birth_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> AccrualSummary:
        """
        Run the checkout-time rules. A failing rule is logged and counts
        as 0; it never aborts the checkout it rides on.
        """
        item_ids = tuple(item_ids)

        def attempt(rule_name: str, award) -> int:
            try:
                return award()
            except Exception as exc:
                logger.warning(
                    f"Accrual rule {rule_name} failed for {customer_id} "
                    f"(order {order_id}): {exc}",
                    exc_info=True,
                )
                return 0

        new_item = attempt(
            "new_item_bonus",
            lambda: self.award_new_item_bonus(
                customer_id, item_ids, idempotency_key=f"items:{order_id}"
            ),
        )
        spend = attempt(
            "spend_points",
            lambda: self.award_spend_points(customer_id, order_id, amount),
        )
        birthday = 0
        if birth_date is not None:
            birthday = attempt(
                "birthday_bonus",
                lambda: self.award_birthday_bonus(customer_id, birth_date, today),
            )
        return AccrualSummary(
            new_item_points=new_item,
            spend_points=spend,
            birthday_points=birthday,
        )

    # ── Redemption ────────────────────────────────────────────

    def compute_redemption(
        self,
        customer_id: str,
        requested_points: Optional[int],
        subtotal: int,
    ) -> RedemptionQuote:
        """Pure quote against the points not held by open orders. Never writes."""
        record = self.get_loyalty_record(customer_id)
        return redemption_amount(
            balance=record.available_points,
            subtotal=subtotal,
            requested_points=requested_points,
            point_value=self._program.point_value_minor,
        )

    def hold_for_order(
        self,
        customer_id: str,
        order_id: str,
        quote: RedemptionQuote,
        subtotal: int,
    ) -> int:
        """
        Re-check a checkout quote against the ledger and hold its points
        for the order, keyed hold:<order_id>.

        Raises InsufficientPoints or ValueError and writes nothing when
        the quote is not backed by available points.
        """
        result = self._store.apply_rule(
            customer_id,
            lambda record: redemption_hold(
                record, order_id, quote, subtotal, self._program
            ),
        )
        if result.applied:
            logger.info(
                f"Held {quote.points_applied} pts from {customer_id} for order "
                f"{order_id}; {result.record.available_points} available"
            )
        return quote.points_applied

    def redeem_for_order(self, customer_id: str, order_id: str, points: int) -> int:
        """
        Commit the debit for a finalized order, keyed redeem:<order_id>.

        Consumes the order's hold. Returns the points debited, 0 when
        already committed.
        """
        result = self._store.apply_rule(
            customer_id,
            lambda record: redemption_debit(record, order_id, points),
        )
        debited = -result.points
        if result.applied:
            logger.info(
                f"Redeemed {debited} pts from {customer_id} for order {order_id}; "
                f"balance {result.record.balance}"
            )
        return debited

    def release_for_order(self, customer_id: str, order_id: str) -> bool:
        """Release a cancelled order's hold. False when it holds nothing."""
        result = self._store.apply_rule(
            customer_id,
            lambda record: release_redemption_hold(record, order_id),
        )
        if result.applied:
            logger.info(f"Released hold on order {order_id} for {customer_id}")
        return result.applied

    # ── Queries ───────────────────────────────────────────────

    def get_loyalty_record(self, customer_id: str) -> LoyaltyRecord:
        """Read-only. A customer with no record yet gets an empty one."""
        try:
            return self._store.get(customer_id)
        except RecordNotFound:
            return LoyaltyRecord(customer_id=customer_id)
