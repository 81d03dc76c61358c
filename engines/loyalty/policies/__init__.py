"""
EATME Loyalty Engine — Policies
=================================
Accrual rules, the redemption calculator, and the hold/debit rules
that reserve redeemed points at checkout and consume them on completion.

Each accrual rule is a pure function of the current LoyaltyRecord that
returns the LedgerDelta to write, or None when no bonus applies.
Reaching a cap is a None result, never an error.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, fields
from datetime import date
from typing import Any, Iterable, Mapping, Optional

from core.errors import InsufficientPoints
from engines.loyalty.models import (
    CounterMutations,
    LedgerDelta,
    LoyaltyRecord,
    PointHold,
)


# ── Program Policy Record ─────────────────────────────────────

@dataclass(frozen=True)
class LoyaltyProgramPolicy:
    """
    Rule constants. Money values are minor units.

    spend_unit_minor:  amount that earns one spend point (1000 = 10.00)
    point_value_minor: discount value of one redeemed point (5 = 0.05)
    """
    new_item_points: int = 50
    review_points: int = 25
    review_cap: int = 8
    birthday_points: int = 200
    referral_points: int = 100
    referral_cap: int = 10
    spend_unit_minor: int = 1000
    point_value_minor: int = 5

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"{f.name} must be a non-negative int.")
        if self.spend_unit_minor == 0:
            raise ValueError("spend_unit_minor must be > 0.")
        if self.point_value_minor == 0:
            raise ValueError("point_value_minor must be > 0.")

    @classmethod
    def from_mapping(cls, overrides: Optional[Mapping[str, Any]]) -> LoyaltyProgramPolicy:
        """Build from a settings mapping; unknown keys are rejected."""
        if not overrides:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown loyalty settings: {sorted(unknown)}")
        return cls(**dict(overrides))


DEFAULT_PROGRAM = LoyaltyProgramPolicy()


# ── Accrual Rules ─────────────────────────────────────────────

def new_item_bonus(
    record: LoyaltyRecord,
    ordered_item_ids: Iterable[str],
    program: LoyaltyProgramPolicy = DEFAULT_PROGRAM,
    idempotency_key: Optional[str] = None,
) -> Optional[LedgerDelta]:
    """Points for each ordered item the customer has never been rewarded for."""
    new_ids = frozenset(ordered_item_ids) - record.distinct_items_tried
    if not new_ids or program.new_item_points == 0:
        return None
    count = len(new_ids)
    return LedgerDelta(
        points=program.new_item_points * count,
        reason=f"Tried {count} new item(s)",
        counters=CounterMutations(add_items=new_ids),
        idempotency_key=idempotency_key,
    )


def review_bonus(
    record: LoyaltyRecord,
    program: LoyaltyProgramPolicy = DEFAULT_PROGRAM,
    idempotency_key: Optional[str] = None,
) -> Optional[LedgerDelta]:
    if record.reviews_rewarded >= program.review_cap or program.review_points == 0:
        return None
    review_number = record.reviews_rewarded + 1
    return LedgerDelta(
        points=program.review_points,
        reason=f"Submitted review #{review_number}",
        counters=CounterMutations(reviews_increment=1),
        idempotency_key=idempotency_key,
    )


def is_birthday(birth_date: date, today: date) -> bool:
    """29 February birthdays fall on 28 February in non-leap years."""
    month, day = birth_date.month, birth_date.day
    if month == 2 and day == 29 and not calendar.isleap(today.year):
        day = 28
    return (today.month, today.day) == (month, day)


def birthday_bonus(
    record: LoyaltyRecord,
    birth_date: date,
    today: date,
    program: LoyaltyProgramPolicy = DEFAULT_PROGRAM,
) -> Optional[LedgerDelta]:
    if not is_birthday(birth_date, today):
        return None
    if record.last_birthday_reward_year == today.year:
        return None
    if program.birthday_points == 0:
        return None
    return LedgerDelta(
        points=program.birthday_points,
        reason="Birthday celebration",
        counters=CounterMutations(birthday_year=today.year),
        idempotency_key=f"birthday:{today.year}",
    )


def referral_bonus(
    record: LoyaltyRecord,
    program: LoyaltyProgramPolicy = DEFAULT_PROGRAM,
    idempotency_key: Optional[str] = None,
) -> Optional[LedgerDelta]:
    if record.referrals_rewarded >= program.referral_cap or program.referral_points == 0:
        return None
    referral_number = record.referrals_rewarded + 1
    return LedgerDelta(
        points=program.referral_points,
        reason=f"Referred friend #{referral_number}",
        counters=CounterMutations(referrals_increment=1),
        idempotency_key=idempotency_key,
    )


def spend_points(
    record: LoyaltyRecord,
    order_id: str,
    amount: int,
    program: LoyaltyProgramPolicy = DEFAULT_PROGRAM,
) -> Optional[LedgerDelta]:
    """One point per spend unit of the order amount, once per order."""
    if amount < 0:
        raise ValueError("amount must be >= 0.")
    points = amount // program.spend_unit_minor
    if points == 0:
        return None
    return LedgerDelta(
        points=points,
        reason=f"Spent on order {order_id}",
        idempotency_key=f"spend:{order_id}",
    )


# ── Redemption Calculator ─────────────────────────────────────

@dataclass(frozen=True)
class RedemptionQuote:
    points_applied: int
    discount: int

    def __post_init__(self):
        if self.points_applied < 0 or self.discount < 0:
            raise ValueError("RedemptionQuote values must be >= 0.")

    def to_dict(self) -> dict:
        return {"points_applied": self.points_applied, "discount": self.discount}


NO_REDEMPTION = RedemptionQuote(points_applied=0, discount=0)


def redemption_amount(
    balance: int,
    subtotal: int,
    requested_points: Optional[int] = None,
    point_value: int = DEFAULT_PROGRAM.point_value_minor,
) -> RedemptionQuote:
    """
    Convert points into a discount that never exceeds the subtotal.

    requested_points=None applies all available points. Points beyond
    what the subtotal can absorb are not applied.
    """
    if balance < 0:
        raise ValueError("balance must be >= 0.")
    if subtotal < 0:
        raise ValueError("subtotal must be >= 0.")
    if requested_points is not None and requested_points < 0:
        raise ValueError("requested_points must be >= 0.")
    if point_value <= 0:
        raise ValueError("point_value must be > 0.")

    requested = balance if requested_points is None else requested_points
    absorbable = -(-subtotal // point_value)
    points = min(requested, balance, absorbable)
    discount = min(points * point_value, subtotal)
    return RedemptionQuote(points_applied=points, discount=discount)


# ── Redemption Rules ──────────────────────────────────────────

def redemption_hold(
    record: LoyaltyRecord,
    order_id: str,
    quote: RedemptionQuote,
    subtotal: int,
    program: LoyaltyProgramPolicy = DEFAULT_PROGRAM,
) -> Optional[LedgerDelta]:
    """
    Re-quote a checkout redemption against the points still available
    and hold them for the order.

    Raises InsufficientPoints when the quote needs more points than are
    available, ValueError when its discount is not what those points buy.
    """
    idempotency_key = f"hold:{order_id}"
    if quote.points_applied == 0 or record.has_applied(idempotency_key):
        return None
    available = record.available_points
    if quote.points_applied > available:
        raise InsufficientPoints(
            customer_id=record.customer_id,
            balance=available,
            requested=quote.points_applied,
        )
    expected = redemption_amount(
        balance=available,
        subtotal=subtotal,
        requested_points=quote.points_applied,
        point_value=program.point_value_minor,
    )
    if expected != quote:
        raise ValueError(
            f"Redemption {quote.points_applied} pts / {quote.discount} does not "
            f"match {expected.points_applied} pts / {expected.discount} "
            f"for subtotal {subtotal}."
        )
    return LedgerDelta(
        points=0,
        reason=f"Held for order {order_id}",
        idempotency_key=idempotency_key,
        place_hold=PointHold(order_id=order_id, points=quote.points_applied),
    )


def redemption_debit(
    record: LoyaltyRecord,
    order_id: str,
    points: int,
) -> Optional[LedgerDelta]:
    """
    Debit for a finalized order.

    Consumes the order's hold when one exists. Without a hold the debit
    must fit the unheld balance or the write raises InsufficientPoints;
    it is never clamped.
    """
    if points < 0:
        raise ValueError("points must be >= 0.")
    idempotency_key = f"redeem:{order_id}"
    if record.has_applied(idempotency_key):
        return None
    hold = record.hold_for(order_id)
    if hold is not None:
        points = hold.points
    if points == 0:
        return None
    return LedgerDelta(
        points=-points,
        reason=f"Redeemed on order {order_id}",
        idempotency_key=idempotency_key,
        release_hold=hold.order_id if hold is not None else None,
    )


def release_redemption_hold(
    record: LoyaltyRecord,
    order_id: str,
) -> Optional[LedgerDelta]:
    """Return a cancelled order's held points to the available balance."""
    if record.hold_for(order_id) is None:
        return None
    return LedgerDelta(
        points=0,
        reason=f"Released hold for order {order_id}",
        release_hold=order_id,
    )
