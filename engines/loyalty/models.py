"""
EATME Loyalty Engine — Ledger Records
=======================================
The per-customer loyalty record, its history entries, and the delta
applied to it by accrual and redemption.

RULES:
- balance == sum(history[].points), verified at construction
- history is append-only; every entry carries non-zero points
- distinct_items_tried only grows
- An idempotency key produces at most one history entry
- Held points never exceed the balance; one hold per order

apply_delta() is pure: it never touches a store.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import FrozenSet, Optional, Tuple

from core.errors import InsufficientPoints


# ══════════════════════════════════════════════════════════════
# HISTORY ENTRY
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class HistoryEntry:
    timestamp: datetime
    points: int
    reason: str

    def __post_init__(self):
        if not isinstance(self.timestamp, datetime):
            raise TypeError("timestamp must be datetime.")
        if not isinstance(self.points, int) or isinstance(self.points, bool):
            raise TypeError("points must be int.")
        if self.points == 0:
            raise ValueError("History entry points must be non-zero.")
        if not self.reason or not isinstance(self.reason, str):
            raise ValueError("reason must be non-empty string.")

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "points": self.points,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: dict) -> HistoryEntry:
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            points=int(data["points"]),
            reason=data["reason"],
        )


# ══════════════════════════════════════════════════════════════
# POINT HOLD
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PointHold:
    """Points set aside for an open order until it completes or is cancelled."""
    order_id: str
    points: int

    def __post_init__(self):
        if not self.order_id or not isinstance(self.order_id, str):
            raise ValueError("order_id must be non-empty string.")
        if not isinstance(self.points, int) or isinstance(self.points, bool):
            raise TypeError("points must be int.")
        if self.points <= 0:
            raise ValueError("Held points must be > 0.")

    def to_dict(self) -> dict:
        return {"order_id": self.order_id, "points": self.points}

    @classmethod
    def from_dict(cls, data: dict) -> PointHold:
        return cls(order_id=data["order_id"], points=int(data["points"]))


# ══════════════════════════════════════════════════════════════
# LOYALTY RECORD
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LoyaltyRecord:
    """
    One customer's loyalty state.

    Fields:
        customer_id:               Stable customer identifier
        balance:                   Current points (never negative)
        history:                   Append-only point deltas
        distinct_items_tried:      Items that already earned a new-item bonus
        reviews_rewarded:          Reviews that earned a bonus
        last_birthday_reward_year: Calendar year of the last birthday bonus
        referrals_rewarded:        Referrals that earned a bonus
        applied_idempotency_keys:  Keys that already produced an entry
        holds:                     Points reserved by open orders
    """
    customer_id: str
    balance: int = 0
    history: Tuple[HistoryEntry, ...] = ()
    distinct_items_tried: FrozenSet[str] = frozenset()
    reviews_rewarded: int = 0
    last_birthday_reward_year: Optional[int] = None
    referrals_rewarded: int = 0
    applied_idempotency_keys: FrozenSet[str] = frozenset()
    holds: Tuple[PointHold, ...] = ()

    def __post_init__(self):
        if not self.customer_id or not isinstance(self.customer_id, str):
            raise ValueError("customer_id must be non-empty string.")
        if self.balance < 0:
            raise ValueError("balance must be >= 0.")
        total = sum(entry.points for entry in self.history)
        if total != self.balance:
            raise ValueError(
                f"Ledger corrupt for '{self.customer_id}': balance "
                f"{self.balance} != history total {total}."
            )
        if self.reviews_rewarded < 0:
            raise ValueError("reviews_rewarded must be >= 0.")
        if self.referrals_rewarded < 0:
            raise ValueError("referrals_rewarded must be >= 0.")
        order_ids = [hold.order_id for hold in self.holds]
        if len(order_ids) != len(set(order_ids)):
            raise ValueError("At most one hold per order.")
        if self.held_points > self.balance:
            raise ValueError(
                f"Ledger corrupt for '{self.customer_id}': {self.held_points} "
                f"points held against a balance of {self.balance}."
            )

    @property
    def is_empty(self) -> bool:
        return not self.history

    @property
    def held_points(self) -> int:
        return sum(hold.points for hold in self.holds)

    @property
    def available_points(self) -> int:
        """Balance not yet reserved by an open order."""
        return self.balance - self.held_points

    def hold_for(self, order_id: str) -> Optional[PointHold]:
        for hold in self.holds:
            if hold.order_id == order_id:
                return hold
        return None

    def has_applied(self, idempotency_key: Optional[str]) -> bool:
        return idempotency_key is not None and idempotency_key in self.applied_idempotency_keys

    def to_dict(self) -> dict:
        return {
            "customer_id": self.customer_id,
            "balance": self.balance,
            "history": [entry.to_dict() for entry in self.history],
            "distinct_items_tried": sorted(self.distinct_items_tried),
            "reviews_rewarded": self.reviews_rewarded,
            "last_birthday_reward_year": self.last_birthday_reward_year,
            "referrals_rewarded": self.referrals_rewarded,
            "applied_idempotency_keys": sorted(self.applied_idempotency_keys),
            "holds": [hold.to_dict() for hold in self.holds],
        }

    @classmethod
    def from_dict(cls, data: dict) -> LoyaltyRecord:
        return cls(
            customer_id=data["customer_id"],
            balance=int(data.get("balance", 0)),
            history=tuple(
                HistoryEntry.from_dict(entry) for entry in data.get("history", [])
            ),
            distinct_items_tried=frozenset(data.get("distinct_items_tried", [])),
            reviews_rewarded=int(data.get("reviews_rewarded", 0)),
            last_birthday_reward_year=data.get("last_birthday_reward_year"),
            referrals_rewarded=int(data.get("referrals_rewarded", 0)),
            applied_idempotency_keys=frozenset(
                data.get("applied_idempotency_keys", [])
            ),
            holds=tuple(PointHold.from_dict(hold) for hold in data.get("holds", [])),
        )


# ══════════════════════════════════════════════════════════════
# DELTA
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CounterMutations:
    add_items: FrozenSet[str] = frozenset()
    reviews_increment: int = 0
    referrals_increment: int = 0
    birthday_year: Optional[int] = None

    def __post_init__(self):
        if self.reviews_increment < 0 or self.referrals_increment < 0:
            raise ValueError("Counter increments must be >= 0.")


@dataclass(frozen=True)
class LedgerDelta:
    """
    One ledger write: a history entry plus the counter changes that go
    with it, and optionally a hold placed or released for an order.

    A delta that only moves a hold carries zero points and appends no
    history entry.
    """
    points: int
    reason: str
    counters: CounterMutations = field(default_factory=CounterMutations)
    idempotency_key: Optional[str] = None
    place_hold: Optional[PointHold] = None
    release_hold: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.points, int) or isinstance(self.points, bool):
            raise TypeError("points must be int.")
        if self.points == 0 and self.place_hold is None and self.release_hold is None:
            raise ValueError("LedgerDelta must move points or change a hold.")
        if not self.reason:
            raise ValueError("reason must be non-empty.")
        if self.idempotency_key is not None and not self.idempotency_key:
            raise ValueError("idempotency_key must be non-empty when given.")


@dataclass(frozen=True)
class LedgerWriteResult:
    record: LoyaltyRecord
    applied: bool
    points: int


def apply_delta(
    record: LoyaltyRecord,
    delta: LedgerDelta,
    at: datetime,
) -> LedgerWriteResult:
    """
    Return the next record after applying delta.

    A delta whose idempotency key is already registered is ignored.
    Raises InsufficientPoints if the debit plus any new hold exceeds the
    points not held by other orders.
    """
    if record.has_applied(delta.idempotency_key):
        return LedgerWriteResult(record=record, applied=False, points=0)

    holds = record.holds
    if delta.release_hold is not None:
        holds = tuple(hold for hold in holds if hold.order_id != delta.release_hold)

    available = record.balance - sum(hold.points for hold in holds)
    requested = -delta.points
    if delta.place_hold is not None:
        if any(hold.order_id == delta.place_hold.order_id for hold in holds):
            raise ValueError(
                f"Order '{delta.place_hold.order_id}' already holds points."
            )
        requested += delta.place_hold.points
        holds = holds + (delta.place_hold,)
    if requested > available:
        raise InsufficientPoints(
            customer_id=record.customer_id,
            balance=available,
            requested=requested,
        )

    counters = delta.counters
    keys = record.applied_idempotency_keys
    if delta.idempotency_key is not None:
        keys = keys | {delta.idempotency_key}

    history = record.history
    if delta.points != 0:
        history = history + (
            HistoryEntry(timestamp=at, points=delta.points, reason=delta.reason),
        )

    next_record = replace(
        record,
        balance=record.balance + delta.points,
        history=history,
        distinct_items_tried=record.distinct_items_tried | counters.add_items,
        reviews_rewarded=record.reviews_rewarded + counters.reviews_increment,
        referrals_rewarded=record.referrals_rewarded + counters.referrals_increment,
        last_birthday_reward_year=(
            counters.birthday_year
            if counters.birthday_year is not None
            else record.last_birthday_reward_year
        ),
        applied_idempotency_keys=keys,
        holds=holds,
    )
    return LedgerWriteResult(record=next_record, applied=True, points=delta.points)
