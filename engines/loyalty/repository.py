"""
EATME Loyalty Engine — Ledger Store
=====================================
Protocol + InMemory and Django implementations for durable, keyed
storage of one LoyaltyRecord per customer.

Doctrine:
- The store is a dependency injection point (testable, swappable).
- A rule is evaluated against the locked current record and its delta
  is applied in the same atomic unit.
- At most one history entry per applied write; hold-only writes add none.
- Database failures surface as StoreUnavailable; writes are never dropped.
- No business rules live here.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Callable, Dict, Optional, Protocol

from django.db import DatabaseError, transaction

from core.errors import RecordNotFound, StoreUnavailable
from core.time import Clock, SystemClock
from engines.loyalty.models import (
    HistoryEntry,
    PointHold,
    LedgerDelta,
    LedgerWriteResult,
    LoyaltyRecord,
    apply_delta,
)

Rule = Callable[[LoyaltyRecord], Optional[LedgerDelta]]


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

class LedgerStore(Protocol):
    def get(self, customer_id: str) -> LoyaltyRecord:
        """Return the record, or raise RecordNotFound."""
        ...

    def create_if_absent(self, customer_id: str) -> LoyaltyRecord:
        ...

    def apply_delta(self, customer_id: str, delta: LedgerDelta) -> LedgerWriteResult:
        ...

    def apply_rule(self, customer_id: str, rule: Rule) -> LedgerWriteResult:
        """
        Lock the record (creating it if absent), evaluate rule against it
        and apply the resulting delta atomically. A rule returning None
        writes nothing.
        """
        ...


def _constant(delta: LedgerDelta) -> Rule:
    return lambda record: delta


# ---------------------------------------------------------------------------
# InMemory Store (deterministic, thread-safe for tests)
# ---------------------------------------------------------------------------

class InMemoryLedgerStore:
    """Lock-guarded dict of customer_id → LoyaltyRecord."""

    def __init__(self, clock: Optional[Clock] = None):
        self._lock = threading.Lock()
        self._records: Dict[str, LoyaltyRecord] = {}
        self._clock = clock or SystemClock()

    def get(self, customer_id: str) -> LoyaltyRecord:
        with self._lock:
            record = self._records.get(customer_id)
        if record is None:
            raise RecordNotFound("LoyaltyRecord", customer_id)
        return record

    def create_if_absent(self, customer_id: str) -> LoyaltyRecord:
        with self._lock:
            return self._records.setdefault(
                customer_id, LoyaltyRecord(customer_id=customer_id)
            )

    def apply_delta(self, customer_id: str, delta: LedgerDelta) -> LedgerWriteResult:
        return self.apply_rule(customer_id, _constant(delta))

    def apply_rule(self, customer_id: str, rule: Rule) -> LedgerWriteResult:
        with self._lock:
            current = self._records.get(customer_id) or LoyaltyRecord(
                customer_id=customer_id
            )
            delta = rule(current)
            if delta is None:
                self._records.setdefault(customer_id, current)
                return LedgerWriteResult(record=current, applied=False, points=0)
            result = apply_delta(current, delta, self._clock.now_utc())
            self._records[customer_id] = result.record
            return result


# ---------------------------------------------------------------------------
# Django Store
# ---------------------------------------------------------------------------

def _record_from_row(row) -> LoyaltyRecord:
    return LoyaltyRecord(
        customer_id=row.customer_id,
        balance=row.balance,
        history=tuple(HistoryEntry.from_dict(entry) for entry in row.history),
        distinct_items_tried=frozenset(row.distinct_items_tried),
        reviews_rewarded=row.reviews_rewarded,
        last_birthday_reward_year=row.last_birthday_reward_year,
        referrals_rewarded=row.referrals_rewarded,
        applied_idempotency_keys=frozenset(row.applied_idempotency_keys),
        holds=tuple(PointHold.from_dict(hold) for hold in row.holds),
    )


def _write_record_to_row(row, record: LoyaltyRecord, at: datetime) -> None:
    data = record.to_dict()
    row.balance = data["balance"]
    row.history = data["history"]
    row.distinct_items_tried = data["distinct_items_tried"]
    row.reviews_rewarded = data["reviews_rewarded"]
    row.last_birthday_reward_year = data["last_birthday_reward_year"]
    row.referrals_rewarded = data["referrals_rewarded"]
    row.applied_idempotency_keys = data["applied_idempotency_keys"]
    row.holds = data["holds"]
    row.updated_at = at
    row.save()


class DjangoLedgerStore:
    """
    Ledger Store backed by core.document_store.

    apply_rule runs inside transaction.atomic() with the record row
    locked via select_for_update().
    """

    STORE_NAME = "loyalty_records"

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or SystemClock()

    def _locked_row(self, customer_id: str):
        from core.document_store.models import LoyaltyRecordDocument

        now = self._clock.now_utc()
        row, _ = LoyaltyRecordDocument.objects.select_for_update().get_or_create(
            customer_id=customer_id,
            defaults={"created_at": now, "updated_at": now},
        )
        return row

    def get(self, customer_id: str) -> LoyaltyRecord:
        from core.document_store.models import LoyaltyRecordDocument

        try:
            row = LoyaltyRecordDocument.objects.filter(customer_id=customer_id).first()
        except DatabaseError as exc:
            raise StoreUnavailable(self.STORE_NAME, str(exc)) from exc
        if row is None:
            raise RecordNotFound("LoyaltyRecord", customer_id)
        return _record_from_row(row)

    def create_if_absent(self, customer_id: str) -> LoyaltyRecord:
        try:
            with transaction.atomic():
                return _record_from_row(self._locked_row(customer_id))
        except DatabaseError as exc:
            raise StoreUnavailable(self.STORE_NAME, str(exc)) from exc

    def apply_delta(self, customer_id: str, delta: LedgerDelta) -> LedgerWriteResult:
        return self.apply_rule(customer_id, _constant(delta))

    def apply_rule(self, customer_id: str, rule: Rule) -> LedgerWriteResult:
        try:
            with transaction.atomic():
                row = self._locked_row(customer_id)
                current = _record_from_row(row)
                delta = rule(current)
                if delta is None:
                    return LedgerWriteResult(record=current, applied=False, points=0)
                now = self._clock.now_utc()
                result = apply_delta(current, delta, now)
                if result.applied:
                    _write_record_to_row(row, result.record, now)
                return result
        except DatabaseError as exc:
            raise StoreUnavailable(self.STORE_NAME, str(exc)) from exc
