"""
Tests — Loyalty Engine
========================
Accrual rules, redemption calculator, ledger invariants and the
loyalty service over the in-memory ledger store.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from core.errors import InsufficientPoints, RecordNotFound, StoreUnavailable
from core.time import FixedClock
from engines.loyalty.models import (
    CounterMutations,
    HistoryEntry,
    LedgerDelta,
    LoyaltyRecord,
    PointHold,
    apply_delta,
)
from engines.loyalty.policies import (
    LoyaltyProgramPolicy,
    RedemptionQuote,
    birthday_bonus,
    is_birthday,
    new_item_bonus,
    redemption_amount,
    redemption_debit,
    redemption_hold,
    review_bonus,
    spend_points,
)
from engines.loyalty.repository import InMemoryLedgerStore
from engines.loyalty.services import LoyaltyService

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
CUSTOMER = "cust-001"


def _service(program=None):
    clock = FixedClock(NOW)
    store = InMemoryLedgerStore(clock=clock)
    return LoyaltyService(store=store, program=program, clock=clock), store


def _assert_balanced(record: LoyaltyRecord):
    assert record.balance == sum(e.points for e in record.history)


class FailingLedgerStore:
    """Ledger store whose writes always fail."""

    def get(self, customer_id):
        raise RecordNotFound("LoyaltyRecord", customer_id)

    def create_if_absent(self, customer_id):
        raise StoreUnavailable("loyalty_records", "connection refused")

    def apply_delta(self, customer_id, delta):
        raise StoreUnavailable("loyalty_records", "connection refused")

    def apply_rule(self, customer_id, rule):
        raise StoreUnavailable("loyalty_records", "connection refused")


# ══════════════════════════════════════════════════════════════
# LEDGER RECORD
# ══════════════════════════════════════════════════════════════

class TestLoyaltyRecord:
    def test_empty_record(self):
        record = LoyaltyRecord(customer_id=CUSTOMER)
        assert record.balance == 0
        assert record.is_empty

    def test_balance_must_match_history(self):
        with pytest.raises(ValueError, match="Ledger corrupt"):
            LoyaltyRecord(
                customer_id=CUSTOMER,
                balance=100,
                history=(HistoryEntry(NOW, 50, "Tried 1 new item(s)"),),
            )

    def test_history_entry_rejects_zero_points(self):
        with pytest.raises(ValueError):
            HistoryEntry(NOW, 0, "nothing")

    def test_round_trip(self):
        record = apply_delta(
            LoyaltyRecord(customer_id=CUSTOMER),
            LedgerDelta(
                points=100,
                reason="Tried 2 new item(s)",
                counters=CounterMutations(add_items=frozenset({"A", "B"})),
                idempotency_key="items:o-1",
            ),
            NOW,
        ).record
        assert LoyaltyRecord.from_dict(record.to_dict()) == record


class TestApplyDelta:
    def test_appends_one_entry_and_updates_balance(self):
        result = apply_delta(
            LoyaltyRecord(customer_id=CUSTOMER),
            LedgerDelta(points=25, reason="Submitted review #1",
                        counters=CounterMutations(reviews_increment=1)),
            NOW,
        )
        assert result.applied
        assert result.points == 25
        assert result.record.balance == 25
        assert len(result.record.history) == 1
        assert result.record.reviews_rewarded == 1

    def test_duplicate_idempotency_key_is_ignored(self):
        delta = LedgerDelta(points=10, reason="Spent on order o-1", idempotency_key="spend:o-1")
        first = apply_delta(LoyaltyRecord(customer_id=CUSTOMER), delta, NOW)
        second = apply_delta(first.record, delta, NOW)
        assert not second.applied
        assert second.points == 0
        assert second.record is first.record
        assert len(second.record.history) == 1

    def test_negative_balance_rejected(self):
        with pytest.raises(InsufficientPoints) as exc_info:
            apply_delta(
                LoyaltyRecord(customer_id=CUSTOMER),
                LedgerDelta(points=-5, reason="Redeemed on order o-1"),
                NOW,
            )
        assert exc_info.value.balance == 0
        assert exc_info.value.requested == 5

    def test_hold_only_delta_adds_no_history(self):
        funded = apply_delta(
            LoyaltyRecord(customer_id=CUSTOMER),
            LedgerDelta(points=100, reason="Referred friend #1"),
            NOW,
        ).record
        held = apply_delta(
            funded,
            LedgerDelta(points=0, reason="Held for order o-1",
                        place_hold=PointHold("o-1", 60)),
            NOW,
        ).record
        assert held.balance == 100
        assert held.available_points == 40
        assert len(held.history) == 1
        assert LoyaltyRecord.from_dict(held.to_dict()) == held

    def test_debit_cannot_spend_held_points(self):
        record = LoyaltyRecord(
            customer_id=CUSTOMER,
            balance=100,
            history=(HistoryEntry(NOW, 100, "Referred friend #1"),),
            holds=(PointHold("o-1", 80),),
        )
        with pytest.raises(InsufficientPoints) as exc_info:
            apply_delta(record, LedgerDelta(points=-30, reason="Redeemed on order o-2"), NOW)
        assert exc_info.value.balance == 20

    def test_zero_point_delta_needs_a_hold_change(self):
        with pytest.raises(ValueError):
            LedgerDelta(points=0, reason="nothing")

    def test_holds_cannot_exceed_balance(self):
        with pytest.raises(ValueError, match="Ledger corrupt"):
            LoyaltyRecord(customer_id=CUSTOMER, holds=(PointHold("o-1", 10),))


# ══════════════════════════════════════════════════════════════
# RULES
# ══════════════════════════════════════════════════════════════

class TestAccrualRules:
    def test_new_item_bonus_counts_only_new_items(self):
        record = LoyaltyRecord(customer_id=CUSTOMER, distinct_items_tried=frozenset({"A"}))
        delta = new_item_bonus(record, ["A", "B", "C"])
        assert delta.points == 100
        assert delta.reason == "Tried 2 new item(s)"
        assert delta.counters.add_items == frozenset({"B", "C"})

    def test_new_item_bonus_none_when_nothing_new(self):
        record = LoyaltyRecord(customer_id=CUSTOMER, distinct_items_tried=frozenset({"A"}))
        assert new_item_bonus(record, ["A"]) is None
        assert new_item_bonus(record, []) is None

    def test_review_bonus_at_cap(self):
        record = LoyaltyRecord(customer_id=CUSTOMER, reviews_rewarded=8)
        assert review_bonus(record) is None

    def test_spend_points_floor(self):
        record = LoyaltyRecord(customer_id=CUSTOMER)
        delta = spend_points(record, "o-9", 4599)
        assert delta.points == 4
        assert delta.idempotency_key == "spend:o-9"
        assert spend_points(record, "o-9", 999) is None

    def test_birthday_bonus_only_on_birthday(self):
        record = LoyaltyRecord(customer_id=CUSTOMER)
        assert birthday_bonus(record, date(1990, 6, 2), date(2025, 6, 1)) is None
        delta = birthday_bonus(record, date(1990, 6, 1), date(2025, 6, 1))
        assert delta.points == 200
        assert delta.counters.birthday_year == 2025

    def test_leap_day_birthday(self):
        born = date(2000, 2, 29)
        assert is_birthday(born, date(2025, 2, 28))
        assert not is_birthday(born, date(2024, 2, 28))
        assert is_birthday(born, date(2024, 2, 29))


class TestRedemptionCalculator:
    def test_discount_never_exceeds_subtotal(self):
        quote = redemption_amount(balance=1_000_000, subtotal=50, requested_points=10_000)
        assert quote.discount <= 50
        assert quote.points_applied == 10

    def test_limited_by_balance(self):
        quote = redemption_amount(balance=30, subtotal=10_000, requested_points=100)
        assert quote.points_applied == 30
        assert quote.discount == 150

    def test_none_requested_applies_all(self):
        quote = redemption_amount(balance=40, subtotal=10_000)
        assert quote.points_applied == 40

    def test_partial_point_rounds_up_but_discount_capped(self):
        quote = redemption_amount(balance=100, subtotal=12, point_value=5)
        assert quote.points_applied == 3
        assert quote.discount == 12

    @pytest.mark.parametrize("kwargs", [
        {"balance": -1, "subtotal": 10},
        {"balance": 1, "subtotal": -10},
        {"balance": 1, "subtotal": 10, "requested_points": -3},
    ])
    def test_negative_inputs_rejected(self, kwargs):
        with pytest.raises(ValueError):
            redemption_amount(**kwargs)


class TestProgramPolicy:
    def test_defaults(self):
        program = LoyaltyProgramPolicy()
        assert program.review_cap == 8
        assert program.point_value_minor == 5

    def test_from_mapping_overrides(self):
        program = LoyaltyProgramPolicy.from_mapping({"review_cap": 3})
        assert program.review_cap == 3
        assert program.new_item_points == 50

    def test_from_mapping_rejects_unknown(self):
        with pytest.raises(ValueError, match="Unknown loyalty settings"):
            LoyaltyProgramPolicy.from_mapping({"cashback": 1})


# ══════════════════════════════════════════════════════════════
# SERVICE
# ══════════════════════════════════════════════════════════════

class TestLoyaltyService:
    def test_new_item_scenario(self):
        service, _ = _service()
        assert service.award_new_item_bonus(CUSTOMER, {"A", "B"}) == 100
        assert service.award_new_item_bonus(CUSTOMER, {"A", "B"}) == 0
        assert service.award_new_item_bonus(CUSTOMER, {"A", "C"}) == 50
        record = service.get_loyalty_record(CUSTOMER)
        assert record.balance == 150
        assert record.distinct_items_tried == frozenset({"A", "B", "C"})
        _assert_balanced(record)

    def test_ninth_review_awards_nothing(self):
        service, _ = _service()
        for _ in range(8):
            assert service.award_review_bonus(CUSTOMER) == 25
        assert service.award_review_bonus(CUSTOMER) == 0
        record = service.get_loyalty_record(CUSTOMER)
        assert record.reviews_rewarded == 8
        assert record.balance == 200
        assert record.history[-1].reason == "Submitted review #8"

    def test_birthday_once_per_year(self):
        service, _ = _service()
        born = date(1995, 6, 1)
        assert service.award_birthday_bonus(CUSTOMER, born, date(2025, 6, 1)) == 200
        assert service.award_birthday_bonus(CUSTOMER, born, date(2025, 6, 1)) == 0
        assert service.award_birthday_bonus(CUSTOMER, born, date(2026, 6, 1)) == 200

    def test_birthday_defaults_to_clock_date(self):
        service, _ = _service()
        assert service.award_birthday_bonus(CUSTOMER, date(1995, 6, 1)) == 200

    def test_referral_cap(self):
        service, _ = _service()
        awarded = [service.award_referral_bonus(CUSTOMER) for _ in range(11)]
        assert sum(awarded) == 1000
        assert awarded[-1] == 0

    def test_idempotency_key_single_entry(self):
        service, _ = _service()
        assert service.award_review_bonus(CUSTOMER, idempotency_key="review:r1") == 25
        assert service.award_review_bonus(CUSTOMER, idempotency_key="review:r1") == 0
        record = service.get_loyalty_record(CUSTOMER)
        assert len(record.history) == 1
        assert record.reviews_rewarded == 1

    def test_spend_points_once_per_order(self):
        service, _ = _service()
        assert service.award_spend_points(CUSTOMER, "o-1", 12_500) == 12
        assert service.award_spend_points(CUSTOMER, "o-1", 12_500) == 0

    def test_compute_redemption_reads_balance(self):
        service, _ = _service()
        service.award_new_item_bonus(CUSTOMER, ["A", "B"])
        quote = service.compute_redemption(CUSTOMER, 10_000, 50)
        assert quote.discount <= 50
        quote = service.compute_redemption(CUSTOMER, None, 100_000)
        assert quote.points_applied == 100
        assert quote.discount == 500
        # a quote never writes
        assert service.get_loyalty_record(CUSTOMER).balance == 100

    def test_unknown_customer_gets_empty_record(self):
        service, store = _service()
        record = service.get_loyalty_record("nobody")
        assert record.balance == 0
        with pytest.raises(RecordNotFound):
            store.get("nobody")

    def test_redeem_for_order_once(self):
        service, _ = _service()
        service.award_new_item_bonus(CUSTOMER, ["A", "B"])
        assert service.redeem_for_order(CUSTOMER, "o-1", 60) == 60
        assert service.redeem_for_order(CUSTOMER, "o-1", 60) == 0
        record = service.get_loyalty_record(CUSTOMER)
        assert record.balance == 40
        assert record.history[-1].points == -60
        _assert_balanced(record)

    def test_redeem_never_clamped(self):
        service, _ = _service()
        service.award_review_bonus(CUSTOMER)
        with pytest.raises(InsufficientPoints):
            service.redeem_for_order(CUSTOMER, "o-2", 100)
        record = service.get_loyalty_record(CUSTOMER)
        assert record.balance == 25
        assert not record.has_applied("redeem:o-2")

    def test_redeem_on_empty_ledger_registers_nothing(self):
        service, _ = _service()
        with pytest.raises(InsufficientPoints):
            service.redeem_for_order(CUSTOMER, "o-3", 10)
        service.award_referral_bonus(CUSTOMER)
        record = service.get_loyalty_record(CUSTOMER)
        assert record.balance == 100
        assert not record.has_applied("redeem:o-3")

    def test_store_errors_propagate(self):
        service = LoyaltyService(store=FailingLedgerStore())
        with pytest.raises(StoreUnavailable):
            service.award_review_bonus(CUSTOMER)


class TestCheckoutBonuses:
    def test_runs_each_rule(self):
        service, _ = _service()
        summary = service.award_checkout_bonuses(
            CUSTOMER, "o-1", ["A", "B"], 25_000,
            birth_date=date(1999, 6, 1), today=date(2025, 6, 1),
        )
        assert summary.new_item_points == 100
        assert summary.spend_points == 25
        assert summary.birthday_points == 200
        assert summary.total == 325
        assert service.get_loyalty_record(CUSTOMER).balance == 325

    def test_retry_does_not_double_award(self):
        service, _ = _service()
        service.award_checkout_bonuses(CUSTOMER, "o-1", ["A"], 5_000)
        again = service.award_checkout_bonuses(CUSTOMER, "o-1", ["A"], 5_000)
        assert again.total == 0

    def test_failures_are_non_fatal(self, caplog):
        service = LoyaltyService(store=FailingLedgerStore())
        with caplog.at_level("WARNING", logger="eatme.loyalty"):
            summary = service.award_checkout_bonuses(CUSTOMER, "o-1", ["A"], 5_000)
        assert summary.total == 0
        assert "new_item_bonus" in caplog.text
        assert "spend_points" in caplog.text


class TestInMemoryLedgerStore:
    def test_rule_evaluated_against_current_state(self):
        store = InMemoryLedgerStore(clock=FixedClock(NOW))
        store.apply_rule(CUSTOMER, lambda r: new_item_bonus(r, ["A"]))
        result = store.apply_rule(CUSTOMER, lambda r: new_item_bonus(r, ["A"]))
        assert not result.applied
        assert store.get(CUSTOMER).balance == 50

    def test_insufficient_points_writes_nothing(self):
        store = InMemoryLedgerStore(clock=FixedClock(NOW))
        store.apply_delta(CUSTOMER, LedgerDelta(points=10, reason="Referred friend #1"))
        with pytest.raises(InsufficientPoints):
            store.apply_delta(CUSTOMER, LedgerDelta(points=-20, reason="Redeemed on order o-1"))
        assert store.get(CUSTOMER).balance == 10

    def test_create_if_absent(self):
        store = InMemoryLedgerStore()
        assert store.create_if_absent(CUSTOMER).balance == 0
        assert store.get(CUSTOMER).customer_id == CUSTOMER


class TestRedemptionHolds:
    def _funded(self, points=100):
        service, store = _service()
        store.apply_delta(CUSTOMER, LedgerDelta(points=points, reason="Referred friend #1"))
        return service, store

    def test_quote_without_points_rejected(self):
        service, store = _service()
        with pytest.raises(InsufficientPoints):
            service.hold_for_order(
                "nobody", "o-1", RedemptionQuote(points_applied=2000, discount=10_000), 10_000
            )
        with pytest.raises(RecordNotFound):
            store.get("nobody")

    def test_quote_discount_must_match_points(self):
        service, store = self._funded()
        with pytest.raises(ValueError):
            service.hold_for_order(
                CUSTOMER, "o-1", RedemptionQuote(points_applied=100, discount=400), 10_000
            )
        assert store.get(CUSTOMER).holds == ()

    def test_held_points_cannot_back_a_second_order(self):
        service, _ = self._funded()
        quote = service.compute_redemption(CUSTOMER, None, 10_000)
        assert service.hold_for_order(CUSTOMER, "o-1", quote, 10_000) == 100
        assert service.compute_redemption(CUSTOMER, None, 10_000).points_applied == 0
        with pytest.raises(InsufficientPoints):
            service.hold_for_order(CUSTOMER, "o-2", quote, 10_000)
        record = service.get_loyalty_record(CUSTOMER)
        assert record.balance == 100
        assert record.holds == (PointHold("o-1", 100),)

    def test_hold_retry_is_idempotent(self):
        service, _ = self._funded()
        quote = RedemptionQuote(points_applied=60, discount=300)
        service.hold_for_order(CUSTOMER, "o-1", quote, 10_000)
        service.hold_for_order(CUSTOMER, "o-1", quote, 10_000)
        assert service.get_loyalty_record(CUSTOMER).held_points == 60

    def test_debit_consumes_hold(self):
        service, _ = self._funded()
        service.hold_for_order(CUSTOMER, "o-1", RedemptionQuote(60, 300), 10_000)
        assert service.redeem_for_order(CUSTOMER, "o-1", 60) == 60
        assert service.redeem_for_order(CUSTOMER, "o-1", 60) == 0
        record = service.get_loyalty_record(CUSTOMER)
        assert record.balance == 40
        assert record.holds == ()
        assert record.history[-1].reason == "Redeemed on order o-1"
        _assert_balanced(record)

    def test_release_returns_points(self):
        service, _ = self._funded()
        service.hold_for_order(CUSTOMER, "o-1", RedemptionQuote(60, 300), 10_000)
        assert service.release_for_order(CUSTOMER, "o-1")
        assert not service.release_for_order(CUSTOMER, "o-1")
        record = service.get_loyalty_record(CUSTOMER)
        assert record.available_points == 100
        assert len(record.history) == 1

    def test_rules_are_pure(self):
        record = LoyaltyRecord(
            customer_id=CUSTOMER,
            balance=50,
            history=(HistoryEntry(NOW, 50, "Tried 1 new item(s)"),),
        )
        hold = redemption_hold(record, "o-1", RedemptionQuote(50, 250), 10_000)
        assert hold.points == 0
        assert hold.place_hold == PointHold("o-1", 50)
        debit = redemption_debit(record, "o-1", 50)
        assert debit.points == -50
        assert debit.release_hold is None
