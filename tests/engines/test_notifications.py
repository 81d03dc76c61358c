"""
Tests — Notifications Engine
==============================
In-app notification persistence and best-effort SMS fan-out.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from core.errors import StoreUnavailable
from core.primitives.workflow import CANCELLED, CONFIRMED, PENDING, UPCOMING
from core.time import FixedClock
from engines.notifications.models import (
    TYPE_ERROR,
    TYPE_SUCCESS,
    TYPE_UPDATE,
    Notification,
)
from engines.notifications.repository import InMemoryNotificationStore
from engines.notifications.services import NotificationEmitter, render
from engines.orders.events import (
    ORDER_CANCELLED_V1,
    ORDER_PLACED_V1,
    ORDER_STATUS_CHANGED_V1,
    RESERVATION_BOOKED_V1,
    LifecycleEvent,
)
from engines.orders.models import KIND_ORDER, KIND_RESERVATION
from integration.outbound import MessageChannel, OutboundMessageDispatcher, TransientError

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
CUSTOMER = "cust-001"
ADMIN_PHONE = "0200000000"


class RecordingChannel(MessageChannel):
    def __init__(self, fail_with: Exception = None):
        self.sent = []
        self._fail_with = fail_with

    @property
    def system_id(self) -> str:
        return "recording"

    def deliver(self, recipient: str, message: str) -> bool:
        if self._fail_with is not None:
            raise self._fail_with
        self.sent.append((recipient, message))
        return True


class FailingNotificationStore:
    def add(self, notification):
        raise StoreUnavailable("notifications", "disk full")

    def list_for(self, recipient_id):
        return ()


def _event(event_type, status, kind=KIND_ORDER, **kw):
    return LifecycleEvent(
        event_type=event_type,
        record_id="a1b2c3d4e5f6",
        kind=kind,
        customer_id=CUSTOMER,
        status=status,
        occurred_at=NOW,
        **kw,
    )


def _emitter(channel=None, store=None, admin_phone=ADMIN_PHONE):
    ids = count(1)
    dispatcher = OutboundMessageDispatcher(channel, max_retries=1) if channel else None
    return NotificationEmitter(
        store=store or InMemoryNotificationStore(),
        dispatcher=dispatcher,
        clock=FixedClock(NOW),
        admin_phone=admin_phone,
        id_factory=lambda: f"n-{next(ids)}",
    )


class TestRender:
    def test_cancellation_carries_reason(self):
        ntype, title, body, link = render(
            _event(ORDER_CANCELLED_V1, CANCELLED, reason="Kitchen closed early")
        )
        assert ntype == TYPE_ERROR
        assert title == "Order Cancelled"
        assert "Kitchen closed early" in body
        assert link.href == "/orders/a1b2c3d4e5f6"

    def test_reservation_link(self):
        _, title, _, link = render(_event(RESERVATION_BOOKED_V1, UPCOMING, kind=KIND_RESERVATION))
        assert title == "Reservation Booked"
        assert link.href.startswith("/reservations/")

    def test_status_update_type(self):
        ntype, title, _, _ = render(_event(ORDER_STATUS_CHANGED_V1, CONFIRMED))
        assert ntype == TYPE_UPDATE
        assert title == "Order Confirmed"


class TestNotificationModel:
    def test_recipient_xor_global(self):
        with pytest.raises(ValueError):
            Notification(
                notification_id="n-1", type=TYPE_SUCCESS, title="t", body="b",
                created_at=NOW, recipient_id=CUSTOMER, is_global=True,
            )
        with pytest.raises(ValueError):
            Notification(
                notification_id="n-1", type=TYPE_SUCCESS, title="t", body="b",
                created_at=NOW,
            )

    def test_invalid_type(self):
        with pytest.raises(ValueError):
            Notification(
                notification_id="n-1", type="alert", title="t", body="b",
                created_at=NOW, recipient_id=CUSTOMER,
            )


class TestNotificationEmitter:
    def test_emit_persists_and_texts_customer(self):
        channel = RecordingChannel()
        emitter = _emitter(channel)
        notification = emitter.emit(
            _event(ORDER_STATUS_CHANGED_V1, CONFIRMED, contact_phone="0241111111")
        )
        assert notification.recipient_id == CUSTOMER
        assert emitter.list_for(CUSTOMER) == (notification,)
        assert channel.sent == [("0241111111", "Order Confirmed: " + notification.body)]

    def test_placed_order_also_texts_admin(self):
        channel = RecordingChannel()
        emitter = _emitter(channel)
        emitter.emit(_event(ORDER_PLACED_V1, PENDING, contact_phone="0241111111"))
        recipients = [r for r, _ in channel.sent]
        assert recipients == ["0241111111", ADMIN_PHONE]

    def test_no_phone_no_sms(self):
        channel = RecordingChannel()
        emitter = _emitter(channel, admin_phone=None)
        emitter.emit(_event(ORDER_STATUS_CHANGED_V1, CONFIRMED))
        assert channel.sent == []

    def test_channel_failure_keeps_notification(self, caplog):
        store = InMemoryNotificationStore()
        emitter = _emitter(RecordingChannel(fail_with=TransientError("timeout")), store=store)
        with caplog.at_level("ERROR", logger="eatme.notifications"):
            emitter.emit(
                _event(ORDER_CANCELLED_V1, CANCELLED, reason="No rider", contact_phone="0241111111")
            )
        assert store.count == 1
        assert "SMS to 0241111111 failed" in caplog.text

    def test_unexpected_channel_error_is_logged(self, caplog):
        store = InMemoryNotificationStore()
        emitter = _emitter(RecordingChannel(fail_with=RuntimeError("boom")), store=store)
        with caplog.at_level("ERROR"):
            emitter.emit(_event(ORDER_STATUS_CHANGED_V1, CONFIRMED, contact_phone="024"))
        assert store.count == 1

    def test_store_failure_propagates(self):
        channel = RecordingChannel()
        emitter = _emitter(channel, store=FailingNotificationStore())
        with pytest.raises(StoreUnavailable):
            emitter.emit(_event(ORDER_STATUS_CHANGED_V1, CONFIRMED, contact_phone="024"))
        assert channel.sent == []

    def test_broadcast_is_global(self):
        channel = RecordingChannel()
        emitter = _emitter(channel)
        notification = emitter.broadcast("Weekend Promo", "20% off all jollof")
        assert notification.is_global
        assert notification.type == TYPE_UPDATE
        assert emitter.list_for("anyone") == (notification,)
        assert channel.sent == []


class TestInMemoryNotificationStore:
    def test_newest_first_with_globals(self):
        store = InMemoryNotificationStore()
        older = Notification(
            notification_id="n-1", type=TYPE_SUCCESS, title="Order Placed", body="b",
            created_at=NOW, recipient_id=CUSTOMER,
        )
        promo = Notification(
            notification_id="n-2", type=TYPE_UPDATE, title="Promo", body="b",
            created_at=NOW + timedelta(minutes=5), is_global=True,
        )
        other = Notification(
            notification_id="n-3", type=TYPE_SUCCESS, title="Order Placed", body="b",
            created_at=NOW + timedelta(minutes=10), recipient_id="cust-002",
        )
        for n in (older, promo, other):
            store.add(n)
        assert store.list_for(CUSTOMER) == (promo, older)

    def test_write_once(self):
        store = InMemoryNotificationStore()
        n = Notification(
            notification_id="n-1", type=TYPE_SUCCESS, title="t", body="b",
            created_at=NOW, recipient_id=CUSTOMER,
        )
        store.add(n)
        with pytest.raises(ValueError):
            store.add(n)
