"""
EATME Notifications Engine — Notification Emitter
===================================================
Turns lifecycle events into in-app notifications and best-effort SMS.

Order of work:
    1. Build and persist the in-app notification (store errors propagate)
    2. Send SMS to the event's contact phone, and to the admin phone for
       newly placed orders/reservations (failures logged, never raised)
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable, Optional, Tuple

from core.primitives.workflow import (
    CANCELLED,
    COMPLETED,
    CONFIRMED,
    PENDING,
    READY,
    UPCOMING,
)
from core.time import Clock, SystemClock
from engines.notifications.models import (
    TYPE_ERROR,
    TYPE_INFO,
    TYPE_SUCCESS,
    TYPE_UPDATE,
    Notification,
    NotificationLink,
)
from engines.notifications.repository import NotificationStore
from engines.orders.events import LifecycleEvent
from integration.outbound import OutboundMessageDispatcher

logger = logging.getLogger("eatme.notifications")


# ── Templates ─────────────────────────────────────────────────

# status → (type, title, body); {label} is "Order" or "Reservation"
_STATUS_TEMPLATES = {
    PENDING: (TYPE_SUCCESS, "{label} Placed", "Your {noun} has been received and is awaiting confirmation."),
    UPCOMING: (TYPE_SUCCESS, "{label} Booked", "Your {noun} is booked. We look forward to hosting you."),
    CONFIRMED: (TYPE_UPDATE, "{label} Confirmed", "Your {noun} has been confirmed and is being prepared."),
    READY: (TYPE_UPDATE, "{label} Ready", "Your {noun} is ready."),
    COMPLETED: (TYPE_SUCCESS, "{label} Completed", "Your {noun} is complete. Thank you for choosing EATME!"),
    CANCELLED: (TYPE_ERROR, "{label} Cancelled", "Your {noun} was cancelled. Reason: {reason}"),
}


def _short_id(record_id: str) -> str:
    return record_id[:8].upper()


def render(event: LifecycleEvent) -> Tuple[str, str, str, NotificationLink]:
    """Return (type, title, body, link) for a lifecycle event."""
    label = "Reservation" if event.is_reservation else "Order"
    noun = f"{label.lower()} #{_short_id(event.record_id)}"
    ntype, title, body = _STATUS_TEMPLATES.get(
        event.status,
        (TYPE_INFO, "{label} Updated", "Your {noun} is now " + event.status + "."),
    )
    path = "reservations" if event.is_reservation else "orders"
    link = NotificationLink(href=f"/{path}/{event.record_id}", text=f"View {label}")
    return (
        ntype,
        title.format(label=label),
        body.format(noun=noun, reason=event.reason or ""),
        link,
    )


def _new_notification_id() -> str:
    return uuid.uuid4().hex


class NotificationEmitter:
    def __init__(
        self,
        *,
        store: NotificationStore,
        dispatcher: Optional[OutboundMessageDispatcher] = None,
        clock: Optional[Clock] = None,
        admin_phone: Optional[str] = None,
        id_factory: Callable[[], str] = _new_notification_id,
    ):
        self._store = store
        self._dispatcher = dispatcher
        self._clock = clock or SystemClock()
        self._admin_phone = admin_phone
        self._id_factory = id_factory

    def emit(self, event: LifecycleEvent) -> Notification:
        ntype, title, body, link = render(event)
        notification = Notification(
            notification_id=self._id_factory(),
            type=ntype,
            title=title,
            body=body,
            created_at=self._clock.now_utc(),
            recipient_id=event.customer_id,
            link=link,
        )
        self._store.add(notification)
        logger.info(
            f"Notified {event.customer_id}: {title} ({event.record_id})"
        )

        if event.contact_phone:
            self._send_sms(event.contact_phone, f"{title}: {body}")
        if event.is_placed and self._admin_phone:
            label = "reservation" if event.is_reservation else "order"
            self._send_sms(
                self._admin_phone,
                f"New {label} #{_short_id(event.record_id)} "
                f"from {event.customer_id}.",
            )
        return notification

    def broadcast(self, title: str, body: str, type: str = TYPE_UPDATE) -> Notification:
        """Global notification shown to every customer. No SMS."""
        notification = Notification(
            notification_id=self._id_factory(),
            type=type,
            title=title,
            body=body,
            created_at=self._clock.now_utc(),
            is_global=True,
        )
        self._store.add(notification)
        logger.info(f"Broadcast notification: {title}")
        return notification

    def list_for(self, recipient_id: str) -> Tuple[Notification, ...]:
        return self._store.list_for(recipient_id)

    def _send_sms(self, recipient: str, message: str) -> None:
        if self._dispatcher is None:
            return
        try:
            result = self._dispatcher.send(recipient, message)
        except Exception as exc:
            logger.error(f"SMS to {recipient} failed: {exc}", exc_info=True)
            return
        if not result.success:
            logger.error(
                f"SMS to {recipient} failed after {result.retry_count} "
                f"retries: {result.error_message}"
            )
