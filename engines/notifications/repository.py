"""
EATME Notifications Engine — Notification Store
=================================================
Protocol + InMemory and Django implementations. Write-once.
"""

from __future__ import annotations

import threading
from typing import List, Protocol, Tuple

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Q

from core.errors import StoreUnavailable
from engines.notifications.models import Notification, NotificationLink


class NotificationStore(Protocol):
    def add(self, notification: Notification) -> Notification:
        ...

    def list_for(self, recipient_id: str) -> Tuple[Notification, ...]:
        """Recipient's own notifications plus global ones, newest first."""
        ...


class InMemoryNotificationStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._notifications: List[Notification] = []

    def add(self, notification: Notification) -> Notification:
        with self._lock:
            if any(
                n.notification_id == notification.notification_id
                for n in self._notifications
            ):
                raise ValueError(
                    f"Notification '{notification.notification_id}' already exists."
                )
            self._notifications.append(notification)
        return notification

    def list_for(self, recipient_id: str) -> Tuple[Notification, ...]:
        with self._lock:
            visible = [n for n in self._notifications if n.visible_to(recipient_id)]
        # equal timestamps: most recently added first
        visible.reverse()
        return tuple(sorted(visible, key=lambda n: n.created_at, reverse=True))

    @property
    def count(self) -> int:
        return len(self._notifications)


def _notification_from_row(row) -> Notification:
    return Notification(
        notification_id=row.notification_id,
        type=row.type,
        title=row.title,
        body=row.body,
        created_at=row.created_at,
        recipient_id=row.recipient_id or None,
        is_global=row.is_global,
        is_read=row.is_read,
        link=NotificationLink.from_dict(row.link) if row.link else None,
    )


class DjangoNotificationStore:
    STORE_NAME = "notifications"

    def add(self, notification: Notification) -> Notification:
        from core.document_store.models import NotificationDocument

        try:
            with transaction.atomic():
                NotificationDocument.objects.create(
                    notification_id=notification.notification_id,
                    recipient_id=notification.recipient_id or "",
                    is_global=notification.is_global,
                    type=notification.type,
                    title=notification.title,
                    body=notification.body,
                    link=notification.link.to_dict() if notification.link else None,
                    is_read=notification.is_read,
                    created_at=notification.created_at,
                )
        except IntegrityError as exc:
            raise ValueError(
                f"Notification '{notification.notification_id}' already exists."
            ) from exc
        except DatabaseError as exc:
            raise StoreUnavailable(self.STORE_NAME, str(exc)) from exc
        return notification

    def list_for(self, recipient_id: str) -> Tuple[Notification, ...]:
        from core.document_store.models import NotificationDocument

        try:
            rows = list(
                NotificationDocument.objects.filter(
                    Q(recipient_id=recipient_id) | Q(is_global=True)
                ).order_by("-created_at")
            )
        except DatabaseError as exc:
            raise StoreUnavailable(self.STORE_NAME, str(exc)) from exc
        return tuple(_notification_from_row(row) for row in rows)
