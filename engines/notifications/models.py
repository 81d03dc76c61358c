"""
EATME Notifications Engine — Notification Record
==================================================
Write-once in-app notification. Addressed either to one recipient or
to everyone (is_global).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

TYPE_SUCCESS = "success"
TYPE_ERROR = "error"
TYPE_INFO = "info"
TYPE_UPDATE = "update"

VALID_TYPES = frozenset({TYPE_SUCCESS, TYPE_ERROR, TYPE_INFO, TYPE_UPDATE})


@dataclass(frozen=True)
class NotificationLink:
    href: str
    text: str

    def __post_init__(self):
        if not self.href:
            raise ValueError("href must be non-empty.")
        if not self.text:
            raise ValueError("text must be non-empty.")

    def to_dict(self) -> dict:
        return {"href": self.href, "text": self.text}

    @classmethod
    def from_dict(cls, data: dict) -> NotificationLink:
        return cls(href=data["href"], text=data["text"])


@dataclass(frozen=True)
class Notification:
    notification_id: str
    type: str
    title: str
    body: str
    created_at: datetime
    recipient_id: Optional[str] = None
    is_global: bool = False
    is_read: bool = False
    link: Optional[NotificationLink] = None

    def __post_init__(self):
        if not self.notification_id:
            raise ValueError("notification_id must be non-empty.")
        if self.type not in VALID_TYPES:
            raise ValueError(f"Invalid notification type: {self.type}")
        if not self.title:
            raise ValueError("title must be non-empty.")
        if not self.body:
            raise ValueError("body must be non-empty.")
        if self.is_global == bool(self.recipient_id):
            raise ValueError(
                "A notification has either a recipient or is global, not both."
            )

    def visible_to(self, customer_id: str) -> bool:
        return self.is_global or self.recipient_id == customer_id

    def to_dict(self) -> dict:
        return {
            "notification_id": self.notification_id,
            "type": self.type,
            "title": self.title,
            "body": self.body,
            "created_at": self.created_at.isoformat(),
            "recipient_id": self.recipient_id,
            "is_global": self.is_global,
            "is_read": self.is_read,
            "link": self.link.to_dict() if self.link else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Notification:
        link = data.get("link")
        return cls(
            notification_id=data["notification_id"],
            type=data["type"],
            title=data["title"],
            body=data["body"],
            created_at=datetime.fromisoformat(data["created_at"]),
            recipient_id=data.get("recipient_id") or None,
            is_global=bool(data.get("is_global", False)),
            is_read=bool(data.get("is_read", False)),
            link=NotificationLink.from_dict(link) if link else None,
        )
