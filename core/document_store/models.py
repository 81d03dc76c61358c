"""
EATME Document Store — Persisted Record Models
================================================
One explicit schema per record type. Engines convert between these rows
and their frozen domain dataclasses at the store boundary.

RULES:
- Loyalty records: updated only inside a locked transaction by the
  Ledger Store; never deleted
- Orders/reservations: after creation only status, timeline,
  cancellation_reason and updated_at may change; never deleted
- Notifications: write-once; never deleted

This file contains NO business logic.
"""

from django.db import models


# ══════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════

class OrderKind(models.TextChoices):
    ORDER = "ORDER", "Order"
    RESERVATION = "RESERVATION", "Reservation"


class NotificationType(models.TextChoices):
    SUCCESS = "success", "Success"
    ERROR = "error", "Error"
    INFO = "info", "Info"
    UPDATE = "update", "Update"


# ══════════════════════════════════════════════════════════════
# LOYALTY RECORD
# ══════════════════════════════════════════════════════════════

class LoyaltyRecordDocument(models.Model):
    """
    One row per customer.

    history is the append-only list of {timestamp, points, reason};
    balance is always equal to the sum of history points and never
    below the total of holds.
    """

    customer_id = models.CharField(max_length=255, primary_key=True)

    balance = models.BigIntegerField(default=0)

    history = models.JSONField(
        default=list,
        help_text="Append-only list of {timestamp, points, reason}.",
    )

    distinct_items_tried = models.JSONField(
        default=list,
        help_text="Item ids that already earned a new-item bonus.",
    )

    reviews_rewarded = models.PositiveSmallIntegerField(default=0)

    last_birthday_reward_year = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
    )

    referrals_rewarded = models.PositiveSmallIntegerField(default=0)

    applied_idempotency_keys = models.JSONField(
        default=list,
        help_text="Idempotency keys that already produced a history entry.",
    )

    holds = models.JSONField(
        default=list,
        help_text="Open-order point holds as {order_id, points}.",
    )

    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        db_table = "eatme_loyalty_records"
        ordering = ["customer_id"]

    def delete(self, *args, **kwargs):
        raise PermissionError(
            "Loyalty records are never deleted. "
            "Corrections are new history entries."
        )

    def __str__(self):
        return f"LoyaltyRecord {self.customer_id} ({self.balance} pts)"


# ══════════════════════════════════════════════════════════════
# ORDER / RESERVATION
# ══════════════════════════════════════════════════════════════

class OrderDocument(models.Model):
    """
    Order or reservation with its owned line-item snapshot and
    append-only status timeline.
    """

    MUTABLE_FIELDS = frozenset({
        "status",
        "timeline",
        "cancellation_reason",
        "updated_at",
    })

    order_id = models.CharField(max_length=255, primary_key=True)

    customer_id = models.CharField(max_length=255)

    kind = models.CharField(
        max_length=20,
        choices=OrderKind.choices,
        default=OrderKind.ORDER,
    )

    line_items = models.JSONField(
        default=list,
        help_text="Snapshot of {item_id, name, unit_price, quantity, image_url}.",
    )

    subtotal = models.BigIntegerField(help_text="Minor units.")

    points_applied = models.BigIntegerField(default=0)

    discount = models.BigIntegerField(default=0, help_text="Minor units.")

    status = models.CharField(max_length=20)

    timeline = models.JSONField(
        default=list,
        help_text="Append-only list of {status, timestamp}.",
    )

    cancellation_reason = models.TextField(blank=True, default="")

    contact_phone = models.CharField(max_length=32, blank=True, default="")

    reservation = models.JSONField(null=True, blank=True)

    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        db_table = "eatme_orders"
        ordering = ["created_at"]
        indexes = [
            models.Index(
                fields=["customer_id", "created_at"],
                name="idx_order_customer_time",
            ),
            models.Index(
                fields=["status"],
                name="idx_order_status",
            ),
        ]

    def save(self, *args, **kwargs):
        """
        GUARD: after insert, only the lifecycle fields may be written,
        and only through an explicit update_fields list.
        """
        if not self._state.adding:
            update_fields = kwargs.get("update_fields")
            if update_fields is None or not set(update_fields) <= self.MUTABLE_FIELDS:
                raise PermissionError(
                    "Orders are immutable apart from status, timeline "
                    "and cancellation_reason."
                )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise PermissionError("Orders and reservations are never deleted.")

    def __str__(self):
        return f"[{self.kind}] {self.order_id} ({self.status})"


# ══════════════════════════════════════════════════════════════
# NOTIFICATION
# ══════════════════════════════════════════════════════════════

class NotificationDocument(models.Model):
    """In-app notification. Either addressed to one recipient or global."""

    notification_id = models.CharField(max_length=255, primary_key=True)

    recipient_id = models.CharField(max_length=255, blank=True, default="")

    is_global = models.BooleanField(default=False)

    type = models.CharField(
        max_length=10,
        choices=NotificationType.choices,
        default=NotificationType.INFO,
    )

    title = models.CharField(max_length=255)

    body = models.TextField()

    link = models.JSONField(
        null=True,
        blank=True,
        help_text="Optional {href, text}.",
    )

    is_read = models.BooleanField(default=False)

    created_at = models.DateTimeField()

    class Meta:
        db_table = "eatme_notifications"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["recipient_id", "created_at"],
                name="idx_notif_recipient_time",
            ),
            models.Index(
                fields=["is_global", "created_at"],
                name="idx_notif_global_time",
            ),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise PermissionError("Notifications are write-once.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise PermissionError("Notifications are never deleted.")

    def __str__(self):
        target = "global" if self.is_global else self.recipient_id
        return f"[{self.type}] {self.title} -> {target}"
