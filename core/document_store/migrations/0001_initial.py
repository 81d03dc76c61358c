from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="LoyaltyRecordDocument",
            fields=[
                ("customer_id", models.CharField(max_length=255, primary_key=True, serialize=False)),
                ("balance", models.BigIntegerField(default=0)),
                (
                    "history",
                    models.JSONField(
                        default=list,
                        help_text="Append-only list of {timestamp, points, reason}.",
                    ),
                ),
                (
                    "distinct_items_tried",
                    models.JSONField(
                        default=list,
                        help_text="Item ids that already earned a new-item bonus.",
                    ),
                ),
                ("reviews_rewarded", models.PositiveSmallIntegerField(default=0)),
                ("last_birthday_reward_year", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("referrals_rewarded", models.PositiveSmallIntegerField(default=0)),
                (
                    "applied_idempotency_keys",
                    models.JSONField(
                        default=list,
                        help_text="Idempotency keys that already produced a history entry.",
                    ),
                ),
                ("created_at", models.DateTimeField()),
                ("updated_at", models.DateTimeField()),
            ],
            options={
                "db_table": "eatme_loyalty_records",
                "ordering": ["customer_id"],
            },
        ),
        migrations.CreateModel(
            name="OrderDocument",
            fields=[
                ("order_id", models.CharField(max_length=255, primary_key=True, serialize=False)),
                ("customer_id", models.CharField(max_length=255)),
                (
                    "kind",
                    models.CharField(
                        choices=[("ORDER", "Order"), ("RESERVATION", "Reservation")],
                        default="ORDER",
                        max_length=20,
                    ),
                ),
                (
                    "line_items",
                    models.JSONField(
                        default=list,
                        help_text="Snapshot of {item_id, name, unit_price, quantity, image_url}.",
                    ),
                ),
                ("subtotal", models.BigIntegerField(help_text="Minor units.")),
                ("points_applied", models.BigIntegerField(default=0)),
                ("discount", models.BigIntegerField(default=0, help_text="Minor units.")),
                ("status", models.CharField(max_length=20)),
                (
                    "timeline",
                    models.JSONField(
                        default=list,
                        help_text="Append-only list of {status, timestamp}.",
                    ),
                ),
                ("cancellation_reason", models.TextField(blank=True, default="")),
                ("contact_phone", models.CharField(blank=True, default="", max_length=32)),
                ("reservation", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField()),
                ("updated_at", models.DateTimeField()),
            ],
            options={
                "db_table": "eatme_orders",
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["customer_id", "created_at"], name="idx_order_customer_time"),
                    models.Index(fields=["status"], name="idx_order_status"),
                ],
            },
        ),
        migrations.CreateModel(
            name="NotificationDocument",
            fields=[
                ("notification_id", models.CharField(max_length=255, primary_key=True, serialize=False)),
                ("recipient_id", models.CharField(blank=True, default="", max_length=255)),
                ("is_global", models.BooleanField(default=False)),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("success", "Success"),
                            ("error", "Error"),
                            ("info", "Info"),
                            ("update", "Update"),
                        ],
                        default="info",
                        max_length=10,
                    ),
                ),
                ("title", models.CharField(max_length=255)),
                ("body", models.TextField()),
                (
                    "link",
                    models.JSONField(blank=True, help_text="Optional {href, text}.", null=True),
                ),
                ("is_read", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField()),
            ],
            options={
                "db_table": "eatme_notifications",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["recipient_id", "created_at"], name="idx_notif_recipient_time"),
                    models.Index(fields=["is_global", "created_at"], name="idx_notif_global_time"),
                ],
            },
        ),
    ]
