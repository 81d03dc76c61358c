"""
EATME Core — Document Store App Configuration
===============================================
Persisted document shapes for the engines:
loyalty records, orders/reservations and notifications.

This app:
- Defines one explicit schema per record type
- Refuses deletes and out-of-contract updates

This app does NOT:
- Apply loyalty rules
- Validate status transitions
- Send messages
"""

from django.apps import AppConfig


class DocumentStoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core.document_store"
    label = "document_store"
    verbose_name = "EATME Document Store"
