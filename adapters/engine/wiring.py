"""
EATME Engine Wiring
=====================
Composition root: builds the stores, services and outbound channel
behind one EatmeEngine.

backend="memory" keeps everything in-process (tests, demos).
backend="django" persists through core.document_store.
"""

from __future__ import annotations

from typing import Optional

from adapters.engine.facade import EatmeEngine
from core.time import Clock, SystemClock
from engines.loyalty.policies import LoyaltyProgramPolicy
from engines.loyalty.repository import DjangoLedgerStore, InMemoryLedgerStore
from engines.loyalty.services import LoyaltyService
from engines.notifications.repository import (
    DjangoNotificationStore,
    InMemoryNotificationStore,
)
from engines.notifications.services import NotificationEmitter
from engines.orders.repository import DjangoOrderStore, InMemoryOrderStore
from engines.orders.services import OrderLifecycleService
from integration.outbound import MessageChannel, OutboundMessageDispatcher, SmsChannel

BACKEND_MEMORY = "memory"
BACKEND_DJANGO = "django"


def build_engine(
    backend: str = BACKEND_MEMORY,
    clock: Optional[Clock] = None,
    channel: Optional[MessageChannel] = None,
    program: Optional[LoyaltyProgramPolicy] = None,
    admin_phone: Optional[str] = None,
    max_retries: int = 2,
) -> EatmeEngine:
    clock = clock or SystemClock()
    program = program or LoyaltyProgramPolicy()

    if backend == BACKEND_MEMORY:
        ledger_store = InMemoryLedgerStore(clock=clock)
        order_store = InMemoryOrderStore()
        notification_store = InMemoryNotificationStore()
    elif backend == BACKEND_DJANGO:
        ledger_store = DjangoLedgerStore(clock=clock)
        order_store = DjangoOrderStore()
        notification_store = DjangoNotificationStore()
    else:
        raise ValueError(f"Unknown store backend: {backend}")

    dispatcher = (
        OutboundMessageDispatcher(channel, max_retries=max_retries)
        if channel is not None
        else None
    )

    loyalty = LoyaltyService(store=ledger_store, program=program, clock=clock)
    notifier = NotificationEmitter(
        store=notification_store,
        dispatcher=dispatcher,
        clock=clock,
        admin_phone=admin_phone,
    )
    orders = OrderLifecycleService(
        store=order_store,
        notifier=notifier,
        redemption_committer=loyalty,
        clock=clock,
        point_value=program.point_value_minor,
    )
    return EatmeEngine(loyalty=loyalty, orders=orders, notifications=notifier)


def build_engine_from_settings(clock: Optional[Clock] = None) -> EatmeEngine:
    """Build from the EATME_* Django settings."""
    from django.conf import settings

    channel = None
    if settings.EATME_SMS_API_KEY:
        channel = SmsChannel(
            api_key=settings.EATME_SMS_API_KEY,
            api_url=settings.EATME_SMS_API_URL,
            sender_id=settings.EATME_SMS_SENDER_ID,
            timeout=settings.EATME_SMS_TIMEOUT_SECONDS,
        )
    return build_engine(
        backend=settings.EATME_STORE_BACKEND,
        clock=clock,
        channel=channel,
        program=LoyaltyProgramPolicy.from_mapping(settings.EATME_LOYALTY),
        admin_phone=settings.EATME_ADMIN_PHONE or None,
        max_retries=settings.EATME_SMS_MAX_RETRIES,
    )
