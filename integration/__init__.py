"""
EATME Integration Layer
=========================
Gateway for talking to external systems.

Outbound: lifecycle notification → text message → SMS gateway
"""

from integration.outbound import (
    IntegrationError,
    MessageChannel,
    OutboundMessageDispatcher,
    OutboundResult,
    SmsChannel,
    TransientError,
)

__all__ = [
    "IntegrationError",
    "MessageChannel",
    "OutboundMessageDispatcher",
    "OutboundResult",
    "SmsChannel",
    "TransientError",
]
