"""
EATME Command Layer
=====================
Structured rejections returned by lifecycle policies.
"""

from core.commands.rejection import (
    ReasonCode,
    RejectionReason,
)

__all__ = [
    "RejectionReason",
    "ReasonCode",
]
