"""
EATME Command Layer — Rejection Model
=======================================
Structured reasons produced by lifecycle policies.

A policy returns None to allow an operation, or a RejectionReason
explaining why it was refused. The service layer turns a rejection into
the matching typed error (see core.errors).

Every rejection is:
- Machine-readable (code)
- Human-readable (message)
- Attributable (policy_name)
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RejectionReason:
    """
    Fields:
        code:        Machine-readable rejection code (e.g. 'TERMINAL_STATUS').
        message:     Human-readable explanation.
        policy_name: Name of the policy that caused rejection.
    """

    code: str
    message: str
    policy_name: str

    def __post_init__(self):
        if not self.code or not isinstance(self.code, str):
            raise ValueError("code must be a non-empty string.")

        if not self.message or not isinstance(self.message, str):
            raise ValueError("message must be a non-empty string.")

        if not self.policy_name or not isinstance(self.policy_name, str):
            raise ValueError("policy_name must be a non-empty string.")

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "policy_name": self.policy_name,
        }


class ReasonCode:
    """
    Known rejection codes.

    Convention: SCREAMING_SNAKE_CASE.
    """

    # ── Lifecycle ─────────────────────────────────────────────
    UNKNOWN_STATUS = "UNKNOWN_STATUS"
    TERMINAL_STATUS = "TERMINAL_STATUS"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    MISSING_CANCELLATION_REASON = "MISSING_CANCELLATION_REASON"
