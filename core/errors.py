"""
EATME Core — Engine Errors
============================
Typed failures surfaced by the loyalty ledger and the order lifecycle.

A cap being reached (reviews, referrals, birthday) is NOT an error.
Those outcomes are zero-point results, never exceptions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.commands.rejection import RejectionReason


class EngineError(Exception):
    """Base error for all engine operations."""
    pass


class StoreUnavailable(EngineError):
    """
    Transient storage failure.

    The caller decides whether to retry. The engine never assumes a
    partial write succeeded.
    """

    def __init__(self, store: str, detail: str):
        self.store = store
        self.detail = detail
        super().__init__(f"Store '{store}' unavailable: {detail}")


class RecordNotFound(EngineError):
    def __init__(self, record_type: str, record_id: str):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(f"{record_type} '{record_id}' not found.")


class InsufficientPoints(EngineError):
    """A debit would drive a loyalty balance below zero."""

    def __init__(self, customer_id: str, balance: int, requested: int):
        self.customer_id = customer_id
        self.balance = balance
        self.requested = requested
        super().__init__(
            f"Customer '{customer_id}' has {balance} points, "
            f"cannot debit {requested}."
        )


class LifecycleRejected(EngineError):
    """A status transition was refused by a lifecycle policy."""

    def __init__(self, rejection: "RejectionReason"):
        self.rejection = rejection
        super().__init__(f"[{rejection.code}] {rejection.message}")

    @property
    def code(self) -> str:
        return self.rejection.code


class InvalidTransition(LifecycleRejected):
    """Target status is not an allowed successor of the current one."""
    pass


class MissingReason(LifecycleRejected):
    """Cancellation attempted without a reason."""
    pass
