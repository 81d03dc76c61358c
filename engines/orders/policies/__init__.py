"""
EATME Orders Engine — Policies
================================
Transition guards. Each returns None to allow, or a RejectionReason.
"""

from __future__ import annotations

from typing import Optional

from core.commands.rejection import ReasonCode, RejectionReason
from core.primitives.workflow import CANCELLED, WorkflowDefinition
from engines.orders.models import ReservationDetails


def known_status_policy(
    workflow: WorkflowDefinition,
    current: str,
    target: str,
    reason: Optional[str] = None,
) -> Optional[RejectionReason]:
    if not workflow.is_known(target):
        return RejectionReason(
            code=ReasonCode.UNKNOWN_STATUS,
            message=f"'{target}' is not a {workflow.name} status.",
            policy_name="known_status_policy",
        )
    return None


def not_terminal_policy(
    workflow: WorkflowDefinition,
    current: str,
    target: str,
    reason: Optional[str] = None,
) -> Optional[RejectionReason]:
    if workflow.is_terminal(current):
        return RejectionReason(
            code=ReasonCode.TERMINAL_STATUS,
            message=f"{workflow.name} is {current}; no further transitions.",
            policy_name="not_terminal_policy",
        )
    return None


def allowed_successor_policy(
    workflow: WorkflowDefinition,
    current: str,
    target: str,
    reason: Optional[str] = None,
) -> Optional[RejectionReason]:
    if not workflow.is_valid_transition(current, target):
        allowed = ", ".join(sorted(workflow.allowed_next_states(current))) or "none"
        return RejectionReason(
            code=ReasonCode.INVALID_TRANSITION,
            message=f"Cannot move {workflow.name} from {current} to {target} "
                    f"(allowed: {allowed}).",
            policy_name="allowed_successor_policy",
        )
    return None


def cancellation_reason_policy(
    workflow: WorkflowDefinition,
    current: str,
    target: str,
    reason: Optional[str] = None,
) -> Optional[RejectionReason]:
    if target == CANCELLED and not (reason and reason.strip()):
        return RejectionReason(
            code=ReasonCode.MISSING_CANCELLATION_REASON,
            message="A reason is required to cancel.",
            policy_name="cancellation_reason_policy",
        )
    return None


TRANSITION_POLICIES = (
    known_status_policy,
    not_terminal_policy,
    allowed_successor_policy,
    cancellation_reason_policy,
)


def evaluate_transition(
    workflow: WorkflowDefinition,
    current: str,
    target: str,
    reason: Optional[str] = None,
) -> Optional[RejectionReason]:
    """First rejection wins."""
    for policy in TRANSITION_POLICIES:
        rejection = policy(workflow, current, target, reason)
        if rejection is not None:
            return rejection
    return None


# ── Reservation Pricing ───────────────────────────────────────

RESERVATION_HOURLY_RATE = 5000
RESERVATION_GUESTS_FEE = 50000


def reservation_total(
    details: ReservationDetails,
    hourly_rate: int = RESERVATION_HOURLY_RATE,
    guests_fee: int = RESERVATION_GUESTS_FEE,
) -> int:
    """Hourly venue charge plus a flat fee for the guest package. Minor units."""
    hours = details.duration_hours or 0
    return hours * hourly_rate + (guests_fee if details.guests else 0)
