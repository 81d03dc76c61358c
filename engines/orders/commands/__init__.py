"""
EATME Orders Engine — Request Commands
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from engines.loyalty.policies import RedemptionQuote
from engines.orders.models import LineItem, ReservationDetails


@dataclass(frozen=True)
class CreateOrderRequest:
    customer_id: str
    line_items: Tuple[LineItem, ...]
    redemption: Optional[RedemptionQuote] = None
    contact_phone: Optional[str] = None

    def __post_init__(self):
        if not self.customer_id:
            raise ValueError("customer_id must be non-empty.")
        if not self.line_items:
            raise ValueError("An order needs at least one line item.")
        for item in self.line_items:
            if not isinstance(item, LineItem):
                raise TypeError("line_items must be LineItem instances.")
        if self.redemption is not None and self.redemption.discount > self.subtotal:
            raise ValueError("Redemption discount must not exceed subtotal.")

    @property
    def subtotal(self) -> int:
        return sum(item.line_total for item in self.line_items)


@dataclass(frozen=True)
class CreateReservationRequest:
    customer_id: str
    details: ReservationDetails
    total: int

    def __post_init__(self):
        if not self.customer_id:
            raise ValueError("customer_id must be non-empty.")
        if not isinstance(self.details, ReservationDetails):
            raise TypeError("details must be ReservationDetails.")
        if not isinstance(self.total, int) or self.total < 0:
            raise ValueError("total must be a non-negative int.")


@dataclass(frozen=True)
class TransitionRequest:
    order_id: str
    new_status: str
    reason: Optional[str] = None

    def __post_init__(self):
        if not self.order_id:
            raise ValueError("order_id must be non-empty.")
        if not self.new_status or not isinstance(self.new_status, str):
            raise ValueError("new_status must be non-empty string.")

    @property
    def clean_reason(self) -> Optional[str]:
        if self.reason is None:
            return None
        return self.reason.strip() or None
