"""
EATME Integration — Outbound Message Channel
==============================================
Narrow interface for sending text messages to external systems, plus
the SMS gateway channel and a retrying dispatcher.

Doctrine: the in-app notification is the record of truth.
Outbound delivery is best-effort; failures are reported, never raised
past the dispatcher.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import requests

logger = logging.getLogger("eatme.outbound")


# ══════════════════════════════════════════════════════════════
# ERRORS
# ══════════════════════════════════════════════════════════════

class IntegrationError(Exception):
    """Base error for all integration failures."""

    def __init__(self, message: str, system_id: str = "", retryable: bool = False):
        super().__init__(message)
        self.system_id = system_id
        self.retryable = retryable


class TransientError(IntegrationError):
    """Temporary failure — retryable."""

    def __init__(self, message: str, system_id: str = ""):
        super().__init__(message, system_id=system_id, retryable=True)


# ══════════════════════════════════════════════════════════════
# OUTBOUND RESULT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class OutboundResult:
    """Result of delivering one message to an external system."""

    success: bool
    system_id: str
    recipient: str
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    retry_count: int = 0


# ══════════════════════════════════════════════════════════════
# MESSAGE CHANNEL PROTOCOL
# ══════════════════════════════════════════════════════════════

class MessageChannel(ABC):
    """
    Base class for outbound message channels.

    Each channel handles one external system and is stateless.
    """

    @property
    @abstractmethod
    def system_id(self) -> str:
        """Unique identifier for the external target system."""
        ...

    @abstractmethod
    def deliver(self, recipient: str, message: str) -> bool:
        """
        Deliver message to recipient.

        Returns True on success, False on a definite refusal,
        raises TransientError on retryable failure.
        """
        ...


# ══════════════════════════════════════════════════════════════
# SMS GATEWAY CHANNEL
# ══════════════════════════════════════════════════════════════

DEFAULT_SMS_API_URL = "https://sms.smsnotifygh.com/smsapi"
DEFAULT_SMS_SENDER_ID = "EATME food"


class SmsChannel(MessageChannel):
    """
    SMS over the gateway's HTTP GET API.

    The gateway answers with plain text; a body containing "success"
    means the message was accepted.
    """

    TIMEOUT_SECONDS = 10

    def __init__(
        self,
        api_key: str,
        api_url: str = DEFAULT_SMS_API_URL,
        sender_id: str = DEFAULT_SMS_SENDER_ID,
        timeout: Optional[float] = None,
    ):
        if not api_key:
            raise ValueError("SmsChannel requires an api_key.")
        if not api_url:
            raise ValueError("SmsChannel requires an api_url.")
        self._api_key = api_key
        self._api_url = api_url
        self._sender_id = sender_id
        self._timeout = timeout or self.TIMEOUT_SECONDS

    @property
    def system_id(self) -> str:
        return "sms_gateway"

    def deliver(self, recipient: str, message: str) -> bool:
        if not recipient:
            raise ValueError("recipient must be non-empty.")
        try:
            response = requests.get(
                self._api_url,
                params={
                    "key": self._api_key,
                    "to": recipient,
                    "msg": message,
                    "sender_id": self._sender_id,
                },
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise TransientError(
                f"SMS gateway unreachable: {exc}", system_id=self.system_id
            ) from exc

        if response.status_code >= 500:
            raise TransientError(
                f"SMS gateway returned {response.status_code}",
                system_id=self.system_id,
            )
        if response.status_code >= 400:
            logger.warning(
                f"SMS to {recipient} refused: HTTP {response.status_code}"
            )
            return False

        accepted = "success" in response.text.lower()
        if not accepted:
            logger.warning(f"SMS to {recipient} not accepted: {response.text[:200]}")
        return accepted


# ══════════════════════════════════════════════════════════════
# OUTBOUND MESSAGE DISPATCHER
# ══════════════════════════════════════════════════════════════

class OutboundMessageDispatcher:
    """
    Sends a message through one channel, retrying retryable
    IntegrationErrors up to max_retries times. Never raises for delivery
    failures.
    """

    def __init__(self, channel: MessageChannel, max_retries: int = 2) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0.")
        self._channel = channel
        self._max_retries = max_retries

    @property
    def channel(self) -> MessageChannel:
        return self._channel

    def send(self, recipient: str, message: str) -> OutboundResult:
        system_id = self._channel.system_id
        last_error = ""
        for attempt in range(self._max_retries + 1):
            try:
                if self._channel.deliver(recipient, message):
                    logger.info(f"Delivered message to {recipient} via {system_id}")
                    return OutboundResult(
                        success=True,
                        system_id=system_id,
                        recipient=recipient,
                        retry_count=attempt,
                    )
                last_error = "deliver returned False"
                break
            except IntegrationError as e:
                last_error = str(e)
                if not e.retryable:
                    logger.error(
                        f"Delivery to {recipient} via {system_id} refused: {e}"
                    )
                    break
                logger.warning(
                    f"Transient failure sending to {recipient} via {system_id} "
                    f"(attempt {attempt + 1}): {e}"
                )
                continue
            except Exception as e:
                last_error = str(e)
                logger.error(
                    f"Delivery to {recipient} via {system_id} failed: {e}",
                    exc_info=True,
                )
                break  # non-retryable

        return OutboundResult(
            success=False,
            system_id=system_id,
            recipient=recipient,
            error_code="DELIVERY_FAILED",
            error_message=last_error,
            retry_count=attempt,
        )
