"""
NotificationGateway — contract between the broker and the approver channel.

The broker only ever talks to this interface: it hands over an
ApprovalMessage to deliver and receives InboundCallback objects back.
Channel-specific rendering and wire formats live in the implementations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ApprovalAction:
    """One mutually exclusive button; ``payload`` round-trips unchanged."""
    label: str
    payload: str


@dataclass
class ApprovalMessage:
    """Channel-neutral message: a title, labelled fields, a footer, buttons."""
    title: str
    fields: list[tuple[str, str]] = field(default_factory=list)
    footer: str = ""
    actions: list[ApprovalAction] = field(default_factory=list)


@dataclass(frozen=True)
class DeliveryReceipt:
    message_id: str | None = None


@dataclass(frozen=True)
class InboundCallback:
    """An approver's button press, as reported by the gateway."""
    callback_id: str
    approver_id: str | None
    payload: str
    chat_id: str | None = None
    message_id: str | None = None


class NotificationGateway(ABC):
    """Delivers approval requests and decodes the approver's callbacks."""

    @abstractmethod
    async def deliver(self, message: ApprovalMessage) -> DeliveryReceipt:
        """Send ``message`` to the approver. Raises DeliveryError on failure."""

    @abstractmethod
    async def acknowledge(self, callback: InboundCallback, text: str, alert: bool = False) -> None:
        """Answer the callback with a short status, optionally as an alert."""

    @abstractmethod
    async def close_request(self, callback: InboundCallback) -> None:
        """Strip the buttons from the message the callback came from."""

    @abstractmethod
    def parse_callback(self, payload: dict[str, Any]) -> InboundCallback | None:
        """Decode a raw inbound update; None when it is not a button press."""

    @abstractmethod
    async def register_webhook(self, url: str, secret_token: str | None = None) -> bool:
        """Point the channel's push delivery at ``url``."""

    async def start(self) -> None:
        pass

    async def close(self) -> None:
        pass
