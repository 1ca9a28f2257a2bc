"""
Interfaces module - Adapters for the outside world
==================================================

- base:      NotificationGateway contract and its message types
- telegram/: Telegram Bot API gateway and MarkdownV2 renderers
- web/:      FastAPI HTTP surface (/notify, /poll, /webhook, ...)
"""

from signoff.interfaces.base import (
    ApprovalAction,
    ApprovalMessage,
    DeliveryReceipt,
    InboundCallback,
    NotificationGateway,
)

__all__ = [
    'ApprovalAction',
    'ApprovalMessage',
    'DeliveryReceipt',
    'InboundCallback',
    'NotificationGateway',
]
