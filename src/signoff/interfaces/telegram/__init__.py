"""
Telegram Interface Package
===========================

Telegram Bot API implementation of the NotificationGateway.
"""

from .gateway import TelegramGateway

__all__ = [
    'TelegramGateway',
]
