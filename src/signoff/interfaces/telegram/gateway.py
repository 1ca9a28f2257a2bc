"""
Telegram Gateway - Approver Channel over the Bot API
=====================================================

Delivers approval requests to the single admin chat with inline keyboard
buttons and decodes the callback queries Telegram pushes to ``/webhook``.

Key Principle: this gateway is a "dumb" adapter. It does not decide
anything; verification and state changes belong to the DecisionBroker.
"""

from __future__ import annotations

import logging
from typing import Any

from telegram import Bot, Update
from telegram.constants import ParseMode
from telegram.error import TelegramError

from signoff.core.exceptions import DeliveryError
from signoff.interfaces.base import (
    ApprovalMessage,
    DeliveryReceipt,
    InboundCallback,
    NotificationGateway,
)
from signoff.interfaces.telegram.renderers import render_keyboard, render_text

logger = logging.getLogger(__name__)


class TelegramGateway(NotificationGateway):
    """
    Telegram Bot API gateway.

    Dependencies (injected via constructor):
    - bot_token / admin_chat_id: from TelegramConfig
    - bot: optional pre-built Bot (tests pass a mock)
    """

    def __init__(self, bot_token: str, admin_chat_id: str, bot: Bot | None = None) -> None:
        self.admin_chat_id = str(admin_chat_id)
        self.bot = bot or Bot(token=bot_token)
        self._initialized = False

    async def start(self) -> None:
        """Initialize the bot; a failure here is logged, requests are still attempted."""
        try:
            await self.bot.initialize()
            self._initialized = True
            logger.info("Telegram gateway ready (admin chat %s)", self.admin_chat_id)
        except TelegramError as e:
            logger.warning("Telegram bot initialization failed: %s", e)

    async def close(self) -> None:
        if self._initialized:
            try:
                await self.bot.shutdown()
            except TelegramError as e:
                logger.warning("Telegram bot shutdown failed: %s", e)
            self._initialized = False

    # ========================================================================
    # OUTBOUND
    # ========================================================================

    async def deliver(self, message: ApprovalMessage) -> DeliveryReceipt:
        try:
            sent = await self.bot.send_message(
                chat_id=self.admin_chat_id,
                text=render_text(message),
                parse_mode=ParseMode.MARKDOWN_V2,
                reply_markup=render_keyboard(message),
            )
        except TelegramError as e:
            logger.error("Telegram sendMessage failed: %s", e)
            raise DeliveryError("Telegram error", details={"description": str(e)}) from e
        return DeliveryReceipt(message_id=str(sent.message_id))

    async def acknowledge(self, callback: InboundCallback, text: str, alert: bool = False) -> None:
        await self.bot.answer_callback_query(
            callback_query_id=callback.callback_id,
            text=text,
            show_alert=alert,
        )

    async def close_request(self, callback: InboundCallback) -> None:
        if callback.chat_id is None or callback.message_id is None:
            logger.warning("Cannot remove buttons: callback %s has no message", callback.callback_id)
            return
        await self.bot.edit_message_reply_markup(
            chat_id=callback.chat_id,
            message_id=int(callback.message_id),
            reply_markup=None,
        )

    async def register_webhook(self, url: str, secret_token: str | None = None) -> bool:
        try:
            ok = await self.bot.set_webhook(
                url=url,
                allowed_updates=["callback_query", "message"],
                drop_pending_updates=True,
                secret_token=secret_token,
            )
        except TelegramError as e:
            raise DeliveryError("Telegram error", details={"description": str(e)}) from e
        logger.info("Webhook registered at %s", url)
        return bool(ok)

    # ========================================================================
    # INBOUND
    # ========================================================================

    def parse_callback(self, payload: dict[str, Any]) -> InboundCallback | None:
        if not isinstance(payload, dict) or "callback_query" not in payload:
            return None
        try:
            # Parsed objects stay unbound; only their fields are read.
            update = Update.de_json(payload, None)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Malformed Telegram update: %s", e)
            return None

        query = update.callback_query if update else None
        if query is None:
            return None

        chat_id = message_id = None
        if query.message is not None:
            chat_id = str(query.message.chat.id)
            message_id = str(query.message.message_id)

        return InboundCallback(
            callback_id=query.id,
            approver_id=chat_id,
            payload=query.data or "",
            chat_id=chat_id,
            message_id=message_id,
        )
