"""
Pytest configuration for all Signoff tests — validates the environment,
registers markers, and provides the shared broker fixtures.
"""

import os
import sys
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from signoff.broker import DecisionBroker, SessionStore, TokenSigner
from signoff.config.settings import Settings
from signoff.core.exceptions import DeliveryError
from signoff.interfaces.base import (
    ApprovalMessage,
    DeliveryReceipt,
    InboundCallback,
    NotificationGateway,
)

ADMIN_CHAT_ID = "987654321"
BOT_TOKEN = "123456789:AAH3kdP0xq7ZtV2mN8rL5wYcB1eF6gJ4sUo"
SECRET_KEY = "9f2c7a41e8b35d60c4a7f1e2b9d83c56"
PUBLIC_URL = "https://relay.example.com"


# =============================================================================
# TEST DOUBLES
# =============================================================================


class FakeClock:
    """Manually advanced replacement for time.monotonic."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGateway(NotificationGateway):
    """Records every gateway call; failures can be switched on per method."""

    def __init__(self) -> None:
        self.delivered: list[ApprovalMessage] = []
        self.acks: list[tuple[InboundCallback, str, bool]] = []
        self.closed: list[InboundCallback] = []
        self.webhooks: list[tuple[str, str | None]] = []
        self.fail_deliver = False
        self.fail_acknowledge = False
        self.fail_close = False
        self.started = False
        self.stopped = False

    async def start(self) -> None:
        self.started = True

    async def close(self) -> None:
        self.stopped = True

    async def deliver(self, message: ApprovalMessage) -> DeliveryReceipt:
        if self.fail_deliver:
            raise DeliveryError("Telegram error", details={"description": "Bad Request"})
        self.delivered.append(message)
        return DeliveryReceipt(message_id=str(len(self.delivered)))

    async def acknowledge(self, callback: InboundCallback, text: str, alert: bool = False) -> None:
        if self.fail_acknowledge:
            raise RuntimeError("answerCallbackQuery failed")
        self.acks.append((callback, text, alert))

    async def close_request(self, callback: InboundCallback) -> None:
        if self.fail_close:
            raise RuntimeError("editMessageReplyMarkup failed")
        self.closed.append(callback)

    def parse_callback(self, payload: dict[str, Any]) -> InboundCallback | None:
        query = payload.get("callback_query")
        if not query:
            return None
        return InboundCallback(
            callback_id=query["id"],
            approver_id=str(query["message"]["chat"]["id"]),
            payload=query.get("data", ""),
            chat_id=str(query["message"]["chat"]["id"]),
            message_id=str(query["message"]["message_id"]),
        )

    async def register_webhook(self, url: str, secret_token: str | None = None) -> bool:
        self.webhooks.append((url, secret_token))
        return True

    @property
    def last_message(self) -> ApprovalMessage:
        return self.delivered[-1]

    def payload_for(self, action: str, index: int = -1) -> str:
        """Button payload for ``action`` in the ``index``-th delivered message."""
        for button in self.delivered[index].actions:
            if button.payload.startswith(f"{action}|"):
                return button.payload
        raise AssertionError(f"no {action} button in {self.delivered[index]}")


# =============================================================================
# SHARED FIXTURES
# =============================================================================


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def signer():
    return TokenSigner(SECRET_KEY)


@pytest.fixture
def store(clock):
    return SessionStore(reaper_interval=300, clock=clock)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def broker(signer, store, gateway):
    return DecisionBroker(
        signer=signer, store=store, gateway=gateway, admin_id=ADMIN_CHAT_ID, ttl_seconds=600
    )


@pytest.fixture
def callback():
    """Factory for InboundCallback objects coming from the admin chat by default."""

    def _make(payload: str, approver_id: str | None = ADMIN_CHAT_ID, callback_id: str = "cb-1"):
        return InboundCallback(
            callback_id=callback_id,
            approver_id=approver_id,
            payload=payload,
            chat_id=approver_id,
            message_id="77",
        )

    return _make


@pytest.fixture
def make_update():
    """Factory for raw Telegram callback_query updates as posted to /webhook."""

    def _make(
        data: str,
        chat_id: int | str = ADMIN_CHAT_ID,
        callback_id: str = "4382bfdwdsb323b2d9",
        message_id: int = 77,
        update_id: int = 10000,
    ) -> dict[str, Any]:
        return {
            "update_id": update_id,
            "callback_query": {
                "id": callback_id,
                "from": {"id": int(chat_id), "is_bot": False, "first_name": "Admin"},
                "chat_instance": "-8214937411234",
                "data": data,
                "message": {
                    "message_id": message_id,
                    "date": 1760000000,
                    "chat": {"id": int(chat_id), "type": "private", "first_name": "Admin"},
                    "text": "New Login Alert",
                },
            },
        }

    return _make


@pytest.fixture
def settings(monkeypatch):
    """Complete, valid settings; environment overrides are cleared."""
    for key in list(os.environ):
        if key.startswith("SIGNOFF_"):
            monkeypatch.delenv(key, raising=False)
    return Settings(
        telegram={"bot_token": BOT_TOKEN, "admin_chat_id": ADMIN_CHAT_ID},
        security={"secret_key": SECRET_KEY, "token_ttl_seconds": 600},
        web={"public_url": PUBLIC_URL},
        logging={"level": "WARNING", "format": "text"},
    )


@pytest.fixture
def mock_bot():
    """python-telegram-bot Bot double with every API coroutine mocked."""
    bot = MagicMock()
    bot.initialize = AsyncMock()
    bot.shutdown = AsyncMock()
    bot.send_message = AsyncMock(return_value=MagicMock(message_id=42))
    bot.answer_callback_query = AsyncMock(return_value=True)
    bot.edit_message_reply_markup = AsyncMock(return_value=True)
    bot.set_webhook = AsyncMock(return_value=True)
    return bot


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """Validate test environment and configure pytest with custom markers."""
    missing = []
    for mod in ("httpx", "fastapi", "pydantic", "telegram"):
        try:
            __import__(mod)
        except ImportError:
            missing.append(mod)

    if missing:
        print(
            "\n"
            "=" * 70 + "\n"
            " TEST ENVIRONMENT ERROR\n"
            "=" * 70 + "\n"
            f"\n"
            f" Missing dependencies: {', '.join(missing)}\n"
            f"\n"
            f" Signoff must be installed before running tests.\n"
            f" Run: pip install -e '.[dev]'\n"
            f"\n"
            "=" * 70,
            file=sys.stderr,
        )
        raise SystemExit(1)

    config.addinivalue_line(
        "markers", "unit: Fast unit tests with no external dependencies"
    )
    config.addinivalue_line(
        "markers", "integration: Full approval flows through the HTTP surface"
    )
