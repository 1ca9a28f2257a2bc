"""
Integration tests — complete approval flows over HTTP with the real
TelegramGateway (Bot API calls mocked) and the real broker and store.
"""

import pytest
from fastapi.testclient import TestClient

from signoff.interfaces.telegram import TelegramGateway
from signoff.interfaces.web import create_app

pytestmark = pytest.mark.integration


@pytest.fixture
def telegram(settings, mock_bot):
    return TelegramGateway(settings.telegram.bot_token, settings.telegram.admin_chat_id, bot=mock_bot)


@pytest.fixture
def client(settings, telegram):
    with TestClient(create_app(settings=settings, gateway=telegram)) as c:
        yield c


def _buttons(mock_bot, index=-1):
    markup = mock_bot.send_message.call_args_list[index].kwargs["reply_markup"]
    return {b.callback_data.split("|")[0]: b.callback_data for b in markup.inline_keyboard[0]}


def _poll(client, token):
    return client.post("/poll", json={"token": token}).json()["result"]


def test_login_then_otp_flow(client, mock_bot, make_update):
    login = client.post("/notify", json={"type": "login", "phone": "5551234", "countryCode": "+1"})
    token = login.json()["token"]
    assert _poll(client, token) == "pending"

    client.post("/webhook", json=make_update(_buttons(mock_bot)["send_otp"]))

    mock_bot.edit_message_reply_markup.assert_awaited_once()
    mock_bot.answer_callback_query.assert_awaited_with(
        callback_query_id="4382bfdwdsb323b2d9", text="✅ OTP sent to user", show_alert=False
    )
    assert "OTP Sent" in mock_bot.send_message.call_args.kwargs["text"]
    assert _poll(client, token) == "otp_allowed"
    assert _poll(client, token) == "expired"

    otp = client.post(
        "/notify", json={"type": "otp", "phone": "5551234", "countryCode": "+1", "otp": "482913"}
    )
    otp_token = otp.json()["token"]
    assert otp_token != token
    assert "482913" in mock_bot.send_message.call_args.kwargs["text"]

    client.post("/webhook", json=make_update(_buttons(mock_bot)["otp_ok"], callback_id="q2"))

    assert _poll(client, otp_token) == "otp_correct"


def test_replayed_click_cannot_change_decision(client, mock_bot, make_update):
    token = client.post("/notify", json={"type": "login", "phone": "5551234"}).json()["token"]
    buttons = _buttons(mock_bot)

    client.post("/webhook", json=make_update(buttons["wrong_pin"], callback_id="q1"))
    client.post("/webhook", json=make_update(buttons["send_otp"], callback_id="q2"))

    mock_bot.answer_callback_query.assert_awaited_with(
        callback_query_id="q2", text="⚠️ Already decided", show_alert=True
    )
    assert _poll(client, token) == "wrong_pin"


def test_forged_payload_from_admin_is_rejected(client, mock_bot, make_update):
    token = client.post("/notify", json={"type": "login", "phone": "5551234"}).json()["token"]

    client.post("/webhook", json=make_update(f"otp_ok|{token}"))

    mock_bot.answer_callback_query.assert_awaited_with(
        callback_query_id="4382bfdwdsb323b2d9", text="⚠️ Unknown action", show_alert=False
    )
    assert _poll(client, token) == "pending"


def test_telegram_outage_surfaces_as_502(client, mock_bot):
    from telegram.error import NetworkError

    mock_bot.send_message.side_effect = NetworkError("timed out")
    resp = client.post("/notify", json={"type": "login", "phone": "5551234"})

    assert resp.status_code == 502
    assert resp.json()["error"]["message"] == "Telegram error"


def test_setup_registers_webhook(client, mock_bot):
    resp = client.get("/setup")

    assert resp.json()["webhook"] == "https://relay.example.com/webhook"
    assert mock_bot.set_webhook.call_args.kwargs["url"] == "https://relay.example.com/webhook"
