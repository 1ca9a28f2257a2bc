"""
Telegram Renderers
==================

Turns channel-neutral ApprovalMessage objects into MarkdownV2 text and
inline keyboards.
"""

from telegram import InlineKeyboardButton, InlineKeyboardMarkup
from telegram.helpers import escape_markdown

from signoff.interfaces.base import ApprovalMessage

# Telegram rejects callback_data longer than this many bytes.
CALLBACK_DATA_LIMIT = 64


def escape(text: str) -> str:
    return escape_markdown(str(text), version=2)


def render_text(message: ApprovalMessage) -> str:
    lines = [f"*{escape(message.title)}*", ""]
    for label, value in message.fields:
        lines.append(f"*{escape(label)}:* `{escape_markdown(str(value), version=2, entity_type='code')}`")
    if message.footer:
        if message.fields:
            lines.append("")
        lines.append(escape(message.footer))
    return "\n".join(lines).strip()


def render_keyboard(message: ApprovalMessage) -> InlineKeyboardMarkup | None:
    """One row of buttons, or None for informational messages."""
    if not message.actions:
        return None
    row = []
    for action in message.actions:
        if len(action.payload.encode()) > CALLBACK_DATA_LIMIT:
            raise ValueError(
                f"Callback payload exceeds {CALLBACK_DATA_LIMIT} bytes: {len(action.payload)}"
            )
        row.append(InlineKeyboardButton(action.label, callback_data=action.payload))
    return InlineKeyboardMarkup([row])
