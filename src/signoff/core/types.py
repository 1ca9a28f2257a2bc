"""
Core Type Definitions
=====================

Closed vocabularies shared by the broker, the gateway and the HTTP layer.

Approval kinds, approver actions and decision outcomes are enums with
explicit mappings between them, so an action identifier outside the known
set is rejected rather than silently ignored.
"""

from dataclasses import dataclass
from enum import Enum


class ApprovalKind(str, Enum):
    """What the front-end is asking the approver about."""

    LOGIN = "login"
    OTP = "otp"
    RESEND = "resend"

    def __str__(self) -> str:
        return self.value


class Action(str, Enum):
    """Button identifiers carried in the approval message payload."""

    SEND_OTP = "send_otp"
    WRONG_PIN = "wrong_pin"
    OTP_OK = "otp_ok"
    OTP_WRONG = "otp_wrong"

    def __str__(self) -> str:
        return self.value


class Outcome(str, Enum):
    """Decision handed back to the polling caller."""

    OTP_ALLOWED = "otp_allowed"
    WRONG_PIN = "wrong_pin"
    OTP_CORRECT = "otp_correct"
    OTP_WRONG = "otp_wrong"

    def __str__(self) -> str:
        return self.value


class PollStatus(str, Enum):
    """Placeholders returned by a poll that carries no outcome."""

    PENDING = "pending"
    EXPIRED = "expired"

    def __str__(self) -> str:
        return self.value


class DecisionState(str, Enum):
    """Lifecycle of a single correlation token."""

    ISSUED = "issued"
    AWAITING_DECISION = "awaiting_decision"
    DECIDED = "decided"
    CONSUMED = "consumed"
    EXPIRED = "expired"


ACTION_OUTCOMES: dict[Action, Outcome] = {
    Action.SEND_OTP: Outcome.OTP_ALLOWED,
    Action.WRONG_PIN: Outcome.WRONG_PIN,
    Action.OTP_OK: Outcome.OTP_CORRECT,
    Action.OTP_WRONG: Outcome.OTP_WRONG,
}

# Buttons offered per kind, in display order. Resend is informational only.
KIND_ACTIONS: dict[ApprovalKind, tuple[Action, ...]] = {
    ApprovalKind.LOGIN: (Action.SEND_OTP, Action.WRONG_PIN),
    ApprovalKind.OTP: (Action.OTP_OK, Action.OTP_WRONG),
    ApprovalKind.RESEND: (),
}


@dataclass(frozen=True)
class PendingSession:
    """Server-side record of an issued token awaiting a decision."""
    token: str
    subject: str
    tag: str
    kind: ApprovalKind


@dataclass(frozen=True)
class Decision:
    """An approver's outcome, waiting to be consumed by one poll."""
    token: str
    outcome: Outcome


__all__ = [
    'ACTION_OUTCOMES',
    'Action',
    'ApprovalKind',
    'Decision',
    'DecisionState',
    'KIND_ACTIONS',
    'Outcome',
    'PendingSession',
    'PollStatus',
]
