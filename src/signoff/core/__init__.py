"""Core signoff module — canonical public API."""

from signoff.core.exceptions import (
    AuthorizationError,
    ConfigurationError,
    DeliveryError,
    ErrorCode,
    SignoffError,
    ValidationError,
)
from signoff.core.types import (
    ACTION_OUTCOMES,
    KIND_ACTIONS,
    Action,
    ApprovalKind,
    Decision,
    DecisionState,
    Outcome,
    PendingSession,
    PollStatus,
)

__all__ = [
    "ACTION_OUTCOMES",
    "Action",
    "ApprovalKind",
    "AuthorizationError",
    "ConfigurationError",
    "Decision",
    "DecisionState",
    "DeliveryError",
    "ErrorCode",
    "KIND_ACTIONS",
    "Outcome",
    "PendingSession",
    "PollStatus",
    "SignoffError",
    "ValidationError",
]
