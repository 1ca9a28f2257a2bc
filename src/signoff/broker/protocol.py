"""
Decision Protocol
=================

Turns a pending approval into a consumed decision exactly once.

    ISSUED -> AWAITING_DECISION -> DECIDED -> CONSUMED
         \\____________\\______________\\___> EXPIRED (TTL)

Callers issue requests and poll; the approver's callbacks are the only write
path for decisions. A callback passes four gates in order (approver identity,
payload shape, pending session + integrity tag, known action) before its
outcome is written, and a token can carry at most one outcome.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from signoff.broker.messages import (
    OUTCOME_TEXTS,
    approval_message,
    decision_message,
    decode_payload,
)
from signoff.broker.signer import TokenSigner
from signoff.broker.store import SessionStore, Table
from signoff.core.exceptions import DeliveryError, ErrorCode, ValidationError
from signoff.core.structured_logger import get_logger, token_prefix
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
from signoff.interfaces.base import InboundCallback, NotificationGateway
from signoff.observability.metrics import (
    APPROVALS_REQUESTED,
    CALLBACKS_REJECTED,
    DECISIONS_RECORDED,
    DELIVERY_FAILURES,
    POLLS,
)

logger = get_logger("DecisionBroker")


class CallbackStatus(str, Enum):
    ACCEPTED = "accepted"
    UNAUTHORIZED = "unauthorized"
    INVALID_DATA = "invalid_data"
    EXPIRED = "expired"
    INVALID_SIGNATURE = "invalid_signature"
    UNKNOWN_ACTION = "unknown_action"
    ALREADY_DECIDED = "already_decided"
    INTERNAL_ERROR = "internal_error"


# Acknowledgment text and alert flag for every rejection.
_REJECTIONS: dict[CallbackStatus, tuple[str, bool]] = {
    CallbackStatus.UNAUTHORIZED: ("⛔ Not authorised", True),
    CallbackStatus.INVALID_DATA: ("⚠️ Invalid data", False),
    CallbackStatus.EXPIRED: ("⚠️ Session expired or not found", True),
    CallbackStatus.INVALID_SIGNATURE: ("⚠️ Invalid signature", True),
    CallbackStatus.UNKNOWN_ACTION: ("⚠️ Unknown action", False),
    CallbackStatus.ALREADY_DECIDED: ("⚠️ Already decided", True),
    CallbackStatus.INTERNAL_ERROR: ("⚠️ Something went wrong", True),
}


@dataclass(frozen=True)
class CallbackVerdict:
    status: CallbackStatus
    ack_text: str
    alert: bool = False
    token: str | None = None
    outcome: Outcome | None = None
    session: PendingSession | None = None

    @property
    def accepted(self) -> bool:
        return self.status is CallbackStatus.ACCEPTED

    @classmethod
    def reject(cls, status: CallbackStatus, token: str | None = None) -> "CallbackVerdict":
        text, alert = _REJECTIONS[status]
        return cls(status=status, ack_text=text, alert=alert, token=token)


class DecisionBroker:
    """Session/result broker between callers, the store and the gateway."""

    def __init__(
        self,
        signer: TokenSigner,
        store: SessionStore,
        gateway: NotificationGateway,
        admin_id: str,
        ttl_seconds: float = 600,
    ) -> None:
        self.signer = signer
        self.store = store
        self.gateway = gateway
        self.admin_id = str(admin_id)
        self.ttl_seconds = ttl_seconds

    # ------------------------------------------------------------------
    # Caller side
    # ------------------------------------------------------------------

    async def request_approval(
        self,
        kind: str | None,
        subject: str | None,
        otp: str | None = None,
        passcode: str | None = None,
    ) -> str | None:
        """Forward an event to the approver.

        Returns the correlation token to poll with, or None for purely
        informational kinds. Input is validated before anything is minted.

        Raises:
            ValidationError: missing field or unknown kind
            DeliveryError: the gateway could not deliver the message
        """
        approval_kind = self._validate_request(kind, subject, otp)
        subject = subject.strip()

        if approval_kind is ApprovalKind.RESEND:
            message = approval_message(approval_kind, subject)
            await self._deliver(approval_kind, message)
            APPROVALS_REQUESTED.labels(kind=approval_kind.value).inc()
            return None

        token, tag = self.signer.issue(subject)
        session = PendingSession(token=token, subject=subject, tag=tag, kind=approval_kind)
        self.store.put(Table.PENDING, token, session, self.ttl_seconds)
        logger.info(
            "Token issued",
            token=token_prefix(token),
            kind=approval_kind.value,
            state=DecisionState.ISSUED.value,
        )

        message = approval_message(approval_kind, subject, token=token, otp=otp, passcode=passcode)
        # On failure the session is left to expire; nothing else was committed.
        receipt = await self._deliver(approval_kind, message)
        APPROVALS_REQUESTED.labels(kind=approval_kind.value).inc()
        logger.info(
            "Approval request delivered",
            token=token_prefix(token),
            message_id=receipt.message_id,
            state=DecisionState.AWAITING_DECISION.value,
        )
        return token

    def poll(self, token: str | None) -> str:
        """Hand back the decision at most once.

        Returns an outcome value, ``pending`` while the approver has not
        acted, or ``expired`` once the token is consumed, unknown or stale.
        """
        if not self.signer.is_valid_token(token):
            raise ValidationError("Invalid token", ErrorCode.INVALID_TOKEN)

        decision: Decision | None = self.store.take(Table.DECISIONS, token, drop=(Table.PENDING,))
        if decision is not None:
            POLLS.labels(result="outcome").inc()
            logger.info(
                "Decision consumed",
                token=token_prefix(token),
                outcome=decision.outcome.value,
                state=DecisionState.CONSUMED.value,
            )
            return decision.outcome.value

        if self.store.get(Table.PENDING, token) is not None:
            POLLS.labels(result=PollStatus.PENDING.value).inc()
            return PollStatus.PENDING.value

        POLLS.labels(result=PollStatus.EXPIRED.value).inc()
        return PollStatus.EXPIRED.value

    def state(self, token: str) -> DecisionState:
        """Observable state of ``token``; consumed and unknown read as EXPIRED."""
        if not self.signer.is_valid_token(token):
            return DecisionState.EXPIRED
        if self.store.get(Table.DECISIONS, token) is not None:
            return DecisionState.DECIDED
        if self.store.get(Table.PENDING, token) is not None:
            return DecisionState.AWAITING_DECISION
        return DecisionState.EXPIRED

    # ------------------------------------------------------------------
    # Approver side
    # ------------------------------------------------------------------

    def decide(self, callback: InboundCallback) -> CallbackVerdict:
        """Verify a callback and record its outcome; never raises for bad input."""
        if callback.approver_id is None or str(callback.approver_id) != self.admin_id:
            return self._rejected(CallbackStatus.UNAUTHORIZED, callback)

        parsed = decode_payload(callback.payload or "")
        if parsed is None or not self.signer.is_valid_token(parsed[1]):
            return self._rejected(CallbackStatus.INVALID_DATA, callback)
        action_id, token = parsed

        session: PendingSession | None = self.store.get(Table.PENDING, token)
        if session is None:
            return self._rejected(CallbackStatus.EXPIRED, callback, token)
        if not self.signer.verify(token, session.subject, session.tag):
            return self._rejected(CallbackStatus.INVALID_SIGNATURE, callback, token)

        try:
            action = Action(action_id)
        except ValueError:
            return self._rejected(CallbackStatus.UNKNOWN_ACTION, callback, token)
        if action not in KIND_ACTIONS[session.kind]:
            return self._rejected(CallbackStatus.UNKNOWN_ACTION, callback, token)

        outcome = ACTION_OUTCOMES[action]
        decision = Decision(token=token, outcome=outcome)
        if not self.store.put_if_absent(Table.DECISIONS, token, decision, self.ttl_seconds):
            return self._rejected(CallbackStatus.ALREADY_DECIDED, callback, token)

        DECISIONS_RECORDED.labels(outcome=outcome.value).inc()
        logger.info(
            "Decision recorded",
            token=token_prefix(token),
            outcome=outcome.value,
            state=DecisionState.DECIDED.value,
        )
        return CallbackVerdict(
            status=CallbackStatus.ACCEPTED,
            ack_text=OUTCOME_TEXTS[outcome].ack,
            token=token,
            outcome=outcome,
            session=session,
        )

    async def handle_callback(self, callback: InboundCallback) -> CallbackVerdict:
        """Full callback handling: verify, update the approver's view, answer.

        Failures are logged and never propagated; the callback is answered in
        every case.
        """
        try:
            verdict = self.decide(callback)
        except Exception as e:
            logger.error("Callback verification failed: %s", e, exc_info=True)
            verdict = CallbackVerdict.reject(CallbackStatus.INTERNAL_ERROR)

        if verdict.accepted:
            try:
                await self.gateway.close_request(callback)
                await self.gateway.deliver(
                    decision_message(verdict.outcome, verdict.session.subject)
                )
            except Exception as e:
                logger.error(
                    "Failed to update approver after decision: %s",
                    e,
                    token=token_prefix(verdict.token),
                    exc_info=True,
                )

        try:
            await self.gateway.acknowledge(callback, verdict.ack_text, alert=verdict.alert)
        except Exception as e:
            logger.error("Failed to answer callback %s: %s", callback.callback_id, e, exc_info=True)

        return verdict

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validate_request(
        self, kind: str | None, subject: str | None, otp: str | None
    ) -> ApprovalKind:
        if not kind or not subject or not subject.strip():
            raise ValidationError("Missing required fields", ErrorCode.MISSING_FIELD)
        try:
            approval_kind = ApprovalKind(kind)
        except ValueError:
            raise ValidationError(
                "Unknown type", ErrorCode.UNKNOWN_KIND, details={"type": kind}
            ) from None
        if approval_kind is ApprovalKind.OTP and not otp:
            raise ValidationError("Missing OTP", ErrorCode.MISSING_FIELD, details={"field": "otp"})
        return approval_kind

    async def _deliver(self, kind: ApprovalKind, message):
        try:
            return await self.gateway.deliver(message)
        except DeliveryError:
            DELIVERY_FAILURES.labels(kind=kind.value).inc()
            logger.error("Gateway delivery failed", kind=kind.value)
            raise

    def _rejected(
        self, status: CallbackStatus, callback: InboundCallback, token: str | None = None
    ) -> CallbackVerdict:
        CALLBACKS_REJECTED.labels(reason=status.value).inc()
        logger.warning(
            "Callback rejected",
            reason=status.value,
            approver_id=callback.approver_id,
            token=token_prefix(token),
        )
        return CallbackVerdict.reject(status, token)
