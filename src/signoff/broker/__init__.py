"""Session/result broker: token signing, TTL store and decision protocol."""

from signoff.broker.protocol import CallbackStatus, CallbackVerdict, DecisionBroker
from signoff.broker.signer import TokenSigner
from signoff.broker.store import SessionStore, Table

__all__ = [
    "CallbackStatus",
    "CallbackVerdict",
    "DecisionBroker",
    "SessionStore",
    "Table",
    "TokenSigner",
]
