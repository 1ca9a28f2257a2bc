"""Token generation and HMAC integrity tags."""

from __future__ import annotations

import hashlib
import hmac
import secrets

from signoff.core.exceptions import ConfigurationError

_HEX_DIGITS = frozenset("0123456789abcdef")


class TokenSigner:
    """Mints correlation tokens and binds each one to its subject.

    ``tag = HMAC-SHA256(secret_key, token + "|" + subject)``, hex encoded.
    The key lives only on this object; it is never logged or exposed.
    """

    def __init__(self, secret_key: str, token_bytes: int = 16) -> None:
        if not secret_key:
            raise ConfigurationError("A non-empty secret key is required to sign tokens")
        if token_bytes < 8:
            raise ConfigurationError("Tokens need at least 8 random bytes (64 bits)")
        self._key = secret_key.encode()
        self.token_bytes = token_bytes

    def __repr__(self) -> str:
        return f"TokenSigner(token_bytes={self.token_bytes})"

    @property
    def token_length(self) -> int:
        return self.token_bytes * 2

    def issue(self, subject: str) -> tuple[str, str]:
        """Return a fresh ``(token, tag)`` pair for ``subject``."""
        token = secrets.token_hex(self.token_bytes)
        return token, self.sign(token, subject)

    def sign(self, token: str, subject: str) -> str:
        message = f"{token}|{subject}".encode()
        return hmac.new(self._key, message, hashlib.sha256).hexdigest()

    def verify(self, token: str, subject: str, tag: str | None) -> bool:
        """Constant-time check of ``tag`` against the recomputed one."""
        if not tag:
            return False
        expected = self.sign(token, subject)
        return hmac.compare_digest(expected.encode(), tag.encode())

    def is_valid_token(self, token: object) -> bool:
        """Fixed-length lowercase hex, checked before any store access."""
        return (
            isinstance(token, str)
            and len(token) == self.token_length
            and all(c in _HEX_DIGITS for c in token)
        )
