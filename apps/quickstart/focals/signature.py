"""HMAC-SHA256 signing and verification of enable-flow requests."""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional


def _message(state: str, timestamp: str) -> bytes:
    return f"{state}:{timestamp}".encode()


class SignatureService:
    """Verifies the ``signature`` the platform attaches to ``/enable`` redirects."""

    def __init__(self, secret: str) -> None:
        self._secret = secret

    def sign(self, state: str, timestamp: str) -> str:
        """Compute the HMAC-SHA256 hex digest for *state* and *timestamp*."""
        return hmac.new(self._secret.encode(), _message(state, timestamp), hashlib.sha256).hexdigest()

    def verify_signature(
        self,
        state: Optional[str],
        timestamp: Optional[str],
        signature: Optional[str],
    ) -> bool:
        if not (self._secret and state and timestamp and signature):
            return False
        return hmac.compare_digest(self.sign(state, timestamp), signature)
