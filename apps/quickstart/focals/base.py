"""Collaborator interfaces and error hierarchy for the Focals platform client."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence


class FocalsError(Exception):
    """Base exception for all platform client errors."""


class FocalsAPIError(FocalsError):
    """Raised when the platform cloud returns a non-2xx response."""

    def __init__(self, status_code: int, detail: str, response_body: Optional[dict] = None):
        self.status_code = status_code
        self.detail = detail
        self.response_body = response_body or {}
        super().__init__(f"HTTP {status_code}: {detail}")


class FocalsConnectionError(FocalsError):
    """Raised when the client cannot connect to the platform cloud."""


class FocalsTimeoutError(FocalsError):
    """Raised when a platform request times out."""


class EncryptionError(FocalsError):
    """Raised when a packet cannot be encrypted for its recipients."""


class DecryptionError(FocalsError):
    """Raised when a secure packet cannot be decrypted."""


class KeyService(ABC):
    """Retrieves the public encryption keys of a user's devices."""

    @abstractmethod
    async def get_public_keys(self, user_id: str, integration_id: str) -> List[Dict[str, Any]]:
        """Return the key records for *user_id* under *integration_id*."""


class EncryptionService(ABC):
    """Field-selective encryption of secure packets.

    ``paths`` are JSON-pointer style locations (``/icon/value``) of the
    fields to encrypt; every other field stays in plaintext.
    """

    @abstractmethod
    def encrypt_packet(
        self,
        packet: Dict[str, Any],
        paths: Sequence[str],
        public_keys: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """Return an encrypted copy of *packet*."""

    @abstractmethod
    def decrypt_packet(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Return the plaintext form of an encrypted *body*."""


class PacketPublisher(ABC):
    """Delivers an encrypted packet to a single user."""

    @abstractmethod
    async def publish_to_user(self, user_id: str, packet: Dict[str, Any]) -> Dict[str, Any]:
        """Publish *packet* to *user_id* and return the platform's response."""
