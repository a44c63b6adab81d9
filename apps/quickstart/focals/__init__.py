"""Focals platform client: collaborator interfaces plus default adapters.

``FocalsClient`` bundles the services an ability needs. Build it from the
application config, or pass individual services (useful in tests).
"""

from __future__ import annotations

from typing import Any, List

from apps.quickstart.focals.base import (
    DecryptionError,
    EncryptionError,
    EncryptionService,
    FocalsAPIError,
    FocalsConnectionError,
    FocalsError,
    FocalsTimeoutError,
    KeyService,
    PacketPublisher,
)
from apps.quickstart.focals.cloud import CloudClient
from apps.quickstart.focals.encryption import SECURE_PACKET_VERSION, FernetEncryptionService
from apps.quickstart.focals.signature import SignatureService
from apps.quickstart.focals.urls import UrlService


class FocalsClient:
    """The platform collaborators used by the ability."""

    def __init__(
        self,
        *,
        integration_id: str,
        keys: KeyService,
        encryption: EncryptionService,
        publisher: PacketPublisher,
        signatures: SignatureService,
        urls: UrlService,
    ) -> None:
        self.integration_id = integration_id
        self.keys = keys
        self.encryption = encryption
        self.publisher = publisher
        self.signatures = signatures
        self.urls = urls

    @classmethod
    def from_config(cls, config: Any) -> "FocalsClient":
        cloud = CloudClient(
            api_key=config.api_key,
            api_secret=config.api_secret,
            integration_id=config.integration_id,
            base_url=config.cloud_base_url,
            timeout=config.request_timeout,
        )
        return cls(
            integration_id=config.integration_id,
            keys=cloud,
            publisher=cloud,
            encryption=FernetEncryptionService(config.encryption_key or None, config.encryption_key_id),
            signatures=SignatureService(config.api_secret),
            urls=UrlService(config.integration_id, base_url=config.cloud_base_url),
        )

    async def aclose(self) -> None:
        closed: List[int] = []
        for service in (self.keys, self.publisher):
            closer = getattr(service, "aclose", None)
            if closer is not None and id(service) not in closed:
                closed.append(id(service))
                await closer()


__all__ = [
    "CloudClient",
    "DecryptionError",
    "EncryptionError",
    "EncryptionService",
    "FernetEncryptionService",
    "FocalsAPIError",
    "FocalsClient",
    "FocalsConnectionError",
    "FocalsError",
    "FocalsTimeoutError",
    "KeyService",
    "PacketPublisher",
    "SECURE_PACKET_VERSION",
    "SignatureService",
    "UrlService",
]
