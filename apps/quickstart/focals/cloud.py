"""Asynchronous client for the Focals integration cloud API (uses httpx.AsyncClient)."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from apps.quickstart.focals.base import (
    FocalsAPIError,
    FocalsConnectionError,
    FocalsTimeoutError,
    KeyService,
    PacketPublisher,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://cloud.bynorth.com"
DEFAULT_TIMEOUT = 15.0

PUBLISH_PATH = "/v1/api/integration/secure/publish-to-user"
PUBLIC_KEYS_PATH = "/v1/api/integration/secure/public-keys"


def _extract_error(body: Any) -> str:
    """Pull a readable message out of an error response body."""
    if isinstance(body, dict):
        for key in ("message", "detail", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
        return str(body)
    return str(body)


class CloudClient(KeyService, PacketPublisher):
    """Talks to the platform cloud on behalf of one integration.

    Credentials travel in the JSON body, as the publish endpoint expects.

    Usage::

        async with CloudClient(api_key="...", api_secret="...", integration_id="...") as cloud:
            keys = await cloud.get_public_keys("user-1", cloud.integration_id)
            await cloud.publish_to_user("user-1", encrypted_packet)
    """

    def __init__(
        self,
        *,
        api_key: str,
        api_secret: str,
        integration_id: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.integration_id = integration_id
        self._api_key = api_key
        self._api_secret = api_secret
        self._timeout = timeout
        self._owns_client = client is None
        # Owned clients are opened on first request.
        self._client: Optional[httpx.AsyncClient] = client

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    async def __aenter__(self) -> "CloudClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_open(self) -> bool:
        return self._client is not None and not self._client.is_closed

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _credentials(self) -> Dict[str, str]:
        return {
            "apiKey": self._api_key,
            "apiSecret": self._api_secret,
            "integrationId": self.integration_id,
        }

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Content-Type": "application/json"},
                timeout=self._timeout,
            )
        return self._client

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = await self._get_client().request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise FocalsTimeoutError(str(exc)) from exc
        except httpx.TransportError as exc:
            raise FocalsConnectionError(str(exc)) from exc

        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = {"detail": resp.text}
            raise FocalsAPIError(resp.status_code, _extract_error(body), body if isinstance(body, dict) else None)

        if resp.status_code == 204 or not resp.content:
            return {}
        return resp.json()

    # ------------------------------------------------------------------
    # Device keys
    # ------------------------------------------------------------------

    async def get_public_keys(self, user_id: str, integration_id: str) -> List[Dict[str, Any]]:
        """POST /secure/public-keys: key records for every device of *user_id*."""
        body = {**self._credentials(), "integrationId": integration_id, "userId": user_id}
        data = await self._request("POST", PUBLIC_KEYS_PATH, json=body)
        keys = data.get("keys") if isinstance(data, dict) else data
        if not isinstance(keys, list):
            raise FocalsAPIError(200, "Malformed public key response", data if isinstance(data, dict) else None)
        return keys

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    async def publish_to_user(self, user_id: str, packet: Dict[str, Any]) -> Dict[str, Any]:
        """POST /secure/publish-to-user: deliver an encrypted packet."""
        body = {**self._credentials(), "targetUserId": user_id, "packet": packet}
        logger.debug(f"Publishing secure packet to {user_id}")
        return await self._request("POST", PUBLISH_PATH, json=body)
