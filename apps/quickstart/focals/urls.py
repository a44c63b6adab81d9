"""Builds the platform URLs the enable flow redirects to."""

from __future__ import annotations

from typing import Optional

import httpx

from apps.quickstart.focals.cloud import DEFAULT_BASE_URL

ENABLE_PATH = "/v1/api/integration/enable"


class UrlService:
    def __init__(self, integration_id: str, base_url: str = DEFAULT_BASE_URL) -> None:
        self.integration_id = integration_id
        self.base_url = base_url.rstrip("/")

    def build_enable_url(self, state: str, error: Optional[str] = None) -> str:
        """Continuation URL for the enable flow, optionally carrying an *error* code."""
        params = {"integrationId": self.integration_id, "state": state}
        if error:
            params["error"] = error
        return str(httpx.URL(f"{self.base_url}{ENABLE_PATH}", params=params))
