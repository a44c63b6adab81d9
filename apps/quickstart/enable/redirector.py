"""Enable-flow redirect (``GET /enable``).

The platform sends the user here with a signed ``state``.  A valid request
opens a pending validation for that state and continues the platform's
enable flow; anything else is sent back with ``error=invalid_state``.  The
caller always gets a redirect, never an error page.
"""

from __future__ import annotations

import logging
from typing import Optional

from apps.quickstart.focals.signature import SignatureService
from apps.quickstart.focals.urls import UrlService
from apps.quickstart.users.store import UserStateStore

logger = logging.getLogger(__name__)

INVALID_STATE = "invalid_state"


class EnableRedirector:
    def __init__(self, store: UserStateStore, signatures: SignatureService, urls: UrlService) -> None:
        self._store = store
        self._signatures = signatures
        self._urls = urls

    def resolve(
        self,
        signature: Optional[str],
        state: Optional[str],
        timestamp: Optional[str],
    ) -> str:
        """Return the URL to redirect the caller to."""
        if not self._signatures.verify_signature(state, timestamp, signature):
            logger.warning("Rejected enable request with invalid signature")
            return self._urls.build_enable_url("", error=INVALID_STATE)

        self._store.mark_pending(state)
        logger.info("Enable flow started; awaiting validation")
        return self._urls.build_enable_url(state)
