"""In-memory user enablement state.

Holds which users have the ability enabled and which enable-flow state tokens
are awaiting validation.  Nothing is persisted: state lives as long as the
process.  A single lock serializes every mutation so check-then-update
sequences such as :meth:`UserStateStore.promote` stay atomic across
concurrent requests.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

# Window within which a pending state token may be validated.
TOLERANCE_IN_SECONDS = 6 * 60


class UserStateStore:
    """Enabled users and pending validations, guarded by one lock.

    Parameters
    ----------
    tolerance_seconds:
        Maximum absolute distance between a token's creation time and its
        validation.  Future timestamps (clock skew) count symmetrically.
    clock:
        Returns the current time in epoch seconds.
    """

    def __init__(
        self,
        tolerance_seconds: float = TOLERANCE_IN_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._lock = threading.Lock()
        self._enabled: Dict[str, bool] = {}
        self._pending: Dict[str, float] = {}
        self._tolerance = tolerance_seconds
        self._clock = clock

    @property
    def tolerance_seconds(self) -> float:
        return self._tolerance

    # -- Pending validations ----------------------------------------------

    def mark_pending(self, token: str) -> float:
        """Record *token* as awaiting validation. Returns the recorded time."""
        with self._lock:
            now = self._clock()
            self._purge_locked(now)
            self._pending[token] = now
            return now

    def is_pending(self, token: str) -> bool:
        with self._lock:
            return token in self._pending

    def is_pending_fresh(self, token: str, tolerance: Optional[float] = None) -> bool:
        with self._lock:
            return self._is_fresh_locked(token, self._clock(), tolerance)

    def promote(self, token: str, user_id: str) -> bool:
        """Enable *user_id* if *token* is fresh, consuming the token.

        Returns False, leaving both maps untouched, when the token is absent
        or outside the tolerance window.
        """
        with self._lock:
            if not self._is_fresh_locked(token, self._clock(), None):
                return False
            self._enabled[user_id] = True
            del self._pending[token]
            return True

    def purge_stale(self) -> int:
        """Drop pending tokens that can no longer be validated. Returns the count."""
        with self._lock:
            return self._purge_locked(self._clock())

    # -- Enabled users ----------------------------------------------------

    def disable(self, user_id: str) -> bool:
        """Remove *user_id* from the enabled set. Returns True if it was present."""
        with self._lock:
            return self._enabled.pop(user_id, None) is not None

    def is_enabled(self, user_id: str) -> bool:
        with self._lock:
            return self._enabled.get(user_id, False)

    def list_enabled(self) -> List[str]:
        """Snapshot of enabled user ids."""
        with self._lock:
            return list(self._enabled)

    # -- Lifecycle --------------------------------------------------------

    def reset(self) -> None:
        with self._lock:
            self._enabled.clear()
            self._pending.clear()

    # -- Internal (caller holds the lock) ---------------------------------

    def _is_fresh_locked(self, token: str, now: float, tolerance: Optional[float]) -> bool:
        if token not in self._pending:
            return False
        window = self._tolerance if tolerance is None else tolerance
        return abs(now - self._pending[token]) <= window

    def _purge_locked(self, now: float) -> int:
        stale = [t for t, created in self._pending.items() if abs(now - created) > self._tolerance]
        for token in stale:
            del self._pending[token]
        if stale:
            logger.debug(f"Purged {len(stale)} stale pending validation(s)")
        return len(stale)
