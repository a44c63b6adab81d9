"""User enablement state for the quickstart ability."""

from .store import TOLERANCE_IN_SECONDS, UserStateStore

__all__ = [
    "TOLERANCE_IN_SECONDS",
    "UserStateStore",
]
