"""Inbound action handling for the quickstart ability."""

from .dispatcher import (
    ActionDispatcher,
    ActionRequest,
    ActionResult,
    ActionType,
    is_secure_packet,
)

__all__ = [
    "ActionDispatcher",
    "ActionRequest",
    "ActionResult",
    "ActionType",
    "is_secure_packet",
]
