"""Dispatch of inbound platform actions (``POST /action``).

The platform reports lifecycle events as ``{"type": ..., "body": {...}}``.
Bodies marked with a secure-packet version (>= 2.0.0) are decrypted before
dispatch.  Handlers return an :class:`ActionResult`; the HTTP layer maps it
onto a status code.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

import semver
from pydantic import BaseModel, Field

from apps.quickstart.exceptions import MalformedActionError
from apps.quickstart.focals.base import DecryptionError, EncryptionService
from apps.quickstart.users.store import UserStateStore

logger = logging.getLogger(__name__)

SECURE_PACKET_MIN_VERSION = semver.Version(2, 0, 0)


class ActionType(str, Enum):
    VALIDATE = "integration:validate"
    DISABLE = "integration:disable"

    @classmethod
    def parse(cls, raw: Any) -> Optional["ActionType"]:
        if not isinstance(raw, str):
            return None
        try:
            return cls(raw)
        except ValueError:
            return None


class ActionRequest(BaseModel):
    """Inbound action payload."""
    # Left loose so a missing or non-string type reaches the unrecognized arm.
    type: Optional[Any] = Field(None, description="Action type, e.g. integration:validate")
    body: Optional[Dict[str, Any]] = Field(None, description="Action-specific data")


@dataclass(frozen=True)
class ActionResult:
    status_code: int
    detail: str

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    @classmethod
    def success(cls, detail: str = "OK") -> "ActionResult":
        return cls(200, detail)

    @classmethod
    def bad_request(cls, detail: str) -> "ActionResult":
        return cls(400, detail)


def is_secure_packet(body: Optional[Dict[str, Any]]) -> bool:
    """True when *body* declares a valid semantic version >= 2.0.0."""
    if not body:
        return False
    version = body.get("version")
    if not isinstance(version, str):
        return False
    # Loose forms such as "v2.0.0" and "=2.0.0" are accepted.
    version = version.strip().lstrip("=v")
    if not semver.Version.is_valid(version):
        return False
    return semver.Version.parse(version) >= SECURE_PACKET_MIN_VERSION


def _require(body: Dict[str, Any], field: str, action: ActionType) -> str:
    value = body.get(field)
    if not isinstance(value, str) or not value:
        raise MalformedActionError(f"{action.value} action is missing '{field}'")
    return value


class ActionDispatcher:
    """Routes actions to handlers that update the user state store."""

    def __init__(self, store: UserStateStore, encryption: EncryptionService) -> None:
        self._store = store
        self._encryption = encryption
        self._handlers: Dict[ActionType, Callable[[Dict[str, Any]], ActionResult]] = {
            ActionType.VALIDATE: self._handle_validate,
            ActionType.DISABLE: self._handle_disable,
        }
        missing = set(ActionType) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for action types: {sorted(m.value for m in missing)}")

    def dispatch(self, payload: Dict[str, Any]) -> ActionResult:
        """Validate, decrypt if needed, and route *payload*.

        A missing, non-string or unknown ``type`` is a 400 result.

        Raises:
            pydantic.ValidationError: payload is not an object, or ``body`` is not one.
            DecryptionError: a secure body could not be decrypted.
            MalformedActionError: a required body field is missing.
        """
        request = ActionRequest.model_validate(payload)
        body = request.body

        if is_secure_packet(body):
            try:
                body = self._encryption.decrypt_packet(body)
            except DecryptionError:
                logger.error("Unexpected error while decrypting action packet")
                raise

        action_type = ActionType.parse(request.type)
        if action_type is None:
            logger.info(f"Unrecognized action: {request.type}")
            return ActionResult.bad_request(f"Unrecognized action type: {request.type}")

        return self._handlers[action_type](body or {})

    # -- Handlers ---------------------------------------------------------

    def _handle_validate(self, body: Dict[str, Any]) -> ActionResult:
        state = body.get("state")
        if not isinstance(state, str) or not state:
            # No token was ever pending under a missing state.
            logger.info("Rejected validation without a state token")
            return ActionResult.bad_request("Validation state expired or unknown")
        user_id = _require(body, "userId", ActionType.VALIDATE)

        if not self._store.promote(state, user_id):
            logger.info(f"Rejected validation for {user_id}: state expired or unknown")
            return ActionResult.bad_request("Validation state expired or unknown")

        logger.info(f"Enabled user {user_id}")
        return ActionResult.success()

    def _handle_disable(self, body: Dict[str, Any]) -> ActionResult:
        user_id = _require(body, "userId", ActionType.DISABLE)
        self._store.disable(user_id)
        logger.info(f"Disabled user {user_id}")
        return ActionResult.success()
