"""
Field-selective packet encryption backed by Fernet.

Each selected field is JSON-encoded and sealed once per recipient key, so a
packet addressed to a user with several devices carries one token per device
key.  An encrypted field is replaced in place by::

    {"encrypted": {"<keyId>": "<fernet token>", ...}}

and the packet gains two markers: ``version`` (``SECURE_PACKET_VERSION``) and
``encryptedPaths`` (the list of pointers that were sealed).

Key records are dicts with ``keyId`` and ``key`` (a url-safe base64 Fernet
key, as produced by ``Fernet.generate_key()``).
"""

from __future__ import annotations

import copy
import json
from typing import Any, Dict, List, Optional, Sequence, Tuple

from cryptography.fernet import Fernet, InvalidToken

from apps.quickstart.focals.base import DecryptionError, EncryptionError, EncryptionService

SECURE_PACKET_VERSION = "2.0.0"


# ---------------------------------------------------------------------------
# JSON pointer helpers
# ---------------------------------------------------------------------------

def _split_pointer(pointer: str) -> List[str]:
    if not pointer.startswith("/"):
        raise ValueError(f"Invalid JSON pointer: {pointer!r}")
    return [part.replace("~1", "/").replace("~0", "~") for part in pointer[1:].split("/")]


def _resolve_parent(doc: Any, pointer: str) -> Tuple[Any, Any]:
    """Return ``(container, key)`` addressed by *pointer* inside *doc*."""
    parts = _split_pointer(pointer)
    node = doc
    for part in parts[:-1]:
        node = _step(node, part, pointer)
    last = parts[-1]
    if isinstance(node, list):
        return node, _index(node, last, pointer)
    if isinstance(node, dict):
        if last not in node:
            raise KeyError(f"Path {pointer} not found")
        return node, last
    raise KeyError(f"Path {pointer} not found")


def _step(node: Any, part: str, pointer: str) -> Any:
    if isinstance(node, dict) and part in node:
        return node[part]
    if isinstance(node, list):
        return node[_index(node, part, pointer)]
    raise KeyError(f"Path {pointer} not found")


def _index(node: list, part: str, pointer: str) -> int:
    if not part.isdigit() or int(part) >= len(node):
        raise KeyError(f"Path {pointer} not found")
    return int(part)


def _to_fernet(key: str | bytes) -> Fernet:
    key_bytes = key.encode("utf-8") if isinstance(key, str) else key
    return Fernet(key_bytes)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class FernetEncryptionService(EncryptionService):
    """Encrypts outbound packets for device keys and opens inbound ones.

    Parameters
    ----------
    private_key:
        The integration's own Fernet key, used to open secure action packets.
        Optional when the service only encrypts.
    key_id:
        Identifier under which the platform addresses tokens to this integration.
    """

    def __init__(self, private_key: Optional[str] = None, key_id: Optional[str] = None) -> None:
        self._key_id = key_id or ""
        self._fernet = _to_fernet(private_key) if private_key else None

    def encrypt_packet(
        self,
        packet: Dict[str, Any],
        paths: Sequence[str],
        public_keys: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        recipients = self._recipients(public_keys)
        sealed = copy.deepcopy(packet)
        for path in paths:
            try:
                container, key = _resolve_parent(sealed, path)
            except (KeyError, ValueError) as exc:
                raise EncryptionError(f"Cannot encrypt {path}: {exc}") from exc
            plaintext = json.dumps(container[key]).encode("utf-8")
            container[key] = {
                "encrypted": {key_id: f.encrypt(plaintext).decode("ascii") for key_id, f in recipients}
            }
        sealed["version"] = SECURE_PACKET_VERSION
        sealed["encryptedPaths"] = list(paths)
        return sealed

    def decrypt_packet(self, body: Dict[str, Any]) -> Dict[str, Any]:
        if self._fernet is None:
            raise DecryptionError("No private key configured for secure packets")
        paths = body.get("encryptedPaths")
        if not isinstance(paths, list):
            raise DecryptionError("Secure packet is missing encryptedPaths")

        opened = copy.deepcopy(body)
        for path in paths:
            try:
                container, key = _resolve_parent(opened, path)
                token = container[key]["encrypted"][self._key_id]
                container[key] = json.loads(self._fernet.decrypt(token.encode("ascii")))
            except InvalidToken as exc:
                raise DecryptionError(f"Invalid token at {path}") from exc
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                raise DecryptionError(f"Cannot decrypt {path}: {exc}") from exc

        opened.pop("encryptedPaths", None)
        opened.pop("version", None)
        return opened

    @staticmethod
    def _recipients(public_keys: List[Dict[str, Any]]) -> List[Tuple[str, Fernet]]:
        if not public_keys:
            raise EncryptionError("No public keys available for recipient")
        recipients = []
        for record in public_keys:
            try:
                recipients.append((str(record["keyId"]), _to_fernet(record["key"])))
            except (KeyError, TypeError, ValueError) as exc:
                raise EncryptionError(f"Invalid public key record: {exc}") from exc
        return recipients
