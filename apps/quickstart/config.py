"""
Application configuration.

Settings are layered, lowest priority first:

1. a JSON defaults file (``default.json`` at the project root, or the path in
   ``QUICKSTART_CONFIG_FILE``) shaped ``{"port": ..., "quickstart": {...}}``,
2. environment variables.  Service settings nest with a double underscore
   (``QUICKSTART__SHARED_SECRET`` or ``quickstart__sharedsecret``); top-level
   settings use their bare name (``PORT``, ``HOST``, ``LOG_LEVEL``, ``PRODUCTION``),
3. explicit overrides, typically parsed from the command line.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DEFAULT_CONFIG_FILE = PROJECT_ROOT / "default.json"
CONFIG_FILE_ENV = "QUICKSTART_CONFIG_FILE"

SECTION = "quickstart"
ENV_SEPARATOR = "__"

_VALID_LOG_LEVELS = {"critical", "error", "warning", "info", "debug"}

_SECRET_KEYS = frozenset({
    "shared_secret",
    "api_key",
    "api_secret",
    "encryption_key",
})

# Settings read from the top level of the file and from bare env names.
_TOP_LEVEL = ("host", "port", "log_level", "production")

_DEFAULTS: Dict[str, Any] = {
    "host": "0.0.0.0",
    "port": 8000,
    "log_level": "info",
    "production": False,
    "shared_secret": "",
    "api_key": "",
    "api_secret": "",
    "integration_id": "",
    "cloud_base_url": "https://cloud.bynorth.com",
    "encryption_key": "",
    "encryption_key_id": "",
    "request_timeout": 15.0,
}


def _normalize(name: str) -> str:
    """``sharedSecret``, ``SHARED_SECRET`` and ``sharedsecret`` all collapse to ``sharedsecret``."""
    return name.replace("_", "").replace("-", "").lower()


_FIELDS_BY_NORMALIZED = {_normalize(field): field for field in _DEFAULTS}


def _redact(value: str) -> str:
    """Mask a secret, keeping a short prefix and suffix of longer values."""
    if len(value) < 8:
        return "***"
    return f"{value[:4]}***{value[-2:]}"


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _load_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")

    values: Dict[str, Any] = {}
    for key, value in raw.items():
        if key == SECTION and isinstance(value, dict):
            for sub_key, sub_value in value.items():
                field = _FIELDS_BY_NORMALIZED.get(_normalize(sub_key))
                if field:
                    values[field] = sub_value
            continue
        field = _FIELDS_BY_NORMALIZED.get(_normalize(key))
        if field in _TOP_LEVEL:
            values[field] = value
    return values


def _load_env(environ: Mapping[str, str]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for name, value in environ.items():
        parts = name.split(ENV_SEPARATOR)
        if len(parts) == 2 and parts[0].lower() == SECTION:
            field = _FIELDS_BY_NORMALIZED.get(_normalize(parts[1]))
            if field:
                values[field] = value
        elif len(parts) == 1 and value != "":
            field = _FIELDS_BY_NORMALIZED.get(_normalize(name))
            if field in _TOP_LEVEL and name.upper() == name:
                values[field] = value
    return values


class AppConfig:
    """Resolved settings for the ability service."""

    def __init__(
        self,
        overrides: Optional[Mapping[str, Any]] = None,
        config_file: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        environ = os.environ if environ is None else environ
        path = config_file or Path(environ.get(CONFIG_FILE_ENV) or DEFAULT_CONFIG_FILE)
        self.config_file = Path(path)

        merged: Dict[str, Any] = dict(_DEFAULTS)
        merged.update(_load_file(self.config_file))
        merged.update(_load_env(environ))
        for key, value in (overrides or {}).items():
            if value is None:
                continue
            field = _FIELDS_BY_NORMALIZED.get(_normalize(key))
            if field is None:
                raise ValueError(f"Unknown configuration key: {key}")
            merged[field] = value

        self.host: str = str(merged["host"])
        self.port: int = int(merged["port"])
        self.log_level: str = str(merged["log_level"]).lower()
        self.production: bool = _as_bool(merged["production"])
        self.shared_secret: str = str(merged["shared_secret"] or "")
        self.api_key: str = str(merged["api_key"] or "")
        self.api_secret: str = str(merged["api_secret"] or "")
        self.integration_id: str = str(merged["integration_id"] or "")
        self.cloud_base_url: str = str(merged["cloud_base_url"]).rstrip("/")
        self.encryption_key: str = str(merged["encryption_key"] or "")
        self.encryption_key_id: str = str(merged["encryption_key_id"] or "")
        self.request_timeout: float = float(merged["request_timeout"])

    def to_dict(self, redact_secrets: bool = True) -> Dict[str, Any]:
        """Return settings as a dict, masking secrets unless told otherwise."""
        out: Dict[str, Any] = {}
        for field in _DEFAULTS:
            value = getattr(self, field)
            if redact_secrets and field in _SECRET_KEYS and value:
                value = _redact(value)
            out[field] = value
        return out

    def validate(self) -> List[str]:
        """Return a list of configuration problems (empty when valid)."""
        errors: List[str] = []
        if not 1 <= self.port <= 65535:
            errors.append(f"PORT must be between 1 and 65535, got {self.port}")
        if self.log_level not in _VALID_LOG_LEVELS:
            errors.append(f"LOG_LEVEL must be one of {sorted(_VALID_LOG_LEVELS)}, got {self.log_level!r}")
        if self.request_timeout <= 0:
            errors.append("QUICKSTART__REQUEST_TIMEOUT must be positive")
        if self.production:
            for field in ("shared_secret", "api_key", "api_secret", "integration_id"):
                if not getattr(self, field):
                    errors.append(f"QUICKSTART__{field.upper()} is required in production")
        return errors
