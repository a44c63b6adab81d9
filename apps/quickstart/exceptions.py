"""Service exception hierarchy. Each error carries the HTTP status it maps to."""


class QuickstartError(Exception):
    """Base exception for errors raised by the ability's request handling."""

    status_code = 500
    code = "INTERNAL_SERVER_ERROR"


class AuthorizationError(QuickstartError):
    """Raised when the shared secret is missing or does not match."""

    status_code = 401
    code = "UNAUTHORIZED"


class MalformedActionError(QuickstartError):
    """Raised when an action payload lacks a field its type requires."""


class DeliveryError(QuickstartError):
    """Raised when a broadcast fails for any user."""
