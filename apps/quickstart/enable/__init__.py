"""Enable-flow redirect handling."""

from .redirector import INVALID_STATE, EnableRedirector

__all__ = [
    "INVALID_STATE",
    "EnableRedirector",
]
