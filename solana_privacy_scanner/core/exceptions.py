"""
Application-level exceptions.

Fatal input errors (invalid target, unreadable label database) are raised
and surface to the caller; recoverable data absence (RPC failures,
malformed transactions) never uses exceptions past the collection layer.
"""

from __future__ import annotations


class PrivacyScannerError(Exception):
    """Base class for all scanner errors."""


class InvalidTargetError(PrivacyScannerError, ValueError):
    """Target address or signature is not valid base58 of the expected length."""

    def __init__(self, target: str, target_type: str, reason: str = "") -> None:
        self.target = target
        self.target_type = target_type
        msg = f"Invalid Solana {target_type} target: {target!r}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class LabelProviderError(PrivacyScannerError):
    """Known-address label database could not be read or parsed."""


class RpcError(PrivacyScannerError):
    """JSON-RPC error response, or transport failure after all retries."""

    def __init__(self, message: str, code: int | None = None) -> None:
        self.code = code
        super().__init__(message)


class PolicyError(PrivacyScannerError):
    """Policy preset unknown, or policy file unreadable or invalid."""
