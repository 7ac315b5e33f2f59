"""Error kinds raised by the TradeBench data-access layer.

Every failure surfaced by the API client is one of these. Transports map
HTTP and storage failures onto them; callers branch on the class.
"""

from __future__ import annotations


class TradeBenchError(Exception):
    """Base error for all TradeBench operations."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class ValidationError(TradeBenchError):
    """Malformed input, rejected before any backend call."""

    pass


class AuthError(TradeBenchError):
    """Credential or permission failure."""

    pass


class NotFoundError(TradeBenchError):
    """Requested row is absent."""

    pass


class ConflictError(TradeBenchError):
    """Unique-constraint violation (e.g. duplicate bookmark)."""

    pass


class BackendError(TradeBenchError):
    """Any other storage, network or response failure."""

    pass
