"""Custom exception hierarchy for pytempest."""

from __future__ import annotations


class TempestError(Exception):
    """Base exception for all pytempest errors."""


class TempestConfigError(TempestError):
    """Invalid or missing configuration."""


class TempestTransportError(TempestError):
    """HTTP-level failure (network, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class TempestRateLimitError(TempestTransportError):
    """The service answered with HTTP 429 (over quota).

    Raised by REST calls, and used internally by the streaming client to
    classify a rejected WebSocket handshake so it can back off harder.
    """


class TempestApiError(TempestError):
    """The service returned a well-formed response describing a failure.

    WeatherFlow wraps application errors in a ``status`` object with a
    non-zero ``status_code``.
    """

    def __init__(
        self,
        message: str,
        *,
        code: str = "",
        endpoint: str = "",
    ) -> None:
        self.code = code
        self.endpoint = endpoint
        super().__init__(message)
