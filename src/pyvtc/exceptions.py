"""Custom exception hierarchy for pyvtc."""

from __future__ import annotations


class VtcError(Exception):
    """Base exception for all pyvtc errors."""


class VtcConfigError(VtcError):
    """Invalid or missing configuration."""


class VtcTransportError(VtcError):
    """Network-level failure (refused connection, non-200, websocket error)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str = "",
    ) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class VtcPayloadError(VtcError):
    """Telemetry payload could not be parsed as a JSON object."""
