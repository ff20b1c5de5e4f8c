"""Client configuration for pyvtc."""

from __future__ import annotations

import dataclasses
import os
from enum import StrEnum
from typing import Any

from pyvtc._constants import (
    DEFAULT_POLL_INTERVAL_MS,
    DEFAULT_POLL_URL,
    DEFAULT_RECONNECT_DELAY_MS,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_STREAM_URL,
)
from pyvtc.exceptions import VtcConfigError


class TransportMode(StrEnum):
    """Transport selection policy."""

    STREAMING = "streaming"
    POLLING = "polling"
    AUTO = "auto"


# Names used by the dashboard settings page.
_MODE_ALIASES: dict[str, TransportMode] = {
    "websocket": TransportMode.STREAMING,
    "ws": TransportMode.STREAMING,
    "http": TransportMode.POLLING,
}


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _coerce_mode(value: Any) -> TransportMode:
    if isinstance(value, TransportMode):
        return value
    text = str(value).strip().lower()
    if text in _MODE_ALIASES:
        return _MODE_ALIASES[text]
    try:
        return TransportMode(text)
    except ValueError as exc:
        raise VtcConfigError(f"Unknown transport mode {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class TelemetryConfig:
    """Telemetry connection configuration.

    Parameters
    ----------
    stream_url : str
        Websocket endpoint of the telemetry server.
    poll_url : str
        HTTP endpoint returning one telemetry payload per request.
    poll_interval_ms : int
        Delay between polling requests in milliseconds.
    mode : TransportMode
        ``streaming``, ``polling`` or ``auto``.  ``auto`` starts with the
        streaming transport and falls back to polling once the stream drops.
        Plain strings (including ``"websocket"`` and ``"http"``) are accepted.
    auto_reconnect : bool
        Schedule a new attempt after the streaming transport closes.
    reconnect_delay_ms : int
        Delay before that attempt, in milliseconds.
    request_timeout : float
        Seconds allowed for a polling request or a websocket handshake.
    """

    stream_url: str = DEFAULT_STREAM_URL
    poll_url: str = DEFAULT_POLL_URL
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    mode: TransportMode = TransportMode.AUTO
    auto_reconnect: bool = True
    reconnect_delay_ms: int = DEFAULT_RECONNECT_DELAY_MS
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    def __post_init__(self) -> None:
        # Frozen dataclass: normalize through object.__setattr__.
        object.__setattr__(self, "mode", _coerce_mode(self.mode))
        if not self.stream_url.strip():
            raise VtcConfigError("stream_url must be non-empty")
        if not self.poll_url.strip():
            raise VtcConfigError("poll_url must be non-empty")
        if self.poll_interval_ms <= 0:
            raise VtcConfigError(f"poll_interval_ms must be positive, got {self.poll_interval_ms}")
        if self.reconnect_delay_ms < 0:
            raise VtcConfigError(f"reconnect_delay_ms must not be negative, got {self.reconnect_delay_ms}")
        if self.request_timeout <= 0:
            raise VtcConfigError(f"request_timeout must be positive, got {self.request_timeout}")

    @property
    def poll_interval(self) -> float:
        """Polling interval in seconds."""
        return self.poll_interval_ms / 1000.0

    @property
    def reconnect_delay(self) -> float:
        """Reconnect delay in seconds."""
        return self.reconnect_delay_ms / 1000.0

    @classmethod
    def from_env(cls, **overrides: Any) -> TelemetryConfig:
        """Create configuration from environment variables.

        Reads the optional ``VTC_TELEMETRY_*`` variables.  Explicit keyword
        arguments override environment values.

        Raises
        ------
        VtcConfigError
            If a numeric variable cannot be parsed or a value is invalid.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        _ENV_STR_MAP = {
            "VTC_TELEMETRY_STREAM_URL": "stream_url",
            "VTC_TELEMETRY_POLL_URL": "poll_url",
            "VTC_TELEMETRY_MODE": "mode",
        }
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_NUMERIC_MAP: dict[str, tuple[str, type]] = {
            "VTC_TELEMETRY_POLL_INTERVAL_MS": ("poll_interval_ms", int),
            "VTC_TELEMETRY_RECONNECT_DELAY_MS": ("reconnect_delay_ms", int),
            "VTC_TELEMETRY_REQUEST_TIMEOUT": ("request_timeout", float),
        }
        for env_key, (field_name, cast) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = cast(val)
            except ValueError as exc:
                raise VtcConfigError(f"{env_key} is not a valid {cast.__name__}: {val!r}") from exc

        if "auto_reconnect" not in overrides:
            config_kwargs["auto_reconnect"] = _env_bool(env.get("VTC_TELEMETRY_AUTO_RECONNECT"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
