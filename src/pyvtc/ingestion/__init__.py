"""Ingestion layer.

This package turns raw frames received from a telemetry server (websocket
messages, HTTP responses) into canonical :class:`~pyvtc.models.TelemetrySnapshot`
values.
"""

from pyvtc.ingestion.snapshot import normalize_snapshot

__all__ = ["normalize_snapshot"]
