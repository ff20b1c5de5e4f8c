"""pyvtc - Async live telemetry ingestion and job tracking for ETS2/ATS."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyvtc")
except PackageNotFoundError:
    __version__ = "0+local"
from pyvtc._constants import poll_url_for_game
from pyvtc.client import TelemetryClient
from pyvtc.config import TelemetryConfig, TransportMode
from pyvtc.delivery import prepare_delivery_record
from pyvtc.exceptions import VtcConfigError, VtcError, VtcPayloadError, VtcTransportError
from pyvtc.ingestion.snapshot import normalize_snapshot
from pyvtc.models import (
    DEFAULT_SNAPSHOT,
    DeliveryRecord,
    GameId,
    JobInfo,
    TelemetrySnapshot,
)
from pyvtc.state.connection import ActiveTransport, ConnectionEvent, ConnectionState, ConnectionStatus
from pyvtc.state.job import JobBaseline, JobLifecycleDetector, JobTransition

__all__ = [
    "__version__",
    "ActiveTransport",
    "ConnectionEvent",
    "ConnectionState",
    "ConnectionStatus",
    "DEFAULT_SNAPSHOT",
    "DeliveryRecord",
    "GameId",
    "JobBaseline",
    "JobInfo",
    "JobLifecycleDetector",
    "JobTransition",
    "TelemetryClient",
    "TelemetryConfig",
    "TelemetrySnapshot",
    "TransportMode",
    "VtcConfigError",
    "VtcError",
    "VtcPayloadError",
    "VtcTransportError",
    "normalize_snapshot",
    "poll_url_for_game",
    "prepare_delivery_record",
]
