"""Data models for telemetry snapshots and delivery records."""

from pyvtc.models._base import VtcBaseModel, VtcStrEnum
from pyvtc.models.delivery import DeliveryRecord
from pyvtc.models.snapshot import (
    DEFAULT_SNAPSHOT,
    Blinker,
    DamageVector,
    GameId,
    JobInfo,
    LightsBeam,
    NavigationInfo,
    SessionInfo,
    TelemetrySnapshot,
    TrailerInfo,
    VehicleTelemetry,
)

__all__ = [
    "DEFAULT_SNAPSHOT",
    "Blinker",
    "DamageVector",
    "DeliveryRecord",
    "GameId",
    "JobInfo",
    "LightsBeam",
    "NavigationInfo",
    "SessionInfo",
    "TelemetrySnapshot",
    "TrailerInfo",
    "VehicleTelemetry",
    "VtcBaseModel",
    "VtcStrEnum",
]
