"""Canonical telemetry snapshot model.

A :class:`TelemetrySnapshot` is one complete reading of the simulation.
Snapshots carry no identity beyond "most recent": every inbound payload
produces a fresh instance that replaces the previous one.

Speeds are km/h, distances km, fuel litres, masses kg and damage values
fractions in ``[0, 1]``.
"""

from __future__ import annotations

from pydantic import Field

from pyvtc.models._base import VtcBaseModel, VtcStrEnum


class GameId(VtcStrEnum):
    """Simulation the telemetry comes from."""

    UNKNOWN = "unknown"
    ETS2 = "ets2"
    ATS = "ats"


class SessionInfo(VtcBaseModel):
    """Simulation session state."""

    connected: bool = False
    paused: bool = False
    simulated_time: str = ""
    time_scale: float = 1.0
    next_rest_stop: float = 0.0
    game_version: str = ""
    telemetry_version: str = ""
    game: GameId = GameId.UNKNOWN


class LightsBeam(VtcBaseModel):
    low: bool = False
    high: bool = False


class Blinker(VtcBaseModel):
    left: bool = False
    right: bool = False


class DamageVector(VtcBaseModel):
    """Per-component truck wear, each a fraction in ``[0, 1]``."""

    engine: float = 0.0
    transmission: float = 0.0
    cabin: float = 0.0
    chassis: float = 0.0
    wheels: float = 0.0
    total: float = 0.0


class VehicleTelemetry(VtcBaseModel):
    """Truck state.

    ``gear`` is signed: ``0`` is neutral and negative values are reverse
    gears.  ``odometer`` is the total distance the truck has travelled.
    """

    id: str = ""
    make: str = ""
    model: str = ""
    speed: float = 0.0
    speed_limit: float = 0.0
    cruise_control: float = 0.0
    cruise_control_on: bool = False
    fuel: float = 0.0
    fuel_capacity: float = 0.0
    fuel_avg_consumption: float = 0.0
    odometer: float = 0.0
    engine_rpm: float = 0.0
    engine_rpm_max: float = 0.0
    gear: int = 0
    gear_forward: int = 0
    gear_reverse: int = 0
    engine_on: bool = False
    electric_on: bool = False
    wipers_on: bool = False
    lights_beam: LightsBeam = Field(default_factory=LightsBeam)
    blinker: Blinker = Field(default_factory=Blinker)
    damage: DamageVector = Field(default_factory=DamageVector)


class TrailerInfo(VtcBaseModel):
    attached: bool = False
    id: str = ""
    name: str = ""
    mass: float = 0.0
    damage: float = 0.0


class JobInfo(VtcBaseModel):
    """An active delivery contract."""

    income: float = 0.0
    deadline_time: str = ""
    remaining_time: float = 0.0
    source_city: str = ""
    source_company: str = ""
    destination_city: str = ""
    destination_company: str = ""
    cargo: str = ""
    cargo_mass: float = 0.0
    cargo_damage: float = 0.0
    is_special: bool = False
    market: str = ""


class NavigationInfo(VtcBaseModel):
    estimated_time: float = 0.0
    estimated_distance: float = 0.0
    speed_limit: float = 0.0


class TelemetrySnapshot(VtcBaseModel):
    """One complete, immutable telemetry reading."""

    session: SessionInfo = Field(default_factory=SessionInfo)
    vehicle: VehicleTelemetry = Field(default_factory=VehicleTelemetry)
    trailer: TrailerInfo = Field(default_factory=TrailerInfo)
    job: JobInfo | None = None
    navigation: NavigationInfo = Field(default_factory=NavigationInfo)

    @property
    def is_job_active(self) -> bool:
        """Whether a delivery is in progress."""
        return self.job is not None

    @property
    def is_session_running(self) -> bool:
        """Whether the simulation is connected and not paused."""
        return self.session.connected and not self.session.paused


DEFAULT_SNAPSHOT = TelemetrySnapshot()
"""The all-default snapshot: disconnected session, zeroed vehicle, no job."""
