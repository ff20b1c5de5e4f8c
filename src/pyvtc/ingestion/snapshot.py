"""Schema normalizer.

Telemetry servers differ in field naming.  The scs-sdk-plugin style servers
send nested camelCase objects (``{"truck": {"speed": ...}}``) while
trucksim-telemetry-server style servers send flat snake_case keys
(``{"speed": ...}``).  Every field is therefore read through an ordered list
of candidate paths: nested/camelCase first, then flat/alternate names, then a
default.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pyvtc._constants import MPS_TO_KMH
from pyvtc.exceptions import VtcPayloadError
from pyvtc.ingestion.normalize import parse_payload, read_field, safe_bool, safe_float, safe_int, safe_str
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

_logger = logging.getLogger(__name__)


def _text(raw: Any, *paths: str) -> str:
    return read_field(raw, paths, safe_str, "")


def _number(raw: Any, *paths: str, default: float = 0.0) -> float:
    return read_field(raw, paths, safe_float, default)


def _integer(raw: Any, *paths: str) -> int:
    return read_field(raw, paths, safe_int, 0)


def _flag(raw: Any, *paths: str) -> bool:
    return read_field(raw, paths, safe_bool, False)


def _speed(raw: Any, *paths: str) -> float:
    """Read a m/s speed and convert it to a non-negative km/h value."""
    return abs(_number(raw, *paths)) * MPS_TO_KMH


def _game_id(value: Any) -> GameId | None:
    if not isinstance(value, str):
        return None
    return GameId(value)


def _session(raw: Any) -> SessionInfo:
    return SessionInfo(
        connected=_flag(raw, "game.connected", "connected"),
        paused=_flag(raw, "game.paused", "paused"),
        simulated_time=_text(raw, "game.time", "time"),
        time_scale=_number(raw, "game.timeScale", "timeScale", "time_scale", default=1.0),
        next_rest_stop=_number(raw, "game.nextRestStop", "nextRestStop", "next_rest_stop"),
        game_version=_text(raw, "game.version", "version"),
        telemetry_version=_text(raw, "game.telemetryVersion", "sdk_version"),
        game=read_field(raw, ("game.game", "game_name", "game"), _game_id, GameId.UNKNOWN),
    )


def _vehicle(raw: Any) -> VehicleTelemetry:
    return VehicleTelemetry(
        id=_text(raw, "truck.id", "truck_id"),
        make=_text(raw, "truck.make", "truck_make"),
        model=_text(raw, "truck.model", "truck_model"),
        speed=_speed(raw, "truck.speed", "speed"),
        speed_limit=_speed(raw, "truck.speedLimit", "speed_limit"),
        cruise_control=_speed(raw, "truck.cruiseControl", "cruise_control"),
        cruise_control_on=_flag(raw, "truck.cruiseControlOn", "cruise_control_on"),
        fuel=_number(raw, "truck.fuel", "fuel"),
        fuel_capacity=_number(raw, "truck.fuelCapacity", "fuel_capacity"),
        fuel_avg_consumption=_number(raw, "truck.fuelAvgConsumption", "fuel_avg_consumption"),
        odometer=_number(raw, "truck.odometer", "odometer"),
        engine_rpm=_number(raw, "truck.engineRpm", "engine_rpm"),
        engine_rpm_max=_number(raw, "truck.engineRpmMax", "engine_rpm_max"),
        gear=_integer(raw, "truck.gear", "gear"),
        gear_forward=_integer(raw, "truck.gearForward", "gear_forward"),
        gear_reverse=_integer(raw, "truck.gearReverse", "gear_reverse"),
        engine_on=_flag(raw, "truck.engineOn", "engine_on"),
        electric_on=_flag(raw, "truck.electricOn", "electric_on"),
        wipers_on=_flag(raw, "truck.wipersOn", "wipers_on"),
        lights_beam=LightsBeam(
            low=_flag(raw, "truck.lightsBeam.low", "lights_beam_low"),
            high=_flag(raw, "truck.lightsBeam.high", "lights_beam_high"),
        ),
        blinker=Blinker(
            left=_flag(raw, "truck.blinker.left", "blinker_left"),
            right=_flag(raw, "truck.blinker.right", "blinker_right"),
        ),
        damage=DamageVector(
            engine=_number(raw, "truck.damage.engine", "damage_engine"),
            transmission=_number(raw, "truck.damage.transmission", "damage_transmission"),
            cabin=_number(raw, "truck.damage.cabin", "damage_cabin"),
            chassis=_number(raw, "truck.damage.chassis", "damage_chassis"),
            wheels=_number(raw, "truck.damage.wheels", "damage_wheels"),
            total=_number(raw, "truck.damage.total", "damage_total"),
        ),
    )


def _trailer(raw: Any) -> TrailerInfo:
    return TrailerInfo(
        attached=_flag(raw, "trailer.attached", "trailer_attached"),
        id=_text(raw, "trailer.id", "trailer_id"),
        name=_text(raw, "trailer.name", "trailer_name"),
        mass=_number(raw, "trailer.mass", "trailer_mass"),
        damage=_number(raw, "trailer.damage", "trailer_damage"),
    )


def _job(raw: Any) -> JobInfo | None:
    job = raw.get("job") if isinstance(raw, Mapping) else None
    if not isinstance(job, Mapping):
        return None
    return JobInfo(
        income=_number(job, "income"),
        deadline_time=_text(job, "deadlineTime", "deadline_time"),
        remaining_time=_number(job, "remainingTime", "remaining_time"),
        source_city=_text(job, "sourceCity", "source_city"),
        source_company=_text(job, "sourceCompany", "source_company"),
        destination_city=_text(job, "destinationCity", "destination_city"),
        destination_company=_text(job, "destinationCompany", "destination_company"),
        cargo=_text(job, "cargo"),
        cargo_mass=_number(job, "cargoMass", "cargo_mass"),
        cargo_damage=_number(job, "cargoDamage", "cargo_damage"),
        is_special=_flag(job, "isSpecial", "is_special"),
        market=_text(job, "market"),
    )


def _navigation(raw: Any) -> NavigationInfo:
    return NavigationInfo(
        estimated_time=_number(raw, "navigation.estimatedTime", "navigation_time"),
        estimated_distance=_number(raw, "navigation.estimatedDistance", "navigation_distance"),
        speed_limit=_speed(raw, "navigation.speedLimit", "navigation_speed_limit"),
    )


def normalize_snapshot(raw: Any) -> TelemetrySnapshot:
    """Convert any raw telemetry frame into a canonical snapshot.

    *raw* may be a decoded mapping or JSON text.  This function never raises:
    a frame that cannot be parsed at all yields :data:`DEFAULT_SNAPSHOT`, and
    individual missing or unusable fields fall back to their defaults.
    """

    try:
        payload = parse_payload(raw)
        return TelemetrySnapshot(
            session=_session(payload),
            vehicle=_vehicle(payload),
            trailer=_trailer(payload),
            job=_job(payload),
            navigation=_navigation(payload),
        )
    except VtcPayloadError:
        _logger.debug("Discarding unparseable telemetry frame", exc_info=True)
        return DEFAULT_SNAPSHOT
    except Exception:
        _logger.debug("Telemetry normalization failed", exc_info=True)
        return DEFAULT_SNAPSHOT
