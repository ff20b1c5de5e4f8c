"""Delivery-record preparation.

Combines the latest snapshot with the baseline captured at job start into a
:class:`~pyvtc.models.DeliveryRecord` ready for the storage collaborator.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from pyvtc._constants import DAMAGE_PERCENT_SCALE, KG_PER_TONNE
from pyvtc.models.delivery import DeliveryRecord
from pyvtc.models.snapshot import TelemetrySnapshot

if TYPE_CHECKING:
    from pyvtc.state.job import JobBaseline

_logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""
    return math.floor(value + 0.5)


def _clamped_delta(name: str, value: float, anomalies: list[str]) -> int:
    rounded = round_half_up(value)
    if rounded >= 0:
        return rounded
    _logger.warning(
        "Negative %s delta %.2f since job start (reset or refuel mid-job?); clamping to 0",
        name,
        value,
    )
    anomalies.append(name)
    return 0


def prepare_delivery_record(
    snapshot: TelemetrySnapshot,
    baseline: JobBaseline | None,
) -> DeliveryRecord | None:
    """Compute a delivery record, or ``None`` when there is nothing to compute.

    ``None`` is returned when the snapshot carries no job or no baseline has
    been captured.  Negative distance or fuel deltas are data-integrity
    anomalies: they are clamped to zero, logged, and listed in
    :attr:`DeliveryRecord.anomalies`.  Neither argument is modified.
    """

    job = snapshot.job
    if job is None or baseline is None:
        return None

    anomalies: list[str] = []
    distance = _clamped_delta("distance", snapshot.vehicle.odometer - baseline.start_odometer, anomalies)
    fuel = _clamped_delta("fuel", baseline.start_fuel - snapshot.vehicle.fuel, anomalies)

    return DeliveryRecord(
        origin_city=job.source_city,
        destination_city=job.destination_city,
        origin_company=job.source_company,
        destination_company=job.destination_company,
        distance_km=distance,
        cargo_type=job.cargo,
        cargo_weight=job.cargo_mass / KG_PER_TONNE,
        fuel_consumed=fuel,
        income=job.income,
        damage_percent=job.cargo_damage * DAMAGE_PERCENT_SCALE,
        anomalies=tuple(anomalies),
    )
