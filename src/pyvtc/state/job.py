"""Job lifecycle detection.

Watches the snapshot stream for job-presence transitions and keeps the
odometer/fuel baseline needed to compute trip deltas.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from pydantic import Field

from pyvtc.delivery import prepare_delivery_record
from pyvtc.models._base import VtcBaseModel
from pyvtc.models.delivery import DeliveryRecord
from pyvtc.models.snapshot import DEFAULT_SNAPSHOT, TelemetrySnapshot

if TYPE_CHECKING:
    from pyvtc.client import TelemetryClient

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class JobBaseline(VtcBaseModel):
    """Odometer and fuel readings captured when a job starts."""

    start_odometer: float
    start_fuel: float
    started_at: datetime = Field(default_factory=_utcnow)


class JobTransition(StrEnum):
    STARTED = "started"
    ENDED = "ended"


class JobLifecycleDetector:
    """Track job start/end from a stream of snapshots.

    A baseline is captured the first time a snapshot carries a job and
    dropped the first time a snapshot carries none.  Ending a job never
    produces a record by itself: the final "job completed" frame is not
    guaranteed to arrive before the job disappears, so record production is
    always an explicit :meth:`prepare` call.
    """

    def __init__(
        self,
        *,
        on_transition: Callable[[JobTransition, TelemetrySnapshot], None] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._on_transition = on_transition
        self._clock = clock
        self._baseline: JobBaseline | None = None
        self._latest: TelemetrySnapshot = DEFAULT_SNAPSHOT

    @property
    def baseline(self) -> JobBaseline | None:
        return self._baseline

    @property
    def latest_snapshot(self) -> TelemetrySnapshot:
        return self._latest

    @property
    def is_tracking(self) -> bool:
        """Whether a job is currently being tracked."""
        return self._baseline is not None

    def observe(self, snapshot: TelemetrySnapshot) -> JobTransition | None:
        """Feed one snapshot; returns the transition it caused, if any."""
        self._latest = snapshot
        transition: JobTransition | None = None

        if snapshot.job is not None and self._baseline is None:
            self._baseline = JobBaseline(
                start_odometer=snapshot.vehicle.odometer,
                start_fuel=snapshot.vehicle.fuel,
                started_at=self._clock(),
            )
            transition = JobTransition.STARTED
            _logger.info(
                "Job started %s -> %s (odometer=%.1f fuel=%.1f)",
                snapshot.job.source_city,
                snapshot.job.destination_city,
                self._baseline.start_odometer,
                self._baseline.start_fuel,
            )
        elif snapshot.job is None and self._baseline is not None:
            self._baseline = None
            transition = JobTransition.ENDED
            _logger.info("Job ended; baseline cleared")

        if transition is not None and self._on_transition is not None:
            try:
                self._on_transition(transition, snapshot)
            except Exception:
                _logger.debug("Job transition callback failed", exc_info=True)
        return transition

    def prepare(self, *, consume: bool = False) -> DeliveryRecord | None:
        """Prepare a delivery record from the latest snapshot and the baseline.

        Returns ``None`` when no job is active or no baseline exists.  With
        ``consume=True`` the baseline is cleared once a record was produced;
        the next snapshot that still carries a job captures a fresh one.
        """

        record = prepare_delivery_record(self._latest, self._baseline)
        if record is not None and consume:
            self._baseline = None
        return record

    def reset(self) -> None:
        """Forget the baseline and the latest snapshot."""
        self._baseline = None
        self._latest = DEFAULT_SNAPSHOT

    def attach(self, client: TelemetryClient) -> Callable[[], None]:
        """Subscribe to a client's snapshot stream; returns the unsubscribe callable."""
        self._latest = client.snapshot
        return client.add_snapshot_listener(self.observe)
