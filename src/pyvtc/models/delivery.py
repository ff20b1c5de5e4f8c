"""Persistence-ready delivery record."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from pyvtc.models._base import VtcBaseModel


class DeliveryRecord(VtcBaseModel):
    """A completed (or in-progress) delivery, computed from telemetry.

    Parameters
    ----------
    distance_km : int
        Distance driven since the job started, never negative.
    cargo_weight : float
        Cargo mass in tonnes.
    fuel_consumed : int
        Fuel burned since the job started, never negative.
    damage_percent : float
        Cargo damage in ``[0, 100]``.
    anomalies : tuple of str
        Quantities that had to be clamped (``"distance"``, ``"fuel"``).
    """

    origin_city: str
    destination_city: str
    distance_km: int = Field(ge=0)
    cargo_type: str
    cargo_weight: float
    fuel_consumed: int = Field(ge=0)
    income: float
    damage_percent: float
    origin_company: str = ""
    destination_company: str = ""
    anomalies: tuple[str, ...] = ()

    def to_row(self) -> dict[str, Any]:
        """Columns handed to the storage collaborator."""
        return self.model_dump(exclude={"anomalies", "origin_company", "destination_company"})
