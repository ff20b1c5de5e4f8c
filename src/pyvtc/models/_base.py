"""Base model and enum for pyvtc values.

Every telemetry model inherits from :class:`VtcBaseModel`: frozen, so a
snapshot is an immutable value that consumers replace wholesale, and
``extra="ignore"`` so unknown keys never fail construction.

Identifier enums inherit from :class:`VtcStrEnum` which requires an
``UNKNOWN`` member and returns it for any value without a mapped member.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class VtcStrEnum(StrEnum):
    """Base for string identifiers reported by telemetry servers.

    Every subclass **must** define ``UNKNOWN``.  Matching is
    case-insensitive; anything else resolves to ``UNKNOWN`` instead of
    raising ``ValueError``.
    """

    @classmethod
    def _missing_(cls, value: object) -> VtcStrEnum:
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        unknown: VtcStrEnum = cls.UNKNOWN  # type: ignore[attr-defined]
        return unknown


class VtcBaseModel(BaseModel):
    """Base for immutable pyvtc models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )
