"""Normalization helpers.

Centralizes defensive parsing and the ordered-fallback field reader used by
the snapshot normalizer.
"""

from __future__ import annotations

import json
import math
from collections.abc import Callable, Mapping, Sequence
from typing import Any, TypeVar

from pyvtc.exceptions import VtcPayloadError

T = TypeVar("T")

_MISSING = object()


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def safe_str(value: Any) -> str | None:
    if value is None or isinstance(value, (Mapping, list)):
        return None
    return str(value)


def safe_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if isinstance(value, float) and math.isnan(value):
            return None
        return value != 0
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "1", "yes", "on"}:
            return True
        if normalized in {"false", "0", "no", "off"}:
            return False
    return None


def lookup_path(data: Any, path: str) -> Any:
    """Resolve a dotted path (``"truck.damage.engine"``) inside nested mappings.

    Returns a private sentinel when any segment is missing or when an
    intermediate value is not a mapping.
    """

    current = data
    for segment in path.split("."):
        if not isinstance(current, Mapping) or segment not in current:
            return _MISSING
        current = current[segment]
    return current


def read_field(
    data: Any,
    paths: Sequence[str],
    coerce: Callable[[Any], T | None],
    default: T,
) -> T:
    """Read one field using an ordered list of candidate paths.

    The first candidate that exists, is not ``None`` and survives *coerce*
    wins.  A candidate whose value cannot be coerced counts as absent, so the
    result for a given payload is always the same and never raises.
    """

    for path in paths:
        value = lookup_path(data, path)
        if value is _MISSING or value is None:
            continue
        coerced = coerce(value)
        if coerced is not None:
            return coerced
    return default


def parse_payload(raw: Any) -> Mapping[str, Any]:
    """Turn a raw telemetry frame into a JSON object.

    Accepts an already-decoded mapping, or JSON text as ``str``/``bytes``.

    Raises
    ------
    VtcPayloadError
        If the frame is not valid JSON or does not decode to an object.
    """

    if isinstance(raw, Mapping):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise VtcPayloadError("Telemetry payload is not valid UTF-8") from exc
    if isinstance(raw, str):
        try:
            decoded = json.loads(raw)
        except (ValueError, RecursionError) as exc:
            raise VtcPayloadError(f"Telemetry payload is not JSON: {raw[:64]!r}") from exc
        if isinstance(decoded, Mapping):
            return decoded
        raise VtcPayloadError(f"Telemetry payload decoded to {type(decoded).__name__}, expected object")
    raise VtcPayloadError(f"Unsupported telemetry payload type {type(raw).__name__}")
