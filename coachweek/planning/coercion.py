"""Coercion helpers for numbers and labels coming out of model payloads.

Model output is loosely typed: numbers arrive as strings, "12km", null, NaN or
negatives. These helpers never raise; anything unusable becomes the default.
"""

import math
import re
import unicodedata
from collections.abc import Iterable, Mapping
from typing import Any

_NUMBER_RE = re.compile(r"-?\d+(?:[.,]\d+)?")

# Allowed drift between a day's total and the sum of its zones
VOLUME_TOLERANCE_KM = 0.05


def to_float(value: Any, default: float = 0.0) -> float:
    """Best-effort float conversion; non-finite values give the default."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str):
        match = _NUMBER_RE.search(value)
        if not match:
            return default
        result = float(match.group(0).replace(",", "."))
    else:
        return default
    if not math.isfinite(result):
        return default
    return result


def to_km(value: Any) -> float:
    """Non-negative distance, rounded to the 10 m."""
    result = to_float(value)
    if result < 0:
        return 0.0
    return round(result, 2)


def to_int(value: Any, default: int) -> int:
    result = to_float(value, float(default))
    return int(round(result))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def to_text(value: Any) -> str | None:
    """Stringify non-empty values; structured values are flattened to text."""
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, Mapping):
        return ", ".join(f"{k}: {v}" for k, v in value.items()) or None
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value) or None
    return str(value)


def to_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, Iterable):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    return []


def fold_label(value: Any) -> str:
    """Uppercase, accent-free label ("Côtes" -> "COTES", "sortie longue" -> "SORTIE_LONGUE")."""
    text = str(value or "").strip()
    text = unicodedata.normalize("NFKD", text)
    text = "".join(c for c in text if not unicodedata.combining(c))
    return re.sub(r"[\s\-]+", "_", text.upper())


def normalize_percentages(mix: Mapping[str, float], tolerance: float = 10.0) -> dict[str, float]:
    """Rescale a percentage mix to sum to 100 when it drifts beyond tolerance.

    Args:
        mix: Component name -> percentage
        tolerance: Accepted deviation of the sum from 100, in points

    Returns:
        New mapping; unchanged values when the sum is within tolerance or zero
    """
    cleaned = {key: max(0.0, to_float(value)) for key, value in mix.items()}
    total = sum(cleaned.values())
    if total <= 0 or abs(total - 100.0) <= tolerance:
        return cleaned
    factor = 100.0 / total
    return {key: float(round(value * factor)) for key, value in cleaned.items()}


def reconcile_total(zones: Mapping[str, float], total: float) -> tuple[dict[str, float], float]:
    """Make a day's total consistent with its zone split.

    The zone figures win when they disagree with the total. A total given
    without any zone figure is booked entirely as zone 1.

    Args:
        zones: zone1_km, zone2_km, zone3_km, speed_km
        total: Reported total

    Returns:
        Tuple of (zones, total)
    """
    zones = {key: to_km(value) for key, value in zones.items()}
    total = to_km(total)
    zone_sum = round(sum(zones.values()), 2)
    if zone_sum == 0 and total > 0:
        zones["zone1_km"] = total
        return zones, total
    if abs(zone_sum - total) > VOLUME_TOLERANCE_KM:
        return zones, zone_sum
    return zones, total
