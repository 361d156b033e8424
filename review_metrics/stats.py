"""Small numeric helpers shared by the aggregators.

``median`` and ``percentile`` use nearest rank on the ascending sample,
index ``floor(n * p)``, with no interpolation.  For even-sized samples the
"median" is therefore the upper of the two middle values.  Historical
reports were computed this way, so the formula is kept for comparability.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from typing import Any


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round halves away from zero for positives (``2.5 -> 3``)."""
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def round_int(value: float) -> int:
    return int(round_half_up(value))


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0 for an empty sample."""
    return sum(values) / len(values) if values else 0.0


def percentile(values: Iterable[float], p: float) -> float | None:
    """Nearest-rank percentile (``sorted[floor(n * p)]``), None when empty."""
    ordered = sorted(values)
    if not ordered:
        return None
    idx = min(int(math.floor(len(ordered) * p)), len(ordered) - 1)
    return ordered[idx]


def median(values: Iterable[float]) -> float | None:
    return percentile(values, 0.5)


def _field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def weighted_average(items: Iterable[Any], value_field: str, weight_field: str) -> float:
    """``sum(value * weight) / sum(weight)`` over *items*.

    Fields are read as attributes (or keys for dicts).  Missing or
    non-numeric values count as 0; a zero total weight yields 0.
    """
    total_weight = 0.0
    weighted_sum = 0.0
    for item in items:
        try:
            value = float(_field(item, value_field) or 0)
        except (TypeError, ValueError):
            value = 0.0
        weight = _field(item, weight_field) or 0
        weighted_sum += value * weight
        total_weight += weight
    return weighted_sum / total_weight if total_weight > 0 else 0.0
