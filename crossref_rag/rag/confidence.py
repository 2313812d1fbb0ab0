from __future__ import annotations

"""Normalize heterogeneous store similarity signals into [0, 1] confidence."""

import math
from typing import Any

from crossref_rag.rag.types import SearchResult

# Fixed fallback for backends that expose no distance. Not a computed value.
DEFAULT_CONFIDENCE = 0.8


def _as_distance(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def normalize_confidence(distance: float | None) -> float:
    """Map a distance (0 = identical) to confidence, clamped to [0, 1]."""
    resolved = _as_distance(distance)
    if resolved is None:
        return DEFAULT_CONFIDENCE
    return min(1.0, max(0.0, 1.0 - resolved))


def resolve_distance(result: SearchResult) -> float | None:
    """Return the native distance of a hit, falling back to its metadata."""
    distance = _as_distance(result.distance)
    if distance is not None:
        return distance
    return _as_distance(result.document.metadata.get("distance"))
