from __future__ import annotations

import math

import pytest

from crossref_rag.rag.confidence import DEFAULT_CONFIDENCE, normalize_confidence, resolve_distance
from crossref_rag.rag.types import Document, SearchResult


@pytest.mark.parametrize(
    ("distance", "expected"),
    [(0.0, 1.0), (0.2, 0.8), (1.0, 0.0), (1.7, 0.0), (-0.4, 1.0)],
)
def test_distance_maps_to_clamped_confidence(distance: float, expected: float) -> None:
    assert normalize_confidence(distance) == pytest.approx(expected)


@pytest.mark.parametrize("distance", [None, math.nan, math.inf, True, "0.2"])
def test_unusable_distance_uses_default(distance: object) -> None:
    assert normalize_confidence(distance) == DEFAULT_CONFIDENCE


def test_resolve_distance_prefers_native_then_metadata() -> None:
    native = SearchResult(Document("a", "text", {"distance": 0.9}), distance=0.1)
    from_metadata = SearchResult(Document("b", "text", {"distance": 0.4}))
    missing = SearchResult(Document("c", "text", {}))

    assert resolve_distance(native) == 0.1
    assert resolve_distance(from_metadata) == 0.4
    assert resolve_distance(missing) is None


@pytest.mark.parametrize("distance", [-1.0, 0.0, 0.15, 0.5, 0.999, 1.0, 2.5, None])
def test_normalization_is_pure(distance: float | None) -> None:
    first = normalize_confidence(distance)

    assert normalize_confidence(distance) == first
    assert 0.0 <= first <= 1.0
