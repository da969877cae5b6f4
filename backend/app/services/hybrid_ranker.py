"""Hybrid ranker — rank fusion of the signal collectors' lists."""

from typing import Iterable, Sequence
from uuid import UUID

# Per-algorithm weights (stated preferences first, crowd signals last)
ALGORITHM_WEIGHTS = {
    "onboarding_based": 1.0,
    "keyword_based": 0.95,
    "category_based": 0.9,
    "trending": 0.85,
    "collaborative": 0.8,
    "popular": 0.7,
}

DEFAULT_ALGORITHM_WEIGHT = 0.5
POSITION_DECAY = 0.9
DEFAULT_LIMIT = 50


def position_score(index: int, length: int) -> float:
    """Score for the item at `index` of a list of `length`: 1.0 at the head, ~0.1 at the tail."""
    return 1.0 - (index / length) * POSITION_DECAY


def algorithm_weight(algorithm: str) -> float:
    return ALGORITHM_WEIGHTS.get(algorithm, DEFAULT_ALGORITHM_WEIGHT)


def score_recommendations(signals: Iterable[tuple[str, Sequence[UUID]]]) -> dict[UUID, float]:
    """Accumulate weighted position scores per product across all signals.

    A product found by several algorithms gets the sum of its scores.
    """
    scores: dict[UUID, float] = {}
    for algorithm, product_ids in signals:
        if not product_ids:
            continue
        weight = algorithm_weight(algorithm)
        length = len(product_ids)
        for index, product_id in enumerate(product_ids):
            scores[product_id] = scores.get(product_id, 0.0) + weight * position_score(index, length)
    return scores


def merge_recommendations(
    signals: Iterable[tuple[str, Sequence[UUID]]],
    limit: int = DEFAULT_LIMIT,
) -> list[UUID]:
    """Fuse ranked lists into one, highest accumulated score first.

    Ties keep the order in which products were first scored (signal order,
    then position), since the sort is stable.
    """
    scores = score_recommendations(signals)
    ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
    return [product_id for product_id, _ in ranked[:limit]]
