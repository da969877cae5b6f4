"""Hybrid ranker unit tests"""

import uuid

import pytest

from app.services.hybrid_ranker import (
    ALGORITHM_WEIGHTS,
    DEFAULT_ALGORITHM_WEIGHT,
    algorithm_weight,
    merge_recommendations,
    position_score,
    score_recommendations,
)


def ids(n):
    return [uuid.uuid4() for _ in range(n)]


class TestPositionScore:
    """Position decay within one list"""

    def test_head_scores_one(self):
        assert position_score(0, 10) == 1.0

    def test_tail_approaches_tenth(self):
        assert position_score(9, 10) == pytest.approx(0.19)
        assert position_score(99, 100) == pytest.approx(0.109)

    def test_single_item_list(self):
        assert position_score(0, 1) == 1.0


class TestAlgorithmWeight:
    def test_known_weights(self):
        assert algorithm_weight("onboarding_based") == 1.0
        assert algorithm_weight("keyword_based") == 0.95
        assert algorithm_weight("category_based") == 0.9
        assert algorithm_weight("trending") == 0.85
        assert algorithm_weight("collaborative") == 0.8
        assert algorithm_weight("popular") == 0.7

    def test_unknown_algorithm_falls_back(self):
        assert "mystery" not in ALGORITHM_WEIGHTS
        assert algorithm_weight("mystery") == DEFAULT_ALGORITHM_WEIGHT == 0.5


class TestScoreRecommendations:
    def test_scores_accumulate_across_signals(self):
        """A product in two lists gets more than its best single-list score"""
        a, b, c = ids(3)
        scores = score_recommendations([
            ("trending", [a, b]),
            ("collaborative", [c, a]),
        ])

        trending_only = 0.85 * position_score(0, 2)
        collaborative_only = 0.8 * position_score(1, 2)
        assert scores[a] == pytest.approx(trending_only + collaborative_only)
        assert scores[a] > max(trending_only, collaborative_only)

    def test_empty_signals_skipped(self):
        a = uuid.uuid4()
        scores = score_recommendations([("keyword_based", []), ("trending", [a])])
        assert scores == {a: pytest.approx(0.85)}


class TestMergeRecommendations:
    def test_single_signal_preserves_order(self):
        products = ids(8)
        assert merge_recommendations([("trending", products)]) == products

    def test_higher_weight_wins_at_same_position(self):
        a, b = ids(2)
        merged = merge_recommendations([("trending", [a]), ("onboarding_based", [b])])
        assert merged == [b, a]

    def test_shared_product_rises_to_top(self):
        a, b, c = ids(3)
        merged = merge_recommendations([
            ("onboarding_based", [a, b]),
            ("trending", [c, b]),
        ])
        assert merged[0] == b

    def test_ties_keep_first_seen_order(self):
        a, b = ids(2)
        # Same weight, same position: a was scored first
        assert merge_recommendations([("mystery", [a]), ("other_mystery", [b])]) == [a, b]
        assert merge_recommendations([("mystery", [b]), ("other_mystery", [a])]) == [b, a]

    def test_truncates_to_limit(self):
        merged = merge_recommendations([("trending", ids(30)), ("collaborative", ids(30))], limit=50)
        assert len(merged) == 50

    def test_no_duplicates(self):
        a, b, c = ids(3)
        merged = merge_recommendations([
            ("onboarding_based", [a, b, c]),
            ("trending", [c, b, a]),
            ("keyword_based", [b]),
        ])
        assert sorted(merged) == sorted([a, b, c])

    def test_all_empty_yields_empty(self):
        assert merge_recommendations([("trending", []), ("onboarding_based", [])]) == []

    def test_deterministic(self):
        signals = [("onboarding_based", ids(10)), ("trending", ids(10)), ("collaborative", ids(5))]
        assert merge_recommendations(signals) == merge_recommendations(signals)
