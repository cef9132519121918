"""Tests for top-K extraction and result formatting."""

from __future__ import annotations

import numpy as np
import pytest

from snapclassify.errors import InferenceError
from snapclassify.ml.image_classifier import softmax
from snapclassify.ml.ranking import TOP_K, RankedPrediction, format_predictions, top_k


class TestTopK:
    def test_returns_five_entries_sorted_descending(self) -> None:
        scores = np.array([[0.01, 0.3, 0.04, 0.4, 0.1, 0.15]])
        ranked = top_k(scores)
        assert len(ranked) == TOP_K
        assert [p.class_index for p in ranked] == [3, 1, 5, 4, 2]
        assert [p.score for p in ranked] == sorted((p.score for p in ranked), reverse=True)

    def test_equal_scores_ordered_by_index(self) -> None:
        scores = np.full((1, 8), 0.125)
        ranked = top_k(scores)
        assert [p.class_index for p in ranked] == [0, 1, 2, 3, 4]

    def test_custom_k(self) -> None:
        ranked = top_k(np.array([[0.2, 0.5, 0.3]]), k=2)
        assert [p.class_index for p in ranked] == [1, 2]

    def test_percentages_within_bounds(self) -> None:
        rng = np.random.default_rng(7)
        scores = softmax(rng.normal(size=(1, 1000)))
        ranked = top_k(scores)
        percentages = [p.percentage for p in ranked]
        assert all(0.0 <= p <= 100.0 for p in percentages)
        assert sum(percentages) <= 100.0 + 1e-4

    def test_one_dimensional_output_rejected(self) -> None:
        with pytest.raises(InferenceError, match="shape"):
            top_k(np.array([0.5, 0.2, 0.1, 0.1, 0.1]))

    def test_batched_output_rejected(self) -> None:
        with pytest.raises(InferenceError, match="shape"):
            top_k(np.full((2, 10), 0.1))

    def test_too_few_classes_rejected(self) -> None:
        with pytest.raises(InferenceError, match="at least 5"):
            top_k(np.array([[0.5, 0.3, 0.2]]))

    def test_non_finite_rejected(self) -> None:
        with pytest.raises(InferenceError, match="non-finite"):
            top_k(np.array([[0.5, np.nan, 0.1, 0.1, 0.1, 0.2]]))

    def test_logits_rejected(self) -> None:
        with pytest.raises(InferenceError, match="probability"):
            top_k(np.array([[3.2, -1.0, 0.4, 7.5, 0.0, 1.1]]))

    def test_non_numeric_rejected(self) -> None:
        with pytest.raises(InferenceError, match="numeric"):
            top_k(np.array([["a", "b", "c", "d", "e"]]))


class TestFormatPredictions:
    def test_one_line_per_prediction(self) -> None:
        ranked = top_k(np.array([[0.4, 0.3, 0.15, 0.1, 0.04, 0.01]]))
        assert format_predictions(ranked) == (
            "Class 0: 40.00%\nClass 1: 30.00%\nClass 2: 15.00%\nClass 3: 10.00%\nClass 4: 4.00%"
        )

    def test_two_decimal_places(self) -> None:
        text = format_predictions([RankedPrediction(class_index=812, score=0.123456)])
        assert text == "Class 812: 12.35%"

    def test_empty(self) -> None:
        assert format_predictions([]) == ""
