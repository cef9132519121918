"""Top-K extraction and result formatting."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from snapclassify.errors import InferenceError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import ArrayLike

TOP_K: int = 5


@dataclass(frozen=True)
class RankedPrediction:
    """A single class index with its probability."""

    class_index: int
    score: float

    @property
    def percentage(self) -> float:
        return self.score * 100.0


def top_k(scores: ArrayLike, k: int = TOP_K) -> list[RankedPrediction]:
    """Return the ``k`` highest-probability classes, best first.

    Equal scores are ordered by ascending class index.

    Raises:
        InferenceError: If ``scores`` is not a (1, N) probability array with N >= k.
    """
    arr = np.asarray(scores)
    if arr.ndim != 2 or arr.shape[0] != 1:
        raise InferenceError(f"Expected model output of shape (1, N), got {arr.shape}")
    if not np.issubdtype(arr.dtype, np.number):
        raise InferenceError(f"Expected numeric model output, got dtype {arr.dtype}")

    row = arr[0].astype(np.float64)
    if row.size < k:
        raise InferenceError(f"Model produced {row.size} classes, need at least {k}")
    if not np.all(np.isfinite(row)):
        raise InferenceError("Model output contains non-finite values")
    if row.min() < 0.0 or row.max() > 1.0 + 1e-6:
        raise InferenceError("Model output is not a probability distribution")

    order = np.argsort(-row, kind="stable")[:k]
    return [RankedPrediction(class_index=int(i), score=float(min(row[i], 1.0))) for i in order]


def format_predictions(predictions: Sequence[RankedPrediction]) -> str:
    """Render predictions as ``Class <index>: <percentage>%`` lines."""
    return "\n".join(f"Class {p.class_index}: {p.percentage:.2f}%" for p in predictions)
