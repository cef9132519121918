"""Image classification model handle.

The pipeline only depends on ``ClassifierModel.predict``; ``OnnxClassifierModel``
adapts an ONNX Runtime session to that interface.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

import numpy as np

from snapclassify.errors import InferenceError

if TYPE_CHECKING:
    from numpy.typing import NDArray
    from onnxruntime import InferenceSession

logger = logging.getLogger(__name__)


class ClassifierModel(Protocol):
    """Protocol for image classification models."""

    @property
    def model_name(self) -> str:
        """Return the model identifier string."""
        ...

    def predict(self, batch: NDArray[np.float32]) -> NDArray[np.float32]:
        """Run a forward pass.

        Args:
            batch: (1, H, W, 3) float32 tensor with values in [0, 1].

        Returns:
            (1, N) array of class probabilities.
        """
        ...


def softmax(logits: NDArray[np.floating]) -> NDArray[np.float32]:
    """Row-wise softmax over the last axis."""
    shifted = logits - logits.max(axis=-1, keepdims=True)
    exp = np.exp(shifted)
    return (exp / exp.sum(axis=-1, keepdims=True)).astype(np.float32)


class OnnxClassifierModel:
    """Runs a classifier through an ONNX Runtime InferenceSession."""

    def __init__(
        self,
        name: str,
        session: InferenceSession,
        *,
        channels_first: bool,
        apply_softmax: bool,
    ) -> None:
        self._name = name
        self._session = session
        self._input_name: str = session.get_inputs()[0].name
        self._channels_first = channels_first
        self._apply_softmax = apply_softmax

    @property
    def model_name(self) -> str:
        return self._name

    def predict(self, batch: NDArray[np.float32]) -> NDArray[np.float32]:
        if batch.ndim != 4:
            raise InferenceError(f"Expected a 4-D NHWC batch, got shape {batch.shape}")

        feed = np.transpose(batch, (0, 3, 1, 2)) if self._channels_first else batch
        try:
            outputs = self._session.run(None, {self._input_name: np.ascontiguousarray(feed, dtype=np.float32)})
        except Exception as exc:  # noqa: BLE001
            raise InferenceError(f"Forward pass failed for {self._name}: {exc}") from exc

        # Non-tensor outputs (e.g. ZipMap lists of dicts) fail the float conversion.
        try:
            scores = np.asarray(outputs[0], dtype=np.float32)
            if self._apply_softmax:
                scores = softmax(scores)
        except (TypeError, ValueError, IndexError) as exc:
            raise InferenceError(f"Unexpected output from {self._name}: {exc}") from exc
        return scores
