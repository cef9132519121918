"""Shared fixtures: an in-memory JPEG and a deterministic stand-in model."""

from __future__ import annotations

import io

import numpy as np
import pytest
from PIL import Image

from snapclassify.ml.image_classifier import softmax

NUM_CLASSES = 10


class FakeModel:
    """Deterministic classifier: scores depend only on per-channel means."""

    def __init__(self) -> None:
        self.calls: list[tuple[int, ...]] = []

    @property
    def model_name(self) -> str:
        return "fake/mobilenet"

    def predict(self, batch: np.ndarray) -> np.ndarray:
        self.calls.append(batch.shape)
        means = batch.mean(axis=(1, 2))  # (1, 3)
        weights = np.linspace(-2.0, 2.0, 3 * NUM_CLASSES, dtype=np.float32).reshape(3, NUM_CLASSES)
        return softmax(means @ weights * 4.0)


@pytest.fixture()
def fake_model() -> FakeModel:
    return FakeModel()


@pytest.fixture()
def jpeg_bytes() -> bytes:
    gradient = np.tile(np.arange(0, 256, 4, dtype=np.uint8), (48, 1))
    rgb = np.stack([gradient, gradient[::-1], np.full_like(gradient, 90)], axis=-1)
    buf = io.BytesIO()
    Image.fromarray(rgb).save(buf, format="JPEG")
    return buf.getvalue()
