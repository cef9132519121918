"""Classifier session: readiness state and the classify pipeline.

The session owns the only long-lived state in the application, the model
handle. It is written once by ``initialize`` and only read afterwards.

Pipeline stages run strictly in sequence and raise ``ClassifierError``
subclasses; nothing here catches them.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from snapclassify.errors import RuntimeNotReady
from snapclassify.ml.preprocessing import decode_image, preprocess
from snapclassify.ml.ranking import TOP_K, RankedPrediction, format_predictions, top_k

if TYPE_CHECKING:
    from collections.abc import Callable

    import numpy as np
    from numpy.typing import NDArray

    from snapclassify.config import Settings
    from snapclassify.ml.fetcher import ImageFetcher
    from snapclassify.ml.image_classifier import ClassifierModel
    from snapclassify.ml.inference import InferencePool

logger = logging.getLogger(__name__)


class SessionState(StrEnum):
    NOT_READY = "not_ready"
    READY = "ready"


@dataclass(frozen=True)
class ClassificationReport:
    """Outcome of one successful classify action."""

    image_url: str
    predictions: list[RankedPrediction]
    text: str


class ClassifierSession:
    """Holds the model handle and runs fetch -> decode -> preprocess -> infer -> rank."""

    def __init__(
        self,
        settings: Settings,
        pool: InferencePool,
        fetcher: ImageFetcher,
        loader: Callable[[], ClassifierModel],
    ) -> None:
        self._settings = settings
        self._pool = pool
        self._fetcher = fetcher
        self._loader = loader
        self._model: ClassifierModel | None = None

    @property
    def state(self) -> SessionState:
        return SessionState.READY if self._model is not None else SessionState.NOT_READY

    @property
    def model(self) -> ClassifierModel:
        """The loaded model.

        Raises:
            RuntimeNotReady: If ``initialize`` has not completed.
        """
        if self._model is None:
            raise RuntimeNotReady("Model is not loaded yet")
        return self._model

    async def initialize(self) -> None:
        """Ready the runtime and load the model. Idempotent."""
        if self._model is not None:
            return

        started = time.perf_counter()
        model = await self._pool.run(self._loader)
        self._model = model
        logger.info(
            "Session ready with %s in %.0fms",
            model.model_name,
            (time.perf_counter() - started) * 1000,
        )

    async def classify(self, image_url: str) -> ClassificationReport:
        """Classify the image at ``image_url`` and return the top predictions.

        Raises:
            RuntimeNotReady: Before ``initialize`` completes. Nothing is fetched.
            RetrievalError: If the image cannot be downloaded.
            DecodeError: If the bytes are not a decodable image.
            InferenceError: If the forward pass or ranking fails.
        """
        model = self.model
        started = time.perf_counter()

        image_bytes = await self._fetcher.fetch(image_url)
        batch = await self._pool.run(self._prepare, image_bytes)
        scores = await self._pool.run(model.predict, batch)
        predictions = top_k(scores, TOP_K)

        logger.info(
            "Classified %s as class %d (%.2f%%) in %.0fms",
            image_url,
            predictions[0].class_index,
            predictions[0].percentage,
            (time.perf_counter() - started) * 1000,
        )
        return ClassificationReport(
            image_url=image_url,
            predictions=predictions,
            text=format_predictions(predictions),
        )

    def _prepare(self, image_bytes: bytes) -> NDArray[np.float32]:
        pixels = decode_image(image_bytes, max_pixels=self._settings.max_image_pixels)
        return preprocess(pixels)

