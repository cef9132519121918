"""Tests for the classifier session state machine and pipeline."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

import httpx
import numpy as np
import pytest

from snapclassify.config import Settings
from snapclassify.errors import DecodeError, InferenceError, RetrievalError, RuntimeNotReady
from snapclassify.ml.fetcher import ImageFetcher
from snapclassify.ml.inference import InferencePool
from snapclassify.session import ClassifierSession, SessionState

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

IMAGE_URL = "https://images.example.com/dog.jpg"


class _ImageServer:
    """Records requests and serves a fixed payload."""

    def __init__(self, payload: bytes, content_type: str = "image/jpeg") -> None:
        self.payload = payload
        self.content_type = content_type
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(200, content=self.payload, headers={"content-type": self.content_type})


@pytest.fixture()
def settings() -> Settings:
    return Settings(max_concurrent=1)


@pytest.fixture()
def pool(settings: Settings) -> Iterator[InferencePool]:
    inference_pool = InferencePool(settings)
    yield inference_pool
    inference_pool.shutdown()


def _make_session(
    settings: Settings,
    pool: InferencePool,
    server: Callable[[httpx.Request], httpx.Response],
    model: object,
) -> ClassifierSession:
    fetcher = ImageFetcher(settings, transport=httpx.MockTransport(server))
    return ClassifierSession(settings, pool, fetcher, lambda: model)  # type: ignore[arg-type, return-value]


class TestSessionState:
    def test_starts_not_ready(self, settings, pool, fake_model, jpeg_bytes) -> None:
        session = _make_session(settings, pool, _ImageServer(jpeg_bytes), fake_model)
        assert session.state is SessionState.NOT_READY
        with pytest.raises(RuntimeNotReady):
            _ = session.model

    async def test_initialize_transitions_to_ready(self, settings, pool, fake_model, jpeg_bytes) -> None:
        session = _make_session(settings, pool, _ImageServer(jpeg_bytes), fake_model)
        await session.initialize()
        assert session.state is SessionState.READY
        assert session.model is fake_model

    async def test_initialize_loads_once(self, settings, pool, fake_model, jpeg_bytes) -> None:
        loads: list[int] = []

        def loader() -> object:
            loads.append(1)
            return fake_model

        fetcher = ImageFetcher(settings, transport=httpx.MockTransport(_ImageServer(jpeg_bytes)))
        session = ClassifierSession(settings, pool, fetcher, loader)  # type: ignore[arg-type]
        await session.initialize()
        await session.initialize()
        assert loads == [1]

    async def test_failed_load_stays_not_ready(self, settings, pool, jpeg_bytes) -> None:
        def loader() -> object:
            raise OSError("model download failed")

        fetcher = ImageFetcher(settings, transport=httpx.MockTransport(_ImageServer(jpeg_bytes)))
        session = ClassifierSession(settings, pool, fetcher, loader)  # type: ignore[arg-type]
        with pytest.raises(OSError, match="download failed"):
            await session.initialize()
        assert session.state is SessionState.NOT_READY


class TestClassify:
    async def test_not_ready_does_not_fetch(self, settings, pool, fake_model, jpeg_bytes) -> None:
        server = _ImageServer(jpeg_bytes)
        session = _make_session(settings, pool, server, fake_model)
        with pytest.raises(RuntimeNotReady):
            await session.classify(IMAGE_URL)
        assert server.requests == []
        assert fake_model.calls == []

    async def test_returns_five_ranked_predictions(self, settings, pool, fake_model, jpeg_bytes) -> None:
        session = _make_session(settings, pool, _ImageServer(jpeg_bytes), fake_model)
        await session.initialize()

        report = await session.classify(IMAGE_URL)

        assert report.image_url == IMAGE_URL
        assert len(report.predictions) == 5
        scores = [p.score for p in report.predictions]
        assert scores == sorted(scores, reverse=True)
        assert all(0.0 <= p.percentage <= 100.0 for p in report.predictions)
        assert sum(p.percentage for p in report.predictions) <= 100.0 + 1e-4
        lines = report.text.splitlines()
        assert len(lines) == 5
        assert lines[0] == f"Class {report.predictions[0].class_index}: {report.predictions[0].percentage:.2f}%"

    async def test_model_receives_normalized_batch(self, settings, pool, fake_model, jpeg_bytes) -> None:
        session = _make_session(settings, pool, _ImageServer(jpeg_bytes), fake_model)
        await session.initialize()
        await session.classify(IMAGE_URL)
        assert fake_model.calls == [(1, 224, 224, 3)]

    async def test_repeated_runs_are_identical(self, settings, pool, fake_model, jpeg_bytes) -> None:
        session = _make_session(settings, pool, _ImageServer(jpeg_bytes), fake_model)
        await session.initialize()
        first = await session.classify(IMAGE_URL)
        second = await session.classify(IMAGE_URL)
        assert first == second

    async def test_non_image_payload_raises_decode_error(self, settings, pool, fake_model) -> None:
        server = _ImageServer(b"%PDF-1.7 not an image", content_type="application/octet-stream")
        session = _make_session(settings, pool, server, fake_model)
        await session.initialize()
        with pytest.raises(DecodeError):
            await session.classify(IMAGE_URL)
        assert fake_model.calls == []

    async def test_unreachable_url_raises_retrieval_error(self, settings, pool, fake_model) -> None:
        def server(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        session = _make_session(settings, pool, server, fake_model)
        await session.initialize()
        with pytest.raises(RetrievalError):
            await session.classify(IMAGE_URL)

    async def test_bad_model_output_raises_inference_error(self, settings, pool, jpeg_bytes) -> None:
        class _FlatModel:
            model_name = "flat"

            def predict(self, batch: np.ndarray) -> np.ndarray:
                return np.full(1000, 0.001, dtype=np.float32)

        session = _make_session(settings, pool, _ImageServer(jpeg_bytes), _FlatModel())
        await session.initialize()
        with pytest.raises(InferenceError, match="shape"):
            await session.classify(IMAGE_URL)

    async def test_overlapping_calls_both_complete(self, settings, pool, fake_model, jpeg_bytes) -> None:
        class _SlowModel:
            model_name = "slow"

            def predict(self, batch: np.ndarray) -> np.ndarray:
                time.sleep(0.3)
                return fake_model.predict(batch)

        session = _make_session(settings, pool, _ImageServer(jpeg_bytes), _SlowModel())
        await session.initialize()

        first, second = await asyncio.gather(session.classify(IMAGE_URL), session.classify(IMAGE_URL))

        assert first == second
        assert len(fake_model.calls) == 2

    async def test_empty_url_raises_retrieval_error(self, settings, pool, fake_model, jpeg_bytes) -> None:
        server = _ImageServer(jpeg_bytes)
        session = _make_session(settings, pool, server, fake_model)
        await session.initialize()
        with pytest.raises(RetrievalError):
            await session.classify("")
        assert server.requests == []
