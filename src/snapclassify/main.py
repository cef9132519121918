"""FastAPI application entry point."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from snapclassify.api import pages
from snapclassify.api.routes import router
from snapclassify.config import get_settings
from snapclassify.ml.fetcher import ImageFetcher
from snapclassify.ml.inference import InferencePool
from snapclassify.ml.model_manager import OnnxModelManager
from snapclassify.session import ClassifierSession

logger = logging.getLogger(__name__)


async def _initialize_session(session: ClassifierSession) -> None:
    try:
        await session.initialize()
    except Exception:  # noqa: BLE001
        # Session stays not-ready; classify keeps answering "not ready".
        logger.exception("Model initialization failed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: start loading the model, clean up on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting SnapClassify (device=%s, max_concurrent=%s, model=%s)",
        settings.device,
        settings.max_concurrent,
        settings.model_name,
    )

    inference_pool = InferencePool(settings)
    model_manager = OnnxModelManager(settings)
    session = ClassifierSession(settings, inference_pool, ImageFetcher(settings), model_manager.load_model)
    app.state.inference_pool = inference_pool
    app.state.model_manager = model_manager
    app.state.session = session

    # Serve the screen right away; the model becomes available when this finishes.
    init_task = asyncio.create_task(_initialize_session(session))
    yield

    logger.info("Shutting down SnapClassify")
    init_task.cancel()
    with suppress(asyncio.CancelledError):
        await init_task
    inference_pool.shutdown()
    model_manager.shutdown()
    logger.info("SnapClassify shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="SnapClassify",
        description="Classify an image by URL with an in-process ONNX model",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(router)
    application.include_router(pages.router)
    return application


app = create_app()


def run() -> None:
    """Serve the application with uvicorn."""
    settings = get_settings()
    uvicorn.run("snapclassify.main:app", host=settings.host, port=settings.port)
