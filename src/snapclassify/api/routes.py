"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from snapclassify.api.schemas import (
    ClassifyRequest,
    ClassifyResponse,
    ErrorResponse,
    HealthResponse,
    Prediction,
)
from snapclassify.errors import ClassifierError, RuntimeNotReady
from snapclassify.session import SessionState

if TYPE_CHECKING:
    from snapclassify.config import Settings
    from snapclassify.ml.inference import InferencePool
    from snapclassify.session import ClassifierSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")

NOT_READY_MESSAGE = "Model is not ready"
FAILURE_MESSAGE = "Failed to load or process image."


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


def _get_session(request: Request) -> ClassifierSession:
    session: ClassifierSession = request.app.state.session
    return session


@router.post(
    "/classify",
    response_model=ClassifyResponse,
    responses={
        status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
    summary="Classify an image by URL",
)
async def classify(body: ClassifyRequest, request: Request) -> ClassifyResponse | JSONResponse:
    """Fetch the image at ``url`` and return its top-5 classes."""
    session = _get_session(request)
    try:
        report = await session.classify(body.url)
    except RuntimeNotReady:
        logger.warning("Classify requested for %s before the model was ready", body.url)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": NOT_READY_MESSAGE},
        )
    except ClassifierError:
        logger.exception("Error loading or processing image %s", body.url)
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": FAILURE_MESSAGE},
        )

    return ClassifyResponse(
        image_url=report.image_url,
        predictions=[
            Prediction(class_index=p.class_index, score=p.score, percentage=p.percentage) for p in report.predictions
        ],
        text=report.text,
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health and model readiness."""
    settings = _get_settings(request)
    pool = _get_inference_pool(request)
    session = _get_session(request)
    ready = session.state is SessionState.READY
    return HealthResponse(
        status="ok",
        state=session.state.value,
        model=session.model.model_name if ready else None,
        device=settings.device,
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )
