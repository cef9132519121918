"""Pydantic request/response schemas for the SnapClassify API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ClassifyRequest(BaseModel):
    """Image to classify."""

    url: str = Field(description="HTTP(S) URL of the image")


class Prediction(BaseModel):
    """A single ranked class with its confidence."""

    class_index: int = Field(ge=0)
    score: float = Field(ge=0.0, le=1.0, description="Probability (0.0-1.0)")
    percentage: float = Field(ge=0.0, le=100.0, description="Probability as a percentage")


class ClassifyResponse(BaseModel):
    """Response for the classify endpoint."""

    image_url: str
    predictions: list[Prediction]
    text: str = Field(description="Predictions rendered one per line")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    state: str = Field(description="Session state: 'not_ready' or 'ready'")
    model: str | None
    device: str
    concurrent_requests: int
    queue_depth: int


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
