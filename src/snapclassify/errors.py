"""Error taxonomy for the classification pipeline.

Every pipeline stage raises a subclass of ``ClassifierError`` and lets it
propagate. Only the HTTP layer catches them.
"""

from __future__ import annotations


class ClassifierError(Exception):
    """Base class for classification pipeline failures."""


class RuntimeNotReady(ClassifierError):  # noqa: N818
    """The numeric runtime or the model has not finished loading."""


class RetrievalError(ClassifierError):
    """The image could not be downloaded."""


class DecodeError(ClassifierError):
    """The downloaded bytes are not a decodable image."""


class InferenceError(ClassifierError):
    """The forward pass or top-K extraction failed."""
