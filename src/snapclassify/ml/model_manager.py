"""Model manager: ready the ONNX runtime, download and load the classifier.

The classifier is fetched once from the Hugging Face Hub, wrapped in an
``OnnxClassifierModel`` and kept for the lifetime of the process.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import onnxruntime
from huggingface_hub import hf_hub_download
from onnxruntime import InferenceSession, SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode

from snapclassify.ml.image_classifier import OnnxClassifierModel

if TYPE_CHECKING:
    from snapclassify.config import Settings
    from snapclassify.ml.image_classifier import ClassifierModel

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol (kept for test mocking)
# ---------------------------------------------------------------------------


class ModelManager(Protocol):
    """Protocol for model lifecycle management."""

    def ensure_downloaded(self) -> Path:
        """Ensure the model file is present locally and return its path."""
        ...

    def load_model(self) -> ClassifierModel:
        """Return the loaded classifier, loading it on first call."""
        ...

    def shutdown(self) -> None:
        """Drop the loaded model."""
        ...


# ---------------------------------------------------------------------------
# Concrete implementation
# ---------------------------------------------------------------------------

_DEVICE_PROVIDERS: dict[str, str] = {
    "cuda": "CUDAExecutionProvider",
    "openvino": "OpenVINOExecutionProvider",
}


class OnnxModelManager:
    """Downloads the configured ONNX classifier and builds its session."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._models_dir = Path(settings.models_dir)

        self._lock = threading.Lock()
        self._model: OnnxClassifierModel | None = None
        self._model_path: Path | None = None

        self._session_options = self._build_session_options()

    # -- Public API ---------------------------------------------------------

    def check_runtime(self) -> list[str | tuple[str, dict[str, object]]]:
        """Return the execution providers to use, falling back to CPU."""
        device = self._settings.device
        if device == "cpu":
            return ["CPUExecutionProvider"]

        wanted = _DEVICE_PROVIDERS[device]
        available = onnxruntime.get_available_providers()
        if wanted not in available:
            logger.warning("%s not available (have %s), falling back to CPU", wanted, ", ".join(available))
            return ["CPUExecutionProvider"]

        if device == "cuda":
            return [
                (
                    wanted,
                    {
                        "device_id": 0,
                        "gpu_mem_limit": self._settings.gpu_mem_limit,
                        "arena_extend_strategy": "kSameAsRequested",
                    },
                ),
                "CPUExecutionProvider",
            ]
        return [(wanted, {"device_type": "CPU"}), "CPUExecutionProvider"]

    def ensure_downloaded(self) -> Path:
        """Download the model from the Hub if not already present locally."""
        if self._model_path is not None and self._model_path.exists():
            return self._model_path

        self._models_dir.mkdir(parents=True, exist_ok=True)
        downloaded = Path(
            hf_hub_download(
                repo_id=self._settings.model_repo_id,
                filename=self._settings.model_filename,
                revision=self._settings.model_revision,
                local_dir=str(self._models_dir),
            )
        )
        self._model_path = downloaded
        logger.info("Downloaded %s to %s", self._settings.model_name, downloaded)
        return downloaded

    def load_model(self) -> OnnxClassifierModel:
        """Return the classifier, creating its InferenceSession on first call."""
        with self._lock:
            if self._model is not None:
                return self._model

            providers = self.check_runtime()
            model_path = self.ensure_downloaded()
            session = InferenceSession(
                str(model_path),
                sess_options=self._session_options,
                providers=providers,
            )
            self._model = OnnxClassifierModel(
                self._settings.model_name,
                session,
                channels_first=self._settings.input_layout == "nchw",
                apply_softmax=self._settings.apply_softmax,
            )
            logger.info("Loaded session for %s (providers=%s)", self._settings.model_name, session.get_providers())
            return self._model

    @property
    def loaded(self) -> bool:
        with self._lock:
            return self._model is not None

    def shutdown(self) -> None:
        """Drop the cached model."""
        with self._lock:
            self._model = None
            logger.info("Model session cleared")

    # -- Internal -----------------------------------------------------------

    def _build_session_options(self) -> SessionOptions:
        opts = SessionOptions()
        opts.intra_op_num_threads = self._settings.intra_op_threads
        opts.inter_op_num_threads = self._settings.inter_op_threads
        opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL
        opts.enable_mem_pattern = True
        opts.enable_mem_reuse = True

        if self._settings.device == "openvino":
            # OpenVINO does its own graph optimization
            from onnxruntime import GraphOptimizationLevel

            opts.graph_optimization_level = GraphOptimizationLevel.ORT_DISABLE_ALL
        return opts
