"""Environment-based configuration for SnapClassify."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_IMAGE_URL = (
    "https://images.rawpixel.com/image_800/"
    "czNmcy1wcml2YXRlL3Jhd3BpeGVsX2ltYWdlcy93ZWJzaXRlX2NvbnRlbnQvbHIvcHUyMzMxNjM2LWltYWdlLWt3dnk3dzV3LmpwZw.jpg"
)


class Settings(BaseSettings):
    """Application settings loaded from SNAPCLASSIFY_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SNAPCLASSIFY_",
        case_sensitive=False,
        protected_namespaces=("settings_",),
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8083

    # ML device
    device: Literal["cpu", "cuda", "openvino"] = "cpu"

    # Model source (Hugging Face Hub)
    model_repo_id: str = "Xenova/mobilenet_v2_1.0_224"
    model_filename: str = "onnx/model.onnx"
    model_revision: str | None = None
    models_dir: str = "models"

    # Model I/O
    input_layout: Literal["nhwc", "nchw"] = "nchw"
    apply_softmax: bool = True

    # Screen
    default_image_url: str = DEFAULT_IMAGE_URL

    # Image download
    fetch_timeout: float = Field(default=10.0, gt=0)

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=20_971_520, ge=1)

    gpu_mem_limit: int = Field(default=2_147_483_648, ge=0)

    @property
    def model_name(self) -> str:
        """Human-readable identifier of the configured model."""
        return f"{self.model_repo_id}/{self.model_filename}"


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
