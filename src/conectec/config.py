"""Environment-based configuration for Conectec."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from CONECTEC_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CONECTEC_",
        case_sensitive=False,
        protected_namespaces=(),
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8083

    # Authentication (None = disabled)
    api_key: str | None = None

    # ML device
    device: Literal["cpu", "cuda", "openvino"] = "cpu"

    # Model selection
    classifier_model: str = "connector_mobilenet_ft"
    models_dir: str = "models"
    model_repo_id: str | None = None

    # Label table and technical info (None = built-in labels / no info)
    labels_path: str | None = None
    connector_info_path: str | None = None

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=4, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)

    # Concurrency
    max_concurrent: int = Field(default=1, ge=1)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=20_971_520, ge=1)

    # Camera stream
    camera_index: int = Field(default=0, ge=0)
    analyze_once: bool = True


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
