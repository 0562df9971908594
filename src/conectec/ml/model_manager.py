"""Model manager: locate, download, and load the classifier engine once.

Resolves the ONNX artifact from the local models directory (optionally fetching it from
HuggingFace), builds ONNX Runtime providers and session options from settings, and keeps
a single long-lived ``InferenceEngine`` for the whole process.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from huggingface_hub import hf_hub_download
from onnxruntime import SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode

from conectec.errors import ModelLoadError
from conectec.ml.engine import InferenceEngine

if TYPE_CHECKING:
    from conectec.config import Settings
    from conectec.ml.engine import TensorLayout

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol (kept for test mocking)
# ---------------------------------------------------------------------------


class ModelManager(Protocol):
    """Protocol for engine lifecycle management."""

    @property
    def spec(self) -> ModelSpec:
        """Return the static metadata of the configured model."""
        ...

    def ensure_available(self) -> Path:
        """Ensure the model artifact is on disk and return its path."""
        ...

    def get_engine(self) -> InferenceEngine:
        """Return the shared engine, loading it on first use."""
        ...

    def is_loaded(self) -> bool:
        """Return whether the engine is currently loaded."""
        ...

    def shutdown(self) -> None:
        """Unload the engine."""
        ...


# ---------------------------------------------------------------------------
# Model registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModelSpec:
    """Static metadata for a classifier model, fixed by its training configuration."""

    name: str
    filename: str
    input_size: int
    channels: int
    mean: float
    std: float
    layout: TensorLayout

    @property
    def input_shape(self) -> tuple[int, int, int]:
        return (self.input_size, self.input_size, self.channels)


MODEL_REGISTRY: dict[str, ModelSpec] = {
    "connector_mobilenet_ft": ModelSpec(
        name="connector_mobilenet_ft",
        filename="mejor_modelo_ft.onnx",
        input_size=224,
        channels=3,
        mean=0.0,
        std=255.0,
        layout="nhwc",
    ),
    "connector_mobilenet_ft_gray": ModelSpec(
        name="connector_mobilenet_ft_gray",
        filename="mejor_modelo_ft_gray.onnx",
        input_size=224,
        channels=1,
        mean=0.0,
        std=255.0,
        layout="nhwc",
    ),
}


def get_model_spec(model_name: str) -> ModelSpec:
    try:
        return MODEL_REGISTRY[model_name]
    except KeyError:
        raise KeyError(f"Unknown model: {model_name}") from None


# ---------------------------------------------------------------------------
# Concrete implementation
# ---------------------------------------------------------------------------


class OnnxModelManager:
    """Owns the one ``InferenceEngine`` of the process."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._spec = get_model_spec(settings.classifier_model)
        self._models_dir = Path(settings.models_dir)

        self._lock = threading.Lock()
        self._engine: InferenceEngine | None = None
        self._model_path: Path | None = None

        self._providers = self._build_providers()
        self._session_options = self._build_session_options()

    # -- Public API ---------------------------------------------------------

    @property
    def spec(self) -> ModelSpec:
        return self._spec

    def ensure_available(self) -> Path:
        """Return the local artifact path, downloading it from HuggingFace if configured.

        Raises:
            ModelLoadError: If the file is missing and cannot be downloaded.
        """
        if self._model_path is not None and self._model_path.exists():
            return self._model_path

        local = self._models_dir / self._spec.filename
        if local.exists():
            self._model_path = local
            return local

        repo_id = self._settings.model_repo_id
        if repo_id is None:
            raise ModelLoadError(f"Model file {local} not found and CONECTEC_MODEL_REPO_ID is not set")

        self._models_dir.mkdir(parents=True, exist_ok=True)
        try:
            downloaded = Path(
                hf_hub_download(
                    repo_id=repo_id,
                    filename=self._spec.filename,
                    local_dir=str(self._models_dir),
                )
            )
        except Exception as exc:
            raise ModelLoadError(f"Could not download {self._spec.filename} from {repo_id}: {exc}") from exc
        self._model_path = downloaded
        logger.info("Downloaded %s to %s", self._spec.name, downloaded)
        return downloaded

    def get_engine(self) -> InferenceEngine:
        """Return the shared engine, loading it on first call."""
        with self._lock:
            if self._engine is not None:
                return self._engine

            model_path = self.ensure_available()
            try:
                model_bytes = model_path.read_bytes()
            except OSError as exc:
                raise ModelLoadError(f"Cannot read model file {model_path}: {exc}") from exc

            self._engine = InferenceEngine.load(
                model_bytes,
                self._spec.input_shape,
                layout=self._spec.layout,
                session_options=self._session_options,
                providers=self._providers,
            )
            logger.info("Loaded engine for %s from %s", self._spec.name, model_path)
            return self._engine

    def is_loaded(self) -> bool:
        with self._lock:
            return self._engine is not None and self._engine.loaded

    def shutdown(self) -> None:
        """Unload the shared engine."""
        with self._lock:
            if self._engine is not None:
                self._engine.unload()
                self._engine = None
                logger.info("Engine for %s unloaded", self._spec.name)

    # -- Internal -----------------------------------------------------------

    def _build_providers(self) -> list[str | tuple[str, dict[str, object]]]:
        device = self._settings.device
        if device == "cuda":
            return [
                ("CUDAExecutionProvider", {"device_id": 0, "arena_extend_strategy": "kSameAsRequested"}),
                "CPUExecutionProvider",
            ]
        if device == "openvino":
            return [
                ("OpenVINOExecutionProvider", {"device_type": "CPU"}),
                "CPUExecutionProvider",
            ]
        return ["CPUExecutionProvider"]

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
