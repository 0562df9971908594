"""Long-lived ONNX inference engine for the connector classifier.

An engine is created once per process by the model manager and reused for every
classification. It holds no mutable state besides the session itself, and it does not
lock: callers must ensure only one ``infer`` runs at a time.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal

import numpy as np
from onnxruntime import InferenceSession

from conectec.errors import ConfigurationError, InferenceError, ModelLoadError

if TYPE_CHECKING:
    from numpy.typing import NDArray
    from onnxruntime import SessionOptions

logger = logging.getLogger(__name__)

TensorLayout = Literal["nhwc", "nchw"]


class InferenceEngine:
    """Wraps one ``InferenceSession`` with a fixed HxWxC input and N-way output."""

    def __init__(
        self,
        session: InferenceSession,
        input_shape: tuple[int, int, int],
        layout: TensorLayout = "nhwc",
    ) -> None:
        self._session: InferenceSession | None = session
        self._input_shape = input_shape
        self._layout = layout

        inputs = session.get_inputs()
        outputs = session.get_outputs()
        if len(inputs) != 1 or not outputs:
            raise ModelLoadError(f"Expected a single-input model, got {len(inputs)} inputs and {len(outputs)} outputs")
        self._input_name: str = inputs[0].name
        self._output_name: str = outputs[0].name
        self._check_input_shape(list(inputs[0].shape))
        self._output_size = self._resolve_output_size(session, outputs[0].shape)

    @classmethod
    def load(
        cls,
        model_bytes: bytes,
        input_shape: tuple[int, int, int],
        *,
        layout: TensorLayout = "nhwc",
        session_options: SessionOptions | None = None,
        providers: list[str | tuple[str, dict[str, object]]] | None = None,
    ) -> InferenceEngine:
        """Deserialize ``model_bytes`` into a ready-to-run engine.

        Raises:
            ModelLoadError: If the bytes are empty, not a valid model, or the model's
                input shape does not match ``input_shape``.
        """
        if not model_bytes:
            raise ModelLoadError("Model artifact is empty")
        try:
            session = InferenceSession(
                model_bytes,
                sess_options=session_options,
                providers=providers or ["CPUExecutionProvider"],
            )
        except Exception as exc:
            raise ModelLoadError(f"Could not deserialize model: {exc}") from exc

        engine = cls(session, input_shape, layout)
        logger.info(
            "Engine loaded (input=%s, layout=%s, outputs=%d, providers=%s)",
            input_shape,
            layout,
            engine.output_size,
            session.get_providers(),
        )
        return engine

    @property
    def input_shape(self) -> tuple[int, int, int]:
        return self._input_shape

    @property
    def output_size(self) -> int:
        return self._output_size

    @property
    def loaded(self) -> bool:
        return self._session is not None

    def infer(self, tensor: NDArray[np.float32]) -> NDArray[np.float32]:
        """Run one forward pass and return the flat score vector.

        Raises:
            ConfigurationError: If ``tensor`` does not have the model's input shape.
            InferenceError: If the engine is unloaded, the runtime fails, or the scores
                are not all finite.
        """
        session = self._session
        if session is None:
            raise InferenceError("Engine has been unloaded")
        if tuple(tensor.shape) != self._input_shape:
            raise ConfigurationError(f"Tensor shape {tuple(tensor.shape)} does not match model input {self._input_shape}")

        batch = self._to_batch(tensor)
        try:
            outputs = session.run([self._output_name], {self._input_name: batch})
        except Exception as exc:
            raise InferenceError(f"Forward pass failed: {exc}") from exc

        scores = np.asarray(outputs[0], dtype=np.float32).reshape(-1)
        if scores.size != self._output_size:
            raise InferenceError(f"Model returned {scores.size} scores, expected {self._output_size}")
        if not np.isfinite(scores).all():
            raise InferenceError("Model returned non-finite scores")
        return scores

    def unload(self) -> None:
        """Release the session. Further ``infer`` calls raise ``InferenceError``."""
        if self._session is not None:
            self._session = None
            logger.info("Engine unloaded")

    # -- Internal -----------------------------------------------------------

    def _to_batch(self, tensor: NDArray[np.float32]) -> NDArray[np.float32]:
        batch = np.ascontiguousarray(tensor, dtype=np.float32)[np.newaxis, ...]
        if self._layout == "nchw":
            batch = np.ascontiguousarray(batch.transpose(0, 3, 1, 2))
        return batch

    def _check_input_shape(self, shape: list[object]) -> None:
        height, width, channels = self._input_shape
        expected = [height, width, channels] if self._layout == "nhwc" else [channels, height, width]
        if len(shape) != 4:
            raise ModelLoadError(f"Model input has rank {len(shape)}, expected 4")
        for actual, wanted in zip(shape[1:], expected, strict=True):
            # Symbolic or unknown dimensions are accepted.
            if isinstance(actual, int) and actual != wanted:
                raise ModelLoadError(f"Model input shape {shape} does not match expected {self._layout} {expected}")

    def _resolve_output_size(self, session: InferenceSession, shape: list[object]) -> int:
        last = shape[-1] if shape else None
        if isinstance(last, int) and last > 0:
            return last
        # Dynamic output: probe once with a zero tensor.
        probe = np.zeros((1, *self._input_shape), dtype=np.float32)
        if self._layout == "nchw":
            probe = np.ascontiguousarray(probe.transpose(0, 3, 1, 2))
        try:
            outputs = session.run([self._output_name], {self._input_name: probe})
        except Exception as exc:
            raise ModelLoadError(f"Could not determine model output size: {exc}") from exc
        return int(np.asarray(outputs[0]).size)
