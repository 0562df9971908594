"""Classification pipeline: FrameGate -> ImageNormalizer -> InferenceEngine -> select.

Architecture:
    frame source thread -> submit_frame() -> FrameGate (drop while busy)
        -> decode + normalize -> engine.infer -> select -> on_result callback

Imported single images go through ``classify()``, which shares the engine with the
stream under one lock so the engine never runs two forward passes at once.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from conectec.errors import ConfigurationError, InferenceError, PreprocessingError
from conectec.ml.frames import decode_frame, decode_image_bytes
from conectec.ml.gate import Admission, FrameGate
from conectec.ml.preprocessing import ImageNormalizer
from conectec.ml.selector import ClassificationResult, select

if TYPE_CHECKING:
    from collections.abc import Callable

    from conectec.errors import ConectecError
    from conectec.ml.engine import InferenceEngine
    from conectec.ml.frames import DecodedImage, RawFrame
    from conectec.ml.labels import LabelTable
    from conectec.ml.model_manager import ModelManager

logger = logging.getLogger(__name__)


class PipelineState(StrEnum):
    IDLE = "idle"
    ADMITTED = "admitted"
    PREPROCESSING = "preprocessing"
    INFERRING = "inferring"
    SELECTING = "selecting"


class OutcomeKind(StrEnum):
    SUCCESS = "success"
    DROPPED = "dropped"
    SKIPPED = "skipped"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class FrameOutcome:
    """What happened to one frame offered to the pipeline."""

    kind: OutcomeKind
    result: ClassificationResult | None = None
    error: ConectecError | None = None


class _Cancelled(Exception):
    pass


class ClassificationPipeline:
    """Composes the classification stages around one shared engine."""

    def __init__(
        self,
        engine: InferenceEngine,
        normalizer: ImageNormalizer,
        labels: LabelTable,
        gate: FrameGate | None = None,
    ) -> None:
        if engine.output_size != len(labels):
            raise ConfigurationError(
                f"Model has {engine.output_size} outputs but the label table has {len(labels)} labels"
            )
        if tuple(engine.input_shape) != normalizer.output_shape:
            raise ConfigurationError(
                f"Normalizer produces {normalizer.output_shape} but the model expects {engine.input_shape}"
            )
        self._engine = engine
        self._normalizer = normalizer
        self._labels = labels
        self._gate = gate if gate is not None else FrameGate()

        self._run_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._state = PipelineState.IDLE
        self._epoch = 0
        self._should_analyze = False

    @classmethod
    def from_manager(cls, manager: ModelManager, labels: LabelTable) -> ClassificationPipeline:
        """Load (or reuse) the manager's engine and build a pipeline around it.

        Raises:
            ModelLoadError: If the engine cannot be loaded.
            ConfigurationError: If the model and label table disagree.
        """
        engine = manager.get_engine()
        return cls(engine, ImageNormalizer.from_spec(manager.spec), labels)

    # -- Public API ---------------------------------------------------------

    @property
    def labels(self) -> LabelTable:
        return self._labels

    @property
    def gate(self) -> FrameGate:
        return self._gate

    @property
    def state(self) -> PipelineState:
        with self._state_lock:
            return self._state

    @property
    def should_analyze(self) -> bool:
        return self._should_analyze

    @should_analyze.setter
    def should_analyze(self, value: bool) -> None:
        self._should_analyze = value
        logger.info("Frame analysis %s", "enabled" if value else "disabled")

    def classify(self, image: DecodedImage) -> ClassificationResult:
        """Classify one decoded image synchronously.

        Raises:
            PreprocessingError: If the image cannot be normalized.
            InferenceError: If the forward pass fails.
        """
        with self._run_lock:
            try:
                return self._run(image, epoch=None)
            finally:
                self._set_state(PipelineState.IDLE)

    def classify_file(self, image_bytes: bytes, max_pixels: int | None = None) -> ClassificationResult:
        """Decode an imported image file and classify it."""
        return self.classify(decode_image_bytes(image_bytes, max_pixels=max_pixels))

    def submit_frame(
        self,
        frame: RawFrame,
        on_result: Callable[[ClassificationResult], None],
    ) -> FrameOutcome:
        """Offer a streamed frame; the pipeline always takes ownership of it.

        ``on_result`` is called once, before the gate reopens, only when the frame is
        admitted and fully classified. Per-frame errors are logged and reported as
        ``FAILED``; the frame is released on every path.
        """
        if not self._should_analyze:
            frame.release()
            return FrameOutcome(OutcomeKind.SKIPPED)

        # A cancel() racing with admission must still discard this frame.
        with self._state_lock:
            epoch = self._epoch
        if self._gate.admit(frame) is Admission.DROPPED:
            return FrameOutcome(OutcomeKind.DROPPED)

        try:
            with self._run_lock:
                self._set_state(PipelineState.ADMITTED)
                try:
                    image = decode_frame(frame)
                    result = self._run(image, epoch=epoch)
                    self._check_cancelled(epoch)
                    on_result(result)
                    return FrameOutcome(OutcomeKind.SUCCESS, result=result)
                except _Cancelled:
                    logger.info("Discarded in-flight frame after cancellation")
                    return FrameOutcome(OutcomeKind.CANCELLED)
                except (PreprocessingError, InferenceError) as exc:
                    logger.warning("Skipping frame: %s", exc)
                    return FrameOutcome(OutcomeKind.FAILED, error=exc)
                finally:
                    self._set_state(PipelineState.IDLE)
        finally:
            frame.release()
            self._gate.release()

    def cancel(self) -> None:
        """Abandon the in-flight frame, if any; its result will not be delivered."""
        with self._state_lock:
            self._epoch += 1
            epoch = self._epoch
        logger.info("Pipeline cancelled (epoch %d)", epoch)

    # -- Internal -----------------------------------------------------------

    def _run(self, image: DecodedImage, epoch: int | None) -> ClassificationResult:
        self._set_state(PipelineState.PREPROCESSING)
        tensor = self._normalizer.normalize(image)
        self._check_cancelled(epoch)

        self._set_state(PipelineState.INFERRING)
        scores = self._engine.infer(tensor)
        self._check_cancelled(epoch)

        self._set_state(PipelineState.SELECTING)
        result = select(scores, self._labels)
        logger.debug("Classified as %r (%.4f)", result.label, result.confidence)
        return result

    def _check_cancelled(self, epoch: int | None) -> None:
        if epoch is not None and epoch != self._epoch:
            raise _Cancelled

    def _set_state(self, state: PipelineState) -> None:
        with self._state_lock:
            self._state = state
