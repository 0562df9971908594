"""Camera stream session: start/stop the frame source and keep the latest result."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from conectec.capture import CameraStream

if TYPE_CHECKING:
    from collections.abc import Callable

    from conectec.ml.pipeline import ClassificationPipeline
    from conectec.ml.selector import ClassificationResult

logger = logging.getLogger(__name__)


class StreamSession:
    """Owns the camera stream and the most recent streamed result.

    With ``analyze_once`` set, analysis switches itself off after the first result so
    the shown result stays put until analysis is requested again.
    """

    def __init__(
        self,
        pipeline: ClassificationPipeline,
        camera_index: int = 0,
        *,
        analyze_once: bool = True,
        stream_factory: Callable[..., CameraStream] = CameraStream,
    ) -> None:
        self._pipeline = pipeline
        self._camera_index = camera_index
        self._analyze_once = analyze_once
        self._stream_factory = stream_factory
        self._stream: CameraStream | None = None
        self._latest: ClassificationResult | None = None
        self._lock = threading.Lock()

    @property
    def streaming(self) -> bool:
        return self._stream is not None and self._stream.running

    @property
    def analyzing(self) -> bool:
        return self._pipeline.should_analyze

    @property
    def latest_result(self) -> ClassificationResult | None:
        with self._lock:
            return self._latest

    def start(self) -> None:
        """Open the camera. Analysis stays off until ``set_analyzing(True)``.

        Raises:
            RuntimeError: If the camera cannot be opened.
        """
        if self.streaming:
            return
        with self._lock:
            self._latest = None
        self._pipeline.should_analyze = False
        stream = self._stream_factory(self._pipeline, self._on_result, self._camera_index)
        stream.start()
        self._stream = stream

    def stop(self) -> None:
        """Stop the camera and forget the last result."""
        self._pipeline.should_analyze = False
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
        with self._lock:
            self._latest = None

    def set_analyzing(self, enabled: bool) -> None:
        if enabled:
            with self._lock:
                self._latest = None
        self._pipeline.should_analyze = enabled

    def _on_result(self, result: ClassificationResult) -> None:
        with self._lock:
            self._latest = result
        if self._analyze_once:
            self._pipeline.should_analyze = False
        logger.info("Stream result: %s (%.4f)", result.label, result.confidence)
