"""OpenCV camera frame source feeding the classification pipeline.

Frames are read on a daemon thread and classified synchronously on that same thread.
There is no watchdog: a stuck inference call blocks the capture thread until it returns.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

import cv2

from conectec.errors import ConfigurationError
from conectec.ml.frames import PixelFormat, RawFrame

if TYPE_CHECKING:
    from collections.abc import Callable

    from conectec.ml.pipeline import ClassificationPipeline
    from conectec.ml.selector import ClassificationResult

logger = logging.getLogger(__name__)

JOIN_TIMEOUT_SECONDS: float = 5.0
MAX_FAILED_READS: int = 50
READ_RETRY_SECONDS: float = 0.1


class CameraStream:
    """Reads BGR frames from a ``cv2.VideoCapture`` device into the pipeline."""

    def __init__(
        self,
        pipeline: ClassificationPipeline,
        on_result: Callable[[ClassificationResult], None],
        camera_index: int = 0,
    ) -> None:
        self._pipeline = pipeline
        self._on_result = on_result
        self._camera_index = camera_index
        self._capture: cv2.VideoCapture | None = None
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Open the device and start the capture thread.

        Raises:
            RuntimeError: If the camera cannot be opened.
        """
        with self._lock:
            if self.running:
                return
            capture = cv2.VideoCapture(self._camera_index)
            if not capture.isOpened():
                capture.release()
                raise RuntimeError(f"Cannot open camera {self._camera_index}")
            self._capture = capture
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._loop, name="camera-stream", daemon=True)
            self._thread.start()
        logger.info("Camera %d streaming", self._camera_index)

    def stop(self) -> None:
        """Stop capturing, cancel the in-flight frame, and release the device."""
        with self._lock:
            self._stop_event.set()
            self._pipeline.cancel()
            thread, self._thread = self._thread, None
            if thread is not None:
                thread.join(timeout=JOIN_TIMEOUT_SECONDS)
                if thread.is_alive():
                    logger.warning("Capture thread still busy after %.1fs", JOIN_TIMEOUT_SECONDS)
            if self._capture is not None:
                self._capture.release()
                self._capture = None
        logger.info("Camera %d stopped", self._camera_index)

    def _loop(self) -> None:
        capture = self._capture
        failed_reads = 0
        while capture is not None and not self._stop_event.is_set():
            ok, image = capture.read()
            if not ok or image is None:
                failed_reads += 1
                if failed_reads == 1:
                    logger.warning("Camera %d returned no frame; retrying", self._camera_index)
                if failed_reads >= MAX_FAILED_READS:
                    logger.error(
                        "Camera %d returned no frame %d times in a row; stopping", self._camera_index, failed_reads
                    )
                    self._stop_event.set()
                    break
                self._stop_event.wait(READ_RETRY_SECONDS)
                continue
            if failed_reads:
                logger.info("Camera %d recovered after %d failed reads", self._camera_index, failed_reads)
                failed_reads = 0
            height, width = image.shape[:2]
            frame = RawFrame(width=width, height=height, pixel_format=PixelFormat.BGR, buffer=image)
            try:
                self._pipeline.submit_frame(frame, self._on_result)
            except ConfigurationError:
                logger.exception("Model and label table disagree; stopping camera %d", self._camera_index)
                self._stop_event.set()
            except Exception:
                logger.exception("Frame handling failed; continuing")
