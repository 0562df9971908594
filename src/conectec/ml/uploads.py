"""Imported-image classification off the event loop.

    FastAPI (async) -> upload slots (asyncio.Semaphore) -> worker threads -> pipeline.classify_file

The pipeline serializes engine access with the camera stream, so the slot count only
bounds how many uploads may be decoded and waiting at once. An upload that cannot get a
slot within ``SLOT_TIMEOUT_SECONDS`` is rejected as busy.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from conectec.config import Settings
    from conectec.ml.pipeline import ClassificationPipeline
    from conectec.ml.selector import ClassificationResult

logger = logging.getLogger(__name__)

SLOT_TIMEOUT_SECONDS: float = 5.0


class UploadClassifier:
    """Classifies uploaded image files on a small worker pool."""

    def __init__(self, pipeline: ClassificationPipeline, settings: Settings) -> None:
        self._pipeline = pipeline
        self._max_pixels = settings.max_image_pixels
        self._slots = asyncio.Semaphore(settings.max_concurrent)
        self._workers = ThreadPoolExecutor(
            max_workers=settings.max_concurrent,
            thread_name_prefix="classify",
        )
        self._stats_lock = threading.Lock()
        self._in_progress = 0
        self._waiting = 0
        self._rejected = 0

    async def classify(self, image_bytes: bytes) -> ClassificationResult:
        """Decode and classify one uploaded file.

        Raises:
            TimeoutError: If every slot stays taken for ``SLOT_TIMEOUT_SECONDS``.
            PreprocessingError: If the file is not a usable image.
            InferenceError: If the forward pass fails.
        """
        await self._take_slot()
        with self._stats_lock:
            self._in_progress += 1
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(
                self._workers, self._pipeline.classify_file, image_bytes, self._max_pixels
            )
        finally:
            self._slots.release()
            with self._stats_lock:
                self._in_progress -= 1

    async def _take_slot(self) -> None:
        with self._stats_lock:
            self._waiting += 1
        try:
            await asyncio.wait_for(self._slots.acquire(), timeout=SLOT_TIMEOUT_SECONDS)
        except TimeoutError:
            with self._stats_lock:
                self._rejected += 1
            logger.warning("Upload rejected: no classification slot free after %.1fs", SLOT_TIMEOUT_SECONDS)
            raise
        finally:
            with self._stats_lock:
                self._waiting -= 1

    @property
    def in_progress(self) -> int:
        """Uploads currently being decoded or classified."""
        with self._stats_lock:
            return self._in_progress

    @property
    def waiting(self) -> int:
        """Uploads waiting for a slot."""
        with self._stats_lock:
            return self._waiting

    @property
    def rejected(self) -> int:
        """Uploads turned away because no slot freed up in time."""
        with self._stats_lock:
            return self._rejected

    def shutdown(self) -> None:
        self._workers.shutdown(wait=True)
