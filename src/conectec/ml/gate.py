"""Single-slot frame admission: keep the frame in flight, drop everything else.

This is a drop-new-on-full mailbox with capacity one. There is no queue: a frame that
arrives while another is being classified is released on the spot.
"""

from __future__ import annotations

import logging
import threading
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from conectec.ml.frames import RawFrame

logger = logging.getLogger(__name__)


class Admission(StrEnum):
    ADMITTED = "admitted"
    DROPPED = "dropped"


class FrameGate:
    """Admits at most one frame until ``release()`` is called."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._busy = False
        self._admitted_count = 0
        self._dropped_count = 0

    def admit(self, frame: RawFrame) -> Admission:
        """Take ownership of ``frame`` if idle, otherwise release it and drop it.

        An ``ADMITTED`` result obliges the caller to call ``release()`` exactly once.
        """
        with self._lock:
            if not self._busy:
                self._busy = True
                self._admitted_count += 1
                return Admission.ADMITTED
            self._dropped_count += 1

        frame.release()
        logger.debug("Dropped frame %dx%d while busy", frame.width, frame.height)
        return Admission.DROPPED

    def release(self) -> None:
        """Mark the in-flight frame as finished.

        Raises:
            RuntimeError: If no frame is in flight.
        """
        with self._lock:
            if not self._busy:
                raise RuntimeError("FrameGate.release() called with no frame in flight")
            self._busy = False

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._busy

    @property
    def admitted_count(self) -> int:
        """Number of frames admitted since creation."""
        with self._lock:
            return self._admitted_count

    @property
    def dropped_count(self) -> int:
        """Number of frames dropped because a frame was in flight."""
        with self._lock:
            return self._dropped_count
