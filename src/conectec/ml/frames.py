"""Frame and image data structures, plus decoding into addressable pixel grids.

A ``RawFrame`` owns a capture buffer and must be released exactly once. A
``DecodedImage`` is the immutable RGB or grayscale grid every later stage works on.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

import cv2
import numpy as np

from conectec.errors import PreprocessingError

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import NDArray

logger = logging.getLogger(__name__)


class PixelFormat(StrEnum):
    NV21 = "nv21"
    I420 = "i420"
    RGB = "rgb"
    BGR = "bgr"
    RGBA = "rgba"
    GRAY = "gray"


# Bytes per pixel for packed formats; planar YUV 4:2:0 uses 1.5.
_PACKED_CHANNELS: dict[PixelFormat, int] = {
    PixelFormat.RGB: 3,
    PixelFormat.BGR: 3,
    PixelFormat.RGBA: 4,
    PixelFormat.GRAY: 1,
}

_YUV_CONVERSIONS: dict[PixelFormat, int] = {
    PixelFormat.NV21: cv2.COLOR_YUV2RGB_NV21,
    PixelFormat.I420: cv2.COLOR_YUV2RGB_I420,
}


@dataclass(eq=False)
class RawFrame:
    """A captured frame that owns its buffer until ``release()`` is called."""

    width: int
    height: int
    pixel_format: PixelFormat
    buffer: bytes | bytearray | memoryview | NDArray[np.uint8] | None = field(repr=False)
    on_release: Callable[[RawFrame], None] | None = field(default=None, repr=False)
    _released: bool = field(default=False, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Drop the buffer and notify the owner.

        Raises:
            RuntimeError: If the frame was already released.
        """
        with self._lock:
            if self._released:
                raise RuntimeError(f"Frame {self!r} released twice")
            self._released = True
        self.buffer = None
        if self.on_release is not None:
            self.on_release(self)


@dataclass(frozen=True, eq=False)
class DecodedImage:
    """Read-only HxWx3 RGB or HxW grayscale uint8 pixel grid."""

    pixels: NDArray[np.uint8]

    def __post_init__(self) -> None:
        if self.pixels is None:
            raise PreprocessingError("Image has no pixel data")
        try:
            pixels = np.ascontiguousarray(self.pixels, dtype=np.uint8)
        except (TypeError, ValueError) as exc:
            raise PreprocessingError(f"Image pixels are not a uint8 grid: {exc}") from exc
        if pixels is self.pixels:
            pixels = pixels.copy()
        pixels.flags.writeable = False
        object.__setattr__(self, "pixels", pixels)

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0]) if self.pixels.ndim >= 1 else 0

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1]) if self.pixels.ndim >= 2 else 0

    @property
    def is_grayscale(self) -> bool:
        return self.pixels.ndim == 2


def _expected_size(width: int, height: int, pixel_format: PixelFormat) -> int:
    if pixel_format in _YUV_CONVERSIONS:
        return width * height * 3 // 2
    return width * height * _PACKED_CHANNELS[pixel_format]


def decode_frame(frame: RawFrame) -> DecodedImage:
    """Convert a captured frame into an RGB (or grayscale) ``DecodedImage``.

    Raises:
        PreprocessingError: If the frame is released, degenerate, or its buffer size
            does not match its declared geometry.
    """
    if frame.buffer is None:
        raise PreprocessingError("Frame has no pixel data")
    width, height = frame.width, frame.height
    if width <= 0 or height <= 0:
        raise PreprocessingError(f"Degenerate frame dimensions {width}x{height}")
    if frame.pixel_format in _YUV_CONVERSIONS and (width % 2 or height % 2):
        raise PreprocessingError(f"YUV 4:2:0 frame needs even dimensions, got {width}x{height}")

    data = np.frombuffer(frame.buffer, dtype=np.uint8)
    expected = _expected_size(width, height, frame.pixel_format)
    if data.size < expected:
        raise PreprocessingError(
            f"Frame buffer holds {data.size} bytes, {frame.pixel_format} {width}x{height} needs {expected}"
        )
    data = data[:expected]

    fmt = frame.pixel_format
    if fmt in _YUV_CONVERSIONS:
        rgb = cv2.cvtColor(data.reshape(height * 3 // 2, width), _YUV_CONVERSIONS[fmt])
    elif fmt == PixelFormat.RGB:
        rgb = data.reshape(height, width, 3)
    elif fmt == PixelFormat.BGR:
        rgb = cv2.cvtColor(data.reshape(height, width, 3), cv2.COLOR_BGR2RGB)
    elif fmt == PixelFormat.RGBA:
        rgb = cv2.cvtColor(data.reshape(height, width, 4), cv2.COLOR_RGBA2RGB)
    else:
        return DecodedImage(data.reshape(height, width))
    return DecodedImage(rgb)


def decode_image_bytes(image_bytes: bytes, max_pixels: int | None = None) -> DecodedImage:
    """Decode an imported image file (any format OpenCV reads) into RGB.

    Raises:
        PreprocessingError: If the data is empty, undecodable, or exceeds ``max_pixels``.
    """
    if not image_bytes:
        raise PreprocessingError("Image file is empty")

    encoded = np.frombuffer(image_bytes, dtype=np.uint8)
    try:
        bgr = cv2.imdecode(encoded, cv2.IMREAD_COLOR)
    except cv2.error as exc:
        raise PreprocessingError(f"Could not decode image: {exc}") from exc
    if bgr is None:
        raise PreprocessingError("Could not decode image: unsupported or corrupt data")

    height, width = bgr.shape[:2]
    if max_pixels is not None and width * height > max_pixels:
        raise PreprocessingError(f"Image of {width}x{height} exceeds the {max_pixels} pixel limit")

    logger.debug("Decoded imported image %dx%d", width, height)
    return DecodedImage(cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB))
