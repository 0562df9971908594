"""Image normalization: grayscale, bilinear resize, affine range mapping.

The steps and their constants are part of the model contract. Changing the luminance
weights or the interpolation changes what the model sees and therefore its output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import cv2
import numpy as np

from conectec.errors import PreprocessingError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from conectec.ml.frames import DecodedImage
    from conectec.ml.model_manager import ModelSpec

# Row of a zero-saturation colour matrix: the gray value written to every channel.
LUMA_WEIGHTS: tuple[float, float, float] = (0.213, 0.715, 0.072)


def to_grayscale(pixels: NDArray[np.uint8]) -> NDArray[np.uint8]:
    """Reduce an HxWx3 RGB grid to HxW luminance, rounded back to uint8.

    HxW input is returned unchanged.
    """
    if pixels.ndim == 2:
        return pixels
    weights = np.asarray(LUMA_WEIGHTS, dtype=np.float32)
    luma = pixels[..., :3].astype(np.float32) @ weights
    return np.clip(np.rint(luma), 0, 255).astype(np.uint8)


class ImageNormalizer:
    """Turns any ``DecodedImage`` into the fixed-shape float32 tensor a model expects."""

    def __init__(self, input_size: int, channels: int, mean: float, std: float) -> None:
        if input_size <= 0:
            raise ValueError(f"input_size must be positive, got {input_size}")
        if channels not in (1, 3):
            raise ValueError(f"channels must be 1 or 3, got {channels}")
        if std == 0:
            raise ValueError("std must be non-zero")
        self._input_size = input_size
        self._channels = channels
        self._mean = np.float32(mean)
        self._std = np.float32(std)

    @classmethod
    def from_spec(cls, spec: ModelSpec) -> ImageNormalizer:
        return cls(spec.input_size, spec.channels, spec.mean, spec.std)

    @property
    def output_shape(self) -> tuple[int, int, int]:
        return (self._input_size, self._input_size, self._channels)

    def normalize(self, image: DecodedImage) -> NDArray[np.float32]:
        """Grayscale, resize and range-normalize ``image``.

        Returns:
            HxWxC float32 array with H = W = input size.

        Raises:
            PreprocessingError: If the image has no pixels or a zero dimension.
        """
        pixels = image.pixels
        if pixels.size == 0 or image.width == 0 or image.height == 0:
            raise PreprocessingError(f"Cannot normalize a {image.width}x{image.height} image")
        if pixels.ndim not in (2, 3) or (pixels.ndim == 3 and pixels.shape[2] < 3):
            raise PreprocessingError(f"Unsupported pixel layout {pixels.shape}")

        gray = to_grayscale(pixels)
        size = self._input_size
        resized = cv2.resize(gray, (size, size), interpolation=cv2.INTER_LINEAR)

        scaled = (resized.astype(np.float32) - self._mean) / self._std
        if self._channels == 3:
            return np.repeat(scaled[..., np.newaxis], 3, axis=2)
        return scaled[..., np.newaxis]
