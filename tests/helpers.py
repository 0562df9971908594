"""Test doubles shared across test modules."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from conectec.ml.frames import PixelFormat, RawFrame

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import NDArray

# Model output for the reference scenario: first score is the maximum.
SCENARIO_SCORES: list[float] = [0.1, 0.05, 0.02] + [0.01] * 17


class FakeEngine:
    """Stands in for ``InferenceEngine`` with a fixed output vector."""

    def __init__(
        self,
        scores: list[float] | None = None,
        input_shape: tuple[int, int, int] = (224, 224, 3),
        on_infer: Callable[[NDArray[np.float32]], None] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.scores = np.asarray(scores if scores is not None else SCENARIO_SCORES, dtype=np.float32)
        self.input_shape = input_shape
        self.output_size = int(self.scores.size)
        self.on_infer = on_infer
        self.error = error
        self.calls = 0

    def infer(self, tensor: NDArray[np.float32]) -> NDArray[np.float32]:
        self.calls += 1
        if self.on_infer is not None:
            self.on_infer(tensor)
        if self.error is not None:
            raise self.error
        return self.scores.copy()


class ReleaseCounter:
    """``on_release`` callback that counts frame releases."""

    def __init__(self) -> None:
        self.count = 0

    def __call__(self, frame: RawFrame) -> None:
        self.count += 1


def make_frame(
    width: int = 32,
    height: int = 24,
    fill: int = 0,
    on_release: Callable[[RawFrame], None] | None = None,
) -> RawFrame:
    pixels = np.full((height, width, 3), fill, dtype=np.uint8)
    return RawFrame(
        width=width,
        height=height,
        pixel_format=PixelFormat.RGB,
        buffer=pixels.tobytes(),
        on_release=on_release,
    )
