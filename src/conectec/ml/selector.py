"""Top-1 selection over a model output vector."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from conectec.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from conectec.ml.labels import LabelTable


@dataclass(frozen=True)
class ClassificationResult:
    """Best label, its raw score, and the full per-label score vector."""

    label: str
    confidence: float
    distribution: tuple[float, ...]
    index: int


def select(scores: Sequence[float], labels: LabelTable) -> ClassificationResult:
    """Pick the highest score; ties go to the lowest index.

    Raises:
        ConfigurationError: If ``scores`` and ``labels`` differ in length.
    """
    distribution = tuple(float(s) for s in scores)
    if len(distribution) != len(labels):
        raise ConfigurationError(
            f"Model produced {len(distribution)} scores but the label table has {len(labels)} labels"
        )

    best_index = 0
    best_score = distribution[0]
    for i in range(1, len(distribution)):
        if distribution[i] > best_score:
            best_index = i
            best_score = distribution[i]

    return ClassificationResult(
        label=labels[best_index],
        confidence=best_score,
        distribution=distribution,
        index=best_index,
    )
