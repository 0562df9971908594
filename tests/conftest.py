"""Shared fixtures for the classification pipeline tests."""

from __future__ import annotations

import pytest
from helpers import FakeEngine

from conectec.ml.labels import LabelTable
from conectec.ml.pipeline import ClassificationPipeline
from conectec.ml.preprocessing import ImageNormalizer


@pytest.fixture()
def labels() -> LabelTable:
    return LabelTable.default()


@pytest.fixture()
def normalizer() -> ImageNormalizer:
    return ImageNormalizer(input_size=224, channels=3, mean=0.0, std=255.0)


@pytest.fixture()
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture()
def pipeline(engine: FakeEngine, normalizer: ImageNormalizer, labels: LabelTable) -> ClassificationPipeline:
    pipe = ClassificationPipeline(engine, normalizer, labels)  # type: ignore[arg-type]
    pipe.should_analyze = True
    return pipe
