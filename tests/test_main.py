"""Tests for application startup wiring."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from fastapi import FastAPI
from helpers import FakeEngine

from conectec.config import Settings
from conectec.errors import ConfigurationError, ModelLoadError
from conectec.main import init_state
from conectec.ml.pipeline import ClassificationPipeline
from conectec.stream_session import StreamSession


class TestInitState:
    def test_missing_model_aborts_startup(self, tmp_path: Path) -> None:
        app = FastAPI()
        with pytest.raises(ModelLoadError):
            init_state(app, Settings(models_dir=str(tmp_path)))
        assert not hasattr(app.state, "pipeline")

    @patch("conectec.main.OnnxModelManager")
    def test_wires_shared_state(self, mock_manager_cls: MagicMock, tmp_path: Path) -> None:
        manager = mock_manager_cls.return_value
        manager.get_engine.return_value = FakeEngine()
        manager.spec.input_size = 224
        manager.spec.channels = 3
        manager.spec.mean = 0.0
        manager.spec.std = 255.0
        info_path = tmp_path / "info.json"
        rca = {"compatibility": "TV", "speed": "Analogica", "power": "N/A", "uses": "Audio y video"}
        info_path.write_text(json.dumps({"Conector RCA": rca}), encoding="utf-8")
        app = FastAPI()

        init_state(app, Settings(connector_info_path=str(info_path)))

        assert isinstance(app.state.pipeline, ClassificationPipeline)
        assert isinstance(app.state.stream_session, StreamSession)
        assert len(app.state.pipeline.labels) == 20
        assert app.state.pipeline.should_analyze is False
        assert app.state.connector_info.lookup("Conector RCA") is not None
        app.state.upload_classifier.shutdown()

    @patch("conectec.main.OnnxModelManager")
    def test_label_count_mismatch_aborts_startup(self, mock_manager_cls: MagicMock, tmp_path: Path) -> None:
        manager = mock_manager_cls.return_value
        manager.get_engine.return_value = FakeEngine()
        manager.spec.input_size = 224
        manager.spec.channels = 3
        manager.spec.mean = 0.0
        manager.spec.std = 255.0
        labels_path = tmp_path / "labels.txt"
        labels_path.write_text("Conector HDMI\nConector VGA\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="20 outputs"):
            init_state(FastAPI(), Settings(labels_path=str(labels_path)))
