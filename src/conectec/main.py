"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from conectec.api.routes import router
from conectec.config import Settings, get_settings
from conectec.connector_info import ConnectorInfoStore
from conectec.ml.labels import LabelTable
from conectec.ml.model_manager import OnnxModelManager
from conectec.ml.pipeline import ClassificationPipeline
from conectec.ml.uploads import UploadClassifier
from conectec.stream_session import StreamSession

logger = logging.getLogger(__name__)


def init_state(app: FastAPI, settings: Settings) -> None:
    """Load the engine once and wire every shared object onto ``app.state``.

    Raises:
        ModelLoadError: If the model cannot be loaded.
        ConfigurationError: If the model, label table, or info file disagree.
    """
    labels = LabelTable.from_file(settings.labels_path) if settings.labels_path else LabelTable.default()
    connector_info = (
        ConnectorInfoStore.from_file(settings.connector_info_path)
        if settings.connector_info_path
        else ConnectorInfoStore()
    )

    model_manager = OnnxModelManager(settings)
    pipeline = ClassificationPipeline.from_manager(model_manager, labels)

    app.state.settings = settings
    app.state.model_manager = model_manager
    app.state.pipeline = pipeline
    app.state.connector_info = connector_info
    app.state.upload_classifier = UploadClassifier(pipeline, settings)
    app.state.stream_session = StreamSession(
        pipeline,
        settings.camera_index,
        analyze_once=settings.analyze_once,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: load the model on startup, release it on shutdown."""
    settings = get_settings()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting Conectec (device=%s, model=%s, intra_op_threads=%s, max_concurrent=%s)",
        settings.device,
        settings.classifier_model,
        settings.intra_op_threads,
        settings.max_concurrent,
    )

    init_state(app, settings)

    logger.info("Conectec ready")
    yield

    logger.info("Shutting down Conectec")
    app.state.stream_session.stop()
    app.state.upload_classifier.shutdown()
    app.state.model_manager.shutdown()
    logger.info("Conectec shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="Conectec",
        description="Connector-type image classification from uploads and a live camera stream",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    settings = get_settings()
    uvicorn.run("conectec.main:app", host=settings.host, port=settings.port)
