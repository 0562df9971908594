"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Request, UploadFile, status
from fastapi.responses import JSONResponse

from conectec.api.middleware import verify_api_key
from conectec.api.schemas import (
    AnalyzeRequest,
    ClassifyImageResponse,
    ConnectorInfoResponse,
    ErrorResponse,
    HealthResponse,
    LabelsResponse,
    StreamResultResponse,
    StreamStatusResponse,
)
from conectec.errors import InferenceError, PreprocessingError

if TYPE_CHECKING:
    from conectec.config import Settings
    from conectec.connector_info import ConnectorInfoStore
    from conectec.ml.model_manager import ModelManager
    from conectec.ml.pipeline import ClassificationPipeline
    from conectec.ml.selector import ClassificationResult
    from conectec.ml.uploads import UploadClassifier
    from conectec.stream_session import StreamSession

logger = logging.getLogger(__name__)

# Literal codes: the starlette constant names for these changed between releases.
HTTP_413_CONTENT_TOO_LARGE = 413
HTTP_422_UNPROCESSABLE_CONTENT = 422

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_pipeline(request: Request) -> ClassificationPipeline:
    pipeline: ClassificationPipeline = request.app.state.pipeline
    return pipeline


def _get_upload_classifier(request: Request) -> UploadClassifier:
    uploads: UploadClassifier = request.app.state.upload_classifier
    return uploads


def _get_connector_info(request: Request) -> ConnectorInfoStore:
    store: ConnectorInfoStore = request.app.state.connector_info
    return store


def _get_stream_session(request: Request) -> StreamSession:
    session: StreamSession = request.app.state.stream_session
    return session


def _to_response(request: Request, result: ClassificationResult) -> ClassifyImageResponse:
    pipeline = _get_pipeline(request)
    info = _get_connector_info(request).lookup(result.label)
    return ClassifyImageResponse.from_result(result, list(pipeline.labels.labels), info)


@router.post(
    "/classify-image",
    response_model=ClassifyImageResponse,
    responses={
        HTTP_413_CONTENT_TOO_LARGE: {"model": ErrorResponse},
        HTTP_422_UNPROCESSABLE_CONTENT: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
    summary="Classify an imported image",
)
async def classify_image(request: Request, file: UploadFile) -> ClassifyImageResponse | JSONResponse:
    """Classify an uploaded image into one connector type."""
    settings = _get_settings(request)
    data = await file.read(settings.max_file_size + 1)
    if len(data) > settings.max_file_size:
        return JSONResponse(
            status_code=HTTP_413_CONTENT_TOO_LARGE,
            content={"detail": f"File exceeds {settings.max_file_size} bytes"},
        )

    try:
        result = await _get_upload_classifier(request).classify(data)
    except TimeoutError:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Classifier busy, try again later"},
        )
    except PreprocessingError as exc:
        logger.info("Rejected upload %s: %s", file.filename, exc)
        return JSONResponse(
            status_code=HTTP_422_UNPROCESSABLE_CONTENT,
            content={"detail": f"Invalid image: {exc}"},
        )
    except InferenceError as exc:
        logger.warning("Classification of %s failed: %s", file.filename, exc)
        return JSONResponse(
            status_code=HTTP_422_UNPROCESSABLE_CONTENT,
            content={"detail": f"Classification failed: {exc}"},
        )

    return _to_response(request, result)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    settings = _get_settings(request)
    pipeline = _get_pipeline(request)
    uploads = _get_upload_classifier(request)
    manager: ModelManager = request.app.state.model_manager
    session = _get_stream_session(request)
    return HealthResponse(
        status="ok",
        gpu=settings.device == "cuda",
        model=manager.spec.name,
        model_loaded=manager.is_loaded(),
        num_labels=len(pipeline.labels),
        uploads_in_progress=uploads.in_progress,
        uploads_waiting=uploads.waiting,
        uploads_rejected=uploads.rejected,
        frames_admitted=pipeline.gate.admitted_count,
        frames_dropped=pipeline.gate.dropped_count,
        pipeline_state=str(pipeline.state),
        streaming=session.streaming,
        analyzing=session.analyzing,
    )


@router.get(
    "/labels",
    response_model=LabelsResponse,
    summary="List labels in model output order",
)
async def list_labels(request: Request) -> LabelsResponse:
    return LabelsResponse(labels=list(_get_pipeline(request).labels.labels))


@router.get(
    "/connectors/{label}",
    response_model=ConnectorInfoResponse,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
    summary="Technical info for a connector label",
)
async def connector_info(request: Request, label: str) -> ConnectorInfoResponse | JSONResponse:
    info = _get_connector_info(request).lookup(label)
    if info is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": f"No technical info for '{label}'"},
        )
    return ConnectorInfoResponse(label=label, info=info)


@router.post(
    "/stream/start",
    response_model=StreamStatusResponse,
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse}},
    summary="Start the camera stream",
)
async def start_stream(request: Request) -> StreamStatusResponse | JSONResponse:
    session = _get_stream_session(request)
    try:
        session.start()
    except RuntimeError as exc:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": str(exc)},
        )
    return StreamStatusResponse(streaming=session.streaming, analyzing=session.analyzing)


@router.post(
    "/stream/stop",
    response_model=StreamStatusResponse,
    summary="Stop the camera stream",
)
async def stop_stream(request: Request) -> StreamStatusResponse:
    session = _get_stream_session(request)
    session.stop()
    return StreamStatusResponse(streaming=session.streaming, analyzing=session.analyzing)


@router.post(
    "/stream/analyze",
    response_model=StreamStatusResponse,
    summary="Turn streamed-frame analysis on or off",
)
async def analyze_stream(request: Request, body: AnalyzeRequest) -> StreamStatusResponse:
    session = _get_stream_session(request)
    session.set_analyzing(body.enabled)
    return StreamStatusResponse(streaming=session.streaming, analyzing=session.analyzing)


@router.get(
    "/stream/result",
    response_model=StreamResultResponse,
    summary="Latest result from the camera stream",
)
async def stream_result(request: Request) -> StreamResultResponse:
    result = _get_stream_session(request).latest_result
    if result is None:
        return StreamResultResponse(result=None)
    return StreamResultResponse(result=_to_response(request, result))
