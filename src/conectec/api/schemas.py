"""Pydantic request/response schemas for the Conectec API."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from conectec.connector_info import ConnectorInfo  # noqa: TC001

if TYPE_CHECKING:
    from conectec.ml.selector import ClassificationResult


class LabelScore(BaseModel):
    """Raw model score for one label."""

    label: str
    score: float


class ClassifyImageResponse(BaseModel):
    """Top-1 classification with the full score distribution."""

    label: str
    confidence: float = Field(description="Raw model score at the selected index (not re-normalized)")
    distribution: list[LabelScore] = Field(description="Scores in label-table order")
    info: ConnectorInfo | None = Field(default=None, description="Technical info, if known for this label")

    @classmethod
    def from_result(
        cls,
        result: ClassificationResult,
        labels: list[str],
        info: ConnectorInfo | None,
    ) -> ClassifyImageResponse:
        return cls(
            label=result.label,
            confidence=result.confidence,
            distribution=[LabelScore(label=label, score=score) for label, score in zip(labels, result.distribution, strict=True)],
            info=info,
        )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    gpu: bool
    model: str
    model_loaded: bool
    num_labels: int
    uploads_in_progress: int
    uploads_waiting: int
    uploads_rejected: int
    frames_admitted: int
    frames_dropped: int
    pipeline_state: str
    streaming: bool
    analyzing: bool


class LabelsResponse(BaseModel):
    """The label table, in model output order."""

    labels: list[str]


class ConnectorInfoResponse(BaseModel):
    """Technical info for one label."""

    label: str
    info: ConnectorInfo


class AnalyzeRequest(BaseModel):
    """Turn streamed-frame analysis on or off."""

    enabled: bool = True


class StreamStatusResponse(BaseModel):
    """Camera stream state."""

    streaming: bool
    analyzing: bool


class StreamResultResponse(BaseModel):
    """Latest result produced from the camera stream, if any."""

    result: ClassifyImageResponse | None


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
