"""
Pydantic models for media processing.

This module defines:
- Job, project and content-type enums
- Edit specs handed to the command builder (clips, text overlays)
- Processor results and orchestrator outcomes
- The queue payload consumed by the media worker
- API response schemas
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS
# =============================================================================


class MediaJobStatus(str, Enum):
    """Lifecycle of a job or project render. Transitions only move forward."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({MediaJobStatus.COMPLETED.value, MediaJobStatus.FAILED.value})


class MediaKind(str, Enum):
    """Media type of a single-file job."""

    VIDEO = "video"
    AUDIO = "audio"


class ContentType(str, Enum):
    """Content types routed by the queue worker."""

    IMAGE = "image"
    VIDEO = "video"
    PANORAMA = "panorama"


class OverlayType(str, Enum):
    TEXT = "text"


# =============================================================================
# EDIT SPECS
# =============================================================================


class ClipEdit(BaseModel):
    """Trim, speed, colour and volume edits for one project clip."""

    model_config = ConfigDict(from_attributes=True)

    source_duration: float = Field(ge=0)
    trim_start: float = Field(default=0.0, ge=0)
    trim_end: float | None = Field(
        default=None, description="End of the kept range; None keeps to source end"
    )
    speed: float = Field(default=1.0, gt=0)
    filter_preset: str | None = None
    volume: float = Field(default=1.0, ge=0)

    @property
    def effective_end(self) -> float:
        return self.trim_end if self.trim_end is not None else self.source_duration

    @property
    def trimmed_duration(self) -> float:
        return self.effective_end - self.trim_start

    @property
    def output_duration(self) -> float:
        return self.trimmed_duration / self.speed


class TextOverlaySpec(BaseModel):
    """A text overlay positioned in percent of the frame (0-100)."""

    model_config = ConfigDict(from_attributes=True)

    type: str = OverlayType.TEXT.value
    text: str | None = None
    position_x: float = 50.0
    position_y: float = 50.0
    start_time: float = 0.0
    end_time: float | None = None
    font_family: str | None = None
    font_size: int = 48
    font_color: str = "#FFFFFF"
    background_color: str | None = None

    @property
    def renderable(self) -> bool:
        return self.type == OverlayType.TEXT.value and bool(self.text)


# =============================================================================
# RESULTS
# =============================================================================


class ImageProcessResult(BaseModel):
    width: int = Field(description="Width of the stored derivative")
    height: int = Field(description="Height of the stored derivative")
    original_width: int
    original_height: int
    size: int = Field(description="Byte size of the stored derivative")
    thumbnail_key: str


class PanoramaProcessResult(ImageProcessResult):
    aspect_ratio: float
    is_valid_equirectangular: bool


class VideoProcessResult(BaseModel):
    width: int | None = None
    height: int | None = None
    duration: int = Field(description="Source duration rounded to whole seconds")
    size: int
    thumbnail_key: str


class ProcessingOutcome(BaseModel):
    success: bool
    error: str | None = None
    error_kind: str | None = None


# =============================================================================
# QUEUE PAYLOAD
# =============================================================================


class MediaWorkerPayload(BaseModel):
    """Message consumed by the media queue worker (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True)

    content_type: ContentType = Field(alias="contentType")
    input_key: str = Field(alias="inputKey")
    output_key: str = Field(alias="outputKey")
    tier: str = "free"
    post_id: str | None = Field(default=None, alias="postId")


# =============================================================================
# API RESPONSES
# =============================================================================


class MediaJobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    post_id: str | None = None
    media_type: MediaKind
    status: MediaJobStatus
    progress: int
    output_url: str | None = None
    thumbnail_url: str | None = None
    duration_seconds: float | None = None
    width: int | None = None
    height: int | None = None
    error_message: str | None = None
    error_kind: str | None = None
    created_at: datetime | None = None
    processed_at: datetime | None = None


class TriggerResponse(BaseModel):
    ok: bool = True
    message: str


class CronProcessResponse(BaseModel):
    processed: bool
    job_id: str | None = None
    success: bool | None = None
    error: str | None = None
    stale_jobs_failed: int = 0
