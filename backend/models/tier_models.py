"""
Per-tier processing policy.

Three independent tables are kept here:
- Single-file job transcoding (video limits and bitrates, audio limits)
- Multi-clip project encoding bitrates
- Queue-worker video processing

The job table and the worker table disagree on limits for the same tier
names. Both are kept as-is; each entry point reads only its own table.
Unknown tiers always fall back to the ``free`` entry.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class UserTier(str, Enum):
    FREE = "free"
    CREATOR = "creator"
    STANDARD = "standard"
    PRO = "pro"
    TEAMS = "teams"


DEFAULT_TIER = UserTier.FREE.value


# =============================================================================
# SINGLE-FILE JOBS
# =============================================================================


class JobVideoSettings(BaseModel):
    max_duration: int = Field(description="Maximum source duration in seconds")
    max_height: int | None = Field(
        default=1080, description="Output height cap; never upscales"
    )
    video_bitrate: str
    audio_bitrate: str = "128k"


JOB_VIDEO_SETTINGS: dict[str, JobVideoSettings] = {
    "free": JobVideoSettings(max_duration=60, max_height=1080, video_bitrate="3000k"),
    "creator": JobVideoSettings(max_duration=180, max_height=1080, video_bitrate="4000k"),
    "pro": JobVideoSettings(max_duration=600, max_height=1080, video_bitrate="5000k"),
    "teams": JobVideoSettings(max_duration=600, max_height=1080, video_bitrate="5000k"),
}

JOB_AUDIO_DURATION_LIMITS: dict[str, int] = {
    "free": 60,
    "creator": 300,
    "pro": 1800,
    "teams": 3600,
}

AUDIO_TRANSCODE_BITRATE = "192k"


def get_job_video_settings(tier: str | None) -> JobVideoSettings:
    return JOB_VIDEO_SETTINGS.get(tier or DEFAULT_TIER, JOB_VIDEO_SETTINGS[DEFAULT_TIER])


def get_audio_duration_limit(tier: str | None) -> int:
    return JOB_AUDIO_DURATION_LIMITS.get(
        tier or DEFAULT_TIER, JOB_AUDIO_DURATION_LIMITS[DEFAULT_TIER]
    )


# =============================================================================
# MULTI-CLIP PROJECTS
# =============================================================================


class ProjectOutputSettings(BaseModel):
    video_bitrate: str
    audio_bitrate: str


PROJECT_OUTPUT_SETTINGS: dict[str, ProjectOutputSettings] = {
    "free": ProjectOutputSettings(video_bitrate="3000k", audio_bitrate="128k"),
    "standard": ProjectOutputSettings(video_bitrate="4000k", audio_bitrate="192k"),
    "pro": ProjectOutputSettings(video_bitrate="5000k", audio_bitrate="256k"),
}

PROJECT_MAX_WIDTH = 1920
PROJECT_MAX_HEIGHT = 1080


def get_project_output_settings(tier: str | None) -> ProjectOutputSettings:
    return PROJECT_OUTPUT_SETTINGS.get(
        tier or DEFAULT_TIER, PROJECT_OUTPUT_SETTINGS[DEFAULT_TIER]
    )


# =============================================================================
# QUEUE WORKER
# =============================================================================


class WorkerVideoSettings(BaseModel):
    max_duration: int
    max_height: int | None = Field(
        default=None, description="Output height; None keeps source resolution"
    )
    video_bitrate: str
    audio_bitrate: str


WORKER_VIDEO_SETTINGS: dict[str, WorkerVideoSettings] = {
    "free": WorkerVideoSettings(
        max_duration=30, max_height=720, video_bitrate="1500k", audio_bitrate="128k"
    ),
    "standard": WorkerVideoSettings(
        max_duration=60, max_height=1080, video_bitrate="4000k", audio_bitrate="192k"
    ),
    "pro": WorkerVideoSettings(
        max_duration=300, max_height=None, video_bitrate="12000k", audio_bitrate="256k"
    ),
}


def get_worker_video_settings(tier: str | None) -> WorkerVideoSettings:
    return WORKER_VIDEO_SETTINGS.get(
        tier or DEFAULT_TIER, WORKER_VIDEO_SETTINGS[DEFAULT_TIER]
    )


# =============================================================================
# IMAGES
# =============================================================================


class ImageTierSettings(BaseModel):
    max_dimension: int | None = Field(
        default=None, description="Fit-inside bound for both axes; None skips resize"
    )
    quality: int = Field(ge=1, le=95)


IMAGE_SETTINGS: dict[str, ImageTierSettings] = {
    "free": ImageTierSettings(max_dimension=1920, quality=70),
    "creator": ImageTierSettings(max_dimension=4096, quality=85),
    "standard": ImageTierSettings(max_dimension=4096, quality=85),
    "pro": ImageTierSettings(max_dimension=None, quality=90),
    "teams": ImageTierSettings(max_dimension=None, quality=90),
}

IMAGE_THUMBNAIL_SIZE = (400, 400)
IMAGE_THUMBNAIL_QUALITY = 80

PANORAMA_ALLOWED_TIERS = frozenset({UserTier.PRO.value})
PANORAMA_MAX_SIZE = (8192, 4096)
PANORAMA_QUALITY = 90
PANORAMA_THUMBNAIL_SIZE = (800, 400)
PANORAMA_THUMBNAIL_QUALITY = 85
PANORAMA_MIN_ASPECT = 1.9
PANORAMA_MAX_ASPECT = 2.1


def get_image_settings(tier: str | None) -> ImageTierSettings:
    return IMAGE_SETTINGS.get(tier or DEFAULT_TIER, IMAGE_SETTINGS[DEFAULT_TIER])
