from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass

import dotenv


dotenv.load_dotenv()
logger = logging.getLogger(__name__)

DEFAULT_FFMPEG_TIMEOUT_SECONDS = 7200
MIN_FFMPEG_TIMEOUT_SECONDS = 60
DEFAULT_FFPROBE_TIMEOUT_SECONDS = 60
# stale cutoff never undercuts a single silent ffmpeg call
STALE_JOB_GRACE_SECONDS = 600
DEFAULT_STALE_JOB_TIMEOUT_SECONDS = DEFAULT_FFMPEG_TIMEOUT_SECONDS + STALE_JOB_GRACE_SECONDS


def _env_int(name: str, default: int, minimum: int | None = None) -> int:
    raw = os.getenv(name, "").strip()
    try:
        value = int(raw) if raw else default
    except ValueError:
        value = default
    if minimum is not None:
        value = max(minimum, value)
    return value


@dataclass
class ProcessingConfig:
    temp_dir: str
    ffmpeg_timeout_seconds: int = DEFAULT_FFMPEG_TIMEOUT_SECONDS
    ffprobe_timeout_seconds: int = DEFAULT_FFPROBE_TIMEOUT_SECONDS
    stale_job_timeout_seconds: int = DEFAULT_STALE_JOB_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        floor = self.ffmpeg_timeout_seconds + STALE_JOB_GRACE_SECONDS
        if self.stale_job_timeout_seconds < floor:
            logger.warning(
                "Stale job timeout %ss is shorter than the FFmpeg timeout plus grace; using %ss",
                self.stale_job_timeout_seconds,
                floor,
            )
            self.stale_job_timeout_seconds = floor

    @classmethod
    def from_env(cls) -> ProcessingConfig:
        temp_dir = os.getenv("MEDIA_TEMP_DIR", "").strip() or os.path.join(
            tempfile.gettempdir(), "media-pipeline"
        )
        return cls(
            temp_dir=temp_dir,
            ffmpeg_timeout_seconds=_env_int(
                "FFMPEG_TIMEOUT_SECONDS",
                DEFAULT_FFMPEG_TIMEOUT_SECONDS,
                minimum=MIN_FFMPEG_TIMEOUT_SECONDS,
            ),
            ffprobe_timeout_seconds=_env_int(
                "FFPROBE_TIMEOUT_SECONDS", DEFAULT_FFPROBE_TIMEOUT_SECONDS, minimum=5
            ),
            stale_job_timeout_seconds=_env_int(
                "STALE_JOB_TIMEOUT_SECONDS",
                DEFAULT_STALE_JOB_TIMEOUT_SECONDS,
                minimum=60,
            ),
        )
