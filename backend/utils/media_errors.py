from __future__ import annotations

import re


FATAL_INPUT_PATTERNS = (
    re.compile(r"Invalid data found when processing input", re.IGNORECASE),
    re.compile(r"moov atom not found", re.IGNORECASE),
    re.compile(r"No such file or directory", re.IGNORECASE),
    re.compile(r"does not contain any stream", re.IGNORECASE),
)


class MediaProcessingError(Exception):
    kind = "processing_error"
    retryable = False


class ProbeError(MediaProcessingError):
    kind = "probe_error"


class TranscodeError(MediaProcessingError):
    kind = "transcode_error"

    def __init__(self, message: str, output_tail: str = ""):
        self.output_tail = output_tail
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        text = f"{self}\n{self.output_tail}"
        return not any(pattern.search(text) for pattern in FATAL_INPUT_PATTERNS)


class TranscodeTimeoutError(TranscodeError, TimeoutError):
    kind = "timeout"

    def __init__(self, timeout_seconds: float, output_tail: str = ""):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"FFmpeg timed out after {timeout_seconds:g} seconds", output_tail
        )

    @property
    def retryable(self) -> bool:
        return True


class DurationExceededError(MediaProcessingError):
    kind = "duration_exceeded"

    def __init__(
        self,
        media_label: str,
        limit_seconds: int,
        duration_seconds: float,
        tier: str | None = None,
    ):
        self.limit_seconds = limit_seconds
        self.duration_seconds = duration_seconds
        self.tier = tier
        message = f"{media_label} exceeds {limit_seconds}s limit"
        if tier:
            message += f" for {tier} tier"
        super().__init__(message)


class TierRestrictionError(MediaProcessingError):
    kind = "tier_restricted"


class ClipValidationError(MediaProcessingError):
    kind = "invalid_clip"


class FFmpegUnavailableError(MediaProcessingError):
    kind = "ffmpeg_unavailable"


class JobStateConflictError(MediaProcessingError):
    kind = "state_conflict"

    def __init__(self, record_label: str, record_id: str, status: str):
        self.record_id = record_id
        self.status = status
        super().__init__(f"{record_label} {record_id} is already {status}")


class MediaJobNotFoundError(MediaProcessingError):
    kind = "not_found"

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class VideoProjectNotFoundError(MediaProcessingError):
    kind = "not_found"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__("Project not found")


def error_kind_for(exc: BaseException) -> str:
    if isinstance(exc, MediaProcessingError):
        return exc.kind
    return "unexpected"


def error_message_for(exc: BaseException) -> str:
    message = str(exc).strip()
    return message or "Unknown error"
