from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

from sqlalchemy.orm import Session as DBSession

from database.models import MediaJob, Post
from models.media_models import (
    TERMINAL_STATUSES,
    MediaJobStatus,
    MediaKind,
    ProcessingOutcome,
)
from models.tier_models import get_audio_duration_limit, get_job_video_settings
from utils.ffmpeg_tools import check_ffmpeg_available
from utils.file_utils import ensure_dir, remove_paths, timestamp_ms
from utils.media_errors import (
    DurationExceededError,
    JobStateConflictError,
    MediaJobNotFoundError,
    error_kind_for,
    error_message_for,
)
from utils.media_probe import probe_audio, probe_video
from utils.processing_config import ProcessingConfig
from utils.storage import (
    BlobStorage,
    audio_output_key,
    thumbnail_key_for,
    video_output_key,
)
from utils.transcoder import generate_thumbnail, transcode_audio, transcode_video

logger = logging.getLogger(__name__)


STALE_JOB_ERROR = "Processing timed out"
CLAIM_ATTEMPTS = 3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_media_job(db: DBSession, job_id: str) -> MediaJob | None:
    return db.get(MediaJob, job_id)


def _locked_status(db: DBSession, job_id: str) -> str | None:
    # row lock is held until the next commit, so the stale sweep cannot interleave
    return (
        db.query(MediaJob.status)
        .filter(MediaJob.id == job_id)
        .with_for_update()
        .scalar()
    )


def _update_job(db: DBSession, job: MediaJob, progress: int | None = None, **fields) -> None:
    status = _locked_status(db, job.id)
    if status in TERMINAL_STATUSES:
        db.rollback()
        raise JobStateConflictError("Job", job.id, status)
    if progress is not None and progress > (job.progress or 0):
        job.progress = progress
    for name, value in fields.items():
        setattr(job, name, value)
    job.updated_at = _utcnow()
    db.commit()


def _progress_band(
    db: DBSession, job: MediaJob, start: int, end: int
) -> Callable[[int], None]:
    def _report(percent: int) -> None:
        value = start + (end - start) * max(0, min(100, percent)) // 100
        if value > (job.progress or 0):
            _update_job(db, job, value)

    return _report


def _mark_failed(db: DBSession, job_id: str, exc: BaseException) -> str:
    message = error_message_for(exc)
    db.rollback()
    job = get_media_job(db, job_id)
    if job is None:
        logger.error("Cannot record failure for missing job %s: %s", job_id, message)
        return message
    if job.status in TERMINAL_STATUSES:
        logger.warning(
            "Job %s already %s; not recording failure: %s", job_id, job.status, message
        )
        return message
    _update_job(
        db,
        job,
        status=MediaJobStatus.FAILED.value,
        error_message=message,
        error_kind=error_kind_for(exc),
    )
    return message


def _work_paths(
    config: ProcessingConfig, job: MediaJob, raw_key: str, output_suffix: str
) -> tuple[Path, Path, Path]:
    work_dir = ensure_dir(Path(config.temp_dir) / job.media_type)
    stamp = timestamp_ms()
    input_suffix = Path(raw_key).suffix or ".bin"
    return (
        work_dir / f"input_{job.id}_{stamp}{input_suffix}",
        work_dir / f"output_{job.id}_{stamp}{output_suffix}",
        work_dir / f"thumb_{job.id}_{stamp}.jpg",
    )


def _complete_job(db: DBSession, job: MediaJob, **fields) -> None:
    """Move a processing job to completed; a job failed meanwhile stays failed."""
    now = _utcnow()
    completed = (
        db.query(MediaJob)
        .filter(
            MediaJob.id == job.id,
            MediaJob.status == MediaJobStatus.PROCESSING.value,
        )
        .update(
            {
                MediaJob.status: MediaJobStatus.COMPLETED.value,
                MediaJob.progress: 100,
                MediaJob.processed_at: now,
                MediaJob.updated_at: now,
                **{getattr(MediaJob, name): value for name, value in fields.items()},
            },
            synchronize_session=False,
        )
    )
    if completed != 1:
        status = db.query(MediaJob.status).filter(MediaJob.id == job.id).scalar()
        db.rollback()
        raise JobStateConflictError("Job", job.id, status or "missing")

    if job.post_id:
        post = db.get(Post, job.post_id)
        if post is not None:
            post.media_duration_seconds = fields.get("duration_seconds")
            if job.media_type == MediaKind.VIDEO.value:
                post.media_width = fields.get("width")
                post.media_height = fields.get("height")
        else:
            logger.warning("Job %s references missing post %s", job.id, job.post_id)

    db.commit()


def _process_video_job(
    db: DBSession, job: MediaJob, storage: BlobStorage, config: ProcessingConfig
) -> None:
    raw_key = storage.key_from_url(job.raw_file_url)
    input_path, output_path, thumb_path = _work_paths(config, job, raw_key, ".mp4")

    try:
        input_path.write_bytes(storage.download(raw_key))
        _update_job(db, job, 20)

        info = probe_video(input_path, timeout_seconds=config.ffprobe_timeout_seconds)
        settings = get_job_video_settings(job.user_tier)
        if info.duration > settings.max_duration:
            raise DurationExceededError(
                "Video", settings.max_duration, info.duration, tier=job.user_tier
            )
        _update_job(db, job, 30)

        transcode_video(
            input_path,
            output_path,
            settings,
            on_progress=_progress_band(db, job, 30, 70),
            total_duration=info.duration,
            timeout_seconds=config.ffmpeg_timeout_seconds,
        )
        _update_job(db, job, 70)

        generate_thumbnail(
            input_path, thumb_path, timeout_seconds=config.ffmpeg_timeout_seconds
        )
        _update_job(db, job, 80)

        output_key = video_output_key(raw_key)
        thumbnail_key = thumbnail_key_for(output_key)
        storage.upload(output_key, output_path.read_bytes(), "video/mp4")
        storage.upload(thumbnail_key, thumb_path.read_bytes(), "image/jpeg")
        _update_job(db, job, 90)

        output_info = probe_video(
            output_path, timeout_seconds=config.ffprobe_timeout_seconds
        )
        _complete_job(
            db,
            job,
            output_url=storage.public_url(output_key),
            thumbnail_url=storage.public_url(thumbnail_key),
            duration_seconds=output_info.duration,
            width=output_info.width,
            height=output_info.height,
        )
        logger.info(
            "Video job %s completed: %s (%.1fs %sx%s)",
            job.id,
            output_key,
            output_info.duration,
            output_info.width,
            output_info.height,
        )
    finally:
        remove_paths([input_path, output_path, thumb_path])


def _process_audio_job(
    db: DBSession, job: MediaJob, storage: BlobStorage, config: ProcessingConfig
) -> None:
    raw_key = storage.key_from_url(job.raw_file_url)
    input_path, output_path, _ = _work_paths(config, job, raw_key, ".m4a")

    try:
        input_path.write_bytes(storage.download(raw_key))
        _update_job(db, job, 20)

        info = probe_audio(input_path, timeout_seconds=config.ffprobe_timeout_seconds)
        limit = get_audio_duration_limit(job.user_tier)
        if info.duration > limit:
            raise DurationExceededError("Audio", limit, info.duration, tier=job.user_tier)
        _update_job(db, job, 30)

        transcode_audio(
            input_path,
            output_path,
            on_progress=_progress_band(db, job, 30, 70),
            total_duration=info.duration,
            timeout_seconds=config.ffmpeg_timeout_seconds,
        )
        _update_job(db, job, 70)

        output_key = audio_output_key(raw_key)
        storage.upload(output_key, output_path.read_bytes(), "audio/mp4")
        _update_job(db, job, 90)

        output_info = probe_audio(
            output_path, timeout_seconds=config.ffprobe_timeout_seconds
        )
        _complete_job(
            db,
            job,
            output_url=storage.public_url(output_key),
            duration_seconds=output_info.duration,
        )
        logger.info("Audio job %s completed: %s (%.1fs)", job.id, output_key, output_info.duration)
    finally:
        remove_paths([input_path, output_path])


def process_job(
    db: DBSession,
    job_id: str,
    storage: BlobStorage,
    config: ProcessingConfig | None = None,
) -> MediaJob:
    config = config or ProcessingConfig.from_env()
    job = get_media_job(db, job_id)
    if job is None:
        raise MediaJobNotFoundError(job_id)
    if job.status in TERMINAL_STATUSES:
        logger.warning("Job %s is already %s; skipping", job_id, job.status)
        return job

    _update_job(db, job, 10, status=MediaJobStatus.PROCESSING.value)
    logger.info(
        "Processing %s job %s tier=%s source=%s",
        job.media_type,
        job.id,
        job.user_tier,
        job.raw_file_url,
    )

    if job.media_type == MediaKind.AUDIO.value:
        _process_audio_job(db, job, storage, config)
    else:
        _process_video_job(db, job, storage, config)
    return job


def process_job_safe(
    db: DBSession,
    job_id: str,
    storage: BlobStorage,
    config: ProcessingConfig | None = None,
) -> ProcessingOutcome:
    try:
        job = process_job(db, job_id, storage, config)
    except Exception as exc:
        logger.error("Job %s failed: %s", job_id, exc, exc_info=True)
        try:
            message = _mark_failed(db, job_id, exc)
        except Exception:
            logger.exception("Could not record failure for job %s", job_id)
            message = error_message_for(exc)
        return ProcessingOutcome(success=False, error=message, error_kind=error_kind_for(exc))

    if job.status == MediaJobStatus.FAILED.value:
        return ProcessingOutcome(
            success=False, error=job.error_message, error_kind=job.error_kind
        )
    return ProcessingOutcome(success=True)


def process_job_without_ffmpeg(db: DBSession, job_id: str) -> MediaJob:
    job = get_media_job(db, job_id)
    if job is None:
        raise MediaJobNotFoundError(job_id)
    if job.status in TERMINAL_STATUSES:
        return job

    _update_job(db, job, 50, status=MediaJobStatus.PROCESSING.value)
    _update_job(
        db,
        job,
        100,
        status=MediaJobStatus.COMPLETED.value,
        output_url=job.raw_file_url,
        processed_at=_utcnow(),
    )
    return job


def trigger_processing(
    db: DBSession,
    job_id: str,
    storage: BlobStorage,
    config: ProcessingConfig | None = None,
) -> ProcessingOutcome:
    """Entry point for upstream callers; never raises."""
    if check_ffmpeg_available():
        return process_job_safe(db, job_id, storage, config)

    logger.warning(
        "FFmpeg not available; completing job %s without transcoding", job_id
    )
    try:
        process_job_without_ffmpeg(db, job_id)
    except Exception as exc:
        logger.error("Fallback for job %s failed: %s", job_id, exc, exc_info=True)
        try:
            message = _mark_failed(db, job_id, exc)
        except Exception:
            logger.exception("Could not record failure for job %s", job_id)
            message = error_message_for(exc)
        return ProcessingOutcome(success=False, error=message, error_kind=error_kind_for(exc))
    return ProcessingOutcome(success=True)


def claim_next_job(db: DBSession) -> MediaJob | None:
    """Move the oldest queued job to processing, guarding against double claims."""
    for _ in range(CLAIM_ATTEMPTS):
        candidate = (
            db.query(MediaJob)
            .filter(MediaJob.status == MediaJobStatus.QUEUED.value)
            .order_by(MediaJob.created_at, MediaJob.id)
            .first()
        )
        if candidate is None:
            return None

        claimed = (
            db.query(MediaJob)
            .filter(
                MediaJob.id == candidate.id,
                MediaJob.status == MediaJobStatus.QUEUED.value,
            )
            .update(
                {
                    MediaJob.status: MediaJobStatus.PROCESSING.value,
                    MediaJob.updated_at: _utcnow(),
                },
                synchronize_session=False,
            )
        )
        db.commit()
        if claimed == 1:
            db.refresh(candidate)
            return candidate
        logger.debug("Job %s was claimed by another dispatcher", candidate.id)
    return None


def fail_stale_jobs(db: DBSession, timeout_seconds: int) -> int:
    cutoff = _utcnow() - timedelta(seconds=timeout_seconds)
    count = (
        db.query(MediaJob)
        .filter(
            MediaJob.status == MediaJobStatus.PROCESSING.value,
            MediaJob.updated_at < cutoff,
        )
        .update(
            {
                MediaJob.status: MediaJobStatus.FAILED.value,
                MediaJob.error_message: STALE_JOB_ERROR,
                MediaJob.error_kind: "timeout",
                MediaJob.updated_at: _utcnow(),
            },
            synchronize_session=False,
        )
    )
    db.commit()
    if count:
        logger.warning("Marked %d stale processing job(s) as failed", count)
    return count
