from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Sequence

from pydantic import ValidationError
from sqlalchemy.orm import Session as DBSession

from database.models import VideoClip, VideoProject
from models.media_models import (
    TERMINAL_STATUSES,
    ClipEdit,
    MediaJobStatus,
    ProcessingOutcome,
    TextOverlaySpec,
)
from models.tier_models import (
    PROJECT_MAX_HEIGHT,
    PROJECT_MAX_WIDTH,
    get_project_output_settings,
)
from utils.ffmpeg_tools import check_ffmpeg_available
from utils.file_utils import ensure_dir, remove_dir, remove_paths, timestamp_ms
from utils.media_errors import (
    ClipValidationError,
    FFmpegUnavailableError,
    VideoProjectNotFoundError,
    error_kind_for,
    error_message_for,
)
from utils.media_probe import MediaInfo, probe_video
from utils.processing_config import ProcessingConfig
from utils.storage import BlobStorage, project_output_keys
from utils.transcoder import (
    apply_overlays,
    concatenate_clips,
    generate_thumbnail,
    process_clip,
)

logger = logging.getLogger(__name__)


FFMPEG_UNAVAILABLE_ERROR = "FFmpeg not available on server"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def compute_project_duration(clips: Sequence[ClipEdit]) -> float:
    """Sum of each clip's trimmed length divided by its playback speed."""
    return sum(clip.output_duration for clip in clips)


def _clip_edit(clip: VideoClip) -> ClipEdit:
    try:
        edit = ClipEdit.model_validate(clip)
    except ValidationError as exc:
        detail = exc.errors()[0].get("msg", "invalid value") if exc.errors() else str(exc)
        raise ClipValidationError(f"Invalid clip {clip.id}: {detail}") from exc
    if edit.trim_start >= edit.effective_end:
        raise ClipValidationError(
            f"Invalid clip {clip.id}: trim start must be before trim end"
        )
    return edit


def _target_canvas(first_info: MediaInfo, first_clip: VideoClip) -> tuple[int, int]:
    """Probed size of the first clip, capped at 1080p; stored size only as a fallback."""
    width = first_info.width or first_clip.source_width or PROJECT_MAX_WIDTH
    height = first_info.height or first_clip.source_height or PROJECT_MAX_HEIGHT
    width = min(width, PROJECT_MAX_WIDTH)
    height = min(height, PROJECT_MAX_HEIGHT)
    # libx264 with yuv420p needs even dimensions
    return width - width % 2, height - height % 2


def _update_project(
    db: DBSession, project: VideoProject, progress: int | None = None, **fields
) -> None:
    if progress is not None and progress > (project.processing_progress or 0):
        project.processing_progress = progress
    for name, value in fields.items():
        setattr(project, name, value)
    project.updated_at = _utcnow()
    db.commit()


def _progress_band(
    db: DBSession, project: VideoProject, start: int, end: int
) -> Callable[[int], None]:
    def _report(percent: int) -> None:
        value = start + (end - start) * max(0, min(100, percent)) // 100
        if value > (project.processing_progress or 0):
            _update_project(db, project, value)

    return _report


def _mark_failed(db: DBSession, project_id: str, exc: BaseException) -> str:
    message = error_message_for(exc)
    db.rollback()
    project = db.get(VideoProject, project_id)
    if project is None:
        logger.error("Cannot record failure for missing project %s: %s", project_id, message)
        return message
    if project.status in TERMINAL_STATUSES:
        logger.warning(
            "Project %s already %s; not recording failure: %s",
            project_id,
            project.status,
            message,
        )
        return message
    _update_project(
        db,
        project,
        status=MediaJobStatus.FAILED.value,
        processing_error=message,
        error_kind=error_kind_for(exc),
    )
    return message


def process_project(
    db: DBSession,
    project_id: str,
    storage: BlobStorage,
    config: ProcessingConfig | None = None,
) -> VideoProject:
    config = config or ProcessingConfig.from_env()
    project = db.get(VideoProject, project_id)
    if project is None:
        raise VideoProjectNotFoundError(project_id)
    if project.status in TERMINAL_STATUSES:
        logger.warning("Project %s is already %s; skipping", project_id, project.status)
        return project

    clips = sorted(project.clips, key=lambda clip: clip.sort_order)
    if not clips:
        raise ClipValidationError("Project has no clips")
    edits = [_clip_edit(clip) for clip in clips]

    _update_project(db, project, 5, status=MediaJobStatus.PROCESSING.value)
    settings = get_project_output_settings(project.user_tier)
    timeout = config.ffmpeg_timeout_seconds
    clip_count = len(clips)
    logger.info(
        "Processing project %s: %d clip(s), %d overlay(s), tier=%s",
        project.id,
        clip_count,
        len(project.overlays),
        project.user_tier,
    )

    work_dir = ensure_dir(Path(config.temp_dir) / f"editor-{project.id}")
    temp_files: list[Path] = []
    try:
        source_paths: list[Path] = []
        for index, clip in enumerate(clips):
            source_path = work_dir / f"source_{index}.mp4"
            temp_files.append(source_path)
            source_path.write_bytes(storage.download(storage.key_from_url(clip.source_url)))
            source_paths.append(source_path)
            _update_project(db, project, 5 + 15 * (index + 1) // clip_count)
        _update_project(db, project, 25)

        first_info = probe_video(
            source_paths[0], timeout_seconds=config.ffprobe_timeout_seconds
        )
        target_width, target_height = _target_canvas(first_info, clips[0])
        logger.debug(
            "Project %s canvas %dx%d from first clip %sx%s",
            project.id,
            target_width,
            target_height,
            first_info.width,
            first_info.height,
        )
        processed_paths: list[Path] = []
        for index, (edit, source_path) in enumerate(zip(edits, source_paths)):
            processed_path = work_dir / f"processed_{index}.mp4"
            temp_files.append(processed_path)
            process_clip(
                edit,
                source_path,
                processed_path,
                target_width,
                target_height,
                timeout_seconds=timeout,
            )
            processed_paths.append(processed_path)
            _update_project(db, project, 25 + 35 * (index + 1) // clip_count)
        _update_project(db, project, 65)

        if len(processed_paths) == 1:
            concatenated_path = processed_paths[0]
        else:
            concatenated_path = work_dir / "concatenated.mp4"
            temp_files.append(concatenated_path)
            concatenate_clips(processed_paths, concatenated_path, work_dir, timeout_seconds=timeout)
        _update_project(db, project, 75)

        total_duration = compute_project_duration(edits)
        overlays = [TextOverlaySpec.model_validate(overlay) for overlay in project.overlays]
        final_path = work_dir / "final.mp4"
        temp_files.append(final_path)
        apply_overlays(
            concatenated_path,
            final_path,
            overlays,
            settings,
            on_progress=_progress_band(db, project, 75, 90),
            total_duration=total_duration,
            timeout_seconds=timeout,
        )
        _update_project(db, project, 90)

        thumbnail_path = work_dir / "thumbnail.jpg"
        temp_files.append(thumbnail_path)
        generate_thumbnail(final_path, thumbnail_path, timeout_seconds=timeout)
        _update_project(db, project, 92)

        video_key, thumbnail_key = project_output_keys(
            project.user_id, project.id, timestamp_ms()
        )
        storage.upload(video_key, final_path.read_bytes(), "video/mp4")
        storage.upload(thumbnail_key, thumbnail_path.read_bytes(), "image/jpeg")
        _update_project(db, project, 98)

        final_info = probe_video(final_path, timeout_seconds=config.ffprobe_timeout_seconds)
        _update_project(
            db,
            project,
            100,
            status=MediaJobStatus.COMPLETED.value,
            output_url=storage.public_url(video_key),
            thumbnail_url=storage.public_url(thumbnail_key),
            current_duration_seconds=final_info.duration,
            processing_error=None,
            error_kind=None,
            processed_at=_utcnow(),
        )
        logger.info(
            "Project %s completed: %s (%.1fs, planned %.1fs)",
            project.id,
            video_key,
            final_info.duration,
            total_duration,
        )
        return project
    finally:
        remove_paths(temp_files)
        remove_dir(work_dir)


def process_project_safe(
    db: DBSession,
    project_id: str,
    storage: BlobStorage,
    config: ProcessingConfig | None = None,
) -> ProcessingOutcome:
    try:
        project = process_project(db, project_id, storage, config)
    except Exception as exc:
        logger.error("Project %s failed: %s", project_id, exc, exc_info=True)
        try:
            message = _mark_failed(db, project_id, exc)
        except Exception:
            logger.exception("Could not record failure for project %s", project_id)
            message = error_message_for(exc)
        return ProcessingOutcome(success=False, error=message, error_kind=error_kind_for(exc))

    if project.status == MediaJobStatus.FAILED.value:
        return ProcessingOutcome(
            success=False, error=project.processing_error, error_kind=project.error_kind
        )
    return ProcessingOutcome(success=True)


def trigger_project_processing(
    db: DBSession,
    project_id: str,
    storage: BlobStorage,
    config: ProcessingConfig | None = None,
) -> ProcessingOutcome:
    if not check_ffmpeg_available():
        logger.warning("FFmpeg not available; failing project %s", project_id)
        exc = FFmpegUnavailableError(FFMPEG_UNAVAILABLE_ERROR)
        try:
            message = _mark_failed(db, project_id, exc)
        except Exception:
            logger.exception("Could not record failure for project %s", project_id)
            message = FFMPEG_UNAVAILABLE_ERROR
        return ProcessingOutcome(success=False, error=message, error_kind=exc.kind)
    return process_project_safe(db, project_id, storage, config)
