from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from models.media_models import ClipEdit, TextOverlaySpec
from models.tier_models import JobVideoSettings, ProjectOutputSettings
from utils.ffmpeg_builder import (
    THUMBNAIL_WIDTH,
    build_audio_transcode_command,
    build_clip_command,
    build_concat_command,
    build_concat_list,
    build_final_encode_command,
    build_thumbnail_command,
    build_video_transcode_command,
)
from utils.ffmpeg_runner import ProgressCallback, run_ffmpeg
from utils.file_utils import remove_paths
from utils.processing_config import DEFAULT_FFMPEG_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


CONCAT_LIST_NAME = "concat.txt"


def transcode_video(
    input_path: str | Path,
    output_path: str | Path,
    settings: JobVideoSettings,
    on_progress: ProgressCallback | None = None,
    total_duration: float | None = None,
    timeout_seconds: float = DEFAULT_FFMPEG_TIMEOUT_SECONDS,
    preset: str = "fast",
) -> None:
    command = build_video_transcode_command(
        input_path,
        output_path,
        video_bitrate=settings.video_bitrate,
        audio_bitrate=settings.audio_bitrate,
        max_height=settings.max_height,
        preset=preset,
    )
    run_ffmpeg(
        command.to_args(),
        on_progress=on_progress,
        total_duration=total_duration,
        timeout_seconds=timeout_seconds,
    )


def transcode_audio(
    input_path: str | Path,
    output_path: str | Path,
    on_progress: ProgressCallback | None = None,
    total_duration: float | None = None,
    timeout_seconds: float = DEFAULT_FFMPEG_TIMEOUT_SECONDS,
) -> None:
    command = build_audio_transcode_command(input_path, output_path)
    run_ffmpeg(
        command.to_args(),
        on_progress=on_progress,
        total_duration=total_duration,
        timeout_seconds=timeout_seconds,
    )


def generate_thumbnail(
    input_path: str | Path,
    output_path: str | Path,
    width: int = THUMBNAIL_WIDTH,
    height: int | None = None,
    timeout_seconds: float = DEFAULT_FFMPEG_TIMEOUT_SECONDS,
) -> None:
    command = build_thumbnail_command(input_path, output_path, width=width, height=height)
    run_ffmpeg(command.to_args(), timeout_seconds=timeout_seconds)


def process_clip(
    clip: ClipEdit,
    input_path: str | Path,
    output_path: str | Path,
    target_width: int,
    target_height: int,
    timeout_seconds: float = DEFAULT_FFMPEG_TIMEOUT_SECONDS,
) -> None:
    command = build_clip_command(clip, input_path, output_path, target_width, target_height)
    run_ffmpeg(
        command.to_args(),
        total_duration=clip.output_duration,
        timeout_seconds=timeout_seconds,
    )


def concatenate_clips(
    clip_paths: Sequence[str | Path],
    output_path: str | Path,
    work_dir: str | Path,
    timeout_seconds: float = DEFAULT_FFMPEG_TIMEOUT_SECONDS,
) -> None:
    list_path = Path(work_dir) / CONCAT_LIST_NAME
    list_path.write_text(build_concat_list(clip_paths), encoding="utf-8")
    try:
        command = build_concat_command(list_path, output_path)
        run_ffmpeg(command.to_args(), timeout_seconds=timeout_seconds)
    finally:
        remove_paths([list_path])


def apply_overlays(
    input_path: str | Path,
    output_path: str | Path,
    overlays: Sequence[TextOverlaySpec],
    settings: ProjectOutputSettings,
    on_progress: ProgressCallback | None = None,
    total_duration: float | None = None,
    timeout_seconds: float = DEFAULT_FFMPEG_TIMEOUT_SECONDS,
) -> None:
    command = build_final_encode_command(
        input_path,
        output_path,
        overlays,
        video_bitrate=settings.video_bitrate,
        audio_bitrate=settings.audio_bitrate,
    )
    run_ffmpeg(
        command.to_args(),
        on_progress=on_progress,
        total_duration=total_duration,
        timeout_seconds=timeout_seconds,
    )
