from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence

from models.media_models import ClipEdit, TextOverlaySpec
from models.tier_models import AUDIO_TRANSCODE_BITRATE
from utils.video_filters import (
    format_number,
    generate_drawtext_filter,
    get_ffmpeg_filter,
    get_speed_filters,
)

logger = logging.getLogger(__name__)


THUMBNAIL_SEEK_SECONDS = 1
THUMBNAIL_WIDTH = 640
CLIP_CRF = 23
CLIP_AUDIO_BITRATE = "192k"


@dataclass
class FFmpegCommand:
    inputs: list[str]
    output_file: str
    input_options: list[str] = field(default_factory=list)
    output_options: list[str] = field(default_factory=list)

    def to_args(self) -> list[str]:
        args = list(self.input_options)
        for input_file in self.inputs:
            args.extend(["-i", input_file])
        args.extend(self.output_options)
        args.extend(["-y", self.output_file])
        return args


def _h264_output(preset: str) -> list[str]:
    return ["-c:v", "libx264", "-preset", preset]


def build_video_transcode_command(
    input_path: str | Path,
    output_path: str | Path,
    video_bitrate: str,
    audio_bitrate: str = "128k",
    max_height: int | None = None,
    preset: str = "fast",
) -> FFmpegCommand:
    output_options = _h264_output(preset) + [
        "-b:v",
        video_bitrate,
        "-c:a",
        "aac",
        "-b:a",
        audio_bitrate,
        "-movflags",
        "+faststart",
        "-pix_fmt",
        "yuv420p",
    ]
    if max_height:
        output_options.extend(["-vf", f"scale=-2:'min({max_height},ih)'"])
    return FFmpegCommand(
        inputs=[str(input_path)],
        output_file=str(output_path),
        output_options=output_options,
    )


def build_audio_transcode_command(
    input_path: str | Path, output_path: str | Path
) -> FFmpegCommand:
    return FFmpegCommand(
        inputs=[str(input_path)],
        output_file=str(output_path),
        output_options=["-vn", "-c:a", "aac", "-b:a", AUDIO_TRANSCODE_BITRATE],
    )


def build_thumbnail_command(
    input_path: str | Path,
    output_path: str | Path,
    width: int = THUMBNAIL_WIDTH,
    height: int | None = None,
    seek_seconds: float = THUMBNAIL_SEEK_SECONDS,
) -> FFmpegCommand:
    scale_height = height if height else -2
    return FFmpegCommand(
        inputs=[str(input_path)],
        output_file=str(output_path),
        output_options=[
            "-ss",
            format_number(seek_seconds),
            "-vframes",
            "1",
            "-vf",
            f"scale={width}:{scale_height}",
        ],
    )


def build_clip_video_filter(clip: ClipEdit, target_width: int, target_height: int) -> str:
    filters = [
        f"scale=w='min({target_width},iw)':h='min({target_height},ih)'"
        ":force_original_aspect_ratio=decrease",
        f"pad={target_width}:{target_height}:(ow-iw)/2:(oh-ih)/2",
        "setsar=1",
    ]
    speed = get_speed_filters(clip.speed)
    if speed.video:
        filters.append(speed.video)
    color = get_ffmpeg_filter(clip.filter_preset)
    if color:
        filters.append(color)
    return ",".join(filters)


def build_clip_audio_filter(clip: ClipEdit) -> str:
    filters: list[str] = []
    speed = get_speed_filters(clip.speed)
    if speed.audio:
        filters.append(speed.audio)
    filters.append(f"volume={format_number(clip.volume)}")
    return ",".join(filters)


def build_clip_command(
    clip: ClipEdit,
    input_path: str | Path,
    output_path: str | Path,
    target_width: int,
    target_height: int,
) -> FFmpegCommand:
    output_options = [
        "-ss",
        format_number(clip.trim_start),
        "-t",
        format_number(clip.trimmed_duration),
        "-vf",
        build_clip_video_filter(clip, target_width, target_height),
        "-af",
        build_clip_audio_filter(clip),
        *_h264_output("fast"),
        "-crf",
        str(CLIP_CRF),
        "-c:a",
        "aac",
        "-b:a",
        CLIP_AUDIO_BITRATE,
        "-pix_fmt",
        "yuv420p",
    ]
    return FFmpegCommand(
        inputs=[str(input_path)],
        output_file=str(output_path),
        output_options=output_options,
    )


def _quote_concat_path(path: str | Path) -> str:
    return str(path).replace("'", "'\\''")


def build_concat_list(paths: Iterable[str | Path]) -> str:
    return "\n".join(f"file '{_quote_concat_path(Path(p).resolve())}'" for p in paths)


def build_concat_command(list_path: str | Path, output_path: str | Path) -> FFmpegCommand:
    return FFmpegCommand(
        inputs=[str(list_path)],
        output_file=str(output_path),
        input_options=["-f", "concat", "-safe", "0"],
        output_options=["-c", "copy"],
    )


def build_overlay_filter(overlays: Sequence[TextOverlaySpec]) -> str | None:
    filters = [
        generate_drawtext_filter(
            overlay.text or "",
            x=overlay.position_x,
            y=overlay.position_y,
            font_size=overlay.font_size,
            font_color=overlay.font_color,
            font_family=overlay.font_family,
            start_time=overlay.start_time,
            end_time=overlay.end_time,
            background_color=overlay.background_color,
        )
        for overlay in overlays
        if overlay.renderable
    ]
    if not filters:
        return None
    return ",".join(filters)


def build_final_encode_command(
    input_path: str | Path,
    output_path: str | Path,
    overlays: Sequence[TextOverlaySpec],
    video_bitrate: str,
    audio_bitrate: str,
) -> FFmpegCommand:
    output_options = _h264_output("medium") + [
        "-b:v",
        video_bitrate,
        "-c:a",
        "aac",
        "-b:a",
        audio_bitrate,
        "-movflags",
        "+faststart",
        "-pix_fmt",
        "yuv420p",
    ]
    overlay_filter = build_overlay_filter(overlays)
    if overlay_filter:
        output_options.extend(["-vf", overlay_filter])
    else:
        logger.debug("No renderable text overlays for %s", output_path)
    return FFmpegCommand(
        inputs=[str(input_path)],
        output_file=str(output_path),
        output_options=output_options,
    )
