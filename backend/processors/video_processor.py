from __future__ import annotations

import logging
from pathlib import Path

from models.media_models import VideoProcessResult
from models.tier_models import JobVideoSettings, get_worker_video_settings
from utils.file_utils import ensure_dir, file_size, remove_paths, timestamp_ms
from utils.media_errors import DurationExceededError
from utils.media_probe import probe_video
from utils.processing_config import ProcessingConfig
from utils.storage import BlobStorage, replace_extension, thumbnail_key_for
from utils.transcoder import generate_thumbnail, transcode_video

logger = logging.getLogger(__name__)


WORKER_THUMBNAIL_SIZE = (640, 360)


def process_video(
    storage: BlobStorage,
    tier: str,
    input_key: str,
    output_key: str,
    config: ProcessingConfig | None = None,
) -> VideoProcessResult:
    config = config or ProcessingConfig.from_env()
    settings = get_worker_video_settings(tier)

    work_dir = ensure_dir(Path(config.temp_dir) / "worker-video")
    stamp = timestamp_ms()
    suffix = Path(input_key).suffix or ".mp4"
    input_path = work_dir / f"input_{stamp}{suffix}"
    output_path = work_dir / f"output_{stamp}.mp4"
    thumb_path = work_dir / f"thumb_{stamp}.jpg"

    try:
        input_path.write_bytes(storage.download(input_key))

        info = probe_video(input_path, timeout_seconds=config.ffprobe_timeout_seconds)
        if info.duration > settings.max_duration:
            raise DurationExceededError(
                "Video", settings.max_duration, info.duration, tier=tier
            )

        transcode_video(
            input_path,
            output_path,
            JobVideoSettings(
                max_duration=settings.max_duration,
                max_height=settings.max_height,
                video_bitrate=settings.video_bitrate,
                audio_bitrate=settings.audio_bitrate,
            ),
            total_duration=info.duration,
            timeout_seconds=config.ffmpeg_timeout_seconds,
            preset="medium",
        )
        generate_thumbnail(
            input_path,
            thumb_path,
            width=WORKER_THUMBNAIL_SIZE[0],
            height=WORKER_THUMBNAIL_SIZE[1],
            timeout_seconds=config.ffmpeg_timeout_seconds,
        )

        final_key = replace_extension(output_key, ".mp4")
        thumbnail_key = thumbnail_key_for(final_key)
        storage.upload(final_key, output_path.read_bytes(), "video/mp4")
        storage.upload(thumbnail_key, thumb_path.read_bytes(), "image/jpeg")

        size = file_size(output_path)
        logger.info(
            "Processed video %s -> %s tier=%s duration=%.1fs size=%d",
            input_key,
            final_key,
            tier,
            info.duration,
            size,
        )
        return VideoProcessResult(
            width=info.width,
            height=info.height,
            duration=round(info.duration),
            size=size,
            thumbnail_key=thumbnail_key,
        )
    finally:
        remove_paths([input_path, output_path, thumb_path])
