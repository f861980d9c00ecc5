from __future__ import annotations

import json
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from utils.ffmpeg_tools import get_ffprobe_path
from utils.media_errors import ProbeError
from utils.processing_config import DEFAULT_FFPROBE_TIMEOUT_SECONDS


logger = logging.getLogger(__name__)


@dataclass
class MediaInfo:
    duration: float
    width: int | None = None
    height: int | None = None


def _as_float(value) -> float | None:
    if value in (None, "", "N/A"):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_int(value) -> int | None:
    number = _as_float(value)
    return int(number) if number is not None else None


def parse_probe_output(raw_output: str) -> MediaInfo:
    try:
        data = json.loads(raw_output)
    except (TypeError, ValueError) as exc:
        raise ProbeError("Failed to parse FFprobe output") from exc
    if not isinstance(data, dict):
        raise ProbeError("Failed to parse FFprobe output")

    streams = data.get("streams") or []
    stream = streams[0] if streams and isinstance(streams[0], dict) else {}
    fmt = data.get("format") or {}

    duration = _as_float(stream.get("duration"))
    if duration is None:
        duration = _as_float(fmt.get("duration"))
    if duration is None:
        raise ProbeError("FFprobe output did not include a duration")

    return MediaInfo(
        duration=duration,
        width=_as_int(stream.get("width")),
        height=_as_int(stream.get("height")),
    )


def _run_ffprobe(
    path: str | Path,
    stream_selector: str,
    stream_entries: str,
    timeout_seconds: float,
) -> MediaInfo:
    cmd = [
        get_ffprobe_path(),
        "-v",
        "error",
        "-select_streams",
        stream_selector,
        "-show_entries",
        f"stream={stream_entries}",
        "-show_entries",
        "format=duration",
        "-of",
        "json",
        str(path),
    ]
    try:
        result = subprocess.run(
            cmd, capture_output=True, text=True, timeout=timeout_seconds
        )
    except subprocess.TimeoutExpired as exc:
        raise ProbeError(f"FFprobe timed out after {timeout_seconds:g} seconds") from exc
    except OSError as exc:
        raise ProbeError(f"FFprobe failed: {exc}") from exc

    if result.returncode != 0:
        raise ProbeError(f"FFprobe failed: {result.stderr.strip()}")
    return parse_probe_output(result.stdout)


def probe_video(
    path: str | Path, timeout_seconds: float = DEFAULT_FFPROBE_TIMEOUT_SECONDS
) -> MediaInfo:
    info = _run_ffprobe(path, "v:0", "width,height,duration", timeout_seconds)
    logger.debug(
        "Probed video %s duration=%.2f size=%sx%s",
        path,
        info.duration,
        info.width,
        info.height,
    )
    return info


def probe_audio(
    path: str | Path, timeout_seconds: float = DEFAULT_FFPROBE_TIMEOUT_SECONDS
) -> MediaInfo:
    info = _run_ffprobe(path, "a:0", "duration", timeout_seconds)
    return MediaInfo(duration=info.duration)
