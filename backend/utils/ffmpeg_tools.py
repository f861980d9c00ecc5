from __future__ import annotations

import logging
import os
import platform
import subprocess


logger = logging.getLogger(__name__)

CAPABILITY_CHECK_TIMEOUT_SECONDS = 10


def _winget_binary(name: str) -> str | None:
    local_app_data = os.getenv("LOCALAPPDATA", "").strip()
    if not local_app_data:
        return None
    return os.path.join(local_app_data, "Microsoft", "WinGet", "Links", f"{name}.exe")


def _resolve_binary(env_var: str, name: str) -> str:
    override = os.getenv(env_var, "").strip()
    if override:
        return override
    if platform.system() == "Windows":
        candidate = _winget_binary(name)
        if candidate:
            return candidate
    return name


def get_ffmpeg_path() -> str:
    return _resolve_binary("FFMPEG_PATH", "ffmpeg")


def get_ffprobe_path() -> str:
    return _resolve_binary("FFPROBE_PATH", "ffprobe")


def check_ffmpeg_available(ffmpeg_path: str | None = None) -> bool:
    binary = ffmpeg_path or get_ffmpeg_path()
    try:
        result = subprocess.run(
            [binary, "-version"],
            capture_output=True,
            text=True,
            timeout=CAPABILITY_CHECK_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("ffmpeg capability check failed for %s: %s", binary, exc)
        return False
    return result.returncode == 0
