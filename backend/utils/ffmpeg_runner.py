from __future__ import annotations

import logging
import re
import subprocess
import threading
from typing import Callable, Sequence

from utils.ffmpeg_tools import get_ffmpeg_path
from utils.media_errors import TranscodeError, TranscodeTimeoutError
from utils.processing_config import DEFAULT_FFMPEG_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


ProgressCallback = Callable[[int], None]

OUTPUT_TAIL_LINES = 200
ERROR_TAIL_CHARS = 500
COARSE_PROGRESS = 50

_DURATION_RE = re.compile(r"Duration: (\d+):(\d+):(\d+(?:\.\d+)?)")


def _parse_duration_line(line: str) -> float | None:
    match = _DURATION_RE.search(line)
    if not match:
        return None
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def _tail_text(lines: list[str]) -> str:
    return "\n".join(lines)[-ERROR_TAIL_CHARS:]


def run_ffmpeg(
    args: Sequence[str],
    on_progress: ProgressCallback | None = None,
    total_duration: float | None = None,
    timeout_seconds: float = DEFAULT_FFMPEG_TIMEOUT_SECONDS,
    ffmpeg_path: str | None = None,
) -> None:
    """Run ffmpeg with ``args``; the last argument must be the output path.

    ``on_progress`` receives a percentage (0-100) of this invocation. With a
    known duration it tracks ``out_time_ms``; otherwise it fires once at the
    midpoint when encoding starts.
    """
    if not args:
        raise TranscodeError("No FFmpeg arguments given")

    cmd = [ffmpeg_path or get_ffmpeg_path(), *args[:-1], "-progress", "pipe:1", args[-1]]
    logger.debug("Executing FFmpeg: %s", " ".join(cmd))

    try:
        process = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            encoding="utf-8",
            errors="replace",
            bufsize=1,
        )
    except OSError as exc:
        raise TranscodeError(f"Failed to execute FFmpeg: {exc}") from exc

    duration = total_duration if total_duration and total_duration > 0 else None
    last_progress = -1
    output_tail: list[str] = []
    timed_out = False

    def _kill_process_on_timeout() -> None:
        nonlocal timed_out
        timed_out = True
        process.kill()

    timer = threading.Timer(timeout_seconds, _kill_process_on_timeout)
    timer.daemon = True
    timer.start()

    try:
        if process.stdout is not None:
            for raw_line in process.stdout:
                line = raw_line.strip()
                if not line:
                    continue
                output_tail.append(line)
                if len(output_tail) > OUTPUT_TAIL_LINES:
                    output_tail = output_tail[-OUTPUT_TAIL_LINES:]

                if duration is None and line.startswith("Duration:"):
                    duration = _parse_duration_line(line)

                if on_progress is None or not line.startswith("out_time_ms="):
                    continue
                if duration is None:
                    if last_progress < COARSE_PROGRESS:
                        on_progress(COARSE_PROGRESS)
                        last_progress = COARSE_PROGRESS
                    continue
                try:
                    time_sec = int(line.split("=", 1)[1]) / 1_000_000
                except ValueError:
                    continue
                pct = max(0, min(100, int(time_sec / duration * 100)))
                if pct > last_progress:
                    on_progress(pct)
                    last_progress = pct
        process.wait()
    finally:
        timer.cancel()
        if process.poll() is None:
            process.kill()
            process.wait()
        if process.stdout is not None:
            process.stdout.close()

    if timed_out:
        raise TranscodeTimeoutError(timeout_seconds, _tail_text(output_tail))

    if process.returncode != 0:
        tail = _tail_text(output_tail)
        raise TranscodeError(
            f"FFmpeg failed (code {process.returncode}): {tail}", tail
        )
    if output_tail:
        logger.debug("FFmpeg output (tail): %s", "\n".join(output_tail[-20:]))
