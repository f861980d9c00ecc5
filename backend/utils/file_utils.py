from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Iterable


logger = logging.getLogger(__name__)


def timestamp_ms() -> int:
    return int(time.time() * 1000)


def ensure_dir(path: str | Path) -> Path:
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def file_size(path: str | Path) -> int:
    return os.path.getsize(path)


def remove_paths(paths: Iterable[str | Path | None]) -> None:
    """Best-effort delete of temp files; failures are logged and ignored."""
    for path in paths:
        if not path:
            continue
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to remove temp file %s: %s", path, exc)


def remove_dir(path: str | Path) -> None:
    try:
        Path(path).rmdir()
    except FileNotFoundError:
        return
    except OSError as exc:
        logger.warning("Failed to remove temp dir %s: %s", path, exc)
