import os
import logging
import sys
from pathlib import Path

from rq import Queue, Worker
from rq.job import Job
from rq.worker_pool import WorkerPool

from redis_client import MEDIA_QUEUE_NAME, init_redis, redis_rq
from utils.ffmpeg_tools import check_ffmpeg_available, get_ffmpeg_path


logger = logging.getLogger(__name__)


ROOT_DIR = Path(__file__).resolve().parents[2]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEFAULT_CONCURRENCY = 2


def _attach_file_handler(
    logger_name: str,
    log_file_path: Path,
    level_name: str | None = None,
) -> None:
    logger_level = (level_name or LOG_LEVEL).upper()
    logger_level_value = getattr(logging, logger_level, logging.INFO)
    log_file_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
    file_handler.setLevel(logger_level_value)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )

    target_logger = logging.getLogger(logger_name)
    if not any(
        isinstance(handler, logging.FileHandler)
        and getattr(handler, "baseFilename", None) == str(log_file_path)
        for handler in target_logger.handlers
    ):
        target_logger.addHandler(file_handler)
    target_logger.setLevel(logger_level_value)


def _configure_worker_logging() -> None:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    processing_log = os.getenv(
        "MEDIA_PROCESSING_LOG_FILE", "backend/log/media_processing.log"
    ).strip()
    processing_log_level = os.getenv("MEDIA_PROCESSING_LOG_LEVEL", "INFO").strip()
    if processing_log:
        log_path = Path(processing_log)
        if not log_path.is_absolute():
            log_path = ROOT_DIR / log_path
        for logger_name in (
            "redis_client.worker",
            "redis_client.tasks",
            "operators.media_job_operator",
            "operators.video_project_operator",
            "processors",
            "rq.worker",
        ):
            _attach_file_handler(logger_name, log_path, level_name=processing_log_level)


def _worker_concurrency() -> int:
    raw = os.getenv("MEDIA_WORKER_CONCURRENCY", "").strip()
    try:
        return max(1, int(raw)) if raw else DEFAULT_CONCURRENCY
    except ValueError:
        return DEFAULT_CONCURRENCY


class LoggingWorker(Worker):
    def handle_exception(self, job: Job, *exc_info) -> None:
        self.log.error("Job failed: %s", job.id, exc_info=exc_info)
        super().handle_exception(job, *exc_info)


def _build_pool() -> WorkerPool:
    queues = [Queue(MEDIA_QUEUE_NAME, connection=redis_rq)]
    return WorkerPool(
        queues,
        connection=redis_rq,
        num_workers=_worker_concurrency(),
        worker_class=LoggingWorker,
    )


def main():
    _configure_worker_logging()
    logger.info(
        "media_worker_start python_executable=%s concurrency=%d",
        sys.executable,
        _worker_concurrency(),
    )
    if not check_ffmpeg_available():
        logger.warning("media_worker_ffmpeg_unavailable path=%s", get_ffmpeg_path())

    init_redis()
    pool = _build_pool()
    pool.start(logging_level=LOG_LEVEL)


if __name__ == "__main__":
    main()
