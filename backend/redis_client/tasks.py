from __future__ import annotations

import logging
from typing import Any

from rq import Retry, get_current_job
from rq.job import Job

from database.base import SessionLocal
from models.media_models import MediaWorkerPayload, ProcessingOutcome
from operators.media_job_operator import trigger_processing
from operators.video_project_operator import trigger_project_processing
from processors.dispatcher import process_media_payload
from redis_client import media_queue
from utils.media_errors import MediaProcessingError
from utils.processing_config import ProcessingConfig
from utils.storage import BlobStorage

logger = logging.getLogger(__name__)


RETRY_POLICY = Retry(max=3, interval=[10, 30, 60])
JOB_TIMEOUT_SECONDS = 3 * 3600

_storage: BlobStorage | None = None
_config: ProcessingConfig | None = None


def _runtime() -> tuple[BlobStorage, ProcessingConfig]:
    global _storage, _config
    if _storage is None:
        _storage = BlobStorage.from_env()
    if _config is None:
        _config = ProcessingConfig.from_env()
    return _storage, _config


def _skip_retries(exc: MediaProcessingError) -> None:
    job = get_current_job()
    if job is not None and job.retries_left:
        logger.info("Not retrying %s: %s is permanent", job.id, exc.kind)
        job.retries_left = 0


def run_media_payload(payload: dict[str, Any]) -> dict[str, Any]:
    storage, config = _runtime()
    parsed = MediaWorkerPayload.model_validate(payload)
    try:
        result = process_media_payload(parsed, storage, config)
    except Exception as exc:
        logger.error(
            "Media payload failed content_type=%s input=%s: %s",
            parsed.content_type.value,
            parsed.input_key,
            exc,
        )
        if isinstance(exc, MediaProcessingError) and not exc.retryable:
            _skip_retries(exc)
        raise
    logger.info(
        "Media payload completed content_type=%s output=%s",
        parsed.content_type.value,
        parsed.output_key,
    )
    return result.model_dump()


def run_media_job(job_id: str) -> dict[str, Any]:
    storage, config = _runtime()
    db = SessionLocal()
    try:
        outcome: ProcessingOutcome = trigger_processing(db, job_id, storage, config)
    finally:
        db.close()
    return outcome.model_dump()


def run_video_project(project_id: str) -> dict[str, Any]:
    storage, config = _runtime()
    db = SessionLocal()
    try:
        outcome = trigger_project_processing(db, project_id, storage, config)
    finally:
        db.close()
    return outcome.model_dump()


def enqueue_media_payload(payload: MediaWorkerPayload | dict[str, Any]) -> Job:
    if isinstance(payload, MediaWorkerPayload):
        payload = payload.model_dump(by_alias=True, mode="json")
    return media_queue.enqueue(
        run_media_payload,
        payload,
        retry=RETRY_POLICY,
        job_timeout=JOB_TIMEOUT_SECONDS,
    )


def enqueue_media_job(job_id: str) -> Job:
    return media_queue.enqueue(run_media_job, job_id, job_timeout=JOB_TIMEOUT_SECONDS)


def enqueue_video_project(project_id: str) -> Job:
    return media_queue.enqueue(run_video_project, project_id, job_timeout=JOB_TIMEOUT_SECONDS)
