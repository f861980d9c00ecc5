import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from database.base import SessionLocal, get_db
from database.models import MediaJob, VideoProject
from dependencies.cron import verify_cron_secret
from dependencies.storage import get_blob_storage, get_processing_config
from models.media_models import CronProcessResponse, MediaJobResponse, TriggerResponse
from operators.media_job_operator import (
    claim_next_job,
    fail_stale_jobs,
    get_media_job,
    process_job_safe,
    trigger_processing,
)
from operators.video_project_operator import trigger_project_processing
from utils.ffmpeg_tools import check_ffmpeg_available
from utils.processing_config import ProcessingConfig
from utils.storage import BlobStorage


router = APIRouter(prefix="/media", tags=["media"])
logger = logging.getLogger(__name__)


def _run_job_in_background(
    job_id: str, storage: BlobStorage, config: ProcessingConfig
) -> None:
    db = SessionLocal()
    try:
        outcome = trigger_processing(db, job_id, storage, config)
        logger.info("Background job %s finished success=%s", job_id, outcome.success)
    finally:
        db.close()


def _run_project_in_background(
    project_id: str, storage: BlobStorage, config: ProcessingConfig
) -> None:
    db = SessionLocal()
    try:
        outcome = trigger_project_processing(db, project_id, storage, config)
        logger.info("Background project %s finished success=%s", project_id, outcome.success)
    finally:
        db.close()


@router.get("/jobs/{job_id}", response_model=MediaJobResponse)
async def get_job_status(job_id: str, db: Session = Depends(get_db)):
    job = get_media_job(db, job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return MediaJobResponse.model_validate(job)


@router.post("/jobs/{job_id}/process", response_model=TriggerResponse, status_code=202)
async def trigger_job(
    job_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_blob_storage),
    config: ProcessingConfig = Depends(get_processing_config),
):
    if db.get(MediaJob, job_id) is None:
        raise HTTPException(status_code=404, detail="Job not found")
    background_tasks.add_task(_run_job_in_background, job_id, storage, config)
    return TriggerResponse(message="Processing started")


@router.post(
    "/projects/{project_id}/process", response_model=TriggerResponse, status_code=202
)
async def trigger_project(
    project_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_blob_storage),
    config: ProcessingConfig = Depends(get_processing_config),
):
    if db.get(VideoProject, project_id) is None:
        raise HTTPException(status_code=404, detail="Project not found")
    background_tasks.add_task(_run_project_in_background, project_id, storage, config)
    return TriggerResponse(message="Processing started")


@router.get(
    "/cron/process-videos",
    response_model=CronProcessResponse,
    dependencies=[Depends(verify_cron_secret)],
)
def process_next_video(
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_blob_storage),
    config: ProcessingConfig = Depends(get_processing_config),
):
    if not check_ffmpeg_available():
        raise HTTPException(status_code=503, detail="FFmpeg not available on server")

    stale = fail_stale_jobs(db, config.stale_job_timeout_seconds)
    job = claim_next_job(db)
    if job is None:
        return CronProcessResponse(processed=False, stale_jobs_failed=stale)

    outcome = process_job_safe(db, job.id, storage, config)
    return CronProcessResponse(
        processed=True,
        job_id=job.id,
        success=outcome.success,
        error=outcome.error,
        stale_jobs_failed=stale,
    )
