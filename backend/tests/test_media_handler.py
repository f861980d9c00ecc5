import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from database.base import get_db
from database.models import MediaJob, VideoProject
from dependencies.storage import get_blob_storage, get_processing_config
from handlers import media_handler
from models.media_models import ProcessingOutcome


CRON_SECRET = "cron-test-secret"


@pytest.fixture
def client(db, storage, config, monkeypatch):
    monkeypatch.setenv("CRON_SECRET", CRON_SECRET)
    monkeypatch.setattr(media_handler, "check_ffmpeg_available", lambda: True)

    app = FastAPI()
    app.include_router(media_handler.router)
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_blob_storage] = lambda: storage
    app.dependency_overrides[get_processing_config] = lambda: config
    return TestClient(app)


@pytest.fixture
def queued_job(db):
    job = MediaJob(media_type="video", raw_file_url="raw/a.mov")
    db.add(job)
    db.commit()
    return job


def _auth() -> dict:
    return {"Authorization": f"Bearer {CRON_SECRET}"}


# ===== JOB STATUS =====


class TestJobStatus:
    def test_returns_job(self, client, queued_job):
        response = client.get(f"/media/jobs/{queued_job.id}")

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == queued_job.id
        assert body["status"] == "queued"
        assert body["progress"] == 0

    def test_missing_job_is_404(self, client):
        response = client.get("/media/jobs/does-not-exist")

        assert response.status_code == 404


# ===== TRIGGERS =====


class TestTriggers:
    def test_job_trigger_schedules_background_work(self, client, queued_job, monkeypatch):
        scheduled = []
        monkeypatch.setattr(
            media_handler,
            "_run_job_in_background",
            lambda job_id, storage, config: scheduled.append(job_id),
        )

        response = client.post(f"/media/jobs/{queued_job.id}/process")

        assert response.status_code == 202
        assert response.json()["ok"] is True
        assert scheduled == [queued_job.id]

    def test_project_trigger_missing_project(self, client):
        response = client.post("/media/projects/nope/process")

        assert response.status_code == 404

    def test_project_trigger_schedules_background_work(self, client, db, monkeypatch):
        project = VideoProject(user_id="user-1")
        db.add(project)
        db.commit()
        scheduled = []
        monkeypatch.setattr(
            media_handler,
            "_run_project_in_background",
            lambda project_id, storage, config: scheduled.append(project_id),
        )

        response = client.post(f"/media/projects/{project.id}/process")

        assert response.status_code == 202
        assert scheduled == [project.id]


# ===== CRON =====


class TestCron:
    def test_requires_bearer_secret(self, client):
        assert client.get("/media/cron/process-videos").status_code == 401
        assert (
            client.get(
                "/media/cron/process-videos", headers={"Authorization": "Bearer wrong"}
            ).status_code
            == 401
        )

    def test_unconfigured_secret_is_503(self, client, monkeypatch):
        monkeypatch.delenv("CRON_SECRET")

        response = client.get("/media/cron/process-videos", headers=_auth())

        assert response.status_code == 503

    def test_ffmpeg_missing_is_503(self, client, monkeypatch):
        monkeypatch.setattr(media_handler, "check_ffmpeg_available", lambda: False)

        response = client.get("/media/cron/process-videos", headers=_auth())

        assert response.status_code == 503

    def test_empty_queue(self, client):
        response = client.get("/media/cron/process-videos", headers=_auth())

        assert response.status_code == 200
        assert response.json()["processed"] is False

    def test_claims_and_processes_oldest_job(self, client, db, queued_job, monkeypatch):
        processed = []

        def fake_process(db, job_id, storage, config):
            processed.append(job_id)
            return ProcessingOutcome(success=True)

        monkeypatch.setattr(media_handler, "process_job_safe", fake_process)

        response = client.get("/media/cron/process-videos", headers=_auth())

        body = response.json()
        assert body["processed"] is True
        assert body["job_id"] == queued_job.id
        assert body["success"] is True
        assert processed == [queued_job.id]
        db.refresh(queued_job)
        assert queued_job.status == "processing"
