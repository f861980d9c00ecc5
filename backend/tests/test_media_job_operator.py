from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest
from sqlalchemy import event

from database.models import MediaJob, Post
from operators import media_job_operator
from operators.media_job_operator import (
    claim_next_job,
    fail_stale_jobs,
    process_job,
    process_job_safe,
    process_job_without_ffmpeg,
    trigger_processing,
)
from utils.media_errors import DurationExceededError
from utils.media_probe import MediaInfo
from utils.processing_config import ProcessingConfig


PUBLIC_BASE_URL = "https://cdn.example.com/media"


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def fake_media(monkeypatch):
    """Replace ffmpeg/ffprobe calls with fakes that write placeholder files."""
    state = SimpleNamespace(
        source=MediaInfo(duration=12.0, width=1920, height=1080),
        output=MediaInfo(duration=12.04, width=1280, height=720),
        audio_source=MediaInfo(duration=30.0),
        audio_output=MediaInfo(duration=30.02),
        transcode_error=None,
        during_transcode=None,
        before_output_probe=None,
        calls=[],
    )

    def fake_probe_video(path, timeout_seconds=None):
        if not Path(path).name.startswith("output_"):
            return state.source
        if state.before_output_probe is not None:
            state.before_output_probe()
        return state.output

    def fake_probe_audio(path, timeout_seconds=None):
        return state.audio_output if Path(path).name.startswith("output_") else state.audio_source

    def fake_transcode(input_path, output_path, *args, on_progress=None, **kwargs):
        state.calls.append(("transcode", Path(input_path).name, args))
        if state.transcode_error is not None:
            raise state.transcode_error
        if state.during_transcode is not None:
            state.during_transcode()
        if on_progress:
            on_progress(50)
            on_progress(100)
        Path(output_path).write_bytes(b"encoded")

    def fake_thumbnail(input_path, output_path, **kwargs):
        state.calls.append(("thumbnail", Path(input_path).name))
        Path(output_path).write_bytes(b"jpeg")

    monkeypatch.setattr(media_job_operator, "probe_video", fake_probe_video)
    monkeypatch.setattr(media_job_operator, "probe_audio", fake_probe_audio)
    monkeypatch.setattr(media_job_operator, "transcode_video", fake_transcode)
    monkeypatch.setattr(media_job_operator, "transcode_audio", fake_transcode)
    monkeypatch.setattr(media_job_operator, "generate_thumbnail", fake_thumbnail)
    return state


@pytest.fixture
def progress_log():
    values: list[int] = []

    def _record(target, value, oldvalue, initiator):
        values.append(value)

    event.listen(MediaJob.progress, "set", _record)
    yield values
    event.remove(MediaJob.progress, "set", _record)


@pytest.fixture
def make_job(db, storage):
    def _make(
        raw_key: str = "raw/abc.mov",
        media_type: str = "video",
        tier: str = "free",
        post: bool = True,
        **fields,
    ) -> MediaJob:
        storage.objects.setdefault(raw_key, b"raw-bytes")
        post_row = None
        if post:
            post_row = Post(content_type=media_type)
            db.add(post_row)
            db.flush()
        job = MediaJob(
            media_type=media_type,
            user_tier=tier,
            raw_file_url=f"{PUBLIC_BASE_URL}/{raw_key}",
            post_id=post_row.id if post_row else None,
            **fields,
        )
        db.add(job)
        db.commit()
        return job

    return _make


# =============================================================================
# VIDEO JOBS
# =============================================================================


class TestProcessVideoJob:
    def test_completes_and_publishes_outputs(self, db, storage, config, fake_media, make_job):
        job = make_job()

        process_job(db, job.id, storage, config)
        db.refresh(job)

        assert job.status == "completed"
        assert job.progress == 100
        assert job.output_url == f"{PUBLIC_BASE_URL}/video/abc.mp4"
        assert job.thumbnail_url == f"{PUBLIC_BASE_URL}/video/abc_thumb.jpg"
        assert job.processed_at is not None
        assert storage.content_types["video/abc.mp4"] == "video/mp4"
        assert storage.content_types["video/abc_thumb.jpg"] == "image/jpeg"

    def test_metadata_comes_from_transcoded_output(self, db, storage, config, fake_media, make_job):
        job = make_job()

        process_job(db, job.id, storage, config)
        db.refresh(job)

        assert job.duration_seconds == pytest.approx(12.04)
        assert (job.width, job.height) == (1280, 720)

    def test_linked_post_receives_metadata(self, db, storage, config, fake_media, make_job):
        job = make_job()

        process_job(db, job.id, storage, config)
        post = db.get(Post, job.post_id)

        assert post.media_duration_seconds == pytest.approx(12.04)
        assert (post.media_width, post.media_height) == (1280, 720)

    def test_progress_is_monotonic(self, db, storage, config, fake_media, make_job, progress_log):
        job = make_job()
        progress_log.clear()

        process_job(db, job.id, storage, config)
        db.refresh(job)

        assert progress_log == sorted(progress_log)
        for checkpoint in (10, 20, 30, 70, 80, 90):
            assert checkpoint in progress_log
        assert 50 in progress_log
        assert job.progress == 100

    def test_thumbnail_taken_from_source(self, db, storage, config, fake_media, make_job):
        job = make_job()

        process_job(db, job.id, storage, config)

        thumbnail_calls = [call for call in fake_media.calls if call[0] == "thumbnail"]
        assert thumbnail_calls[0][1].startswith("input_")

    def test_temp_files_removed(self, db, storage, config, fake_media, make_job, tmp_path, leftover_files):
        job = make_job()

        process_job(db, job.id, storage, config)

        assert leftover_files(tmp_path / "work") == []

    def test_tier_settings_passed_to_encoder(self, db, storage, config, fake_media, make_job):
        job = make_job(tier="creator")

        process_job(db, job.id, storage, config)

        settings = fake_media.calls[0][2][0]
        assert settings.video_bitrate == "4000k"
        assert settings.max_height == 1080


class TestDurationLimits:
    def test_over_limit_fails_without_transcoding(self, db, storage, config, fake_media, make_job, tmp_path, leftover_files):
        """A 61s video on the free tier fails with a message naming the 60s limit."""
        fake_media.source = MediaInfo(duration=61.0, width=1920, height=1080)
        job = make_job()

        outcome = process_job_safe(db, job.id, storage, config)
        db.refresh(job)

        assert outcome.success is False
        assert job.status == "failed"
        assert "60s" in job.error_message
        assert job.error_kind == "duration_exceeded"
        assert fake_media.calls == []
        assert storage.uploads == []
        assert leftover_files(tmp_path / "work") == []

    def test_exactly_at_limit_is_allowed(self, db, storage, config, fake_media, make_job):
        fake_media.source = MediaInfo(duration=60.0, width=1920, height=1080)
        job = make_job()

        process_job(db, job.id, storage, config)
        db.refresh(job)

        assert job.status == "completed"

    def test_higher_tier_allows_longer_video(self, db, storage, config, fake_media, make_job):
        fake_media.source = MediaInfo(duration=150.0, width=1920, height=1080)
        job = make_job(tier="creator")

        process_job(db, job.id, storage, config)
        db.refresh(job)

        assert job.status == "completed"

    def test_unsafe_call_raises(self, db, storage, config, fake_media, make_job):
        fake_media.source = MediaInfo(duration=601.0, width=1920, height=1080)
        job = make_job(tier="pro")

        with pytest.raises(DurationExceededError, match="600s"):
            process_job(db, job.id, storage, config)


# =============================================================================
# AUDIO JOBS
# =============================================================================


class TestProcessAudioJob:
    def test_audio_output_and_post(self, db, storage, config, fake_media, make_job):
        job = make_job(raw_key="raw/audio/song.wav", media_type="audio")

        process_job(db, job.id, storage, config)
        db.refresh(job)
        post = db.get(Post, job.post_id)

        assert job.status == "completed"
        assert job.output_url == f"{PUBLIC_BASE_URL}/audio/song.m4a"
        assert job.thumbnail_url is None
        assert storage.content_types["audio/song.m4a"] == "audio/mp4"
        assert post.media_duration_seconds == pytest.approx(30.02)
        assert post.media_width is None
        assert not any(call[0] == "thumbnail" for call in fake_media.calls)

    def test_audio_limit_per_tier(self, db, storage, config, fake_media, make_job):
        fake_media.audio_source = MediaInfo(duration=301.0)
        job = make_job(raw_key="raw/audio/long.mp3", media_type="audio", tier="creator")

        outcome = process_job_safe(db, job.id, storage, config)

        assert outcome.success is False
        assert "300s" in outcome.error


# =============================================================================
# FAILURES
# =============================================================================


class TestFailureHandling:
    def test_upload_failure_cleans_up(self, db, storage, config, fake_media, make_job, tmp_path, leftover_files):
        job = make_job()
        storage.fail_uploads_for.add("video/abc.mp4")

        outcome = process_job_safe(db, job.id, storage, config)
        db.refresh(job)

        assert outcome.success is False
        assert job.status == "failed"
        assert "Upload rejected" in job.error_message
        assert leftover_files(tmp_path / "work") == []

    def test_empty_exception_message(self, db, storage, config, fake_media, make_job):
        fake_media.transcode_error = RuntimeError()
        job = make_job()

        outcome = process_job_safe(db, job.id, storage, config)
        db.refresh(job)

        assert outcome.error == "Unknown error"
        assert job.error_message == "Unknown error"
        assert job.error_kind == "unexpected"

    def test_missing_job_never_raises(self, db, storage, config):
        outcome = process_job_safe(db, "does-not-exist", storage, config)

        assert outcome.success is False
        assert "not found" in outcome.error

    def test_missing_source_object(self, db, storage, config, fake_media, make_job):
        job = make_job()
        del storage.objects["raw/abc.mov"]

        outcome = process_job_safe(db, job.id, storage, config)
        db.refresh(job)

        assert job.status == "failed"
        assert outcome.success is False

    def test_completed_job_is_not_reprocessed(self, db, storage, config, fake_media, make_job):
        job = make_job(status="completed", progress=100, output_url="https://x/y.mp4")

        outcome = process_job_safe(db, job.id, storage, config)
        db.refresh(job)

        assert outcome.success is True
        assert job.status == "completed"
        assert fake_media.calls == []


# =============================================================================
# TRIGGER AND FALLBACK
# =============================================================================


class TestTriggerProcessing:
    def test_fallback_publishes_raw_file(self, db, storage, config, make_job, monkeypatch, caplog):
        monkeypatch.setattr(media_job_operator, "check_ffmpeg_available", lambda: False)
        job = make_job()

        outcome = trigger_processing(db, job.id, storage, config)
        db.refresh(job)

        assert outcome.success is True
        assert job.status == "completed"
        assert job.progress == 100
        assert job.output_url == job.raw_file_url
        assert job.thumbnail_url is None
        assert job.duration_seconds is None
        assert storage.downloads == []
        assert any(record.levelname == "WARNING" for record in caplog.records)

    def test_runs_pipeline_when_ffmpeg_available(self, db, storage, config, fake_media, make_job, monkeypatch):
        monkeypatch.setattr(media_job_operator, "check_ffmpeg_available", lambda: True)
        job = make_job()

        outcome = trigger_processing(db, job.id, storage, config)
        db.refresh(job)

        assert outcome.success is True
        assert job.output_url.endswith("video/abc.mp4")

    def test_fallback_for_missing_job_never_raises(self, db, storage, config, monkeypatch):
        monkeypatch.setattr(media_job_operator, "check_ffmpeg_available", lambda: False)

        outcome = trigger_processing(db, "missing", storage, config)

        assert outcome.success is False

    def test_direct_fallback_call(self, db, make_job):
        job = make_job()

        process_job_without_ffmpeg(db, job.id)
        db.refresh(job)

        assert job.status == "completed"
        assert job.output_url == job.raw_file_url


# =============================================================================
# CLAIMING AND STALE JOBS
# =============================================================================


class TestJobQueue:
    def test_claims_oldest_queued_job_once(self, db, make_job):
        now = datetime(2026, 1, 1, 12, 0, 0)
        newer = make_job(raw_key="raw/b.mov", created_at=now)
        older = make_job(raw_key="raw/a.mov", created_at=now - timedelta(minutes=5))

        first = claim_next_job(db)
        second = claim_next_job(db)
        third = claim_next_job(db)

        assert first.id == older.id
        assert second.id == newer.id
        assert third is None
        assert first.status == "processing"

    def test_ignores_non_queued_jobs(self, db, make_job):
        make_job(status="failed", error_message="boom")

        assert claim_next_job(db) is None

    def test_stale_processing_jobs_fail(self, db, make_job):
        stale = make_job(
            raw_key="raw/stale.mov",
            status="processing",
            progress=30,
            updated_at=datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(minutes=20),
        )
        fresh = make_job(raw_key="raw/fresh.mov", status="processing", progress=30)

        count = fail_stale_jobs(db, timeout_seconds=600)
        db.refresh(stale)
        db.refresh(fresh)

        assert count == 1
        assert stale.status == "failed"
        assert stale.error_kind == "timeout"
        assert stale.error_message
        assert fresh.status == "processing"

    def test_stale_cutoff_never_shorter_than_encode_timeout(self, tmp_path):
        config = ProcessingConfig(
            temp_dir=str(tmp_path),
            ffmpeg_timeout_seconds=7200,
            stale_job_timeout_seconds=600,
        )

        assert config.stale_job_timeout_seconds > config.ffmpeg_timeout_seconds


# =============================================================================
# STATUS ONLY MOVES FORWARD
# =============================================================================


def _age_and_sweep(db, job_id: str) -> None:
    db.query(MediaJob).filter(MediaJob.id == job_id).update(
        {MediaJob.updated_at: datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(hours=1)},
        synchronize_session=False,
    )
    db.commit()
    assert fail_stale_jobs(db, timeout_seconds=600) == 1


class TestSweptJobsStayFailed:
    def test_swept_during_encode_is_not_completed(self, db, storage, config, fake_media, make_job):
        job = make_job()
        fake_media.during_transcode = lambda: _age_and_sweep(db, job.id)

        outcome = process_job_safe(db, job.id, storage, config)
        db.refresh(job)

        assert job.status == "failed"
        assert job.error_kind == "timeout"
        assert job.error_message == "Processing timed out"
        assert job.output_url is None
        assert outcome.success is False
        assert outcome.error_kind == "state_conflict"
        assert storage.uploads == []

    def test_swept_before_completion_keeps_failure(self, db, storage, config, fake_media, make_job):
        job = make_job()
        fake_media.before_output_probe = lambda: _age_and_sweep(db, job.id)

        outcome = process_job_safe(db, job.id, storage, config)
        db.refresh(job)
        post = db.get(Post, job.post_id)

        assert job.status == "failed"
        assert job.error_kind == "timeout"
        assert job.progress == 90
        assert post.media_duration_seconds is None
        assert outcome.success is False
        assert outcome.error_kind == "state_conflict"
