import json
import subprocess

import pytest

from utils import media_probe
from utils.media_errors import ProbeError
from utils.media_probe import parse_probe_output, probe_audio, probe_video


def _completed(stdout: str = "", stderr: str = "", returncode: int = 0):
    return subprocess.CompletedProcess(
        args=["ffprobe"], returncode=returncode, stdout=stdout, stderr=stderr
    )


class TestParseProbeOutput:
    def test_stream_duration_preferred(self):
        raw = json.dumps(
            {
                "streams": [{"width": 1920, "height": 1080, "duration": "12.5"}],
                "format": {"duration": "13.0"},
            }
        )
        info = parse_probe_output(raw)

        assert info.duration == 12.5
        assert info.width == 1920
        assert info.height == 1080

    def test_falls_back_to_format_duration(self):
        raw = json.dumps(
            {"streams": [{"width": 640, "height": 360}], "format": {"duration": "7.25"}}
        )

        assert parse_probe_output(raw).duration == 7.25

    def test_audio_without_streams_uses_format(self):
        info = parse_probe_output(json.dumps({"streams": [], "format": {"duration": "61"}}))

        assert info.duration == 61.0
        assert info.width is None

    def test_unparsable_output(self):
        with pytest.raises(ProbeError, match="Failed to parse FFprobe output"):
            parse_probe_output("not json")

    def test_missing_duration(self):
        with pytest.raises(ProbeError):
            parse_probe_output(json.dumps({"streams": [{}], "format": {}}))


class TestProbeCommands:
    def test_video_probe_selects_first_video_stream(self, monkeypatch):
        calls = []

        def fake_run(cmd, **kwargs):
            calls.append(cmd)
            return _completed(
                json.dumps({"streams": [{"width": 1280, "height": 720, "duration": "3"}]})
            )

        monkeypatch.setattr(media_probe.subprocess, "run", fake_run)
        info = probe_video("clip.mp4")

        assert info.width == 1280
        assert calls[0][calls[0].index("-select_streams") + 1] == "v:0"
        assert calls[0][-1] == "clip.mp4"
        assert calls[0][calls[0].index("-of") + 1] == "json"

    def test_audio_probe_selects_first_audio_stream(self, monkeypatch):
        calls = []

        def fake_run(cmd, **kwargs):
            calls.append(cmd)
            return _completed(json.dumps({"streams": [{"duration": "42.0"}]}))

        monkeypatch.setattr(media_probe.subprocess, "run", fake_run)
        info = probe_audio("song.mp3")

        assert info.duration == 42.0
        assert info.width is None
        assert calls[0][calls[0].index("-select_streams") + 1] == "a:0"

    def test_nonzero_exit_includes_stderr(self, monkeypatch):
        monkeypatch.setattr(
            media_probe.subprocess,
            "run",
            lambda cmd, **kwargs: _completed(stderr="moov atom not found", returncode=1),
        )

        with pytest.raises(ProbeError, match="FFprobe failed: moov atom not found"):
            probe_video("broken.mp4")

    def test_missing_binary(self, monkeypatch):
        monkeypatch.setenv("FFPROBE_PATH", "/nonexistent/bin/ffprobe")

        with pytest.raises(ProbeError):
            probe_video("clip.mp4")

    def test_timeout(self, monkeypatch):
        def fake_run(cmd, **kwargs):
            raise subprocess.TimeoutExpired(cmd, kwargs.get("timeout"))

        monkeypatch.setattr(media_probe.subprocess, "run", fake_run)

        with pytest.raises(ProbeError, match="timed out"):
            probe_video("clip.mp4", timeout_seconds=1)
