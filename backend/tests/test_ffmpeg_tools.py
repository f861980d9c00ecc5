import sys

from utils import ffmpeg_tools
from utils.ffmpeg_tools import check_ffmpeg_available, get_ffmpeg_path, get_ffprobe_path


class TestToolLocator:
    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("FFMPEG_PATH", "/opt/ffmpeg/bin/ffmpeg")
        monkeypatch.setenv("FFPROBE_PATH", "/opt/ffmpeg/bin/ffprobe")

        assert get_ffmpeg_path() == "/opt/ffmpeg/bin/ffmpeg"
        assert get_ffprobe_path() == "/opt/ffmpeg/bin/ffprobe"

    def test_bare_name_fallback(self, monkeypatch):
        monkeypatch.delenv("FFMPEG_PATH", raising=False)
        monkeypatch.delenv("FFPROBE_PATH", raising=False)
        monkeypatch.setattr(ffmpeg_tools.platform, "system", lambda: "Linux")

        assert get_ffmpeg_path() == "ffmpeg"
        assert get_ffprobe_path() == "ffprobe"

    def test_windows_winget_location(self, monkeypatch):
        monkeypatch.delenv("FFMPEG_PATH", raising=False)
        monkeypatch.setenv("LOCALAPPDATA", "C:/Users/me/AppData/Local")
        monkeypatch.setattr(ffmpeg_tools.platform, "system", lambda: "Windows")

        path = get_ffmpeg_path()

        assert path.startswith("C:/Users/me/AppData/Local")
        assert path.endswith("ffmpeg.exe")


class TestCapabilityCheck:
    def test_missing_binary_is_unavailable(self):
        assert check_ffmpeg_available("/nonexistent/bin/ffmpeg") is False

    def test_nonzero_exit_is_unavailable(self, monkeypatch):
        class _Result:
            returncode = 1

        monkeypatch.setattr(ffmpeg_tools.subprocess, "run", lambda *a, **kw: _Result())

        assert check_ffmpeg_available(sys.executable) is False

    def test_zero_exit_is_available(self, monkeypatch):
        class _Result:
            returncode = 0

        monkeypatch.setattr(ffmpeg_tools.subprocess, "run", lambda *a, **kw: _Result())

        assert check_ffmpeg_available("ffmpeg") is True
