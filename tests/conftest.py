"""Shared pytest fixtures and configuration."""

import io
import json
from pathlib import Path
from typing import Callable, Optional

import pytest
from PIL import Image

from reel_assembler.core.config import Settings
from reel_assembler.core.errors import ProcessError
from reel_assembler.core.logging_config import get_logger
from reel_assembler.utils.process_runner import ProcessResult


class FakeRunner:
    """
    Stands in for ProcessRunner.

    Records every argument list, writes a small file at the output path
    (the last argument) of ffmpeg commands and answers ffprobe calls with
    JSON built from ``durations`` (file-name fragment -> seconds).
    """

    def __init__(self, settings: Settings, durations: Optional[dict[str, float]] = None):
        self.settings = settings
        self.calls: list[list[str]] = []
        self.durations = durations or {}
        self.video_size = (settings.video_width, settings.video_height)
        self.failures: list[tuple[Callable[[list[str]], bool], Exception]] = []

    def fail_when(self, predicate: Callable[[list[str]], bool], error: Optional[Exception] = None) -> None:
        """Raise ``error`` (a ProcessError by default) for commands matching ``predicate``."""
        self.failures.append((predicate, error))

    def run(self, args, timeout=None, cancel_event=None, description="process"):
        args = [str(a) for a in args]
        self.calls.append(args)

        for predicate, error in self.failures:
            if predicate(args):
                if error is None:
                    error = ProcessError(f"{description} exited with status 1", args, 1, "Invalid data found")
                raise error

        if args[0] == self.settings.ffprobe_path:
            return ProcessResult(args, 0, self._probe_json(Path(args[-1])), "", 0.01)

        output = Path(args[-1])
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(f"fake:{output.name}".encode())
        return ProcessResult(args, 0, "", "", 0.01)

    def commands(self, marker: str) -> list[list[str]]:
        """Recorded commands whose joined text contains ``marker``."""
        return [c for c in self.calls if marker in " ".join(c)]

    def _duration_for(self, path: Path) -> float:
        for fragment, seconds in self.durations.items():
            if fragment in path.name:
                return seconds
        return 10.0

    def _probe_json(self, path: Path) -> str:
        streams = [{"codec_type": "audio"}]
        if path.suffix == ".mp4":
            width, height = self.video_size
            streams.insert(0, {"codec_type": "video", "width": width, "height": height})
        return json.dumps({"streams": streams, "format": {"duration": str(self._duration_for(path))}})


class FakeResponse:
    """Minimal streaming response for patched ``requests.get``."""

    def __init__(self, status_code: int = 200, body: bytes = b"ID3fake-audio", reason: str = "OK"):
        self.status_code = status_code
        self.reason = reason
        self.body = body

    def iter_content(self, chunk_size=1024):
        for i in range(0, len(self.body), chunk_size):
            yield self.body[i : i + chunk_size]

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def make_image_bytes(color=(200, 30, 30), size=(64, 36), fmt="PNG") -> bytes:
    """Encode a solid-colour image."""
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, fmt)
    return buffer.getvalue()


@pytest.fixture
def settings(tmp_path):
    """Create test settings instance writing into a temporary directory."""
    settings = Settings()
    settings.workspace_root = str(tmp_path / "workspaces")
    settings.artifacts_path = str(tmp_path / "videos")
    settings.keep_workspace = False
    settings.enable_rate_limiting = False
    settings.log_file = None
    return settings


@pytest.fixture
def logger():
    """Create test logger instance."""
    return get_logger(__name__)


@pytest.fixture
def fake_runner(settings):
    """Recording stand-in for ffmpeg/ffprobe."""
    return FakeRunner(settings, durations={"narration": 10.0, "voice": 10.0, "music": 30.0, "effect": 1.2})


@pytest.fixture
def image_bytes():
    """Three distinct images."""
    return [
        make_image_bytes((200, 30, 30)),
        make_image_bytes((30, 200, 30)),
        make_image_bytes((30, 30, 200)),
    ]
