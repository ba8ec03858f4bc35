"""Runs the normalize, mix and encode commands through a real ffmpeg."""

import shutil
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import FakeResponse, make_image_bytes
from reel_assembler.models.schemas import AssemblyRequest, SoundEffectCue, TimedImageInput
from reel_assembler.pipelines.assembly_orchestrator import AssemblyOrchestrator
from reel_assembler.services.media_probe import MediaProbe
from reel_assembler.utils.process_runner import ProcessRunner

pytestmark = pytest.mark.skipif(
    shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
    reason="ffmpeg and ffprobe are not installed",
)


@pytest.fixture
def small_settings(settings):
    """Keep the real encode fast."""
    settings.video_width, settings.video_height = 320, 180
    settings.video_fps = 10
    return settings


@pytest.fixture
def tone(small_settings, logger, tmp_path):
    """Generate a sine tone through the real runner and return its bytes."""
    runner = ProcessRunner(logger)

    def make(name: str, frequency: int, seconds: float) -> bytes:
        path = tmp_path / "tones" / f"{name}.mp3"
        path.parent.mkdir(parents=True, exist_ok=True)
        runner.run(
            [
                small_settings.ffmpeg_path, "-y", "-hide_banner",
                "-f", "lavfi", "-i", f"sine=frequency={frequency}:duration={seconds}",
                "-ac", "2", "-ar", "44100",
                "-c:a", small_settings.intermediate_audio_codec,
                str(path),
            ],
            timeout=60,
            description=f"generate {name} tone",
        )
        return path.read_bytes()

    return make


def test_full_assembly_with_real_ffmpeg(small_settings, logger, tone):
    """Test narration, two images, music and an effect end to end."""
    narration = tone("narration", 440, 4)
    assets = {"music.mp3": tone("music", 220, 6), "door.mp3": tone("door", 880, 1)}

    def fake_get(url, stream, timeout):
        return FakeResponse(body=assets[url.rsplit("/", 1)[-1]])

    request = AssemblyRequest(
        narration_audio=narration,
        timed_images=[
            TimedImageInput(timestamp_seconds=0.0, image_bytes=make_image_bytes((200, 30, 30))),
            TimedImageInput(timestamp_seconds=2.0, image_bytes=make_image_bytes((30, 30, 200), size=(50, 50))),
        ],
        music_url="https://cdn.example.com/music.mp3",
        sound_effects=[SoundEffectCue(timestamp_seconds=1.5, url="https://cdn.example.com/door.mp3")],
    )

    with patch("reel_assembler.services.asset_fetcher.requests.get", side_effect=fake_get):
        result = AssemblyOrchestrator(small_settings, logger).assemble(request)

    assert result.degradations == []
    assert result.mixed_track_labels == ["voice", "music", "effect_01"]

    info = MediaProbe(small_settings, logger).probe(Path(result.artifact.path))
    assert info.has_video and info.has_audio
    assert (info.width, info.height) == (320, 180)
    assert info.duration_seconds == pytest.approx(4.0, abs=0.5)
    assert list(Path(small_settings.workspace_root).iterdir()) == []
