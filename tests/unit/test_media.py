"""Tests for MediaProbe, FrameWriter and the data models."""

import pytest
from PIL import Image

from conftest import make_image_bytes
from reel_assembler.core.errors import InputValidationError
from reel_assembler.models.schemas import TrackKind, VolumeConfig, VolumePreset
from reel_assembler.services.frame_writer import FrameWriter
from reel_assembler.services.media_probe import MediaProbe
from reel_assembler.services.schedule_builder import VisualScheduleBuilder


def test_parse_probe_output_video():
    """Test stream and duration extraction."""
    stdout = (
        '{"streams": [{"codec_type": "video", "width": 1920, "height": 1080}, {"codec_type": "audio"}],'
        ' "format": {"duration": "10.016"}}'
    )

    info = MediaProbe.parse_probe_output(stdout)

    assert info.has_video and info.has_audio
    assert (info.width, info.height) == (1920, 1080)
    assert info.duration_seconds == pytest.approx(10.016)


def test_parse_probe_output_audio_only():
    info = MediaProbe.parse_probe_output('{"streams": [{"codec_type": "audio"}], "format": {"duration": "N/A"}}')

    assert not info.has_video
    assert info.width is None
    assert info.duration_seconds == 0.0


def test_parse_probe_output_garbage_raises():
    with pytest.raises(ValueError):
        MediaProbe.parse_probe_output("not json")


def test_probe_uses_structured_arguments(settings, logger, fake_runner, tmp_path):
    """Test the ffprobe invocation."""
    probe = MediaProbe(settings, logger, runner=fake_runner)

    assert probe.duration(tmp_path / "narration.mp3") == pytest.approx(10.0)
    assert fake_runner.calls[0][0] == settings.ffprobe_path
    assert fake_runner.calls[0][-1] == str(tmp_path / "narration.mp3")


def test_frame_writer_writes_rgb_frames_at_target_size(settings, logger, tmp_path):
    """Test decoding, cropping and naming."""
    settings.video_width, settings.video_height = 320, 180
    square = make_image_bytes((10, 20, 30), size=(100, 100))
    schedule = VisualScheduleBuilder(settings, logger).build([(0.0, square), (1.0, make_image_bytes(fmt="JPEG"))], 2.0)

    paths = FrameWriter(settings, logger).write_frames(schedule, tmp_path / "frames")

    assert [p.name for p in paths] == ["image_000.jpg", "image_001.jpg"]
    for path in paths:
        with Image.open(path) as image:
            assert image.size == (320, 180)
            assert image.mode == "RGB"


def test_frame_writer_rejects_undecodable_image(settings, logger, tmp_path):
    """Test that a corrupt image is an input error."""
    schedule = VisualScheduleBuilder(settings, logger).build([(0.0, b"definitely not an image")], 1.0)

    with pytest.raises(InputValidationError, match="could not be decoded"):
        FrameWriter(settings, logger).write_frames(schedule, tmp_path / "frames")


@pytest.mark.parametrize(
    "preset, expected",
    [
        (VolumePreset.VOICE_FOCUS, (1.5, 0.4, 0.15)),
        (VolumePreset.BALANCED, (1.0, 0.7, 0.2)),
        ("cinematic", (1.2, 1.0, 0.4)),
    ],
)
def test_volume_presets(preset, expected):
    volume = VolumeConfig.from_preset(preset)

    assert (volume.voice_gain, volume.effect_gain, volume.music_gain) == expected


def test_volume_defaults_match_balanced():
    volume = VolumeConfig()

    assert volume == VolumeConfig.from_preset(VolumePreset.BALANCED)
    assert volume.gain_for(TrackKind.MUSIC) == 0.2
    assert volume.gain_for(TrackKind.MIXED) == 1.0


def test_negative_gain_is_rejected():
    with pytest.raises(ValueError):
        VolumeConfig(music_gain=-0.1)


def test_resolve_applies_overrides_to_preset():
    volume = VolumeConfig.resolve("cinematic", music_gain=0.05)

    assert (volume.voice_gain, volume.effect_gain, volume.music_gain) == (1.2, 1.0, 0.05)
    assert VolumeConfig.from_preset("cinematic").music_gain == 0.4


@pytest.mark.parametrize(
    "preset, overrides",
    [
        ("balanced", {"effect_gain": -1.0}),
        ("loud", {}),
    ],
)
def test_resolve_rejects_invalid_volume(preset, overrides):
    """Test that overrides are validated like any other gain."""
    with pytest.raises(ValueError):
        VolumeConfig.resolve(preset, **overrides)
