"""Tests for VideoEncoder."""

from pathlib import Path

import pytest

from reel_assembler.core.errors import EncodeError
from reel_assembler.models.schemas import AudioTrack, TrackKind
from reel_assembler.services.schedule_builder import VisualScheduleBuilder
from reel_assembler.services.video_encoder import VideoEncoder


@pytest.fixture
def encoder(settings, logger, fake_runner):
    """Create VideoEncoder backed by the fake runner."""
    return VideoEncoder(settings, logger, runner=fake_runner)


@pytest.fixture
def schedule(settings, logger, image_bytes):
    builder = VisualScheduleBuilder(settings, logger)
    return builder.build([(0.0, image_bytes[0]), (3.0, image_bytes[1]), (6.0, image_bytes[2])], 10.0)


@pytest.fixture
def workspace(tmp_path):
    path = tmp_path / "workspace"
    (path / "frames").mkdir(parents=True)
    return path


@pytest.fixture
def frame_paths(workspace):
    paths = []
    for i in range(3):
        path = workspace / "frames" / f"image_{i:03d}.jpg"
        path.write_bytes(b"jpeg")
        paths.append(path)
    return paths


@pytest.fixture
def mixed_audio(workspace):
    path = workspace / "mixed_audio.mp3"
    path.write_bytes(b"mixed")
    return AudioTrack(
        kind=TrackKind.MIXED, source_path=path, label="mixed", target_loudness_lufs=-16.0, duration_seconds=10.0
    )


def test_manifest_lists_durations_and_repeats_last_image(encoder, schedule, frame_paths):
    """Test the concat manifest layout."""
    manifest = encoder.build_manifest(schedule, frame_paths).splitlines()

    assert manifest == [
        f"file '{frame_paths[0].resolve()}'",
        "duration 3.000",
        f"file '{frame_paths[1].resolve()}'",
        "duration 3.000",
        f"file '{frame_paths[2].resolve()}'",
        "duration 4.000",
        f"file '{frame_paths[2].resolve()}'",
    ]


def test_manifest_escapes_quotes(encoder, schedule, tmp_path):
    """Test that a quote in a path cannot break out of the manifest entry."""
    frames = []
    for i in range(3):
        path = tmp_path / f"it's_{i}.jpg"
        path.write_bytes(b"jpeg")
        frames.append(path)

    manifest = encoder.build_manifest(schedule, frames)

    assert "it'\\''s_0.jpg'" in manifest


def test_manifest_requires_aligned_frames(encoder, schedule, frame_paths):
    """Test that schedule and frames must line up."""
    with pytest.raises(ValueError):
        encoder.build_manifest(schedule, frame_paths[:2])


def test_video_filter_has_slow_zoom_at_target_size(encoder):
    """Test the zoom expression and output size."""
    vf = encoder.build_video_filter()

    assert "zoompan=z='min(zoom+0.0015,1.05)'" in vf
    assert "s=1920x1080" in vf
    assert vf.endswith("format=yuv420p")


def test_build_command(encoder, tmp_path):
    """Test the final encode arguments."""
    args = encoder.build_command(tmp_path / "input.txt", tmp_path / "mixed.mp3", tmp_path / "out.mp4", 10.0)

    assert args[args.index("-f") + 1] == "concat"
    assert args[args.index("-safe") + 1] == "0"
    assert args[args.index("-c:a") + 1] == "aac"
    assert args[args.index("-b:a") + 1] == "320k"
    assert "-shortest" in args
    assert args[args.index("-t") + 1] == "10.000"
    assert args[-1] == str(tmp_path / "out.mp4")


def test_encode_publishes_verified_artifact(
    encoder, fake_runner, settings, schedule, frame_paths, mixed_audio, workspace
):
    """Test encode → verify → publish."""
    artifact = encoder.encode("job-1", schedule, frame_paths, mixed_audio, 10.0, workspace)

    assert artifact.id == "job-1"
    assert artifact.url == "/videos/job-1.mp4"
    assert (artifact.width_px, artifact.height_px) == (1920, 1080)
    assert Path(artifact.path) == Path(settings.artifacts_path) / "job-1.mp4"
    assert Path(artifact.path).exists()
    assert not (workspace / "job-1.mp4").exists()
    assert (workspace / "input.txt").exists()

    encode_call = fake_runner.commands("concat")[0]
    assert encode_call[encode_call.index("-i", encode_call.index("concat")) + 1] == str(workspace / "input.txt")
    assert str(mixed_audio.source_path) in encode_call


def test_nonzero_exit_raises_encode_error(encoder, fake_runner, settings, schedule, frame_paths, mixed_audio, workspace):
    """Test that an encoder failure is fatal and nothing is published."""
    fake_runner.fail_when(lambda args: "concat" in args)

    with pytest.raises(EncodeError) as exc_info:
        encoder.encode("job-2", schedule, frame_paths, mixed_audio, 10.0, workspace)

    assert exc_info.value.returncode == 1
    assert "Invalid data found" in exc_info.value.stderr
    assert not (Path(settings.artifacts_path) / "job-2.mp4").exists()


def test_probe_mismatch_raises_encode_error(
    encoder, fake_runner, settings, schedule, frame_paths, mixed_audio, workspace
):
    """Test that wrong dimensions fail verification."""
    fake_runner.video_size = (1280, 720)

    with pytest.raises(EncodeError, match="1280x720"):
        encoder.encode("job-3", schedule, frame_paths, mixed_audio, 10.0, workspace)

    assert not (Path(settings.artifacts_path) / "job-3.mp4").exists()


def test_missing_output_raises_encode_error(encoder, tmp_path):
    """Test that an absent file fails verification."""
    with pytest.raises(EncodeError, match="no output"):
        encoder.verify(tmp_path / "missing.mp4", ["ffmpeg"])
