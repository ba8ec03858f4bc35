"""Tests for AudioMixer."""

import pytest

from reel_assembler.core.errors import ProcessError
from reel_assembler.models.schemas import AudioTrack, MixPlan, TrackKind
from reel_assembler.services.audio_mixer import MIXED_FILENAME, AudioMixer


@pytest.fixture
def mixer(settings, logger, fake_runner):
    """Create AudioMixer backed by the fake runner."""
    return AudioMixer(settings, logger, runner=fake_runner)


def normalized_track(tmp_path, kind, label, duration, offset=0.0):
    path = tmp_path / f"{label}_normalized.mp3"
    path.write_bytes(f"normalized {label}".encode())
    return AudioTrack(
        kind=kind,
        source_path=path,
        label=label,
        start_offset_seconds=offset,
        target_loudness_lufs=-16.0 if kind == TrackKind.VOICE else -24.0,
        duration_seconds=duration,
        normalized=True,
    )


@pytest.fixture
def voice(tmp_path):
    return normalized_track(tmp_path, TrackKind.VOICE, "voice", 10.0)


@pytest.fixture
def music(tmp_path):
    return normalized_track(tmp_path, TrackKind.MUSIC, "music", 30.0)


@pytest.fixture
def effect(tmp_path):
    return normalized_track(tmp_path, TrackKind.EFFECT, "effect_01", 1.2, offset=5.0)


def test_music_fade_out_is_anchored_to_narration_end(mixer):
    """Test the 3 second window ending at the narration end."""
    assert mixer.music_fade_out_start(10.0) == pytest.approx(7.0)
    assert mixer.music_fade_out_start(2.0) == 0.0


def test_effect_fades_shrink_for_short_clips(mixer):
    """Test that fades never overlap on a clip shorter than both together."""
    fade_in, fade_out_start, fade_out = mixer.effect_fades(0.6)

    assert fade_in + fade_out == pytest.approx(0.6)
    assert fade_out_start == pytest.approx(fade_in)


def test_filter_graph_places_and_weights_tracks(mixer, voice, music, effect):
    """Test music fades, effect delay and amix weights."""
    plan = MixPlan(voice=voice, optional_tracks=[music, effect], voice_duration_seconds=10.0)

    graph = mixer.build_filter_graph(plan)

    assert "[1:a]afade=t=in:st=0:d=1.5,afade=t=out:st=7.000:d=3[a1]" in graph
    assert "[2:a]afade=t=in:st=0:d=0.500,afade=t=out:st=0.500:d=0.700,adelay=5000|5000[a2]" in graph
    assert graph.endswith(
        "[0:a][a1][a2]amix=inputs=3:duration=longest:dropout_transition=0:weights=1 0.5 1[mix]"
    )


def test_effect_at_zero_has_no_delay(mixer, voice, tmp_path):
    """Test that an effect at the start is not shifted."""
    effect = normalized_track(tmp_path, TrackKind.EFFECT, "effect_01", 2.0, offset=0.0)
    plan = MixPlan(voice=voice, optional_tracks=[effect], voice_duration_seconds=10.0)

    assert "adelay=0|0" in mixer.build_filter_graph(plan)


def test_build_command_lists_inputs_in_plan_order(mixer, voice, music, effect, tmp_path):
    """Test that input indices match the filter graph."""
    plan = MixPlan(voice=voice, optional_tracks=[music, effect], voice_duration_seconds=10.0)

    args = mixer.build_command(plan, tmp_path / "out.mp3")

    inputs = [args[i + 1] for i, a in enumerate(args) if a == "-i"]
    assert inputs == [str(voice.source_path), str(music.source_path), str(effect.source_path)]
    assert args[args.index("-map") + 1] == "[mix]"
    assert args[-1] == str(tmp_path / "out.mp3")


def test_voice_only_mix_is_the_normalized_narration(mixer, fake_runner, voice, tmp_path):
    """Test that no optional tracks means a byte-identical copy of the narration."""
    plan = MixPlan(voice=voice, voice_duration_seconds=10.0)

    outcome = mixer.mix(plan, tmp_path / "mix")

    assert outcome.track.source_path.name == MIXED_FILENAME
    assert outcome.track.source_path.read_bytes() == voice.source_path.read_bytes()
    assert outcome.track.kind == TrackKind.MIXED
    assert outcome.included_labels == ["voice"]
    assert fake_runner.calls == []


def test_full_mix(mixer, fake_runner, voice, music, effect, tmp_path):
    """Test a successful mix of every track."""
    plan = MixPlan(voice=voice, optional_tracks=[music, effect], voice_duration_seconds=10.0)

    outcome = mixer.mix(plan, tmp_path / "mix")

    assert outcome.included_labels == ["voice", "music", "effect_01"]
    assert outcome.excluded_labels == []
    assert outcome.attempts == 1
    assert outcome.track.source_path.exists()
    assert outcome.track.duration_seconds == pytest.approx(30.0)
    assert len(fake_runner.commands("amix")) == 1


def test_failing_effect_is_excluded_first(mixer, fake_runner, voice, music, effect, tmp_path):
    """Test progressive exclusion when no track is named in the error output."""
    fake_runner.fail_when(lambda args: str(effect.source_path) in args)

    outcome = mixer.mix(
        MixPlan(voice=voice, optional_tracks=[music, effect], voice_duration_seconds=10.0), tmp_path / "mix"
    )

    assert outcome.excluded_labels == ["effect_01"]
    assert outcome.included_labels == ["voice", "music"]
    assert outcome.attempts == 2
    assert len(outcome.errors) == 1


def test_track_named_in_stderr_is_excluded_first(mixer, fake_runner, voice, music, effect, tmp_path):
    """Test that the track ffmpeg complains about goes before the default order."""
    fake_runner.fail_when(
        lambda args: str(music.source_path) in args,
        ProcessError("mix failed", ["ffmpeg"], 1, f"{music.source_path}: Invalid data found when processing input"),
    )

    outcome = mixer.mix(
        MixPlan(voice=voice, optional_tracks=[music, effect], voice_duration_seconds=10.0), tmp_path / "mix"
    )

    assert outcome.excluded_labels == ["music"]
    assert outcome.included_labels == ["voice", "effect_01"]


def test_narration_alone_is_the_terminal_fallback(mixer, fake_runner, voice, music, effect, tmp_path):
    """Test that narration survives even when every mix attempt fails."""
    fake_runner.fail_when(lambda args: "amix" in " ".join(args))

    outcome = mixer.mix(
        MixPlan(voice=voice, optional_tracks=[music, effect], voice_duration_seconds=10.0), tmp_path / "mix"
    )

    assert outcome.excluded_labels == ["effect_01", "music"]
    assert outcome.included_labels == ["voice"]
    assert outcome.track.source_path.read_bytes() == voice.source_path.read_bytes()


def test_suspects_from_stderr_by_input_index(voice, music, effect):
    """Test that 'Input #2' points at the second optional track."""
    plan = MixPlan(voice=voice, optional_tracks=[music, effect], voice_duration_seconds=10.0)

    suspects = AudioMixer.suspects_from_stderr(plan, "Error while decoding stream #2:0: Invalid data")

    assert [t.label for t in suspects] == ["effect_01"]
