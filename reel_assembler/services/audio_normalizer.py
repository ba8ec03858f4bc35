"""Audio Track Normalizer - loudness-normalizes and gain-adjusts each audio source independently."""

import threading
from pathlib import Path
from typing import Any, NamedTuple, Optional

from reel_assembler.core.config import Settings
from reel_assembler.core.errors import NormalizationError, ProcessError
from reel_assembler.models.schemas import AudioTrack, TrackKind
from reel_assembler.services.media_probe import MediaProbe
from reel_assembler.utils.process_runner import ProcessRunner


class LoudnessTarget(NamedTuple):
    """loudnorm parameters of one track kind."""

    integrated: float
    loudness_range: float
    true_peak: float


class AudioNormalizer:
    """
    Normalizes one track at a time.

    Each kind has its own loudness target; music and effects sit below the
    narration so it stays intelligible under overlays. The full pass is
    ``loudnorm`` followed by a light ``acompressor``; the track's gain
    multiplier is applied last, relative to the calibrated level. When the
    full pass fails the track is retried once with a gain-only pass.
    """

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        runner: Optional[ProcessRunner] = None,
        probe: Optional[MediaProbe] = None,
    ):
        """
        Initialize audio normalizer.

        Args:
            settings: Application settings
            logger: Logger instance
            runner: Process runner used for ffmpeg
            probe: Media probe used to measure normalized durations
        """
        self.settings = settings
        self.logger = logger
        self.runner = runner or ProcessRunner(logger)
        self.probe = probe or MediaProbe(settings, logger, self.runner)

    def target_for(self, kind: TrackKind) -> LoudnessTarget:
        """Loudness target of a track kind."""
        s = self.settings
        if kind == TrackKind.VOICE:
            return LoudnessTarget(s.voice_target_lufs, s.voice_loudness_range, s.voice_true_peak)
        if kind == TrackKind.MUSIC:
            return LoudnessTarget(s.music_target_lufs, s.music_loudness_range, s.music_true_peak)
        if kind == TrackKind.EFFECT:
            return LoudnessTarget(s.effect_target_lufs, s.effect_loudness_range, s.effect_true_peak)
        raise ValueError(f"No loudness target for {kind.value} tracks")

    def build_filter_chain(self, track: AudioTrack) -> str:
        """Full pass: loudness normalization, light compression, then gain."""
        target = self.target_for(track.kind)
        s = self.settings
        return (
            f"loudnorm=I={target.integrated:g}:LRA={target.loudness_range:g}:TP={target.true_peak:g},"
            f"acompressor=threshold={s.compressor_threshold_db:g}dB:ratio={s.compressor_ratio:g}"
            f":attack={s.compressor_attack_ms:g}:release={s.compressor_release_ms:g},"
            f"volume={track.gain_multiplier:.3f}"
        )

    @staticmethod
    def build_gain_only_chain(track: AudioTrack) -> str:
        """Simplified fallback pass."""
        return f"volume={track.gain_multiplier:.3f}"

    def build_command(self, source: Path, filter_chain: str, output: Path) -> list[str]:
        s = self.settings
        return [
            s.ffmpeg_path, "-y", "-hide_banner",
            "-i", str(source),
            "-af", filter_chain,
            "-ar", "44100", "-ac", "2",
            "-c:a", s.intermediate_audio_codec, "-q:a", s.intermediate_audio_quality,
            str(output),
        ]

    def normalize(
        self,
        track: AudioTrack,
        output_dir: Path,
        cancel_event: Optional[threading.Event] = None,
    ) -> AudioTrack:
        """
        Normalize one raw track.

        Args:
            track: Raw track (kind, offset and gain are kept)
            output_dir: Directory inside the job workspace for the result
            cancel_event: Optional cancellation token

        Returns:
            New AudioTrack pointing at the normalized file, with its measured duration

        Raises:
            NormalizationError: If both passes failed (fatal for Voice, droppable otherwise)
            AssemblyTimeoutError: If ffmpeg ran out of time
            JobCancelledError: If the job was cancelled
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        output = output_dir / f"{track.label}_normalized.mp3"
        target = self.target_for(track.kind)

        self.logger.info(
            f"Normalizing {track.label} to {target.integrated:g} LUFS (gain x{track.gain_multiplier:.2f})"
        )
        try:
            duration = self._run_pass(track, self.build_filter_chain(track), output, cancel_event)
            gain_only = False
        except (ProcessError, ValueError) as first_error:
            self.logger.warning(
                f"Loudness normalization of {track.label} failed, retrying gain-only: {first_error}"
            )
            try:
                duration = self._run_pass(track, self.build_gain_only_chain(track), output, cancel_event)
                gain_only = True
            except (ProcessError, ValueError) as second_error:
                output.unlink(missing_ok=True)
                raise NormalizationError(
                    f"Could not normalize {track.label}: {second_error}",
                    track_kind=track.kind.value,
                    context={"label": track.label, "first_error": str(first_error)},
                ) from second_error

        self.logger.info(
            f"Normalized {track.label}: {duration:.2f}s{' (gain-only)' if gain_only else ''}"
        )
        return track.model_copy(
            update={
                "source_path": output,
                "target_loudness_lufs": target.integrated,
                "duration_seconds": duration,
                "normalized": True,
                "gain_only": gain_only,
            }
        )

    def _run_pass(
        self,
        track: AudioTrack,
        filter_chain: str,
        output: Path,
        cancel_event: Optional[threading.Event],
    ) -> float:
        self.runner.run(
            self.build_command(track.source_path, filter_chain, output),
            timeout=self.settings.normalize_timeout_seconds,
            cancel_event=cancel_event,
            description=f"normalize {track.label}",
        )
        duration = self.probe.duration(output, cancel_event)
        if duration <= 0:
            raise ValueError(f"{track.label} has no audible content after normalization")
        return duration
