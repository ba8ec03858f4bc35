"""Temporal Placement & Mixer - places normalized tracks on the narration timeline and mixes them."""

import re
import shutil
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from reel_assembler.core.config import Settings
from reel_assembler.core.errors import MixError, ProcessError
from reel_assembler.models.schemas import AudioTrack, MixPlan, TrackKind
from reel_assembler.utils.process_runner import ProcessRunner

MIXED_FILENAME = "mixed_audio.mp3"

# Intermediate mix keeps every tail; the final encode trims to the narration.
INTERMEDIATE_DURATION_POLICY = "longest"


@dataclass
class MixOutcome:
    """Result of mixing, including which optional tracks had to be left out."""

    track: AudioTrack
    included_labels: list[str]
    excluded_labels: list[str] = field(default_factory=list)
    errors: list[MixError] = field(default_factory=list)
    attempts: int = 0


class AudioMixer:
    """Builds the amix filter graph and recovers from failing optional tracks."""

    def __init__(self, settings: Settings, logger: Any, runner: Optional[ProcessRunner] = None):
        """
        Initialize audio mixer.

        Args:
            settings: Application settings
            logger: Logger instance
            runner: Process runner used for ffmpeg
        """
        self.settings = settings
        self.logger = logger
        self.runner = runner or ProcessRunner(logger)

    # ------------------------------------------------------------------
    # Timeline placement
    # ------------------------------------------------------------------

    def music_fade_out_start(self, voice_duration: float) -> float:
        """Start of the music fade-out, anchored to the end of the narration."""
        return max(0.0, voice_duration - self.settings.music_fade_out_seconds)

    def effect_fades(self, duration: Optional[float]) -> tuple[float, float, float]:
        """
        Fade-in length, fade-out start and fade-out length of an effect clip.

        Fades are shortened for clips too short to hold both at full length.
        """
        fade_in = self.settings.effect_fade_in_seconds
        fade_out = self.settings.effect_fade_out_seconds
        if duration is None or duration <= 0:
            return fade_in, 0.0, 0.0
        if fade_in + fade_out > duration:
            scale = duration / (fade_in + fade_out)
            fade_in, fade_out = fade_in * scale, fade_out * scale
        return fade_in, max(0.0, duration - fade_out), fade_out

    def weight_for(self, track: AudioTrack) -> float:
        if track.kind == TrackKind.VOICE:
            return self.settings.voice_mix_weight
        if track.kind == TrackKind.MUSIC:
            return self.settings.music_mix_weight
        return self.settings.effect_mix_weight

    def build_filter_graph(self, plan: MixPlan) -> str:
        """
        Build the filter graph of one mix attempt.

        Input 0 is the narration; inputs 1..n are the optional tracks in
        plan order. Music fades in at 0 and fades out over the window ending
        at the narration end. Each effect fades at its own edges and is then
        delayed to its placement offset.
        """
        chains = []
        labels = ["[0:a]"]
        for index, track in enumerate(plan.optional_tracks, start=1):
            label = f"[a{index}]"
            if track.kind == TrackKind.MUSIC:
                window = self.settings.music_fade_out_seconds
                start = self.music_fade_out_start(plan.voice_duration_seconds)
                chain = (
                    f"afade=t=in:st=0:d={self.settings.music_fade_in_seconds:g},"
                    f"afade=t=out:st={start:.3f}:d={window:g}"
                )
            elif track.kind == TrackKind.EFFECT:
                fade_in, fade_out_start, fade_out = self.effect_fades(track.duration_seconds)
                delay_ms = int(round(track.start_offset_seconds * 1000))
                parts = [f"afade=t=in:st=0:d={fade_in:.3f}"]
                if fade_out > 0:
                    parts.append(f"afade=t=out:st={fade_out_start:.3f}:d={fade_out:.3f}")
                parts.append(f"adelay={delay_ms}|{delay_ms}")
                chain = ",".join(parts)
            else:
                raise ValueError(f"{track.kind.value} tracks cannot be mixed as overlays")
            chains.append(f"[{index}:a]{chain}{label}")
            labels.append(label)

        weights = " ".join(f"{self.weight_for(t):g}" for t in plan.tracks)
        chains.append(
            f"{''.join(labels)}amix=inputs={len(labels)}:duration={plan.duration_policy}"
            f":dropout_transition=0:weights={weights}[mix]"
        )
        return ";".join(chains)

    def build_command(self, plan: MixPlan, output: Path) -> list[str]:
        s = self.settings
        args = [s.ffmpeg_path, "-y", "-hide_banner", "-v", "error"]
        for track in plan.tracks:
            args += ["-i", str(track.source_path)]
        args += [
            "-filter_complex", self.build_filter_graph(plan),
            "-map", "[mix]",
            "-c:a", s.intermediate_audio_codec, "-q:a", "0",
            str(output),
        ]
        return args

    # ------------------------------------------------------------------
    # Mixing with progressive exclusion
    # ------------------------------------------------------------------

    def mix(
        self,
        plan: MixPlan,
        output_dir: Path,
        cancel_event: Optional[threading.Event] = None,
    ) -> MixOutcome:
        """
        Mix the plan's tracks into one stream.

        With no optional tracks the normalized narration is the mix. When
        the graph fails, optional tracks are excluded one at a time (tracks
        named in the error output first, then effects from last to first,
        then music) until a mix succeeds; narration alone is the terminal
        fallback and is never excluded.

        Args:
            plan: Tracks and policy to mix
            output_dir: Directory inside the job workspace for the result
            cancel_event: Optional cancellation token

        Returns:
            MixOutcome with the mixed track

        Raises:
            AssemblyTimeoutError: If ffmpeg ran out of time
            JobCancelledError: If the job was cancelled
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        output = output_dir / MIXED_FILENAME
        plan = plan.model_copy(update={"duration_policy": INTERMEDIATE_DURATION_POLICY})
        outcome = MixOutcome(track=plan.voice, included_labels=[plan.voice.label])

        current = plan
        while current.optional_tracks:
            outcome.attempts += 1
            try:
                self._attempt(current, output, cancel_event)
            except MixError as e:
                outcome.errors.append(e)
                victim = self._next_exclusion(current, e)
                self.logger.warning(
                    f"Mix of {len(current.tracks)} tracks failed; excluding {victim.label} and retrying"
                )
                outcome.excluded_labels.append(victim.label)
                current = current.without({victim.label})
                continue

            outcome.track = self._mixed_track(current, output)
            outcome.included_labels = [t.label for t in current.tracks]
            self.logger.info(
                f"Mixed {len(current.tracks)} tracks ({', '.join(outcome.included_labels)}) "
                f"with duration={current.duration_policy}"
            )
            return outcome

        # Narration alone: the normalized voice is the mix
        shutil.copyfile(plan.voice.source_path, output)
        outcome.track = self._mixed_track(current, output)
        outcome.included_labels = [plan.voice.label]
        if outcome.excluded_labels:
            self.logger.warning("All optional tracks excluded; using narration alone")
        else:
            self.logger.info("No optional tracks; mixed audio is the normalized narration")
        return outcome

    def _attempt(self, plan: MixPlan, output: Path, cancel_event: Optional[threading.Event]) -> None:
        try:
            self.runner.run(
                self.build_command(plan, output),
                timeout=self.settings.mix_timeout_seconds,
                cancel_event=cancel_event,
                description=f"mix {len(plan.tracks)} tracks",
            )
        except ProcessError as e:
            output.unlink(missing_ok=True)
            raise MixError(
                f"Mix failed with tracks {[t.label for t in plan.tracks]}: {e}",
                {"tracks": [t.label for t in plan.tracks], "stderr": e.stderr},
            ) from e

    def _next_exclusion(self, plan: MixPlan, error: MixError) -> AudioTrack:
        suspects = self.suspects_from_stderr(plan, error.context.get("stderr", ""))
        if suspects:
            return suspects[0]

        effects = [t for t in plan.optional_tracks if t.kind == TrackKind.EFFECT]
        if effects:
            return effects[-1]
        return plan.optional_tracks[-1]

    @staticmethod
    def suspects_from_stderr(plan: MixPlan, stderr: str) -> list[AudioTrack]:
        """Optional tracks that the ffmpeg error output points at, by file name or input index."""
        suspects = []
        for index, track in enumerate(plan.optional_tracks, start=1):
            named = track.source_path.name in stderr
            indexed = re.search(rf"(?:stream|Input) #{index}[:,\s]", stderr) is not None
            if named or indexed:
                suspects.append(track)
        return suspects

    def _mixed_track(self, plan: MixPlan, output: Path) -> AudioTrack:
        end = plan.voice_duration_seconds
        for track in plan.optional_tracks:
            if track.duration_seconds is not None:
                end = max(end, track.start_offset_seconds + track.duration_seconds)
        return AudioTrack(
            kind=TrackKind.MIXED,
            source_path=output,
            label="mixed",
            target_loudness_lufs=plan.voice.target_loudness_lufs,
            gain_multiplier=1.0,
            duration_seconds=end,
            normalized=True,
        )
