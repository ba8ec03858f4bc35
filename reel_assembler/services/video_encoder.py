"""Encode & Package Stage - renders the image schedule against the mixed audio and verifies the result."""

import threading
from pathlib import Path
from typing import Any, Optional

from reel_assembler.core.config import Settings
from reel_assembler.core.errors import EncodeError, ProcessError
from reel_assembler.models.schemas import AudioTrack, ScheduleEntry, VideoArtifact
from reel_assembler.services.media_probe import MediaInfo, MediaProbe
from reel_assembler.utils.io_utils import publish_file
from reel_assembler.utils.process_runner import ProcessRunner, quote_concat_path

MANIFEST_FILENAME = "input.txt"


class VideoEncoder:
    """Drives ffmpeg to package the visuals and mixed audio into one mp4."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        runner: Optional[ProcessRunner] = None,
        probe: Optional[MediaProbe] = None,
    ):
        """
        Initialize video encoder.

        Args:
            settings: Application settings
            logger: Logger instance
            runner: Process runner used for ffmpeg
            probe: Media probe used to verify the artifact
        """
        self.settings = settings
        self.logger = logger
        self.runner = runner or ProcessRunner(logger)
        self.probe = probe or MediaProbe(settings, logger, self.runner)

    def build_manifest(self, schedule: list[ScheduleEntry], frame_paths: list[Path]) -> str:
        """
        Concat-demuxer manifest: one ``file``/``duration`` pair per entry,
        then the last image again without a duration.
        """
        if len(schedule) != len(frame_paths):
            raise ValueError(f"{len(schedule)} schedule entries but {len(frame_paths)} frames")
        if not schedule:
            raise ValueError("Cannot build a manifest for an empty schedule")

        lines = []
        for entry, frame in zip(schedule, frame_paths):
            lines.append(f"file {quote_concat_path(str(frame.resolve()))}")
            lines.append(f"duration {entry.display_seconds:.3f}")
        lines.append(f"file {quote_concat_path(str(frame_paths[-1].resolve()))}")
        return "\n".join(lines) + "\n"

    def write_manifest(self, schedule: list[ScheduleEntry], frame_paths: list[Path], workspace: Path) -> Path:
        manifest_path = workspace / MANIFEST_FILENAME
        manifest_path.write_text(self.build_manifest(schedule, frame_paths), encoding="utf-8")
        return manifest_path

    def build_video_filter(self) -> str:
        s = self.settings
        return (
            f"fps={s.video_fps},"
            f"zoompan=z='min(zoom+{s.zoom_increment:g},{s.zoom_max:g})':d=1"
            f":x='iw/2-(iw/zoom/2)':y='ih/2-(ih/zoom/2)'"
            f":s={s.video_width}x{s.video_height}:fps={s.video_fps},"
            f"format=yuv420p"
        )

    def build_command(self, manifest: Path, audio: Path, output: Path, voice_duration: float) -> list[str]:
        """
        Final encode: image sequence with slow zoom, muxed against the mixed
        audio with the shortest duration policy and capped at the narration length.
        """
        s = self.settings
        return [
            s.ffmpeg_path, "-y", "-hide_banner",
            "-f", "concat", "-safe", "0", "-i", str(manifest),
            "-i", str(audio),
            "-map", "0:v:0", "-map", "1:a:0",
            "-vf", self.build_video_filter(),
            "-c:v", s.video_codec, "-r", str(s.video_fps),
            "-c:a", s.audio_codec, "-b:a", s.audio_bitrate,
            "-shortest",
            "-t", f"{voice_duration:.3f}",
            "-movflags", "+faststart",
            str(output),
        ]

    def encode(
        self,
        job_id: str,
        schedule: list[ScheduleEntry],
        frame_paths: list[Path],
        mixed_audio: AudioTrack,
        voice_duration: float,
        workspace: Path,
        cancel_event: Optional[threading.Event] = None,
    ) -> VideoArtifact:
        """
        Encode, verify and publish the artifact of one job.

        The file is encoded inside the workspace and only moved to the
        artifacts directory once verification passed.

        Args:
            job_id: Job UUID, used as storage key and identifier
            schedule: Ordered display schedule
            frame_paths: Frames written for the schedule
            mixed_audio: Mixed audio track
            voice_duration: Narration duration (final length)
            workspace: Job workspace
            cancel_event: Optional cancellation token

        Returns:
            The published VideoArtifact

        Raises:
            EncodeError: If ffmpeg fails or the artifact fails verification
            AssemblyTimeoutError: If ffmpeg ran out of time
            JobCancelledError: If the job was cancelled
        """
        manifest = self.write_manifest(schedule, frame_paths, workspace)
        staged = workspace / f"{job_id}.mp4"
        command = self.build_command(manifest, mixed_audio.source_path, staged, voice_duration)

        self.logger.info(
            f"Encoding {len(schedule)} images at {self.settings.video_width}x{self.settings.video_height}"
            f"@{self.settings.video_fps}fps, {voice_duration:.2f}s"
        )
        try:
            self.runner.run(
                command,
                timeout=self.settings.encode_timeout_seconds,
                cancel_event=cancel_event,
                description="encode video",
            )
        except ProcessError as e:
            raise EncodeError(
                f"Encoder exited with status {e.returncode}",
                command=command,
                returncode=e.returncode,
                stderr=e.stderr,
            ) from e

        info = self.verify(staged, command, cancel_event)

        destination = Path(self.settings.artifacts_path) / f"{job_id}.mp4"
        publish_file(staged, destination)
        url = f"{self.settings.artifact_url_prefix.rstrip('/')}/{job_id}.mp4"

        artifact = VideoArtifact(
            id=job_id,
            path=str(destination),
            url=url,
            width_px=info.width,
            height_px=info.height,
            duration_seconds=info.duration_seconds or voice_duration,
        )
        self.logger.info(f"Generated video dimensions: {info.width}x{info.height}, {artifact.duration_seconds:.2f}s")
        return artifact

    def verify(self, path: Path, command: list[str], cancel_event: Optional[threading.Event] = None) -> MediaInfo:
        """
        Probe the encoded file and check dimensions and streams.

        Raises:
            EncodeError: If the file is missing, unreadable or does not match the target
        """
        if not path.exists() or path.stat().st_size == 0:
            raise EncodeError("Encoder produced no output file", command=command)

        try:
            info = self.probe.probe(path, cancel_event)
        except (ProcessError, ValueError) as e:
            raise EncodeError(
                f"Could not probe encoded file: {e}",
                command=command,
                stderr=getattr(e, "stderr", ""),
            ) from e

        problems = []
        if not info.has_video:
            problems.append("no video stream")
        if not info.has_audio:
            problems.append("no audio stream")
        expected = (self.settings.video_width, self.settings.video_height)
        if info.has_video and (info.width, info.height) != expected:
            problems.append(f"dimensions {info.width}x{info.height} != {expected[0]}x{expected[1]}")

        if problems:
            raise EncodeError(
                f"Probe mismatch: {', '.join(problems)}",
                command=command,
                context={"path": str(path)},
            )
        return info
