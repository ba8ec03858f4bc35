"""Assembly Orchestrator - narration + timed images + optional audio → one verified video."""

import shutil
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from reel_assembler.core.config import Settings
from reel_assembler.core.errors import (
    AssemblyError,
    AssetRetrievalError,
    InputValidationError,
    JobCancelledError,
    NormalizationError,
    ProcessError,
)
from reel_assembler.models.schemas import (
    AssemblyJob,
    AssemblyRequest,
    AssemblyResult,
    AudioTrack,
    Degradation,
    MixPlan,
    ScheduleEntry,
    TrackKind,
)
from reel_assembler.services.asset_fetcher import AssetDownload, AssetFetcher
from reel_assembler.services.audio_mixer import AudioMixer
from reel_assembler.services.audio_normalizer import AudioNormalizer
from reel_assembler.services.frame_writer import FrameWriter
from reel_assembler.services.media_probe import MediaProbe
from reel_assembler.services.schedule_builder import VisualScheduleBuilder
from reel_assembler.services.video_encoder import VideoEncoder
from reel_assembler.storage.repository import ArtifactRepository
from reel_assembler.utils.error_handler import format_error_message, get_fallback_suggestion
from reel_assembler.utils.io_utils import create_job_workspace
from reel_assembler.utils.process_runner import ProcessRunner


class AssemblyOrchestrator:
    """
    Runs one assembly job as a sequential pipeline inside an exclusive workspace.

    Fatal errors propagate to the caller as typed AssemblyError subclasses;
    failures of optional tracks are recorded on the result as degradations.
    """

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        runner: Optional[ProcessRunner] = None,
        fetcher: Optional[AssetFetcher] = None,
        repository: Optional[ArtifactRepository] = None,
    ):
        """
        Initialize the orchestrator and its components.

        Args:
            settings: Application settings
            logger: Logger instance
            runner: Process runner shared by every ffmpeg/ffprobe call
            fetcher: Asset fetcher for optional music and effects
            repository: Artifact metadata repository
        """
        self.settings = settings
        self.logger = logger
        self._injected = (runner, fetcher, repository)
        self.runner = runner or ProcessRunner(logger)
        self.probe = MediaProbe(settings, logger, self.runner)
        self.schedule_builder = VisualScheduleBuilder(settings, logger)
        self.frame_writer = FrameWriter(settings, logger)
        self.fetcher = fetcher or AssetFetcher(settings, logger)
        self.normalizer = AudioNormalizer(settings, logger, self.runner, self.probe)
        self.mixer = AudioMixer(settings, logger, self.runner)
        self.encoder = VideoEncoder(settings, logger, self.runner, self.probe)
        self.repository = repository or ArtifactRepository(settings, logger)

    def for_job(self, job_id: str) -> "AssemblyOrchestrator":
        """
        Build a copy whose components log with job_id bound.

        Injected runner, fetcher and repository are shared with the copy.
        """
        return AssemblyOrchestrator(self.settings, self.logger.bind(job_id=job_id), *self._injected)

    @contextmanager
    def job_workspace(self, job_id: str) -> Iterator[Path]:
        """Create the job's workspace and remove it on every exit path."""
        workspace = create_job_workspace(self.settings.workspace_root, job_id)
        self.logger.debug(f"[{job_id}] Workspace: {workspace}")
        try:
            yield workspace
        finally:
            if getattr(self.settings, "keep_workspace", False):
                self.logger.info(f"[{job_id}] Keeping workspace {workspace}")
            else:
                shutil.rmtree(workspace, ignore_errors=True)
                self.logger.debug(f"[{job_id}] Workspace removed")

    def assemble(
        self,
        request: AssemblyRequest,
        cancel_event: Optional[threading.Event] = None,
        job_id: Optional[str] = None,
    ) -> AssemblyResult:
        """
        Assemble one video.

        Args:
            request: Narration, visuals, optional audio and volume configuration
            cancel_event: Optional cancellation token; setting it kills the running step
            job_id: Optional job UUID (generated when omitted)

        Returns:
            AssemblyResult with the verified artifact and any degradations

        Raises:
            InputValidationError: Missing or unreadable narration/visuals
            NormalizationError: Narration could not be normalized
            EncodeError: Encoder failure or artifact verification failure
            AssemblyTimeoutError: An external step exceeded its timeout
            JobCancelledError: The job was cancelled
        """
        self.validate_request(request)
        job_id = job_id or str(uuid.uuid4())
        return self.for_job(job_id)._run_job(request, job_id, cancel_event)

    def _run_job(
        self, request: AssemblyRequest, job_id: str, cancel_event: Optional[threading.Event]
    ) -> AssemblyResult:
        log_prefix = f"[{job_id}]"
        logger = self.logger

        logger.info("=" * 60)
        logger.info(f"{log_prefix} Starting assembly")
        logger.info(
            f"{log_prefix} Images: {len(request.timed_images) or len(request.images)} "
            f"({'timed' if request.has_timed_images else 'untimed'}), "
            f"music: {'yes' if request.music_url else 'no'}, effects: {len(request.sound_effects)}"
        )
        logger.info("=" * 60)

        degradations: list[Degradation] = []
        try:
            with self.job_workspace(job_id) as workspace:
                job = AssemblyJob(id=job_id, workspace_path=workspace)

                # Step 1: Narration and its duration
                logger.info(f"{log_prefix} Step 1: Preparing narration...")
                voice_path = workspace / "audio" / "narration.mp3"
                voice_path.parent.mkdir(parents=True, exist_ok=True)
                voice_path.write_bytes(request.narration_audio)
                voice_duration = self._voice_duration(request, voice_path, cancel_event)
                self._check_cancelled(cancel_event)

                # Step 2: Visual schedule and frames
                logger.info(f"{log_prefix} Step 2: Building visual schedule...")
                schedule = self._build_schedule(request, voice_duration)
                job.visuals = [entry.visual for entry in schedule]
                logger.info(
                    f"{log_prefix} Schedule: {len(job.visuals)} images, "
                    f"~{self.schedule_builder.estimated_duration(schedule):.2f}s before the final mux"
                )
                frame_paths = self.frame_writer.write_frames(schedule, workspace / "frames")
                self._check_cancelled(cancel_event)

                # Step 3: Optional assets, fetched concurrently and joined
                logger.info(f"{log_prefix} Step 3: Fetching optional audio assets...")
                raw_tracks = [
                    AudioTrack(
                        kind=TrackKind.VOICE,
                        source_path=voice_path,
                        label="voice",
                        target_loudness_lufs=self.settings.voice_target_lufs,
                        gain_multiplier=request.volume.gain_for(TrackKind.VOICE),
                        duration_seconds=voice_duration,
                    )
                ]
                raw_tracks += self._fetch_optional_tracks(request, workspace, job_id, degradations, cancel_event)
                job.tracks = raw_tracks
                self._check_cancelled(cancel_event)

                # Step 4: Per-track normalization
                logger.info(f"{log_prefix} Step 4: Normalizing {len(job.tracks)} tracks...")
                job.tracks = self._normalize_tracks(job.tracks, workspace / "normalized", degradations, cancel_event)
                self._check_cancelled(cancel_event)

                # Step 5: Placement and mixing
                logger.info(f"{log_prefix} Step 5: Mixing audio...")
                plan = MixPlan(
                    voice=job.tracks[0],
                    optional_tracks=job.tracks[1:],
                    voice_duration_seconds=voice_duration,
                )
                outcome = self.mixer.mix(plan, workspace / "mix", cancel_event)
                for label, error in zip(outcome.excluded_labels, outcome.errors):
                    degradations.append(self._degradation("mixing", label, error))
                self._check_cancelled(cancel_event)

                # Step 6: Encode, verify, publish
                logger.info(f"{log_prefix} Step 6: Encoding video...")
                artifact = self.encoder.encode(
                    job_id, schedule, frame_paths, outcome.track, voice_duration, workspace, cancel_event
                )

                # Step 7: Persist artifact metadata
                logger.info(f"{log_prefix} Step 7: Saving artifact metadata...")
                self.repository.save_artifact(artifact)

        except AssemblyError as e:
            logger.error(
                format_error_message(
                    "Video assembly",
                    e,
                    context={"job_id": job_id},
                    suggestion=get_fallback_suggestion(self._stage_of(e), e),
                )
            )
            raise

        if degradations:
            logger.warning(f"{log_prefix} Completed with {len(degradations)} degradation(s)")
        logger.info("=" * 60)
        logger.info(f"{log_prefix} Assembly complete: {artifact.url}")
        logger.info("=" * 60)

        return AssemblyResult(
            artifact=artifact,
            display_seconds=[entry.display_seconds for entry in schedule],
            mixed_track_labels=outcome.included_labels,
            degradations=degradations,
        )

    def validate_request(self, request: AssemblyRequest) -> None:
        """
        Reject a request before any processing starts.

        Raises:
            InputValidationError: If narration or visuals are missing
        """
        if not request.narration_audio:
            raise InputValidationError("No audio provided")
        if not request.timed_images and not request.images:
            raise InputValidationError("No images provided")

    def _voice_duration(
        self, request: AssemblyRequest, voice_path: Path, cancel_event: Optional[threading.Event]
    ) -> float:
        if request.narration_duration_seconds:
            return request.narration_duration_seconds
        try:
            duration = self.probe.duration(voice_path, cancel_event)
        except (ProcessError, ValueError) as e:
            raise InputValidationError(f"Narration audio could not be decoded: {e}") from e
        if duration <= 0:
            raise InputValidationError("Narration audio has no measurable duration")
        self.logger.info(f"Narration duration: {duration:.2f} seconds")
        return duration

    def _build_schedule(self, request: AssemblyRequest, voice_duration: float) -> list[ScheduleEntry]:
        if request.has_timed_images:
            return self.schedule_builder.build(request.timed_images, total_duration=voice_duration)
        total = request.duration or self.settings.untimed_default_duration
        return self.schedule_builder.build_untimed(request.images, total)

    def _fetch_optional_tracks(
        self,
        request: AssemblyRequest,
        workspace: Path,
        job_id: str,
        degradations: list[Degradation],
        cancel_event: Optional[threading.Event],
    ) -> list[AudioTrack]:
        downloads_dir = workspace / "downloads"
        pending: list[tuple[AssetDownload, AudioTrack]] = []

        if request.music_url:
            download = AssetDownload("music", request.music_url, downloads_dir / "music.mp3")
            pending.append(
                (
                    download,
                    AudioTrack(
                        kind=TrackKind.MUSIC,
                        source_path=download.destination,
                        label="music",
                        target_loudness_lufs=self.settings.music_target_lufs,
                        gain_multiplier=request.volume.gain_for(TrackKind.MUSIC),
                    ),
                )
            )

        for i, cue in enumerate(sorted(request.sound_effects, key=lambda c: c.timestamp_seconds), start=1):
            label = f"effect_{i:02d}"
            download = AssetDownload(label, cue.url, downloads_dir / f"{label}.mp3")
            pending.append(
                (
                    download,
                    AudioTrack(
                        kind=TrackKind.EFFECT,
                        source_path=download.destination,
                        label=label,
                        start_offset_seconds=cue.timestamp_seconds,
                        target_loudness_lufs=self.settings.effect_target_lufs,
                        gain_multiplier=request.volume.gain_for(TrackKind.EFFECT),
                    ),
                )
            )

        if not pending:
            return []

        results = self.fetcher.fetch_all([d for d, _ in pending], job_id=job_id, cancel_event=cancel_event)

        tracks = []
        for download, track in pending:
            result = results.get(download.label)
            if isinstance(result, Exception):
                error = result if isinstance(result, AssetRetrievalError) else AssetRetrievalError(str(result))
                self.logger.warning(
                    format_error_message(
                        f"Fetching {download.label}",
                        error,
                        context={"job_id": job_id, "url": download.url},
                        suggestion=get_fallback_suggestion("Asset Download", error),
                    )
                )
                degradations.append(self._degradation("retrieval", download.label, error))
                continue
            tracks.append(track)
        return tracks

    def _normalize_tracks(
        self,
        tracks: list[AudioTrack],
        output_dir: Path,
        degradations: list[Degradation],
        cancel_event: Optional[threading.Event],
    ) -> list[AudioTrack]:
        normalized = []
        for track in tracks:
            try:
                normalized.append(self.normalizer.normalize(track, output_dir, cancel_event))
            except NormalizationError as e:
                if track.kind == TrackKind.VOICE:
                    raise
                self.logger.warning(
                    format_error_message(
                        f"Normalizing {track.label}",
                        e,
                        suggestion=get_fallback_suggestion("Normalization", e),
                    )
                )
                degradations.append(self._degradation("normalization", track.label, e))
        return normalized

    @staticmethod
    def _degradation(stage: str, label: str, error: Exception) -> Degradation:
        return Degradation(
            stage=stage,
            track_label=label,
            error_type=type(error).__name__,
            message=str(error),
        )

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise JobCancelledError("Job cancelled")

    @staticmethod
    def _stage_of(error: AssemblyError) -> str:
        if isinstance(error, InputValidationError):
            return "Input"
        if isinstance(error, NormalizationError):
            return "Normalization"
        return "Encoding"
