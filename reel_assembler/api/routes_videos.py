"""FastAPI routes for video assembly."""

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from reel_assembler.core.config import Settings
from reel_assembler.core.errors import AssemblyError, InputValidationError
from reel_assembler.models.schemas import (
    AssemblyRequest,
    GenerateVideoRequest,
    GenerateVideoResponse,
    SoundEffectCue,
    TimedImageInput,
    VideoArtifact,
    VolumeConfig,
)
from reel_assembler.pipelines.assembly_orchestrator import AssemblyOrchestrator
from reel_assembler.storage.repository import ArtifactRepository
from reel_assembler.utils.error_handler import error_payload, http_status_for
from reel_assembler.utils.io_utils import decode_base64_payload

router = APIRouter(prefix="/videos", tags=["videos"])


def build_assembly_request(request: GenerateVideoRequest, settings: Settings) -> AssemblyRequest:
    """
    Convert the HTTP payload into an AssemblyRequest.

    Raises:
        InputValidationError: If audio or images are missing or not valid base64, or a gain is invalid
    """
    if not request.audio_base64:
        raise InputValidationError("No audio provided")
    if not request.timed_images and not request.images:
        raise InputValidationError("No images provided")

    try:
        narration = decode_base64_payload(request.audio_base64)
        timed_images = [
            TimedImageInput(timestamp_seconds=img.timestamp, image_bytes=decode_base64_payload(img.image_base64))
            for img in request.timed_images
        ]
        images = [] if timed_images else [decode_base64_payload(img) for img in request.images]
        volume = VolumeConfig.resolve(
            request.volume_preset or settings.default_volume_preset,
            voice_gain=request.voice_volume,
            effect_gain=request.sound_effect_volume,
            music_gain=request.music_volume,
        )
    except ValueError as e:
        raise InputValidationError(str(e)) from e

    return AssemblyRequest(
        narration_audio=narration,
        narration_duration_seconds=request.narration_duration_seconds,
        timed_images=timed_images,
        images=images,
        duration=request.duration,
        music_url=request.background_music or None,
        sound_effects=[SoundEffectCue(timestamp_seconds=fx.timestamp, url=fx.url) for fx in request.sound_effects],
        volume=volume,
    )


@router.post("/generate", response_model=GenerateVideoResponse)
def generate_video(request: GenerateVideoRequest) -> GenerateVideoResponse:
    """
    Assemble a video from narration, timed images and optional audio.

    Pipeline:
    VisualScheduleBuilder → AudioNormalizer → AudioMixer → VideoEncoder
    """
    from reel_assembler.core.config import settings
    from reel_assembler.core.logging_config import get_logger

    logger = get_logger(__name__)
    logger.info(
        f"Received video request: {len(request.timed_images) or len(request.images)} images, "
        f"music: {'yes' if request.background_music else 'no'}, effects: {len(request.sound_effects)}"
    )

    try:
        assembly_request = build_assembly_request(request, settings)
        result = AssemblyOrchestrator(settings, logger).assemble(assembly_request)
    except AssemblyError as e:
        status = http_status_for(e)
        logger.error(f"Video generation failed ({status}): {e}")
        raise HTTPException(status_code=status, detail=error_payload(e))

    artifact = result.artifact
    return GenerateVideoResponse(
        video_id=artifact.id,
        video_url=artifact.url,
        duration_seconds=artifact.duration_seconds,
        width=artifact.width_px,
        height=artifact.height_px,
        degradations=result.degradations,
    )


@router.get("/{video_id}", response_model=VideoArtifact)
def get_video(video_id: str) -> VideoArtifact:
    """Get metadata of a generated video."""
    from reel_assembler.core.config import settings
    from reel_assembler.core.logging_config import get_logger

    logger = get_logger(__name__, job_id=video_id)
    repository = ArtifactRepository(settings, logger)
    artifact = repository.load_artifact(video_id)

    if not artifact:
        raise HTTPException(status_code=404, detail=f"Video {video_id} not found")

    return artifact


@router.get("/{video_id}/file")
def download_video(video_id: str) -> FileResponse:
    """Download a generated video."""
    from reel_assembler.core.config import settings
    from reel_assembler.core.logging_config import get_logger

    logger = get_logger(__name__, job_id=video_id)
    repository = ArtifactRepository(settings, logger)
    path = repository.artifact_path(video_id)

    if path is None:
        raise HTTPException(status_code=404, detail=f"Video {video_id} not found")

    return FileResponse(path, media_type="video/mp4", filename=f"{video_id}.mp4")
