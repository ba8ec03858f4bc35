"""Pydantic models and schemas for the media assembly pipeline."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Enums
# ============================================================================


class TrackKind(str, Enum):
    """Role of an audio track in the mix."""

    VOICE = "voice"
    MUSIC = "music"
    EFFECT = "effect"
    MIXED = "mixed"


class VolumePreset(str, Enum):
    """Named gain triples offered to callers."""

    VOICE_FOCUS = "voice_focus"
    BALANCED = "balanced"
    CINEMATIC = "cinematic"


# ============================================================================
# Volume Models
# ============================================================================


class VolumeConfig(BaseModel):
    """Per-kind gain multipliers, applied after loudness normalization."""

    voice_gain: float = Field(default=1.0, ge=0.0, description="Narration gain (1.0 = calibrated baseline)")
    effect_gain: float = Field(default=0.7, ge=0.0, description="Sound effect gain")
    music_gain: float = Field(default=0.2, ge=0.0, description="Background music gain")

    @classmethod
    def from_preset(cls, preset: "VolumePreset | str") -> "VolumeConfig":
        """Build the gain triple of a named preset."""
        return VOLUME_PRESETS[VolumePreset(preset)].model_copy()

    @classmethod
    def resolve(
        cls,
        preset: "VolumePreset | str",
        voice_gain: Optional[float] = None,
        effect_gain: Optional[float] = None,
        music_gain: Optional[float] = None,
    ) -> "VolumeConfig":
        """
        Gains of a preset with explicit per-kind overrides applied on top.

        Raises:
            ValueError: Unknown preset, or a ValidationError for a negative gain
        """
        overrides = {"voice_gain": voice_gain, "effect_gain": effect_gain, "music_gain": music_gain}
        return cls.model_validate(
            {**cls.from_preset(preset).model_dump(), **{k: v for k, v in overrides.items() if v is not None}}
        )

    def gain_for(self, kind: TrackKind) -> float:
        if kind == TrackKind.VOICE:
            return self.voice_gain
        if kind == TrackKind.MUSIC:
            return self.music_gain
        if kind == TrackKind.EFFECT:
            return self.effect_gain
        return 1.0


VOLUME_PRESETS: dict[VolumePreset, VolumeConfig] = {
    VolumePreset.VOICE_FOCUS: VolumeConfig(voice_gain=1.5, effect_gain=0.4, music_gain=0.15),
    VolumePreset.BALANCED: VolumeConfig(voice_gain=1.0, effect_gain=0.7, music_gain=0.2),
    VolumePreset.CINEMATIC: VolumeConfig(voice_gain=1.2, effect_gain=1.0, music_gain=0.4),
}


# ============================================================================
# Visual Models
# ============================================================================


class TimedVisual(BaseModel):
    """An image and the narration time at which it should appear."""

    model_config = ConfigDict(frozen=True)

    sequence_index: int = Field(..., ge=0, description="Position after sorting by timestamp (derived)")
    timestamp_seconds: float = Field(..., ge=0.0, description="Narration time at which the image appears")
    image_bytes: bytes = Field(..., repr=False, description="Encoded image data")


class ScheduleEntry(BaseModel):
    """One image of the display schedule and how long it stays on screen."""

    model_config = ConfigDict(frozen=True)

    visual: TimedVisual
    display_seconds: float = Field(..., gt=0.0, description="On-screen duration (estimate for the terminal entry)")
    is_terminal: bool = Field(default=False, description="Last entry; its visible length is set by the final mux")


# ============================================================================
# Audio Models
# ============================================================================


class AudioTrack(BaseModel):
    """An audio source on the shared timeline, stored as a file in the job workspace."""

    model_config = ConfigDict(frozen=True)

    kind: TrackKind
    source_path: Path = Field(..., description="Audio file inside the job workspace")
    label: str = Field(..., description="Human readable track name (voice, music, effect_01, ...)")
    start_offset_seconds: float = Field(default=0.0, ge=0.0, description="Placement offset (effects only)")
    target_loudness_lufs: float = Field(..., description="Integrated loudness target of the normalizer")
    gain_multiplier: float = Field(default=1.0, ge=0.0, description="Gain applied after normalization")
    duration_seconds: Optional[float] = Field(default=None, ge=0.0, description="Measured content duration")
    normalized: bool = Field(default=False, description="True once the track went through the normalizer")
    gain_only: bool = Field(default=False, description="True when only the gain-only fallback pass succeeded")


class SoundEffectCue(BaseModel):
    """A sound effect reference and the narration time at which it plays."""

    timestamp_seconds: float = Field(..., ge=0.0, description="Placement offset on the narration timeline")
    url: str = Field(..., description="Remote audio asset")


class MixPlan(BaseModel):
    """Normalized tracks plus the weighting and duration policy of one mix attempt."""

    voice: AudioTrack
    optional_tracks: list[AudioTrack] = Field(default_factory=list, description="Music and effects, in input order")
    voice_duration_seconds: float = Field(..., ge=0.0, description="Anchor duration used for the music fade")
    duration_policy: str = Field(default="longest", description="amix duration policy of the intermediate mix")

    @property
    def tracks(self) -> list[AudioTrack]:
        return [self.voice, *self.optional_tracks]

    def without(self, labels: set[str]) -> "MixPlan":
        """Copy of the plan with the named optional tracks excluded."""
        kept = [t for t in self.optional_tracks if t.label not in labels]
        return self.model_copy(update={"optional_tracks": kept})


# ============================================================================
# Job Models
# ============================================================================


class TimedImageInput(BaseModel):
    """A caller-supplied image with its timestamp."""

    timestamp_seconds: float = Field(..., ge=0.0)
    image_bytes: bytes = Field(..., repr=False)


class AssemblyRequest(BaseModel):
    """Everything the orchestrator needs to assemble one video."""

    narration_audio: bytes = Field(..., repr=False, description="Decodable narration audio (e.g. mp3)")
    narration_duration_seconds: Optional[float] = Field(
        default=None, gt=0.0, description="Measured narration duration; probed when omitted"
    )
    timed_images: list[TimedImageInput] = Field(default_factory=list, description="Images with timestamps")
    images: list[bytes] = Field(default_factory=list, repr=False, description="Untimed images (fallback mode)")
    duration: Optional[float] = Field(
        default=None, gt=0.0, description="Total duration over which untimed images are spread"
    )
    music_url: Optional[str] = Field(default=None, description="Optional background music asset")
    sound_effects: list[SoundEffectCue] = Field(default_factory=list, description="Optional timed sound effects")
    volume: VolumeConfig = Field(default_factory=VolumeConfig, description="Gain triple")

    @property
    def has_timed_images(self) -> bool:
        return len(self.timed_images) > 0


class AssemblyJob(BaseModel):
    """State owned by one in-flight assembly."""

    id: str = Field(..., description="Job UUID, also the artifact identifier")
    visuals: list[TimedVisual] = Field(default_factory=list)
    tracks: list[AudioTrack] = Field(default_factory=list)
    workspace_path: Path


class VideoArtifact(BaseModel):
    """A verified, packaged video."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Artifact identifier (job UUID)")
    path: str = Field(..., description="Storage path of the mp4 file")
    url: str = Field(..., description="Externally addressable URL")
    width_px: int = Field(..., gt=0)
    height_px: int = Field(..., gt=0)
    duration_seconds: float = Field(..., ge=0.0)
    created_at: datetime = Field(default_factory=datetime.now)


class Degradation(BaseModel):
    """A recovered failure: the job went on with reduced audio richness."""

    stage: str = Field(..., description="retrieval, normalization or mixing")
    track_label: str
    error_type: str
    message: str


class AssemblyResult(BaseModel):
    """Outcome of a successful assembly."""

    artifact: VideoArtifact
    display_seconds: list[float] = Field(default_factory=list, description="Schedule durations, in order")
    mixed_track_labels: list[str] = Field(default_factory=list, description="Tracks present in the final mix")
    degradations: list[Degradation] = Field(default_factory=list)


# ============================================================================
# API Request/Response Models
# ============================================================================


class TimedImagePayload(BaseModel):
    """Timed image as sent over HTTP."""

    timestamp: float = Field(..., ge=0.0, description="Timestamp in seconds")
    image_base64: str = Field(..., description="Base64 image, optionally a data URI")


class SoundEffectPayload(BaseModel):
    """Sound effect as sent over HTTP."""

    timestamp: float = Field(..., ge=0.0, description="Timestamp in seconds")
    url: str = Field(..., description="Audio URL")


class GenerateVideoRequest(BaseModel):
    """Request body of POST /videos/generate."""

    audio_base64: str = Field(..., description="Base64 narration audio, optionally a data URI")
    narration_duration_seconds: Optional[float] = Field(default=None, gt=0.0)
    timed_images: list[TimedImagePayload] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list, description="Untimed base64 images")
    duration: Optional[float] = Field(default=None, gt=0.0, description="Total duration for untimed images")
    background_music: Optional[str] = Field(default=None, description="Background music URL")
    sound_effects: list[SoundEffectPayload] = Field(default_factory=list)
    volume_preset: Optional[VolumePreset] = Field(default=None)
    voice_volume: Optional[float] = Field(default=None, ge=0.0)
    sound_effect_volume: Optional[float] = Field(default=None, ge=0.0)
    music_volume: Optional[float] = Field(default=None, ge=0.0)


class GenerateVideoResponse(BaseModel):
    """Response body of POST /videos/generate."""

    video_id: str
    video_url: str
    duration_seconds: float
    width: int
    height: int
    degradations: list[Degradation] = Field(default_factory=list)
