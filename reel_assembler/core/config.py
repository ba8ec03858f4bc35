"""Application configuration using pydantic-settings."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via environment variables or a .env file.
    See .env.example for a template.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================================================
    # Application Settings
    # ========================================================================
    app_name: str = Field(default="Reel Assembler", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_file: Optional[str] = Field(default=None, description="Optional path of a rotating log file")

    # ========================================================================
    # External Tools
    # ========================================================================
    ffmpeg_path: str = Field(default="ffmpeg", description="ffmpeg executable (name on PATH or absolute path)")
    ffprobe_path: str = Field(default="ffprobe", description="ffprobe executable (name on PATH or absolute path)")

    # ========================================================================
    # Storage Settings
    # ========================================================================
    workspace_root: str = Field(
        default="storage/tmp",
        description="Root directory for per-job temporary workspaces (deleted after each job)",
    )
    artifacts_path: str = Field(default="storage/videos", description="Directory for final video artifacts")
    artifact_url_prefix: str = Field(default="/videos", description="Public URL prefix for served artifacts")
    keep_workspace: bool = Field(
        default=False,
        description="Keep job workspaces after completion (debugging only, default: false)",
    )

    # ========================================================================
    # Video Encoding Settings
    # ========================================================================
    video_width: int = Field(default=1920, description="Output width in pixels (default: 1920)")
    video_height: int = Field(default=1080, description="Output height in pixels (default: 1080)")
    video_fps: int = Field(default=30, description="Output frame rate (default: 30)")
    zoom_increment: float = Field(default=0.0015, description="Per-frame zoom step of the slow zoom")
    zoom_max: float = Field(default=1.05, description="Maximum zoom factor of the slow zoom")
    video_codec: str = Field(default="libx264", description="Video codec passed to ffmpeg")
    audio_codec: str = Field(default="aac", description="Audio codec of the packaged artifact")
    audio_bitrate: str = Field(default="320k", description="Audio bitrate of the packaged artifact")

    # ========================================================================
    # Loudness Targets
    # ========================================================================
    # Music and effects sit 8 LU under the narration.
    voice_target_lufs: float = Field(default=-16.0, description="Integrated loudness target for narration")
    voice_loudness_range: float = Field(default=11.0, description="Loudness range target for narration")
    voice_true_peak: float = Field(default=-1.5, description="True peak ceiling for narration (dBTP)")
    music_target_lufs: float = Field(default=-24.0, description="Integrated loudness target for music")
    music_loudness_range: float = Field(default=7.0, description="Loudness range target for music")
    music_true_peak: float = Field(default=-2.0, description="True peak ceiling for music (dBTP)")
    effect_target_lufs: float = Field(default=-24.0, description="Integrated loudness target for sound effects")
    effect_loudness_range: float = Field(default=7.0, description="Loudness range target for sound effects")
    effect_true_peak: float = Field(default=-2.0, description="True peak ceiling for sound effects (dBTP)")
    compressor_threshold_db: float = Field(default=-18.0, description="Threshold of the light compression pass")
    compressor_ratio: float = Field(default=2.0, description="Ratio of the light compression pass")
    compressor_attack_ms: float = Field(default=20.0, description="Attack of the light compression pass")
    compressor_release_ms: float = Field(default=250.0, description="Release of the light compression pass")

    # ========================================================================
    # Schedule & Mix Timing
    # ========================================================================
    min_display_seconds: float = Field(default=0.5, description="Minimum on-screen time per image")
    untimed_default_duration: float = Field(
        default=5.0, description="Total duration used to space untimed images when none is given"
    )
    effect_fade_in_seconds: float = Field(default=0.5, description="Fade-in applied to each sound effect")
    effect_fade_out_seconds: float = Field(default=0.7, description="Fade-out applied to each sound effect")
    music_fade_in_seconds: float = Field(default=1.5, description="Fade-in applied to background music")
    music_fade_out_seconds: float = Field(
        default=3.0, description="Fade-out window of background music, anchored to the narration end"
    )
    voice_mix_weight: float = Field(default=1.0, description="amix weight of the narration")
    music_mix_weight: float = Field(default=0.5, description="amix weight of background music")
    effect_mix_weight: float = Field(default=1.0, description="amix weight of each sound effect")
    intermediate_audio_codec: str = Field(default="libmp3lame", description="Codec of intermediate audio files")
    intermediate_audio_quality: str = Field(default="3", description="VBR quality (-q:a) of intermediate audio")

    # ========================================================================
    # Volume Settings
    # ========================================================================
    default_volume_preset: str = Field(
        default="balanced",
        description="Volume preset used when a request names none: 'voice_focus', 'balanced' or 'cinematic'",
    )

    # ========================================================================
    # Parallelism, Rate Limiting & Timeouts
    # ========================================================================
    max_parallel_downloads: int = Field(
        default=4,
        description="Maximum number of optional assets downloaded concurrently (default: 4, set to 1 for sequential)",
    )
    enable_rate_limiting: bool = Field(default=True, description="Throttle asset downloads (default: true)")
    download_rate_limit: int = Field(default=30, description="Asset downloads per minute (default: 30)")
    download_timeout_seconds: float = Field(default=60.0, description="Timeout of a single asset download")
    max_download_bytes: int = Field(
        default=100 * 1024 * 1024, description="Largest optional asset accepted (default: 100 MB)"
    )
    probe_timeout_seconds: float = Field(default=30.0, description="Timeout of a single ffprobe call")
    normalize_timeout_seconds: float = Field(default=180.0, description="Timeout of a single normalization pass")
    mix_timeout_seconds: float = Field(default=300.0, description="Timeout of a single mix attempt")
    encode_timeout_seconds: float = Field(default=900.0, description="Timeout of the final encode")


# Global settings instance
settings = Settings()
