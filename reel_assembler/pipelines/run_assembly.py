"""Command-line assembly - narration + images (+ music, effects) → one verified video."""

import argparse
import sys
from pathlib import Path
from typing import Optional

from reel_assembler.core.config import settings
from reel_assembler.core.errors import AssemblyError
from reel_assembler.core.logging_config import get_logger, setup_logging
from reel_assembler.models.schemas import (
    AssemblyRequest,
    SoundEffectCue,
    TimedImageInput,
    VolumeConfig,
    VolumePreset,
)
from reel_assembler.pipelines.assembly_orchestrator import AssemblyOrchestrator


def parse_timed_value(value: str) -> tuple[Optional[float], str]:
    """
    Split ``TIMESTAMP=VALUE`` into its parts.

    A value without a numeric prefix is returned with a None timestamp.
    """
    head, sep, tail = value.partition("=")
    if not sep:
        return None, value
    try:
        return float(head), tail
    except ValueError:
        return None, value


def build_request(args: argparse.Namespace) -> AssemblyRequest:
    """
    Read the files named on the command line into an AssemblyRequest.

    Raises:
        ValueError: If timed and untimed images are mixed or a sound effect has no timestamp
        OSError: If a file cannot be read
    """
    narration = Path(args.narration).read_bytes()

    timed_images = []
    images = []
    for value in args.image:
        timestamp, path = parse_timed_value(value)
        data = Path(path).read_bytes()
        if timestamp is None:
            images.append(data)
        else:
            timed_images.append(TimedImageInput(timestamp_seconds=timestamp, image_bytes=data))
    if timed_images and images:
        raise ValueError("Use either TIMESTAMP=PATH for every --image or plain paths for all of them")

    effects = []
    for value in args.sound_effect:
        timestamp, url = parse_timed_value(value)
        if timestamp is None:
            raise ValueError(f"--sound-effect needs TIMESTAMP=URL, got {value!r}")
        effects.append(SoundEffectCue(timestamp_seconds=timestamp, url=url))

    volume = VolumeConfig.resolve(
        args.volume_preset or settings.default_volume_preset,
        voice_gain=args.voice_volume,
        effect_gain=args.effect_volume,
        music_gain=args.music_volume,
    )

    return AssemblyRequest(
        narration_audio=narration,
        timed_images=timed_images,
        images=images,
        duration=args.duration,
        music_url=args.music_url,
        sound_effects=effects,
        volume=volume,
    )


def main(argv: Optional[list[str]] = None) -> int:
    """Main entrypoint for command-line assembly."""
    parser = argparse.ArgumentParser(
        description="Reel Assembler - assemble narration and timed images into a video",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--narration",
        type=str,
        required=True,
        help="Narration audio file (mp3, wav, ...)",
    )
    parser.add_argument(
        "--image",
        type=str,
        action="append",
        default=[],
        help="Image as TIMESTAMP=PATH (e.g. 3.5=scene2.png), or plain PATH for evenly spaced images. Repeatable.",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help=f"Total duration for plain PATH images (default: {settings.untimed_default_duration:g}s)",
    )
    parser.add_argument(
        "--music-url",
        type=str,
        default=None,
        help="Background music URL (optional)",
    )
    parser.add_argument(
        "--sound-effect",
        type=str,
        action="append",
        default=[],
        help="Sound effect as TIMESTAMP=URL. Repeatable.",
    )
    parser.add_argument(
        "--volume-preset",
        type=str,
        default=None,
        choices=[p.value for p in VolumePreset],
        help=f"Volume preset (default: {settings.default_volume_preset})",
    )
    parser.add_argument("--voice-volume", type=float, default=None, help="Override narration gain")
    parser.add_argument("--music-volume", type=float, default=None, help="Override music gain")
    parser.add_argument("--effect-volume", type=float, default=None, help="Override sound effect gain")
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help=f"Output directory for videos (default: {settings.artifacts_path})",
    )

    args = parser.parse_args(argv)

    if not args.image:
        parser.error("At least one --image is required")
    for name in ("duration", "voice_volume", "music_volume", "effect_volume"):
        value = getattr(args, name)
        if value is not None and value < 0:
            parser.error(f"--{name.replace('_', '-')} must not be negative")

    if args.output_dir:
        settings.artifacts_path = args.output_dir

    setup_logging(log_level=settings.log_level, log_file=settings.log_file)
    logger = get_logger(__name__)

    logger.info("=" * 60)
    logger.info("Reel Assembler - Command Line")
    logger.info(f"Narration: {args.narration}")
    logger.info(f"Images: {len(args.image)}")
    logger.info(f"Music: {args.music_url or 'none'}")
    logger.info(f"Sound effects: {len(args.sound_effect)}")
    logger.info("=" * 60)

    try:
        request = build_request(args)
    except (OSError, ValueError) as e:
        logger.error(f"❌ Invalid input: {e}")
        return 1

    try:
        result = AssemblyOrchestrator(settings, logger).assemble(request)
    except AssemblyError as e:
        logger.error(f"❌ Assembly failed: {type(e).__name__}: {e}")
        return 1

    for degradation in result.degradations:
        logger.warning(
            f"⚠️  {degradation.track_label} dropped during {degradation.stage}: "
            f"{degradation.error_type}: {degradation.message}"
        )

    logger.info(f"✅ Video ready: {result.artifact.path}")
    logger.info(
        f"   {result.artifact.width_px}x{result.artifact.height_px}, "
        f"{result.artifact.duration_seconds:.2f}s, tracks: {', '.join(result.mixed_track_labels)}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
