"""Media Probe - reads container metadata with ffprobe."""

import json
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from reel_assembler.core.config import Settings
from reel_assembler.utils.process_runner import ProcessRunner


@dataclass
class MediaInfo:
    """Container metadata relevant to verification."""

    duration_seconds: float
    width: Optional[int] = None
    height: Optional[int] = None
    has_video: bool = False
    has_audio: bool = False


class MediaProbe:
    """Thin ffprobe wrapper."""

    def __init__(self, settings: Settings, logger: Any, runner: Optional[ProcessRunner] = None):
        self.settings = settings
        self.logger = logger
        self.runner = runner or ProcessRunner(logger)

    def probe(self, path: Path, cancel_event: Optional[threading.Event] = None) -> MediaInfo:
        """
        Probe a media file.

        Args:
            path: File to inspect
            cancel_event: Optional cancellation token

        Returns:
            MediaInfo of the first video stream and presence of any audio stream

        Raises:
            ProcessError: If ffprobe fails
            ValueError: If ffprobe output cannot be parsed
        """
        args = [
            self.settings.ffprobe_path,
            "-v", "error",
            "-show_entries", "stream=codec_type,width,height:format=duration",
            "-of", "json",
            str(path),
        ]
        result = self.runner.run(
            args,
            timeout=self.settings.probe_timeout_seconds,
            cancel_event=cancel_event,
            description=f"ffprobe {path.name}",
        )
        return self.parse_probe_output(result.stdout)

    @staticmethod
    def parse_probe_output(stdout: str) -> MediaInfo:
        """Parse ``ffprobe -of json`` output."""
        try:
            data = json.loads(stdout or "{}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Unreadable ffprobe output: {e}") from e

        streams = data.get("streams") or []
        video = next((s for s in streams if s.get("codec_type") == "video"), None)
        has_audio = any(s.get("codec_type") == "audio" for s in streams)

        duration_raw = (data.get("format") or {}).get("duration")
        try:
            duration = float(duration_raw) if duration_raw not in (None, "N/A") else 0.0
        except (TypeError, ValueError):
            duration = 0.0

        return MediaInfo(
            duration_seconds=duration,
            width=int(video["width"]) if video and video.get("width") else None,
            height=int(video["height"]) if video and video.get("height") else None,
            has_video=video is not None,
            has_audio=has_audio,
        )

    def duration(self, path: Path, cancel_event: Optional[threading.Event] = None) -> float:
        """Duration of a media file in seconds (0.0 when the container does not report one)."""
        return self.probe(path, cancel_event).duration_seconds
