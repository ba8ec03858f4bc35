"""Frame Writer - decodes image blobs and writes encoder-ready frames into a job workspace."""

import io
from pathlib import Path
from typing import Any

from PIL import Image, ImageOps, UnidentifiedImageError

from reel_assembler.core.config import Settings
from reel_assembler.core.errors import InputValidationError
from reel_assembler.models.schemas import ScheduleEntry


class FrameWriter:
    """Writes one JPEG per schedule entry, cropped to the output resolution."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize frame writer.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.target_size = (settings.video_width, settings.video_height)

    def write_frames(self, schedule: list[ScheduleEntry], frames_dir: Path) -> list[Path]:
        """
        Write the schedule's images as ``image_000.jpg``, ``image_001.jpg``, ...

        Args:
            schedule: Ordered schedule entries
            frames_dir: Destination directory inside the job workspace

        Returns:
            Frame paths, aligned with ``schedule``

        Raises:
            InputValidationError: If an image cannot be decoded
        """
        frames_dir.mkdir(parents=True, exist_ok=True)
        paths = []
        for entry in schedule:
            index = entry.visual.sequence_index
            path = frames_dir / f"image_{index:03d}.jpg"
            try:
                with Image.open(io.BytesIO(entry.visual.image_bytes)) as image:
                    frame = ImageOps.fit(
                        image.convert("RGB"), self.target_size, Image.Resampling.LANCZOS
                    )
            except (UnidentifiedImageError, OSError, ValueError) as e:
                raise InputValidationError(
                    f"Image {index} (t={entry.visual.timestamp_seconds:.2f}s) could not be decoded: {e}",
                    {"sequence_index": index},
                ) from e
            frame.save(path, "JPEG", quality=95)
            paths.append(path)

        self.logger.info(f"Wrote {len(paths)} frames at {self.target_size[0]}x{self.target_size[1]}")
        return paths
