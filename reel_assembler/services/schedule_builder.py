"""Visual Schedule Builder - turns timestamped images into per-image display durations."""

import hashlib
import math
from typing import Any, Iterable, Optional, Union

from reel_assembler.core.config import Settings
from reel_assembler.core.errors import InputValidationError
from reel_assembler.models.schemas import ScheduleEntry, TimedImageInput, TimedVisual

TimedPair = Union[TimedImageInput, tuple[float, bytes]]


def evenly_spaced_timestamps(count: int, total_duration: float) -> list[float]:
    """Synthetic timestamps ``i * total / count`` for untimed images."""
    if count <= 0:
        return []
    return [(i * total_duration) / count for i in range(count)]


class VisualScheduleBuilder:
    """Builds the ordered display schedule consumed by the encoder."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize schedule builder.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.min_display_seconds = getattr(settings, "min_display_seconds", 0.5)

    def build(
        self,
        timed_images: Iterable[TimedPair],
        total_duration: Optional[float] = None,
    ) -> list[ScheduleEntry]:
        """
        Build the display schedule of a set of timestamped images.

        Images are sorted by timestamp; each non-terminal entry lasts until
        the next timestamp, never less than the minimum display time. The
        terminal entry's duration is only an estimate (``total_duration``
        minus its timestamp): its visible length is decided by the final mux.

        Args:
            timed_images: Unordered (timestamp, image) pairs
            total_duration: Expected total length (usually the narration duration)

        Returns:
            Ordered schedule entries

        Raises:
            InputValidationError: If no images were given or a timestamp is invalid
        """
        pairs = [self._as_pair(item) for item in timed_images]
        if not pairs:
            raise InputValidationError("No images provided")

        # Ties are broken by content digest so any permutation yields the same order
        pairs.sort(key=lambda p: (p[0], hashlib.sha256(p[1]).hexdigest()))

        visuals = [
            TimedVisual(sequence_index=i, timestamp_seconds=timestamp, image_bytes=image)
            for i, (timestamp, image) in enumerate(pairs)
        ]

        schedule = []
        for i, visual in enumerate(visuals):
            is_terminal = i == len(visuals) - 1
            if is_terminal:
                end = total_duration if total_duration is not None else visual.timestamp_seconds
            else:
                end = visuals[i + 1].timestamp_seconds
            display = max(end - visual.timestamp_seconds, self.min_display_seconds)
            schedule.append(ScheduleEntry(visual=visual, display_seconds=display, is_terminal=is_terminal))

        self.logger.info(
            f"Built schedule of {len(schedule)} images: "
            f"{', '.join(f'{e.display_seconds:.2f}s' for e in schedule[:-1]) or 'single image'}"
            f"{' + terminal' if len(schedule) > 1 else ''}"
        )
        return schedule

    def build_untimed(self, images: list[bytes], total_duration: float) -> list[ScheduleEntry]:
        """
        Build a schedule for images without timestamps.

        Images keep their given order and are spread evenly across
        ``total_duration``.

        Raises:
            InputValidationError: If no images were given or the duration is not positive
        """
        if not images:
            raise InputValidationError("No images provided")
        if not total_duration or total_duration <= 0 or not math.isfinite(total_duration):
            raise InputValidationError(f"Untimed images need a positive total duration, got {total_duration}")

        timestamps = evenly_spaced_timestamps(len(images), total_duration)
        self.logger.info(f"Spacing {len(images)} untimed images across {total_duration:.2f}s")

        # Build directly: synthetic timestamps are strictly increasing, so input order is kept
        schedule = []
        for i, (timestamp, image) in enumerate(zip(timestamps, images)):
            is_terminal = i == len(images) - 1
            end = total_duration if is_terminal else timestamps[i + 1]
            visual = TimedVisual(sequence_index=i, timestamp_seconds=timestamp, image_bytes=image)
            display = max(end - timestamp, self.min_display_seconds)
            schedule.append(ScheduleEntry(visual=visual, display_seconds=display, is_terminal=is_terminal))
        return schedule

    @staticmethod
    def _as_pair(item: TimedPair) -> tuple[float, bytes]:
        if isinstance(item, TimedImageInput):
            timestamp, image = item.timestamp_seconds, item.image_bytes
        else:
            timestamp, image = item

        try:
            timestamp = float(timestamp)
        except (TypeError, ValueError) as e:
            raise InputValidationError(f"Invalid image timestamp: {timestamp!r}") from e
        if not math.isfinite(timestamp) or timestamp < 0:
            raise InputValidationError(f"Invalid image timestamp: {timestamp}")
        if not image:
            raise InputValidationError(f"Empty image at timestamp {timestamp}")
        return timestamp, bytes(image)

    @staticmethod
    def estimated_duration(schedule: list[ScheduleEntry]) -> float:
        """Sum of display durations; an estimate only, the final mux truncates."""
        return sum(entry.display_seconds for entry in schedule)
