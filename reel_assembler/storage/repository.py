"""Storage repository for video artifacts."""

import json
import re
from pathlib import Path
from typing import Any, Optional

from reel_assembler.core.config import Settings
from reel_assembler.models.schemas import VideoArtifact

_ARTIFACT_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class ArtifactRepository:
    """Repository for storing and loading artifact metadata next to the published videos."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize the repository.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.storage_path = Path(settings.artifacts_path)
        self.storage_path.mkdir(parents=True, exist_ok=True)

    def artifact_path(self, artifact_id: str) -> Optional[Path]:
        """
        Path of a published video, if it exists.

        Args:
            artifact_id: Artifact identifier

        Returns:
            Path of the mp4 file, or None for unknown or malformed IDs
        """
        if not _ARTIFACT_ID.match(artifact_id):
            return None
        path = self.storage_path / f"{artifact_id}.mp4"
        return path if path.exists() else None

    def save_artifact(self, artifact: VideoArtifact) -> Path:
        """
        Save artifact metadata to storage.

        Args:
            artifact: Published artifact

        Returns:
            Path of the metadata file
        """
        file_path = self.storage_path / f"{artifact.id}.json"

        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(artifact.model_dump(mode="json"), f, indent=2, ensure_ascii=False)

        self.logger.info(f"Artifact metadata saved to: {file_path}")
        return file_path

    def load_artifact(self, artifact_id: str) -> Optional[VideoArtifact]:
        """
        Load artifact metadata from storage.

        Args:
            artifact_id: Artifact identifier

        Returns:
            VideoArtifact if found, None otherwise
        """
        if not _ARTIFACT_ID.match(artifact_id):
            self.logger.warning(f"Rejected malformed artifact ID: {artifact_id!r}")
            return None

        file_path = self.storage_path / f"{artifact_id}.json"

        if not file_path.exists():
            self.logger.warning(f"Artifact not found: {artifact_id}")
            return None

        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        return VideoArtifact(**data)

    def list_artifacts(self) -> list[str]:
        """
        List all artifact IDs.

        Returns:
            List of artifact IDs, sorted
        """
        artifact_ids = sorted(f.stem for f in self.storage_path.glob("*.json"))
        self.logger.info(f"Found {len(artifact_ids)} artifacts")
        return artifact_ids
