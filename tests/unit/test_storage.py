"""Tests for storage repository."""

import pytest

from reel_assembler.models.schemas import VideoArtifact
from reel_assembler.storage.repository import ArtifactRepository


@pytest.fixture
def repository(settings, logger):
    """Create repository with temp storage."""
    return ArtifactRepository(settings, logger)


@pytest.fixture
def sample_artifact(settings):
    """Create sample artifact for testing."""
    return VideoArtifact(
        id="0b7d4c3e-1111-4c3a-9a55-2f5f1c8e9d01",
        path=f"{settings.artifacts_path}/0b7d4c3e-1111-4c3a-9a55-2f5f1c8e9d01.mp4",
        url="/videos/0b7d4c3e-1111-4c3a-9a55-2f5f1c8e9d01.mp4",
        width_px=1920,
        height_px=1080,
        duration_seconds=10.0,
    )


def test_save_artifact(repository, sample_artifact, settings):
    """Test saving artifact metadata creates a JSON file next to the video."""
    path = repository.save_artifact(sample_artifact)

    assert path.exists()
    assert path.parent == repository.storage_path
    assert path.name == f"{sample_artifact.id}.json"


def test_load_artifact(repository, sample_artifact):
    """Test loading artifact metadata returns the same data."""
    repository.save_artifact(sample_artifact)

    loaded = repository.load_artifact(sample_artifact.id)

    assert loaded == sample_artifact


def test_load_nonexistent_artifact(repository):
    """Test loading a non-existent artifact returns None."""
    assert repository.load_artifact("nonexistent") is None


def test_malformed_ids_are_rejected(repository):
    """Test that path-like IDs never reach the filesystem."""
    assert repository.load_artifact("../secrets") is None
    assert repository.artifact_path("../../etc/passwd") is None


def test_artifact_path(repository, sample_artifact):
    """Test that only existing videos resolve."""
    assert repository.artifact_path(sample_artifact.id) is None

    (repository.storage_path / f"{sample_artifact.id}.mp4").write_bytes(b"video")

    assert repository.artifact_path(sample_artifact.id) == repository.storage_path / f"{sample_artifact.id}.mp4"


def test_list_artifacts(repository, sample_artifact):
    """Test listing artifacts returns all IDs."""
    repository.save_artifact(sample_artifact)

    assert repository.list_artifacts() == [sample_artifact.id]
