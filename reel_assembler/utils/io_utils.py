"""I/O utility functions for workspaces, payload decoding and artifact publishing."""

import base64
import binascii
import os
import re
import shutil
from datetime import datetime
from pathlib import Path

_DATA_URI_PREFIX = re.compile(r"^data:[\w/+.-]+;base64,")


def strip_data_uri(payload: str) -> str:
    """
    Remove a ``data:<mime>;base64,`` prefix from a base64 payload.

    Args:
        payload: Base64 string, optionally a data URI

    Returns:
        Bare base64 string
    """
    return _DATA_URI_PREFIX.sub("", payload.strip(), count=1)


def decode_base64_payload(payload: str) -> bytes:
    """
    Decode a base64 payload (plain or data URI).

    Raises:
        ValueError: If the payload is not valid base64
    """
    try:
        return base64.b64decode(strip_data_uri(payload), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e


def create_job_workspace(base_dir: str, job_id: str) -> Path:
    """
    Create the exclusive temporary workspace of one job.

    Args:
        base_dir: Root directory for workspaces (e.g., "storage/tmp").
        job_id: Unique job identifier.

    Returns:
        Path to the created directory.

    Raises:
        FileExistsError: If the workspace already exists (workspaces are never shared)
    """
    timestamp = datetime.now().strftime("%Y-%m-%d_%H%M%S")
    workspace = Path(base_dir) / f"{timestamp}_{job_id}"
    workspace.parent.mkdir(parents=True, exist_ok=True)
    workspace.mkdir(exist_ok=False)
    return workspace


def publish_file(source: Path, destination: Path) -> Path:
    """
    Move a finished file into place so readers never see a partial copy.

    The file is first copied next to the destination under a temporary
    name, then renamed over it.

    Args:
        source: Finished file (typically inside a job workspace)
        destination: Final location

    Returns:
        destination
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    staging = destination.with_name(f".{destination.name}.partial")
    shutil.move(str(source), str(staging))
    os.replace(staging, destination)
    return destination
