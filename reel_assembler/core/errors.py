"""Error taxonomy of the assembly pipeline.

Fatal errors (InputValidationError, a Voice NormalizationError, EncodeError,
AssemblyTimeoutError, JobCancelledError) propagate out of the orchestrator.
AssetRetrievalError, optional-track NormalizationError and MixError are
recovered inside the pipeline and recorded as degradations.
"""

from typing import Any, Optional


class AssemblyError(Exception):
    """Base class for every error raised by the assembly pipeline."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class InputValidationError(AssemblyError):
    """Raised when mandatory visuals or narration audio are missing or unreadable."""
    pass


class AssetRetrievalError(AssemblyError):
    """Raised when an optional asset (music, sound effect) cannot be fetched."""
    pass


class NormalizationError(AssemblyError):
    """Raised when a track fails both the full and the gain-only normalization pass."""

    def __init__(self, message: str, track_kind: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message, context)
        self.track_kind = track_kind


class MixError(AssemblyError):
    """Raised when the mixing filter graph fails for the current track set."""
    pass


class EncodeError(AssemblyError):
    """Raised when the encoder exits non-zero or the artifact fails verification."""

    def __init__(
        self,
        message: str,
        command: Optional[list[str]] = None,
        returncode: Optional[int] = None,
        stderr: str = "",
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.command = command or []
        self.returncode = returncode
        self.stderr = stderr


class ProcessError(AssemblyError):
    """Raised when an external tool exits with a non-zero status."""

    def __init__(self, message: str, command: list[str], returncode: int, stderr: str = ""):
        super().__init__(message, {"returncode": returncode})
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class AssemblyTimeoutError(AssemblyError, TimeoutError):
    """Raised when an external step exceeds its allotted time."""

    def __init__(self, message: str, command: Optional[list[str]] = None, timeout: Optional[float] = None):
        super().__init__(message, {"timeout": timeout})
        self.command = command or []
        self.timeout = timeout


class JobCancelledError(AssemblyError):
    """Raised when a job is cancelled while in flight."""
    pass
