"""Error Handler - user-facing error messages and degradation hints."""

from typing import Any, Optional

from reel_assembler.core.errors import (
    AssemblyError,
    AssemblyTimeoutError,
    AssetRetrievalError,
    EncodeError,
    InputValidationError,
    JobCancelledError,
    MixError,
    NormalizationError,
)
from reel_assembler.utils.process_runner import stderr_tail


def format_error_message(
    operation: str,
    error: Exception,
    context: Optional[dict] = None,
    suggestion: Optional[str] = None,
) -> str:
    """
    Format a user-friendly error message.

    Args:
        operation: What operation was being performed (e.g., "Normalizing music track")
        error: The exception that occurred
        context: Additional context (e.g., {"job_id": "...", "track": "effect_02"})
        suggestion: Optional suggestion for how to fix the issue

    Returns:
        Formatted error message
    """
    error_type = type(error).__name__
    error_msg = str(error)

    context_str = ""
    if context:
        context_parts = [f"{k}={v}" for k, v in context.items()]
        context_str = f" ({', '.join(context_parts)})"

    message = f"❌ {operation} failed{context_str}\n"
    message += f"   Error: {error_type}: {error_msg}"

    stderr = getattr(error, "stderr", "")
    if stderr:
        message += f"\n   Tool output:\n{stderr_tail(stderr, 5)}"

    if suggestion:
        message += f"\n   💡 Suggestion: {suggestion}"

    return message


def get_fallback_suggestion(stage: str, error: Exception) -> Optional[str]:
    """
    Get a suggestion for how a stage failure is handled.

    Args:
        stage: Pipeline stage ("Asset Download", "Normalization", "Mixing", "Encoding")
        error: The exception

    Returns:
        Suggestion string or None
    """
    error_msg = str(error).lower()

    if isinstance(error, JobCancelledError):
        return "Job was cancelled. Workspace has been released; resubmit to try again."

    if isinstance(error, AssemblyTimeoutError):
        return "An external step ran out of time. Shorten the narration or raise the matching *_TIMEOUT_SECONDS setting."

    if stage == "Asset Download":
        if "404" in error_msg or "not found" in error_msg:
            return "Asset URL no longer exists. Video will be produced without this track."
        elif "429" in error_msg or "rate limit" in error_msg:
            return "Upstream rate limit hit. Video will be produced without this track."
        elif "timeout" in error_msg or "timed out" in error_msg:
            return "Asset host too slow. Video will be produced without this track."
        else:
            return "Asset could not be fetched. Video will be produced without this track."

    elif stage == "Normalization":
        if isinstance(error, NormalizationError) and error.track_kind == "voice":
            return "Narration audio could not be decoded. Re-export it as mp3 or wav and resubmit."
        return "Track could not be normalized. Video will be produced without this track."

    elif stage == "Mixing":
        return "Mix failed with this track. Retrying without it; narration is always kept."

    elif stage == "Encoding":
        if "no such file" in error_msg or "could not start" in error_msg:
            return "ffmpeg not found. Install ffmpeg or set FFMPEG_PATH / FFPROBE_PATH in .env."
        elif "probe" in error_msg or "mismatch" in error_msg:
            return "Encoded file failed verification. Check encoder output for dropped streams."
        else:
            return "Encoding failed. See the encoder output above."

    elif stage == "Input":
        return "Provide narration audio and at least one decodable image."

    return None


def http_status_for(error: Exception) -> int:
    """Map a fatal pipeline error to an HTTP status code."""
    if isinstance(error, InputValidationError):
        return 400
    if isinstance(error, AssemblyTimeoutError):
        return 504
    if isinstance(error, JobCancelledError):
        return 409
    return 500


def error_payload(error: AssemblyError) -> dict[str, Any]:
    """Serializable description of a fatal error."""
    payload: dict[str, Any] = {"error": error.message, "error_type": type(error).__name__}
    if isinstance(error, EncodeError):
        payload["returncode"] = error.returncode
        payload["stderr_tail"] = stderr_tail(error.stderr, 5)
    if isinstance(error, (AssetRetrievalError, MixError)) and error.context:
        payload["context"] = error.context
    return payload
