"""Custom exceptions for the stitch backend.

Every failure the pipeline can surface to a caller is a ``StitchError``
subclass carrying a machine-readable code (see ``constants/error_codes.py``)
and the HTTP status the API layer answers with.
"""

from typing import Any

from ugc_stitch.constants.error_codes import get_error_spec


class StitchError(Exception):
    """Base exception for all stitch application errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        super().__init__(self.message)

    def to_response_body(self) -> dict[str, Any]:
        """Convert exception to the JSON error body returned by the API."""
        spec = get_error_spec(self.code)
        body: dict[str, Any] = {
            "error": self.message,
            "code": self.code,
            "retryable": spec.get("retryable", False),
        }
        if "suggested_fix" in spec:
            body["suggested_fix"] = spec["suggested_fix"]
        return body


# =============================================================================
# Validation Errors (400)
# =============================================================================


class ValidationError(StitchError):
    """Malformed concatenation request. Raised before any side effect."""

    code = "VALIDATION_ERROR"
    status_code = 400
    message = "Invalid request"


class InvalidClipCountError(ValidationError):
    code = "INVALID_CLIP_COUNT"

    def __init__(self, expected: int, actual: int | None = None):
        self.expected = expected
        self.actual = actual
        message = f"Exactly {expected} video URIs are required"
        if actual is not None:
            message += f" (got {actual})"
        super().__init__(message)


class MissingSessionIdError(ValidationError):
    code = "MISSING_SESSION_ID"
    message = "Session ID is required"


class InvalidSegmentOrderError(ValidationError):
    code = "INVALID_SEGMENT_ORDER"
    message = "Invalid segment ordering"


# =============================================================================
# Resource Not Found Errors (404)
# =============================================================================


class NotFound(StitchError):
    """Session absent or already consumed."""

    code = "SESSION_NOT_FOUND"
    status_code = 404
    message = "Concatenated video not found or expired"

    def __init__(self, session_id: str | None = None, message: str | None = None):
        self.session_id = session_id
        super().__init__(message)


class JobNotFoundError(NotFound):
    code = "JOB_NOT_FOUND"
    message = "Concatenation job not found"


# =============================================================================
# Conflict Errors (409)
# =============================================================================


class DuplicateSession(StitchError):
    code = "DUPLICATE_SESSION"
    status_code = 409
    message = "Session ID is already in use"

    def __init__(self, session_id: str | None = None):
        self.session_id = session_id
        message = f"Session ID is already in use: {session_id}" if session_id else None
        super().__init__(message)


# =============================================================================
# Pipeline Errors (500)
# =============================================================================


class PipelineError(StitchError):
    """Base class for failures that abort a concatenation job."""

    status_code = 500

    def __init__(self, message: str | None = None, *, clip_index: int | None = None):
        self.clip_index = clip_index
        super().__init__(message)


class FetchFailure(PipelineError):
    """A clip could not be downloaded (unreachable, non-2xx, too large)."""

    code = "FETCH_FAILED"
    message = "Failed to fetch video"

    def __init__(
        self,
        message: str | None = None,
        *,
        clip_index: int | None = None,
        upstream_status: int | None = None,
        reason: str | None = None,
    ):
        self.upstream_status = upstream_status
        self.reason = reason
        if message is None and upstream_status is not None:
            label = f"video {clip_index + 1}" if clip_index is not None else "video"
            message = f"Failed to fetch {label}: {upstream_status} {reason or ''}".rstrip()
        super().__init__(message, clip_index=clip_index)


class UnsupportedFormat(PipelineError):
    """Buffer is not a readable container or carries no video track."""

    code = "UNSUPPORTED_FORMAT"
    message = "Unsupported media format"


class ClipDecodeError(PipelineError):
    code = "DECODE_FAILED"
    message = "Failed to decode video"


class EncodeFailure(PipelineError):
    code = "ENCODE_FAILED"
    message = "Failed to encode concatenated video"


class EmptyOutput(PipelineError):
    code = "EMPTY_OUTPUT"
    message = "No video samples were produced"


class ExtractionFailure(PipelineError):
    """A completed operation payload did not contain a clip URI."""

    code = "EXTRACTION_FAILED"
    message = "Could not extract video URI from operation response"


# =============================================================================
# System Errors (500)
# =============================================================================


class ConfigurationError(StitchError):
    code = "CONFIGURATION_ERROR"
    status_code = 500
    message = "Service is not configured"
