"""Error codes dictionary for the stitch API.

This is the single source of truth for all error codes, their retryability,
and suggested recovery hints. Used by exception handlers to generate
machine-readable error responses. Nothing in the service retries on its own;
``retryable`` only tells the caller whether re-invoking the trigger is sensible.
"""

from typing import TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Specification for an error code."""

    retryable: bool
    suggested_fix: str


# Error codes dictionary - single source of truth
ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Validation errors (not retryable, fix input)
    # ==========================================================================
    "VALIDATION_ERROR": {
        "retryable": False,
    },
    "INVALID_CLIP_COUNT": {
        "retryable": False,
        "suggested_fix": "Send exactly one URI per generated segment",
    },
    "MISSING_SESSION_ID": {
        "retryable": False,
        "suggested_fix": "Include a sessionId chosen by the caller",
    },
    "INVALID_SEGMENT_ORDER": {
        "retryable": False,
        "suggested_fix": "Segment numbers must be unique and cover 1..N",
    },
    # ==========================================================================
    # Resource errors
    # ==========================================================================
    "SESSION_NOT_FOUND": {
        "retryable": False,
        "suggested_fix": "The video was already downloaded or expired; concatenate again",
    },
    "JOB_NOT_FOUND": {
        "retryable": False,
    },
    # ==========================================================================
    # Conflict errors
    # ==========================================================================
    "DUPLICATE_SESSION": {
        "retryable": False,
        "suggested_fix": "Use a fresh sessionId for each concatenation",
    },
    # ==========================================================================
    # Pipeline errors
    # ==========================================================================
    "FETCH_FAILED": {
        "retryable": True,
    },
    "UNSUPPORTED_FORMAT": {
        "retryable": False,
    },
    "DECODE_FAILED": {
        "retryable": False,
    },
    "ENCODE_FAILED": {
        "retryable": True,
    },
    "EMPTY_OUTPUT": {
        "retryable": False,
    },
    "EXTRACTION_FAILED": {
        "retryable": False,
    },
    # ==========================================================================
    # System errors
    # ==========================================================================
    "CONFIGURATION_ERROR": {
        "retryable": False,
        "suggested_fix": "Set GEMINI_API_KEY in the service environment",
    },
    "INTERNAL_ERROR": {
        "retryable": True,
    },
    "BAD_REQUEST": {
        "retryable": False,
    },
    "NOT_FOUND": {
        "retryable": False,
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Get error specification by code.

    Args:
        code: The error code

    Returns:
        ErrorCodeSpec with retryable flag and suggested fix
    """
    return ERROR_CODES.get(code, {"retryable": False})


def is_retryable(code: str) -> bool:
    """Check if an error code is retryable."""
    spec = get_error_spec(code)
    return spec.get("retryable", False)
