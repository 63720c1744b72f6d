"""Status checks for long-running video generation operations.

The generation service itself is an external producer: this module only
asks whether an operation is done and, if so, where its clip can be
downloaded.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

from ugc_stitch.config import get_settings
from ugc_stitch.exceptions import ConfigurationError, ExtractionFailure, FetchFailure

logger = logging.getLogger(__name__)


class OperationState(str, Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


@dataclass
class OperationStatus:
    name: str
    state: OperationState
    video_uri: str | None = None
    error: str | None = None
    raw: dict[str, Any] | None = None


def _dig(payload: Any, *path: str | int) -> Any:
    """Follow ``path`` through nested dicts/lists, returning None on any miss."""
    current = payload
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or len(current) <= key:
                return None
        elif not isinstance(current, dict):
            return None
        current = current[key] if isinstance(key, int) else current.get(key)
        if current is None:
            return None
    return current


def _from_generated_videos(operation: dict[str, Any]) -> str | None:
    return _dig(operation, "response", "generatedVideos", 0, "video", "uri")


def _from_generated_samples(operation: dict[str, Any]) -> str | None:
    """predictLongRunning response shape."""
    return _dig(operation, "response", "generateVideoResponse", "generatedSamples", 0, "video", "uri")


# Tried in order until one yields a non-empty URI
URI_EXTRACTION_STRATEGIES: list[Callable[[dict[str, Any]], str | None]] = [
    _from_generated_videos,
    _from_generated_samples,
]


def extract_video_uri(
    operation: dict[str, Any],
    strategies: list[Callable[[dict[str, Any]], str | None]] | None = None,
) -> str:
    """Pull the clip URI out of a completed operation payload.

    Raises:
        ExtractionFailure: if no strategy finds a URI
    """
    for strategy in strategies or URI_EXTRACTION_STRATEGIES:
        uri = strategy(operation)
        if isinstance(uri, str) and uri:
            return uri
    raise ExtractionFailure(
        f"No video URI in completed operation {operation.get('name', '<unnamed>')}"
    )


def interpret_operation(name: str, operation: dict[str, Any]) -> OperationStatus:
    """Map an operation payload onto pending / ready / failed."""
    if not operation.get("done"):
        return OperationStatus(name=name, state=OperationState.PENDING, raw=operation)

    error = operation.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else str(error)
        return OperationStatus(
            name=name,
            state=OperationState.FAILED,
            error=message or "Video generation failed",
            raw=operation,
        )

    return OperationStatus(
        name=name,
        state=OperationState.READY,
        video_uri=extract_video_uri(operation),
        raw=operation,
    )


class OperationPoller:
    """Polls ``{upstream_base_url}/{operation_name}`` with the API key."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.api_key = settings.gemini_api_key if api_key is None else api_key
        self.api_key_header = settings.upstream_api_key_header
        self.base_url = (base_url or settings.upstream_base_url).rstrip("/")
        self.timeout = settings.clip_fetch_timeout_s
        self._transport = transport

    async def poll(self, operation_name: str) -> OperationStatus:
        """Fetch the operation once and interpret it.

        Raises:
            FetchFailure: if the status endpoint answers non-2xx or is unreachable
            ExtractionFailure: if the operation is done but carries no URI
        """
        if not self.api_key:
            raise ConfigurationError("GEMINI_API_KEY not configured")

        url = f"{self.base_url}/{operation_name.lstrip('/')}"
        try:
            async with httpx.AsyncClient(
                headers={self.api_key_header: self.api_key},
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            raise FetchFailure(f"Failed to check operation status: {e}", reason=str(e)) from e

        if not response.is_success:
            logger.error(
                f"Operation status check failed: {response.status_code} {response.text}"
            )
            raise FetchFailure(
                f"Failed to check operation status: {response.status_code} {response.reason_phrase}",
                upstream_status=response.status_code,
                reason=response.reason_phrase,
            )

        status = interpret_operation(operation_name, response.json())
        logger.info(f"Operation {operation_name}: {status.state.value}")
        return status
