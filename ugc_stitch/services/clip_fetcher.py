"""Remote clip download from the video generation service's storage."""

import asyncio
import logging
from dataclasses import dataclass

import httpx

from ugc_stitch.config import get_settings
from ugc_stitch.exceptions import ConfigurationError, FetchFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClipSource:
    """One source clip: where it lives and its 0-based position on the timeline."""

    uri: str
    index: int


class ClipFetcher:
    """Downloads clips with the upstream API key attached to every request.

    ``transport`` is forwarded to ``httpx.AsyncClient`` so tests can plug in
    an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        api_key_header: str | None = None,
        timeout: float | None = None,
        concurrency: int | None = None,
        max_bytes: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.api_key = settings.gemini_api_key if api_key is None else api_key
        self.api_key_header = api_key_header or settings.upstream_api_key_header
        self.timeout = timeout or settings.clip_fetch_timeout_s
        self.concurrency = concurrency or settings.clip_fetch_concurrency
        self.max_bytes = max_bytes or settings.max_clip_bytes
        self._transport = transport

    def ensure_configured(self) -> None:
        if not self.api_key:
            raise ConfigurationError("GEMINI_API_KEY not configured")

    def _client(self) -> httpx.AsyncClient:
        self.ensure_configured()
        return httpx.AsyncClient(
            headers={self.api_key_header: self.api_key},
            timeout=self.timeout,
            follow_redirects=True,
            transport=self._transport,
        )

    async def fetch(self, source: ClipSource, client: httpx.AsyncClient | None = None) -> bytes:
        """Download one clip completely.

        Raises:
            FetchFailure: transport error, non-2xx status, or oversized body
        """
        if client is None:
            async with self._client() as own_client:
                return await self._fetch_with(own_client, source)
        return await self._fetch_with(client, source)

    async def _fetch_with(self, client: httpx.AsyncClient, source: ClipSource) -> bytes:
        try:
            async with client.stream("GET", source.uri) as response:
                if not response.is_success:
                    raise FetchFailure(
                        clip_index=source.index,
                        upstream_status=response.status_code,
                        reason=response.reason_phrase,
                    )
                chunks: list[bytes] = []
                received = 0
                async for chunk in response.aiter_bytes():
                    received += len(chunk)
                    if received > self.max_bytes:
                        raise FetchFailure(
                            f"Video {source.index + 1} exceeds {self.max_bytes} bytes",
                            clip_index=source.index,
                        )
                    chunks.append(chunk)
        except httpx.HTTPError as e:
            raise FetchFailure(
                f"Failed to fetch video {source.index + 1}: {e}",
                clip_index=source.index,
                reason=str(e),
            ) from e
        return b"".join(chunks)

    async def fetch_all(self, sources: list[ClipSource], session_id: str | None = None) -> list[bytes]:
        """Download all clips concurrently, returning buffers in source order.

        The first failure cancels the remaining downloads and propagates;
        buffers already downloaded are dropped with the task results.
        """
        semaphore = asyncio.Semaphore(self.concurrency)
        label = f" for session {session_id}" if session_id else ""

        async with self._client() as client:

            async def _fetch_one(source: ClipSource) -> bytes:
                async with semaphore:
                    logger.info(f"Downloading clip {source.index + 1}/{len(sources)}{label}")
                    data = await self.fetch(source, client)
                    logger.info(
                        f"Downloaded clip {source.index + 1}/{len(sources)}{label}: {len(data)} bytes"
                    )
                    return data

            tasks = [asyncio.create_task(_fetch_one(s)) for s in sources]
            try:
                return list(await asyncio.gather(*tasks))
            except BaseException:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise
