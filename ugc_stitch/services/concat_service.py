"""Concatenation job orchestration.

fetch (concurrent) → demux/re-time/encode (sequential, worker thread) →
commit to the result store. The store is written only after the output has
been finalized, so a failed job never leaves a partial video behind.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Callable, Iterator

from ugc_stitch.config import get_settings
from ugc_stitch.exceptions import (
    InvalidClipCountError,
    MissingSessionIdError,
    PipelineError,
    StitchError,
    ValidationError,
)
from ugc_stitch.render.compositor import ClipOpener, CompositionResult, TimelineCompositor, order_clip_sources
from ugc_stitch.render.demuxer import ClipDemuxer
from ugc_stitch.render.encoder import ConcatEncoder
from ugc_stitch.schemas.concat import ConcatenateRequest
from ugc_stitch.services.clip_fetcher import ClipFetcher, ClipSource
from ugc_stitch.services.job_registry import ConcatenationJob, JobRegistry, build_job_registry
from ugc_stitch.services.result_store import ResultStore, result_store
from ugc_stitch.utils.media_info import probe_video_bytes

logger = logging.getLogger(__name__)


def _drain(buffers: deque[bytes]) -> Iterator[bytes]:
    """Hand each buffer over exactly once, keeping no reference behind."""
    while buffers:
        yield buffers.popleft()


class ConcatenationService:
    def __init__(
        self,
        store: ResultStore,
        registry: JobRegistry | None = None,
        *,
        fetcher: ClipFetcher | None = None,
        encoder_factory: Callable[[], ConcatEncoder] = ConcatEncoder,
        open_clip: ClipOpener = ClipDemuxer,
        expected_clip_count: int | None = None,
    ):
        self.store = store
        self.registry = registry or build_job_registry(store)
        self.fetcher = fetcher or ClipFetcher()
        self.encoder_factory = encoder_factory
        self.open_clip = open_clip
        self.expected_clip_count = expected_clip_count or get_settings().expected_clip_count

    def validate(self, request: ConcatenateRequest) -> tuple[str, list[ClipSource]]:
        """Check the request and resolve the clip order. No side effects.

        Raises:
            ValidationError: wrong clip count, missing session id, bad ordering
        """
        if request.clips is not None and request.clip_uris is not None:
            raise ValidationError("Send either clipUris or clips, not both")

        if request.clips is not None:
            if len(request.clips) != self.expected_clip_count:
                raise InvalidClipCountError(self.expected_clip_count, len(request.clips))
            uris = order_clip_sources([(c.uri, c.segment_number) for c in request.clips])
        else:
            uris = request.clip_uris
            if uris is None or len(uris) != self.expected_clip_count:
                raise InvalidClipCountError(
                    self.expected_clip_count, len(uris) if uris is not None else None
                )

        if any(not uri or not uri.strip() for uri in uris):
            raise ValidationError("Video URIs must be non-empty")

        session_id = (request.session_id or "").strip()
        if not session_id:
            raise MissingSessionIdError()

        return session_id, [ClipSource(uri=uri, index=i) for i, uri in enumerate(uris)]

    def submit(self, session_id: str, sources: list[ClipSource]) -> ConcatenationJob:
        """Register a pending job.

        Raises:
            ConfigurationError: no upstream credential, so no clip could be fetched
            DuplicateSession: the session id is taken
        """
        self.fetcher.ensure_configured()
        job = self.registry.register(session_id, len(sources))
        logger.info(f"Accepted concatenation job for session {session_id} ({len(sources)} clips)")
        return job

    async def run(self, session_id: str, sources: list[ClipSource]) -> CompositionResult:
        """Run a registered job to completion, committing its output on success.

        Raises:
            StitchError: the failure that aborted the job (already recorded)
        """
        self.registry.mark_running(session_id)
        logger.info(f"Starting video concatenation for session {session_id}")
        try:
            buffers = await self.fetcher.fetch_all(sources, session_id=session_id)
            data, result = await asyncio.to_thread(self._compose, session_id, buffers)
            del buffers
            self.store.put(session_id, data)
        except StitchError as e:
            clip = (
                f" (clip {e.clip_index + 1})"
                if isinstance(e, PipelineError) and e.clip_index is not None
                else ""
            )
            logger.error(f"Concatenation failed for session {session_id}{clip}: {e.message}")
            self.registry.mark_failed(session_id, e.message, e.code)
            raise
        except Exception:
            logger.exception(f"Unexpected error concatenating session {session_id}")
            self.registry.mark_failed(session_id, "Failed to concatenate videos", "INTERNAL_ERROR")
            raise

        self.registry.mark_succeeded(
            session_id,
            output_size=len(data),
            total_duration_us=result.total_duration_us,
            sample_count=result.sample_count,
        )
        logger.info(
            f"Video concatenation completed for session {session_id}! "
            f"Total duration: {result.total_duration_s:.3f}s, Size: {len(data)} bytes"
        )
        return result

    async def run_in_background(self, session_id: str, sources: list[ClipSource]) -> None:
        """Background-task entry point; failures are recorded on the job, not raised."""
        try:
            await self.run(session_id, sources)
        except StitchError:
            # Recorded on the job by run(); the caller polls job status.
            return

    def _compose(self, session_id: str, buffers: list[bytes]) -> tuple[bytes, CompositionResult]:
        pending = deque(buffers)
        buffers.clear()
        encoder = self.encoder_factory()
        compositor = TimelineCompositor(open_clip=self.open_clip, session_id=session_id)
        try:
            result = compositor.compose(_drain(pending), encoder)
            logger.info(f"Finalizing concatenated video for session {session_id}...")
            data = encoder.finalize()
        except BaseException:
            encoder.close()
            raise
        finally:
            pending.clear()

        if logger.isEnabledFor(logging.DEBUG):
            info = probe_video_bytes(data)
            logger.debug(f"Session {session_id} output: {info.to_dict()}")
        return data, result


# Singleton instance
concat_service = ConcatenationService(result_store)


def get_concat_service() -> ConcatenationService:
    """FastAPI dependency returning the process-wide service."""
    return concat_service
