"""In-memory lifecycle tracking for concatenation jobs."""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from ugc_stitch.config import get_settings
from ugc_stitch.exceptions import DuplicateSession, JobNotFoundError
from ugc_stitch.services.result_store import ResultStore

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_active(self) -> bool:
        return self in (JobStatus.PENDING, JobStatus.RUNNING)


@dataclass
class ConcatenationJob:
    session_id: str
    clip_count: int
    status: JobStatus = JobStatus.PENDING
    error: str | None = None
    error_code: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None
    output_size: int | None = None
    total_duration_us: int | None = None
    sample_count: int | None = None
    _finished_monotonic: float | None = field(default=None, repr=False)

    def snapshot(self) -> "ConcatenationJob":
        return ConcatenationJob(
            session_id=self.session_id,
            clip_count=self.clip_count,
            status=self.status,
            error=self.error,
            error_code=self.error_code,
            created_at=self.created_at,
            finished_at=self.finished_at,
            output_size=self.output_size,
            total_duration_us=self.total_duration_us,
            sample_count=self.sample_count,
        )


class JobRegistry:
    """Tracks pending → running → succeeded | failed per session id.

    A session id may be reused once its previous job failed, or once its
    result has been downloaded or expired from the result store.
    """

    def __init__(self, result_store: ResultStore, history_ttl_seconds: int = 3600) -> None:
        self._jobs: dict[str, ConcatenationJob] = {}
        self._lock = threading.Lock()
        self._result_store = result_store
        self._history_ttl = history_ttl_seconds

    def register(self, session_id: str, clip_count: int) -> ConcatenationJob:
        with self._lock:
            self._prune_finished()
            existing = self._jobs.get(session_id)
            if existing is not None:
                if existing.status.is_active:
                    raise DuplicateSession(session_id)
                if existing.status == JobStatus.SUCCEEDED and self._result_store.contains(session_id):
                    raise DuplicateSession(session_id)
            job = ConcatenationJob(session_id=session_id, clip_count=clip_count)
            self._jobs[session_id] = job
            return job.snapshot()

    def get(self, session_id: str) -> ConcatenationJob:
        with self._lock:
            job = self._jobs.get(session_id)
            if job is None:
                raise JobNotFoundError(session_id)
            return job.snapshot()

    def mark_running(self, session_id: str) -> None:
        with self._lock:
            self._jobs[session_id].status = JobStatus.RUNNING

    def mark_succeeded(
        self,
        session_id: str,
        *,
        output_size: int,
        total_duration_us: int,
        sample_count: int,
    ) -> None:
        with self._lock:
            job = self._jobs[session_id]
            job.status = JobStatus.SUCCEEDED
            job.output_size = output_size
            job.total_duration_us = total_duration_us
            job.sample_count = sample_count
            self._finish(job)

    def mark_failed(self, session_id: str, reason: str, code: str | None = None) -> None:
        with self._lock:
            job = self._jobs[session_id]
            job.status = JobStatus.FAILED
            job.error = reason
            job.error_code = code
            self._finish(job)

    def clear(self) -> None:
        with self._lock:
            self._jobs.clear()

    def _finish(self, job: ConcatenationJob) -> None:
        job.finished_at = datetime.now(timezone.utc)
        job._finished_monotonic = time.monotonic()

    def _prune_finished(self) -> None:
        """Drop finished jobs older than the history TTL (called under lock)."""
        now = time.monotonic()
        stale = [
            k
            for k, job in self._jobs.items()
            if job._finished_monotonic is not None
            and now - job._finished_monotonic > self._history_ttl
        ]
        for k in stale:
            del self._jobs[k]


def build_job_registry(result_store: ResultStore) -> JobRegistry:
    settings = get_settings()
    return JobRegistry(result_store, history_ttl_seconds=settings.job_history_ttl_seconds)
