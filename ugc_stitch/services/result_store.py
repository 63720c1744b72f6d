"""Session result store for finished concatenations.

Memory-resident: every entry is lost when the process restarts, and each
instance only sees the results it produced itself. A Redis/DB backend can
replace ``InMemoryResultStore`` behind the same ``ResultStore`` interface.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass

from ugc_stitch.config import get_settings
from ugc_stitch.exceptions import DuplicateSession, NotFound

logger = logging.getLogger(__name__)


class ResultStore(ABC):
    """Write-once, read-once mapping of session id to output buffer."""

    @abstractmethod
    def put(self, session_id: str, data: bytes) -> None:
        """Store a finished buffer. Raises DuplicateSession if present."""

    @abstractmethod
    def take(self, session_id: str) -> bytes:
        """Return the buffer and remove it. Raises NotFound if absent."""

    @abstractmethod
    def contains(self, session_id: str) -> bool:
        """Check for an unclaimed, unexpired entry without consuming it."""

    @abstractmethod
    def __len__(self) -> int: ...


@dataclass
class StoredResult:
    data: bytes
    created_at: float


class InMemoryResultStore(ResultStore):
    """Thread-safe in-memory store with TTL expiry and a resident-entry cap."""

    def __init__(self, ttl_seconds: int = 3600, max_entries: int = 32) -> None:
        self._store: OrderedDict[str, StoredResult] = OrderedDict()
        self._lock = threading.Lock()
        self._ttl = ttl_seconds
        self._max_entries = max_entries

    def put(self, session_id: str, data: bytes) -> None:
        with self._lock:
            self._cleanup_expired()
            if session_id in self._store:
                raise DuplicateSession(session_id)
            while self._max_entries > 0 and len(self._store) >= self._max_entries:
                evicted_id, evicted = self._store.popitem(last=False)
                logger.warning(
                    f"Result store full ({self._max_entries}), evicting unclaimed "
                    f"session {evicted_id} ({len(evicted.data)} bytes)"
                )
            self._store[session_id] = StoredResult(data=data, created_at=time.monotonic())

    def take(self, session_id: str) -> bytes:
        with self._lock:
            self._cleanup_expired()
            entry = self._store.pop(session_id, None)
        if entry is None:
            raise NotFound(session_id)
        return entry.data

    def contains(self, session_id: str) -> bool:
        with self._lock:
            self._cleanup_expired()
            return session_id in self._store

    def __len__(self) -> int:
        with self._lock:
            self._cleanup_expired()
            return len(self._store)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def _cleanup_expired(self) -> None:
        """Remove expired entries (called under lock)."""
        if self._ttl <= 0:
            return
        now = time.monotonic()
        expired = [k for k, v in self._store.items() if now - v.created_at > self._ttl]
        for k in expired:
            logger.info(f"Session {k} expired before download, discarding result")
            del self._store[k]


def _build_default_store() -> InMemoryResultStore:
    settings = get_settings()
    return InMemoryResultStore(
        ttl_seconds=settings.session_ttl_seconds,
        max_entries=settings.session_max_entries,
    )


# Singleton instance
result_store = _build_default_store()
