from __future__ import annotations

import hashlib
import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Sequence, TypeVar

from .post import Post
from .run_log import RunLogger

T = TypeVar("T")

NowFn = Callable[[], float]

DEFAULT_MAX_SIZE = 100
DEFAULT_TTL_MINUTES = 60.0
DEFAULT_SWEEP_INTERVAL_SECONDS = 10 * 60.0


@dataclass
class CacheEntry(Generic[T]):
    data: T
    created_at: float
    last_accessed: float
    expires_at: float


@dataclass(frozen=True)
class CacheStats:
    total_entries: int
    active_entries: int
    expired_entries: int
    max_size: int
    ttl_ms: int


def generate_key(post: Post, requirements: Sequence[str]) -> str:
    """
    Fingerprint post content plus requirements as a SHA-256 hex digest.

    Hashtags and requirements are sorted so that input order never changes the key.
    """
    content = {
        "caption": post.caption,
        "transcript": post.transcript,
        "mediaType": post.media_type,
        "hashtags": sorted(post.hashtags),
        "altText": post.alt_text,
        "requirements": sorted(requirements),
    }
    payload = json.dumps(
        content,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


class AnalysisCache:
    """
    In-memory, size-bounded, time-expiring store for analysis reports.

    Expired entries are dropped lazily on read and by a background sweep thread.
    The sweep is owned by the cache: call close() (or use it as a context manager)
    to stop it.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        ttl_minutes: float = DEFAULT_TTL_MINUTES,
        *,
        sweep_interval_seconds: float | None = DEFAULT_SWEEP_INTERVAL_SECONDS,
        now_fn: NowFn | None = None,
        logger: RunLogger | None = None,
    ) -> None:
        if int(max_size) < 1:
            raise ValueError("max_size must be >= 1")
        if float(ttl_minutes) <= 0:
            raise ValueError("ttl_minutes must be > 0")

        self._max_size = int(max_size)
        self._ttl_seconds = float(ttl_minutes) * 60.0
        self._now = now_fn or time.time
        self._logger = logger

        self._entries: dict[str, CacheEntry[Any]] = {}
        self._lock = threading.Lock()

        self._stop = threading.Event()
        self._sweeper: threading.Thread | None = None
        if sweep_interval_seconds is not None and sweep_interval_seconds > 0:
            self._start_sweeper(float(sweep_interval_seconds))

    @property
    def max_size(self) -> int:
        return self._max_size

    def generate_key(self, post: Post, requirements: Sequence[str]) -> str:
        return generate_key(post, requirements)

    def get(self, key: str) -> Any | None:
        now = self._now()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if now > entry.expires_at:
                del self._entries[key]
                return None
            entry.last_accessed = now
            return entry.data

    def set(self, key: str, value: Any) -> None:
        now = self._now()
        with self._lock:
            if key not in self._entries and len(self._entries) >= self._max_size:
                self._evict_least_recent()
            self._entries[key] = CacheEntry(
                data=value,
                created_at=now,
                last_accessed=now,
                expires_at=now + self._ttl_seconds,
            )

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> CacheStats:
        now = self._now()
        with self._lock:
            expired = sum(1 for e in self._entries.values() if now > e.expires_at)
            total = len(self._entries)

        return CacheStats(
            total_entries=total,
            active_entries=total - expired,
            expired_entries=expired,
            max_size=self._max_size,
            ttl_ms=int(self._ttl_seconds * 1000),
        )

    def sweep(self) -> int:
        """Remove every expired entry; returns how many were removed."""
        now = self._now()
        with self._lock:
            dead = [k for k, e in self._entries.items() if now > e.expires_at]
            for k in dead:
                del self._entries[k]

        if dead and self._logger is not None:
            self._logger.info("cache_sweep_removed", removed=len(dead))
        return len(dead)

    def close(self) -> None:
        self._stop.set()
        sweeper = self._sweeper
        self._sweeper = None
        if sweeper is not None and sweeper is not threading.current_thread():
            sweeper.join(timeout=5.0)

    def __enter__(self) -> "AnalysisCache":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def _evict_least_recent(self) -> None:
        # Caller holds the lock.
        if not self._entries:
            return
        oldest_key = min(self._entries, key=lambda k: self._entries[k].last_accessed)
        del self._entries[oldest_key]

    def _start_sweeper(self, interval: float) -> None:
        def _run() -> None:
            while not self._stop.wait(interval):
                self.sweep()

        self._sweeper = threading.Thread(
            target=_run,
            name="analysis-cache-sweep",
            daemon=True,
        )
        self._sweeper.start()
