from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any


@dataclass
class StorageStats:
    """Thread-safe secondary storage statistics."""

    hits: int = 0
    misses: int = 0
    writes: int = 0
    skipped_writes: int = 0
    removes: int = 0
    errors: int = 0
    timeouts: int = 0
    bytes_read: int = 0
    bytes_written: int = 0
    start_time: float = field(default_factory=time.time)
    _lock: Any = field(default_factory=threading.RLock, repr=False, compare=False)

    def increment_hit(self, bytes_read: int = 0) -> None:
        with self._lock:
            self.hits += 1
            self.bytes_read += bytes_read

    def increment_miss(self) -> None:
        with self._lock:
            self.misses += 1

    def increment_write(self, bytes_written: int = 0) -> None:
        with self._lock:
            self.writes += 1
            self.bytes_written += bytes_written

    def increment_skipped_write(self) -> None:
        """Count a put that stored nothing because the key already existed."""
        with self._lock:
            self.skipped_writes += 1

    def increment_remove(self) -> None:
        with self._lock:
            self.removes += 1

    def increment_error(self) -> None:
        with self._lock:
            self.errors += 1

    def increment_timeout(self) -> None:
        with self._lock:
            self.timeouts += 1

    @property
    def hit_rate(self) -> float:
        """Calculate hit rate over lookups that reached the backend."""
        with self._lock:
            total = self.hits + self.misses
            return self.hits / total if total > 0 else 0.0

    @property
    def uptime_seconds(self) -> float:
        return time.time() - self.start_time

    def reset(self) -> None:
        """Reset all statistics."""
        with self._lock:
            self.hits = 0
            self.misses = 0
            self.writes = 0
            self.skipped_writes = 0
            self.removes = 0
            self.errors = 0
            self.timeouts = 0
            self.bytes_read = 0
            self.bytes_written = 0
            self.start_time = time.time()

    def to_dict(self) -> dict:
        """Export statistics as dictionary."""
        with self._lock:
            return {
                "hits": self.hits,
                "misses": self.misses,
                "writes": self.writes,
                "skipped_writes": self.skipped_writes,
                "removes": self.removes,
                "errors": self.errors,
                "timeouts": self.timeouts,
                "bytes_read": self.bytes_read,
                "bytes_written": self.bytes_written,
                "hit_rate": self.hit_rate,
                "uptime_seconds": self.uptime_seconds,
            }
