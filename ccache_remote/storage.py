from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional, Union

from .backends.base import Error, Result, SecondaryStorageBackend
from .backends.redis import RedisStorage
from .config import ConfigError, StorageEntry
from .digest import Digest
from .metrics import StorageMetrics
from .stats import StorageStats

logger = logging.getLogger(__name__)

BackendFactory = Callable[[StorageEntry], SecondaryStorageBackend]

BACKENDS: Dict[str, BackendFactory] = {
    "redis": RedisStorage.from_entry,
    "redis+unix": RedisStorage.from_entry,
}


def create_backend(entry: StorageEntry) -> SecondaryStorageBackend:
    """Instantiate the backend registered for the entry's URL scheme."""
    factory = BACKENDS.get(entry.scheme)
    if factory is None:
        valid = ", ".join(sorted(BACKENDS))
        raise ConfigError(
            f"Unknown secondary storage scheme '{entry.scheme}'. Valid options: {valid}"
        )
    return factory(entry)


def _outcome(result: Result, label: str) -> str:
    if result.error is Error.TIMEOUT:
        return "timeout"
    if result.failed:
        return "error"
    return label


class SecondaryStorage:
    """
    One configured secondary storage as seen by the build cache.

    Wraps a backend chosen from the entry's URL scheme, honours the
    ``read-only`` attribute and keeps statistics and metrics for every
    operation. Results are passed through unchanged.
    """

    def __init__(
        self,
        entry: Union[str, StorageEntry],
        backend: Optional[SecondaryStorageBackend] = None,
    ) -> None:
        self.entry = StorageEntry.parse(entry) if isinstance(entry, str) else entry
        self.read_only = self.entry.read_only
        self.backend = backend if backend is not None else create_backend(self.entry)
        self.stats = StorageStats()
        self.metrics = StorageMetrics(backend=self.entry.scheme)
        logger.debug(f"Secondary storage configured: {self.entry.redacted()}")

    def __enter__(self) -> "SecondaryStorage":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        self.close()

    def get_stats(self) -> StorageStats:
        return self.stats

    def _record_failure(self, operation: str, key: Digest, result: Result) -> None:
        if result.error is Error.TIMEOUT:
            self.stats.increment_timeout()
            logger.info(f"Secondary storage {operation} of {key} timed out")
        else:
            self.stats.increment_error()
            logger.info(f"Secondary storage {operation} of {key} failed")

    def get(self, key: Digest) -> Result:
        start_time = time.time()
        result = self.backend.get(key)
        if result.failed:
            self._record_failure("get", key, result)
        elif result.value is None:
            self.stats.increment_miss()
        else:
            self.stats.increment_hit(bytes_read=len(result.value))
        outcome = _outcome(result, "miss" if result.value is None else "hit")
        self.metrics.record("get", outcome, time.time() - start_time)
        return result

    def put(self, key: Digest, value: bytes, only_if_missing: bool = False) -> Result:
        if self.read_only:
            logger.debug(f"Not storing {key} in read-only secondary storage")
            return Result.ok(False)

        start_time = time.time()
        result = self.backend.put(key, value, only_if_missing=only_if_missing)
        if result.failed:
            self._record_failure("put", key, result)
        elif result.value:
            self.stats.increment_write(bytes_written=len(value))
        else:
            self.stats.increment_skipped_write()
        outcome = _outcome(result, "stored" if result.value else "skipped")
        self.metrics.record("put", outcome, time.time() - start_time)
        return result

    def remove(self, key: Digest) -> Result:
        if self.read_only:
            logger.debug(f"Not removing {key} from read-only secondary storage")
            return Result.ok(False)

        start_time = time.time()
        result = self.backend.remove(key)
        if result.failed:
            self._record_failure("remove", key, result)
        elif result.value:
            self.stats.increment_remove()
        outcome = _outcome(result, "removed" if result.value else "missing")
        self.metrics.record("remove", outcome, time.time() - start_time)
        return result

    def health_check(self) -> bool:
        return self.backend.health_check()

    def close(self) -> None:
        self.backend.close()
