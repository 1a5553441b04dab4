from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from ccache_remote import (
    ConfigError,
    Digest,
    Error,
    RedisStorage,
    Result,
    SecondaryStorage,
    SecondaryStorageBackend,
    StorageEntry,
    create_backend,
)

from conftest import FakeRedisServer


@pytest.fixture
def backend() -> MagicMock:
    return MagicMock(spec=SecondaryStorageBackend)


def test_create_backend_by_scheme() -> None:
    assert isinstance(create_backend(StorageEntry.parse("redis://localhost")), RedisStorage)
    assert isinstance(create_backend(StorageEntry.parse("redis+unix:///tmp/r.sock")), RedisStorage)
    with pytest.raises(ConfigError, match="Unknown secondary storage scheme"):
        create_backend(StorageEntry.parse("http://localhost"))


def test_entry_attributes_reach_backend() -> None:
    storage = SecondaryStorage("redis://localhost|connect-timeout=75|username=ci")
    assert isinstance(storage.backend, RedisStorage)
    assert storage.backend.config.connect_timeout_ms == 75
    assert storage.backend.config.username == "ci"


def test_get_statistics(backend: MagicMock, digest: Digest) -> None:
    storage = SecondaryStorage("redis://localhost", backend=backend)

    backend.get.return_value = Result.ok(b"12345")
    assert storage.get(digest).value == b"12345"
    backend.get.return_value = Result.ok(None)
    assert storage.get(digest).value is None
    backend.get.return_value = Result.fail(Error.TIMEOUT)
    assert storage.get(digest).error is Error.TIMEOUT
    backend.get.return_value = Result.fail(Error.ERROR)
    assert storage.get(digest).error is Error.ERROR

    stats = storage.get_stats()
    assert stats.hits == 1
    assert stats.misses == 1
    assert stats.timeouts == 1
    assert stats.errors == 1
    assert stats.bytes_read == 5
    assert stats.hit_rate == 0.5


def test_put_and_remove_statistics(backend: MagicMock, digest: Digest) -> None:
    storage = SecondaryStorage("redis://localhost", backend=backend)

    backend.put.return_value = Result.ok(True)
    storage.put(digest, b"abc")
    backend.put.return_value = Result.ok(False)
    storage.put(digest, b"abc", only_if_missing=True)
    backend.put.assert_called_with(digest, b"abc", only_if_missing=True)

    backend.remove.return_value = Result.ok(True)
    storage.remove(digest)
    backend.remove.return_value = Result.ok(False)
    storage.remove(digest)

    stats = storage.get_stats().to_dict()
    assert stats["writes"] == 1
    assert stats["skipped_writes"] == 1
    assert stats["bytes_written"] == 3
    assert stats["removes"] == 1
    assert stats["errors"] == 0


def test_read_only_never_writes(backend: MagicMock, digest: Digest) -> None:
    storage = SecondaryStorage("redis://localhost|read-only", backend=backend)
    backend.get.return_value = Result.ok(b"hit")

    assert storage.put(digest, b"value").value is False
    assert storage.remove(digest).value is False
    assert storage.get(digest).value == b"hit"
    backend.put.assert_not_called()
    backend.remove.assert_not_called()


def test_metrics_calls(backend: MagicMock, digest: Digest) -> None:
    storage = SecondaryStorage("redis://localhost", backend=backend)
    storage.metrics = MagicMock()

    backend.get.return_value = Result.ok(None)
    storage.get(digest)
    assert storage.metrics.record.call_args[0][:2] == ("get", "miss")

    backend.put.return_value = Result.fail(Error.TIMEOUT)
    storage.put(digest, b"v")
    assert storage.metrics.record.call_args[0][:2] == ("put", "timeout")

    backend.remove.return_value = Result.ok(True)
    storage.remove(digest)
    assert storage.metrics.record.call_args[0][:2] == ("remove", "removed")


def test_front_over_redis_backend(mock_redis: MagicMock, server: FakeRedisServer, digest: Digest) -> None:
    server.users["default"] = "pw"
    with SecondaryStorage("redis://localhost|password=pw") as storage:
        assert storage.health_check() is True
        assert storage.put(digest, b"\x00obj").value is True
        assert storage.put(digest, b"other", only_if_missing=True).value is False
        assert storage.get(digest).value == b"\x00obj"
        assert storage.remove(digest).value is True
        assert storage.get(digest).value is None

    stats = storage.get_stats()
    assert (stats.hits, stats.misses, stats.writes, stats.skipped_writes) == (1, 1, 1, 1)
