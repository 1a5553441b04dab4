from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional

import redis
from redis.backoff import NoBackoff
from redis.exceptions import AuthenticationError
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.retry import Retry

from ..config import AttributeMap, ConfigError, RedisStorageConfig, StorageEntry
from ..digest import Digest
from ..endpoint import SCHEMES, Endpoint, EndpointError, redact_url, url_scheme
from .base import Error, Result, SecondaryStorageBackend

logger = logging.getLogger(__name__)

REDACTED = "*******"


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    INVALID = "invalid"


class ReplyType(enum.Enum):
    STATUS = "status"
    INTEGER = "integer"
    STRING = "string"
    NIL = "nil"
    ARRAY = "array"
    ERROR = "error"


@dataclass(frozen=True)
class Reply:
    type: ReplyType
    value: Any = None


class RedisStorage(SecondaryStorageBackend):
    """
    Secondary storage backend keeping cache entries in a Redis server.

    The connection is opened lazily by the first operation. A dropped link is
    re-established on the next operation, first in place and then from
    scratch. Configuration, connection and authentication failures put the
    instance in the terminal INVALID state: later operations fail fast with
    ``Error.ERROR`` and never touch the network again.

    Operations never raise redis-py exceptions; they return ``Result``.
    """

    def __init__(self, url: str, attributes: Optional[AttributeMap] = None) -> None:
        if url_scheme(url) not in SCHEMES:
            raise ConfigError(f"Unsupported Redis URL scheme in {redact_url(url)}")
        self.url = url
        self.config = RedisStorageConfig.from_attributes(attributes)
        self._connection: Any = None
        self._state = ConnectionState.DISCONNECTED
        self._lock = threading.RLock()

    @classmethod
    def from_entry(cls, entry: StorageEntry) -> "RedisStorage":
        return cls(entry.url, entry.attributes)

    def __enter__(self) -> "RedisStorage":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        self.close()

    @property
    def state(self) -> ConnectionState:
        return self._state

    def get_key_string(self, digest: Digest) -> str:
        return f"{self.config.prefix}:{digest.to_string()}"

    # ==================== Connection ====================

    def connect(self) -> Optional[Error]:
        """
        Make sure the connection is usable.

        Returns:
            None when connected, otherwise the ``Error`` kind to report.
        """
        with self._lock:
            if self._state is ConnectionState.CONNECTED:
                return None
            if self._state is ConnectionState.INVALID:
                return Error.ERROR

            if self._connection is not None:
                try:
                    self._connection.disconnect()
                    self.auth(self._connection)
                except AuthenticationError as e:
                    return self._auth_failed(e)
                except RedisError as e:
                    logger.debug(f"Redis reconnection error: {e}")
                    self._release()
                else:
                    self._state = ConnectionState.CONNECTED
                    return None

            return self._connect_fresh()

    def _connect_fresh(self) -> Optional[Error]:
        try:
            endpoint = Endpoint.from_url(self.url)
        except EndpointError as e:
            logger.warning(f"Invalid Redis URL: {e}")
            return self._invalidate()

        try:
            self._connection = self._create_connection(endpoint)
        except Exception as e:
            logger.warning(f"Redis connection error (could not create connection): {e}")
            return self._invalidate()

        logger.debug(
            f"Redis connecting to {endpoint} (timeout {self.config.connect_timeout_ms} ms)"
        )
        try:
            self.auth(self._connection)
        except AuthenticationError as e:
            return self._auth_failed(e)
        except RedisTimeoutError as e:
            logger.warning(f"Redis connection error: {e}")
            self._invalidate()
            return Error.TIMEOUT
        except RedisError as e:
            logger.warning(f"Redis connection error: {e}")
            return self._invalidate()

        logger.debug(f"Redis connection to {endpoint} OK")
        self._state = ConnectionState.CONNECTED
        return None

    @property
    def auth_username(self) -> Optional[str]:
        """Username sent with AUTH, or None when no password is configured."""
        if self.config.password is None:
            return None
        return self.config.username or "default"

    def _create_connection(self, endpoint: Endpoint) -> Any:
        # socket_timeout is applied to the socket once the connect has finished.
        # RESP2 keeps the reply types this backend classifies.
        options = {
            "socket_connect_timeout": self.config.connect_timeout,
            "socket_timeout": self.config.operation_timeout,
            "retry": Retry(NoBackoff(), 0),
            "protocol": 2,
            "username": self.auth_username,
            "password": self.config.password,
        }
        if endpoint.is_unix:
            return redis.UnixDomainSocketConnection(path=endpoint.socket_path, **options)
        return redis.Connection(host=endpoint.host, port=endpoint.port, **options)

    def auth(self, connection: Any) -> None:
        """
        Open ``connection`` and authenticate it.

        The credentials live on the redis-py connection, which sends AUTH as
        the first command of its connect handshake, so every reconnect of the
        same handle authenticates again.

        Raises:
            AuthenticationError: the server rejected the credentials or
                requires a password that is not configured.
            RedisError: the connection itself failed.
        """
        username = self.auth_username
        if username is not None:
            logger.debug(f"Redis AUTH {username} {REDACTED}")
        connection.connect()

    def _auth_failed(self, error: AuthenticationError) -> Error:
        username = self.auth_username or "default"
        logger.warning(f"Failed to auth {username} in redis: {error}")
        return self._invalidate()

    def _invalidate(self) -> Error:
        self._state = ConnectionState.INVALID
        self._release()
        return Error.ERROR

    def _release(self) -> None:
        if self._connection is None:
            return
        try:
            self._connection.disconnect()
        except RedisError as e:
            logger.debug(f"Error closing Redis connection: {e}")
        self._connection = None

    def close(self) -> None:
        """Close the Redis connection."""
        with self._lock:
            if self._connection is not None:
                logger.debug("Redis disconnect")
                self._release()
            if self._state is ConnectionState.CONNECTED:
                self._state = ConnectionState.DISCONNECTED

    # ==================== Commands ====================

    def _execute(self, *args: Any, status: bool = False) -> Optional[Reply]:
        """
        Send one command and read its reply.

        ``status`` marks commands answering with a status line (``+OK``),
        which redis-py hands back as bytes just like a bulk string.
        Returns None when no reply could be read; the link is then
        considered dropped.
        """
        try:
            self._connection.send_command(*args)
            response = self._connection.read_response()
        except (ResponseError, AuthenticationError) as e:
            return Reply(ReplyType.ERROR, str(e))
        except (RedisConnectionError, RedisTimeoutError) as e:
            logger.debug(f"Redis {args[0]} failed, link dropped: {e}")
            self._state = ConnectionState.DISCONNECTED
            return None
        except RedisError as e:
            # redis-py has already closed the socket; reconnect through connect()
            logger.debug(f"Redis {args[0]} failed: {e}")
            self._state = ConnectionState.DISCONNECTED
            return None

        if response is None:
            return Reply(ReplyType.NIL)
        if isinstance(response, int):
            return Reply(ReplyType.INTEGER, response)
        if isinstance(response, (bytes, str)):
            return Reply(ReplyType.STATUS if status else ReplyType.STRING, response)
        if isinstance(response, list):
            return Reply(ReplyType.ARRAY, response)
        return Reply(ReplyType.ERROR, f"unexpected reply {response!r}")

    def get(self, key: Digest) -> Result:
        with self._lock:
            err = self.connect()
            if err is not None:
                return Result.fail(err)

            key_string = self.get_key_string(key)
            logger.debug(f"Redis GET {key_string}")
            reply = self._execute("GET", key_string)
            if reply is None:
                logger.debug(f"Failed to get {key_string} from redis")
            elif reply.type is ReplyType.ERROR:
                logger.debug(f"Failed to get {key_string} from redis: {reply.value}")
            elif reply.type is ReplyType.STRING:
                return Result.ok(reply.value)
            elif reply.type is ReplyType.NIL:
                return Result.ok(None)
            return Result.fail(Error.ERROR)

    def put(self, key: Digest, value: bytes, only_if_missing: bool = False) -> Result:
        with self._lock:
            err = self.connect()
            if err is not None:
                return Result.fail(err)

            key_string = self.get_key_string(key)
            if only_if_missing and self._exists(key_string):
                return Result.ok(False)
            if self._state is not ConnectionState.CONNECTED:
                err = self.connect()
                if err is not None:
                    return Result.fail(err)

            logger.debug(f"Redis SET {key_string} ({len(value)} bytes)")
            reply = self._execute("SET", key_string, bytes(value), status=True)
            if reply is None:
                logger.debug(f"Failed to set {key_string} to redis")
            elif reply.type is ReplyType.ERROR:
                logger.debug(f"Failed to set {key_string} to redis: {reply.value}")
            elif reply.type is ReplyType.STATUS:
                return Result.ok(True)
            else:
                logger.debug(f"Failed to set {key_string} to redis: {reply.type.value} reply")
            return Result.fail(Error.ERROR)

    def _exists(self, key_string: str) -> bool:
        # An unusable answer counts as "missing" so the write still happens.
        logger.debug(f"Redis EXISTS {key_string}")
        reply = self._execute("EXISTS", key_string)
        if reply is None:
            logger.debug(f"Failed to check {key_string} in redis")
        elif reply.type is ReplyType.ERROR:
            logger.debug(f"Failed to check {key_string} in redis: {reply.value}")
        elif reply.type is ReplyType.INTEGER:
            return reply.value > 0
        return False

    def remove(self, key: Digest) -> Result:
        with self._lock:
            err = self.connect()
            if err is not None:
                return Result.fail(err)

            key_string = self.get_key_string(key)
            logger.debug(f"Redis DEL {key_string}")
            reply = self._execute("DEL", key_string)
            if reply is None:
                logger.debug(f"Failed to del {key_string} in redis")
            elif reply.type is ReplyType.ERROR:
                logger.debug(f"Failed to del {key_string} in redis: {reply.value}")
            elif reply.type is ReplyType.INTEGER:
                return Result.ok(reply.value > 0)
            return Result.fail(Error.ERROR)

    def health_check(self) -> bool:
        """Check if Redis is reachable."""
        with self._lock:
            if self.connect() is not None:
                return False
            reply = self._execute("PING", status=True)
            return (
                reply is not None
                and reply.type is ReplyType.STATUS
                and reply.value == b"PONG"
            )
