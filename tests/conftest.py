from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Tuple
from unittest.mock import MagicMock, patch

import pytest
from redis.exceptions import AuthenticationError
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from ccache_remote import Digest


class FakeRedisServer:
    """In-memory stand-in for a Redis server, driven by FakeConnection."""

    def __init__(self) -> None:
        self.data: Dict[str, bytes] = {}
        self.commands: List[Tuple[Any, ...]] = []
        self.users: Dict[str, str] = {}
        self.connect_error: Optional[Exception] = None
        self.reconnect_error: Optional[Exception] = None
        self.read_error: Optional[Exception] = None
        self.replies: Dict[str, Any] = {}
        self.drop_next = False

    def handle(self, args: Tuple[Any, ...]) -> Any:
        name = args[0]
        if name in self.replies:
            return self.replies[name]
        if name == "GET":
            return self.data.get(args[1])
        if name == "SET":
            self.data[args[1]] = args[2]
            return b"OK"
        if name == "EXISTS":
            return int(args[1] in self.data)
        if name == "DEL":
            return int(self.data.pop(args[1], None) is not None)
        if name == "PING":
            return b"PONG"
        return ResponseError(f"ERR unknown command '{name}'")


class FakeConnection:
    """
    Mimics the connect/send_command/read_response surface of redis.Connection.

    Like redis-py, credentials passed to the constructor are sent as AUTH
    during connect(), and send_command() reconnects a closed connection by
    itself.
    """

    def __init__(self, server: FakeRedisServer, **kwargs: Any) -> None:
        self.server = server
        self.kwargs = kwargs
        self.connected = False
        self.connects = 0
        self._response: Any = None

    def connect(self) -> None:
        error = self.server.reconnect_error if self.connects else self.server.connect_error
        if error is not None:
            raise error
        self.connects += 1
        self.connected = True

        password = self.kwargs.get("password")
        if password is not None:
            username = self.kwargs.get("username")
            self.server.commands.append(("AUTH", username, password))
            if self.server.users.get(username) != password:
                self.connected = False
                raise AuthenticationError("invalid username-password pair or user is disabled.")
        elif self.server.users:
            self.connected = False
            raise AuthenticationError("Authentication required.")

    def disconnect(self) -> None:
        self.connected = False

    def send_command(self, *args: Any) -> None:
        if not self.connected:
            self.connect()
        if self.server.drop_next:
            self.server.drop_next = False
            self.connected = False
            raise RedisConnectionError("Error while writing to socket. Connection reset by peer.")
        self.server.commands.append(args)
        self._response = self.server.handle(args)

    def read_response(self) -> Any:
        if self.server.read_error is not None:
            error, self.server.read_error = self.server.read_error, None
            self.connected = False
            raise error
        response = self._response
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def server() -> FakeRedisServer:
    return FakeRedisServer()


@pytest.fixture
def mock_redis(server: FakeRedisServer) -> Iterator[MagicMock]:
    """Patch the redis module used by the backend so connections hit ``server``."""
    with patch("ccache_remote.backends.redis.redis") as mock_redis_module:
        mock_redis_module.Connection.side_effect = lambda **kw: FakeConnection(server, **kw)
        mock_redis_module.UnixDomainSocketConnection.side_effect = (
            lambda **kw: FakeConnection(server, **kw)
        )
        yield mock_redis_module


@pytest.fixture
def digest() -> Digest:
    return Digest.of(b"int main(void) { return 0; }")
