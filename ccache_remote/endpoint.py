from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

import httpx

DEFAULT_PORT = 6379

SCHEMES = ("redis", "redis+unix")


class EndpointError(ValueError):
    """Raised when a storage URL does not describe a usable endpoint."""
    pass


@dataclass(frozen=True)
class Endpoint:
    """Where a Redis server listens: a TCP host/port or a local socket path."""

    host: str = ""
    port: int = DEFAULT_PORT
    socket_path: str = ""

    @property
    def is_unix(self) -> bool:
        return not self.host and bool(self.socket_path)

    def __str__(self) -> str:
        if self.host:
            return f"{self.host}:{self.port}"
        return self.socket_path

    @classmethod
    def from_url(cls, url: str) -> "Endpoint":
        """
        Resolve an endpoint from a ``redis://`` URL.

        ``redis://host[:port]`` gives a TCP endpoint (port defaults to 6379),
        ``redis:///path/to/socket`` or ``redis+unix:///path/to/socket`` gives
        a local socket endpoint.

        Raises:
            EndpointError: if neither a host nor a socket path is present,
                the port is not an integer in [1, 65535], or a
                ``redis+unix`` URL names a host.
        """
        try:
            u = httpx.URL(url)
        except httpx.InvalidURL as e:
            raise EndpointError(f"Invalid Redis URL {redact_url(url)}: {e}") from e

        host = u.host
        if u.scheme == "redis+unix" and host:
            raise EndpointError(
                f"Invalid Redis URL {redact_url(url)}: redis+unix takes a socket path, not a host"
            )
        if host:
            return cls(host=host, port=_parse_port(u), socket_path="")
        if u.path and u.path != "/":
            return cls(host="", socket_path=u.path)
        raise EndpointError(f"Invalid Redis URL: {redact_url(url)}")


def _parse_port(u: httpx.URL) -> int:
    port: Optional[int] = u.port
    if port is None:
        return DEFAULT_PORT
    if not 1 <= port <= 65535:
        raise EndpointError(f"Invalid port {port}: expected an integer between 1 and 65535")
    return port


def url_scheme(url: str) -> str:
    """Lower-cased scheme of ``url``, or an empty string when it has none."""
    scheme, sep, _ = url.partition("://")
    return scheme.lower() if sep else ""


def redact_url(url: str) -> str:
    """Mask the password part of a URL's userinfo."""
    return re.sub(r"://([^:@/]*):[^@/]+@", r"://\1:*******@", url)
