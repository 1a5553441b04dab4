"""Backend initialization."""
from .base import Error, Result, SecondaryStorageBackend
from .redis import ConnectionState, RedisStorage

__all__ = [
    "Error",
    "Result",
    "SecondaryStorageBackend",
    "ConnectionState",
    "RedisStorage",
]
