from .backends.base import Error, Result, SecondaryStorageBackend
from .backends.redis import ConnectionState, RedisStorage
from .config import ConfigError, RedisStorageConfig, StorageEntry
from .digest import Digest
from .endpoint import Endpoint, EndpointError
from .metrics import StorageMetrics
from .stats import StorageStats
from .storage import SecondaryStorage, create_backend

__all__ = [
    "Error",
    "Result",
    "SecondaryStorageBackend",
    "ConnectionState",
    "RedisStorage",
    "ConfigError",
    "RedisStorageConfig",
    "StorageEntry",
    "Digest",
    "Endpoint",
    "EndpointError",
    "StorageMetrics",
    "StorageStats",
    "SecondaryStorage",
    "create_backend",
]

__version__ = "1.0.0"
