from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from .endpoint import redact_url, url_scheme

AttributeMap = Mapping[str, str]

DEFAULT_CONNECT_TIMEOUT_MS = 100
DEFAULT_OPERATION_TIMEOUT_MS = 10000
MIN_TIMEOUT_MS = 1
MAX_TIMEOUT_MS = 1000 * 3600

_TRUE_VALUES = {"true", "yes", "on", "1"}
_FALSE_VALUES = {"false", "no", "off", "0"}


class ConfigError(ValueError):
    """Raised when a storage entry or one of its attributes is malformed."""
    pass


def parse_unsigned(value: str, min_value: int, max_value: int, description: str) -> int:
    """Parse ``value`` as an integer in [min_value, max_value]."""
    text = value.strip()
    if not text.isdigit():
        raise ConfigError(f"invalid unsigned integer {description}: \"{value}\"")
    number = int(text)
    if not min_value <= number <= max_value:
        raise ConfigError(
            f"{description} must be between {min_value} and {max_value}, got {number}"
        )
    return number


def parse_timeout_attribute(attributes: AttributeMap, name: str, default_value: int) -> int:
    value = attributes.get(name)
    if value is None:
        return default_value
    return parse_unsigned(value, MIN_TIMEOUT_MS, MAX_TIMEOUT_MS, "timeout")


def parse_string_attribute(attributes: AttributeMap, name: str) -> Optional[str]:
    return attributes.get(name)


def parse_bool_attribute(attributes: AttributeMap, name: str, default_value: bool = False) -> bool:
    value = attributes.get(name)
    if value is None:
        return default_value
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"invalid boolean value for {name}: \"{value}\"")


@dataclass(frozen=True)
class RedisStorageConfig:
    connect_timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS
    operation_timeout_ms: int = DEFAULT_OPERATION_TIMEOUT_MS
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    prefix: str = "ccache"

    def __post_init__(self) -> None:
        for name in ("connect_timeout_ms", "operation_timeout_ms"):
            value = getattr(self, name)
            if not MIN_TIMEOUT_MS <= value <= MAX_TIMEOUT_MS:
                raise ConfigError(
                    f"{name} must be between {MIN_TIMEOUT_MS} and {MAX_TIMEOUT_MS}, got {value}"
                )

    @classmethod
    def from_attributes(cls, attributes: Optional[AttributeMap] = None) -> "RedisStorageConfig":
        attributes = attributes or {}
        return cls(
            connect_timeout_ms=parse_timeout_attribute(
                attributes, "connect-timeout", DEFAULT_CONNECT_TIMEOUT_MS
            ),
            operation_timeout_ms=parse_timeout_attribute(
                attributes, "operation-timeout", DEFAULT_OPERATION_TIMEOUT_MS
            ),
            username=parse_string_attribute(attributes, "username"),
            password=parse_string_attribute(attributes, "password"),
        )

    @property
    def connect_timeout(self) -> float:
        """Connect timeout in seconds."""
        return self.connect_timeout_ms / 1000

    @property
    def operation_timeout(self) -> float:
        """Operation timeout in seconds."""
        return self.operation_timeout_ms / 1000


@dataclass(frozen=True)
class StorageEntry:
    """
    One configured secondary storage: a URL plus ``key=value`` attributes.

    The textual form is ``url|key=value|key=value``. A bare ``key`` is
    shorthand for ``key=true``.
    """

    url: str
    attributes: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def parse(cls, text: str) -> "StorageEntry":
        parts = text.strip().split("|")
        url = parts[0].strip()
        if not url:
            raise ConfigError(f"empty storage URL in \"{text}\"")

        attributes: Dict[str, str] = {}
        for part in parts[1:]:
            part = part.strip()
            if not part:
                continue
            key, sep, value = part.partition("=")
            key = key.strip()
            if not key:
                raise ConfigError(f"invalid attribute \"{part}\" in storage entry")
            attributes[key] = value if sep else "true"
        return cls(url=url, attributes=attributes)

    @property
    def scheme(self) -> str:
        return url_scheme(self.url)

    @property
    def read_only(self) -> bool:
        return parse_bool_attribute(self.attributes, "read-only")

    def redacted(self) -> str:
        """Entry text with credentials masked, safe for logging."""
        shown = [redact_url(self.url)]
        for key, value in self.attributes.items():
            shown.append(f"{key}={'*******' if key == 'password' else value}")
        return "|".join(shown)
