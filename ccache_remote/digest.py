from __future__ import annotations

import hashlib
from dataclasses import dataclass

DIGEST_SIZE = 20


@dataclass(frozen=True)
class Digest:
    """Fixed-size content hash identifying a cached object."""

    data: bytes

    def __post_init__(self) -> None:
        if len(self.data) != DIGEST_SIZE:
            raise ValueError(f"Digest must be {DIGEST_SIZE} bytes, got {len(self.data)}")

    @classmethod
    def of(cls, content: bytes) -> "Digest":
        return cls(hashlib.blake2b(content, digest_size=DIGEST_SIZE).digest())

    @classmethod
    def from_string(cls, text: str) -> "Digest":
        return cls(bytes.fromhex(text))

    def to_string(self) -> str:
        return self.data.hex()

    def __str__(self) -> str:
        return self.to_string()
