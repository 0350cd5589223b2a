from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    timestamp: float  # seconds, as returned by the store's clock
    ttl: float  # seconds

    def is_valid(self, now: float) -> bool:
        return now - self.timestamp < self.ttl

    def to_record(self) -> dict[str, Any]:
        return {"data": self.value, "timestamp": self.timestamp, "ttl": self.ttl}

    @classmethod
    def from_record(cls, key: str, record: dict[str, Any]) -> CacheEntry:
        return cls(
            key=key,
            value=record["data"],
            timestamp=float(record["timestamp"]),
            ttl=float(record["ttl"]),
        )
