"""String key/value storage used as the slow, persistent cache layer."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator, Protocol
from urllib.parse import quote, unquote


class StorageQuotaError(OSError):
    """Raised when a write would exceed the configured storage quota."""


class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

    def keys(self) -> Iterator[str]: ...


class FileStorage:
    """One file per key under ``directory``.

    Keys are percent-encoded into file names, so any string is a valid key.
    """

    suffix = ".json"

    def __init__(self, directory: str | Path | None = None, quota_bytes: int | None = None) -> None:
        self.directory = Path(directory or os.getenv("PROFILEKIT_CACHE_DIR", ".local_cache"))
        self.quota_bytes = quota_bytes
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}{self.suffix}"

    def _used_bytes(self, excluding: Path) -> int:
        return sum(p.stat().st_size for p in self.directory.glob(f"*{self.suffix}") if p != excluding)

    def get_item(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        encoded = value.encode("utf-8")
        if self.quota_bytes is not None and self._used_bytes(path) + len(encoded) > self.quota_bytes:
            raise StorageQuotaError(f"Storage quota of {self.quota_bytes} bytes exceeded")
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_bytes(encoded)
        tmp.replace(path)

    def remove_item(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def keys(self) -> Iterator[str]:
        for path in sorted(self.directory.glob(f"*{self.suffix}")):
            yield unquote(path.name[: -len(self.suffix)])


class MemoryStorage:
    """Dict-backed storage; stands in for the disk in tests and ephemeral runs."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> Iterator[str]:
        # snapshot so callers may remove while iterating
        return iter(list(self._items))
