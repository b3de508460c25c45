"""Durable key-value storage backends for the coordinate cache."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol

from pincode_map.common.errors import StorageError
from pincode_map.common.fs import read_json, write_json_atomic


class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...


class MemoryStorage:
    """Session-only storage, mostly for tests."""

    def __init__(self, items: dict[str, str] | None = None) -> None:
        self.items: dict[str, str] = dict(items or {})

    def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value


class JsonFileStorage:
    """A JSON file of string values keyed by name.

    An unreadable or corrupt file reads as empty; writes replace the file atomically.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            payload = read_json(self.path)
        except (OSError, ValueError):
            return {}
        if not isinstance(payload, dict):
            return {}
        return {str(k): v for k, v in payload.items() if isinstance(v, str)}

    def get_item(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._read_all()
        items[key] = value
        try:
            write_json_atomic(self.path, items)
        except OSError as exc:
            raise StorageError(f"Could not write {self.path}: {exc}") from exc


def encode_mapping(mapping: dict[str, list[float]]) -> str:
    return json.dumps(mapping, sort_keys=True, separators=(",", ":"))
