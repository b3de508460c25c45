"""Layered postal code to coordinate cache.

Lookups check the in-process memory layer first, then the durable layer,
which is deserialized lazily and promotes hits into memory. Writes go to both
layers; a durable write failure leaves the cache memory-only for that entry.
Entries are never evicted.
"""

from __future__ import annotations

import json
import logging

from pincode_map.common.constants import DEFAULT_STORAGE_KEY
from pincode_map.common.errors import StorageError
from pincode_map.common.geometry import Coordinates, parse_coordinates
from pincode_map.geocode.storage import KeyValueStorage, encode_mapping

logger = logging.getLogger(__name__)


class CoordinateCache:
    def __init__(self, storage: KeyValueStorage | None = None, storage_key: str = DEFAULT_STORAGE_KEY) -> None:
        self.storage = storage
        self.storage_key = storage_key
        self._memory: dict[str, Coordinates] = {}
        self._durable: dict[str, list[float]] | None = None

    def _load_durable(self) -> dict[str, list[float]]:
        if self._durable is not None:
            return self._durable
        self._durable = {}
        if self.storage is None:
            return self._durable
        try:
            raw = self.storage.get_item(self.storage_key)
            payload = json.loads(raw) if raw else {}
        except (OSError, ValueError, StorageError):
            payload = {}
        if isinstance(payload, dict):
            for postal_code, value in payload.items():
                if parse_coordinates(value) is not None:
                    self._durable[str(postal_code)] = [float(value[0]), float(value[1])]
        return self._durable

    def get(self, postal_code: str) -> Coordinates | None:
        cached = self._memory.get(postal_code)
        if cached is not None:
            return cached

        stored = self._load_durable().get(postal_code)
        if stored is None:
            return None
        coords = Coordinates(stored[0], stored[1])
        self._memory[postal_code] = coords
        return coords

    def set(self, postal_code: str, coordinates: Coordinates) -> None:
        coords = Coordinates(float(coordinates[0]), float(coordinates[1]))
        self._memory[postal_code] = coords

        durable = self._load_durable()
        durable[postal_code] = [coords.lat, coords.lon]
        if self.storage is None:
            return
        try:
            self.storage.set_item(self.storage_key, encode_mapping(durable))
        except (OSError, StorageError) as exc:
            logger.warning(
                "durable cache write failed; keeping entry in memory only",
                extra={
                    "postal_code": postal_code,
                    "event": "CACHE_WRITE_FAIL",
                    "status": "degraded",
                    "error_code": getattr(exc, "error_code", "OS_ERROR"),
                },
            )

    def __contains__(self, postal_code: str) -> bool:
        return self.get(postal_code) is not None

    def __len__(self) -> int:
        return len(set(self._memory) | set(self._load_durable()))
