"""Data models used across the pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from pincode_map.common.deterministic import plain_number
from pincode_map.common.geometry import Coordinates


@dataclass(frozen=True)
class SalesRecord:
    postal_code: str
    sales: float
    coordinates: Coordinates | None = None


@dataclass(frozen=True)
class ResolvedRecord:
    postal_code: str
    sales: float
    coordinates: Coordinates

    @property
    def lat(self) -> float:
        return self.coordinates.lat

    @property
    def lon(self) -> float:
        return self.coordinates.lon

    def to_dict(self) -> dict[str, Any]:
        return {
            "pincode": self.postal_code,
            "sales": plain_number(self.sales),
            "lat": self.coordinates.lat,
            "lng": self.coordinates.lon,
        }


@dataclass(frozen=True)
class ResolutionProgress:
    processed: int
    total: int
    failures: int

    def to_dict(self) -> dict[str, int]:
        return {"processed": self.processed, "total": self.total, "failures": self.failures}


def merge_duplicate_records(records: Iterable[SalesRecord]) -> list[SalesRecord]:
    """Sum sales per postal code, keeping first-seen order.

    The first record that carries coordinates for a postal code supplies them.
    """
    merged: dict[str, SalesRecord] = {}
    for record in records:
        existing = merged.get(record.postal_code)
        if existing is None:
            merged[record.postal_code] = record
            continue
        merged[record.postal_code] = SalesRecord(
            postal_code=record.postal_code,
            sales=existing.sales + record.sales,
            coordinates=existing.coordinates or record.coordinates,
        )
    return list(merged.values())
