"""Bundled dataset loading and aggregation-on-ingest."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pincode_map.common.errors import ContractError
from pincode_map.common.fs import read_json
from pincode_map.common.geometry import Coordinates, make_coordinates, parse_coordinates, safe_float
from pincode_map.common.models import ResolvedRecord, SalesRecord, merge_duplicate_records

POSTAL_CODE_FIELDS = ("pincode", "postalCode", "postal_code")
LON_FIELDS = ("lng", "lon")


@dataclass(frozen=True)
class IngestResult:
    records: list[SalesRecord]
    raw_rows: int
    rejected_rows: int
    merged_duplicates: int

    def to_report_dict(self) -> dict[str, int]:
        return {
            "raw_rows": self.raw_rows,
            "rejected_rows": self.rejected_rows,
            "merged_duplicates": self.merged_duplicates,
            "unique_postal_codes": len(self.records),
        }


def _first_present(row: dict, fields: tuple[str, ...]) -> Any:
    for name in fields:
        value = row.get(name)
        if value not in (None, ""):
            return value
    return None


def _row_coordinates(row: dict) -> Coordinates | None:
    if "coordinates" in row:
        return parse_coordinates(row["coordinates"])
    lat = row.get("lat")
    lon = _first_present(row, LON_FIELDS)
    if lat in (None, "") or lon is None:
        return None
    return make_coordinates(lat, lon)


def parse_sales_row(row: Any) -> SalesRecord | None:
    """Turn one raw dataset row into a record, or None when it is malformed."""
    if not isinstance(row, dict):
        return None
    postal_code = _first_present(row, POSTAL_CODE_FIELDS)
    if postal_code is None:
        return None
    postal_code = str(postal_code).strip()
    if not postal_code:
        return None
    sales = safe_float(row.get("sales"))
    if sales is None or sales < 0:
        return None
    if sales.is_integer():
        sales = int(sales)
    return SalesRecord(postal_code=postal_code, sales=sales, coordinates=_row_coordinates(row))


def ingest_rows(rows: Any) -> IngestResult:
    if not isinstance(rows, list):
        raise ContractError("Sales dataset must be a JSON list of records")

    parsed: list[SalesRecord] = []
    rejected = 0
    for row in rows:
        record = parse_sales_row(row)
        if record is None:
            rejected += 1
            continue
        parsed.append(record)

    merged = merge_duplicate_records(parsed)
    return IngestResult(
        records=merged,
        raw_rows=len(rows),
        rejected_rows=rejected,
        merged_duplicates=len(parsed) - len(merged),
    )


def load_sales_dataset(path: Path) -> IngestResult:
    if not path.exists():
        raise ContractError(f"Sales dataset not found: {path}")
    try:
        rows = read_json(path)
    except ValueError as exc:
        raise ContractError(f"Sales dataset is not valid JSON: {path}") from exc
    return ingest_rows(rows)


def load_resolved_records(path: Path) -> list[ResolvedRecord]:
    """Read records written by the resolve stage; rows without coordinates are skipped."""
    if not path.exists():
        raise ContractError(f"Resolved records not found: {path}; run the resolve stage first")
    payload = read_json(path)
    rows = payload.get("records") if isinstance(payload, dict) else None
    if not isinstance(rows, list):
        raise ContractError(f"Resolved records file has no records list: {path}")

    resolved: list[ResolvedRecord] = []
    for row in rows:
        record = parse_sales_row(row)
        if record is None or record.coordinates is None:
            continue
        resolved.append(ResolvedRecord(postal_code=record.postal_code, sales=record.sales, coordinates=record.coordinates))
    return resolved
