"""Filtered, sorted and summarised views of resolved records.

Everything here is a pure function of ``(records, filter_state)``: calling it
twice with the same inputs gives identical output, and the input records are
never modified.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

from pincode_map.common.deterministic import stable_sorted
from pincode_map.common.geometry import safe_float
from pincode_map.common.models import ResolvedRecord

LIMIT_ALL = "all"
HEAT_LOW = "low"
HEAT_MID = "mid"
HEAT_HIGH = "high"
HEAT_BUCKET_IDS = (HEAT_LOW, HEAT_MID, HEAT_HIGH)


def _parse_bound(value) -> float | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    return safe_float(value)


def normalise_limit(limit) -> int | None:
    """Return the numeric limit, or None meaning "all".

    Anything that does not read as a number falls back to "all".
    """
    if limit is None or isinstance(limit, bool):
        return None
    if isinstance(limit, str):
        limit = limit.strip()
        if not limit or limit.lower() == LIMIT_ALL:
            return None
    number = safe_float(limit)
    if number is None:
        return None
    return max(0, int(number))


@dataclass(frozen=True)
class FilterState:
    search_term: str = ""
    min_sales: float | None = None
    max_sales: float | None = None
    limit: int | str = LIMIT_ALL

    @classmethod
    def from_inputs(
        cls,
        search_term: str | None = "",
        min_sales: str | float | None = "",
        max_sales: str | float | None = "",
        limit: str | int | None = LIMIT_ALL,
    ) -> "FilterState":
        """Build a filter from raw control values; blank or unreadable bounds are ignored."""
        normalised_limit = normalise_limit(limit)
        return cls(
            search_term=(search_term or "").strip(),
            min_sales=_parse_bound(min_sales),
            max_sales=_parse_bound(max_sales),
            limit=LIMIT_ALL if normalised_limit is None else normalised_limit,
        )

    def matches(self, record: ResolvedRecord) -> bool:
        search = self.search_term.strip()
        if search and search not in str(record.postal_code):
            return False
        if self.min_sales is not None and record.sales < self.min_sales:
            return False
        if self.max_sales is not None and record.sales > self.max_sales:
            return False
        return True


@dataclass(frozen=True)
class SalesStats:
    count: int
    total_sales: float
    average_sales: float
    max_sales: float

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "total_sales": self.total_sales,
            "average_sales": self.average_sales,
            "max_sales": self.max_sales,
        }


@dataclass(frozen=True)
class HeatConfig:
    intensity_floor: float = 0.2
    low_threshold: float = 0.33
    mid_threshold: float = 0.66

    @classmethod
    def from_settings(cls, settings: dict) -> "HeatConfig":
        heat = settings["heat"]
        return cls(
            intensity_floor=float(heat["intensity_floor"]),
            low_threshold=float(heat["low_threshold"]),
            mid_threshold=float(heat["mid_threshold"]),
        )


@dataclass(frozen=True)
class HeatBucket:
    id: str
    points: tuple[tuple[float, float, float], ...]

    def to_dict(self) -> dict:
        return {"id": self.id, "points": [list(point) for point in self.points]}


@dataclass(frozen=True)
class PipelineView:
    display_set: tuple[ResolvedRecord, ...]
    stats: SalesStats
    heat_buckets: tuple[HeatBucket, ...]


@dataclass(frozen=True)
class Selection:
    record: ResolvedRecord
    visible: bool


def filter_records(records: Iterable[ResolvedRecord], filter_state: FilterState) -> list[ResolvedRecord]:
    return [record for record in records if filter_state.matches(record)]


def sort_and_limit(records: Iterable[ResolvedRecord], limit) -> list[ResolvedRecord]:
    ordered = stable_sorted(records, key=lambda record: record.sales, descending=True)
    limit_value = normalise_limit(limit)
    if limit_value is None:
        return ordered
    return ordered[:limit_value]


def compute_display_set(records: Iterable[ResolvedRecord], filter_state: FilterState) -> list[ResolvedRecord]:
    return sort_and_limit(filter_records(records, filter_state), filter_state.limit)


def compute_stats(display_set: Sequence[ResolvedRecord]) -> SalesStats:
    if not display_set:
        return SalesStats(count=0, total_sales=0, average_sales=0, max_sales=0)
    total = sum(record.sales for record in display_set)
    return SalesStats(
        count=len(display_set),
        total_sales=total,
        average_sales=total / len(display_set),
        max_sales=max(record.sales for record in display_set),
    )


def sales_range(records: Sequence[ResolvedRecord]) -> tuple[float, float]:
    if not records:
        return 0, 0
    values = [record.sales for record in records]
    return min(values), max(values)


def sales_ratio(sales: float, minimum: float, maximum: float) -> float:
    """Position of ``sales`` within ``[minimum, maximum]``; 0.5 when the range is empty."""
    if maximum == minimum:
        return 0.5
    return (sales - minimum) / (maximum - minimum)


def heat_bucket_id(ratio: float, config: HeatConfig) -> str:
    if ratio < config.low_threshold:
        return HEAT_LOW
    if ratio < config.mid_threshold:
        return HEAT_MID
    return HEAT_HIGH


def compute_heat_buckets(
    display_set: Sequence[ResolvedRecord],
    config: HeatConfig | None = None,
) -> tuple[HeatBucket, ...]:
    config = config or HeatConfig()
    minimum, maximum = sales_range(display_set)
    grouped: dict[str, list[tuple[float, float, float]]] = {bucket_id: [] for bucket_id in HEAT_BUCKET_IDS}

    for record in display_set:
        ratio = sales_ratio(record.sales, minimum, maximum)
        intensity = config.intensity_floor + (1 - config.intensity_floor) * ratio
        grouped[heat_bucket_id(ratio, config)].append((record.lat, record.lon, intensity))

    return tuple(
        HeatBucket(id=bucket_id, points=tuple(points))
        for bucket_id, points in grouped.items()
        if points
    )


def build_view(
    records: Iterable[ResolvedRecord],
    filter_state: FilterState,
    heat_config: HeatConfig | None = None,
) -> PipelineView:
    display_set = tuple(compute_display_set(records, filter_state))
    return PipelineView(
        display_set=display_set,
        stats=compute_stats(display_set),
        heat_buckets=compute_heat_buckets(display_set, heat_config),
    )


def top_records(display_set: Sequence[ResolvedRecord], n: int = 5) -> list[ResolvedRecord]:
    return list(display_set[: max(0, n)])


def select_record(
    records: Iterable[ResolvedRecord],
    display_set: Sequence[ResolvedRecord],
    postal_code: str | None,
) -> Selection | None:
    """Find a record in the full resolved set and report whether filters hide it."""
    if not postal_code:
        return None
    match = next((record for record in records if record.postal_code == postal_code), None)
    if match is None:
        return None
    visible = any(record.postal_code == postal_code for record in display_set)
    return Selection(record=match, visible=visible)


def rounded_average(stats: SalesStats) -> int:
    return int(math.floor(stats.average_sales + 0.5))
