"""Sequential postal code resolution over cache, seed table and geocoder.

Each record is resolved in input order:

1. coordinates supplied with the record are accepted as-is,
2. then the coordinate cache is consulted,
3. then the static seed table (hits are written through to the cache),
4. then a single external lookup (hits are written through to the cache).

Only external lookups are rate limited: a fixed delay separates two
consecutive lookups, so cache and seed hits never wait and nothing waits
after the last record. A failed lookup drops that record and the batch
carries on.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Mapping

from pincode_map.common.geometry import Coordinates
from pincode_map.common.models import ResolutionProgress, ResolvedRecord, SalesRecord
from pincode_map.geocode.cache import CoordinateCache
from pincode_map.geocode.nominatim import Geocoder

logger = logging.getLogger(__name__)

DEFAULT_DELAY_SECONDS = 0.3

SOURCE_PROVIDED = "provided"
SOURCE_CACHE = "cache"
SOURCE_SEED = "seed"
SOURCE_EXTERNAL = "external"
RESOLUTION_SOURCES = (SOURCE_PROVIDED, SOURCE_CACHE, SOURCE_SEED, SOURCE_EXTERNAL)

ProgressCallback = Callable[[ResolutionProgress], None]
RecordCallback = Callable[[ResolvedRecord], None]
SleepFunc = Callable[[float], Awaitable[None]]


class CancellationToken:
    """Flag shared between a batch and whoever may supersede it."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass(frozen=True)
class ResolutionResult:
    records: tuple[ResolvedRecord, ...]
    progress: ResolutionProgress
    source_counts: dict[str, int] = field(default_factory=dict)
    failed_postal_codes: tuple[str, ...] = ()
    superseded: bool = False

    def to_report_dict(self) -> dict:
        return {
            "total": self.progress.total,
            "processed": self.progress.processed,
            "resolved": len(self.records),
            "failures": self.progress.failures,
            "failed_postal_codes": list(self.failed_postal_codes),
            "sources": dict(self.source_counts),
            "superseded": self.superseded,
        }


async def _lookup(geocoder: Geocoder, postal_code: str) -> Coordinates | None:
    try:
        return await geocoder.lookup(postal_code)
    except Exception as exc:
        logger.warning(
            f"lookup failed for {postal_code}: {exc}",
            extra={
                "postal_code": postal_code,
                "event": "LOOKUP_FAIL",
                "status": "error",
                "error_code": getattr(exc, "error_code", type(exc).__name__),
            },
        )
        return None


async def resolve_batch(
    records: Iterable[SalesRecord],
    *,
    cache: CoordinateCache,
    seed_table: Mapping[str, Coordinates],
    geocoder: Geocoder,
    token: CancellationToken | None = None,
    on_progress: ProgressCallback | None = None,
    on_record: RecordCallback | None = None,
    delay_seconds: float = DEFAULT_DELAY_SECONDS,
    sleep: SleepFunc = asyncio.sleep,
) -> ResolutionResult:
    token = token or CancellationToken()
    pending = list(records)
    total = len(pending)

    resolved: list[ResolvedRecord] = []
    failed: list[str] = []
    source_counts = {source: 0 for source in RESOLUTION_SOURCES}
    progress = ResolutionProgress(processed=0, total=total, failures=0)
    external_calls = 0

    def _result(superseded: bool) -> ResolutionResult:
        return ResolutionResult(
            records=tuple(resolved),
            progress=progress,
            source_counts=source_counts,
            failed_postal_codes=tuple(failed),
            superseded=superseded,
        )

    if token.cancelled:
        return _result(superseded=True)
    if on_progress is not None:
        on_progress(progress)

    for record in pending:
        if token.cancelled:
            return _result(superseded=True)

        postal_code = record.postal_code
        coords = record.coordinates
        source = SOURCE_PROVIDED

        if coords is None:
            coords = cache.get(postal_code)
            source = SOURCE_CACHE

        if coords is None:
            coords = seed_table.get(postal_code)
            source = SOURCE_SEED
            if coords is not None:
                cache.set(postal_code, coords)

        if coords is None:
            if external_calls > 0 and delay_seconds > 0:
                await sleep(delay_seconds)
                if token.cancelled:
                    return _result(superseded=True)
            external_calls += 1
            coords = await _lookup(geocoder, postal_code)
            source = SOURCE_EXTERNAL
            if token.cancelled:
                return _result(superseded=True)
            if coords is not None:
                cache.set(postal_code, coords)

        if coords is None:
            failed.append(postal_code)
        else:
            resolved_record = ResolvedRecord(postal_code=postal_code, sales=record.sales, coordinates=coords)
            resolved.append(resolved_record)
            source_counts[source] += 1
            if on_record is not None:
                on_record(resolved_record)

        progress = ResolutionProgress(
            processed=progress.processed + 1,
            total=total,
            failures=len(failed),
        )
        if on_progress is not None:
            on_progress(progress)

    return _result(superseded=False)
