from __future__ import annotations

import pytest

from pincode_map.common.errors import GeocodeError
from pincode_map.common.geometry import Coordinates
from pincode_map.common.http import HttpRequestError
from pincode_map.common.models import ResolutionProgress, ResolvedRecord, SalesRecord
from pincode_map.geocode.cache import CoordinateCache
from pincode_map.geocode.resolver import CancellationToken, resolve_batch
from pincode_map.geocode.storage import MemoryStorage

SEED = {"110001": Coordinates(28.6139, 77.209), "400001": Coordinates(18.9388, 72.8354)}


class FakeGeocoder:
    def __init__(self, results: dict | None = None):
        self.results = results or {}
        self.calls: list[str] = []

    async def lookup(self, postal_code: str):
        self.calls.append(postal_code)
        value = self.results.get(postal_code)
        if isinstance(value, Exception):
            raise value
        return value


class SleepRecorder:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


async def _resolve(records, *, cache=None, geocoder=None, sleep=None, **kwargs):
    return await resolve_batch(
        records,
        cache=cache if cache is not None else CoordinateCache(MemoryStorage()),
        seed_table=SEED,
        geocoder=geocoder or FakeGeocoder(),
        sleep=sleep or SleepRecorder(),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_seed_hits_make_no_external_calls_and_write_through():
    geocoder = FakeGeocoder()
    sleep = SleepRecorder()
    cache = CoordinateCache(MemoryStorage())

    result = await _resolve(
        [SalesRecord("110001", 100), SalesRecord("400001", 50)],
        cache=cache,
        geocoder=geocoder,
        sleep=sleep,
    )

    assert [r.coordinates for r in result.records] == [SEED["110001"], SEED["400001"]]
    assert geocoder.calls == []
    assert sleep.calls == []
    assert cache.get("110001") == SEED["110001"]
    assert result.source_counts["seed"] == 2


@pytest.mark.asyncio
async def test_previously_looked_up_codes_come_from_cache_without_delay():
    storage = MemoryStorage()
    records = [SalesRecord("999001", 10), SalesRecord("999002", 20)]
    first = FakeGeocoder({"999001": Coordinates(10.0, 70.0), "999002": Coordinates(11.0, 71.0)})
    await _resolve(records, cache=CoordinateCache(storage), geocoder=first)

    second = FakeGeocoder()
    sleep = SleepRecorder()
    result = await _resolve(records, cache=CoordinateCache(storage), geocoder=second, sleep=sleep)

    assert second.calls == []
    assert sleep.calls == []
    assert [r.coordinates for r in result.records] == [Coordinates(10.0, 70.0), Coordinates(11.0, 71.0)]
    assert result.source_counts["cache"] == 2


@pytest.mark.asyncio
async def test_supplied_coordinates_skip_cache_and_lookup():
    geocoder = FakeGeocoder()
    cache = CoordinateCache(MemoryStorage())

    result = await _resolve(
        [SalesRecord("123456", 5, Coordinates(9.5, 76.3))],
        cache=cache,
        geocoder=geocoder,
    )

    assert result.records == (ResolvedRecord("123456", 5, Coordinates(9.5, 76.3)),)
    assert geocoder.calls == []
    assert cache.get("123456") is None
    assert result.source_counts["provided"] == 1


@pytest.mark.asyncio
async def test_failures_are_counted_and_batch_continues():
    geocoder = FakeGeocoder(
        {
            "111111": None,
            "222222": HttpRequestError("network down"),
            "333333": GeocodeError("malformed"),
            "444444": Coordinates(20.0, 80.0),
        }
    )

    result = await _resolve(
        [SalesRecord(code, 1) for code in ("111111", "222222", "333333", "444444")],
        geocoder=geocoder,
    )

    assert [r.postal_code for r in result.records] == ["444444"]
    assert result.progress == ResolutionProgress(processed=4, total=4, failures=3)
    assert result.failed_postal_codes == ("111111", "222222", "333333")
    assert result.superseded is False


@pytest.mark.asyncio
async def test_unexpected_geocoder_error_fails_only_that_record():
    geocoder = FakeGeocoder({"555555": KeyError("lat"), "666666": Coordinates(21.0, 81.0)})

    result = await _resolve([SalesRecord("555555", 5), SalesRecord("666666", 6)], geocoder=geocoder)

    assert geocoder.calls == ["555555", "666666"]
    assert [r.postal_code for r in result.records] == ["666666"]
    assert result.progress == ResolutionProgress(processed=2, total=2, failures=1)
    assert result.failed_postal_codes == ("555555",)


@pytest.mark.asyncio
async def test_delay_only_separates_external_lookups():
    geocoder = FakeGeocoder({"900001": Coordinates(1, 1), "900002": Coordinates(2, 2), "900003": Coordinates(3, 3)})
    sleep = SleepRecorder()

    await _resolve(
        [
            SalesRecord("110001", 1),
            SalesRecord("900001", 1),
            SalesRecord("400001", 1),
            SalesRecord("900002", 1),
            SalesRecord("900003", 1),
            SalesRecord("110001", 1),
        ],
        geocoder=geocoder,
        sleep=sleep,
        delay_seconds=0.3,
    )

    assert geocoder.calls == ["900001", "900002", "900003"]
    assert sleep.calls == [0.3, 0.3]


@pytest.mark.asyncio
async def test_single_external_lookup_never_waits():
    sleep = SleepRecorder()

    await _resolve([SalesRecord("900001", 1)], geocoder=FakeGeocoder({"900001": Coordinates(1, 1)}), sleep=sleep)

    assert sleep.calls == []


@pytest.mark.asyncio
async def test_progress_is_monotonic_and_reaches_total_once():
    progress: list[ResolutionProgress] = []
    emitted: list[ResolvedRecord] = []
    cache = CoordinateCache(MemoryStorage())
    cache.set("555555", Coordinates(5, 5))

    result = await _resolve(
        [
            SalesRecord("110001", 1),
            SalesRecord("900001", 2),
            SalesRecord("900002", 3),
            SalesRecord("555555", 4),
        ],
        cache=cache,
        geocoder=FakeGeocoder({"900001": Coordinates(1, 1)}),
        on_progress=progress.append,
        on_record=emitted.append,
    )

    assert [(p.processed, p.total, p.failures) for p in progress] == [
        (0, 4, 0),
        (1, 4, 0),
        (2, 4, 0),
        (3, 4, 1),
        (4, 4, 1),
    ]
    assert sum(1 for p in progress if p.processed == p.total) == 1
    assert tuple(emitted) == result.records
    assert [r.postal_code for r in emitted] == ["110001", "900001", "555555"]


@pytest.mark.asyncio
async def test_empty_input_settles_immediately():
    progress: list[ResolutionProgress] = []

    result = await _resolve([], on_progress=progress.append)

    assert result.records == ()
    assert result.progress == ResolutionProgress(0, 0, 0)
    assert progress == [ResolutionProgress(0, 0, 0)]


@pytest.mark.asyncio
async def test_cancelled_token_stops_further_emissions():
    token = CancellationToken()
    progress: list[ResolutionProgress] = []

    class CancellingGeocoder(FakeGeocoder):
        async def lookup(self, postal_code: str):
            token.cancel()
            return await super().lookup(postal_code)

    geocoder = CancellingGeocoder({"900001": Coordinates(1, 1), "900002": Coordinates(2, 2)})
    result = await _resolve(
        [SalesRecord("110001", 1), SalesRecord("900001", 1), SalesRecord("900002", 1)],
        geocoder=geocoder,
        token=token,
        on_progress=progress.append,
    )

    assert result.superseded is True
    assert geocoder.calls == ["900001"]
    assert [p.processed for p in progress] == [0, 1]
