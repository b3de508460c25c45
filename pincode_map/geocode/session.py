"""Batch ownership for the resolver.

A session holds the one batch whose emissions may reach visible state.
Starting a new batch cancels the previous one and bumps the batch id; every
emission is committed only while its batch id is still the current one, so a
late callback from a superseded batch can never overwrite fresher state.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Mapping

from pincode_map.common.geometry import Coordinates
from pincode_map.common.ids import format_batch_id
from pincode_map.common.models import ResolutionProgress, ResolvedRecord, SalesRecord
from pincode_map.geocode.cache import CoordinateCache
from pincode_map.geocode.nominatim import Geocoder
from pincode_map.geocode.resolver import (
    DEFAULT_DELAY_SECONDS,
    CancellationToken,
    ResolutionResult,
    SleepFunc,
    resolve_batch,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolutionState:
    batch_id: str | None
    records: tuple[ResolvedRecord, ...]
    progress: ResolutionProgress
    settled: bool
    result: ResolutionResult | None = None

    @classmethod
    def idle(cls) -> "ResolutionState":
        return cls(
            batch_id=None,
            records=(),
            progress=ResolutionProgress(processed=0, total=0, failures=0),
            settled=True,
        )


StateListener = Callable[[ResolutionState], None]


class ResolutionSession:
    def __init__(
        self,
        *,
        cache: CoordinateCache,
        seed_table: Mapping[str, Coordinates],
        geocoder: Geocoder,
        delay_seconds: float = DEFAULT_DELAY_SECONDS,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.cache = cache
        self.seed_table = seed_table
        self.geocoder = geocoder
        self.delay_seconds = delay_seconds
        self.sleep = sleep
        self.state = ResolutionState.idle()
        self._sequence = itertools.count(1)
        self._current_batch_id: str | None = None
        self._token: CancellationToken | None = None
        self._task: asyncio.Task | None = None
        self._listeners: list[StateListener] = []

    @property
    def current_batch_id(self) -> str | None:
        return self._current_batch_id

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def is_current(self, batch_id: str) -> bool:
        return batch_id == self._current_batch_id

    def _commit(self, batch_id: str, state: ResolutionState) -> bool:
        if not self.is_current(batch_id):
            logger.debug(
                "dropping emission from superseded batch",
                extra={"batch_id": batch_id, "event": "STALE_EMIT"},
            )
            return False
        self.state = state
        for listener in list(self._listeners):
            listener(state)
        return True

    def _on_progress(self, batch_id: str, progress: ResolutionProgress) -> None:
        self._commit(batch_id, replace(self.state, progress=progress))

    def _on_record(self, batch_id: str, record: ResolvedRecord) -> None:
        self._commit(batch_id, replace(self.state, records=self.state.records + (record,)))

    def start(self, records: Iterable[SalesRecord]) -> asyncio.Task:
        """Supersede any in-flight batch and begin resolving ``records``.

        Must be called from a running event loop.
        """
        if self._token is not None:
            self._token.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()

        pending = list(records)
        batch_id = format_batch_id(next(self._sequence))
        token = CancellationToken()
        self._current_batch_id = batch_id
        self._token = token
        self._commit(
            batch_id,
            ResolutionState(
                batch_id=batch_id,
                records=(),
                progress=ResolutionProgress(processed=0, total=len(pending), failures=0),
                settled=not pending,
            ),
        )
        self._task = asyncio.get_running_loop().create_task(self._run(batch_id, token, pending))
        return self._task

    async def _run(self, batch_id: str, token: CancellationToken, records: list[SalesRecord]) -> ResolutionResult:
        result = await resolve_batch(
            records,
            cache=self.cache,
            seed_table=self.seed_table,
            geocoder=self.geocoder,
            token=token,
            on_progress=lambda progress: self._on_progress(batch_id, progress),
            on_record=lambda record: self._on_record(batch_id, record),
            delay_seconds=self.delay_seconds,
            sleep=self.sleep,
        )
        if not result.superseded:
            self._commit(
                batch_id,
                replace(
                    self.state,
                    records=result.records,
                    progress=result.progress,
                    settled=True,
                    result=result,
                ),
            )
        return result

    async def wait(self) -> ResolutionResult | None:
        """Wait until the current batch settles, following any supersession."""
        while True:
            task = self._task
            if task is None:
                return None
            await asyncio.wait({task})
            if task is not self._task:
                continue
            if task.cancelled():
                return None
            return task.result()

    def cancel(self) -> None:
        if self._token is not None:
            self._token.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._current_batch_id = None
