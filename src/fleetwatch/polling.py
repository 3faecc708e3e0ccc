"""Fixed-cadence polling of the tracking API.

A :class:`PollingDataSource` owns the fetch cadence of one mounted view.
Each :meth:`~PollingDataSource.start` opens a poll session that scopes
the timer task and every cycle it spawns; :meth:`~PollingDataSource.stop`
closes it. Cycles still in flight when their session closes run to
completion but their results are dropped.

Overlapping cycles: a timer tick that fires while any cycle of the
session is still in flight is skipped (and counted in
:attr:`~PollingDataSource.skipped_ticks`). A manual :meth:`refresh` is
never skipped; completions are ordered by cycle sequence number so an
older cycle finishing after a newer one cannot overwrite it.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol

from fleetwatch._constants import DEFAULT_POLL_INTERVAL_MS
from fleetwatch.config import FleetwatchConfig
from fleetwatch.exceptions import ConfigError, FleetwatchError
from fleetwatch.models.entity import TrackedEntity
from fleetwatch.models.snapshot import EntityKind, Snapshot
from fleetwatch.models.stats import AggregateStats

_logger = logging.getLogger(__name__)

#: Transient notification shown when a foreground fetch fails.
LOAD_FAILED_MESSAGE = "Failed to load tracking data"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TrackingApi(Protocol):
    """The subset of :class:`fleetwatch.client.TrackingClient` the poller uses."""

    async def get_all_vehicles(self) -> list[TrackedEntity]:
        ...

    async def get_active_rides(self) -> list[TrackedEntity]:
        ...

    async def get_stats(self) -> AggregateStats:
        ...


class VehicleApi(Protocol):
    async def get_vehicle(self, vehicle_id: str) -> TrackedEntity:
        ...


@dataclasses.dataclass(frozen=True)
class PollConfig:
    """Parameters of one poll session.

    ``auto_start=False`` runs the initial fetch only; no recurring
    cycles are scheduled.
    """

    entity_kind: EntityKind = EntityKind.VEHICLES
    interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    auto_start: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "entity_kind", EntityKind(self.entity_kind))
        if self.interval_ms <= 0:
            raise ConfigError(f"interval_ms must be positive, got {self.interval_ms}")

    @classmethod
    def from_config(
        cls,
        config: FleetwatchConfig,
        entity_kind: EntityKind | str = EntityKind.VEHICLES,
    ) -> PollConfig:
        return cls(
            entity_kind=EntityKind(entity_kind),
            interval_ms=config.poll_interval_ms,
            auto_start=config.auto_refresh,
        )


@dataclasses.dataclass(eq=False)
class _PollSession:
    """Timer and in-flight cycles belonging to one ``start()``."""

    config: PollConfig
    active: bool = True
    timer: asyncio.Task[None] | None = None
    cycles: set[asyncio.Task[Snapshot | None]] = dataclasses.field(default_factory=set)

    @property
    def has_cycle_in_flight(self) -> bool:
        return any(not task.done() for task in self.cycles)


class PollingDataSource:
    """Polls entities and aggregate stats on a fixed cadence.

    Usage::

        source = PollingDataSource(client, on_update=pipeline.update_snapshot)
        await source.start(PollConfig(entity_kind="vehicles"))
        ...
        source.stop()
    """

    def __init__(
        self,
        api: TrackingApi,
        *,
        on_update: Callable[[Snapshot], None] | None = None,
        on_notify: Callable[[str], None] | None = None,
        on_loading_change: Callable[[bool], None] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._api = api
        self._on_update = on_update
        self._on_notify = on_notify
        self._on_loading_change = on_loading_change
        self._clock = clock
        self._session: _PollSession | None = None
        self._snapshot: Snapshot | None = None
        self._is_loading = False
        self._last_error: FleetwatchError | None = None
        self._last_update_at: datetime | None = None
        self._next_seq = 0
        self._applied_seq = 0
        self._skipped_ticks = 0

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> Snapshot | None:
        """Latest applied snapshot; kept while a newer fetch is in flight."""
        return self._snapshot

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def last_error(self) -> FleetwatchError | None:
        return self._last_error

    @property
    def last_update_at(self) -> datetime | None:
        return self._last_update_at

    @property
    def is_running(self) -> bool:
        return self._session is not None

    @property
    def skipped_ticks(self) -> int:
        return self._skipped_ticks

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, config: PollConfig | None = None) -> asyncio.Task[Snapshot | None]:
        """Open a poll session and kick off the initial foreground fetch.

        Must be called from a running event loop. Returns the task of the
        initial cycle; awaiting it yields the applied snapshot, or
        ``None`` when the cycle failed or was discarded. Calling
        ``start()`` on a running source restarts it.
        """
        if self._session is not None:
            self.stop()
        config = config or PollConfig()
        session = _PollSession(config=config)
        self._session = session
        _logger.debug(
            "Polling started kind=%s interval_ms=%d auto_start=%s",
            config.entity_kind,
            config.interval_ms,
            config.auto_start,
        )

        self._set_loading(True)
        initial = self._spawn_cycle(session, foreground=True)
        if config.auto_start:
            session.timer = asyncio.create_task(self._run_timer(session), name="fleetwatch-poll-timer")
        return initial

    def stop(self) -> None:
        """Close the poll session; in-flight results will be discarded."""
        session = self._session
        self._session = None
        if session is None:
            return
        session.active = False
        if session.timer is not None:
            session.timer.cancel()
            session.timer = None
        self._set_loading(False)
        _logger.debug("Polling stopped (%d cycle(s) still in flight)", sum(not t.done() for t in session.cycles))

    async def refresh(self) -> Snapshot | None:
        """Fetch now, in the background, without disturbing the schedule."""
        session = self._require_session()
        return await self._spawn_cycle(session, foreground=False)

    async def load(self) -> Snapshot | None:
        """Blocking fetch: raises the loading flag and notifies on failure."""
        session = self._require_session()
        self._set_loading(True)
        return await self._spawn_cycle(session, foreground=True)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_session(self) -> _PollSession:
        if self._session is None:
            raise FleetwatchError("Polling is not running. Call start() first.")
        return self._session

    def _set_loading(self, value: bool) -> None:
        if self._is_loading == value:
            return
        self._is_loading = value
        if self._on_loading_change is not None:
            self._on_loading_change(value)

    def _spawn_cycle(self, session: _PollSession, *, foreground: bool) -> asyncio.Task[Snapshot | None]:
        self._next_seq += 1
        task = asyncio.create_task(
            self._cycle(session, self._next_seq, foreground=foreground),
            name=f"fleetwatch-poll-cycle-{self._next_seq}",
        )
        session.cycles.add(task)
        task.add_done_callback(session.cycles.discard)
        task.add_done_callback(_log_crashed_cycle)
        return task

    async def _run_timer(self, session: _PollSession) -> None:
        loop = asyncio.get_running_loop()
        interval = session.config.interval_ms / 1000.0
        next_tick = loop.time() + interval
        while session.active:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            if not session.active:
                return
            next_tick += interval
            # Ticks are anchored to the clock; realign after a stall instead of bursting.
            while next_tick <= loop.time():
                next_tick += interval
            if session.has_cycle_in_flight:
                self._skipped_ticks += 1
                _logger.debug("Skipping poll tick: previous cycle still in flight")
                continue
            self._spawn_cycle(session, foreground=False)

    async def _fetch_snapshot(self, kind: EntityKind) -> Snapshot:
        if kind == EntityKind.ACTIVE_TASKS:
            entity_call = self._api.get_active_rides()
        else:
            entity_call = self._api.get_all_vehicles()
        entities, stats = await asyncio.gather(entity_call, self._api.get_stats(), return_exceptions=True)
        # Both halves succeed together or the cycle fails as a whole.
        if isinstance(entities, BaseException):
            raise entities
        if isinstance(stats, BaseException):
            raise stats
        return Snapshot(kind=kind, entities=tuple(entities), stats=stats, captured_at=self._clock())

    async def _cycle(self, session: _PollSession, seq: int, *, foreground: bool) -> Snapshot | None:
        self._last_error = None
        try:
            try:
                snapshot = await self._fetch_snapshot(session.config.entity_kind)
            except FleetwatchError as exc:
                if not session.active:
                    _logger.debug("Discarding failed cycle %d from a stopped session", seq)
                elif seq < self._applied_seq:
                    _logger.debug("Discarding failed cycle %d, cycle %d already applied: %s", seq, self._applied_seq, exc)
                else:
                    self._record_failure(exc, foreground=foreground)
                return None
            if not session.active:
                _logger.debug("Discarding cycle %d from a stopped session", seq)
                return None
            return self._apply(seq, snapshot)
        finally:
            if foreground and session.active:
                self._set_loading(False)

    def _record_failure(self, exc: FleetwatchError, *, foreground: bool) -> None:
        self._last_error = exc
        if foreground:
            _logger.warning("Tracking fetch failed: %s", exc)
            if self._on_notify is not None:
                self._on_notify(LOAD_FAILED_MESSAGE)
        else:
            _logger.info("Background tracking fetch failed, keeping previous snapshot: %s", exc)

    def _apply(self, seq: int, snapshot: Snapshot) -> Snapshot | None:
        if seq < self._applied_seq:
            _logger.debug("Discarding cycle %d, cycle %d already applied", seq, self._applied_seq)
            return None
        self._applied_seq = seq
        self._snapshot = snapshot
        self._last_update_at = snapshot.captured_at
        if self._on_update is not None:
            self._on_update(snapshot)
        return snapshot


def _log_crashed_cycle(task: asyncio.Task[Snapshot | None]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        _logger.error("Poll cycle crashed", exc_info=exc)


class VehicleTracker:
    """One-shot tracking of a single vehicle, e.g. for a detail page."""

    def __init__(self, api: VehicleApi, vehicle_id: str | None) -> None:
        self._api = api
        self._vehicle_id = vehicle_id
        self._vehicle: TrackedEntity | None = None
        self._is_loading = False
        self._last_error: FleetwatchError | None = None

    @property
    def vehicle(self) -> TrackedEntity | None:
        return self._vehicle

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def last_error(self) -> FleetwatchError | None:
        return self._last_error

    async def load(self) -> TrackedEntity | None:
        """Fetch the vehicle; keeps the previous value when the call fails."""
        if not self._vehicle_id:
            return None
        self._is_loading = True
        self._last_error = None
        try:
            self._vehicle = await self._api.get_vehicle(self._vehicle_id)
        except FleetwatchError as exc:
            _logger.warning("Vehicle %s fetch failed: %s", self._vehicle_id, exc)
            self._last_error = exc
        finally:
            self._is_loading = False
        return self._vehicle

    refresh = load
