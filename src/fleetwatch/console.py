"""Live tracking view: poller → filter pipeline → reconciliation engine.

Each mount builds a fresh map instance, engine, pipeline and poll
session; unmount tears all of them down so repeated mount/unmount
cycles never share or leak markers, stylesheets or timers.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from fleetwatch.config import FleetwatchConfig
from fleetwatch.exceptions import FleetwatchError
from fleetwatch.map.engine import ReconcileResult, ReconciliationEngine
from fleetwatch.map.substrate import MapSubstrate
from fleetwatch.models.entity import TrackedEntity
from fleetwatch.models.snapshot import EntityKind, Snapshot
from fleetwatch.models.stats import AggregateStats
from fleetwatch.polling import PollConfig, PollingDataSource, TrackingApi
from fleetwatch.state.filters import FilterState
from fleetwatch.state.pipeline import FilterPipeline

_logger = logging.getLogger(__name__)


class LiveTrackingView:
    """Usage::

        async with TrackingClient(config) as client:
            view = LiveTrackingView(client, make_map, config=config)
            await view.mount()
            view.update_filters(status="available")
            view.select("veh-1")
            ...
            view.unmount()
    """

    def __init__(
        self,
        api: TrackingApi,
        substrate_factory: Callable[[], MapSubstrate],
        *,
        config: FleetwatchConfig | None = None,
        entity_kind: EntityKind | str = EntityKind.VEHICLES,
        filters: FilterState | None = None,
        on_notify: Callable[[str], None] | None = None,
        on_selection_change: Callable[[TrackedEntity | None], None] | None = None,
    ) -> None:
        self._api = api
        self._substrate_factory = substrate_factory
        self._config = config or FleetwatchConfig()
        self._poll_config = PollConfig.from_config(self._config, entity_kind)
        self._initial_filters = filters or FilterState()
        self._on_notify = on_notify
        self._on_selection_change = on_selection_change

        self._engine: ReconciliationEngine | None = None
        self._pipeline: FilterPipeline | None = None
        self._source: PollingDataSource | None = None
        self._last_result: ReconcileResult | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> LiveTrackingView:
        await self.mount()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.unmount()

    @property
    def is_mounted(self) -> bool:
        return self._engine is not None

    def mount(self) -> asyncio.Task[Snapshot | None]:
        """Build the map, start polling and return the initial fetch task."""
        if self._engine is not None:
            raise FleetwatchError("View is already mounted")
        engine = ReconciliationEngine(
            self._substrate_factory(),
            on_select=self.select,
            map_defaults=self._config.map,
        )
        engine.open()
        self._engine = engine
        self._pipeline = FilterPipeline(
            filters=self._initial_filters,
            on_visible_change=self._render,
            on_selection_change=self._selection_changed,
        )
        self._source = PollingDataSource(
            self._api,
            on_update=self._pipeline.update_snapshot,
            on_notify=self._on_notify,
        )
        _logger.debug("Live tracking view mounted (%s)", self._poll_config.entity_kind)
        return self._source.start(self._poll_config)

    def unmount(self) -> None:
        source, engine, pipeline = self._source, self._engine, self._pipeline
        self._source = self._engine = None
        if source is not None:
            source.stop()
        if pipeline is not None:
            # Filters survive a remount, like the filter bar around the map.
            self._initial_filters = pipeline.filters
        self._pipeline = None
        if engine is not None:
            engine.close()
        _logger.debug("Live tracking view unmounted")

    # ------------------------------------------------------------------
    # Operator actions
    # ------------------------------------------------------------------

    def select(self, entity_id: str | None) -> bool:
        """Select from a marker click or list row; ``None`` clears."""
        return self._require_pipeline().select(entity_id)

    def clear_selection(self) -> None:
        self._require_pipeline().clear_selection()

    def update_filters(self, **changes: Any) -> FilterState:
        return self._require_pipeline().update_filters(**changes)

    def reset_filters(self) -> None:
        self._require_pipeline().reset_filters()

    def fit_all(self) -> bool:
        engine = self._engine
        return engine.fit_all() if engine is not None else False

    async def refresh(self) -> Snapshot | None:
        if self._source is None:
            raise FleetwatchError("View is not mounted")
        return await self._source.refresh()

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def filters(self) -> FilterState:
        return self._pipeline.filters if self._pipeline is not None else self._initial_filters

    @property
    def visible(self) -> tuple[TrackedEntity, ...]:
        return self._pipeline.visible if self._pipeline is not None else ()

    @property
    def selected_entity(self) -> TrackedEntity | None:
        return self._pipeline.selected_entity if self._pipeline is not None else None

    @property
    def stats(self) -> AggregateStats | None:
        snapshot = self._source.snapshot if self._source is not None else None
        return snapshot.stats if snapshot is not None else None

    @property
    def is_loading(self) -> bool:
        return self._source.is_loading if self._source is not None else False

    @property
    def last_error(self) -> FleetwatchError | None:
        return self._source.last_error if self._source is not None else None

    @property
    def last_update_at(self) -> datetime | None:
        return self._source.last_update_at if self._source is not None else None

    @property
    def last_result(self) -> ReconcileResult | None:
        """Outcome of the most recent reconciliation pass."""
        return self._last_result

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def _require_pipeline(self) -> FilterPipeline:
        if self._pipeline is None:
            raise FleetwatchError("View is not mounted")
        return self._pipeline

    def _render(self, entities: tuple[TrackedEntity, ...]) -> None:
        engine = self._engine
        if engine is None:
            return
        self._last_result = engine.reconcile(entities)

    def _selection_changed(self, entity_id: str | None) -> None:
        if self._engine is not None:
            self._engine.focus(entity_id)
        if self._on_selection_change is not None:
            pipeline = self._pipeline
            self._on_selection_change(pipeline.selected_entity if pipeline is not None else None)
