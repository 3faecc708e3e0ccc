"""Filter & selection pipeline.

Derives the visible entity list from the latest snapshot and the
current filters, and owns the single selection.

A selection never outlives its entity: whenever a recomputation drops
the selected id from the visible list the selection is cleared and
listeners receive ``None``, so a detail panel can never show data that
is no longer part of the filtered result.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from fleetwatch.models.entity import TrackedEntity
from fleetwatch.models.snapshot import Snapshot
from fleetwatch.models.stats import AggregateStats
from fleetwatch.state.filters import FilterState, filter_entities

_logger = logging.getLogger(__name__)


class FilterPipeline:
    def __init__(
        self,
        *,
        filters: FilterState | None = None,
        on_visible_change: Callable[[tuple[TrackedEntity, ...]], None] | None = None,
        on_selection_change: Callable[[str | None], None] | None = None,
    ) -> None:
        self._filters = filters or FilterState()
        self._on_visible_change = on_visible_change
        self._on_selection_change = on_selection_change
        self._snapshot: Snapshot | None = None
        self._visible: tuple[TrackedEntity, ...] = ()
        self._selected_id: str | None = None

    @property
    def snapshot(self) -> Snapshot | None:
        return self._snapshot

    @property
    def filters(self) -> FilterState:
        return self._filters

    @property
    def visible(self) -> tuple[TrackedEntity, ...]:
        return self._visible

    @property
    def visible_stats(self) -> AggregateStats:
        """Counters over the filtered list (the snapshot carries fleet-wide ones)."""
        return AggregateStats.from_entities(self._visible)

    @property
    def selected_id(self) -> str | None:
        return self._selected_id

    @property
    def selected_entity(self) -> TrackedEntity | None:
        """The selected entity as of the latest filtered result."""
        if self._selected_id is None:
            return None
        for entity in self._visible:
            if entity.id == self._selected_id:
                return entity
        return None

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def update_snapshot(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        self._recompute()

    def set_filters(self, filters: FilterState) -> None:
        if filters == self._filters:
            return
        self._filters = filters
        self._recompute()

    def update_filters(self, **changes: Any) -> FilterState:
        """Change individual filter fields, e.g. ``update_filters(status="maintenance")``."""
        self.set_filters(self._filters.with_changes(**changes))
        return self._filters

    def reset_filters(self) -> None:
        self.set_filters(FilterState())

    def select(self, entity_id: str | None) -> bool:
        """Select a visible entity, or clear with ``None``.

        Ids that are not in the visible list are ignored. Re-selecting
        the current id notifies again so the view can re-focus it.
        """
        if entity_id is None:
            self.clear_selection()
            return True
        if not any(entity.id == entity_id for entity in self._visible):
            _logger.debug("Ignoring selection of %s: not in the filtered list", entity_id)
            return False
        self._selected_id = entity_id
        self._notify_selection()
        return True

    def clear_selection(self) -> None:
        if self._selected_id is None:
            return
        self._selected_id = None
        self._notify_selection()

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def _recompute(self) -> None:
        entities = self._snapshot.entities if self._snapshot is not None else ()
        self._visible = filter_entities(entities, self._filters)
        if self._on_visible_change is not None:
            self._on_visible_change(self._visible)

        if self._selected_id is not None and self.selected_entity is None:
            _logger.debug("Selected entity %s left the filtered list; clearing selection", self._selected_id)
            self._selected_id = None
            self._notify_selection()

    def _notify_selection(self) -> None:
        if self._on_selection_change is not None:
            self._on_selection_change(self._selected_id)
