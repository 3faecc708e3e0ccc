"""Incremental reconciliation of map markers against tracked entities.

The engine is the only owner of marker handles. Every pass computes the
set of entities that can be placed on the map and applies the minimal
create/update/remove operations to make the map match it:

* an id seen for the first time gets a marker, a click binding and a popup;
* a known id is updated only when its coordinates or icon parameters
  changed, and only the changed parts are sent;
* an id that is no longer placeable loses its marker.

A substrate exception while handling one entity is recorded as a
:class:`~fleetwatch.exceptions.RenderingFault` on the pass result and the
pass continues with the next entity.
"""

from __future__ import annotations

import dataclasses
import functools
import logging
from collections.abc import Callable, Iterable
from typing import Any

from fleetwatch._constants import MARKER_STYLESHEET
from fleetwatch.config import MapDefaults
from fleetwatch.exceptions import EngineClosedError, RenderingFault
from fleetwatch.map.icons import IconParams, build_icon
from fleetwatch.map.popup import build_popup_content
from fleetwatch.map.substrate import MapSubstrate, Marker
from fleetwatch.models.entity import TrackedEntity

_logger = logging.getLogger(__name__)


@dataclasses.dataclass(slots=True)
class MarkerHandle:
    """A live marker and the state it was last rendered with."""

    entity_id: str
    marker: Marker
    icon: IconParams
    lat: float
    lng: float
    popup: str = ""


@dataclasses.dataclass
class ReconcileResult:
    """Ids touched by one reconciliation pass."""

    created: list[str] = dataclasses.field(default_factory=list)
    updated: list[str] = dataclasses.field(default_factory=list)
    removed: list[str] = dataclasses.field(default_factory=list)
    faults: list[RenderingFault] = dataclasses.field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.created or self.updated or self.removed)


class ReconciliationEngine:
    """Keeps exactly one marker per placeable entity on one map instance.

    Usage::

        with ReconciliationEngine(substrate, on_select=selection.select) as engine:
            engine.reconcile(visible_entities)
            engine.focus("veh-1")
    """

    def __init__(
        self,
        substrate: MapSubstrate,
        *,
        on_select: Callable[[str], None] | None = None,
        map_defaults: MapDefaults | None = None,
    ) -> None:
        self._substrate = substrate
        self._on_select = on_select
        self._defaults = map_defaults or MapDefaults()
        self._handles: dict[str, MarkerHandle] = {}
        self._stylesheet: Any = None
        self._opened = False
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def __enter__(self) -> ReconciliationEngine:
        self.open()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def open(self) -> None:
        """Install the marker stylesheet and frame the default view."""
        if self._closed:
            raise EngineClosedError("Engine has been closed")
        if self._opened:
            return
        self._stylesheet = self._substrate.add_stylesheet(MARKER_STYLESHEET)
        center_lat, center_lng = self._defaults.center
        self._substrate.set_view(center_lat, center_lng, self._defaults.zoom)
        self._opened = True

    def close(self) -> None:
        """Remove every marker, uninstall the stylesheet and release the map."""
        if self._closed:
            return
        self._closed = True
        for entity_id, handle in list(self._handles.items()):
            try:
                self._substrate.remove_marker(handle.marker)
            except Exception:
                _logger.warning("Failed to remove marker for %s during teardown", entity_id, exc_info=True)
        self._handles.clear()
        if not self._opened:
            return
        try:
            if self._stylesheet is not None:
                self._substrate.remove_stylesheet(self._stylesheet)
                self._stylesheet = None
        finally:
            self._substrate.release()
        _logger.debug("Reconciliation engine closed")

    @property
    def is_closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Read-only views of the marker table
    # ------------------------------------------------------------------

    @property
    def marker_ids(self) -> frozenset[str]:
        return frozenset(self._handles)

    @property
    def marker_count(self) -> int:
        return len(self._handles)

    def has_marker(self, entity_id: str) -> bool:
        return entity_id in self._handles

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def reconcile(self, entities: Iterable[TrackedEntity]) -> ReconcileResult:
        """Make the marker set match *entities* with minimal operations."""
        if self._closed:
            raise EngineClosedError("Cannot reconcile on a closed engine")
        self.open()

        visible: dict[str, tuple[TrackedEntity, tuple[float, float]]] = {}
        for entity in entities:
            coordinates = entity.coordinates
            if entity.has_position_feed and coordinates is not None:
                visible[entity.id] = (entity, coordinates)

        result = ReconcileResult()
        for entity_id, (entity, coordinates) in visible.items():
            handle = self._handles.get(entity_id)
            if handle is None:
                self._create(entity, coordinates, result)
            else:
                self._update(handle, entity, coordinates, result)

        for entity_id in [eid for eid in self._handles if eid not in visible]:
            self._remove(entity_id, result)

        if result.changed or result.faults:
            _logger.debug(
                "Reconciled %d marker(s): created=%d updated=%d removed=%d faults=%d",
                len(self._handles),
                len(result.created),
                len(result.updated),
                len(result.removed),
                len(result.faults),
            )
        return result

    def _fault(self, result: ReconcileResult, entity_id: str, operation: str, exc: Exception) -> None:
        fault = RenderingFault(
            f"{operation} marker for {entity_id} failed: {exc}",
            entity_id=entity_id,
            operation=operation,
        )
        fault.__cause__ = exc
        result.faults.append(fault)
        _logger.warning("Skipping marker %s for %s: %s", operation, entity_id, exc)

    def _create(self, entity: TrackedEntity, coordinates: tuple[float, float], result: ReconcileResult) -> None:
        lat, lng = coordinates
        params = IconParams.from_entity(entity)
        try:
            marker = self._substrate.create_marker(lat, lng, build_icon(params))
        except Exception as exc:
            self._fault(result, entity.id, "create", exc)
            return

        popup = build_popup_content(entity)
        try:
            self._substrate.on_marker_click(marker, functools.partial(self._handle_click, entity.id))
            self._substrate.bind_popup(marker, popup)
        except Exception as exc:
            # An unbound marker cannot be selected; drop it so the next pass creates it again.
            self._fault(result, entity.id, "bind", exc)
            self._discard_marker(entity.id, marker)
            return

        self._handles[entity.id] = MarkerHandle(
            entity_id=entity.id, marker=marker, icon=params, lat=lat, lng=lng, popup=popup
        )
        result.created.append(entity.id)

    def _discard_marker(self, entity_id: str, marker: Marker) -> None:
        try:
            self._substrate.remove_marker(marker)
        except Exception:
            _logger.warning("Failed to remove unbound marker for %s", entity_id, exc_info=True)

    def _update(
        self,
        handle: MarkerHandle,
        entity: TrackedEntity,
        coordinates: tuple[float, float],
        result: ReconcileResult,
    ) -> None:
        lat, lng = coordinates
        params = IconParams.from_entity(entity)
        moved = (lat, lng) != (handle.lat, handle.lng)
        restyled = params != handle.icon

        if moved or restyled:
            try:
                self._substrate.update_marker(
                    handle.marker,
                    lat=lat if moved else None,
                    lng=lng if moved else None,
                    icon=build_icon(params) if restyled else None,
                )
            except Exception as exc:
                self._fault(result, entity.id, "update", exc)
                return
            handle.lat, handle.lng = lat, lng
            handle.icon = params
            result.updated.append(entity.id)

        popup = build_popup_content(entity)
        if popup != handle.popup:
            try:
                self._substrate.bind_popup(handle.marker, popup)
            except Exception as exc:
                self._fault(result, entity.id, "bind", exc)
                return
            handle.popup = popup

    def _remove(self, entity_id: str, result: ReconcileResult) -> None:
        handle = self._handles[entity_id]
        try:
            self._substrate.remove_marker(handle.marker)
        except Exception as exc:
            # Keep the handle so the next pass retries instead of leaking the marker.
            self._fault(result, entity_id, "remove", exc)
            return
        del self._handles[entity_id]
        result.removed.append(entity_id)

    def _handle_click(self, entity_id: str) -> None:
        if self._closed or entity_id not in self._handles:
            return
        if self._on_select is not None:
            self._on_select(entity_id)

    # ------------------------------------------------------------------
    # Camera
    # ------------------------------------------------------------------

    def focus(self, entity_id: str | None) -> bool:
        """Center on the entity's marker and open its popup.

        Returns ``False`` (and leaves the camera alone) when *entity_id*
        is ``None`` or has no live marker.
        """
        if entity_id is None or self._closed:
            return False
        handle = self._handles.get(entity_id)
        if handle is None:
            return False
        try:
            self._substrate.set_view(handle.lat, handle.lng, self._defaults.focus_zoom)
            self._substrate.open_popup(handle.marker)
        except Exception:
            _logger.warning("Failed to focus marker for %s", entity_id, exc_info=True)
            return False
        return True

    def fit_all(self) -> bool:
        """Frame every live marker; no-op when there are none."""
        if self._closed:
            return False
        positions = [(handle.lat, handle.lng) for handle in self._handles.values()]
        if not positions:
            return False
        try:
            self._substrate.fit_bounds(positions, padding=self._defaults.fit_padding)
        except Exception:
            _logger.warning("Failed to fit %d marker(s) into view", len(positions), exc_info=True)
            return False
        return True
