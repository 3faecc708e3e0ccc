from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import pytest

from fleetwatch._constants import COLOR_MOVING, COLOR_OFFLINE, COLOR_STATIONARY, MARKER_STYLESHEET
from fleetwatch.config import MapDefaults
from fleetwatch.exceptions import EngineClosedError
from fleetwatch.map.engine import ReconciliationEngine
from fleetwatch.map.icons import MarkerIcon
from fleetwatch.map.substrate import MarkerClickCallback
from fleetwatch.models.entity import TrackedEntity


def _entity(
    vid: str,
    *,
    lat: float | None = 7.0,
    lng: float | None = 80.0,
    speed: float = 0.0,
    online: bool = True,
    tracked: bool = True,
    category: str = "Car",
    driver: str | None = None,
) -> TrackedEntity:
    payload: dict[str, Any] = {"_id": vid, "vehicleNumber": f"WP {vid}", "type": category, "hasTracking": tracked}
    payload["tracking"] = {"latitude": lat, "longitude": lng, "speed": speed, "isOnline": online}
    if driver is not None:
        payload["currentDriver"] = {"name": driver}
    return TrackedEntity.model_validate(payload)


@dataclass(eq=False)
class FakeMarker:
    number: int
    lat: float
    lng: float
    icon: MarkerIcon
    on_click: MarkerClickCallback | None = None
    popup: str = ""


@dataclass
class RecordingMap:
    """Map double that records every call and rejects invalid coordinates."""

    calls: list[tuple[Any, ...]] = field(default_factory=list)
    live: dict[int, FakeMarker] = field(default_factory=dict)
    fail_remove: set[int] = field(default_factory=set)
    fail_click_binds: int = 0
    fail_fit: bool = False
    stylesheets: dict[int, str] = field(default_factory=dict)
    released: bool = False
    _counter: int = 0

    def ops(self, *names: str) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] in names]

    def marker_ops(self) -> list[tuple[Any, ...]]:
        return self.ops("create", "update", "remove")

    def create_marker(self, lat: float, lng: float, icon: MarkerIcon) -> FakeMarker:
        self.calls.append(("create", lat, lng, icon))
        if not -90 <= lat <= 90:
            raise ValueError(f"Invalid LatLng object: ({lat}, {lng})")
        self._counter += 1
        marker = FakeMarker(self._counter, lat, lng, icon)
        self.live[marker.number] = marker
        return marker

    def update_marker(
        self,
        marker: FakeMarker,
        *,
        lat: float | None = None,
        lng: float | None = None,
        icon: MarkerIcon | None = None,
    ) -> None:
        self.calls.append(("update", marker.number, lat, lng, icon))
        if lat is not None and not -90 <= lat <= 90:
            raise ValueError(f"Invalid LatLng object: ({lat}, {lng})")
        if lat is not None and lng is not None:
            marker.lat, marker.lng = lat, lng
        if icon is not None:
            marker.icon = icon

    def remove_marker(self, marker: FakeMarker) -> None:
        self.calls.append(("remove", marker.number))
        if marker.number in self.fail_remove:
            raise RuntimeError("marker is detached")
        del self.live[marker.number]

    def on_marker_click(self, marker: FakeMarker, callback: MarkerClickCallback) -> None:
        if self.fail_click_binds:
            self.fail_click_binds -= 1
            raise RuntimeError("marker is not attached to a map")
        marker.on_click = callback

    def bind_popup(self, marker: FakeMarker, content: str) -> None:
        self.calls.append(("bind_popup", marker.number))
        marker.popup = content

    def open_popup(self, marker: FakeMarker) -> None:
        self.calls.append(("open_popup", marker.number))

    def fit_bounds(self, positions: Sequence[tuple[float, float]], *, padding: int) -> None:
        self.calls.append(("fit_bounds", list(positions), padding))
        if self.fail_fit:
            raise RuntimeError("map container has no size")

    def set_view(self, lat: float, lng: float, zoom: int) -> None:
        self.calls.append(("set_view", lat, lng, zoom))

    def add_stylesheet(self, css: str) -> int:
        self.stylesheets[len(self.stylesheets) + 1] = css
        return len(self.stylesheets)

    def remove_stylesheet(self, handle: Any) -> None:
        del self.stylesheets[handle]

    def release(self) -> None:
        self.released = True


def _engine(selected: list[str] | None = None) -> tuple[ReconciliationEngine, RecordingMap]:
    substrate = RecordingMap()
    engine = ReconciliationEngine(substrate, on_select=selected.append if selected is not None else None)
    engine.open()
    substrate.calls.clear()
    return engine, substrate


# ------------------------------------------------------------------
# Create / update / remove
# ------------------------------------------------------------------


def test_first_pass_creates_markers_for_positioned_entities_only() -> None:
    engine, substrate = _engine()

    result = engine.reconcile(
        [
            _entity("v1"),
            _entity("v2", tracked=False),
            _entity("v3", lat=None, lng=None),
            _entity("v4", lat=7.0, lng=None),
        ]
    )

    assert result.created == ["v1"]
    assert engine.marker_ids == frozenset({"v1"})
    assert [call[0] for call in substrate.marker_ops()] == ["create"]


def test_moving_vehicle_gets_one_position_update() -> None:
    engine, substrate = _engine()
    engine.reconcile([_entity("v1", lat=7.0, lng=80.0, speed=30)])
    substrate.calls.clear()

    result = engine.reconcile([_entity("v1", lat=7.1, lng=80.1, speed=35)])

    assert substrate.marker_ops() == [("update", 1, 7.1, 80.1, None)]
    assert result.updated == ["v1"]
    assert result.created == result.removed == []


def test_vehicle_going_offline_only_restyles() -> None:
    engine, substrate = _engine()
    engine.reconcile([_entity("v1", speed=0)])
    substrate.calls.clear()

    engine.reconcile([_entity("v1", speed=0, online=False)])

    [update] = substrate.marker_ops()
    assert update[:4] == ("update", 1, None, None)
    assert update[4].color == COLOR_OFFLINE
    assert substrate.live[1].lat == 7.0


def test_same_snapshot_twice_is_a_no_op() -> None:
    engine, substrate = _engine()
    entities = [_entity("v1", speed=10), _entity("v2", lat=6.5, online=False)]
    engine.reconcile(entities)
    substrate.calls.clear()

    result = engine.reconcile(entities)

    assert substrate.marker_ops() == []
    assert substrate.ops("bind_popup") == []
    assert not result.changed


def test_operation_counts_match_the_set_difference() -> None:
    engine, substrate = _engine()
    engine.reconcile([_entity("a"), _entity("b"), _entity("c")])
    substrate.calls.clear()

    result = engine.reconcile([_entity("b", lat=7.2), _entity("c"), _entity("d")])

    assert (result.created, result.updated, result.removed) == (["d"], ["b"], ["a"])
    assert [call[0] for call in substrate.marker_ops()].count("create") == 1
    assert [call[0] for call in substrate.marker_ops()].count("update") == 1
    assert [call[0] for call in substrate.marker_ops()].count("remove") == 1
    assert len(substrate.live) == engine.marker_count == 3


def test_duplicate_ids_never_produce_two_markers() -> None:
    engine, substrate = _engine()
    engine.reconcile([_entity("v1", lat=7.0), _entity("v1", lat=7.5)])
    assert len(substrate.live) == 1


def test_losing_position_feed_removes_marker() -> None:
    engine, substrate = _engine()
    engine.reconcile([_entity("v1")])

    result = engine.reconcile([_entity("v1", tracked=False)])

    assert result.removed == ["v1"]
    assert substrate.live == {}


# ------------------------------------------------------------------
# Icons and popups
# ------------------------------------------------------------------


def test_icon_derivation() -> None:
    engine, substrate = _engine()
    engine.reconcile(
        [
            _entity("moving", speed=20, category="Van"),
            _entity("idle", category="Crew Cab"),
            _entity("off", online=False, category="Car"),
        ]
    )
    icons = [call[3] for call in substrate.ops("create")]

    assert [icon.color for icon in icons] == [COLOR_MOVING, COLOR_STATIONARY, COLOR_OFFLINE]
    assert [icon.glyph for icon in icons] == ["truck", "truck", "car"]
    assert [icon.pulsing for icon in icons] == [True, False, False]
    assert "animation: pulse" in icons[0].html


def test_popup_rebound_only_when_content_changes() -> None:
    engine, substrate = _engine()
    engine.reconcile([_entity("v1", driver="Nimal")])
    assert "Nimal" in substrate.live[1].popup
    substrate.calls.clear()

    engine.reconcile([_entity("v1", driver="Sunil")])

    assert substrate.ops("bind_popup") == [("bind_popup", 1)]
    assert substrate.marker_ops() == []
    assert "Sunil" in substrate.live[1].popup


# ------------------------------------------------------------------
# Rendering faults
# ------------------------------------------------------------------


def test_invalid_coordinates_skip_only_that_entity() -> None:
    engine, substrate = _engine()

    result = engine.reconcile([_entity("bad", lat=95.0), _entity("good")])

    assert result.created == ["good"]
    [fault] = result.faults
    assert fault.entity_id == "bad"
    assert fault.operation == "create"
    assert not engine.has_marker("bad")


def test_failed_click_binding_recreates_marker_next_pass() -> None:
    selected: list[str] = []
    engine, substrate = _engine(selected)
    substrate.fail_click_binds = 1

    first = engine.reconcile([_entity("v1")])

    [fault] = first.faults
    assert fault.operation == "bind"
    assert first.created == []
    assert not engine.has_marker("v1")
    assert substrate.live == {}

    second = engine.reconcile([_entity("v1")])

    assert second.created == ["v1"]
    [marker] = substrate.live.values()
    assert marker.on_click is not None
    marker.on_click()
    assert selected == ["v1"]


def test_failed_update_keeps_previous_state_and_retries() -> None:
    engine, substrate = _engine()
    engine.reconcile([_entity("v1", lat=7.0)])

    failed = engine.reconcile([_entity("v1", lat=120.0)])
    assert failed.faults and failed.updated == []

    substrate.calls.clear()
    engine.reconcile([_entity("v1", lat=7.3)])
    assert substrate.marker_ops() == [("update", 1, 7.3, 80.0, None)]


def test_failed_remove_is_retried_next_pass() -> None:
    engine, substrate = _engine()
    engine.reconcile([_entity("v1")])
    substrate.fail_remove.add(1)

    result = engine.reconcile([])
    assert result.removed == []
    assert engine.has_marker("v1")

    substrate.fail_remove.clear()
    result = engine.reconcile([])
    assert result.removed == ["v1"]
    assert substrate.live == {}


# ------------------------------------------------------------------
# Selection and camera
# ------------------------------------------------------------------


def test_marker_click_reports_entity_id() -> None:
    selected: list[str] = []
    engine, substrate = _engine(selected)
    engine.reconcile([_entity("v1")])

    click = substrate.live[1].on_click
    assert click is not None
    click()

    assert selected == ["v1"]


def test_focus_centers_and_opens_popup() -> None:
    engine, substrate = _engine()
    engine.reconcile([_entity("v1", lat=6.9, lng=79.8)])
    substrate.calls.clear()

    assert engine.focus("v1") is True
    assert substrate.calls == [("set_view", 6.9, 79.8, 15), ("open_popup", 1)]


def test_focus_without_marker_or_selection_leaves_camera() -> None:
    engine, substrate = _engine()
    engine.reconcile([_entity("v1"), _entity("untracked", tracked=False)])
    substrate.calls.clear()

    assert engine.focus(None) is False
    assert engine.focus("untracked") is False
    assert substrate.calls == []


def test_fit_all() -> None:
    engine, substrate = _engine()
    assert engine.fit_all() is False
    assert substrate.ops("fit_bounds") == []

    engine.reconcile([_entity("a", lat=6.0, lng=80.0), _entity("b", lat=8.0, lng=81.0)])
    assert engine.fit_all() is True
    assert substrate.ops("fit_bounds") == [("fit_bounds", [(6.0, 80.0), (8.0, 81.0)], 50)]


def test_fit_all_failure_is_logged_not_raised() -> None:
    engine, substrate = _engine()
    engine.reconcile([_entity("a")])
    substrate.fail_fit = True

    assert engine.fit_all() is False
    assert engine.marker_count == 1


def test_map_defaults_are_used() -> None:
    substrate = RecordingMap()
    engine = ReconciliationEngine(substrate, map_defaults=MapDefaults(center=(1.0, 2.0), zoom=5, focus_zoom=12))
    engine.open()
    engine.reconcile([_entity("v1")])
    engine.focus("v1")

    assert substrate.ops("set_view") == [("set_view", 1.0, 2.0, 5), ("set_view", 7.0, 80.0, 12)]


# ------------------------------------------------------------------
# Teardown
# ------------------------------------------------------------------


def test_close_releases_everything() -> None:
    engine, substrate = _engine()
    assert list(substrate.stylesheets.values()) == [MARKER_STYLESHEET]
    engine.reconcile([_entity("a"), _entity("b", lat=6.0)])

    engine.close()
    engine.close()

    assert substrate.live == {}
    assert substrate.stylesheets == {}
    assert substrate.released is True
    assert engine.marker_count == 0
    assert len(substrate.ops("remove")) == 2


def test_close_survives_failing_remove() -> None:
    engine, substrate = _engine()
    engine.reconcile([_entity("a")])
    substrate.fail_remove.add(1)

    engine.close()

    assert substrate.released is True
    assert substrate.stylesheets == {}


def test_reconcile_after_close_raises() -> None:
    engine, _substrate = _engine()
    engine.close()
    with pytest.raises(EngineClosedError):
        engine.reconcile([_entity("v1")])


def test_context_manager_is_symmetric() -> None:
    substrate = RecordingMap()
    with ReconciliationEngine(substrate) as engine:
        engine.reconcile([_entity("v1")])
        assert len(substrate.stylesheets) == 1
    assert substrate.stylesheets == {}
    assert substrate.released is True
