"""In-memory map substrate for running the tracking view without a browser."""

from __future__ import annotations

import dataclasses
import itertools
import logging
from collections.abc import Sequence
from typing import Any

from fleetwatch.map.icons import MarkerIcon
from fleetwatch.map.substrate import MarkerClickCallback

_logger = logging.getLogger(__name__)


@dataclasses.dataclass
class HeadlessMarker:
    marker_id: int
    lat: float
    lng: float
    icon: MarkerIcon
    popup: str = ""
    popup_open: bool = False
    on_click: MarkerClickCallback | None = None

    def click(self) -> None:
        if self.on_click is not None:
            self.on_click()


class HeadlessMap:
    """Keeps markers, camera and stylesheets in memory and logs every call.

    Rejects coordinates outside the WGS84 range the way a real map
    library would.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.markers: dict[int, HeadlessMarker] = {}
        self.stylesheets: dict[int, str] = {}
        self.view: tuple[float, float, int] | None = None
        self.bounds: list[tuple[float, float]] | None = None
        self.released = False

    @staticmethod
    def _check(lat: float, lng: float) -> None:
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
            raise ValueError(f"Invalid LatLng object: ({lat}, {lng})")

    def _require_live(self) -> None:
        if self.released:
            raise RuntimeError("Map instance has been released")

    def create_marker(self, lat: float, lng: float, icon: MarkerIcon) -> HeadlessMarker:
        self._require_live()
        self._check(lat, lng)
        marker = HeadlessMarker(marker_id=next(self._ids), lat=lat, lng=lng, icon=icon)
        self.markers[marker.marker_id] = marker
        _logger.debug("create marker #%d at (%.5f, %.5f) %s", marker.marker_id, lat, lng, icon.color)
        return marker

    def update_marker(
        self,
        marker: HeadlessMarker,
        *,
        lat: float | None = None,
        lng: float | None = None,
        icon: MarkerIcon | None = None,
    ) -> None:
        self._require_live()
        if lat is not None and lng is not None:
            self._check(lat, lng)
            marker.lat, marker.lng = lat, lng
        if icon is not None:
            marker.icon = icon
        _logger.debug("update marker #%d at (%.5f, %.5f) %s", marker.marker_id, marker.lat, marker.lng, marker.icon.color)

    def remove_marker(self, marker: HeadlessMarker) -> None:
        self.markers.pop(marker.marker_id, None)
        _logger.debug("remove marker #%d", marker.marker_id)

    def on_marker_click(self, marker: HeadlessMarker, callback: MarkerClickCallback) -> None:
        marker.on_click = callback

    def bind_popup(self, marker: HeadlessMarker, content: str) -> None:
        marker.popup = content

    def open_popup(self, marker: HeadlessMarker) -> None:
        for other in self.markers.values():
            other.popup_open = other is marker

    def fit_bounds(self, positions: Sequence[tuple[float, float]], *, padding: int) -> None:
        self._require_live()
        self.bounds = list(positions)
        _logger.debug("fit bounds over %d position(s) padding=%d", len(positions), padding)

    def set_view(self, lat: float, lng: float, zoom: int) -> None:
        self._require_live()
        self.view = (lat, lng, zoom)

    def add_stylesheet(self, css: str) -> int:
        handle = next(self._ids)
        self.stylesheets[handle] = css
        return handle

    def remove_stylesheet(self, handle: Any) -> None:
        self.stylesheets.pop(handle, None)

    def release(self) -> None:
        self.markers.clear()
        self.released = True
