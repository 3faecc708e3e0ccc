"""Capability surface of the interactive map library.

The reconciliation engine drives the map exclusively through this
protocol. ``Marker`` values are opaque: whatever ``create_marker``
returns is handed back unchanged to the other calls.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Protocol

from fleetwatch.map.icons import MarkerIcon

Marker = Any
MarkerClickCallback = Callable[[], None]


class MapSubstrate(Protocol):
    def create_marker(self, lat: float, lng: float, icon: MarkerIcon) -> Marker:
        ...

    def update_marker(
        self,
        marker: Marker,
        *,
        lat: float | None = None,
        lng: float | None = None,
        icon: MarkerIcon | None = None,
    ) -> None:
        ...

    def remove_marker(self, marker: Marker) -> None:
        ...

    def on_marker_click(self, marker: Marker, callback: MarkerClickCallback) -> None:
        ...

    def bind_popup(self, marker: Marker, content: str) -> None:
        ...

    def open_popup(self, marker: Marker) -> None:
        ...

    def fit_bounds(self, positions: Sequence[tuple[float, float]], *, padding: int) -> None:
        ...

    def set_view(self, lat: float, lng: float, zoom: int) -> None:
        ...

    def add_stylesheet(self, css: str) -> Any:
        """Install page-wide CSS; returns a handle for :meth:`remove_stylesheet`."""
        ...

    def remove_stylesheet(self, handle: Any) -> None:
        ...

    def release(self) -> None:
        """Destroy the map instance."""
        ...
