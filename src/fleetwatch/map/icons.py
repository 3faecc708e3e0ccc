"""Vehicle marker icons.

Color encodes connectivity and motion, the glyph encodes the vehicle
category, and moving vehicles get a pulsing badge.
"""

from __future__ import annotations

import dataclasses
from typing import NamedTuple

from fleetwatch._constants import BULK_CATEGORIES, COLOR_MOVING, COLOR_OFFLINE, COLOR_STATIONARY
from fleetwatch.models.entity import TrackedEntity

_TRUCK_PATH = (
    "M20 8h-3V4H3c-1.1 0-2 .9-2 2v11h2c0 1.66 1.34 3 3 3s3-1.34 3-3h6c0 1.66 1.34 3 3 3s3-1.34 "
    "3-3h2v-5l-3-4zM6 18.5c-.83 0-1.5-.67-1.5-1.5s.67-1.5 1.5-1.5 1.5.67 1.5 1.5-.67 1.5-1.5 "
    "1.5zm13.5-9l1.96 2.5H17V9.5h2.5zm-1.5 9c-.83 0-1.5-.67-1.5-1.5s.67-1.5 1.5-1.5 1.5.67 1.5 "
    "1.5-.67 1.5-1.5 1.5z"
)
_CAR_PATH = (
    "M18.92 6.01C18.72 5.42 18.16 5 17.5 5h-11c-.66 0-1.21.42-1.42 1.01L3 12v8c0 .55.45 1 1 "
    "1h1c.55 0 1-.45 1-1v-1h12v1c0 .55.45 1 1 1h1c.55 0 1-.45 1-1v-8l-2.08-5.99zM6.5 16c-.83 "
    "0-1.5-.67-1.5-1.5S5.67 13 6.5 13s1.5.67 1.5 1.5S7.33 16 6.5 16zm11 0c-.83 0-1.5-.67-1.5-1.5s"
    ".67-1.5 1.5-1.5 1.5.67 1.5 1.5-.67 1.5-1.5 1.5zM5 11l1.5-4.5h11L19 11H5z"
)

_BADGE_HTML = (
    '<div style="position: absolute; top: -2px; right: -2px; width: 10px; height: 10px; '
    f"background: {COLOR_MOVING}; border: 2px solid white; border-radius: 50%; "
    'animation: pulse 1.5s infinite;"></div>'
)


class IconParams(NamedTuple):
    """The entity fields an icon depends on; equal params mean an equal icon."""

    category: str
    is_online: bool
    is_moving: bool

    @classmethod
    def from_entity(cls, entity: TrackedEntity) -> IconParams:
        return cls(category=entity.category, is_online=entity.is_online, is_moving=entity.is_moving)


@dataclasses.dataclass(frozen=True)
class MarkerIcon:
    """Substrate-neutral description of a marker icon."""

    color: str
    glyph: str
    pulsing: bool
    size: tuple[int, int] = (36, 36)
    anchor: tuple[int, int] = (18, 18)
    popup_anchor: tuple[int, int] = (0, -20)
    class_name: str = "custom-vehicle-marker"

    @property
    def html(self) -> str:
        path = _TRUCK_PATH if self.glyph == "truck" else _CAR_PATH
        width, height = self.size
        badge = _BADGE_HTML if self.pulsing else ""
        return (
            f'<div style="width: {width}px; height: {height}px; background: {self.color}; '
            "border: 3px solid white; border-radius: 50%; display: flex; align-items: center; "
            'justify-content: center; box-shadow: 0 2px 8px rgba(0,0,0,0.3); position: relative;">'
            f'<svg width="18" height="18" viewBox="0 0 24 24" fill="white"><path d="{path}"/></svg>'
            f"{badge}</div>"
        )


def icon_color(is_online: bool, is_moving: bool) -> str:
    if not is_online:
        return COLOR_OFFLINE
    return COLOR_MOVING if is_moving else COLOR_STATIONARY


def build_icon(params: IconParams) -> MarkerIcon:
    return MarkerIcon(
        color=icon_color(params.is_online, params.is_moving),
        glyph="truck" if params.category in BULK_CATEGORIES else "car",
        pulsing=params.is_moving,
    )
