"""Marker popup content."""

from __future__ import annotations

from datetime import UTC
from html import escape

from fleetwatch._constants import COLOR_OFFLINE_TEXT, COLOR_ONLINE_TEXT
from fleetwatch.models.entity import TrackedEntity


def _format_speed(speed_kph: float) -> str:
    return f"{speed_kph:g} km/h"


def build_popup_content(entity: TrackedEntity) -> str:
    """Render the popup HTML shown when a vehicle marker is opened."""
    position = entity.position
    is_online = entity.is_online
    rows = [
        f'<p style="margin: 4px 0;"><strong>Type:</strong> {escape(entity.category)}</p>',
        '<p style="margin: 4px 0;"><strong>Status:</strong> '
        f'<span style="color: {COLOR_ONLINE_TEXT if is_online else COLOR_OFFLINE_TEXT}">'
        f"{'Online' if is_online else 'Offline'}</span></p>",
    ]
    if position is not None:
        rows.append(f'<p style="margin: 4px 0;"><strong>Speed:</strong> {_format_speed(position.speed_kph)}</p>')
    if entity.assigned_operator is not None and entity.assigned_operator.name:
        rows.append(f'<p style="margin: 4px 0;"><strong>Driver:</strong> {escape(entity.assigned_operator.name)}</p>')
    if position is not None and position.ignition_on is not None:
        rows.append(
            f'<p style="margin: 4px 0;"><strong>Ignition:</strong> {"ON" if position.ignition_on else "OFF"}</p>'
        )
    task = entity.associated_task
    if task is not None and task.requester:
        rows.append(f'<p style="margin: 4px 0;"><strong>Ride for:</strong> {escape(task.requester)}</p>')
    if position is not None and position.last_update_at is not None:
        stamp = position.last_update_at.astimezone(UTC).strftime("%Y-%m-%d %H:%M:%S UTC")
        rows.append(f'<p style="margin: 8px 0 0 0; font-size: 11px; color: #999;">Last update: {stamp}</p>')

    return (
        '<div style="min-width: 200px;">'
        f'<h3 style="margin: 0 0 8px 0; font-weight: 600; font-size: 14px;">{escape(entity.display_label)}</h3>'
        f'<div style="font-size: 12px; color: #666;">{"".join(rows)}</div>'
        "</div>"
    )
