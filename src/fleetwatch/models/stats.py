"""Aggregate fleet statistics model."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from pydantic import AliasChoices, Field, field_validator

from fleetwatch.ingestion.normalize import safe_float
from fleetwatch.models._base import FleetBaseModel
from fleetwatch.models.entity import TrackedEntity


class AggregateStats(FleetBaseModel):
    """Fleet-wide counters returned by ``/tracking/stats``."""

    online: int = 0
    moving: int = 0
    stopped: int = 0
    offline: int = 0
    total: int = 0
    active_tasks: int = Field(default=0, validation_alias=AliasChoices("activeTasks", "active_tasks", "activeRides"))

    @field_validator("online", "moving", "stopped", "offline", "total", "active_tasks", mode="before")
    @classmethod
    def _coerce_counts(cls, value: Any) -> int:
        parsed = safe_float(value)
        if parsed is None or parsed < 0:
            return 0
        return int(parsed)

    @classmethod
    def from_entities(cls, entities: Iterable[TrackedEntity]) -> AggregateStats:
        """Count the same buckets locally, e.g. for a filtered subset."""
        online = moving = offline = total = active = 0
        for entity in entities:
            total += 1
            if entity.associated_task is not None:
                active += 1
            if not entity.has_position_feed:
                continue
            if entity.is_online:
                online += 1
                if entity.is_moving:
                    moving += 1
            else:
                offline += 1
        return cls(
            online=online,
            moving=moving,
            stopped=online - moving,
            offline=offline,
            total=total,
            active_tasks=active,
        )
