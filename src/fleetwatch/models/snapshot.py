"""Poll-cycle snapshot model."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from fleetwatch.models.entity import TrackedEntity
from fleetwatch.models.stats import AggregateStats


class EntityKind(StrEnum):
    """Which entity list a poller fetches."""

    VEHICLES = "vehicles"
    ACTIVE_TASKS = "active-tasks"


class Snapshot(BaseModel):
    """Result of one successful poll cycle.

    Superseded as a whole by the next cycle; never mutated.
    """

    model_config = ConfigDict(frozen=True)

    kind: EntityKind = EntityKind.VEHICLES
    entities: tuple[TrackedEntity, ...] = ()
    stats: AggregateStats = Field(default_factory=AggregateStats)
    captured_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(entity.id for entity in self.entities)

    def get(self, entity_id: str) -> TrackedEntity | None:
        for entity in self.entities:
            if entity.id == entity_id:
                return entity
        return None
