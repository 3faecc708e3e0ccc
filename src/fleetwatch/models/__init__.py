"""Typed models for dispatch backend tracking responses."""

from fleetwatch.models._base import FleetBaseModel, FleetEnum
from fleetwatch.models.entity import AssociatedTask, EntityStatus, Operator, Position, TrackedEntity
from fleetwatch.models.snapshot import EntityKind, Snapshot
from fleetwatch.models.stats import AggregateStats

__all__ = [
    "AggregateStats",
    "AssociatedTask",
    "EntityKind",
    "EntityStatus",
    "FleetBaseModel",
    "FleetEnum",
    "Operator",
    "Position",
    "Snapshot",
    "TrackedEntity",
]
