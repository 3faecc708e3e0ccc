"""Entity filters.

Every filter is an independent predicate and the active ones are
AND-combined, so the order they are applied in never matters.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator

from fleetwatch.models.entity import EntityStatus, TrackedEntity

#: User-facing values meaning "do not filter on this field".
WILDCARDS = frozenset({"", "all", "*", "any"})

#: Statuses an operator can filter on; ``unknown`` is a parse fallback, not a choice.
_FILTERABLE_STATUSES = frozenset(status.value for status in EntityStatus if status is not EntityStatus.UNKNOWN)

EntityPredicate = Callable[[TrackedEntity], bool]


class Connectivity(StrEnum):
    ONLINE = "online"
    OFFLINE = "offline"


class Motion(StrEnum):
    MOVING = "moving"
    STOPPED = "stopped"


class FilterState(BaseModel):
    """Current filter selection; ``None`` fields are wildcards."""

    model_config = ConfigDict(frozen=True)

    search_text: str = ""
    status: EntityStatus | None = None
    category: str | None = None
    connectivity: Connectivity | None = None
    motion: Motion | None = None

    @field_validator("search_text", mode="before")
    @classmethod
    def _strip_search(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("status", "category", "connectivity", "motion", mode="before")
    @classmethod
    def _wildcard_to_none(cls, value: Any, info: ValidationInfo) -> Any:
        if not isinstance(value, str):
            return value
        text = value.strip()
        if text.lower() in WILDCARDS:
            return None
        # Category names are matched verbatim; the enum-backed fields are not.
        if info.field_name == "category":
            return text
        text = text.lower()
        if info.field_name == "status" and text not in _FILTERABLE_STATUSES:
            raise ValueError(f"status must be one of {sorted(_FILTERABLE_STATUSES)} or a wildcard, got {value!r}")
        return text

    def with_changes(self, **changes: Any) -> FilterState:
        """Return a validated copy with *changes* applied."""
        return FilterState.model_validate({**self.model_dump(), **changes})

    @property
    def is_wildcard(self) -> bool:
        return not self.search_text and all(
            value is None for value in (self.status, self.category, self.connectivity, self.motion)
        )


def matches_search(entity: TrackedEntity, text: str) -> bool:
    if not text:
        return True
    needle = text.casefold()
    return needle in entity.display_label.casefold() or needle in entity.operator_name.casefold()


def matches_connectivity(entity: TrackedEntity, connectivity: Connectivity) -> bool:
    # Entities without a feed have no connectivity to match against.
    if not entity.has_position_feed:
        return False
    return entity.is_online == (connectivity == Connectivity.ONLINE)


def matches_motion(entity: TrackedEntity, motion: Motion) -> bool:
    if not entity.is_online:
        return False
    return entity.is_moving == (motion == Motion.MOVING)


def build_predicates(state: FilterState) -> list[EntityPredicate]:
    """Predicates for the non-wildcard fields of *state*."""
    predicates: list[EntityPredicate] = []
    if state.search_text:
        text = state.search_text
        predicates.append(lambda entity: matches_search(entity, text))
    if state.status is not None:
        status = state.status
        predicates.append(lambda entity: entity.status == status)
    if state.category is not None:
        category = state.category
        predicates.append(lambda entity: entity.category == category)
    if state.connectivity is not None:
        connectivity = state.connectivity
        predicates.append(lambda entity: matches_connectivity(entity, connectivity))
    if state.motion is not None:
        motion = state.motion
        predicates.append(lambda entity: matches_motion(entity, motion))
    return predicates


def filter_entities(entities: Iterable[TrackedEntity], state: FilterState) -> tuple[TrackedEntity, ...]:
    """Entities passing every active filter, in snapshot order."""
    predicates = build_predicates(state)
    return tuple(entity for entity in entities if all(predicate(entity) for predicate in predicates))
