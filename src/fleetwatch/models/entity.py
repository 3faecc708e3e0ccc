"""Tracked entity model (a vehicle, or a ride together with its vehicle)."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, Field, field_validator, model_validator

from fleetwatch.ingestion.normalize import parse_timestamp, safe_bool, safe_float, safe_str
from fleetwatch.models._base import FleetBaseModel, FleetEnum


class EntityStatus(FleetEnum):
    """Operational status of a vehicle."""

    AVAILABLE = "available"
    BUSY = "busy"
    MAINTENANCE = "maintenance"
    UNKNOWN = "unknown"


class Position(FleetBaseModel):
    """Last reported GPS fix and telematics flags.

    ``lat`` and ``lng`` are either both set or both ``None``; a payload
    carrying only one of them is treated as having no fix at all.
    """

    lat: float | None = Field(default=None, validation_alias=AliasChoices("lat", "latitude"))
    lng: float | None = Field(default=None, validation_alias=AliasChoices("lng", "lon", "longitude"))
    speed_kph: float = Field(default=0.0, validation_alias=AliasChoices("speedKph", "speed_kph", "speed"))
    heading_deg: float | None = Field(
        default=None,
        validation_alias=AliasChoices("headingDeg", "heading_deg", "heading", "direction"),
    )
    ignition_on: bool | None = Field(
        default=None,
        validation_alias=AliasChoices("ignitionOn", "ignition_on", "ignition"),
    )
    is_online: bool = Field(default=False, validation_alias=AliasChoices("isOnline", "is_online", "online"))
    last_update_at: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("lastUpdateAt", "last_update_at", "lastUpdate"),
    )
    stop_since: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("stopSince", "stop_since", "stoppedSince"),
    )

    @field_validator("lat", "lng", "heading_deg", mode="before")
    @classmethod
    def _coerce_floats(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("speed_kph", mode="before")
    @classmethod
    def _coerce_speed(cls, value: Any) -> float:
        speed = safe_float(value)
        if speed is None or speed < 0:
            return 0.0
        return speed

    @field_validator("ignition_on", mode="before")
    @classmethod
    def _coerce_ignition(cls, value: Any) -> bool | None:
        return safe_bool(value)

    @field_validator("is_online", mode="before")
    @classmethod
    def _coerce_online(cls, value: Any) -> bool:
        return bool(safe_bool(value))

    @field_validator("last_update_at", "stop_since", mode="before")
    @classmethod
    def _coerce_timestamps(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)

    @model_validator(mode="after")
    def _pair_coordinates(self) -> Position:
        if (self.lat is None) != (self.lng is None):
            object.__setattr__(self, "lat", None)
            object.__setattr__(self, "lng", None)
        return self

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None

    @property
    def is_moving(self) -> bool:
        return self.speed_kph > 0


class Operator(FleetBaseModel):
    """Driver currently assigned to the vehicle."""

    name: str = ""
    phone: str | None = Field(default=None, validation_alias=AliasChoices("phone", "phoneNumber", "mobile"))

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_name(cls, value: Any) -> str:
        return safe_str(value) or ""

    @field_validator("phone", mode="before")
    @classmethod
    def _coerce_phone(cls, value: Any) -> str | None:
        return safe_str(value)


class AssociatedTask(FleetBaseModel):
    """Ride the vehicle is currently serving."""

    task_id: str | None = Field(default=None, validation_alias=AliasChoices("taskId", "task_id", "_id", "id"))
    task_status: str | None = Field(default=None, validation_alias=AliasChoices("taskStatus", "task_status", "status"))
    requester: str | None = Field(
        default=None,
        validation_alias=AliasChoices("requester", "requestedBy", "requested_by", "user"),
    )
    eta: str | None = None

    @field_validator("task_id", "task_status", "eta", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> str | None:
        return safe_str(value)

    @field_validator("requester", mode="before")
    @classmethod
    def _coerce_requester(cls, value: Any) -> str | None:
        # Populated refs arrive as {"_id": ..., "name": ...}.
        if isinstance(value, dict):
            return safe_str(value.get("name"))
        return safe_str(value)


class TrackedEntity(FleetBaseModel):
    """A vehicle, or a ride-with-vehicle, shown on the live map.

    Fields are mapped from the ``/tracking/vehicles`` and
    ``/tracking/active-rides`` responses. Ride entries that wrap their
    vehicle under a ``vehicle`` key are flattened so that the vehicle
    becomes the entity and the ride its :attr:`associated_task`.
    """

    id: str = Field(validation_alias=AliasChoices("id", "_id", "vehicleId", "vehicle_id"))
    display_label: str = Field(
        default="",
        validation_alias=AliasChoices("displayLabel", "display_label", "vehicleNumber", "label"),
    )
    category: str = Field(default="", validation_alias=AliasChoices("category", "type", "vehicleType"))
    status: EntityStatus = EntityStatus.UNKNOWN
    has_position_feed: bool = Field(
        default=False,
        validation_alias=AliasChoices("hasPositionFeed", "has_position_feed", "hasTracking"),
    )
    position: Position | None = Field(default=None, validation_alias=AliasChoices("position", "tracking"))
    assigned_operator: Operator | None = Field(
        default=None,
        validation_alias=AliasChoices("assignedOperator", "assigned_operator", "currentDriver", "driver"),
    )
    associated_task: AssociatedTask | None = Field(
        default=None,
        validation_alias=AliasChoices("associatedTask", "associated_task", "currentRide", "ride"),
    )

    @model_validator(mode="before")
    @classmethod
    def _flatten_ride(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        vehicle = values.get("vehicle")
        if not isinstance(vehicle, dict):
            return values
        ride = {key: value for key, value in values.items() if key != "vehicle"}
        merged = dict(vehicle)
        merged.setdefault("ride", ride)
        if "currentDriver" not in merged and isinstance(ride.get("driver"), dict):
            merged["currentDriver"] = ride["driver"]
        merged.setdefault("raw", values)
        return merged

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        text = safe_str(value)
        if text is None:
            raise ValueError("entity id must be non-empty")
        return text

    @field_validator("display_label", "category", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return safe_str(value) or ""

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> EntityStatus:
        if isinstance(value, EntityStatus):
            return value
        return EntityStatus(str(value))

    @field_validator("has_position_feed", mode="before")
    @classmethod
    def _coerce_feed(cls, value: Any) -> bool:
        return bool(safe_bool(value))

    @model_validator(mode="after")
    def _drop_position_without_feed(self) -> TrackedEntity:
        if not self.has_position_feed and self.position is not None:
            object.__setattr__(self, "position", None)
        return self

    @property
    def coordinates(self) -> tuple[float, float] | None:
        """``(lat, lng)`` when the entity can be placed on the map."""
        position = self.position
        if position is None or position.lat is None or position.lng is None:
            return None
        return (position.lat, position.lng)

    @property
    def is_online(self) -> bool:
        return self.position is not None and self.position.is_online

    @property
    def is_moving(self) -> bool:
        return self.position is not None and self.position.is_moving

    @property
    def operator_name(self) -> str:
        return self.assigned_operator.name if self.assigned_operator is not None else ""
