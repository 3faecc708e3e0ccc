"""Tests for Pydantic model parsing of tracking payloads."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from fleetwatch.models.entity import EntityStatus, Position, TrackedEntity
from fleetwatch.models.snapshot import EntityKind, Snapshot
from fleetwatch.models.stats import AggregateStats

_VEHICLE_PAYLOAD = {
    "_id": "65f0a1",
    "vehicleNumber": "WP CAB-1234",
    "type": "Van",
    "status": "available",
    "hasTracking": True,
    "tracking": {
        "latitude": 6.9271,
        "longitude": 79.8612,
        "speed": 42,
        "heading": 180,
        "ignitionOn": True,
        "isOnline": True,
        "lastUpdate": "2026-01-01T08:30:00Z",
    },
    "currentDriver": {"name": "Nimal Perera", "phone": "0771234567"},
}


# ------------------------------------------------------------------
# TrackedEntity
# ------------------------------------------------------------------


class TestTrackedEntity:
    def test_parses_backend_vehicle(self) -> None:
        entity = TrackedEntity.model_validate(_VEHICLE_PAYLOAD)

        assert entity.id == "65f0a1"
        assert entity.display_label == "WP CAB-1234"
        assert entity.category == "Van"
        assert entity.status == EntityStatus.AVAILABLE
        assert entity.has_position_feed is True
        assert entity.coordinates == (6.9271, 79.8612)
        assert entity.is_online is True
        assert entity.is_moving is True
        assert entity.operator_name == "Nimal Perera"
        assert entity.position is not None
        assert entity.position.heading_deg == 180.0
        assert entity.position.last_update_at == datetime(2026, 1, 1, 8, 30, tzinfo=UTC)
        assert entity.raw["_id"] == "65f0a1"

    def test_snake_case_names_accepted(self) -> None:
        entity = TrackedEntity(id="v1", display_label="V1", has_position_feed=False)
        assert entity.display_label == "V1"
        assert entity.position is None

    def test_position_dropped_without_feed(self) -> None:
        payload = dict(_VEHICLE_PAYLOAD, hasTracking=False)
        entity = TrackedEntity.model_validate(payload)
        assert entity.position is None
        assert entity.coordinates is None
        assert entity.is_online is False

    def test_unknown_status_falls_back(self) -> None:
        entity = TrackedEntity.model_validate(dict(_VEHICLE_PAYLOAD, status="scrapped"))
        assert entity.status == EntityStatus.UNKNOWN

    def test_status_is_case_insensitive(self) -> None:
        entity = TrackedEntity.model_validate(dict(_VEHICLE_PAYLOAD, status="Maintenance"))
        assert entity.status == EntityStatus.MAINTENANCE

    def test_missing_id_is_rejected(self) -> None:
        payload = {key: value for key, value in _VEHICLE_PAYLOAD.items() if key != "_id"}
        with pytest.raises(ValidationError):
            TrackedEntity.model_validate(payload)

    def test_sentinel_label_uses_default(self) -> None:
        entity = TrackedEntity.model_validate(dict(_VEHICLE_PAYLOAD, vehicleNumber="--"))
        assert entity.display_label == ""

    def test_ride_wrapping_vehicle_is_flattened(self) -> None:
        ride = {
            "_id": "ride-9",
            "status": "in_progress",
            "requestedBy": {"_id": "u1", "name": "Kamala Silva"},
            "eta": "15 min",
            "vehicle": _VEHICLE_PAYLOAD,
        }
        entity = TrackedEntity.model_validate(ride)

        assert entity.id == "65f0a1"
        assert entity.associated_task is not None
        assert entity.associated_task.task_id == "ride-9"
        assert entity.associated_task.task_status == "in_progress"
        assert entity.associated_task.requester == "Kamala Silva"
        assert entity.associated_task.eta == "15 min"

    def test_current_ride_on_vehicle(self) -> None:
        payload = dict(_VEHICLE_PAYLOAD, currentRide={"_id": "ride-1", "status": "assigned", "requester": "Ops"})
        entity = TrackedEntity.model_validate(payload)
        assert entity.associated_task is not None
        assert entity.associated_task.requester == "Ops"


# ------------------------------------------------------------------
# Position
# ------------------------------------------------------------------


class TestPosition:
    def test_single_coordinate_means_no_fix(self) -> None:
        position = Position.model_validate({"latitude": 7.0, "isOnline": True})
        assert position.lat is None
        assert position.lng is None
        assert position.has_coordinates is False

    def test_zero_coordinates_are_valid(self) -> None:
        position = Position.model_validate({"latitude": 0, "longitude": 0})
        assert position.has_coordinates is True

    def test_speed_defaults_and_clamps(self) -> None:
        assert Position.model_validate({}).speed_kph == 0.0
        assert Position.model_validate({"speed": "--"}).speed_kph == 0.0
        assert Position.model_validate({"speed": -3}).speed_kph == 0.0
        assert Position.model_validate({"speed": "12.5"}).is_moving is True

    def test_epoch_millis_timestamp(self) -> None:
        position = Position.model_validate({"lastUpdate": 1767256200000})
        assert position.last_update_at == datetime(2026, 1, 1, 8, 30, tzinfo=UTC)

    def test_online_flag_accepts_strings(self) -> None:
        assert Position.model_validate({"isOnline": "true"}).is_online is True
        assert Position.model_validate({"isOnline": "0"}).is_online is False


# ------------------------------------------------------------------
# AggregateStats / Snapshot
# ------------------------------------------------------------------


class TestAggregateStats:
    def test_active_rides_alias(self) -> None:
        stats = AggregateStats.model_validate(
            {"online": 4, "moving": "2", "stopped": 2, "offline": 1, "total": 6, "activeRides": 3}
        )
        assert stats.moving == 2
        assert stats.active_tasks == 3

    def test_from_entities(self) -> None:
        entities = [
            TrackedEntity.model_validate(_VEHICLE_PAYLOAD),
            TrackedEntity.model_validate(
                dict(_VEHICLE_PAYLOAD, _id="b", tracking={"latitude": 7, "longitude": 80, "isOnline": True})
            ),
            TrackedEntity.model_validate(
                dict(_VEHICLE_PAYLOAD, _id="c", tracking={"latitude": 7, "longitude": 80, "isOnline": False})
            ),
            TrackedEntity.model_validate(dict(_VEHICLE_PAYLOAD, _id="d", hasTracking=False)),
        ]
        stats = AggregateStats.from_entities(entities)
        assert (stats.online, stats.moving, stats.stopped, stats.offline, stats.total) == (2, 1, 1, 1, 4)


def test_snapshot_is_immutable() -> None:
    snapshot = Snapshot(kind=EntityKind.VEHICLES, entities=(TrackedEntity.model_validate(_VEHICLE_PAYLOAD),))
    assert snapshot.ids == ("65f0a1",)
    assert snapshot.get("65f0a1") is snapshot.entities[0]
    assert snapshot.get("missing") is None
    with pytest.raises(ValidationError):
        snapshot.entities = ()  # type: ignore[misc]
