"""Tracking endpoints.

Endpoints:
  - /tracking/vehicles
  - /tracking/active-rides
  - /tracking/stats
  - /tracking/vehicles/{id}
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from pydantic import ValidationError

from fleetwatch._constants import ACTIVE_RIDES_ENDPOINT, STATS_ENDPOINT, VEHICLES_ENDPOINT
from fleetwatch._transport import Transport
from fleetwatch.exceptions import MalformedResponseError
from fleetwatch.models.entity import TrackedEntity
from fleetwatch.models.stats import AggregateStats

_logger = logging.getLogger(__name__)


def _require_key(body: Any, key: str, endpoint: str) -> Any:
    if not isinstance(body, dict):
        raise MalformedResponseError(
            f"{endpoint} returned {type(body).__name__}, expected an object",
            endpoint=endpoint,
        )
    if key not in body or body[key] is None:
        raise MalformedResponseError(f"{endpoint} response has no '{key}' field", endpoint=endpoint)
    return body[key]


def parse_entity_list(body: Any, key: str, endpoint: str) -> list[TrackedEntity]:
    """Parse ``{key: [entity, ...]}`` into models.

    The list itself must be present; any entry failing validation makes
    the whole response malformed rather than silently shrinking the fleet.
    """
    items = _require_key(body, key, endpoint)
    if not isinstance(items, list):
        raise MalformedResponseError(f"{endpoint} '{key}' is not a list", endpoint=endpoint)
    entities: list[TrackedEntity] = []
    for index, item in enumerate(items):
        try:
            entities.append(TrackedEntity.model_validate(item))
        except ValidationError as exc:
            raise MalformedResponseError(
                f"{endpoint} '{key}[{index}]' is invalid: {exc.error_count()} error(s)",
                endpoint=endpoint,
            ) from exc
    return entities


def parse_entity(body: Any, key: str, endpoint: str) -> TrackedEntity:
    item = _require_key(body, key, endpoint)
    try:
        return TrackedEntity.model_validate(item)
    except ValidationError as exc:
        raise MalformedResponseError(f"{endpoint} '{key}' is invalid", endpoint=endpoint) from exc


def parse_stats(body: Any, endpoint: str = STATS_ENDPOINT) -> AggregateStats:
    stats = _require_key(body, "stats", endpoint)
    if not isinstance(stats, dict):
        raise MalformedResponseError(f"{endpoint} 'stats' is not an object", endpoint=endpoint)
    try:
        return AggregateStats.model_validate(stats)
    except ValidationError as exc:
        raise MalformedResponseError(f"{endpoint} 'stats' is invalid", endpoint=endpoint) from exc


async def fetch_all_vehicles(transport: Transport) -> list[TrackedEntity]:
    body = await transport.get_json(VEHICLES_ENDPOINT)
    vehicles = parse_entity_list(body, "vehicles", VEHICLES_ENDPOINT)
    _logger.debug("Fetched %d vehicles", len(vehicles))
    return vehicles


async def fetch_active_rides(transport: Transport) -> list[TrackedEntity]:
    body = await transport.get_json(ACTIVE_RIDES_ENDPOINT)
    rides = parse_entity_list(body, "rides", ACTIVE_RIDES_ENDPOINT)
    _logger.debug("Fetched %d active rides", len(rides))
    return rides


async def fetch_stats(transport: Transport) -> AggregateStats:
    body = await transport.get_json(STATS_ENDPOINT)
    return parse_stats(body)


async def fetch_vehicle(transport: Transport, vehicle_id: str) -> TrackedEntity:
    endpoint = f"{VEHICLES_ENDPOINT}/{quote(vehicle_id, safe='')}"
    body = await transport.get_json(endpoint)
    return parse_entity(body, "vehicle", endpoint)
