"""High-level async client for the dispatch backend's tracking API."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from fleetwatch._api import tracking as _tracking_api
from fleetwatch._transport import HttpTransport, Transport
from fleetwatch.config import FleetwatchConfig
from fleetwatch.exceptions import FleetwatchError
from fleetwatch.models.entity import TrackedEntity
from fleetwatch.models.stats import AggregateStats

_logger = logging.getLogger(__name__)


class TrackingClient:
    """Async client for the tracking endpoints.

    Usage::

        async with TrackingClient(config) as client:
            vehicles = await client.get_all_vehicles()
            stats = await client.get_stats()
    """

    def __init__(
        self,
        config: FleetwatchConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config = config or FleetwatchConfig()
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport

    @property
    def config(self) -> FleetwatchConfig:
        return self._config

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TrackingClient:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._config, self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._transport = None

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise FleetwatchError("Client not initialized. Use 'async with TrackingClient(...) as client:'")
        return self._transport

    # ------------------------------------------------------------------
    # Tracking reads
    # ------------------------------------------------------------------

    async def get_all_vehicles(self) -> list[TrackedEntity]:
        """Every vehicle in the fleet, tracked or not."""
        return await _tracking_api.fetch_all_vehicles(self._require_transport())

    async def get_active_rides(self) -> list[TrackedEntity]:
        """Vehicles currently serving a ride, with the ride attached."""
        return await _tracking_api.fetch_active_rides(self._require_transport())

    async def get_stats(self) -> AggregateStats:
        return await _tracking_api.fetch_stats(self._require_transport())

    async def get_vehicle(self, vehicle_id: str) -> TrackedEntity:
        if not vehicle_id:
            raise ValueError("vehicle_id must be non-empty")
        return await _tracking_api.fetch_vehicle(self._require_transport(), vehicle_id)
