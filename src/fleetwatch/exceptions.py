"""Custom exception hierarchy for fleetwatch."""

from __future__ import annotations


class FleetwatchError(Exception):
    """Base exception for all fleetwatch errors."""


class ConfigError(FleetwatchError):
    """Invalid or missing configuration."""


class TransportError(FleetwatchError):
    """HTTP-level failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class MalformedResponseError(FleetwatchError):
    """Response decoded fine but is missing expected fields.

    A poll cycle that hits this error is treated exactly like a transport
    failure: the previous snapshot is kept and ``last_error`` is set.
    """

    def __init__(self, message: str, *, endpoint: str = "") -> None:
        self.endpoint = endpoint
        super().__init__(message)


class RenderingFault(FleetwatchError):
    """The map substrate raised while operating on a single marker.

    Never propagated out of a reconciliation pass; collected on the
    pass result and logged instead.
    """

    def __init__(self, message: str, *, entity_id: str, operation: str) -> None:
        self.entity_id = entity_id
        self.operation = operation
        super().__init__(message)


class EngineClosedError(FleetwatchError):
    """Reconciliation was requested on an engine that has been torn down."""
