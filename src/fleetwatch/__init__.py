"""fleetwatch - Real-time fleet tracking core for a dispatch operations console."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fleetwatch")
except PackageNotFoundError:
    __version__ = "0+local"
from fleetwatch.client import TrackingClient
from fleetwatch.config import FleetwatchConfig, MapDefaults
from fleetwatch.console import LiveTrackingView
from fleetwatch.exceptions import (
    ConfigError,
    EngineClosedError,
    FleetwatchError,
    MalformedResponseError,
    RenderingFault,
    TransportError,
)
from fleetwatch.map.engine import MarkerHandle, ReconcileResult, ReconciliationEngine
from fleetwatch.map.headless import HeadlessMap
from fleetwatch.map.icons import IconParams, MarkerIcon, build_icon
from fleetwatch.map.substrate import MapSubstrate
from fleetwatch.models import (
    AggregateStats,
    AssociatedTask,
    EntityKind,
    EntityStatus,
    Operator,
    Position,
    Snapshot,
    TrackedEntity,
)
from fleetwatch.polling import PollConfig, PollingDataSource, VehicleTracker
from fleetwatch.state.filters import Connectivity, FilterState, Motion, filter_entities
from fleetwatch.state.pipeline import FilterPipeline

__all__ = [
    "__version__",
    "AggregateStats",
    "AssociatedTask",
    "ConfigError",
    "Connectivity",
    "EngineClosedError",
    "EntityKind",
    "EntityStatus",
    "FilterPipeline",
    "FilterState",
    "FleetwatchConfig",
    "FleetwatchError",
    "HeadlessMap",
    "IconParams",
    "LiveTrackingView",
    "MalformedResponseError",
    "MapDefaults",
    "MapSubstrate",
    "MarkerHandle",
    "MarkerIcon",
    "Motion",
    "Operator",
    "PollConfig",
    "PollingDataSource",
    "Position",
    "ReconcileResult",
    "ReconciliationEngine",
    "RenderingFault",
    "Snapshot",
    "TrackedEntity",
    "TrackingClient",
    "TransportError",
    "VehicleTracker",
    "build_icon",
    "filter_entities",
]
