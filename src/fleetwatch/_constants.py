"""Internal constants shared across the library."""

BASE_URL = "http://localhost:5000/api"
USER_AGENT = "fleetwatch/0.1"

#: Default polling cadence in milliseconds.
DEFAULT_POLL_INTERVAL_MS = 15_000

# ------------------------------------------------------------------
# Tracking endpoints
# ------------------------------------------------------------------

ACTIVE_RIDES_ENDPOINT = "/tracking/active-rides"
VEHICLES_ENDPOINT = "/tracking/vehicles"
STATS_ENDPOINT = "/tracking/stats"

# ------------------------------------------------------------------
# Map defaults
# ------------------------------------------------------------------

DEFAULT_CENTER: tuple[float, float] = (7.8731, 80.7718)
DEFAULT_ZOOM = 8
FOCUS_ZOOM = 15
FIT_PADDING_PX = 50

COLOR_OFFLINE = "#9CA3AF"
COLOR_MOVING = "#10B981"
COLOR_STATIONARY = "#3B82F6"
COLOR_ONLINE_TEXT = "#10B981"
COLOR_OFFLINE_TEXT = "#EF4444"

#: Vehicle categories drawn with the truck glyph.
BULK_CATEGORIES: frozenset[str] = frozenset({"Van", "Crew Cab"})

#: Stylesheet installed once per engine lifetime for the moving badge.
MARKER_STYLESHEET = """
@keyframes pulse {
  0% { transform: scale(1); opacity: 1; }
  50% { transform: scale(1.3); opacity: 0.7; }
  100% { transform: scale(1); opacity: 1; }
}
.custom-vehicle-marker {
  background: transparent !important;
  border: none !important;
}
"""
