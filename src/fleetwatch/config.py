"""Client configuration for fleetwatch."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

from fleetwatch._constants import (
    BASE_URL,
    DEFAULT_CENTER,
    DEFAULT_POLL_INTERVAL_MS,
    DEFAULT_ZOOM,
    FIT_PADDING_PX,
    FOCUS_ZOOM,
)
from fleetwatch.exceptions import ConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env: Mapping[str, str], key: str, cast: type) -> Any:
    raw = env.get(key)
    if raw is None:
        return None
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a {cast.__name__}, got {raw!r}") from exc


@dataclasses.dataclass(frozen=True)
class MapDefaults:
    """Camera parameters used by the reconciliation engine."""

    center: tuple[float, float] = DEFAULT_CENTER
    zoom: int = DEFAULT_ZOOM
    focus_zoom: int = FOCUS_ZOOM
    fit_padding: int = FIT_PADDING_PX


@dataclasses.dataclass(frozen=True)
class FleetwatchConfig:
    """Client configuration.

    Parameters
    ----------
    base_url : str
        Dispatch backend API root, without trailing slash.
    api_token : str or None
        Bearer token attached as ``Authorization`` header when set.
    request_timeout : float
        Total per-request timeout in seconds.
    poll_interval_ms : int
        Cadence of recurring background poll cycles.
    auto_refresh : bool
        Whether ``start()`` schedules recurring cycles after the
        initial fetch.
    api_trace_enabled : bool
        Log redacted response bodies at DEBUG level.
    map : MapDefaults
        Camera defaults for the map view.
    """

    base_url: str = BASE_URL
    api_token: str | None = None
    request_timeout: float = 10.0
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    auto_refresh: bool = True
    api_trace_enabled: bool = False
    map: MapDefaults = dataclasses.field(default_factory=MapDefaults)

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ConfigError("base_url must be non-empty")
        if self.poll_interval_ms <= 0:
            raise ConfigError(f"poll_interval_ms must be positive, got {self.poll_interval_ms}")
        if self.request_timeout <= 0:
            raise ConfigError(f"request_timeout must be positive, got {self.request_timeout}")
        # Normalise so endpoint paths can always be appended with a leading slash.
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @classmethod
    def from_env(cls, **overrides: Any) -> FleetwatchConfig:
        """Create configuration from ``FLEETWATCH_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        config_kwargs: dict[str, Any] = {}
        base_url = env.get("FLEETWATCH_BASE_URL")
        if base_url is not None:
            config_kwargs["base_url"] = base_url
        token = env.get("FLEETWATCH_API_TOKEN")
        if token:
            config_kwargs["api_token"] = token

        timeout = _env_number(env, "FLEETWATCH_REQUEST_TIMEOUT", float)
        if timeout is not None:
            config_kwargs["request_timeout"] = timeout

        interval = _env_number(env, "FLEETWATCH_POLL_INTERVAL_MS", int)
        if interval is not None:
            config_kwargs["poll_interval_ms"] = interval

        config_kwargs["auto_refresh"] = _env_bool(env.get("FLEETWATCH_AUTO_REFRESH"), True)
        config_kwargs["api_trace_enabled"] = _env_bool(env.get("FLEETWATCH_API_TRACE_ENABLED"), False)

        map_overrides = overrides.pop("map", None)
        if isinstance(map_overrides, dict):
            config_kwargs["map"] = MapDefaults(**map_overrides)
        elif isinstance(map_overrides, MapDefaults):
            config_kwargs["map"] = map_overrides

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
