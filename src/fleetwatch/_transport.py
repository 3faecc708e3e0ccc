"""HTTP transport for the dispatch backend's tracking API."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import aiohttp

from fleetwatch._constants import USER_AGENT
from fleetwatch._redact import redact_for_log
from fleetwatch.config import FleetwatchConfig
from fleetwatch.exceptions import TransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles/mocks while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    async def get_json(self, endpoint: str) -> Any:
        ...


class HttpTransport:
    """JSON-over-HTTP transport with bearer-token authentication."""

    def __init__(self, config: FleetwatchConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {
            "accept": "application/json",
            "content-type": "application/json",
            "user-agent": USER_AGENT,
        }
        if self._config.api_token:
            headers["authorization"] = f"Bearer {self._config.api_token}"
        return headers

    async def get_json(self, endpoint: str) -> Any:
        """GET *endpoint* relative to the configured base URL and decode JSON.

        Raises :class:`TransportError` on network failures, non-2xx
        statuses and bodies that are not valid JSON.
        """
        url = f"{self._config.base_url}{endpoint}"
        _logger.debug("GET %s", url)

        try:
            async with self._http.get(url, headers=self._headers(), timeout=self._timeout) as resp:
                text = await resp.text()
                if not 200 <= resp.status < 300:
                    message = _error_message(text) or text[:200]
                    raise TransportError(
                        f"HTTP {resp.status} from {endpoint}: {message}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except TransportError:
            raise
        except TimeoutError as exc:
            raise TransportError(f"Request to {endpoint} timed out", endpoint=endpoint) from exc
        except aiohttp.ClientError as exc:
            raise TransportError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc

        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            raise TransportError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                endpoint=endpoint,
            ) from exc

        if self._config.api_trace_enabled:
            _logger.debug("Response %s: %s", endpoint, redact_for_log(body))
        return body


def _error_message(text: str) -> str | None:
    """Pull ``message`` out of a JSON error body, if there is one."""
    try:
        body = json.loads(text)
    except json.JSONDecodeError:
        return None
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message:
            return message
    return None
