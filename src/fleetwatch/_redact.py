"""Redaction of tracking payloads before they reach DEBUG logs.

Vehicle payloads embed the assigned driver's contact details, and the
client holds a bearer token. Keys are matched after lowercasing and
dropping ``_``/``-``, so ``phoneNumber``, ``phone_number`` and
``Phone-Number`` are all caught.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

_REDACTED = "<redacted>"
_MAX_DEPTH = 20

# Keys whose normalised name contains one of these fragments.
_SENSITIVE_FRAGMENTS: tuple[str, ...] = (
    "token",
    "password",
    "secret",
    "authorization",
    "cookie",
    "phone",
    "mobile",
    "email",
)


def _normalise_key(key: object) -> str:
    return str(key).lower().replace("_", "").replace("-", "")


def is_sensitive_key(key: object) -> bool:
    name = _normalise_key(key)
    return any(fragment in name for fragment in _SENSITIVE_FRAGMENTS)


def redact_for_log(value: Any, *, max_string: int = 512, max_items: int = 50) -> Any:
    """Return a copy of *value* safe to log.

    Sensitive mapping values are replaced, long strings truncated and
    long lists cut to *max_items* entries plus a ``"<N more>"`` marker.
    """
    return _redact(value, max_string, max_items, 0)


def _redact(value: Any, max_string: int, max_items: int, depth: int) -> Any:
    if depth > _MAX_DEPTH:
        return "<max-depth>"
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return value if len(value) <= max_string else f"{value[:max_string]}…<truncated>"
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {
            str(key): _REDACTED if is_sensitive_key(key) else _redact(item, max_string, max_items, depth + 1)
            for key, item in value.items()
        }
    if isinstance(value, Sequence):
        head = [_redact(item, max_string, max_items, depth + 1) for item in value[:max_items]]
        if len(value) > max_items:
            head.append(f"<{len(value) - max_items} more>")
        return head
    return repr(value)
