"""Base model and enum for dispatch backend responses.

Every response model inherits from :class:`FleetBaseModel` which
provides:

* ``alias_generator=to_camel`` so camelCase API keys map
  automatically to snake_case fields.
* A ``model_validator(mode="before")`` that strips sentinel values
  (``""``, ``"--"``, NaN, ``None``) so the field default is used.
* A ``raw`` dict that captures the original payload.

String enums inherit from :class:`FleetEnum` which adds an ``UNKNOWN``
member and a ``_missing_`` hook that returns ``UNKNOWN`` for any value
without a mapped member.
"""

from __future__ import annotations

import math
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

# Sentinel strings the backend uses for "not available".
_SENTINELS = frozenset({"", "--", "NaN", "nan", "null"})


class FleetEnum(StrEnum):
    """Base for backend string enums.

    Every subclass **must** define ``UNKNOWN = "unknown"``. Matching is
    case-insensitive; anything else resolves to ``UNKNOWN``.
    """

    @classmethod
    def _missing_(cls, value: object) -> FleetEnum | None:
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        unknown: FleetEnum | None = cls.__members__.get("UNKNOWN")
        return unknown


class FleetBaseModel(BaseModel):
    """Base for dispatch backend response models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    raw: dict[str, Any] = Field(default_factory=dict, repr=False)
    """Original API response dict."""

    @staticmethod
    def _clean_dict(values: dict[str, Any]) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and value.strip() in _SENTINELS:
                continue
            if isinstance(value, float) and math.isnan(value):
                continue
            cleaned[key] = value
        return cleaned

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        """Strip sentinel values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned = FleetBaseModel._clean_dict(values)
        # Keep an explicitly passed raw= (kwargs construction); stash otherwise.
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
