"""Base model for WeatherFlow API payloads.

Every payload model inherits from :class:`TempestBaseModel` which
provides:

* frozen, ``extra="ignore"`` parsing so new server fields never break us;
* a ``model_validator(mode="before")`` that drops ``null``/NaN values so
  the field default is used instead;
* a ``raw`` dict that captures the original payload.
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Sentinel strings occasionally seen in place of numbers.
_SENTINELS = frozenset({"", "--", "NaN", "nan"})


class TempestBaseModel(BaseModel):
    """Base for WeatherFlow payload models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
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
        cleaned = TempestBaseModel._clean_dict(values)
        # Keep an explicitly supplied raw= (kwargs construction); otherwise
        # remember what the API sent.
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
