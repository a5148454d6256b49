"""Raw observation models.

WeatherFlow delivers observations in two incompatible shapes:

* the REST endpoint returns ``{"obs": [{...named fields...}]}``;
* the WebSocket pushes ``{"type": "obs_st", "obs": [[...numbers...]]}``
  where each value sits at a fixed index.

Both are captured as variants of the :data:`RawObservation` tagged union.
Use :func:`raw_observation_from_payload` to build one from either payload;
it never raises and falls back to an empty :class:`StreamRecord` (which
normalizes to the documented defaults) for anything it cannot classify.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from enum import IntEnum
from typing import Annotated, Any, Literal

from pydantic import Field, ValidationError, field_validator

from pytempest._constants import MSG_OBS_ST
from pytempest.ingestion.normalize import normalize_timestamp_seconds, safe_float, safe_int
from pytempest.models._base import TempestBaseModel

_logger = logging.getLogger(__name__)


class StreamIndex(IntEnum):
    """Positions inside an ``obs_st`` record."""

    TIME = 0
    WIND_LULL = 1
    WIND_AVG = 2
    WIND_GUST = 3
    WIND_DIRECTION = 4
    WIND_SAMPLE_INTERVAL = 5
    PRESSURE = 6
    AIR_TEMPERATURE = 7
    HUMIDITY = 8
    BRIGHTNESS = 9
    UV = 10
    SOLAR_RADIATION = 11
    RAIN_ACCUMULATED = 12
    PRECIPITATION_TYPE = 13
    LIGHTNING_AVG_DISTANCE = 14
    LIGHTNING_COUNT = 15
    BATTERY_VOLTAGE = 16


class PrecipitationType(IntEnum):
    NONE = 0
    RAIN = 1
    HAIL = 2
    RAIN_AND_HAIL = 3


class SnapshotObservation(TempestBaseModel):
    """A single named-field observation from the REST API.

    Every numeric field is ``None`` when absent or unparseable; defaults are
    applied during normalization, not here.
    """

    kind: Literal["snapshot"] = "snapshot"
    air_temperature: float | None = None
    brightness: float | None = None
    relative_humidity: float | None = None
    barometric_pressure: float | None = None
    wind_avg: float | None = None
    wind_gust: float | None = None
    wind_direction: float | None = None
    solar_radiation: float | None = None
    uv: float | None = None
    precip: float | None = None
    """Rain accumulated over the reporting interval (mm)."""
    timestamp: int | None = None

    @field_validator(
        "air_temperature",
        "brightness",
        "relative_humidity",
        "barometric_pressure",
        "wind_avg",
        "wind_gust",
        "wind_direction",
        "solar_radiation",
        "uv",
        "precip",
        mode="before",
    )
    @classmethod
    def _coerce_floats(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> int | None:
        return normalize_timestamp_seconds(value)


class StreamRecord(TempestBaseModel):
    """A positional observation record pushed over the WebSocket."""

    kind: Literal["stream"] = "stream"
    message_type: str = MSG_OBS_ST
    device_id: int | None = None
    values: tuple[float | None, ...] = ()

    @field_validator("values", mode="before")
    @classmethod
    def _coerce_values(cls, value: Any) -> tuple[float | None, ...]:
        if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
            return ()
        return tuple(safe_float(item) for item in value)

    @field_validator("device_id", mode="before")
    @classmethod
    def _coerce_device_id(cls, value: Any) -> int | None:
        return safe_int(value)

    def at(self, index: int) -> float | None:
        """Value at *index*, or ``None`` when the record is too short."""
        if 0 <= index < len(self.values):
            return self.values[index]
        return None

    @property
    def is_empty(self) -> bool:
        return not self.values


RawObservation = Annotated[SnapshotObservation | StreamRecord, Field(discriminator="kind")]
"""Tagged union of the two observation shapes."""


def _empty_record(payload: Mapping[str, Any] | None = None) -> StreamRecord:
    if payload is None:
        return StreamRecord()
    return StreamRecord(
        message_type=str(payload.get("type") or MSG_OBS_ST),
        device_id=payload.get("device_id"),
        raw=dict(payload),
    )


def raw_observation_from_payload(payload: Any) -> SnapshotObservation | StreamRecord:
    """Classify *payload* and build the matching :data:`RawObservation`.

    * ``obs[0]`` is a mapping: REST snapshot.
    * every ``obs`` row is a sequence: stream record built from the last
      (most recent) row.
    * anything else: empty stream record.
    """
    if not isinstance(payload, Mapping):
        return _empty_record()

    obs = payload.get("obs")
    if not isinstance(obs, Sequence) or isinstance(obs, (str, bytes)) or not obs:
        return _empty_record(payload)

    first = obs[0]
    try:
        if isinstance(first, Mapping):
            return SnapshotObservation.model_validate(dict(first))
        if all(isinstance(row, Sequence) and not isinstance(row, (str, bytes)) for row in obs):
            return StreamRecord(
                message_type=str(payload.get("type") or MSG_OBS_ST),
                device_id=payload.get("device_id"),
                values=obs[-1],
                raw=dict(payload),
            )
    except ValidationError:
        _logger.debug("Observation payload failed validation", exc_info=True)
    return _empty_record(payload)
