"""Observation normalization.

:func:`normalize` turns either :data:`RawObservation` variant into a
:class:`DerivedMetrics`. It is total: malformed or missing values resolve
to the documented defaults instead of raising, so consumers always have
something to display.
"""

from __future__ import annotations

import math

from pytempest.ingestion.normalize import float_or, int_or
from pytempest.models.metrics import (
    DEFAULT_BATTERY_VOLTS,
    DEFAULT_HUMIDITY,
    DEFAULT_LUX,
    DEFAULT_PRESSURE_MB,
    DEFAULT_TEMPERATURE_C,
    DerivedMetrics,
)
from pytempest.models.observation import PrecipitationType, SnapshotObservation, StreamIndex, StreamRecord


def _round_temperature(value: float) -> float:
    # Half-up to two decimals; round() would send 18.125 to 18.12.
    return math.floor(value * 100 + 0.5) / 100


def _from_snapshot(obs: SnapshotObservation) -> DerivedMetrics:
    # The REST schema carries no lightning, battery or precipitation type.
    return DerivedMetrics(
        temperature=_round_temperature(float_or(obs.air_temperature, DEFAULT_TEMPERATURE_C)),
        lux=float_or(obs.brightness, DEFAULT_LUX),
        humidity=float_or(obs.relative_humidity, DEFAULT_HUMIDITY),
        pressure=float_or(obs.barometric_pressure, DEFAULT_PRESSURE_MB),
        wind_speed=float_or(obs.wind_avg, 0.0),
        wind_gust=float_or(obs.wind_gust, 0.0),
        wind_direction=float_or(obs.wind_direction, 0.0),
        uv_index=float_or(obs.uv, 0.0),
        solar_radiation=float_or(obs.solar_radiation, 0.0),
        rain_accumulated=float_or(obs.precip, 0.0),
        precipitation_type=int(PrecipitationType.NONE),
        lightning_avg_distance=0.0,
        lightning_count=0,
        battery_voltage=DEFAULT_BATTERY_VOLTS,
        timestamp=obs.timestamp or 0,
    )


def _from_stream(record: StreamRecord) -> DerivedMetrics:
    at = record.at
    return DerivedMetrics(
        temperature=_round_temperature(float_or(at(StreamIndex.AIR_TEMPERATURE), DEFAULT_TEMPERATURE_C)),
        lux=float_or(at(StreamIndex.BRIGHTNESS), DEFAULT_LUX),
        humidity=float_or(at(StreamIndex.HUMIDITY), DEFAULT_HUMIDITY),
        pressure=float_or(at(StreamIndex.PRESSURE), DEFAULT_PRESSURE_MB),
        wind_speed=float_or(at(StreamIndex.WIND_AVG), 0.0),
        wind_gust=float_or(at(StreamIndex.WIND_GUST), 0.0),
        wind_direction=float_or(at(StreamIndex.WIND_DIRECTION), 0.0),
        uv_index=float_or(at(StreamIndex.UV), 0.0),
        solar_radiation=float_or(at(StreamIndex.SOLAR_RADIATION), 0.0),
        rain_accumulated=float_or(at(StreamIndex.RAIN_ACCUMULATED), 0.0),
        precipitation_type=int_or(at(StreamIndex.PRECIPITATION_TYPE), int(PrecipitationType.NONE)),
        lightning_avg_distance=float_or(at(StreamIndex.LIGHTNING_AVG_DISTANCE), 0.0),
        lightning_count=int_or(at(StreamIndex.LIGHTNING_COUNT), 0),
        battery_voltage=float_or(at(StreamIndex.BATTERY_VOLTAGE), DEFAULT_BATTERY_VOLTS),
        timestamp=max(0, int_or(at(StreamIndex.TIME), 0)),
    )


def normalize(raw: SnapshotObservation | StreamRecord) -> DerivedMetrics:
    """Compute :class:`DerivedMetrics` from a raw observation."""
    if isinstance(raw, SnapshotObservation):
        return _from_snapshot(raw)
    return _from_stream(raw)
