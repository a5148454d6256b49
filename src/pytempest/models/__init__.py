"""Pydantic models for WeatherFlow Tempest payloads."""

from pytempest.models.metrics import DerivedMetrics
from pytempest.models.observation import (
    PrecipitationType,
    RawObservation,
    SnapshotObservation,
    StreamIndex,
    StreamRecord,
    raw_observation_from_payload,
)
from pytempest.models.station import Device, DeviceBinding, Station, StationMetadata

__all__ = [
    "DerivedMetrics",
    "Device",
    "DeviceBinding",
    "PrecipitationType",
    "RawObservation",
    "SnapshotObservation",
    "Station",
    "StationMetadata",
    "StreamIndex",
    "StreamRecord",
    "raw_observation_from_payload",
]
