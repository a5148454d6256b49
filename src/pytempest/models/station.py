"""Station metadata models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pytempest.ingestion.normalize import safe_int
from pytempest.models._base import TempestBaseModel


class Device(TempestBaseModel):
    """A device attached to a station (hub, Tempest sensor, legacy AIR/SKY)."""

    device_id: int | None = None
    device_type: str = ""
    """``"HB"`` hub, ``"ST"`` Tempest, ``"AR"`` AIR, ``"SK"`` SKY."""
    serial_number: str = ""
    name: str = ""

    @field_validator("device_id", mode="before")
    @classmethod
    def _coerce_device_id(cls, value: Any) -> int | None:
        return safe_int(value)

    @field_validator("device_type", "serial_number", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> str:
        return str(value).strip()

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> Device:
        meta = item.get("device_meta")
        name = meta.get("name", "") if isinstance(meta, dict) else ""
        return cls.model_validate({**item, "name": name or ""})


class Station(TempestBaseModel):
    station_id: int | None = None
    name: str = ""
    devices: list[Device] = Field(default_factory=list)

    @field_validator("station_id", mode="before")
    @classmethod
    def _coerce_station_id(cls, value: Any) -> int | None:
        return safe_int(value)

    @field_validator("devices", mode="before")
    @classmethod
    def _parse_devices(cls, value: Any) -> list[Device]:
        if not isinstance(value, list):
            return []
        return [Device.from_api(item) for item in value if isinstance(item, dict)]


class StationMetadata(TempestBaseModel):
    """Response of ``GET /stations/{station_id}``."""

    stations: list[Station] = Field(default_factory=list)

    @field_validator("stations", mode="before")
    @classmethod
    def _parse_stations(cls, value: Any) -> list[Station]:
        if not isinstance(value, list):
            return []
        return [Station.model_validate(item) for item in value if isinstance(item, dict)]

    def iter_devices(self) -> list[Device]:
        return [device for station in self.stations for device in station.devices]


class DeviceBinding(BaseModel):
    """Numeric device id resolved for a station, needed to subscribe on the WebSocket."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    station_id: str
    device_id: int
    device_type: str = ""
    serial_number: str = ""
