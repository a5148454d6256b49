"""Derived weather metrics model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, computed_field

from pytempest._constants import LIGHTNING_MAX_DISTANCE_KM, LOW_BATTERY_PERCENT, battery_percent, clamp_lux
from pytempest.models.observation import PrecipitationType

DEFAULT_TEMPERATURE_C = 20.0
DEFAULT_LUX = 0.0001
DEFAULT_HUMIDITY = 50.0
DEFAULT_PRESSURE_MB = 1013.25
DEFAULT_BATTERY_VOLTS = 3.3


class DerivedMetrics(BaseModel):
    """Normalized, source-agnostic view of one observation.

    Every field is always populated; missing inputs resolve to the module
    defaults during normalization.

    Parameters
    ----------
    temperature : float
        Air temperature in °C, rounded to 2 decimals.
    lux : float
        Illuminance as reported. May be ``0``; use :attr:`display_lux` for
        consumers that reject values below 0.0001.
    humidity : float
        Relative humidity in %.
    pressure : float
        Station pressure in mb (hPa).
    wind_speed : float
        Average wind speed in m/s.
    wind_gust : float
        Wind gust in m/s.
    wind_direction : float
        Wind direction in degrees.
    uv_index : float
        UV index.
    solar_radiation : float
        Solar radiation in W/m².
    rain_accumulated : float
        Rain over the reporting interval in mm.
    precipitation_type : int
        0 none, 1 rain, 2 hail, 3 rain + hail.
    lightning_avg_distance : float
        Average strike distance in km.
    lightning_count : int
        Strike count over the reporting interval.
    battery_voltage : float
        Sensor battery voltage.
    timestamp : int
        Observation epoch seconds, ``0`` when unknown.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    temperature: float = DEFAULT_TEMPERATURE_C
    lux: float = DEFAULT_LUX
    humidity: float = DEFAULT_HUMIDITY
    pressure: float = DEFAULT_PRESSURE_MB
    wind_speed: float = 0.0
    wind_gust: float = 0.0
    wind_direction: float = 0.0
    uv_index: float = 0.0
    solar_radiation: float = 0.0
    rain_accumulated: float = 0.0
    precipitation_type: int = int(PrecipitationType.NONE)
    lightning_avg_distance: float = 0.0
    lightning_count: int = 0
    battery_voltage: float = DEFAULT_BATTERY_VOLTS
    timestamp: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def battery_level(self) -> int:
        """Battery charge in percent (0-100)."""
        return battery_percent(self.battery_voltage)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_low_battery(self) -> bool:
        return self.battery_level < LOW_BATTERY_PERCENT

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_raining(self) -> bool:
        return self.precipitation_type == PrecipitationType.RAIN or self.rain_accumulated > 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_hailing(self) -> bool:
        return self.precipitation_type == PrecipitationType.HAIL

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_lightning_detected(self) -> bool:
        return self.lightning_count > 0 and 0 < self.lightning_avg_distance <= LIGHTNING_MAX_DISTANCE_KM

    @property
    def display_lux(self) -> float:
        """Illuminance clamped to ``[0.0001, 100000]``."""
        return clamp_lux(self.lux)

    def summary(self) -> str:
        """One-line human readable summary used in INFO logs."""
        return (
            f"T: {self.temperature}°C, H: {self.humidity}%, P: {self.pressure}MB, UV: {self.uv_index}, "
            f"Wind: {self.wind_speed}m/s @ {self.wind_direction}°, "
            f"Battery: {self.battery_level}% ({self.battery_voltage}V)"
        )
