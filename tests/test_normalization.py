from __future__ import annotations

import pytest

from pytempest._constants import battery_percent, clamp_lux
from pytempest.ingestion.normalize import normalize_timestamp_seconds, safe_float, safe_int
from pytempest.ingestion.observation import normalize
from pytempest.models.metrics import DerivedMetrics
from pytempest.models.observation import SnapshotObservation, StreamRecord, raw_observation_from_payload

OBS_ROW = [1771000000, 0, 5, 6, 180, 3, 1012, 18.5, 55, 9000, 3, 120, 0, 0, 0, 0, 3.3]


def test_stream_record_scenario_metrics() -> None:
    raw = raw_observation_from_payload({"type": "obs_st", "device_id": 42, "obs": [OBS_ROW]})
    metrics = normalize(raw)

    assert isinstance(raw, StreamRecord)
    assert metrics.temperature == 18.5
    assert metrics.humidity == 55
    assert metrics.lux == 9000
    assert metrics.pressure == 1012
    assert metrics.wind_speed == 5
    assert metrics.wind_gust == 6
    assert metrics.wind_direction == 180
    assert metrics.battery_level == 100
    assert metrics.is_raining is False
    assert metrics.timestamp == 1771000000


def test_legacy_sky_record_normalizes_like_tempest_record() -> None:
    st = normalize(raw_observation_from_payload({"type": "obs_st", "device_id": 42, "obs": [OBS_ROW]}))
    sky = normalize(raw_observation_from_payload({"type": "obs_sky", "device_id": 42, "obs": [OBS_ROW]}))

    assert sky == st


def test_snapshot_rounds_temperature_and_keeps_zero_lux() -> None:
    raw = raw_observation_from_payload(
        {"obs": [{"air_temperature": 22.34567, "brightness": 0, "relative_humidity": 48, "timestamp": 1771000000}]}
    )
    metrics = normalize(raw)

    assert isinstance(raw, SnapshotObservation)
    assert metrics.temperature == 22.35
    assert metrics.lux == 0
    assert metrics.display_lux == pytest.approx(0.0001)
    assert metrics.humidity == 48
    assert metrics.battery_level == 100
    assert metrics.is_lightning_detected is False


@pytest.mark.parametrize(("value", "expected"), [(18.125, 18.13), (-0.125, -0.12), (0.005, 0.01)])
def test_temperature_ties_round_half_up(value: float, expected: float) -> None:
    assert normalize(SnapshotObservation(air_temperature=value)).temperature == pytest.approx(expected)

    row = list(OBS_ROW)
    row[7] = value
    assert normalize(StreamRecord(values=row)).temperature == pytest.approx(expected)


def test_snapshot_and_stream_with_equal_values_give_equal_metrics() -> None:
    snapshot = SnapshotObservation(
        air_temperature=18.5,
        brightness=9000,
        relative_humidity=55,
        barometric_pressure=1012,
        wind_avg=5,
        wind_gust=6,
        wind_direction=180,
        solar_radiation=120,
        uv=3,
        timestamp=1771000000,
    )
    stream = StreamRecord(values=OBS_ROW)

    assert normalize(snapshot) == normalize(stream)


def test_empty_stream_record_yields_documented_defaults() -> None:
    metrics = normalize(StreamRecord())

    assert metrics == DerivedMetrics()
    assert metrics.temperature == 20.0
    assert metrics.lux == pytest.approx(0.0001)
    assert metrics.humidity == 50
    assert metrics.pressure == 1013.25
    assert metrics.battery_voltage == 3.3
    assert metrics.timestamp == 0


def test_short_and_null_slots_fall_back_per_field() -> None:
    row = [1771000000, None, None, None, None, None, "bad", 12.0]
    metrics = normalize(StreamRecord(values=row))

    assert metrics.temperature == 12.0
    assert metrics.pressure == 1013.25
    assert metrics.humidity == 50
    assert metrics.battery_voltage == 3.3


def test_unclassifiable_payloads_never_raise() -> None:
    for payload in (None, [], {}, {"obs": []}, {"obs": "x"}, {"obs": [1, 2, 3]}, {"obs": [[1], {"a": 1}]}):
        raw = raw_observation_from_payload(payload)
        assert isinstance(raw, StreamRecord)
        assert normalize(raw) == DerivedMetrics()


def test_most_recent_stream_row_is_used() -> None:
    older = list(OBS_ROW)
    older[7] = 10.0
    raw = raw_observation_from_payload({"type": "obs_st", "obs": [older, OBS_ROW]})

    assert normalize(raw).temperature == 18.5


def test_precipitation_and_lightning_flags() -> None:
    row = list(OBS_ROW)
    row[13] = 2
    row[14] = 12
    row[15] = 3
    metrics = normalize(StreamRecord(values=row))
    assert metrics.is_hailing is True
    assert metrics.is_raining is False
    assert metrics.is_lightning_detected is True

    row[13] = 0
    row[12] = 0.4
    row[14] = 80
    metrics = normalize(StreamRecord(values=row))
    assert metrics.is_raining is True
    assert metrics.is_lightning_detected is False


def test_snapshot_precip_marks_raining() -> None:
    metrics = normalize(SnapshotObservation(precip=0.2))

    assert metrics.rain_accumulated == 0.2
    assert metrics.precipitation_type == 0
    assert metrics.is_raining is True


@pytest.mark.parametrize(
    ("voltage", "expected"),
    [(2.0, 0), (2.4, 0), (2.7, 25), (3.0, 50), (3.3, 100), (3.6, 100), (4.2, 100)],
)
def test_battery_percent_is_bounded(voltage: float, expected: int) -> None:
    assert battery_percent(voltage) == expected


def test_battery_reads_full_from_nominal_voltage() -> None:
    # Below nominal the linear scale applies, so the reading jumps at 3.3 V.
    assert battery_percent(3.29) == 74
    assert battery_percent(3.3) == 100


def test_low_battery_threshold() -> None:
    row = list(OBS_ROW)
    row[16] = 2.5
    metrics = normalize(StreamRecord(values=row))

    assert metrics.battery_level == 8
    assert metrics.is_low_battery is True


def test_clamp_lux_bounds() -> None:
    assert clamp_lux(0) == pytest.approx(0.0001)
    assert clamp_lux(-5) == pytest.approx(0.0001)
    assert clamp_lux(0.00005) == pytest.approx(0.0001)
    assert DerivedMetrics(lux=0.00005).display_lux == pytest.approx(0.0001)
    assert clamp_lux(500) == 500
    assert clamp_lux(250000) == 100000


def test_safe_parsers() -> None:
    assert safe_float("--") is None
    assert safe_float(True) is None
    assert safe_float(float("nan")) is None
    assert safe_float("3.5") == 3.5
    assert safe_int("42.0") == 42


def test_timestamp_milliseconds_normalized_to_seconds() -> None:
    assert normalize_timestamp_seconds(1_771_000_000_000) == 1_771_000_000
    assert normalize_timestamp_seconds(1_771_000_000) == 1_771_000_000
    assert normalize_timestamp_seconds(0) is None
    assert normalize_timestamp_seconds("") is None
