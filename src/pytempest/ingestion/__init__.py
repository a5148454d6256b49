"""Ingestion layer.

This package contains the helpers that turn raw WeatherFlow payloads
(REST snapshots and WebSocket records) into normalized metrics.
"""

__all__: list[str] = []
