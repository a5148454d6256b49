"""Latest station observation endpoint: /observations/station/{station_id}."""

from __future__ import annotations

import logging

from pytempest._api._common import get_checked_json
from pytempest._transport import Transport
from pytempest.exceptions import TempestApiError
from pytempest.ingestion.observation import normalize
from pytempest.models.metrics import DerivedMetrics
from pytempest.models.observation import SnapshotObservation, raw_observation_from_payload

_logger = logging.getLogger(__name__)


def observation_endpoint(station_id: str) -> str:
    return f"/observations/station/{station_id}"


async def fetch_station_observation(transport: Transport, station_id: str) -> SnapshotObservation:
    """Fetch the latest REST snapshot for *station_id*.

    Raises
    ------
    TempestApiError
        If the status envelope reports a failure, or the station returned
        no observation (offline station).
    """
    endpoint = observation_endpoint(station_id)
    body = await get_checked_json(endpoint=endpoint, transport=transport)
    raw = raw_observation_from_payload(body)
    if not isinstance(raw, SnapshotObservation):
        raise TempestApiError(
            f"{endpoint} returned no observation",
            code="no_observation",
            endpoint=endpoint,
        )
    return raw


class SnapshotClient:
    """Stateless pull of the latest observation.

    No retries of its own: failures propagate so the caller (the freshness
    arbiter) decides what a failed cycle means.
    """

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    async def fetch_raw(self, station_id: str) -> SnapshotObservation:
        return await fetch_station_observation(self._transport, station_id)

    async def fetch_latest(self, station_id: str) -> DerivedMetrics:
        snapshot = await self.fetch_raw(station_id)
        metrics = normalize(snapshot)
        _logger.debug("Snapshot for station %s: %s", station_id, metrics.summary())
        return metrics
