"""Station metadata endpoint: /stations/{station_id}.

Used to resolve the numeric Tempest device id that the WebSocket
``listen_start`` request needs.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from pytempest._api._common import get_checked_json
from pytempest._constants import PRIMARY_DEVICE_TYPE
from pytempest._transport import Transport
from pytempest.exceptions import TempestError, TempestRateLimitError
from pytempest.models.station import DeviceBinding, StationMetadata

_logger = logging.getLogger(__name__)


def station_endpoint(station_id: str) -> str:
    return f"/stations/{station_id}"


async def fetch_station_metadata(transport: Transport, station_id: str) -> StationMetadata:
    """Fetch station metadata including the device list."""
    body = await get_checked_json(endpoint=station_endpoint(station_id), transport=transport)
    return StationMetadata.model_validate(body)


def find_primary_device(metadata: StationMetadata, station_id: str) -> DeviceBinding | None:
    """Return a binding for the first Tempest sensor unit in *metadata*."""
    for device in metadata.iter_devices():
        if device.device_type == PRIMARY_DEVICE_TYPE and device.device_id is not None:
            return DeviceBinding(
                station_id=station_id,
                device_id=device.device_id,
                device_type=device.device_type,
                serial_number=device.serial_number,
            )
    return None


async def resolve_device_binding(
    transport: Transport,
    station_id: str,
    *,
    raise_rate_limit: bool = False,
) -> DeviceBinding | None:
    """Resolve *station_id* to its Tempest device.

    Returns ``None`` (not found) when the request fails or no Tempest device
    is attached. With *raise_rate_limit* an HTTP 429 propagates as
    :class:`TempestRateLimitError` so callers can back off harder.
    """
    try:
        metadata = await fetch_station_metadata(transport, station_id)
    except TempestRateLimitError as exc:
        if raise_rate_limit:
            raise
        _logger.warning("Station metadata lookup for %s rate limited: %s", station_id, exc)
        return None
    except (TempestError, ValidationError) as exc:
        _logger.warning("Station metadata lookup for %s failed: %s", station_id, exc)
        return None

    binding = find_primary_device(metadata, station_id)
    if binding is None:
        _logger.warning("No Tempest device (type %s) found for station %s", PRIMARY_DEVICE_TYPE, station_id)
    else:
        _logger.debug("Station %s resolved to device %s", station_id, binding.device_id)
    return binding


class DeviceResolver:
    """One-shot lookup of the device binding for a station."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    async def resolve(self, station_id: str, *, raise_rate_limit: bool = False) -> DeviceBinding | None:
        return await resolve_device_binding(self._transport, station_id, raise_rate_limit=raise_rate_limit)
