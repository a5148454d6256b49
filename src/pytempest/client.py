"""High-level async client for WeatherFlow Tempest station telemetry."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Any

import aiohttp

from pytempest._api.observations import SnapshotClient
from pytempest._api.stations import DeviceResolver, fetch_station_metadata
from pytempest._stream import StreamingClient, WebSocketConnector
from pytempest._transport import RestTransport, Transport
from pytempest.arbiter import FreshnessArbiter, FreshnessDecision
from pytempest.config import TempestConfig
from pytempest.exceptions import TempestError
from pytempest.models.metrics import DerivedMetrics
from pytempest.models.station import DeviceBinding, StationMetadata
from pytempest.state.dispatcher import EventDispatcher
from pytempest.state.events import (
    ConnectedEvent,
    ErrorEvent,
    ErrorKind,
    ObservationEvent,
    ObservationSource,
)
from pytempest.state.store import MetricsStore

_logger = logging.getLogger(__name__)


class TempestClient:
    """Async client for one Tempest station.

    Usage::

        async with TempestClient(config) as client:
            client.subscribe(print)
            await client.start()
            ...

    ``start`` opens the WebSocket stream and the freshness arbiter; the
    latest accepted values are always available from :attr:`metrics`.
    """

    def __init__(
        self,
        config: TempestConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        on_observation: Callable[[DerivedMetrics], None] | None = None,
        transport: Transport | None = None,
        ws_connect: WebSocketConnector | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport_override = transport
        self._ws_connect = ws_connect
        self._on_observation = on_observation

        self._dispatcher = EventDispatcher()
        self._store = MetricsStore()
        self._transport: Transport | None = None
        self._snapshot: SnapshotClient | None = None
        self._resolver: DeviceResolver | None = None
        self._streaming: StreamingClient | None = None
        self._arbiter: FreshnessArbiter | None = None
        self._background: set[asyncio.Task[None]] = set()

        self._dispatcher.subscribe(self._on_observation_event, event_type=ObservationEvent)
        self._dispatcher.subscribe(self._on_connected_event, event_type=ConnectedEvent)

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TempestClient:
        if self._transport_override is not None:
            self._transport = self._transport_override
        else:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = RestTransport(self._config, self._http_session)

        self._snapshot = SnapshotClient(self._transport)
        self._resolver = DeviceResolver(self._transport)
        self._streaming = StreamingClient(
            self._config,
            self._resolver,
            self._dispatcher,
            http_session=self._http_session,
            ws_connect=self._ws_connect,
        )
        self._arbiter = FreshnessArbiter(self._streaming, self._snapshot, self._dispatcher, self._config)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()
        if self._arbiter is not None:
            self._arbiter.close()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._transport = None
        self._snapshot = None
        self._resolver = None
        self._streaming = None
        self._arbiter = None

    # ------------------------------------------------------------------
    # Streaming lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> bool:
        """Open the stream and start the freshness arbiter.

        Returns whether the stream is listening. A failed first attempt is
        retried in the background, and the arbiter polls in the meantime.
        """
        streaming = self._require_streaming()
        connected = await streaming.connect()
        self._require_arbiter().start()
        return connected

    async def stop(self) -> None:
        """Stop the arbiter and the stream, and cancel pending fetches."""
        if self._arbiter is not None:
            await self._arbiter.stop()
        if self._streaming is not None:
            await self._streaming.disconnect()
        tasks = list(self._background)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._background.clear()

    async def refresh(self) -> FreshnessDecision:
        """Run one freshness check now."""
        return await self._require_arbiter().check()

    def subscribe(self, callback: Callable[[Any], None], *, event_type: type[Any] | None = None) -> Callable[[], None]:
        """Register an event callback; see :mod:`pytempest.state.events`."""
        return self._dispatcher.subscribe(callback, event_type=event_type)

    # ------------------------------------------------------------------
    # One-shot REST reads
    # ------------------------------------------------------------------

    async def get_observation(self) -> DerivedMetrics:
        """Fetch and normalize the latest REST snapshot."""
        if self._snapshot is None:
            raise TempestError("Client not initialized. Use 'async with TempestClient(...) as client:'")
        return await self._snapshot.fetch_latest(self._config.station_id)

    async def get_station_metadata(self) -> StationMetadata:
        return await fetch_station_metadata(self._require_transport(), self._config.station_id)

    async def resolve_device(self) -> DeviceBinding | None:
        if self._resolver is None:
            raise TempestError("Client not initialized. Use 'async with TempestClient(...) as client:'")
        return await self._resolver.resolve(self._config.station_id)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def config(self) -> TempestConfig:
        return self._config

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    @property
    def store(self) -> MetricsStore:
        return self._store

    @property
    def metrics(self) -> DerivedMetrics | None:
        return self._store.metrics

    @property
    def streaming(self) -> StreamingClient | None:
        return self._streaming

    @property
    def arbiter(self) -> FreshnessArbiter | None:
        return self._arbiter

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise TempestError("Client not initialized. Use 'async with TempestClient(...) as client:'")
        return self._transport

    def _require_streaming(self) -> StreamingClient:
        if self._streaming is None:
            raise TempestError("Client not initialized. Use 'async with TempestClient(...) as client:'")
        return self._streaming

    def _require_arbiter(self) -> FreshnessArbiter:
        if self._arbiter is None:
            raise TempestError("Client not initialized. Use 'async with TempestClient(...) as client:'")
        return self._arbiter

    def _on_observation_event(self, event: ObservationEvent) -> None:
        if not self._store.apply(event):
            _logger.debug("Ignoring %s observation older than the current value", event.source)
            return
        if self._on_observation is not None:
            self._on_observation(event.metrics)

    def _on_connected_event(self, event: ConnectedEvent) -> None:
        if not self._config.fetch_on_connect or self._snapshot is None:
            return
        task = asyncio.get_running_loop().create_task(self._fetch_on_connect())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _fetch_on_connect(self) -> None:
        assert self._snapshot is not None  # noqa: S101
        station_id = self._config.station_id
        try:
            metrics = await self._snapshot.fetch_latest(station_id)
        except TempestError as exc:
            _logger.warning("Initial snapshot for station %s failed: %s", station_id, exc)
            self._dispatcher.publish(ErrorEvent(station_id=station_id, kind=ErrorKind.POLL, message=str(exc)))
            return
        self._dispatcher.publish(ObservationEvent(station_id=station_id, source=ObservationSource.POLL, metrics=metrics))
