"""Freshness arbiter: falls back to REST polling when the stream goes quiet."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from pytempest._api.observations import SnapshotClient
from pytempest._stream import ReconnectOutcome, StreamingClient
from pytempest.config import TempestConfig
from pytempest.exceptions import TempestError
from pytempest.state.dispatcher import EventDispatcher
from pytempest.state.events import ErrorEvent, ErrorKind, ObservationEvent, ObservationSource
from pytempest.state.policy import is_push_stale

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FreshnessDecision:
    """What one :meth:`FreshnessArbiter.check` did."""

    connected: bool
    stale: bool
    reconnect: ReconnectOutcome | None = None
    fetched: bool = False
    error: str | None = None


class FreshnessArbiter:
    """Periodic staleness check over the push stream.

    Runs a first check ``initial_check_delay`` seconds after :meth:`start`,
    then every ``fallback_interval`` seconds. When the stream is down or no
    push observation arrived within ``staleness_window``, it nudges the
    stream to reconnect and publishes a polled snapshot instead.
    """

    def __init__(
        self,
        streaming: StreamingClient,
        snapshot_client: SnapshotClient,
        dispatcher: EventDispatcher,
        config: TempestConfig,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._streaming = streaming
        self._snapshot = snapshot_client
        self._dispatcher = dispatcher
        self._config = config
        self._station_id = config.station_id
        self._clock = clock
        self._last_push_at: float | None = None
        self._task: asyncio.Task[None] | None = None
        self._unsubscribe = dispatcher.subscribe(self._on_observation, event_type=ObservationEvent)

    @property
    def last_push_at(self) -> float | None:
        return self._last_push_at

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _on_observation(self, event: ObservationEvent) -> None:
        if event.source == ObservationSource.PUSH:
            self._last_push_at = self._clock()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    def close(self) -> None:
        """Detach from the dispatcher. The arbiter cannot be restarted afterwards."""
        self._unsubscribe()

    async def _run(self) -> None:
        delay = self._config.initial_check_delay
        while True:
            await asyncio.sleep(delay)
            delay = self._config.fallback_interval
            try:
                await self.check()
            except Exception:
                _logger.exception("Freshness check for station %s failed", self._station_id)

    async def check(self) -> FreshnessDecision:
        connected = self._streaming.is_connected()
        stale = not connected or is_push_stale(
            now=self._clock(),
            last_push_at=self._last_push_at,
            window=self._config.staleness_window,
        )
        if not stale:
            return FreshnessDecision(connected=True, stale=False)

        reconnect = None
        if not connected:
            reconnect = await self._streaming.reconnect_if_needed()
        _logger.info(
            "Stream for station %s is stale (connected=%s, reconnect=%s); polling snapshot",
            self._station_id,
            connected,
            reconnect,
        )

        try:
            metrics = await self._snapshot.fetch_latest(self._station_id)
        except TempestError as exc:
            _logger.error("Fallback poll for station %s failed: %s", self._station_id, exc)
            self._dispatcher.publish(ErrorEvent(station_id=self._station_id, kind=ErrorKind.POLL, message=str(exc)))
            return FreshnessDecision(connected=connected, stale=True, reconnect=reconnect, error=str(exc))

        self._dispatcher.publish(
            ObservationEvent(station_id=self._station_id, source=ObservationSource.POLL, metrics=metrics)
        )
        return FreshnessDecision(connected=connected, stale=True, reconnect=reconnect, fetched=True)
