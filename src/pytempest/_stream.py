"""WebSocket streaming client for push observations.

One :class:`StreamingClient` owns one WebSocket, one device binding and one
retry policy. All work happens on the event loop that called
:meth:`StreamingClient.connect`; reconnects run as an instance-bound
``asyncio.Task`` that is cancelled by the next explicit connect or by
:meth:`StreamingClient.disconnect`.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from enum import StrEnum
from typing import Any, Protocol

import aiohttp

from pytempest._api.stations import DeviceResolver
from pytempest._constants import (
    IGNORED_MESSAGE_TYPES,
    MSG_ACK,
    MSG_LISTEN_START,
    MSG_LISTEN_STOP,
    OBSERVATION_MESSAGE_TYPES,
)
from pytempest._redact import redact_for_log, redact_url
from pytempest.config import TempestConfig
from pytempest.exceptions import TempestRateLimitError, TempestTransportError
from pytempest.ingestion.normalize import safe_int
from pytempest.ingestion.observation import normalize
from pytempest.models.observation import raw_observation_from_payload
from pytempest.models.station import DeviceBinding
from pytempest.state.dispatcher import EventDispatcher
from pytempest.state.events import (
    ConnectedEvent,
    DisconnectedEvent,
    ErrorEvent,
    ErrorKind,
    ObservationEvent,
    ObservationSource,
)
from pytempest.state.policy import RetryPolicy

_logger = logging.getLogger(__name__)

# Errors a half-open socket may raise while we send or close.
_SOCKET_ERRORS: tuple[type[BaseException], ...] = (aiohttp.ClientError, ConnectionError, RuntimeError)


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    RESOLVING = "resolving"
    CONNECTING = "connecting"
    LISTENING = "listening"
    CLOSING = "closing"


class ReconnectOutcome(StrEnum):
    """Result of :meth:`StreamingClient.reconnect_if_needed`."""

    CONNECTED = "connected"
    IN_PROGRESS = "in_progress"
    SUSPENDED = "suspended"
    """Retries are exhausted or the client was disconnected on purpose."""
    FAILED = "failed"


class WebSocketLike(Protocol):
    """The subset of :class:`aiohttp.ClientWebSocketResponse` the client uses."""

    @property
    def closed(self) -> bool: ...

    async def send_str(self, data: str) -> None: ...

    async def close(self) -> Any: ...

    def exception(self) -> BaseException | None: ...

    def __aiter__(self) -> AsyncIterator[aiohttp.WSMessage]: ...


WebSocketConnector = Callable[[str], Awaitable[WebSocketLike]]


def build_control_frame(message_type: str, device_id: int) -> str:
    """Serialize a ``listen_start`` / ``listen_stop`` request."""
    return json.dumps(
        {
            "type": message_type,
            "device_id": device_id,
            "id": str(int(time.time() * 1000)),
        }
    )


def _aiohttp_connector(session: aiohttp.ClientSession, config: TempestConfig) -> WebSocketConnector:
    async def _connect(url: str) -> WebSocketLike:
        try:
            return await session.ws_connect(url, heartbeat=config.heartbeat)
        except aiohttp.WSServerHandshakeError as exc:
            if exc.status == 429:
                raise TempestRateLimitError(
                    "WebSocket handshake rate limited (HTTP 429)",
                    status_code=exc.status,
                    endpoint="ws",
                ) from exc
            raise TempestTransportError(
                f"WebSocket handshake failed: HTTP {exc.status}",
                status_code=exc.status,
                endpoint="ws",
            ) from exc
        except (aiohttp.ClientError, OSError) as exc:
            raise TempestTransportError(f"WebSocket connect failed: {exc}", endpoint="ws") from exc

    return _connect


class StreamingClient:
    """Connection state machine for the WeatherFlow WebSocket feed.

    States: ``disconnected -> resolving -> connecting -> listening``, and
    ``closing`` on the way back down. Each connection attempt carries a
    generation number; completions from a superseded attempt are dropped.
    """

    def __init__(
        self,
        config: TempestConfig,
        resolver: DeviceResolver,
        dispatcher: EventDispatcher,
        *,
        http_session: aiohttp.ClientSession | None = None,
        ws_connect: WebSocketConnector | None = None,
        retry: RetryPolicy | None = None,
    ) -> None:
        if ws_connect is None:
            if http_session is None:
                raise ValueError("Either http_session or ws_connect is required")
            ws_connect = _aiohttp_connector(http_session, config)
        self._config = config
        self._station_id = config.station_id
        self._resolver = resolver
        self._dispatcher = dispatcher
        self._ws_connect = ws_connect
        self._retry = retry or RetryPolicy(
            base=config.initial_reconnect_delay,
            growth=config.reconnect_growth,
            max_delay=config.max_reconnect_delay,
            rate_limit_floor=config.rate_limit_min_delay,
            jitter=config.reconnect_jitter,
            max_retries=config.max_retries,
        )

        self._state = ConnectionState.DISCONNECTED
        self._binding: DeviceBinding | None = None
        self._ws: WebSocketLike | None = None
        self._generation = 0
        self._reader_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._user_closed = False

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def binding(self) -> DeviceBinding | None:
        return self._binding

    @property
    def retry(self) -> RetryPolicy:
        return self._retry

    @property
    def reconnect_pending(self) -> bool:
        task = self._reconnect_task
        return task is not None and not task.done()

    def is_connected(self) -> bool:
        ws = self._ws
        return self._state is ConnectionState.LISTENING and ws is not None and not ws.closed

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def connect(self) -> bool:
        """Start (or restart) streaming.

        A no-op while an attempt is in flight or the stream is listening.
        Clears a previous explicit disconnect and an exhausted retry series.
        Returns whether the stream is listening afterwards.
        """
        if self._state is not ConnectionState.DISCONNECTED:
            return self.is_connected()
        self._user_closed = False
        if self._retry.exhausted:
            self._retry.reset()
        return await self._attempt()

    async def reconnect_if_needed(self) -> ReconnectOutcome:
        """Reconnect only when disconnected; never touches a healthy stream."""
        if self.is_connected():
            return ReconnectOutcome.CONNECTED
        if self._state is not ConnectionState.DISCONNECTED:
            return ReconnectOutcome.IN_PROGRESS
        if self._user_closed or self._retry.exhausted:
            return ReconnectOutcome.SUSPENDED
        if await self._attempt():
            return ReconnectOutcome.CONNECTED
        return ReconnectOutcome.FAILED

    async def disconnect(self) -> None:
        """Stop streaming for good; only a later :meth:`connect` re-arms it."""
        self._user_closed = True
        self._generation += 1
        self._cancel_reconnect()
        await self._cancel_reader()

        was_state = self._state
        ws, self._ws = self._ws, None
        if ws is not None:
            self._set_state(ConnectionState.CLOSING)
            await self._close_socket(ws, self._binding)
        self._binding = None
        self._set_state(ConnectionState.DISCONNECTED)
        if was_state is not ConnectionState.DISCONNECTED:
            self._dispatcher.publish(
                DisconnectedEvent(station_id=self._station_id, reason="disconnect requested", will_retry=False)
            )

    def reset(self) -> None:
        """Forget the cached device binding and the retry counters."""
        self._binding = None
        self._retry.reset()

    # ------------------------------------------------------------------
    # Connection attempts
    # ------------------------------------------------------------------

    async def _attempt(self) -> bool:
        self._cancel_reconnect()
        self._generation += 1
        generation = self._generation

        binding = self._binding
        if binding is None:
            self._set_state(ConnectionState.RESOLVING)
            try:
                binding = await self._resolver.resolve(self._station_id, raise_rate_limit=True)
            except TempestRateLimitError as exc:
                if generation == self._generation:
                    self._set_state(ConnectionState.DISCONNECTED)
                    self._on_failure(ErrorKind.RATE_LIMIT, f"Device lookup rate limited: {exc}")
                return False
            if generation != self._generation:
                return False
            if binding is None:
                self._set_state(ConnectionState.DISCONNECTED)
                self._on_failure(ErrorKind.RESOLUTION, f"No Tempest device found for station {self._station_id}")
                return False
            self._binding = binding

        self._set_state(ConnectionState.CONNECTING)
        url = f"{self._config.ws_url}?token={self._config.token}"
        _logger.debug("Opening WebSocket %s", redact_url(url))
        try:
            async with asyncio.timeout(self._config.request_timeout):
                ws = await self._ws_connect(url)
        except TempestRateLimitError as exc:
            if generation == self._generation:
                self._set_state(ConnectionState.DISCONNECTED)
                self._on_failure(ErrorKind.RATE_LIMIT, str(exc))
            return False
        except (TempestTransportError, TimeoutError) as exc:
            if generation == self._generation:
                self._set_state(ConnectionState.DISCONNECTED)
                self._on_failure(ErrorKind.TRANSPORT, str(exc) or "WebSocket connect timed out")
            return False

        if generation != self._generation:
            _logger.debug("Dropping WebSocket from superseded attempt %s", generation)
            with contextlib.suppress(*_SOCKET_ERRORS):
                await ws.close()
            return False

        self._ws = ws
        self._set_state(ConnectionState.LISTENING)
        self._retry.reset()
        try:
            await ws.send_str(build_control_frame(MSG_LISTEN_START, binding.device_id))
        except _SOCKET_ERRORS as exc:
            await self._on_closed(generation, f"listen_start failed: {exc}")
            return False

        _logger.info("Listening to device %s of station %s", binding.device_id, self._station_id)
        self._dispatcher.publish(ConnectedEvent(station_id=self._station_id, device_id=binding.device_id))
        self._reader_task = asyncio.create_task(self._read_loop(ws, generation, binding))
        return True

    async def _read_loop(self, ws: WebSocketLike, generation: int, binding: DeviceBinding) -> None:
        reason = "closed by server"
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._handle_frame(msg.data, binding)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    reason = f"transport error: {ws.exception()}"
                    break
        except _SOCKET_ERRORS as exc:
            reason = f"transport error: {exc}"

        if generation != self._generation:
            return
        self._reader_task = None
        await self._on_closed(generation, reason)

    async def _on_closed(self, generation: int, reason: str) -> None:
        if generation != self._generation:
            return
        _logger.warning("WebSocket for station %s closed: %s", self._station_id, reason)
        self._set_state(ConnectionState.CLOSING)
        ws, self._ws = self._ws, None
        if ws is not None:
            await self._close_socket(ws, self._binding)
        self._set_state(ConnectionState.DISCONNECTED)
        self._on_failure(ErrorKind.TRANSPORT, reason, closed=True)

    def _on_failure(self, kind: ErrorKind, message: str, *, closed: bool = False) -> None:
        """Count a failure, report it, and schedule the next attempt."""
        delay = self._retry.record_failure(rate_limited=kind is ErrorKind.RATE_LIMIT)
        will_retry = delay is not None

        if closed:
            self._dispatcher.publish(
                DisconnectedEvent(station_id=self._station_id, reason=message, will_retry=will_retry)
            )
        else:
            _logger.warning("Connection attempt for station %s failed (%s): %s", self._station_id, kind, message)
            self._dispatcher.publish(ErrorEvent(station_id=self._station_id, kind=kind, message=message))

        if delay is None:
            _logger.error(
                "Giving up on station %s after %d consecutive failures",
                self._station_id,
                self._retry.consecutive_failures,
            )
            self._dispatcher.publish(
                ErrorEvent(
                    station_id=self._station_id,
                    kind=ErrorKind.RETRY_EXHAUSTED,
                    message=f"Reconnect abandoned after {self._retry.consecutive_failures} attempts",
                    fatal=True,
                )
            )
            return

        _logger.info(
            "Reconnecting station %s in %.1fs (%d attempts left)",
            self._station_id,
            delay,
            self._retry.attempts_left,
        )
        self._reconnect_task = asyncio.create_task(self._reconnect_after(delay))

    async def _reconnect_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._reconnect_task = None
        if self._state is ConnectionState.DISCONNECTED and not self._user_closed:
            await self._attempt()

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------

    def _handle_frame(self, data: Any, binding: DeviceBinding) -> None:
        try:
            frame = json.loads(data)
        except (TypeError, ValueError):
            _logger.debug("Discarding unparseable frame: %s", redact_for_log(data), exc_info=True)
            return
        if not isinstance(frame, dict):
            _logger.debug("Discarding non-object frame: %s", redact_for_log(frame))
            return

        message_type = frame.get("type")
        if message_type in OBSERVATION_MESSAGE_TYPES:
            self._handle_observation(frame, binding)
        elif message_type == MSG_ACK:
            _logger.debug("Ack for request %s", frame.get("id"))
        elif message_type not in IGNORED_MESSAGE_TYPES:
            _logger.debug("Unhandled frame type %r", message_type)

    def _handle_observation(self, frame: dict[str, Any], binding: DeviceBinding) -> None:
        device_id = safe_int(frame.get("device_id"))
        if device_id != binding.device_id:
            return
        if not isinstance(frame.get("obs"), list):
            _logger.debug("Observation frame without obs list: %s", redact_for_log(frame))
            return

        metrics = normalize(raw_observation_from_payload(frame))
        _logger.debug("Push observation from device %s: %s", device_id, metrics.summary())
        self._dispatcher.publish(
            ObservationEvent(
                station_id=self._station_id,
                source=ObservationSource.PUSH,
                metrics=metrics,
                device_id=device_id,
            )
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        _logger.debug("Stream state %s -> %s", self._state, state)
        self._state = state

    def _cancel_reconnect(self) -> None:
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    async def _cancel_reader(self) -> None:
        task, self._reader_task = self._reader_task, None
        if task is None or task is asyncio.current_task() or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _close_socket(self, ws: WebSocketLike, binding: DeviceBinding | None) -> None:
        if binding is not None and not ws.closed:
            try:
                await ws.send_str(build_control_frame(MSG_LISTEN_STOP, binding.device_id))
            except _SOCKET_ERRORS:
                _logger.debug("listen_stop not delivered", exc_info=True)
        try:
            await ws.close()
        except _SOCKET_ERRORS:
            _logger.debug("WebSocket close failed", exc_info=True)
