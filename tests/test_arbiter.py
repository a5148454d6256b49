from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import pytest

from pytempest._stream import ReconnectOutcome
from pytempest.arbiter import FreshnessArbiter
from pytempest.config import TempestConfig
from pytempest.exceptions import TempestTransportError
from pytempest.models.metrics import DerivedMetrics
from pytempest.state.dispatcher import EventDispatcher
from pytempest.state.events import ErrorEvent, ErrorKind, ObservationEvent, ObservationSource


@dataclass
class FakeStreaming:
    connected: bool = True
    outcome: ReconnectOutcome = ReconnectOutcome.CONNECTED
    reconnect_calls: int = 0

    def is_connected(self) -> bool:
        return self.connected

    async def reconnect_if_needed(self) -> ReconnectOutcome:
        self.reconnect_calls += 1
        return self.outcome


@dataclass
class FakeSnapshotClient:
    error: Exception | None = None
    calls: list[str] = field(default_factory=list)

    async def fetch_latest(self, station_id: str) -> DerivedMetrics:
        self.calls.append(station_id)
        if self.error is not None:
            raise self.error
        return DerivedMetrics(temperature=12.5, timestamp=1771000000)


@dataclass
class FakeClock:
    now: float = 10_000.0

    def __call__(self) -> float:
        return self.now


def _arbiter(
    streaming: FakeStreaming,
    snapshot: FakeSnapshotClient,
    **config_overrides: Any,
) -> tuple[FreshnessArbiter, EventDispatcher, list[Any], FakeClock]:
    dispatcher = EventDispatcher()
    events: list[Any] = []
    dispatcher.subscribe(events.append)
    clock = FakeClock()
    config = TempestConfig(token="secret", station_id="1234", **config_overrides)
    arbiter = FreshnessArbiter(streaming, snapshot, dispatcher, config, clock=clock)  # type: ignore[arg-type]
    return arbiter, dispatcher, events, clock


def _push(dispatcher: EventDispatcher) -> None:
    dispatcher.publish(ObservationEvent(station_id="1234", source=ObservationSource.PUSH, metrics=DerivedMetrics()))


@pytest.mark.asyncio
async def test_fresh_push_on_connected_stream_does_nothing() -> None:
    streaming = FakeStreaming()
    snapshot = FakeSnapshotClient()
    arbiter, dispatcher, _, clock = _arbiter(streaming, snapshot)
    _push(dispatcher)
    clock.now += 120

    decision = await arbiter.check()

    assert decision.stale is False
    assert decision.fetched is False
    assert decision.reconnect is None
    assert streaming.reconnect_calls == 0
    assert snapshot.calls == []


@pytest.mark.asyncio
async def test_stale_push_polls_without_touching_healthy_stream() -> None:
    streaming = FakeStreaming()
    snapshot = FakeSnapshotClient()
    arbiter, dispatcher, events, clock = _arbiter(streaming, snapshot)
    _push(dispatcher)
    clock.now += 301

    decision = await arbiter.check()

    assert decision.stale is True
    assert decision.fetched is True
    assert streaming.reconnect_calls == 0
    assert snapshot.calls == ["1234"]
    polled = [e for e in events if isinstance(e, ObservationEvent) and e.source == ObservationSource.POLL]
    assert len(polled) == 1
    assert polled[0].metrics.temperature == 12.5


@pytest.mark.asyncio
async def test_no_push_yet_is_stale() -> None:
    streaming = FakeStreaming()
    snapshot = FakeSnapshotClient()
    arbiter, _, _, _ = _arbiter(streaming, snapshot)

    decision = await arbiter.check()

    assert decision.stale is True
    assert decision.fetched is True


@pytest.mark.asyncio
async def test_disconnected_stream_is_nudged_and_polled() -> None:
    streaming = FakeStreaming(connected=False, outcome=ReconnectOutcome.FAILED)
    snapshot = FakeSnapshotClient()
    arbiter, dispatcher, _, _ = _arbiter(streaming, snapshot)
    _push(dispatcher)

    decision = await arbiter.check()

    assert decision.connected is False
    assert decision.reconnect is ReconnectOutcome.FAILED
    assert decision.fetched is True
    assert streaming.reconnect_calls == 1


@pytest.mark.asyncio
async def test_poll_failure_is_reported_not_raised() -> None:
    streaming = FakeStreaming(connected=False, outcome=ReconnectOutcome.SUSPENDED)
    snapshot = FakeSnapshotClient(error=TempestTransportError("HTTP 503", status_code=503))
    arbiter, _, events, _ = _arbiter(streaming, snapshot)

    decision = await arbiter.check()

    assert decision.fetched is False
    assert decision.error == "HTTP 503"
    errors = [e for e in events if isinstance(e, ErrorEvent)]
    assert len(errors) == 1
    assert errors[0].kind == ErrorKind.POLL
    assert errors[0].fatal is False


@pytest.mark.asyncio
async def test_only_push_observations_refresh_the_window() -> None:
    arbiter, dispatcher, _, clock = _arbiter(FakeStreaming(), FakeSnapshotClient())

    dispatcher.publish(ObservationEvent(station_id="1234", source=ObservationSource.POLL, metrics=DerivedMetrics()))
    assert arbiter.last_push_at is None

    _push(dispatcher)
    assert arbiter.last_push_at == clock.now


@pytest.mark.asyncio
async def test_periodic_loop_runs_and_stops() -> None:
    snapshot = FakeSnapshotClient(error=TempestTransportError("down"))
    arbiter, _, _, _ = _arbiter(
        FakeStreaming(connected=False, outcome=ReconnectOutcome.FAILED),
        snapshot,
        initial_check_delay=0.001,
        fallback_interval=0.005,
    )

    arbiter.start()
    arbiter.start()
    await asyncio.sleep(0.05)
    assert arbiter.is_running is True
    assert len(snapshot.calls) >= 2

    await arbiter.stop()
    assert arbiter.is_running is False
    calls = len(snapshot.calls)
    await asyncio.sleep(0.02)
    assert len(snapshot.calls) == calls

    arbiter.close()
