from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import aiohttp
import pytest

from pytempest._api.observations import SnapshotClient
from pytempest._api.stations import resolve_device_binding
from pytempest._transport import RestTransport
from pytempest.config import TempestConfig
from pytempest.exceptions import TempestApiError, TempestRateLimitError, TempestTransportError


@dataclass
class _FakeResponse:
    status: int
    body: str

    async def text(self) -> str:
        return self.body

    async def __aenter__(self) -> _FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


@dataclass
class _FakeSession:
    response: _FakeResponse | None = None
    error: BaseException | None = None
    calls: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    def get(self, url: str, **kwargs: Any) -> _FakeResponse:
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        assert self.response is not None
        return self.response


def _transport(session: _FakeSession) -> RestTransport:
    config = TempestConfig(token="secret", station_id="1234", request_timeout=5)
    return RestTransport(config, session)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_get_json_sends_token_and_returns_object() -> None:
    session = _FakeSession(_FakeResponse(200, json.dumps({"ok": True})))

    body = await _transport(session).get_json("/stations/1234")

    assert body == {"ok": True}
    url, kwargs = session.calls[0]
    assert url == "https://swd.weatherflow.com/swd/rest/stations/1234"
    assert kwargs["params"]["token"] == "secret"
    assert kwargs["timeout"].total == 5


@pytest.mark.asyncio
async def test_http_429_is_rate_limit() -> None:
    session = _FakeSession(_FakeResponse(429, "slow down"))

    with pytest.raises(TempestRateLimitError) as excinfo:
        await _transport(session).get_json("/stations/1234")
    assert excinfo.value.status_code == 429


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "body"),
    [(500, "boom"), (200, "not json"), (200, "[1, 2]")],
)
async def test_bad_responses_are_transport_errors(status: int, body: str) -> None:
    session = _FakeSession(_FakeResponse(status, body))

    with pytest.raises(TempestTransportError):
        await _transport(session).get_json("/observations/station/1234")


@pytest.mark.asyncio
async def test_network_failure_is_transport_error() -> None:
    session = _FakeSession(error=aiohttp.ClientConnectionError("refused"))

    with pytest.raises(TempestTransportError, match="refused"):
        await _transport(session).get_json("/observations/station/1234")


@pytest.mark.asyncio
async def test_snapshot_status_envelope_failure_raises_api_error() -> None:
    body = {"status": {"status_code": 404, "status_message": "NOT FOUND"}}
    session = _FakeSession(_FakeResponse(200, json.dumps(body)))

    with pytest.raises(TempestApiError, match="NOT FOUND") as excinfo:
        await SnapshotClient(_transport(session)).fetch_latest("1234")
    assert excinfo.value.code == "404"


@pytest.mark.asyncio
async def test_snapshot_without_observation_raises_api_error() -> None:
    body = {"status": {"status_code": 0, "status_message": "SUCCESS"}, "obs": []}
    session = _FakeSession(_FakeResponse(200, json.dumps(body)))

    with pytest.raises(TempestApiError, match="no observation"):
        await SnapshotClient(_transport(session)).fetch_raw("1234")


@pytest.mark.asyncio
async def test_resolver_returns_none_on_transport_failure() -> None:
    session = _FakeSession(_FakeResponse(503, "unavailable"))

    assert await resolve_device_binding(_transport(session), "1234") is None
