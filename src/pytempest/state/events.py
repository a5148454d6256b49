"""Typed lifecycle and observation events.

The streaming client, the freshness arbiter and the public client publish
these through :class:`pytempest.state.dispatcher.EventDispatcher`.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from pytempest.models.metrics import DerivedMetrics


class ObservationSource(StrEnum):
    PUSH = "push"
    POLL = "poll"


class ErrorKind(StrEnum):
    TRANSPORT = "transport"
    RATE_LIMIT = "rate_limit"
    RESOLUTION = "resolution"
    PARSE = "parse"
    RETRY_EXHAUSTED = "retry_exhausted"
    POLL = "poll"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    station_id: str
    observed_at: datetime = Field(default_factory=_utcnow)


class ConnectedEvent(_Event):
    type: Literal["connected"] = "connected"
    device_id: int


class DisconnectedEvent(_Event):
    type: Literal["disconnected"] = "disconnected"
    reason: str = ""
    will_retry: bool = False


class ObservationEvent(_Event):
    type: Literal["observation"] = "observation"
    source: ObservationSource
    metrics: DerivedMetrics
    device_id: int | None = None


class ErrorEvent(_Event):
    type: Literal["error"] = "error"
    kind: ErrorKind
    message: str
    fatal: bool = False


TempestEvent = ConnectedEvent | DisconnectedEvent | ObservationEvent | ErrorEvent
