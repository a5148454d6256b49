"""Latest-observation store.

This is the only component allowed to decide which observation is the
current one. Both push and poll observations flow in through
:meth:`MetricsStore.apply`; a poll result never replaces a newer
push-delivered value.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict

from pytempest.models.metrics import DerivedMetrics
from pytempest.state.events import ObservationEvent, ObservationSource
from pytempest.state.policy import should_accept_observation


def _utcnow() -> datetime:
    return datetime.now(UTC)


class MetricsSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    metrics: DerivedMetrics
    source: ObservationSource
    payload_timestamp: int | None = None
    observed_at: datetime


class MetricsStore:
    """In-memory holder of the current metrics for one station."""

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._current: MetricsSnapshot | None = None
        self._rejected = 0

    def apply(self, event: ObservationEvent) -> bool:
        """Apply an observation event; returns whether it became current."""
        current = self._current
        incoming_ts = event.metrics.timestamp or None

        if current is not None and not should_accept_observation(
            cached_payload_ts=current.payload_timestamp,
            incoming_payload_ts=incoming_ts,
            cached_source=current.source,
            incoming_source=event.source,
        ):
            self._rejected += 1
            return False

        self._current = MetricsSnapshot(
            metrics=event.metrics,
            source=event.source,
            payload_timestamp=incoming_ts,
            observed_at=self._clock(),
        )
        return True

    @property
    def current(self) -> MetricsSnapshot | None:
        return self._current

    @property
    def metrics(self) -> DerivedMetrics | None:
        return self._current.metrics if self._current is not None else None

    @property
    def rejected_count(self) -> int:
        return self._rejected
