"""Deterministic retry, freshness and merge policies.

Nothing in here performs I/O or reads clocks; callers pass in the counters
and timestamps so every decision is reproducible in tests.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field

from pytempest.state.events import ObservationSource


def backoff_delay(
    failures: int,
    *,
    base: float,
    growth: float,
    max_delay: float,
    rate_limited: bool = False,
    rate_limit_floor: float = 0.0,
) -> float:
    """Pre-jitter reconnect delay after *failures* consecutive failures.

    ``min(base * growth ** failures, max_delay)``, floored to
    *rate_limit_floor* when the last failure was a rate-limit response.
    """
    exponent = max(0, failures)
    try:
        delay = base * (growth**exponent)
    except OverflowError:
        delay = max_delay
    delay = min(delay, max_delay)
    if rate_limited:
        delay = max(delay, rate_limit_floor)
    return delay


@dataclass
class RetryPolicy:
    """Reconnect bookkeeping owned by one streaming client.

    ``record_failure`` returns the delay (with jitter) before the next
    attempt, or ``None`` once the retry ceiling has been reached.
    """

    base: float = 30.0
    growth: float = 2.0
    max_delay: float = 300.0
    rate_limit_floor: float = 180.0
    jitter: float = 0.3
    max_retries: int = 10
    rng: random.Random = field(default_factory=random.Random, repr=False)

    consecutive_failures: int = 0
    current_delay: float = 0.0
    rate_limited: bool = False
    exhausted: bool = False

    def reset(self) -> None:
        self.consecutive_failures = 0
        self.current_delay = 0.0
        self.rate_limited = False
        self.exhausted = False

    def record_failure(self, *, rate_limited: bool = False) -> float | None:
        self.consecutive_failures += 1
        self.rate_limited = rate_limited
        if self.consecutive_failures >= self.max_retries:
            self.exhausted = True
            return None

        self.current_delay = backoff_delay(
            self.consecutive_failures,
            base=self.base,
            growth=self.growth,
            max_delay=self.max_delay,
            rate_limited=rate_limited,
            rate_limit_floor=self.rate_limit_floor,
        )
        return self.current_delay + self.rng.uniform(0.0, self.jitter * self.current_delay)

    @property
    def attempts_left(self) -> int:
        return max(0, self.max_retries - self.consecutive_failures)


def is_push_stale(*, now: float, last_push_at: float | None, window: float) -> bool:
    """True when no push observation arrived within *window* seconds."""
    if last_push_at is None:
        return True
    return (now - last_push_at) > window


def source_priority(source: ObservationSource) -> int:
    """Higher wins for deterministic tie-breaking."""
    priorities: dict[ObservationSource, int] = {
        ObservationSource.PUSH: 50,
        ObservationSource.POLL: 10,
    }
    return priorities.get(source, 0)


def should_accept_observation(
    *,
    cached_payload_ts: int | None,
    incoming_payload_ts: int | None,
    cached_source: ObservationSource | None,
    incoming_source: ObservationSource,
) -> bool:
    """Decide whether an incoming observation replaces the cached one.

    Policy:
    - Nothing cached: accept.
    - Push records always win; the channel delivers the most recent
      observation and ordering beyond that is not guaranteed.
    - A poll result replaces a push value only if it is strictly newer.
    - With timestamps missing, fall back to source priority.
    """
    if cached_source is None:
        return True
    if incoming_source == ObservationSource.PUSH:
        return True
    if incoming_payload_ts and cached_payload_ts:
        if cached_source == ObservationSource.PUSH:
            return incoming_payload_ts > cached_payload_ts
        return incoming_payload_ts >= cached_payload_ts
    return source_priority(incoming_source) >= source_priority(cached_source)
