from __future__ import annotations

import random

import pytest

from pytempest.state.policy import RetryPolicy, backoff_delay, is_push_stale


def _policy(**kwargs: object) -> RetryPolicy:
    return RetryPolicy(jitter=0.0, rng=random.Random(0), **kwargs)  # type: ignore[arg-type]


def test_backoff_is_monotonic_and_capped() -> None:
    delays = [backoff_delay(n, base=30, growth=2.0, max_delay=300) for n in range(0, 40)]

    assert delays == sorted(delays)
    assert max(delays) == 300
    assert delays[0] == 30


def test_backoff_survives_huge_failure_counts() -> None:
    assert backoff_delay(10_000, base=30, growth=2.0, max_delay=300) == 300


def test_consecutive_closes_double_until_cap() -> None:
    policy = _policy()

    delays = [policy.record_failure() for _ in range(5)]

    assert delays == [60, 120, 240, 300, 300]
    assert policy.consecutive_failures == 5


def test_rate_limit_floors_delay() -> None:
    policy = _policy()

    assert policy.record_failure(rate_limited=True) == 180
    assert policy.rate_limited is True
    assert policy.record_failure() == 120


def test_jitter_stays_within_ratio() -> None:
    policy = RetryPolicy(jitter=0.3, rng=random.Random(7))

    for _ in range(5):
        delay = policy.record_failure()
        assert delay is not None
        assert policy.current_delay <= delay <= policy.current_delay * 1.3


def test_exhausted_after_max_retries() -> None:
    policy = _policy(max_retries=10)

    results = [policy.record_failure() for _ in range(10)]

    assert all(r is not None for r in results[:9])
    assert results[9] is None
    assert policy.exhausted is True
    assert policy.attempts_left == 0

    policy.reset()
    assert policy.exhausted is False
    assert policy.consecutive_failures == 0
    assert policy.record_failure() == 60


@pytest.mark.parametrize(
    ("last_push_at", "now", "stale"),
    [(None, 1000.0, True), (880.0, 1000.0, False), (700.0, 1000.0, False), (699.0, 1000.0, True)],
)
def test_push_staleness_window(last_push_at: float | None, now: float, stale: bool) -> None:
    assert is_push_stale(now=now, last_push_at=last_push_at, window=300) is stale
