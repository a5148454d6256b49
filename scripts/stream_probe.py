#!/usr/bin/env python3
"""Passive WebSocket probe for Tempest push observations.

This script uses pytempest to:
1) resolve the station's Tempest device via /stations/<id>,
2) open the WebSocket and send listen_start,
3) print every observation and lifecycle event as it arrives.

Use this to check the push cadence and how the fallback poll behaves
when the stream goes quiet. Reads TEMPEST_TOKEN and TEMPEST_STATION_ID.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import signal
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pytempest import (  # noqa: E402
    ConnectedEvent,
    DisconnectedEvent,
    ErrorEvent,
    ObservationEvent,
    TempestClient,
    TempestConfig,
    TempestError,
)

_LOG = logging.getLogger("stream_probe")


@dataclass
class ProbeStats:
    started_at: float
    push_observations: int = 0
    poll_observations: int = 0
    disconnects: int = 0
    errors: int = 0
    first_push_at: float | None = None
    last_push_at: float | None = None

    def on_push(self, now: float) -> float | None:
        previous = self.last_push_at
        self.push_observations += 1
        if self.first_push_at is None:
            self.first_push_at = now
        self.last_push_at = now
        return None if previous is None else now - previous


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Passive WebSocket probe for a Tempest station.",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument(
        "--station",
        default=None,
        help="Station id (defaults to TEMPEST_STATION_ID).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Pretty-print the full metrics of each observation.",
    )
    parser.add_argument(
        "--no-fetch-on-connect",
        action="store_true",
        help="Skip the REST snapshot normally fetched after each connect.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args()


def _print_summary(stats: ProbeStats) -> None:
    runtime = time.time() - stats.started_at
    print("[probe] Summary")
    print(f"[probe]   runtime_s         : {runtime:.1f}")
    print(f"[probe]   push_observations : {stats.push_observations}")
    print(f"[probe]   poll_observations : {stats.poll_observations}")
    print(f"[probe]   disconnects       : {stats.disconnects}")
    print(f"[probe]   errors            : {stats.errors}")
    if stats.first_push_at is not None:
        first_push = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(stats.first_push_at))
        print(f"[probe]   first_push        : {first_push}")
    if stats.last_push_at is not None:
        last_push = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(stats.last_push_at))
        print(f"[probe]   last_push         : {last_push}")


async def _run(config: TempestConfig, args: argparse.Namespace) -> int:
    stats = ProbeStats(started_at=time.time())
    stop = asyncio.Event()

    def on_event(event: Any) -> None:
        now = time.time()
        ts_text = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(now))
        if isinstance(event, ObservationEvent):
            if event.source == "push":
                delta = stats.on_push(now)
                gap_text = "first" if delta is None else f"{delta:.1f}s"
            else:
                stats.poll_observations += 1
                gap_text = "-"
            print(f"[probe] {ts_text} {event.source:<4} gap={gap_text:<7} {event.metrics.summary()}")
            if args.json:
                print(json.dumps(event.metrics.model_dump(), indent=2, sort_keys=True))
        elif isinstance(event, ConnectedEvent):
            print(f"[probe] {ts_text} connected device={event.device_id}")
        elif isinstance(event, DisconnectedEvent):
            stats.disconnects += 1
            print(f"[probe] {ts_text} disconnected reason={event.reason!r} will_retry={event.will_retry}")
        elif isinstance(event, ErrorEvent):
            stats.errors += 1
            print(f"[probe] {ts_text} error kind={event.kind} fatal={event.fatal}: {event.message}", file=sys.stderr)
            if event.fatal:
                stop.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    async with TempestClient(config) as client:
        client.subscribe(on_event)
        binding = await client.resolve_device()
        if binding is None:
            print(f"[probe] No Tempest device found for station {config.station_id}", file=sys.stderr)
            return 2
        print(f"[probe] Station {config.station_id} -> device {binding.device_id} ({binding.serial_number})")

        await client.start()
        try:
            if args.duration > 0:
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(stop.wait(), timeout=args.duration)
            else:
                await stop.wait()
        finally:
            await client.stop()

    _print_summary(stats)
    return 0


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    overrides: dict[str, Any] = {}
    if args.station:
        overrides["station_id"] = args.station
    if args.no_fetch_on_connect:
        overrides["fetch_on_connect"] = False

    try:
        config = TempestConfig.from_env(**overrides)
    except TempestError as exc:
        print(f"[probe] {exc}", file=sys.stderr)
        return 2

    _LOG.debug("Probing station %s", config.station_id)
    try:
        return asyncio.run(_run(config, args))
    except TempestError as exc:  # pragma: no cover - network/system interaction
        print(f"[probe] Probe failed: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(_main())
