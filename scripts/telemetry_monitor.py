#!/usr/bin/env python3
"""Live telemetry monitor.

Connects to a local ETS2/ATS telemetry server, logs connection and job
transitions, and prints a one-line summary of the truck state.  On exit
(Ctrl+C or ``--duration``) the delivery record for the active job, if any,
is printed as JSON so it can be pasted into the job log.

Configuration comes from ``VTC_TELEMETRY_*`` environment variables; the
command-line options below override them.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyvtc import (  # noqa: E402
    ConnectionState,
    JobLifecycleDetector,
    JobTransition,
    TelemetryClient,
    TelemetryConfig,
    TelemetrySnapshot,
    VtcConfigError,
    poll_url_for_game,
)

_logger = logging.getLogger("telemetry_monitor")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--mode", choices=["streaming", "polling", "auto"], help="Transport mode")
    parser.add_argument("--stream-url", help="Websocket endpoint")
    parser.add_argument("--poll-url", help="HTTP endpoint")
    parser.add_argument("--game", choices=["ets2", "ats"], help="Derive the HTTP endpoint for this game")
    parser.add_argument("--poll-interval-ms", type=int, help="Polling interval in milliseconds")
    parser.add_argument("--reconnect-delay-ms", type=int, help="Reconnect delay in milliseconds")
    parser.add_argument("--no-reconnect", action="store_true", help="Disable auto-reconnect")
    parser.add_argument("--print-every", type=float, default=1.0, help="Seconds between summary lines")
    parser.add_argument("--duration", type=float, default=0.0, help="Stop after N seconds (0 = run until Ctrl+C)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def _build_config(args: argparse.Namespace) -> TelemetryConfig:
    overrides: dict[str, Any] = {}
    if args.mode:
        overrides["mode"] = args.mode
    if args.stream_url:
        overrides["stream_url"] = args.stream_url
    if args.game:
        overrides["poll_url"] = poll_url_for_game(args.game)
    if args.poll_url:
        overrides["poll_url"] = args.poll_url
    if args.poll_interval_ms is not None:
        overrides["poll_interval_ms"] = args.poll_interval_ms
    if args.reconnect_delay_ms is not None:
        overrides["reconnect_delay_ms"] = args.reconnect_delay_ms
    if args.no_reconnect:
        overrides["auto_reconnect"] = False
    return TelemetryConfig.from_env(**overrides)


def _summary(snapshot: TelemetrySnapshot) -> str:
    vehicle = snapshot.vehicle
    parts = [
        f"game={snapshot.session.game}",
        f"running={snapshot.is_session_running}",
        f"speed={vehicle.speed:.0f}km/h",
        f"gear={vehicle.gear}",
        f"rpm={vehicle.engine_rpm:.0f}",
        f"fuel={vehicle.fuel:.1f}/{vehicle.fuel_capacity:.0f}",
        f"odo={vehicle.odometer:.1f}",
    ]
    job = snapshot.job
    if job is not None:
        parts.append(f"job={job.cargo} {job.source_city}->{job.destination_city}")
    return " ".join(parts)


async def _run(args: argparse.Namespace, config: TelemetryConfig) -> int:
    last_print = 0.0

    def on_state(state: ConnectionState) -> None:
        _logger.info(
            "status=%s transport=%s error=%s",
            state.status,
            state.transport or "-",
            state.last_error or "-",
        )

    def on_snapshot(snapshot: TelemetrySnapshot) -> None:
        nonlocal last_print
        now = time.monotonic()
        if now - last_print >= args.print_every:
            last_print = now
            print(_summary(snapshot), flush=True)

    def on_transition(transition: JobTransition, snapshot: TelemetrySnapshot) -> None:
        _logger.info("job %s", transition)

    detector = JobLifecycleDetector(on_transition=on_transition)

    async with TelemetryClient(config, on_snapshot=on_snapshot, on_state_change=on_state) as client:
        detector.attach(client)
        client.connect()
        try:
            if args.duration > 0:
                await asyncio.sleep(args.duration)
            else:
                await asyncio.Event().wait()
        finally:
            record = detector.prepare()
            if record is not None:
                print(json.dumps(record.to_row(), indent=2))
            elif detector.latest_snapshot.is_job_active:
                _logger.warning("Job active but no baseline captured yet")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = _build_config(args)
    except VtcConfigError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2
    try:
        return asyncio.run(_run(args, config))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
