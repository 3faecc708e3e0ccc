#!/usr/bin/env python3
"""Watch the live fleet from a terminal.

Mounts the live tracking view on an in-memory map, polls the dispatch
backend and prints a table of the filtered vehicles after every cycle.

Usage
-----
Point the client at a backend and run::

    export FLEETWATCH_BASE_URL="http://localhost:5000/api"
    export FLEETWATCH_API_TOKEN="..."
    python scripts/watch_fleet.py

Options::

    --active-rides       Track vehicles on active rides instead of the whole fleet
    --search TEXT        Only show vehicles whose number or driver matches TEXT
    --status STATUS      available | busy | maintenance | all
    --connectivity C     online | offline | all
    --motion M           moving | stopped | all
    --interval MS        Poll interval in milliseconds
    --cycles N           Exit after N cycles (default: run until interrupted)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from fleetwatch import (  # noqa: E402
    EntityKind,
    FilterState,
    FleetwatchConfig,
    FleetwatchError,
    HeadlessMap,
    LiveTrackingView,
    TrackedEntity,
    TrackingClient,
)


def _row(entity: TrackedEntity) -> str:
    position = entity.position
    if position is None:
        where = "no tracking"
    elif entity.coordinates is None:
        where = "no fix"
    else:
        lat, lng = entity.coordinates
        where = f"{lat:9.5f} {lng:9.5f} {position.speed_kph:5.1f} km/h"
    state = "online" if entity.is_online else "offline"
    return f"  {entity.display_label:<14} {entity.status.value:<12} {state:<8} {where:<36} {entity.operator_name}"


def _print_view(view: LiveTrackingView) -> None:
    stats = view.stats
    stamp = view.last_update_at.isoformat(timespec="seconds") if view.last_update_at else "-"
    print(f"\n── {stamp} ── {len(view.visible)} shown", end="")
    if stats is not None:
        print(
            f" │ online {stats.online}  moving {stats.moving}  stopped {stats.stopped}"
            f"  offline {stats.offline}  total {stats.total}",
            end="",
        )
    print()
    for entity in view.visible:
        print(_row(entity))
    result = view.last_result
    if result is not None and result.faults:
        for fault in result.faults:
            print(f"  ! {fault}", file=sys.stderr)


async def main() -> None:
    parser = argparse.ArgumentParser(description="Watch the live fleet through the tracking view")
    parser.add_argument("--active-rides", action="store_true", help="Track vehicles on active rides")
    parser.add_argument("--search", default="", help="Filter by vehicle number or driver name")
    parser.add_argument("--status", default="all", help="Filter by vehicle status")
    parser.add_argument("--connectivity", default="all", help="Filter by online/offline")
    parser.add_argument("--motion", default="all", help="Filter by moving/stopped")
    parser.add_argument("--interval", type=int, help="Poll interval in milliseconds")
    parser.add_argument("--cycles", type=int, default=0, help="Exit after N cycles")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    overrides = {"poll_interval_ms": args.interval} if args.interval else {}
    try:
        config = FleetwatchConfig.from_env(**overrides)
        filters = FilterState(
            search_text=args.search,
            status=args.status,
            connectivity=args.connectivity,
            motion=args.motion,
        )
    except (FleetwatchError, ValueError) as exc:
        parser.error(str(exc))

    kind = EntityKind.ACTIVE_TASKS if args.active_rides else EntityKind.VEHICLES
    interval = config.poll_interval_ms / 1000.0

    async with TrackingClient(config) as client:
        view = LiveTrackingView(
            client,
            HeadlessMap,
            config=config,
            entity_kind=kind,
            filters=filters,
            on_notify=lambda message: print(f"! {message}", file=sys.stderr),
        )
        await view.mount()
        try:
            cycle = 0
            while True:
                _print_view(view)
                cycle += 1
                if args.cycles and cycle >= args.cycles:
                    break
                await asyncio.sleep(interval)
        finally:
            view.unmount()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
