#!/usr/bin/env python3
"""Load one owner's dashboard and optionally watch live updates.

Usage
-----
Set environment variables and run::

    export FLEETSYNC_BASE_URL="https://fleet.example.com"
    export FLEETSYNC_ACCESS_TOKEN="..."
    export FLEETSYNC_MQTT_HOST="broker.example.com"   # optional
    python scripts/dashboard_probe.py 001-ACME

Options::

    --all               Keep loading pages until the dataset is exhausted
    --listen SECONDS    Stay subscribed and print rows as events arrive
    --json              Output rows as JSON
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from fleetsync import DashboardController, FleetSyncClient, FleetSyncConfig  # noqa: E402


def _row_line(row: Any) -> str:
    ts = row.source_ts.isoformat() if row.source_ts else "-"
    return f"  {row.vin:<20} fuel={row.fuel_level_pct!s:<6} km={row.mileage_km!s:<10} sw={row.software_version or '-'} ts={ts}"


def _print_rows(controller: DashboardController, json_mode: bool) -> None:
    if json_mode:
        rows = [row.model_dump(mode="json") for row in controller.rows]
        print(json.dumps(rows, indent=2, ensure_ascii=False))
        return
    view = controller.view()
    print(
        f"owner={view.owner_id} status={view.status} rows={view.loaded_count}/{view.total_count or '?'}"
        f" from_cache={view.from_cache} cached_at={view.cached_at}"
    )
    for row in view.rows:
        print(_row_line(row))


async def main() -> None:
    parser = argparse.ArgumentParser(description="Fetch and watch a fleet telemetry dashboard.")
    parser.add_argument("owner_id", help="Owning account id")
    parser.add_argument("--all", action="store_true", dest="load_all", help="Load every page")
    parser.add_argument("--listen", type=float, default=0.0, help="Seconds to stay subscribed for live updates")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output rows as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    config = FleetSyncConfig.from_env()

    async with FleetSyncClient(config) as client:
        dashboard = await client.open_dashboard(args.owner_id)
        if dashboard.last_error is not None:
            print(f"Initial load failed: {dashboard.last_error}", file=sys.stderr)
            raise SystemExit(1)

        if args.load_all:
            while not dashboard.disable_load_more:
                await dashboard.load_more()
                if dashboard.last_error is not None:
                    print(f"Page load failed: {dashboard.last_error}", file=sys.stderr)
                    break

        _print_rows(dashboard, args.json_mode)

        if args.listen > 0:
            if not dashboard.subscription.is_active:
                print("Live updates unavailable", file=sys.stderr)
                return
            dashboard.add_listener(lambda c: _print_rows(c, args.json_mode))
            print(f"Listening for {args.listen:.0f}s ...", file=sys.stderr)
            await asyncio.sleep(args.listen)


if __name__ == "__main__":
    asyncio.run(main())
