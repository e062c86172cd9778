#!/usr/bin/env python3
"""Probe every configured health endpoint and print the results.

Usage
-----
Optionally point the script at a backend and run::

    export RECAUDO_BASE_URL="http://localhost:8080"
    python scripts/check_connectivity.py

Options::

    --service NAME       Only probe this service (repeatable)
    --json               Output as machine-readable JSON
    -v, --verbose        Enable debug logging
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import aiohttp

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyrecaudo import ConnectivityMonitor, RecaudoConfig  # noqa: E402


async def _run(args: argparse.Namespace) -> int:
    config = RecaudoConfig.from_env()
    async with aiohttp.ClientSession() as http:
        monitor = ConnectivityMonitor(config, http)
        if args.service:
            for name in args.service:
                await monitor.check_service_availability(name, force_check=True)
        else:
            await monitor.check_all_services()

        statuses = monitor.get_all_service_status()
        stats = monitor.statistics()

    if args.json:
        payload = {
            "services": {name: status.model_dump(mode="json") for name, status in statuses.items()},
            "statistics": stats.model_dump(mode="json"),
        }
        print(json.dumps(payload, indent=2))
    else:
        for name, status in sorted(statuses.items()):
            mark = "up  " if status.available else "DOWN"
            detail = f" ({status.error})" if status.error else ""
            print(f"  [{mark}] {name:<16} {status.response_time_ms or 0:>8.1f} ms{detail}")
        print(f"\n  {stats.available_services}/{stats.total_services} services available")

    return 0 if any(s.available for s in statuses.values()) else 1


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--service", action="append", help="Only probe this service")
    parser.add_argument("--json", action="store_true", help="Output JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
