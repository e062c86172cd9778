#!/usr/bin/env python3
"""Load one backend collection through an EntityStore and print it.

Falls back to the on-disk snapshot when the backend is unreachable, which
makes it handy for checking what the console would show offline.

Usage
-----
::

    export RECAUDO_BASE_URL="http://localhost:8080"
    export RECAUDO_CACHE_DIR="~/.cache/pyrecaudo"
    python scripts/dump_collection.py /api/sector --key sectores

Options::

    --key NAME           Cache key (default: last path segment)
    --search TERM        Apply a search after loading
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
from typing import Any

import aiohttp

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyrecaudo import (  # noqa: E402
    ConnectivityMonitor,
    EntityStore,
    FileCache,
    HttpEntityService,
    JsonTransport,
    MemoryCache,
    RecaudoConfig,
)


def _record_id(item: dict[str, Any]) -> Any:
    for key in ("id", "codigo", "cod"):
        if key in item:
            return item[key]
    return None


async def _run(args: argparse.Namespace) -> int:
    config = RecaudoConfig.from_env()
    key = args.key or args.endpoint.rstrip("/").rsplit("/", 1)[-1]
    cache = FileCache(config.cache_dir) if config.cache_dir else MemoryCache()

    async with aiohttp.ClientSession() as http:
        monitor = ConnectivityMonitor(config, http)
        transport = JsonTransport(config, http, monitor=monitor)
        service: HttpEntityService[dict[str, Any], dict[str, Any]] = HttpEntityService(
            transport, args.endpoint, dict, searchable=args.server_search
        )
        async with EntityStore(service, cache_key=key, get_id=_record_id, cache=cache) as store:
            await store.load()
            if args.search:
                await store.search(args.search)
            state = store.state

    if args.json:
        print(json.dumps(state.model_dump(mode="json"), indent=2, ensure_ascii=False))
    else:
        source = "CACHE (may be stale)" if state.degraded else "remote"
        print(f"  {key}: {len(state.items)} items from {source}")
        if state.error:
            print(f"  error: {state.error} - {state.error_message}")
        for item in state.items:
            print(f"    {json.dumps(item, ensure_ascii=False)}")

    return 1 if state.error else 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("endpoint", help="Resource path, e.g. /api/sector")
    parser.add_argument("--key", help="Cache key")
    parser.add_argument("--search", help="Search term to apply after loading")
    parser.add_argument("--server-search", action="store_true", help="Backend supports ?search=")
    parser.add_argument("--json", action="store_true", help="Output JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
