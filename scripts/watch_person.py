#!/usr/bin/env python3
"""Print a person's live presence view until interrupted.

Configuration is read from the environment (see ``PeopleConfig.from_env``):
- PEOPLE_ACCESS_TOKEN (required)
- PEOPLE_BASE_URL / PEOPLE_PRESENCE_URL
- PEOPLE_MQTT_HOST (push updates are disabled without it)

Examples:
    python scripts/watch_person.py me
    python scripts/watch_person.py <person-key> --duration 300 --json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pylivepeople import PeopleClient, PeopleConfig, PeopleError, PersonSnapshot  # noqa: E402

_LOG = logging.getLogger("watch_person")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Watch the live presence view of one person.",
    )
    parser.add_argument(
        "key",
        help="Person key, or 'me' for the access token bearer.",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Print the initial snapshot and exit.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print snapshots as JSON.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args()


def _print_snapshot(snapshot: PersonSnapshot, *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(snapshot.model_dump(mode="json", exclude={"raw"}), indent=2, sort_keys=True))
        return
    ts_text = time.strftime("%Y-%m-%d %H:%M:%S")
    print(f"[watch] {ts_text} {snapshot.display_name or snapshot.id}: {snapshot.status.value}")


async def _watch(config: PeopleConfig, args: argparse.Namespace) -> int:
    async with PeopleClient(config) as client:
        key = args.key
        if key == "me":
            # Live views are keyed by the bearer's real id, not the alias.
            key = (await client.get_me()).id

        async with client.watch(key) as sub:
            deadline = time.monotonic() + args.duration if args.duration > 0 else None
            while True:
                timeout = None if deadline is None else max(deadline - time.monotonic(), 0)
                try:
                    snapshot = await asyncio.wait_for(anext(sub), timeout)
                except (TimeoutError, StopAsyncIteration):
                    return 0
                _print_snapshot(snapshot, as_json=args.json)
                if args.once:
                    return 0


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = PeopleConfig.from_env()
    except PeopleError as exc:
        print(f"[watch] {exc}", file=sys.stderr)
        return 2

    try:
        return asyncio.run(_watch(config, args))
    except KeyboardInterrupt:
        return 0
    except PeopleError as exc:  # pragma: no cover - network/system interaction
        _LOG.debug("watch failed", exc_info=True)
        print(f"[watch] {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(_main())
