"""
CLI entrypoint for the live leaderboard.

Usage:
  leaderstream run --url ws://localhost:8080
  leaderstream replay frames.jsonl

Commands:
  run       Stream from a websocket feed and print the top-K on every rank tick
  replay    Feed a JSON Lines file of frames through the same pipeline, print the
            final leaderboard as JSON

Options (both commands):
  --config FILE         TOML config file
  --set KEY=VALUE       Dotted config override, repeatable (e.g. schedule.top_k=5)
  --log-level LEVEL     Overrides logging.level from the config
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from pathlib import Path
from typing import Any

import orjson

from leaderstream.config.config_loader import ConfigLoader, deep_merge, insert_path, parse_overrides
from leaderstream.config.models import AppConfig
from leaderstream.core.ranking import RankingSnapshot
from leaderstream.data.live.errors import LiveFeedError
from leaderstream.data.live.manager import LeaderboardService
from leaderstream.utils.logging import setup_logging


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", type=Path, help="TOML config file.")
    common.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Dotted config override, e.g. schedule.rank_interval_s=10. Repeatable.",
    )
    common.add_argument("--log-level", help="Log level; defaults to config logging.level.")

    parser = argparse.ArgumentParser(prog="leaderstream", description="Live leaderboard")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", parents=[common], help="Stream from a websocket feed.")
    run.add_argument("--url", help="Feed address (ws:// or wss://). Defaults to config.")

    replay = sub.add_parser("replay", parents=[common], help="Replay a JSON Lines frame file.")
    replay.add_argument("file", type=Path, help="One frame per line.")

    return parser.parse_args(argv)


def _resolve_config(args: argparse.Namespace) -> AppConfig:
    overrides = parse_overrides(args.overrides)
    url = getattr(args, "url", None)
    if url:
        cli_layer: dict[str, Any] = {}
        insert_path(cli_layer, "connection.url", url)
        overrides = deep_merge(overrides, cli_layer)
    if args.log_level:
        overrides = deep_merge(overrides, {"logging": {"level": args.log_level}})
    return ConfigLoader().resolve(args.config, overrides)


def snapshot_to_dict(snapshot: RankingSnapshot) -> dict[str, Any]:
    return {
        "leader_id": snapshot.leader_id,
        "top_k": snapshot.top_k,
        "entries": [
            {
                "rank": e.rank,
                "id": e.participant_id,
                "name": e.display_name,
                "net_change": e.net_change,
                "pnl_pct": e.pnl_pct,
                "last_value": e.last_value,
                "sharpe": e.sharpe,
                "win_rate": e.win_rate,
                "max_drawdown": e.max_drawdown,
            }
            for e in snapshot.entries
        ],
    }


def _format_top(snapshot: RankingSnapshot) -> str:
    lines = []
    for e in snapshot.top:
        marker = "*" if snapshot.leader_changed and e.rank == 1 else " "
        lines.append(f"{marker}{e.rank:>2}. {e.display_name:<20} {e.net_change:>+12.2f}")
    return "\n".join(lines) if lines else "  (no participants)"


async def _print_ranking(snapshot: RankingSnapshot) -> None:
    print(_format_top(snapshot), flush=True)


async def _run(config: AppConfig) -> None:
    service = LeaderboardService(config.to_feed_config(), on_ranking=_print_ranking)
    await service.start()
    try:
        while service.is_running:
            await asyncio.sleep(1.0)
    finally:
        await service.stop()


async def _replay(config: AppConfig, path: Path) -> dict[str, Any]:
    service = LeaderboardService(config.to_feed_config(), name="replay")
    await service.start(connect=False)
    try:
        with path.open("rb") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                await service.on_frame(line, int(time.time() * 1000))
        service.flush()
        snapshot = service.refresh_ranking()
    finally:
        await service.stop()
    return snapshot_to_dict(snapshot)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    try:
        config = _resolve_config(args)
        feed_config = config.to_feed_config()
    except (FileNotFoundError, ValueError, LiveFeedError) as exc:
        print(f"[!] {exc}", file=sys.stderr)
        return 1

    setup_logging(config.logging.level)

    if args.command == "replay":
        if not args.file.exists():
            print(f"[!] Frame file not found: {args.file}", file=sys.stderr)
            return 1
        result = asyncio.run(_replay(config, args.file))
        sys.stdout.write(orjson.dumps(result, option=orjson.OPT_INDENT_2).decode() + "\n")
        return 0

    try:
        asyncio.run(_run(config))
    except KeyboardInterrupt:
        print("Interrupted by user.", file=sys.stderr)
        return 130
    except LiveFeedError as exc:
        print(f"[!] Feed failed ({feed_config.connection.url}): {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
