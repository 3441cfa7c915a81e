#!/usr/bin/env python3
"""Build and query a personal move explorer from a player's games."""

import argparse
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import chess
import requests

import index_store
from lichess_games import FetchOptions, fetch_and_index_user_games
from move_index import DEFAULT_TOP_MOVES, OPP, USER, MoveIndex
from pgn_dumps import ingest_pgn_files

DEFAULT_CACHE_DIR = Path.home() / ".cache" / "move-explorer"
HISTORY_FILE = "history.json"


def date_to_ms(value: str) -> int:
    """Parse YYYY-MM-DD into unix milliseconds (UTC)."""
    try:
        day = datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}")
    return int(day.timestamp() * 1000)


def load_or_fetch(args) -> Optional[MoveIndex]:
    path = index_store.cache_path(args.cache_dir, args.username)
    if not args.no_cache:
        index = index_store.load_index(path, strict=args.strict)
        if index is not None:
            print(f"Loaded cached index for {args.username} ({index.size} positions)", file=sys.stderr)
            return index

    options = FetchOptions(
        username=args.username,
        max_games=args.max,
        since=args.since,
        until=args.until,
        perf_type=args.perf_type,
    )
    try:
        index, total = fetch_and_index_user_games(options, verbose=True)
    except requests.RequestException as e:
        print(f"Failed to fetch games for {args.username}: {e}", file=sys.stderr)
        return None
    print(f"Fetched {total} games", file=sys.stderr)
    index_store.save_index(path, index)
    return index


def print_position(index: MoveIndex, fen: str, limit: int, user_color: Optional[chess.Color]) -> None:
    stats = index.result_stats(fen)
    print(stats._asdict())
    if user_color is None:
        for move in index.top_moves(fen, limit):
            print(f"{move.move}\t{move.count}")
        return
    mine, theirs = index.perspective(fen, user_color, limit)
    for label, moves in (("mine", mine), ("opponent", theirs)):
        print(f"{label}:")
        for move in moves:
            print(f"  {move.move}\t{move.count}")


def cmd_fetch(args) -> int:
    index = load_or_fetch(args)
    if index is None:
        return 1
    index_store.UserHistory(args.cache_dir / HISTORY_FILE).add(args.username)
    if args.fen:
        print_position(index, args.fen, args.limit, args.color)
    else:
        print(f"{index.size} positions indexed", file=sys.stderr)
    return 0


def cmd_build(args) -> int:
    index = MoveIndex()
    games = ingest_pgn_files(index, args.pgns, identity=args.user)
    print(f"Indexed {games} games, {index.size} positions", file=sys.stderr)
    index_store.save_index(args.out, index)
    return 0


def cmd_query(args) -> int:
    index = index_store.load_index(args.index, strict=args.strict)
    if index is None:
        print(f"No usable index at {args.index}", file=sys.stderr)
        return 1
    print_position(index, args.fen, args.limit, args.color)
    return 0


def cmd_history(args) -> int:
    history = index_store.UserHistory(args.cache_dir / HISTORY_FILE)
    if args.remove:
        history.remove(args.remove)
    for name in history.entries():
        print(name)
    return 0


def parse_color(value: str) -> chess.Color:
    try:
        return {"white": chess.WHITE, "black": chess.BLACK}[value.lower()]
    except KeyError:
        raise argparse.ArgumentTypeError("color must be 'white' or 'black'")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Personal move explorer built from your own games")
    parser.add_argument(
        "--cache-dir",
        default=DEFAULT_CACHE_DIR,
        type=Path,
        help=f"Directory for cached indexes and player history (default: {DEFAULT_CACHE_DIR})",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    def add_query_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--limit", type=int, default=DEFAULT_TOP_MOVES, help="Number of moves to show")
        p.add_argument(
            "--color",
            type=parse_color,
            default=None,
            help="Show moves from the player's perspective when holding this color",
        )
        p.add_argument(
            "--lenient",
            dest="strict",
            action="store_false",
            help="Accept cached indexes written before the role/color split",
        )

    f = sub.add_parser("fetch", help="Download and index a lichess player's games")
    f.add_argument("username")
    f.add_argument("--fen", help="Position to show after indexing")
    f.add_argument("--max", type=int, default=None, help="Maximum number of games")
    f.add_argument("--since", type=date_to_ms, default=None, help="Only games after YYYY-MM-DD")
    f.add_argument("--until", type=date_to_ms, default=None, help="Only games before YYYY-MM-DD")
    f.add_argument("--perf-type", default=None, help="blitz, rapid, classical, ...")
    f.add_argument("--no-cache", action="store_true", help="Ignore a cached index and fetch again")
    add_query_args(f)
    f.set_defaults(func=cmd_fetch)

    b = sub.add_parser("build", help="Build an index from PGN files (.pgn or .pgn.zst)")
    b.add_argument("pgns", nargs="+", type=Path)
    b.add_argument("--user", default=None, help="Player whose games are attributed")
    b.add_argument("--out", default="index.json.zst", type=Path)
    b.set_defaults(func=cmd_build)

    q = sub.add_parser("query", help="Query move statistics for a FEN")
    q.add_argument("fen")
    q.add_argument("--index", default="index.json.zst", type=Path)
    add_query_args(q)
    q.set_defaults(func=cmd_query)

    h = sub.add_parser("history", help="List recently fetched players")
    h.add_argument("--remove", default=None, help="Forget a player")
    h.set_defaults(func=cmd_history)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
