"""Download a player's games from lichess.org and index them."""

import json
import sys
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Union
from urllib.parse import quote

import requests

from move_index import MoveIndex

LICHESS_GAMES_URL = "https://lichess.org/api/games/user/{username}"


@dataclass
class FetchOptions:
    username: str
    max_games: Optional[int] = None
    since: Optional[int] = None  # unix ms
    until: Optional[int] = None  # unix ms
    perf_type: Optional[str] = None  # blitz, rapid, classical, ...

    def params(self) -> dict:
        params = {
            "moves": "true",
            "pgnInJson": "true",
            "clocks": "false",
            "evals": "false",
            "opening": "false",
        }
        if self.max_games:
            params["max"] = str(self.max_games)
        if self.since:
            params["since"] = str(self.since)
        if self.until:
            params["until"] = str(self.until)
        if self.perf_type:
            params["perfType"] = self.perf_type
        return params


def iter_ndjson_pgns(lines: Iterable[Union[bytes, str]]) -> Iterator[str]:
    """Yield the ``pgn`` field of each NDJSON game line, skipping bad lines."""
    for line in lines:
        line = line.strip()
        if not line:
            continue
        try:
            obj = json.loads(line)
        except ValueError:
            continue
        if isinstance(obj, dict) and obj.get("pgn"):
            yield obj["pgn"]


def fetch_user_games(options: FetchOptions, timeout: float = 60.0) -> Iterator[str]:
    """Stream PGN records for ``options.username`` from the lichess games export."""
    url = LICHESS_GAMES_URL.format(username=quote(options.username.strip(), safe=""))
    with requests.get(
        url,
        params=options.params(),
        headers={"Accept": "application/x-ndjson"},
        stream=True,
        timeout=timeout,
    ) as r:
        r.raise_for_status()
        yield from iter_ndjson_pgns(r.iter_lines())


def fetch_and_index_user_games(options: FetchOptions, verbose: bool = False) -> tuple[MoveIndex, int]:
    """Fetch and index all games of a user; returns the index and the game count."""
    index = MoveIndex()
    total = 0
    for pgn in fetch_user_games(options):
        total += 1
        index.ingest_game(options.username, pgn)
        if verbose and total % 100 == 0:
            print(f"Indexed {total} games...", file=sys.stderr, flush=True)
    if verbose:
        print(f"Indexed {total} games, {index.size} positions", file=sys.stderr)
    return index, total
