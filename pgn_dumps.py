"""Read games from local PGN files (plain or zstd-compressed) into a move index."""

import collections
import io
import sys
import time
from pathlib import Path
from typing import Iterable, Iterator, Optional

import chess.pgn
import zstandard as zstd

from move_index import MoveIndex


class ProgressBar:
    """Byte progress for one file on stderr, with an ETA from the recent read rate."""

    def __init__(self, total: int, width: int = 40, window: float = 5.0, interval: float = 1.0) -> None:
        self.total = total
        self.width = width
        self.window = window
        self.interval = interval
        self.done = 0
        self.last_print = 0.0
        self.samples = collections.deque([(time.time(), 0)])

    def update(self, n: int) -> None:
        self.done += n
        now = time.time()
        self.samples.append((now, self.done))
        while now - self.samples[0][0] > self.window:
            self.samples.popleft()
        if now - self.last_print >= self.interval:
            self.last_print = now
            self._print()

    def _print(self) -> None:
        (t0, d0), (t1, d1) = self.samples[0], self.samples[-1]
        speed = (d1 - d0) / (t1 - t0) if t1 > t0 else 0.0
        eta = f"ETA {(self.total - self.done) / speed:6.1f}s" if speed > 0 else "ETA ?"
        progress = min(self.done / self.total, 1.0) if self.total else 0.0
        filled = int(self.width * progress)
        bar = "#" * filled + "-" * (self.width - filled)
        print(f"\r[{bar}] {progress * 100:5.1f}% {eta}", end="", file=sys.stderr, flush=True)

    def finish(self) -> None:
        self._print()
        print(file=sys.stderr)


class _ProgressReader:
    def __init__(self, file, pb: ProgressBar):
        self.file = file
        self.pb = pb

    def read(self, n=-1):
        chunk = self.file.read(n)
        self.pb.update(len(chunk))
        return chunk

    def read1(self, n=-1):
        chunk = self.file.read1(n)
        self.pb.update(len(chunk))
        return chunk

    def __getattr__(self, name):
        return getattr(self.file, name)


def _open_text(raw, path: Path):
    if path.suffix == ".zst":
        return io.TextIOWrapper(zstd.ZstdDecompressor().stream_reader(raw), encoding="utf-8", errors="replace")
    return io.TextIOWrapper(raw, encoding="utf-8", errors="replace")


def iter_games(path: Path, progress: Optional[ProgressBar] = None) -> Iterator[chess.pgn.Game]:
    """Yield every game in a ``.pgn`` or ``.pgn.zst`` file."""
    path = Path(path)
    with open(path, "rb") as f:
        raw = _ProgressReader(f, progress) if progress is not None else f
        text = _open_text(raw, path)
        while True:
            game = chess.pgn.read_game(text)
            if game is None:
                break
            yield game


def ingest_pgn_files(
    index: MoveIndex,
    paths: Iterable[Path],
    identity: Optional[str] = None,
    show_progress: bool = True,
) -> int:
    """Feed every game in ``paths`` into ``index``; returns the number of games read.

    With an ``identity`` games are attributed to that player, otherwise only
    the mainline moves are counted.
    """
    games = 0
    for path in paths:
        path = Path(path)
        progress = ProgressBar(path.stat().st_size) if show_progress else None
        if show_progress:
            print(f"Indexing {path.name}", file=sys.stderr)
        for game in iter_games(path, progress):
            games += 1
            if identity:
                index.ingest_game(identity, game)
            else:
                index.ingest_moves(move.uci() for move in game.mainline_moves())
        if progress is not None:
            progress.finish()
    return games
