"""Position-keyed move statistics.

A :class:`MoveIndex` maps a FEN to a :class:`PositionBucket` holding how often
each move was played from that position, split by who played it (the tracked
player or the opponent) and with which color, together with the results the
tracked player scored in games that passed through the position.
"""

import copy
from typing import Callable, Iterable, NamedTuple, Optional, Union

import chess
import chess.pgn

import replay
from replay import DRAW, LOSS, WIN, ReplayFact

DEFAULT_TOP_MOVES = 8

USER = "user"
OPP = "opp"

# serialized prefix -> (role, color)
GROUP_PREFIXES = {
    "u": (USER, None),
    "o": (OPP, None),
    "uw": (USER, chess.WHITE),
    "ub": (USER, chess.BLACK),
    "ow": (OPP, chess.WHITE),
    "ob": (OPP, chess.BLACK),
}


def _bump(counts: dict, key: str) -> None:
    counts[key] = counts.get(key, 0) + 1


def _pairs(counts: dict) -> list:
    return [[key, count] for key, count in counts.items()]


def _count(value) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"count must be a number, got {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"count must be integral, got {value!r}")
    return int(value)


def _from_pairs(pairs) -> dict:
    counts = {}
    for pair in pairs or []:
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            raise ValueError(f"expected a [key, count] pair, got {pair!r}")
        key, count = pair
        counts[str(key)] = _count(count)
    return counts


class MoveCount(NamedTuple):
    move: str
    count: int

    @property
    def from_square(self) -> str:
        return self.move[:2]

    @property
    def to_square(self) -> str:
        return self.move[2:4]

    @property
    def promotion(self) -> Optional[str]:
        return self.move[4:] or None


class ResultStats(NamedTuple):
    win: int
    loss: int
    draw: int
    total: int


class CountGroup:
    """Move and destination-square counts for one slice of the movers."""

    def __init__(self) -> None:
        self.total = 0
        self.move_counts: dict[str, int] = {}
        self.to_square_counts: dict[str, int] = {}

    def add(self, key: str, to_square: str) -> None:
        self.total += 1
        _bump(self.move_counts, key)
        _bump(self.to_square_counts, to_square)

    def to_dict(self, prefix: str) -> dict:
        return {
            f"{prefix}t": self.total,
            f"{prefix}m": _pairs(self.move_counts),
            f"{prefix}to": _pairs(self.to_square_counts),
        }

    @classmethod
    def from_dict(cls, data: dict, prefix: str) -> "CountGroup":
        group = cls()
        group.total = _count(data.get(f"{prefix}t", 0))
        group.move_counts = _from_pairs(data.get(f"{prefix}m"))
        group.to_square_counts = _from_pairs(data.get(f"{prefix}to"))
        return group


class PositionBucket:
    """Aggregate statistics for a single position."""

    def __init__(self) -> None:
        self.total = 0
        self.move_counts: dict[str, int] = {}
        self.to_square_counts: dict[str, int] = {}
        self.from_square_counts: dict[str, int] = {}
        self.results = {WIN: 0, LOSS: 0, DRAW: 0}
        self.user = CountGroup()
        self.opp = CountGroup()
        self.user_white = CountGroup()
        self.user_black = CountGroup()
        self.opp_white = CountGroup()
        self.opp_black = CountGroup()

    def group(self, role: Optional[str] = None, color: Optional[chess.Color] = None) -> Optional[CountGroup]:
        """Return the count group for ``role`` (and ``color``), or None for the global counts."""
        if role is None:
            if color is not None:
                raise ValueError("color split requires a role")
            return None
        if role not in (USER, OPP):
            raise ValueError(f"unknown role: {role!r}")
        if color is None:
            return self.user if role == USER else self.opp
        if role == USER:
            return self.user_white if color == chess.WHITE else self.user_black
        return self.opp_white if color == chess.WHITE else self.opp_black

    def add_move(self, key: str, by_user: Optional[bool] = None, color: Optional[chess.Color] = None) -> None:
        if by_user is not None and color is None:
            raise ValueError("a move attributed to a role needs the mover's color")
        from_square, to_square = key[:2], key[2:4]
        self.total += 1
        _bump(self.move_counts, key)
        _bump(self.to_square_counts, to_square)
        _bump(self.from_square_counts, from_square)

        if by_user is None:
            return
        role = USER if by_user else OPP
        self.group(role).add(key, to_square)
        self.group(role, color).add(key, to_square)

    def add_result(self, outcome: str) -> None:
        self.results[outcome] += 1

    def copy(self) -> "PositionBucket":
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        data = {
            "t": self.total,
            "m": _pairs(self.move_counts),
            "to": _pairs(self.to_square_counts),
            "fr": _pairs(self.from_square_counts),
            "r": [self.results[WIN], self.results[LOSS], self.results[DRAW]],
        }
        for prefix, (role, color) in GROUP_PREFIXES.items():
            data.update(self.group(role, color).to_dict(prefix))
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PositionBucket":
        if not isinstance(data, dict):
            raise TypeError(f"bucket record must be a mapping, got {type(data).__name__}")
        bucket = cls()
        bucket.total = _count(data.get("t", 0))
        bucket.move_counts = _from_pairs(data.get("m"))
        bucket.to_square_counts = _from_pairs(data.get("to"))
        bucket.from_square_counts = _from_pairs(data.get("fr"))
        results = list(data.get("r") or [])
        results += [0] * (3 - len(results))
        bucket.results = {WIN: _count(results[0]), LOSS: _count(results[1]), DRAW: _count(results[2])}
        for prefix, (role, color) in GROUP_PREFIXES.items():
            group = CountGroup.from_dict(data, prefix)
            if color is None:
                setattr(bucket, role, group)
            else:
                setattr(bucket, f"{role}_{'white' if color == chess.WHITE else 'black'}", group)
        return bucket


GameSource = Union[str, chess.pgn.Game]


class MoveIndex:
    """Append-only store of :class:`PositionBucket` objects keyed by FEN.

    ``position_key`` turns a board into its key. The default full FEN keeps
    the move clocks, so equal placements reached at different move numbers
    land in different buckets; pass ``chess.Board.epd`` to merge them.
    """

    def __init__(self, position_key: Callable[[chess.Board], str] = chess.Board.fen) -> None:
        self.position_key = position_key
        self._index: dict[str, PositionBucket] = {}

    @property
    def size(self) -> int:
        return len(self._index)

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, fen: str) -> bool:
        return fen in self._index

    def positions(self) -> list[str]:
        return list(self._index)

    def clear(self) -> None:
        self._index.clear()

    def _bucket(self, fen: str) -> PositionBucket:
        bucket = self._index.get(fen)
        if bucket is None:
            bucket = self._index[fen] = PositionBucket()
        return bucket

    def _apply(self, fact: ReplayFact) -> None:
        self._bucket(fact.position).add_move(fact.move, fact.by_user, fact.color)

    # Ingestion

    def ingest_moves(self, moves: Iterable[str]) -> None:
        """Index a bare move list (UCI or SAN) from the starting position.

        Stops at the first move that cannot be played; earlier moves stay indexed.
        """
        for fact in replay.replay_moves(moves, self.position_key):
            self._apply(fact)

    def ingest_game(self, identity: str, record: GameSource) -> None:
        """Index one game of ``identity`` with role, color and result attribution.

        Unparseable records and games ``identity`` did not play in are skipped.
        """
        game = replay.parse_game_record(record)
        if game is None:
            return
        colors = replay.identity_colors(game.headers, identity)
        if not colors:
            return
        outcome = replay.resolve_outcome(game.headers.get("Result", "*"), colors)

        visited: dict[str, None] = {}
        for fact in replay.replay_game(game, colors, self.position_key):
            self._apply(fact)
            visited[fact.position] = None

        if outcome is not None:
            for fen in visited:
                self._index[fen].add_result(outcome)

    def ingest_games(self, identity: str, records: Iterable[GameSource]) -> int:
        """Index many games; returns how many records were seen."""
        seen = 0
        for record in records:
            seen += 1
            self.ingest_game(identity, record)
        return seen

    # Queries

    def get_bucket(self, fen: str) -> Optional[PositionBucket]:
        """Return a copy of the bucket for ``fen``, or None."""
        bucket = self._index.get(fen)
        return bucket.copy() if bucket is not None else None

    def top_moves(
        self,
        fen: str,
        limit: int = DEFAULT_TOP_MOVES,
        role: Optional[str] = None,
        color: Optional[chess.Color] = None,
    ) -> list[MoveCount]:
        """Most played moves from ``fen``, most frequent first.

        Equal counts keep the order in which the moves were first seen.
        """
        bucket = self._index.get(fen)
        if bucket is None:
            return []
        group = bucket.group(role, color)
        counts = bucket.move_counts if group is None else group.move_counts
        ranked = sorted(counts.items(), key=lambda item: -item[1])
        return [MoveCount(move, count) for move, count in ranked[:max(limit, 0)]]

    def top_squares(
        self,
        fen: str,
        role: Optional[str] = None,
        color: Optional[chess.Color] = None,
    ) -> list[tuple[str, int]]:
        """Destination squares from ``fen`` ordered like :meth:`top_moves`."""
        bucket = self._index.get(fen)
        if bucket is None:
            return []
        group = bucket.group(role, color)
        counts = bucket.to_square_counts if group is None else group.to_square_counts
        return sorted(counts.items(), key=lambda item: -item[1])

    def perspective(
        self, fen: str, user_color: chess.Color, limit: int = 10
    ) -> tuple[list[MoveCount], list[MoveCount]]:
        """Moves of the tracked player holding ``user_color`` and of their opponents."""
        mine = self.top_moves(fen, limit, role=USER, color=user_color)
        theirs = self.top_moves(fen, limit, role=OPP, color=not user_color)
        return mine, theirs

    def has_identity_data(self, fen: str) -> bool:
        bucket = self._index.get(fen)
        if bucket is None:
            return False
        return bucket.user.total + bucket.opp.total > 0

    def result_stats(self, fen: str) -> ResultStats:
        bucket = self._index.get(fen)
        if bucket is None:
            return ResultStats(0, 0, 0, 0)
        win, loss, draw = bucket.results[WIN], bucket.results[LOSS], bucket.results[DRAW]
        return ResultStats(win, loss, draw, win + loss + draw)

    # Serialization

    def serialize(self) -> dict:
        return {fen: bucket.to_dict() for fen, bucket in self._index.items()}

    @classmethod
    def from_serialized(
        cls, data: dict, position_key: Callable[[chess.Board], str] = chess.Board.fen
    ) -> "MoveIndex":
        """Rebuild an index from :meth:`serialize` output.

        Missing fields read as zero or empty. Raises ``TypeError`` or
        ``ValueError`` on structurally invalid input.
        """
        if not isinstance(data, dict):
            raise TypeError(f"serialized index must be a mapping, got {type(data).__name__}")
        index = cls(position_key)
        for fen, record in data.items():
            index._index[str(fen)] = PositionBucket.from_dict(record)
        return index
