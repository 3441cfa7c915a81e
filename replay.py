"""Replay game records into per-ply facts for the move index."""

import io
from typing import Callable, Iterable, Iterator, NamedTuple, Optional, Union

import chess
import chess.pgn

WIN = "win"
LOSS = "loss"
DRAW = "draw"

DECISIVE_RESULTS = {"1-0": chess.WHITE, "0-1": chess.BLACK}
DRAWN_RESULT = "1/2-1/2"
# PGN placeholder for a missing player name
UNKNOWN_NAME = "?"


class ReplayFact(NamedTuple):
    position: str  # FEN before the move
    move: str  # UCI of the resolved move
    color: Optional[chess.Color] = None
    by_user: Optional[bool] = None


def parse_game_record(record: Union[str, chess.pgn.Game]) -> Optional[chess.pgn.Game]:
    """Parse PGN text with python-chess; None when no game can be read."""
    if isinstance(record, chess.pgn.Game):
        return record
    try:
        return chess.pgn.read_game(io.StringIO(record))
    except (TypeError, ValueError):
        return None


def identity_colors(headers, identity: str) -> frozenset:
    """Colors ``identity`` played in a game, compared case-insensitively."""
    name = (identity or "").strip().lower()
    if not name or name == UNKNOWN_NAME:
        return frozenset()
    colors = set()
    if headers.get("White", "").strip().lower() == name:
        colors.add(chess.WHITE)
    if headers.get("Black", "").strip().lower() == name:
        colors.add(chess.BLACK)
    return frozenset(colors)


def resolve_outcome(result: Optional[str], colors: Iterable[chess.Color]) -> Optional[str]:
    """Map a PGN result tag to win/loss/draw for the player holding ``colors``.

    Returns None for unfinished games or when the player's color is unknown.
    When the player holds both colors, white's result counts.
    """
    colors = set(colors)
    if not colors:
        return None
    result = (result or "").strip()
    if result == DRAWN_RESULT:
        return DRAW
    winner = DECISIVE_RESULTS.get(result)
    if winner is None:
        return None
    player = chess.WHITE if chess.WHITE in colors else chess.BLACK
    return WIN if winner == player else LOSS


def replay_game(
    game: chess.pgn.Game,
    user_colors: Iterable[chess.Color] = (),
    position_key: Callable[[chess.Board], str] = chess.Board.fen,
) -> Iterator[ReplayFact]:
    """Walk the mainline of ``game`` from the standard starting position.

    Stops at the first move that is not legal on the replay board.
    """
    user_colors = frozenset(user_colors)
    board = chess.Board()
    for move in game.mainline_moves():
        if not move or not board.is_legal(move):
            return
        fen = position_key(board)
        color = board.turn
        board.push(move)
        yield ReplayFact(fen, move.uci(), color, color in user_colors)


def _parse_move(board: chess.Board, notation: str) -> chess.Move:
    notation = notation.strip()
    try:
        move = board.parse_uci(notation)
    except ValueError:
        move = board.parse_san(notation)
    if not move:
        raise ValueError(f"null move in {notation!r}")
    return move


def replay_moves(
    moves: Iterable[str], position_key: Callable[[chess.Board], str] = chess.Board.fen
) -> Iterator[ReplayFact]:
    """Replay a bare move list (UCI or SAN) without player attribution."""
    board = chess.Board()
    for notation in moves:
        try:
            move = _parse_move(board, notation)
        except (AttributeError, ValueError):
            return
        fen = position_key(board)
        board.push(move)
        yield ReplayFact(fen, move.uci())
