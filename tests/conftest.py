"""
Shared fixtures for move explorer tests.
"""

from typing import Callable

import pytest

from move_index import MoveIndex


START_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"
AFTER_E4_FEN = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"
AFTER_E4_E5_FEN = "rnbqkbnr/pppp1ppp/8/4p3/4P3/8/PPPP1PPP/RNBQKBNR w KQkq - 0 2"


def make_pgn(white: str, black: str, result: str, movetext: str) -> str:
    return (
        f'[Event "Casual game"]\n'
        f'[White "{white}"]\n'
        f'[Black "{black}"]\n'
        f'[Result "{result}"]\n'
        f"\n"
        f"{movetext} {result}\n"
    )


# =============================================================================
# Game Fixtures
# =============================================================================

@pytest.fixture
def pgn() -> Callable[..., str]:
    """PGN text builder: pgn(white, black, result, movetext)."""
    return make_pgn


@pytest.fixture
def index() -> MoveIndex:
    return MoveIndex()


@pytest.fixture
def alice_games() -> list:
    """A few games of alice with both colors and all results."""
    return [
        make_pgn("alice", "bob", "1-0", "1. e4 e5 2. Nf3 Nc6"),
        make_pgn("carol", "Alice", "0-1", "1. e4 c5 2. Nf3 d6"),
        make_pgn("ALICE", "dave", "1/2-1/2", "1. d4 d5"),
        make_pgn("erin", "alice", "1-0", "1. e4 e5 2. Bc4"),
        make_pgn("alice", "frank", "*", "1. e4 e6"),
    ]


def assert_consistent(index: MoveIndex) -> None:
    """Marginal and role/color partition invariants for every bucket."""
    for fen in index.positions():
        b = index.get_bucket(fen)
        assert b.total == sum(b.move_counts.values())
        assert b.total == sum(b.to_square_counts.values())
        assert b.total == sum(b.from_square_counts.values())
        assert b.user.total + b.opp.total <= b.total
        assert b.user_white.total + b.user_black.total == b.user.total
        assert b.opp_white.total + b.opp_black.total == b.opp.total
        for group in (b.user, b.opp, b.user_white, b.user_black, b.opp_white, b.opp_black):
            assert group.total == sum(group.move_counts.values())
            assert group.total == sum(group.to_square_counts.values())
