"""Tests for replay: parsing, identity colors, outcomes and per-ply facts."""

import chess
import chess.pgn
import pytest

from conftest import AFTER_E4_FEN, START_FEN, make_pgn
from replay import (
    DRAW,
    LOSS,
    WIN,
    ReplayFact,
    identity_colors,
    parse_game_record,
    replay_game,
    replay_moves,
    resolve_outcome,
)


class TestParseGameRecord:
    def test_parses_pgn_text(self):
        game = parse_game_record(make_pgn("alice", "bob", "1-0", "1. e4 e5"))
        assert game.headers["White"] == "alice"
        assert [m.uci() for m in game.mainline_moves()] == ["e2e4", "e7e5"]

    def test_passes_game_through(self):
        game = chess.pgn.Game()
        assert parse_game_record(game) is game

    @pytest.mark.parametrize("record", ["", None, 42])
    def test_unparseable(self, record):
        assert parse_game_record(record) is None


class TestIdentityColors:
    def test_white(self):
        assert identity_colors({"White": "Alice", "Black": "bob"}, "alice") == {chess.WHITE}

    def test_black(self):
        assert identity_colors({"White": "bob", "Black": " alice "}, "ALICE") == {chess.BLACK}

    def test_both(self):
        assert identity_colors({"White": "alice", "Black": "alice"}, "alice") == {chess.WHITE, chess.BLACK}

    def test_neither(self):
        assert identity_colors({"White": "bob", "Black": "carol"}, "alice") == frozenset()

    def test_substring_does_not_match(self):
        assert identity_colors({"White": "alice2", "Black": "bob"}, "alice") == frozenset()

    def test_blank_identity(self):
        assert identity_colors({"White": "", "Black": ""}, "  ") == frozenset()

    def test_unknown_name_placeholder(self):
        assert identity_colors({"White": "?", "Black": "?"}, "?") == frozenset()
        assert identity_colors({"White": "?", "Black": "alice"}, "alice") == {chess.BLACK}


class TestResolveOutcome:
    @pytest.mark.parametrize(
        "result, colors, expected",
        [
            ("1-0", {chess.WHITE}, WIN),
            ("1-0", {chess.BLACK}, LOSS),
            ("0-1", {chess.BLACK}, WIN),
            ("0-1", {chess.WHITE}, LOSS),
            ("1/2-1/2", {chess.BLACK}, DRAW),
            ("*", {chess.WHITE}, None),
            ("", {chess.WHITE}, None),
            (None, {chess.WHITE}, None),
            ("1-0", set(), None),
            ("0-1", {chess.WHITE, chess.BLACK}, LOSS),
        ],
    )
    def test_outcomes(self, result, colors, expected):
        assert resolve_outcome(result, colors) == expected


class TestReplayMoves:
    def test_facts_without_attribution(self):
        facts = list(replay_moves(["e2e4", "e5"]))
        assert facts == [
            ReplayFact(START_FEN, "e2e4"),
            ReplayFact(AFTER_E4_FEN, "e7e5"),
        ]
        assert facts[0].color is None and facts[0].by_user is None

    def test_stops_at_first_bad_move(self):
        facts = list(replay_moves(["e4", "e5", "Qxf7", "Nf3"]))
        assert [f.move for f in facts] == ["e2e4", "e7e5"]

    @pytest.mark.parametrize("bad", ["0000", "--", None, "e2e5"])
    def test_bad_first_move(self, bad):
        assert list(replay_moves([bad, "e4"])) == []

    def test_custom_position_key(self):
        facts = list(replay_moves(["e4"], position_key=chess.Board.board_fen))
        assert facts[0].position == "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR"


class TestReplayGame:
    def test_attribution(self):
        game = parse_game_record(make_pgn("alice", "bob", "1-0", "1. e4 e5 2. Nf3"))
        facts = list(replay_game(game, {chess.WHITE}))
        assert [(f.move, f.color, f.by_user) for f in facts] == [
            ("e2e4", chess.WHITE, True),
            ("e7e5", chess.BLACK, False),
            ("g1f3", chess.WHITE, True),
        ]
        assert facts[0].position == START_FEN
        assert facts[1].position == AFTER_E4_FEN

    def test_castling_normalized(self):
        game = parse_game_record(make_pgn("a", "b", "*", "1. e4 e5 2. Nf3 Nc6 3. Bc4 Bc5 4. O-O"))
        assert list(replay_game(game))[-1].move == "e1g1"

    def test_custom_start_position_stops(self):
        text = (
            '[White "a"]\n[Black "b"]\n[Result "*"]\n'
            '[SetUp "1"]\n[FEN "4k3/8/8/8/8/8/4P3/4K3 w - - 0 1"]\n\n1. e4 *\n'
        )
        game = parse_game_record(text)
        # e4 is also legal from the standard start, Kd1 is not
        text2 = text.replace("1. e4", "1. Kd1")
        assert [f.move for f in replay_game(game)] == ["e2e4"]
        assert list(replay_game(parse_game_record(text2))) == []
