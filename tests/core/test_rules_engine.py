# tests/core/test_rules_engine.py
import chess
import pytest

from chess_presenter.core.rules_engine import ChessRulesEngine
from chess_presenter.exceptions import PgnParsingError
from chess_presenter.types import RulesEngine


def test_engine_satisfies_protocol():
    assert isinstance(ChessRulesEngine(), RulesEngine)


def test_load_position_rejects_malformed_fen():
    engine = ChessRulesEngine()

    assert engine.load_position("not a fen") is False
    assert engine.current_position() == chess.STARTING_FEN


def test_apply_moves_returns_history_and_rendering():
    applied = ChessRulesEngine().apply_moves("1. e4 {Center} e5 (1... c5) 2. Nf3 *")

    assert [m.san for m in applied.moves] == ["e4", "e5", "Nf3"]
    assert (applied.moves[2].from_square, applied.moves[2].to_square) == ("g1", "f3")
    assert "{ Center }" in applied.rendered_movetext
    assert "c5" in applied.rendered_movetext
    assert "[Event" not in applied.rendered_movetext


def test_apply_moves_rejects_illegal_move():
    assert ChessRulesEngine().apply_moves("1. e4 e5 2. Ke3 *") is None


def test_apply_moves_starts_from_loaded_position():
    engine = ChessRulesEngine()
    board = chess.Board()
    board.push_san("e4")
    engine.load_position(board.fen())

    applied = engine.apply_moves("1... e5 2. Nf3 *")

    assert [m.san for m in applied.moves] == ["e5", "Nf3"]


def test_play_and_current_position():
    engine = ChessRulesEngine()

    played = engine.play("e4")

    assert (played.from_square, played.to_square) == ("e2", "e4")
    expected = chess.Board()
    expected.push_san("e4")
    assert engine.current_position() == expected.fen()


def test_play_illegal_move_raises():
    with pytest.raises(PgnParsingError):
        ChessRulesEngine().play("Ke2")
