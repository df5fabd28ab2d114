# tests/core/test_comment_associator.py
import pytest

from chess_presenter.core.comment_associator import RegexCommentAssociator, is_move_token
from chess_presenter.types import MoveNode


def _moves(*sans):
    return [MoveNode(san=san, fen="", move_number=i // 2 + 1, is_white=i % 2 == 0, from_square="a1", to_square="a2")
            for i, san in enumerate(sans)]


@pytest.mark.parametrize("token, expected", [
    ("e4", True), ("Nf3", True), ("exd5", True), ("Nbd7", True), ("R1e2", True),
    ("e8=Q+", True), ("Qxf7#", True), ("O-O", True), ("O-O-O+", True),
    ("1.", False), ("1...", False), ("*", False), ("1-0", False), ("$1", False), ("{", False),
])
def test_is_move_token(token, expected):
    assert is_move_token(token) is expected


def test_comment_attaches_to_most_recent_move():
    moves = _moves("e4", "e5", "Nf3")

    result = RegexCommentAssociator().associate("1. e4 { King pawn } 1... e5 2. Nf3 { Develops } *", moves)

    assert [m.comment for m in result] == ["King pawn", None, "Develops"]
    assert moves[0].comment is None


def test_comment_before_first_move_is_dropped():
    result = RegexCommentAssociator().associate("{ Intro text } 1. e4 *", _moves("e4"))

    assert result[0].comment is None


def test_move_shaped_words_inside_a_comment_are_not_counted():
    moves = _moves("e4", "e5")

    result = RegexCommentAssociator().associate("1. e4 { prepares d4 and Nf3 } 1... e5 { solid } *", moves)

    assert [m.comment for m in result] == ["prepares d4 and Nf3", "solid"]


def test_variation_moves_shift_comments():
    # Variation moves are counted like mainline moves; this is a known limitation.
    moves = _moves("e4", "e5")

    result = RegexCommentAssociator().associate("1. e4 ( 1. d4 ) 1... e5 { note } *", moves)

    assert result[0].comment is None
    assert result[1].comment is None


def test_unterminated_brace_stops_association():
    result = RegexCommentAssociator().associate("1. e4 { open comment 1... e5", _moves("e4", "e5"))

    assert [m.comment for m in result] == [None, None]
