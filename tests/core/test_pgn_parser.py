# tests/core/test_pgn_parser.py
import chess
import pytest

from chess_presenter.core.pgn_parser import (STANDARD_START_FEN, GameParser, extract_headers,
                                             next_parse_stage, sanitize_movetext, split_header_block,
                                             strip_variations)
from chess_presenter.types import ParsedGame, ParseOutcomeKind, ParseStage

PUZZLE_FEN = "6k1/5ppp/8/8/8/8/5PPP/3R2K1 w - - 0 1"


def _fens_after(sans, start_fen=chess.STARTING_FEN):
    board = chess.Board(start_fen)
    fens = []
    for san in sans:
        board.push_san(san)
        fens.append(board.fen())
    return fens


def test_parse_simple_game():
    pgn_string = '[Event "A"]\n[White "X"]\n[Black "Y"]\n\n1. e4 e5 2. Nf3 *'

    outcome = GameParser().parse(pgn_string)

    assert outcome.kind is ParseOutcomeKind.FULL
    assert outcome.stages == (ParseStage.RAW_ATTEMPT, ParseStage.COMPLETE)
    game = outcome.game
    assert game.headers == {"Event": "A", "White": "X", "Black": "Y"}
    assert game.initial_fen == STANDARD_START_FEN
    assert [(m.san, m.is_white, m.move_number) for m in game.moves] == [
        ("e4", True, 1), ("e5", False, 1), ("Nf3", True, 2)
    ]
    assert [(m.from_square, m.to_square) for m in game.moves] == [("e2", "e4"), ("e7", "e5"), ("g1", "f3")]
    assert [m.fen for m in game.moves] == _fens_after(["e4", "e5", "Nf3"])


def test_parsed_game_headers_are_read_only():
    source_headers = {"Event": "A"}
    game = ParsedGame(headers=source_headers, moves=(), initial_fen=STANDARD_START_FEN)
    source_headers["Event"] = "changed"

    assert game.headers == {"Event": "A"}
    with pytest.raises(TypeError):
        game.headers["Event"] = "B"


def test_move_numbers_follow_ply_index():
    outcome = GameParser().parse("1. d4 d5 2. c4 e6 3. Nc3 Nf6 4. Bg5 *")

    moves = outcome.game.moves
    assert len(moves) == 7
    for ply, move in enumerate(moves):
        assert move.move_number == ply // 2 + 1
        assert move.is_white == (ply % 2 == 0)


def test_parse_game_from_fen():
    pgn_string = (
        '[Event "Test Game From FEN"]\n'
        '[FEN "rnbqkbnr/pppp1ppp/8/4p3/4P3/8/PPPP1PPP/RNBQKBNR w KQkq - 0 2"]\n'
        '[SetUp "1"]\n\n'
        '2. Nf3 Nc6 3. Bb5 a6 *'
    )

    game = GameParser().parse(pgn_string).game

    assert game.initial_fen == "rnbqkbnr/pppp1ppp/8/4p3/4P3/8/PPPP1PPP/RNBQKBNR w KQkq - 0 2"
    assert [m.san for m in game.moves] == ["Nf3", "Nc6", "Bb5", "a6"]
    assert [m.fen for m in game.moves] == _fens_after(["Nf3", "Nc6", "Bb5", "a6"], game.initial_fen)


def test_variations_are_excluded_from_the_mainline():
    outcome = GameParser().parse("1. e4 (1. d4 d5 (1... Nf6)) e5 2. Nf3 *")

    assert outcome.kind is ParseOutcomeKind.FULL
    assert [m.san for m in outcome.game.moves] == ["e4", "e5", "Nf3"]


def test_comments_are_attached_to_preceding_move():
    outcome = GameParser().parse('[Event "Lesson"]\n\n1. e4 {Best by test} e5 2. Nf3 {Develops a piece} *')

    comments = [m.comment for m in outcome.game.moves]
    assert comments == ["Best by test", None, "Develops a piece"]


def test_annotation_glyphs_are_kept_as_nags():
    outcome = GameParser().parse("1. e4! e5? 2. Nf3 $14 *")

    moves = outcome.game.moves
    assert moves[0].nag == (1,)
    assert moves[1].nag == (2,)
    assert moves[2].nag == (14,)
    assert [m.san for m in moves] == ["e4", "e5", "Nf3"]


def test_comment_only_movetext_is_position_only():
    outcome = GameParser().parse('[Event "Intro"]\n\n{Just a diagram today} (1. e4 e5)')

    assert outcome.kind is ParseOutcomeKind.POSITION_ONLY
    assert outcome.game.moves == ()
    assert outcome.game.initial_fen == STANDARD_START_FEN


def test_valid_fen_with_illegal_moves_degrades_to_position_only():
    pgn_string = f'[Event "Puzzle"]\n[FEN "{PUZZLE_FEN}"]\n\n1. e5 *'

    outcome = GameParser().parse(pgn_string)

    assert outcome.kind is ParseOutcomeKind.POSITION_ONLY
    assert outcome.stages == (ParseStage.RAW_ATTEMPT, ParseStage.SANITIZED_ATTEMPT,
                              ParseStage.POSITION_ONLY_FALLBACK)
    assert outcome.game.moves == ()
    assert outcome.game.initial_fen == PUZZLE_FEN
    assert outcome.game.is_position_only


def test_illegal_moves_without_fen_are_unparseable():
    outcome = GameParser().parse('[Event "Broken"]\n\n1. e4 e5 2. Ke3 *')

    assert outcome.kind is ParseOutcomeKind.UNPARSEABLE
    assert outcome.game is None
    assert outcome.stages[-1] is ParseStage.UNPARSEABLE
    assert outcome.error


def test_parse_never_raises_on_garbage():
    outcome = GameParser().parse("[[[ {{ ((( ;;; $$$ ")

    assert outcome.kind is ParseOutcomeKind.UNPARSEABLE
    assert outcome.game is None


@pytest.mark.parametrize("pgn_string", [
    "hello world this is not chess",
    '[Event "A"]\n\nfoo bar',
    '[Event "Notes"]\n[White "Coach"]\n\nRead chapter two before class. *',
])
def test_text_without_moves_is_unparseable(pgn_string):
    outcome = GameParser().parse(pgn_string)

    assert outcome.kind is ParseOutcomeKind.UNPARSEABLE
    assert outcome.stages == (ParseStage.RAW_ATTEMPT, ParseStage.SANITIZED_ATTEMPT, ParseStage.UNPARSEABLE)
    assert outcome.game is None


def test_text_without_moves_keeps_a_valid_fen_as_position_only():
    outcome = GameParser().parse(f'[Event "Diagram"]\n[FEN "{PUZZLE_FEN}"]\n\nWhite to play and win')

    assert outcome.kind is ParseOutcomeKind.POSITION_ONLY
    assert outcome.stages[-1] is ParseStage.POSITION_ONLY_FALLBACK
    assert outcome.game.initial_fen == PUZZLE_FEN


@pytest.mark.parametrize("movetext", ["*", "1-0", "0-1", "1/2-1/2", "{Draw agreed} 1/2-1/2"])
def test_result_only_movetext_is_position_only(movetext):
    outcome = GameParser().parse(f'[Event "Adjourned"]\n\n{movetext}')

    assert outcome.kind is ParseOutcomeKind.POSITION_ONLY
    assert outcome.stages == (ParseStage.POSITION_ONLY_FALLBACK,)
    assert outcome.game.headers["Event"] == "Adjourned"
    assert outcome.game.moves == ()


def test_extract_headers_last_duplicate_wins():
    headers = extract_headers('[Event "First"]\n[White "A"]\n[Event "Second"]')
    assert headers == {"Event": "Second", "White": "A"}


def test_split_header_block_handles_several_tags_per_line():
    header_block, movetext = split_header_block('[Event "A"] [Site "B"]\n\n1. e4 *')

    assert header_block == '[Event "A"] [Site "B"]'
    assert movetext == "1. e4 *"


def test_strip_variations_tolerates_unbalanced_parentheses():
    assert strip_variations("1. e4 (1. d4 (1. c4)) e5").split() == ["1.", "e4", "e5"]
    assert strip_variations("1. e4 ) e5 2. Nf3").split() == ["1.", "e4", "e5", "2.", "Nf3"]


def test_sanitize_movetext():
    raw = "1. e4! {main idea} e5?! ; a line comment\n2. Nf3 $1 (2. f4 exf4) Nc6 *"
    assert sanitize_movetext(raw) == "e4 e5 Nf3 Nc6"
    assert sanitize_movetext("12...Nf6 13.Bxf6 1-0") == "Nf6 Bxf6"


@pytest.mark.parametrize("stage, succeeded, has_valid_fen, expected", [
    (ParseStage.RAW_ATTEMPT, True, False, ParseStage.COMPLETE),
    (ParseStage.RAW_ATTEMPT, False, False, ParseStage.SANITIZED_ATTEMPT),
    (ParseStage.SANITIZED_ATTEMPT, True, True, ParseStage.COMPLETE),
    (ParseStage.SANITIZED_ATTEMPT, False, True, ParseStage.POSITION_ONLY_FALLBACK),
    (ParseStage.SANITIZED_ATTEMPT, False, False, ParseStage.UNPARSEABLE),
])
def test_next_parse_stage(stage, succeeded, has_valid_fen, expected):
    assert next_parse_stage(stage, succeeded, has_valid_fen) is expected


def test_next_parse_stage_rejects_terminal_stage():
    with pytest.raises(ValueError):
        next_parse_stage(ParseStage.COMPLETE, succeeded=True, has_valid_fen=False)
