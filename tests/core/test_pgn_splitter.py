# tests/core/test_pgn_splitter.py
from chess_presenter.core.pgn_splitter import normalize_line_endings, split_games


def test_split_two_games():
    pgn = '[Event "Game 1"]\n[White "A"]\n\n1. e4 e5 *\n\n[Event "Game 2"]\n[White "B"]\n\n1. d4 d5 *\n'

    segments = split_games(pgn)

    assert len(segments) == 2
    assert segments[0].startswith('[Event "Game 1"]')
    assert segments[0].endswith("1. e4 e5 *")
    assert segments[1].startswith('[Event "Game 2"]')


def test_blank_lines_inside_headers_do_not_split_a_game():
    pgn = '[Event "Lesson"]\n\n[White "Coach"]\n\n[Black "Student"]\n\n1. e4 *'

    assert split_games(pgn) == [pgn]


def test_event_date_does_not_open_a_game():
    pgn = '[Event "Open"]\n[EventDate "2024.01.01"]\n\n1. e4 *'

    assert len(split_games(pgn)) == 1


def test_input_without_event_tag_is_one_game():
    assert split_games("  1. e4 e5 2. Nf3 Nc6  ") == ["1. e4 e5 2. Nf3 Nc6"]


def test_text_before_first_event_is_dropped():
    segments = split_games('; exported by Tool\n{ intro lesson }\n[Event "A"]\n1. e4 *')

    assert segments == ['[Event "A"]\n1. e4 *']


def test_mixed_line_endings_are_normalized():
    pgn = '[Event "A"]\r\n1. e4 *\r[Event "B"]\r\n1. d4 *'

    segments = split_games(pgn)

    assert segments == ['[Event "A"]\n1. e4 *', '[Event "B"]\n1. d4 *']
    assert normalize_line_endings("a\r\nb\rc") == "a\nb\nc"


def test_empty_and_whitespace_input_yields_no_segments():
    assert split_games("") == []
    assert split_games(" \n\t\r\n ") == []
