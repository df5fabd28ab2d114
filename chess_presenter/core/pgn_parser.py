# chess_presenter/core/pgn_parser.py
"""
Turns one game's PGN text into the application's `ParsedGame` contract.

The parser is built for real-world, lesson-style notation rather than strict
PGN. Each game goes through an explicit strategy:

    RAW_ATTEMPT -> SANITIZED_ATTEMPT -> POSITION_ONLY_FALLBACK | UNPARSEABLE

The original movetext is tried first so that comments and annotation glyphs
survive. If the rules engine rejects it, a sanitized mainline-only copy is
tried. If that fails too, a game carrying a valid FEN header is still kept as
a position-only game (useful for puzzle entries), and anything else is
reported as unparseable. A parse failure never escapes the game's boundary.
"""
import re
from typing import Callable, Dict, List, Optional, Tuple

import chess
import structlog

from chess_presenter.core.comment_associator import RegexCommentAssociator
from chess_presenter.core.rules_engine import ChessRulesEngine
from chess_presenter.exceptions import PgnParsingError
from chess_presenter.types import (FEN, CommentAssociator, MoveNode, ParsedGame,
                                   ParseOutcome, ParseOutcomeKind, ParseStage, RulesEngine)

logger = structlog.get_logger(__name__)

STANDARD_START_FEN: FEN = chess.STARTING_FEN

_HEADER_RE = re.compile(r'\[(\w+)\s+"([^"]*)"\]')
_HEADER_LINE_RE = re.compile(r'^[ \t]*(?:\[\w+\s+"[^"]*"\][ \t]*)+$', re.MULTILINE)
_BRACE_COMMENT_RE = re.compile(r"\{[^}]*\}")
_LINE_COMMENT_RE = re.compile(r";[^\n]*")
_NAG_RE = re.compile(r"\$\d+")
_MOVE_SUFFIX_RE = re.compile(r"[!?]+")
_MOVE_NUMBER_RE = re.compile(r"\b\d+\.+")
_RESULT_RE = re.compile(r"(?<!\S)(?:1-0|0-1|1/2-1/2|\*)(?!\S)")
_WHITESPACE_RE = re.compile(r"\s+")


def _get_move_number(ply: int) -> int:
    """Calculates the 1-indexed move number from a 0-indexed ply."""
    return ply // 2 + 1


def extract_headers(text: str) -> Dict[str, str]:
    """Collects `[Name "Value"]` pairs; a repeated tag keeps its last value."""
    headers: Dict[str, str] = {}
    for name, value in _HEADER_RE.findall(text):
        headers[name] = value
    return headers


def split_header_block(text: str) -> Tuple[str, str]:
    """Returns the header lines and the remaining movetext of one game."""
    header_lines = [match.group().strip() for match in _HEADER_LINE_RE.finditer(text)]
    movetext = _HEADER_LINE_RE.sub("", text).strip()
    return "\n".join(header_lines), movetext


def strip_variations(movetext: str) -> str:
    """
    Removes parenthesized variations, however deeply nested.

    An unmatched closing parenthesis is dropped and the depth never goes
    below zero, so stray ')' characters cannot swallow the rest of the mainline.
    """
    kept: List[str] = []
    depth = 0
    for char in movetext:
        if char == "(":
            depth += 1
        elif char == ")":
            depth = max(0, depth - 1)
        elif depth == 0:
            kept.append(char)
    return "".join(kept)


def sanitize_movetext(movetext: str) -> str:
    """
    Reduces movetext to bare mainline moves.

    Comments, variations, NAGs, !/? suffixes, move numbers and the game
    termination marker are removed, so a movetext holding nothing but a result
    sanitizes to an empty string.
    """
    text = _BRACE_COMMENT_RE.sub(" ", movetext)
    text = _LINE_COMMENT_RE.sub(" ", text)
    text = strip_variations(text)
    text = _NAG_RE.sub(" ", text)
    text = _MOVE_SUFFIX_RE.sub("", text)
    text = _MOVE_NUMBER_RE.sub(" ", text)
    text = _RESULT_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def next_parse_stage(stage: ParseStage, succeeded: bool, has_valid_fen: bool) -> ParseStage:
    """
    The transition function of the per-game parse strategy.

    Args:
        stage: The stage that just ran.
        succeeded: Whether that stage's rules-engine attempt succeeded.
        has_valid_fen: Whether the game carries a FEN header the engine accepts.

    Raises:
        ValueError: If `stage` is terminal.
    """
    if stage in (ParseStage.RAW_ATTEMPT, ParseStage.SANITIZED_ATTEMPT) and succeeded:
        return ParseStage.COMPLETE
    if stage is ParseStage.RAW_ATTEMPT:
        return ParseStage.SANITIZED_ATTEMPT
    if stage is ParseStage.SANITIZED_ATTEMPT:
        return ParseStage.POSITION_ONLY_FALLBACK if has_valid_fen else ParseStage.UNPARSEABLE
    raise ValueError(f"No transition out of terminal parse stage '{stage.value}'.")


class GameParser:
    """
    Parses single game segments using a rules engine and a comment associator.

    A fresh rules engine is created for every attempt and for every replay, so
    no engine state can leak from one game (or one attempt) into the next.
    """

    def __init__(
        self,
        engine_factory: Callable[[], RulesEngine] = ChessRulesEngine,
        comment_associator: Optional[CommentAssociator] = None,
    ):
        self._engine_factory = engine_factory
        self._comment_associator = comment_associator or RegexCommentAssociator()

    def parse(self, text: str) -> ParseOutcome:
        """
        Parses one game segment. Never raises.

        Args:
            text: A single game's PGN text (headers and movetext).

        Returns:
            A `ParseOutcome` of kind FULL, POSITION_ONLY or UNPARSEABLE, with
            the trail of stages that led to it.
        """
        headers = extract_headers(text)
        fen_header = headers.get("FEN")
        initial_fen = fen_header or STANDARD_START_FEN
        header_block, movetext = split_header_block(text)
        sanitized = sanitize_movetext(movetext)

        if not sanitized:
            game = ParsedGame(headers=headers, moves=(), initial_fen=initial_fen)
            return ParseOutcome(ParseOutcomeKind.POSITION_ONLY, game, (ParseStage.POSITION_ONLY_FALLBACK,))

        has_valid_fen = fen_header is not None and self._engine_factory().load_position(fen_header)
        attempts = {
            ParseStage.RAW_ATTEMPT: text,
            ParseStage.SANITIZED_ATTEMPT: f"{header_block}\n\n{sanitized}" if header_block else sanitized,
        }

        stage = ParseStage.RAW_ATTEMPT
        trail: List[ParseStage] = []
        last_error: Optional[str] = None
        while True:
            trail.append(stage)

            if stage is ParseStage.POSITION_ONLY_FALLBACK:
                logger.info("Keeping game as position-only after failed parse attempts.",
                            event_tag=headers.get("Event"), error=last_error)
                game = ParsedGame(headers=headers, moves=(), initial_fen=initial_fen)
                return ParseOutcome(ParseOutcomeKind.POSITION_ONLY, game, tuple(trail), last_error)

            if stage is ParseStage.UNPARSEABLE:
                return ParseOutcome(ParseOutcomeKind.UNPARSEABLE, None, tuple(trail), last_error)

            try:
                moves = self._attempt(attempts[stage], initial_fen)
            except PgnParsingError as e:
                last_error = str(e)
                stage = next_parse_stage(stage, succeeded=False, has_valid_fen=has_valid_fen)
                continue

            trail.append(next_parse_stage(stage, succeeded=True, has_valid_fen=has_valid_fen))
            game = ParsedGame(headers=headers, moves=tuple(moves), initial_fen=initial_fen)
            return ParseOutcome(ParseOutcomeKind.FULL, game, tuple(trail))

    def _attempt(self, pgn_text: str, initial_fen: FEN) -> List[MoveNode]:
        """
        Runs one rules-engine attempt and replays its history from `initial_fen`.

        Raises:
            PgnParsingError: If the engine rejects the text, finds no moves in it,
                or the replay diverges.
        """
        engine = self._engine_factory()
        if initial_fen != STANDARD_START_FEN and not engine.load_position(initial_fen):
            raise PgnParsingError(f"Invalid FEN header: {initial_fen}")

        applied = engine.apply_moves(pgn_text)
        if applied is None:
            raise PgnParsingError("Rules engine rejected the movetext.")
        if not applied.moves:
            # python-chess skips words it cannot read as moves without reporting them.
            raise PgnParsingError("Movetext contains no playable moves.")

        # Positions are recomputed on a fresh engine instead of trusting the
        # attempt engine's internal board.
        replay = self._engine_factory()
        if not replay.load_position(initial_fen):
            raise PgnParsingError(f"Invalid FEN header: {initial_fen}")

        moves: List[MoveNode] = []
        for ply, engine_move in enumerate(applied.moves):
            played = replay.play(engine_move.san)
            moves.append(MoveNode(
                san=engine_move.san,
                fen=replay.current_position(),
                move_number=_get_move_number(ply),
                is_white=ply % 2 == 0,
                from_square=played.from_square,
                to_square=played.to_square,
                nag=engine_move.nags or None,
            ))

        return self._comment_associator.associate(applied.rendered_movetext, moves)
