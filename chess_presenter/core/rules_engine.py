# chess_presenter/core/rules_engine.py
"""
Wraps `python-chess` behind the application's `RulesEngine` protocol.

This module is an Anti-Corruption Layer: the PGN ingestion code only ever
talks to `load_position`, `apply_moves`, `play` and `current_position`, and
receives the application's own `EngineMove` / `AppliedMoves` contracts.
`python-chess` itself is lenient ("non-strict"): it accepts missing move
numbers, `0-0` castling and odd spacing, and records illegal moves in
`Game.errors` instead of raising, which this adapter turns into a failure
signal.
"""
import io
from typing import List, Optional

import chess
import chess.pgn
import structlog

from chess_presenter.exceptions import PgnParsingError
from chess_presenter.types import FEN, SAN, AppliedMoves, EngineMove

logger = structlog.get_logger(__name__)


class ChessRulesEngine:
    """A stateful, single-use rules engine around one `chess.Board`."""

    def __init__(self):
        self._board = chess.Board()

    def load_position(self, fen: FEN) -> bool:
        """
        Sets up the board from a FEN string.

        Returns:
            False if the FEN is malformed; the previous position is kept.
        """
        try:
            board = chess.Board(fen)
        except ValueError as e:
            logger.debug("Rejected malformed FEN.", fen=fen, error=str(e))
            return False
        self._board = board
        return True

    def apply_moves(self, text: str) -> Optional[AppliedMoves]:
        """
        Parses PGN text (headers optional) and plays its mainline.

        The start position comes from the text's own FEN tag; without one the
        currently loaded position is used.

        Returns:
            The ply history and a canonical rendering of the movetext
            (comments and variations included, headers excluded), or None if
            the text contains an illegal, ambiguous or unreadable move.
        """
        if "[FEN " not in text and self._board.fen() != chess.STARTING_FEN:
            text = f'[FEN "{self._board.fen()}"]\n[SetUp "1"]\n{text}'

        try:
            game = chess.pgn.read_game(io.StringIO(text))
        except (ValueError, AssertionError) as e:
            logger.debug("Rules engine could not read movetext.", error=str(e))
            return None

        if game is None:
            return None
        if game.errors:
            logger.debug("Rules engine rejected movetext.", errors=[str(err) for err in game.errors])
            return None

        try:
            board = game.board()
            history: List[EngineMove] = []
            for node in game.mainline():
                move = node.move
                history.append(EngineMove(
                    san=board.san(move),
                    from_square=chess.square_name(move.from_square),
                    to_square=chess.square_name(move.to_square),
                    nags=tuple(sorted(node.nags)),
                ))
                board.push(move)
        except (AssertionError, ValueError) as e:
            logger.debug("Rules engine failed to replay mainline.", error=str(e))
            return None

        self._board = board
        exporter = chess.pgn.StringExporter(headers=False, variations=True, comments=True)
        return AppliedMoves(moves=history, rendered_movetext=game.accept(exporter))

    def play(self, san: SAN) -> EngineMove:
        """
        Plays a single SAN move on the current position.

        Raises:
            PgnParsingError: If the move is illegal, ambiguous or malformed here.
        """
        try:
            move = self._board.parse_san(san)
        except ValueError as e:
            raise PgnParsingError(f"Cannot play '{san}' from {self._board.fen()}.") from e
        self._board.push(move)
        return EngineMove(
            san=san,
            from_square=chess.square_name(move.from_square),
            to_square=chess.square_name(move.to_square),
        )

    def current_position(self) -> FEN:
        return self._board.fen()
