# state/viewer_session.py
"""
Defines the state model of the primary, interactive viewer surface.
"""
from pathlib import Path
from typing import List, Optional

import structlog
from PySide6.QtCore import QObject, Signal

from chess_presenter.core.pgn_parser import STANDARD_START_FEN
from chess_presenter.exceptions import NoValidGamesError
from chess_presenter.orchestration.pgn_ingester import PgnIngester
from chess_presenter.services.state_store import ViewerStateStore
from chess_presenter.types import (FEN, BoardOrientation, MoveNode, ParsedGame,
                                   SquarePair, ViewerState)


class ViewerSession(QObject):
    """
    Holds the loaded games and the current navigation position.

    Every navigation step writes a fresh `ViewerState` to the shared store,
    which is the only thing the presenter surface ever sees. Without loaded
    games nothing is written.
    """

    logger = structlog.get_logger()

    games_loaded = Signal(int)  # Emits number of games
    position_changed = Signal(object)  # Emits ViewerState
    session_cleared = Signal()

    def __init__(self, ingester: PgnIngester, state_store: ViewerStateStore, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._ingester = ingester
        self._state_store = state_store
        self._games: List[ParsedGame] = []
        self._game_index: int = 0
        self._move_index: int = -1
        self._orientation: BoardOrientation = BoardOrientation.WHITE

    # --- Read access ---

    @property
    def games(self) -> List[ParsedGame]:
        return list(self._games)

    @property
    def game_index(self) -> int:
        return self._game_index

    @property
    def move_index(self) -> int:
        return self._move_index

    @property
    def orientation(self) -> BoardOrientation:
        return self._orientation

    @property
    def current_game(self) -> Optional[ParsedGame]:
        if not self._games:
            return None
        return self._games[self._game_index]

    @property
    def current_moves(self) -> List[MoveNode]:
        game = self.current_game
        return list(game.moves) if game else []

    def current_fen(self) -> FEN:
        """The position on the board: after the current move, else the game's initial position."""
        moves = self.current_moves
        if 0 <= self._move_index < len(moves):
            return moves[self._move_index].fen
        game = self.current_game
        return game.initial_fen if game else STANDARD_START_FEN

    def build_viewer_state(self) -> ViewerState:
        moves = self.current_moves
        move = moves[self._move_index] if 0 <= self._move_index < len(moves) else None
        return ViewerState(
            game_index=self._game_index,
            move_index=self._move_index,
            fen=self.current_fen(),
            last_move=move.san if move else None,
            last_move_squares=SquarePair(move.from_square, move.to_square) if move else None,
            move_number=move.move_number if move else 0,
            is_white_move=move.is_white if move else True,
            board_orientation=self._orientation,
        )

    # --- Loading ---

    async def restore(self) -> int:
        """
        Re-ingests the source text a previous run stored, if any.

        Returns:
            The number of restored games (0 when nothing usable was stored).
        """
        stored = await self._state_store.load_pgn()
        if not stored:
            return 0
        report = self._ingester.ingest(stored)
        if not report.games:
            self.logger.warning("Stored PGN data contains no valid games.", segments=report.segment_count)
            return 0
        self._set_games(report.games)
        self.logger.info(f"Loaded {len(report.games)} game(s) from storage", user_notice=True)
        await self._sync()
        return len(report.games)

    async def load_pgn(self, pgn_text: str) -> int:
        """
        Replaces the loaded games with the games found in `pgn_text`.

        Raises:
            NoValidGamesError: If the text yields no game; the current session is left untouched.
            StorageWriteError: If the text cannot be stored; the current session is left untouched.
        """
        try:
            report = self._ingester.ingest_or_raise(pgn_text)
        except NoValidGamesError:
            self.logger.error("No valid games found in the PGN file", user_notice=True)
            raise
        await self._state_store.save_pgn(pgn_text)
        self._set_games(report.games)
        self.logger.info(f"Loaded {len(report.games)} game(s)", user_notice=True,
                         skipped=report.skipped_count)
        await self._sync()
        return len(report.games)

    async def load_pgn_file(self, pgn_filepath: Path) -> int:
        """
        Raises:
            PgnSourceError: If the file cannot be read.
            NoValidGamesError: If the file contains no valid game.
        """
        pgn_text = await self._ingester.read_source(pgn_filepath)
        return await self.load_pgn(pgn_text)

    async def clear(self) -> None:
        """Drops all games and removes the shared session state."""
        self._games = []
        self._game_index = 0
        self._move_index = -1
        await self._state_store.clear()
        self.logger.info("PGN data cleared", user_notice=True)
        self.session_cleared.emit()

    def _set_games(self, games: List[ParsedGame]) -> None:
        self._games = list(games)
        self._game_index = 0
        self._move_index = -1
        self.games_loaded.emit(len(self._games))

    # --- Navigation ---

    async def select_game(self, index: int) -> None:
        if not self._games:
            return
        if not 0 <= index < len(self._games):
            raise IndexError(f"Game index {index} out of range (0..{len(self._games) - 1}).")
        self._game_index = index
        self._move_index = -1
        await self._sync()

    async def go_to_move(self, index: int) -> None:
        """Moves to ply `index`, clamped to [-1, last ply]."""
        if not self._games:
            return
        last = len(self.current_moves) - 1
        self._move_index = max(-1, min(index, last))
        self.logger.debug("ViewerSession selecting move", requested=index, move_index=self._move_index)
        await self._sync()

    async def go_to_first(self) -> None:
        await self.go_to_move(-1)

    async def go_to_previous(self) -> None:
        await self.go_to_move(self._move_index - 1)

    async def go_to_next(self) -> None:
        await self.go_to_move(self._move_index + 1)

    async def go_to_last(self) -> None:
        await self.go_to_move(len(self.current_moves) - 1)

    async def flip_board(self) -> None:
        self._orientation = self._orientation.flipped()
        if self._games:
            await self._sync()

    async def _sync(self) -> None:
        state = self.build_viewer_state()
        await self._state_store.save_viewer_state(state)
        self.position_changed.emit(state)
