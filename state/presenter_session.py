# state/presenter_session.py
"""
Defines the state model of the secondary, read-only presenter surface.
"""
from typing import Optional, Tuple

import structlog
from PySide6.QtCore import QObject, Signal

from chess_presenter.core.game_display import format_move_number
from chess_presenter.core.pgn_parser import STANDARD_START_FEN
from chess_presenter.exceptions import StateDecodeError, StorageError
from chess_presenter.orchestration.state_replicator import StateReplicator, StateSubscription
from chess_presenter.services.state_store import ViewerStateStore, decode_viewer_state
from chess_presenter.types import BoardOrientation, RenderRequest, ViewerState


class PresenterSession(QObject):
    """
    Mirrors whatever `ViewerState` the primary viewer last wrote.

    The presenter never writes to the shared store. It loads the current
    snapshot once on activation, then follows the replication subscription
    until it is deactivated.
    """

    logger = structlog.get_logger()

    state_changed = Signal(object)  # Emits Optional[ViewerState]

    def __init__(self, state_store: ViewerStateStore, replicator: StateReplicator, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._state_store = state_store
        self._replicator = replicator
        self._state: Optional[ViewerState] = None
        self._subscription: Optional[StateSubscription] = None
        self.show_move_info: bool = False

    @property
    def state(self) -> Optional[ViewerState]:
        return self._state

    @property
    def is_synced(self) -> bool:
        """True while a viewer state is on display."""
        return self._state is not None

    @property
    def is_active(self) -> bool:
        return self._subscription is not None

    async def activate(self) -> None:
        """
        Loads the current snapshot and starts following changes. Activating twice is a no-op.

        A snapshot that cannot be read or decoded is treated as "no state yet";
        the subscription delivers the stored state once it is readable.
        """
        if self._subscription is not None:
            return
        raw: Optional[str] = None
        try:
            raw = await self._state_store.read_viewer_state_raw()
        except StorageError as e:
            self.logger.warning("Could not read viewer state on startup, waiting for the poller.", error=str(e))
        initial: Optional[ViewerState] = None
        if raw is not None:
            try:
                initial = decode_viewer_state(raw)
            except StateDecodeError as e:
                self.logger.warning("Ignoring unreadable viewer state on startup.", error=str(e))
        self.apply_state(initial)
        self._subscription = self._replicator.subscribe(self.apply_state, last_seen_raw=raw)
        self.logger.info("Presenter following viewer state.", synced=self.is_synced)

    async def deactivate(self) -> None:
        if self._subscription is None:
            return
        subscription, self._subscription = self._subscription, None
        await subscription.close()

    async def __aenter__(self) -> "PresenterSession":
        await self.activate()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.deactivate()

    def apply_state(self, state: Optional[ViewerState]) -> None:
        """Adopts a delivered state. Re-delivery of the current state changes nothing."""
        if state == self._state:
            return
        self._state = state
        self.logger.debug("Presenter state updated.", cleared=state is None)
        self.state_changed.emit(state)

    def toggle_move_info(self) -> bool:
        self.show_move_info = not self.show_move_info
        return self.show_move_info

    def render_request(self) -> RenderRequest:
        state = self._state
        highlighted: Tuple[str, ...] = ()
        if state is not None and state.last_move_squares is not None:
            highlighted = (state.last_move_squares.from_square, state.last_move_squares.to_square)
        orientation = (state.board_orientation if state else None) or BoardOrientation.WHITE
        return RenderRequest(
            fen=state.fen if state and state.fen else STANDARD_START_FEN,
            orientation=orientation,
            highlighted_squares=highlighted,
            interactive=False,
        )

    def move_caption(self) -> Optional[str]:
        """e.g. "12. Nf3" or "12... Nf6"; None when there is nothing to show."""
        state = self._state
        if not self.show_move_info or state is None or not state.last_move:
            return None
        return f"{format_move_number(state.move_number, state.is_white_move)} {state.last_move}"
