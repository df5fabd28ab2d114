# chess_presenter/services/state_store.py
"""
Serializes the viewer's current state and source text to and from the shared
key-value area.

Two keys are used:

* `pgn-data`: `{"raw": <original source text>, "timestamp": <epoch ms>}`
* `viewer-state`: the current `ViewerState` as camelCase JSON.

Only a single snapshot is kept (last write wins, no history). Reads absorb
decode failures and report them as "no state present".
"""

import json
import time
from typing import Any, Dict, Optional

import structlog

from chess_presenter.exceptions import StateDecodeError
from chess_presenter.services.state_broadcaster import StateBroadcaster
from chess_presenter.types import (PGN_DATA_KEY, VIEWER_STATE_KEY, BoardOrientation,
                                   KeyValueStore, SquarePair, StoredPgnData, ViewerState)
from chess_presenter.utils import metrics

logger = structlog.get_logger(__name__)


def viewer_state_to_dict(state: ViewerState) -> Dict[str, Any]:
    squares = state.last_move_squares
    return {
        "gameIndex": state.game_index,
        "moveIndex": state.move_index,
        "fen": state.fen,
        "lastMove": state.last_move,
        "lastMoveSquares": {"from": squares.from_square, "to": squares.to_square} if squares else None,
        "moveNumber": state.move_number,
        "isWhiteMove": state.is_white_move,
        "boardOrientation": state.board_orientation.value if state.board_orientation else None,
    }


def encode_viewer_state(state: ViewerState) -> str:
    """Serializes a `ViewerState`. Equal states always encode to identical text."""
    return json.dumps(viewer_state_to_dict(state), separators=(",", ":"))


def decode_viewer_state(raw: str) -> ViewerState:
    """
    Parses a stored viewer state.

    Raises:
        StateDecodeError: If `raw` is not valid JSON or misses required fields.
    """
    try:
        data = json.loads(raw)
        squares = data.get("lastMoveSquares")
        orientation = data.get("boardOrientation")
        state = ViewerState(
            game_index=int(data["gameIndex"]),
            move_index=int(data["moveIndex"]),
            fen=str(data["fen"]),
            last_move=data.get("lastMove"),
            last_move_squares=SquarePair(from_square=squares["from"], to_square=squares["to"]) if squares else None,
            move_number=int(data["moveNumber"]),
            is_white_move=bool(data["isWhiteMove"]),
            board_orientation=BoardOrientation(orientation) if orientation else None,
        )
    except (json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as e:
        raise StateDecodeError(f"Stored viewer state is corrupt: {e}") from e
    return state


def encode_pgn_data(data: StoredPgnData) -> str:
    return json.dumps({"raw": data.raw, "timestamp": data.timestamp})


def decode_pgn_data(raw: str) -> StoredPgnData:
    """
    Raises:
        StateDecodeError: If `raw` is not a valid `pgn-data` record.
    """
    try:
        data = json.loads(raw)
        return StoredPgnData(raw=str(data["raw"]), timestamp=int(data["timestamp"]))
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        raise StateDecodeError(f"Stored PGN data is corrupt: {e}") from e


class ViewerStateStore:
    """Reads and writes the two shared keys and announces writes in-process."""

    def __init__(self, kv_store: KeyValueStore, broadcaster: StateBroadcaster):
        self._kv_store = kv_store
        self._broadcaster = broadcaster

    async def save_pgn(self, raw: str, timestamp_ms: Optional[int] = None) -> None:
        """Stores the original source text together with its load time."""
        if timestamp_ms is None:
            timestamp_ms = int(time.time() * 1000)
        await self._kv_store.set(PGN_DATA_KEY, encode_pgn_data(StoredPgnData(raw=raw, timestamp=timestamp_ms)))

    async def load_pgn(self) -> Optional[str]:
        """Returns the stored source text, or None if absent or unreadable."""
        raw = await self._kv_store.get(PGN_DATA_KEY)
        if raw is None:
            return None
        try:
            return decode_pgn_data(raw).raw
        except StateDecodeError as e:
            metrics.STATE_DECODE_FAILURES_TOTAL.labels(key=PGN_DATA_KEY).inc()
            logger.warning("Ignoring unreadable stored PGN data.", error=str(e))
            return None

    async def save_viewer_state(self, state: ViewerState) -> None:
        """
        Overwrites the current snapshot, then broadcasts it in-process.

        The broadcast only happens after the write committed, so a listener
        never sees a state that the shared area does not hold.
        """
        await self._kv_store.set(VIEWER_STATE_KEY, encode_viewer_state(state))
        metrics.STATE_WRITES_TOTAL.inc()
        logger.debug("Viewer state saved.", game_index=state.game_index, move_index=state.move_index)
        self._broadcaster.state_changed.emit(state)

    async def read_viewer_state_raw(self) -> Optional[str]:
        return await self._kv_store.get(VIEWER_STATE_KEY)

    async def load_viewer_state(self) -> Optional[ViewerState]:
        """Returns the current snapshot, or None if absent or unreadable."""
        raw = await self.read_viewer_state_raw()
        if raw is None:
            return None
        try:
            return decode_viewer_state(raw)
        except StateDecodeError as e:
            metrics.STATE_DECODE_FAILURES_TOTAL.labels(key=VIEWER_STATE_KEY).inc()
            logger.warning("Ignoring unreadable stored viewer state.", error=str(e))
            return None

    async def clear(self) -> None:
        """Removes both keys at once and broadcasts the end of the session."""
        await self._kv_store.remove(PGN_DATA_KEY, VIEWER_STATE_KEY)
        logger.info("Shared session state cleared.")
        self._broadcaster.state_changed.emit(None)
