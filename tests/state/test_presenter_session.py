# tests/state/test_presenter_session.py
import asyncio
from unittest.mock import AsyncMock

import chess
import pytest
import pytest_asyncio

from chess_presenter.config.settings import ReplicationSettings
from chess_presenter.exceptions import StorageReadError
from chess_presenter.orchestration.state_replicator import StateReplicator
from chess_presenter.services.kv_store import SqliteKeyValueStore
from chess_presenter.services.state_broadcaster import StateBroadcaster
from chess_presenter.services.state_store import ViewerStateStore
from chess_presenter.types import VIEWER_STATE_KEY, BoardOrientation, SquarePair, ViewerState
from state.presenter_session import PresenterSession

AFTER_NF3 = ViewerState(
    game_index=0, move_index=2, fen="rnbqkbnr/pppp1ppp/8/4p3/4P3/5N2/PPPP1PPP/RNBQKB1R b KQkq - 1 2",
    last_move="Nf3", last_move_squares=SquarePair("g1", "f3"), move_number=2, is_white_move=True,
    board_orientation=BoardOrientation.BLACK,
)
AFTER_NC6 = ViewerState(
    game_index=0, move_index=3, fen="r1bqkbnr/pppp1ppp/2n5/4p3/4P3/5N2/PPPP1PPP/RNBQKB1R w KQkq - 2 3",
    last_move="Nc6", last_move_squares=SquarePair("b8", "c6"), move_number=2, is_white_move=False,
)


async def wait_until(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met in time.")
        await asyncio.sleep(0.01)


@pytest_asyncio.fixture
async def surfaces(tmp_path):
    """A viewer-side store and a presenter session on separate connections."""
    db_path = tmp_path / "state.db"
    async with SqliteKeyValueStore(db_path) as viewer_kv, SqliteKeyValueStore(db_path) as presenter_kv:
        viewer_store = ViewerStateStore(viewer_kv, StateBroadcaster())
        broadcaster = StateBroadcaster()
        replicator = StateReplicator(presenter_kv, broadcaster,
                                     ReplicationSettings(poll_interval_ms=20, notifications_enabled=False))
        presenter = PresenterSession(ViewerStateStore(presenter_kv, broadcaster), replicator)
        yield viewer_store, presenter
        await presenter.deactivate()


@pytest.mark.asyncio
async def test_activate_loads_current_state(surfaces):
    viewer_store, presenter = surfaces
    await viewer_store.save_viewer_state(AFTER_NF3)
    emitted = []
    presenter.state_changed.connect(emitted.append)

    async with presenter:
        assert presenter.is_synced
        assert presenter.state == AFTER_NF3
        await asyncio.sleep(0.1)

    assert emitted == [AFTER_NF3]
    assert not presenter.is_active


@pytest.mark.asyncio
async def test_follows_viewer_until_cleared(surfaces):
    viewer_store, presenter = surfaces
    await presenter.activate()
    assert not presenter.is_synced

    await viewer_store.save_viewer_state(AFTER_NF3)
    await wait_until(lambda: presenter.state == AFTER_NF3)
    await viewer_store.save_viewer_state(AFTER_NC6)
    await wait_until(lambda: presenter.state == AFTER_NC6)
    await viewer_store.clear()
    await wait_until(lambda: presenter.state is None)

    assert not presenter.is_synced


@pytest.mark.asyncio
async def test_corrupt_state_on_activation_is_ignored(surfaces):
    viewer_store, presenter = surfaces
    await viewer_store._kv_store.set(VIEWER_STATE_KEY, "garbage")

    await presenter.activate()

    assert presenter.state is None
    assert presenter.is_active


@pytest.mark.asyncio
async def test_unreadable_storage_on_activation_is_caught_up_by_polling(surfaces, monkeypatch):
    viewer_store, presenter = surfaces
    await viewer_store.save_viewer_state(AFTER_NF3)
    monkeypatch.setattr(presenter._state_store, "read_viewer_state_raw",
                        AsyncMock(side_effect=StorageReadError("database is locked")))

    await presenter.activate()

    assert presenter.is_active
    await wait_until(lambda: presenter.state == AFTER_NF3)


def test_identical_redelivery_is_a_no_op():
    presenter = PresenterSession(state_store=None, replicator=None)
    emitted = []
    presenter.state_changed.connect(emitted.append)

    presenter.apply_state(AFTER_NF3)
    presenter.apply_state(AFTER_NF3)
    presenter.apply_state(None)
    presenter.apply_state(None)

    assert emitted == [AFTER_NF3, None]


def test_render_request_is_read_only_and_highlights_last_move():
    presenter = PresenterSession(state_store=None, replicator=None)
    presenter.apply_state(AFTER_NF3)

    request = presenter.render_request()

    assert request.interactive is False
    assert request.fen == AFTER_NF3.fen
    assert request.highlighted_squares == ("g1", "f3")
    assert request.orientation is BoardOrientation.BLACK


def test_render_request_defaults_without_state():
    request = PresenterSession(state_store=None, replicator=None).render_request()

    assert request.fen == chess.STARTING_FEN
    assert request.orientation is BoardOrientation.WHITE
    assert request.highlighted_squares == ()


def test_move_caption_respects_toggle():
    presenter = PresenterSession(state_store=None, replicator=None)
    presenter.apply_state(AFTER_NC6)

    assert presenter.move_caption() is None
    assert presenter.toggle_move_info() is True
    assert presenter.move_caption() == "2... Nc6"
    presenter.apply_state(AFTER_NF3)
    assert presenter.move_caption() == "2. Nf3"
