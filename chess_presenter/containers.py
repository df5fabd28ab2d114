# chess_presenter/containers.py
"""
Defines the Dependency Injection (DI) container for the application.

Both display surfaces resolve their services from the same graph; only the
session object at the top differs. Everything that holds a connection or a
Qt signal is a singleton so the viewer's writes and the in-process broadcast
go through one shared instance.
"""

import punq

from chess_presenter.config.settings import ReplicationSettings, Settings, StorageSettings
from chess_presenter.core.comment_associator import RegexCommentAssociator
from chess_presenter.core.pgn_parser import GameParser
from chess_presenter.core.rules_engine import ChessRulesEngine
from chess_presenter.orchestration.pgn_ingester import PgnIngester
from chess_presenter.orchestration.state_replicator import StateReplicator
from chess_presenter.services.change_notifier import WatchgodChangeNotifier
from chess_presenter.services.kv_store import SqliteKeyValueStore
from chess_presenter.services.state_broadcaster import StateBroadcaster
from chess_presenter.services.state_store import ViewerStateStore
from state.presenter_session import PresenterSession
from state.viewer_session import ViewerSession


def get_container(settings: Settings) -> punq.Container:
    """
    Initializes and returns a DI container for one display surface.
    """
    container = punq.Container()

    container.register(Settings, instance=settings)
    container.register(StorageSettings, instance=settings.storage)
    container.register(ReplicationSettings, instance=settings.replication)

    # --- Shared storage and channels ---
    container.register(
        SqliteKeyValueStore,
        factory=lambda: SqliteKeyValueStore(settings.storage.db_filepath, timeout_s=settings.storage.connect_timeout_s),
        scope=punq.Scope.singleton,
    )
    container.register(StateBroadcaster, factory=lambda: StateBroadcaster(), scope=punq.Scope.singleton)
    container.register(
        WatchgodChangeNotifier,
        factory=lambda: WatchgodChangeNotifier(container.resolve(SqliteKeyValueStore), settings.replication),
        scope=punq.Scope.singleton,
    )
    container.register(
        ViewerStateStore,
        factory=lambda: ViewerStateStore(container.resolve(SqliteKeyValueStore), container.resolve(StateBroadcaster)),
        scope=punq.Scope.singleton,
    )
    container.register(
        StateReplicator,
        factory=lambda: StateReplicator(
            container.resolve(SqliteKeyValueStore),
            container.resolve(StateBroadcaster),
            settings.replication,
            notifier=container.resolve(WatchgodChangeNotifier),
        ),
    )

    # --- Ingestion ---
    container.register(
        GameParser,
        factory=lambda: GameParser(engine_factory=ChessRulesEngine, comment_associator=RegexCommentAssociator()),
    )
    container.register(PgnIngester, factory=lambda: PgnIngester(container.resolve(GameParser)))

    # --- Surfaces ---
    container.register(
        ViewerSession,
        factory=lambda: ViewerSession(container.resolve(PgnIngester), container.resolve(ViewerStateStore)),
        scope=punq.Scope.singleton,
    )
    container.register(
        PresenterSession,
        factory=lambda: PresenterSession(container.resolve(ViewerStateStore), container.resolve(StateReplicator)),
        scope=punq.Scope.singleton,
    )

    return container
