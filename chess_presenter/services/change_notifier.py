# chess_presenter/services/change_notifier.py
"""
Platform-level change notifications for the shared key-value area.

`watchgod` watches the directory holding the SQLite database. Whenever the
database (or its WAL / journal companions) changes on disk, the notifier
re-reads all keys and yields one `KeyChange` per key whose raw value differs
from the previous snapshot, with `new_value=None` for a removed key.

These notifications are best effort. watchgod polls the file system itself
and debounces changes, so rapid successive writes collapse into one
notification, and a write whose value equals the last snapshot produces none.
Subscribers therefore keep their own polling fallback.
"""
import asyncio
import os
from pathlib import Path
from typing import AsyncIterator, Dict, List

import structlog
from watchgod import awatch
from watchgod.watcher import AllWatcher

from chess_presenter.config.settings import ReplicationSettings
from chess_presenter.exceptions import StorageError
from chess_presenter.services.kv_store import SqliteKeyValueStore
from chess_presenter.types import KeyChange

logger = structlog.get_logger(__name__)


class StorageFileWatcher(AllWatcher):
    """
    A watchgod watcher that only reports changes to one SQLite database and
    its `-wal` / `-journal` / `-shm` companion files.
    """

    def __init__(self, root_path, db_filename: str):
        self.db_filename = db_filename
        super().__init__(root_path)

    def should_watch_dir(self, entry: os.DirEntry) -> bool:
        return False

    def should_watch_file(self, entry: os.DirEntry) -> bool:
        return entry.name.startswith(self.db_filename)


def diff_snapshots(previous: Dict[str, str], current: Dict[str, str]) -> List[KeyChange]:
    """Lists the keys whose raw value changed between two snapshots, in sorted key order."""
    changed_keys = sorted(key for key in previous.keys() | current.keys() if previous.get(key) != current.get(key))
    return [KeyChange(key=key, new_value=current.get(key)) for key in changed_keys]


class WatchgodChangeNotifier:
    """A `ChangeNotifier` driven by file system changes of the SQLite database."""

    def __init__(self, kv_store: SqliteKeyValueStore, settings: ReplicationSettings):
        self._kv_store = kv_store
        self._settings = settings

    @property
    def watch_path(self) -> Path:
        return self._kv_store.path.resolve().parent

    async def changes(self, stop_event: asyncio.Event) -> AsyncIterator[KeyChange]:
        """
        Yields key changes until `stop_event` is set.

        A storage error while reading a snapshot skips that notification;
        the next file change (or the subscriber's poller) catches up.
        """
        previous = await self._kv_store.snapshot()
        watcher = awatch(
            self.watch_path,
            watcher_cls=StorageFileWatcher,
            watcher_kwargs={"db_filename": self._kv_store.path.name},
            debounce=self._settings.watcher_debounce_ms,
            normal_sleep=self._settings.watcher_normal_sleep_ms,
            min_sleep=self._settings.watcher_min_sleep_ms,
            stop_event=stop_event,
        )
        logger.debug("Watching shared storage for changes.", path=str(self.watch_path))

        async for file_changes in watcher:
            try:
                current = await self._kv_store.snapshot()
            except StorageError as e:
                logger.warning("Could not read storage after file change.", error=str(e), files=len(file_changes))
                continue
            for change in diff_snapshots(previous, current):
                yield change
            previous = current
