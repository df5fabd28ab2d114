# chess_presenter/orchestration/state_replicator.py
"""
Keeps a secondary display converged on the viewer state written by the primary.

There is no direct channel between the two surfaces, only the shared
key-value area and best-effort notifications. Every `StateSubscription`
therefore owns three handles:

* a polling task that re-reads the viewer state key on a fixed interval and
  delivers whenever the raw value differs from the last one it processed
  (the reliability backstop);
* a listener task consuming platform change notifications (fast path for
  writes made by another process);
* a connection to the in-process broadcast signal (fast path for writes made
  in the subscriber's own process).

Delivery is at least once: the same state may arrive through several
channels, and receivers must treat an identical re-delivery as a no-op. A
cleared session is delivered as `None`.
"""

import asyncio
from typing import Callable, List, Optional

import structlog
from PySide6.QtCore import QObject, Slot

from chess_presenter.config.settings import ReplicationSettings
from chess_presenter.exceptions import StateDecodeError, StorageError
from chess_presenter.services.state_broadcaster import StateBroadcaster
from chess_presenter.services.state_store import decode_viewer_state, encode_viewer_state
from chess_presenter.types import (VIEWER_STATE_KEY, ChangeNotifier, DeliveryChannel,
                                   KeyValueStore, ViewerState)
from chess_presenter.utils import metrics

logger = structlog.get_logger(__name__)

StateCallback = Callable[[Optional[ViewerState]], None]


class StateSubscription(QObject):
    """
    One live subscription to viewer state changes.

    Created by `StateReplicator.subscribe` and torn down by exactly one
    `close()` (or by leaving its `async with` block). Teardown always cancels
    the polling task, stops the notification listener and disconnects the
    broadcast, even when some of them already failed.
    """

    def __init__(
        self,
        kv_store: KeyValueStore,
        broadcaster: StateBroadcaster,
        notifier: Optional[ChangeNotifier],
        callback: StateCallback,
        poll_interval_s: float,
        last_seen_raw: Optional[str] = None,
    ):
        super().__init__()
        self._kv_store = kv_store
        self._broadcaster = broadcaster
        self._notifier = notifier
        self._callback = callback
        self._poll_interval_s = poll_interval_s
        self._last_raw = last_seen_raw
        self._stop_event = asyncio.Event()
        self._tasks: List[asyncio.Task] = []
        self._connected = False
        self._closed = False

    @property
    def is_active(self) -> bool:
        return not self._closed

    @property
    def tasks(self) -> List[asyncio.Task]:
        return list(self._tasks)

    def start(self) -> "StateSubscription":
        """Acquires the timer and both listeners. Requires a running event loop."""
        if self._tasks or self._closed:
            raise RuntimeError("A subscription can only be started once.")
        self._broadcaster.state_changed.connect(self._on_broadcast)
        self._connected = True
        self._tasks.append(asyncio.create_task(self._poll_loop(), name="viewer-state-poller"))
        if self._notifier is not None:
            self._tasks.append(asyncio.create_task(self._notification_loop(), name="viewer-state-notifications"))
        return self

    async def close(self) -> None:
        """Releases the timer and both listeners. Closing twice is a no-op."""
        if self._closed:
            return
        self._closed = True
        self._stop_event.set()
        if self._connected:
            try:
                self._broadcaster.state_changed.disconnect(self._on_broadcast)
            except (RuntimeError, TypeError) as e:
                logger.warning("Broadcast listener was already disconnected.", error=str(e))
            self._connected = False
        for task in self._tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.debug("State subscription closed.")

    async def __aenter__(self) -> "StateSubscription":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # --- Channels ---

    @Slot(object)
    def _on_broadcast(self, state: Optional[ViewerState]) -> None:
        if self._closed:
            return
        self._last_raw = encode_viewer_state(state) if state is not None else None
        self._deliver(state, DeliveryChannel.BROADCAST)

    async def _poll_loop(self) -> None:
        while not self._stop_event.is_set():
            await asyncio.sleep(self._poll_interval_s)
            try:
                raw = await self._kv_store.get(VIEWER_STATE_KEY)
            except StorageError as e:
                logger.warning("Polling the shared viewer state failed.", error=str(e))
                continue
            self._consider_raw(raw, DeliveryChannel.POLL)

    async def _notification_loop(self) -> None:
        try:
            async for change in self._notifier.changes(self._stop_event):
                if change.key == VIEWER_STATE_KEY:
                    self._consider_raw(change.new_value, DeliveryChannel.NOTIFICATION)
        except asyncio.CancelledError:
            raise
        except Exception:
            # The poller keeps the subscription converging without notifications.
            logger.error("Change notifications stopped, relying on polling.", exc_info=True)

    # --- Delivery ---

    def _consider_raw(self, raw: Optional[str], channel: DeliveryChannel) -> None:
        """Decodes and delivers `raw` unless it equals the last processed value."""
        if self._closed or raw == self._last_raw:
            return
        self._last_raw = raw
        if raw is None:
            self._deliver(None, channel)
            return
        try:
            state = decode_viewer_state(raw)
        except StateDecodeError as e:
            metrics.STATE_DECODE_FAILURES_TOTAL.labels(key=VIEWER_STATE_KEY).inc()
            logger.warning("Skipping undecodable viewer state.", channel=channel.value, error=str(e))
            return
        self._deliver(state, channel)

    def _deliver(self, state: Optional[ViewerState], channel: DeliveryChannel) -> None:
        metrics.STATE_DELIVERIES_TOTAL.labels(channel=channel.value).inc()
        logger.debug("Delivering viewer state.", channel=channel.value, cleared=state is None)
        try:
            self._callback(state)
        except Exception:
            logger.error("State subscriber callback failed.", channel=channel.value, exc_info=True)


class StateReplicator:
    """Creates subscriptions that propagate the primary's writes to a secondary surface."""

    def __init__(
        self,
        kv_store: KeyValueStore,
        broadcaster: StateBroadcaster,
        settings: ReplicationSettings,
        notifier: Optional[ChangeNotifier] = None,
    ):
        self._kv_store = kv_store
        self._broadcaster = broadcaster
        self._settings = settings
        self._notifier = notifier if settings.notifications_enabled else None

    def subscribe(self, callback: StateCallback, last_seen_raw: Optional[str] = None) -> StateSubscription:
        """
        Starts a subscription. Must be called from within a running event loop.

        Args:
            callback: Receives each new `ViewerState`, or None once the session is cleared.
            last_seen_raw: The raw value the caller already rendered (from its
                           initial load), so the first poll does not re-deliver it.
        """
        subscription = StateSubscription(
            kv_store=self._kv_store,
            broadcaster=self._broadcaster,
            notifier=self._notifier,
            callback=callback,
            poll_interval_s=self._settings.poll_interval_s,
            last_seen_raw=last_seen_raw,
        )
        logger.debug("Starting state subscription.", poll_interval_ms=self._settings.poll_interval_ms,
                     notifications=self._notifier is not None)
        return subscription.start()
