"""
Provides an asynchronous context manager for graceful shutdown signal handling.

The presenter surface has no command loop of its own: it renders whatever the
replication channel delivers until the operator stops it. `AsyncSignalManager`
turns SIGINT (Ctrl+C) and SIGTERM into a shared `asyncio.Event`, so the
surface can leave its `async with` blocks normally and release its polling
timer and listeners instead of being torn down mid-write.
"""

import asyncio
import signal
from typing import Set

import structlog

logger = structlog.get_logger(__name__)


class AsyncSignalManager:
    """
    An async context manager that listens for shutdown signals and sets an event.

    Usage:
        stop_event = asyncio.Event()
        async with AsyncSignalManager(stop_event):
            await stop_event.wait()
    """

    def __init__(self, shutdown_event: asyncio.Event):
        """
        Args:
            shutdown_event: The `asyncio.Event` that will be set when a
                            shutdown signal (SIGINT or SIGTERM) is caught.
        """
        self._shutdown_event = shutdown_event
        self._signals_to_catch: Set[signal.Signals] = {signal.SIGINT, signal.SIGTERM}
        self._registered: Set[signal.Signals] = set()

    def _signal_handler(self, sig: signal.Signals) -> None:
        """Sets the shutdown event once; later signals are only logged."""
        if not self._shutdown_event.is_set():
            logger.info("Shutdown signal received, stopping surface.", signal_name=sig.name)
            self._shutdown_event.set()
        else:
            logger.debug("Repeated shutdown signal ignored.", signal_name=sig.name)

    async def __aenter__(self) -> "AsyncSignalManager":
        """Registers the signal handlers with the running asyncio event loop."""
        loop = asyncio.get_running_loop()
        for sig in self._signals_to_catch:
            try:
                loop.add_signal_handler(sig, self._signal_handler, sig)
                self._registered.add(sig)
            except (ValueError, NotImplementedError, RuntimeError) as e:
                # Windows event loops do not support add_signal_handler.
                logger.warning("Could not register signal handler.", signal_name=sig.name, error=str(e))
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Removes exactly the handlers that were registered on entry."""
        loop = asyncio.get_running_loop()
        for sig in self._registered:
            loop.remove_signal_handler(sig)
        self._registered.clear()
