# tests/utils/test_signal_manager.py
import asyncio
import os
import signal

import pytest

from chess_presenter.utils.signal_manager import AsyncSignalManager


@pytest.mark.asyncio
async def test_sigterm_sets_shutdown_event():
    stop_event = asyncio.Event()

    async with AsyncSignalManager(stop_event):
        os.kill(os.getpid(), signal.SIGTERM)
        await asyncio.wait_for(stop_event.wait(), timeout=2.0)

    assert stop_event.is_set()
