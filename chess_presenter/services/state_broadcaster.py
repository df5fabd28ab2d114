# chess_presenter/services/state_broadcaster.py
"""
The in-process broadcast channel for viewer state changes.

File-change notifications for the shared storage reach other processes, but
they are not reliable for listeners living in the writer's own process. The
writer therefore also emits the already-decoded state on this signal right
after every write.
"""
from typing import Optional

from PySide6.QtCore import QObject, Signal


class StateBroadcaster(QObject):
    """Emits the decoded `ViewerState` after each write, or None after a clear."""

    state_changed = Signal(object)

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)
