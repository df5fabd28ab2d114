# chess_presenter/utils/notice_logging.py
"""
Provides a custom structlog processor that forwards user-facing log events
through a PySide6 signal.
"""
from typing import Any

from PySide6.QtCore import QObject, Signal
from structlog.types import EventDict


class NoticeEmitter(QObject):
    """A simple QObject that holds and emits a signal for user-facing notices."""
    notice_generated = Signal(str)


class NoticeProcessor:
    """
    A structlog processor that emits a Qt signal for events flagged with
    `user_notice=True`, e.g. "no valid games found" or "loaded 3 game(s)".
    """
    def __init__(self):
        self.emitter = NoticeEmitter()

    def __call__(self, logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        if event_dict.pop('user_notice', False):
            level = event_dict.get('level', method_name).upper()
            message = event_dict.get('event', 'No message')
            self.emitter.notice_generated.emit(f"{level}: {message}")

        return event_dict
