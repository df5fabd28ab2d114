# tests/utils/test_notice_logging.py
from chess_presenter.utils.notice_logging import NoticeProcessor


def test_user_notices_are_emitted_and_flag_removed():
    processor = NoticeProcessor()
    notices = []
    processor.emitter.notice_generated.connect(notices.append)

    event_dict = processor(None, "info", {"event": "Loaded 2 game(s)", "level": "info", "user_notice": True})

    assert notices == ["INFO: Loaded 2 game(s)"]
    assert "user_notice" not in event_dict


def test_regular_events_pass_through_silently():
    processor = NoticeProcessor()
    notices = []
    processor.emitter.notice_generated.connect(notices.append)

    event_dict = processor(None, "debug", {"event": "Viewer state saved."})

    assert notices == []
    assert event_dict == {"event": "Viewer state saved."}
