# chess_presenter/core/pgn_splitter.py
"""
Segments raw, possibly multi-game PGN text into per-game text blocks.

PGN mandates the Event tag as the first tag of every game, so each
line-anchored `[Event ...]` opens a new segment. Splitting on blank lines is
deliberately avoided: lesson files often put blank lines between header tags
of the same game, which would fragment one game into several phantom ones.
"""
import re
from typing import List

import structlog

logger = structlog.get_logger(__name__)

# `\b` keeps tags such as [EventDate "..."] from opening a segment.
_GAME_START_RE = re.compile(r"^[ \t]*\[Event\b", re.MULTILINE)


def normalize_line_endings(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def split_games(text: str) -> List[str]:
    """
    Splits raw PGN text into per-game segments.

    Args:
        text: Arbitrary raw text in any line-ending convention.

    Returns:
        The non-empty game segments, in input order. Without any Event tag
        the whole (trimmed) input is a single segment. Text ahead of the
        first Event tag (an export banner or intro comment) is dropped.
    """
    normalized = normalize_line_endings(text).strip()
    if not normalized:
        return []

    starts = [match.start() for match in _GAME_START_RE.finditer(normalized)]
    if not starts:
        logger.debug("No Event tag found, treating input as a single game.")
        return [normalized]

    if starts[0] > 0:
        logger.debug("Dropping text ahead of the first Event tag.", preamble_chars=starts[0])
    boundaries = starts + [len(normalized)]

    segments = [normalized[begin:end].strip() for begin, end in zip(boundaries, boundaries[1:])]
    return [segment for segment in segments if segment]
