# chess_presenter/orchestration/pgn_ingester.py
"""
Turns raw PGN source text into a batch of structured games.

The ingester splits the text into game segments, parses each one on its own
and aggregates the results. Failures are absorbed at the smallest boundary:
an unparseable game is skipped with a warning and never aborts the batch.
Only a batch that yields zero games is reported to the caller, as a single
`NoValidGamesError`.
"""
from pathlib import Path
from typing import Callable, List, Optional

import aiofiles
import structlog

from chess_presenter.core.pgn_parser import GameParser
from chess_presenter.core.pgn_splitter import split_games
from chess_presenter.exceptions import NoValidGamesError, PgnSourceError
from chess_presenter.types import IngestReport, ParsedGame, ParseOutcomeKind
from chess_presenter.utils import metrics

logger = structlog.get_logger(__name__)


class PgnIngester:
    """Responsible for turning PGN source text into parsed games."""

    def __init__(
        self,
        parser: Optional[GameParser] = None,
        splitter: Callable[[str], List[str]] = split_games,
    ):
        self._parser = parser or GameParser()
        self._splitter = splitter

    def ingest(self, pgn_text: str) -> IngestReport:
        """
        Parses every game found in `pgn_text`.

        Returns:
            An `IngestReport`; its `games` list may be empty.
        """
        segments = self._splitter(pgn_text)
        games: List[ParsedGame] = []
        warnings: List[str] = []

        for segment_index, segment in enumerate(segments):
            outcome = self._parser.parse(segment)
            metrics.GAME_PARSE_OUTCOMES_TOTAL.labels(outcome=outcome.kind.value).inc()

            if outcome.kind is ParseOutcomeKind.UNPARSEABLE or outcome.game is None:
                metrics.GAMES_SKIPPED_TOTAL.labels(reason="unparseable").inc()
                message = f"Skipped game {segment_index + 1}: {outcome.error or 'unparseable'}"
                logger.warning("Skipping unparseable game.", segment_index=segment_index,
                               stages=[stage.value for stage in outcome.stages], error=outcome.error)
                warnings.append(message)
                continue

            games.append(outcome.game)

        logger.debug("PGN ingestion finished.", segments=len(segments), games=len(games))
        return IngestReport(
            games=games,
            segment_count=len(segments),
            skipped_count=len(segments) - len(games),
            warnings=warnings,
        )

    def ingest_or_raise(self, pgn_text: str) -> IngestReport:
        """
        Like `ingest`, but treats an empty batch as an error.

        Raises:
            NoValidGamesError: If not a single game could be parsed.
        """
        report = self.ingest(pgn_text)
        if not report.games:
            metrics.EMPTY_BATCHES_TOTAL.inc()
            raise NoValidGamesError("No valid games found in the PGN text.", segment_count=report.segment_count)
        return report

    async def read_source(self, pgn_filepath: Path) -> str:
        """
        Reads a PGN file without blocking the event loop.

        Raises:
            PgnSourceError: If the file cannot be found or read.
        """
        try:
            async with aiofiles.open(pgn_filepath, "r", encoding="utf-8", errors="replace") as f:
                return await f.read()
        except FileNotFoundError as e:
            raise PgnSourceError(f"Input PGN file not found: {pgn_filepath}") from e
        except OSError as e:
            raise PgnSourceError(f"Failed to read PGN file {pgn_filepath}: {e}") from e
