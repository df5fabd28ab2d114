# main.py
"""
The main entry point for launching either display surface.

    python main.py viewer [lesson.pgn]   # primary, interactive viewer
    python main.py presenter             # secondary, read-only presenter
    python main.py presenter --svg board.svg
"""
import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from app_controller import PresenterController, ViewerController
from chess_presenter.config.settings import settings
from chess_presenter.containers import get_container
from chess_presenter.utils.logging_config import setup_logging
from chess_presenter.utils.notice_logging import NoticeProcessor


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chess-presenter",
                                     description="Show a PGN lesson on a viewer and a synchronized presenter display.")
    parser.add_argument("--log-level", default=settings.default_log_level,
                        help="Minimum log level (default: %(default)s).")
    parser.add_argument("--db", dest="db_filepath", default=None,
                        help="Path of the shared state database (default: %s)." % settings.storage.db_filepath)
    subparsers = parser.add_subparsers(dest="surface", required=True)

    viewer = subparsers.add_parser("viewer", help="Run the primary, interactive viewer.")
    viewer.add_argument("pgn", nargs="?", type=Path, help="A PGN file to load on start.")

    presenter = subparsers.add_parser("presenter", help="Run the read-only presenter display.")
    presenter.add_argument("--show-move", action="store_true", help="Show the current move under the board.")
    presenter.add_argument("--svg", dest="svg_filepath", type=Path, default=None,
                           help="Also write every displayed board to this SVG file.")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main function to setup and run one surface."""
    args = build_parser().parse_args(argv)

    run_settings = settings
    if args.db_filepath:
        run_settings = settings.model_copy(
            update={"storage": settings.storage.model_copy(update={"db_filepath": args.db_filepath})}
        )

    notice_processor = NoticeProcessor()
    setup_logging(log_level=args.log_level, surface=args.surface,
                  log_file=Path(run_settings.log_file) if run_settings.log_file else None,
                  extra_processors=[notice_processor])
    notice_processor.emitter.notice_generated.connect(print)

    container = get_container(run_settings)
    try:
        if args.surface == "viewer":
            asyncio.run(ViewerController(container).run(pgn_filepath=args.pgn))
        else:
            asyncio.run(PresenterController(container, svg_filepath=args.svg_filepath)
                        .run(show_move_info=args.show_move))
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
