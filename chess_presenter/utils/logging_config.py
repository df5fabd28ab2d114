"""
Configures application-wide structured logging using structlog.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

import structlog
from structlog.types import Processor


def setup_logging(
    log_level: str = "INFO",
    surface: Optional[str] = None,
    log_to_console: bool = True,
    log_file: Optional[Path] = None,
    force_json_console: bool = False,
    extra_processors: Optional[List[Processor]] = None,
) -> None:
    """
    Configures structlog and the standard library root logger together, so that
    records from third-party libraries (python-chess, aiosqlite, watchgod) are
    rendered the same way as the application's own events.

    Args:
        log_level: Minimum level for all handlers.
        surface: The display surface this process runs ("viewer" or
                 "presenter"). Bound into every event so the logs of the two
                 processes sharing one storage file can be told apart.
        log_to_console: Whether to render events to stderr.
        log_file: Optional path of a JSON-lines log file.
        force_json_console: Render console output as JSON instead of the dev renderer.
        extra_processors: Processors run after the shared chain, e.g. the
                          user-notice forwarder.
    """
    if extra_processors is None:
        extra_processors = []

    shared_processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=shared_processors + extra_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    if surface:
        structlog.contextvars.bind_contextvars(surface=surface)

    renderer: Processor
    if force_json_console:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    handlers: List[logging.Handler] = []
    if log_to_console:
        # stdout belongs to the board output of the command-line surfaces.
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(foreign_pre_chain=shared_processors, processor=renderer)
        )
        handlers.append(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                foreign_pre_chain=shared_processors,
                processor=structlog.processors.JSONRenderer(),
            )
        )
        handlers.append(file_handler)

    logging.basicConfig(handlers=handlers, level=log_level.upper(), force=True)
    # python-chess reports every illegal SAN it meets at ERROR; the game parser
    # already summarizes those per game.
    logging.getLogger("chess.pgn").setLevel(logging.CRITICAL)
