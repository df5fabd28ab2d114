# app_controller.py
"""
Contains the controllers that drive the two display surfaces from a terminal.

The viewer controller reads commands from stdin and turns them into
navigation on a `ViewerSession`. The presenter controller activates a
`PresenterSession` and prints every position it receives, optionally also
writing it to an SVG file, until a shutdown signal arrives.
"""

import asyncio
import sys
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional, Set

import aiofiles
import punq
import structlog

from chess_presenter.core.game_display import format_move_number, game_display_name
from chess_presenter.exceptions import NoValidGamesError, PgnSourceError, StorageError
from chess_presenter.services.kv_store import SqliteKeyValueStore
from chess_presenter.types import BoardOrientation, RenderRequest, ViewerState
from chess_presenter.utils.signal_manager import AsyncSignalManager
from state.presenter_session import PresenterSession
from state.viewer_session import ViewerSession
from views.board_renderer import render_svg, render_text

logger = structlog.get_logger(__name__)

HELP_TEXT = """Commands:
  n, next          next move            p, prev          previous move
  first, last      jump to start / end  move N           go to ply N (0 = start)
  game N           select game N        games            list loaded games
  flip             flip the board       show             print the board again
  load PATH        load a PGN file      clear            clear all games
  help             this text            quit             leave the viewer"""


def describe_state(state: ViewerState) -> str:
    """One status line under the board, e.g. "Game 1, 2. Nf3"."""
    if state.last_move is None:
        return f"Game {state.game_index + 1}, start position"
    return f"Game {state.game_index + 1}, {format_move_number(state.move_number, state.is_white_move)} {state.last_move}"


async def stdin_lines() -> AsyncIterator[str]:
    """Yields stdin lines without blocking the event loop (POSIX pipes and terminals only)."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    while line := await reader.readline():
        yield line.decode("utf-8", errors="replace")


class ViewerCommandLoop:
    """Interprets the viewer's text commands."""

    def __init__(self, session: ViewerSession, output: Callable[[str], None] = print):
        self._session = session
        self._output = output
        self._commands: Dict[str, Callable[[str], Awaitable[None]]] = {
            "n": self._next, "next": self._next,
            "p": self._previous, "prev": self._previous,
            "first": self._first,
            "last": self._last,
            "move": self._move,
            "game": self._game,
            "games": self._games,
            "flip": self._flip,
            "show": self._show,
            "load": self._load,
            "clear": self._clear,
            "help": self._help,
        }
        session.position_changed.connect(self._print_state)

    async def run(self, lines: AsyncIterator[str]) -> None:
        async for line in lines:
            if not await self.handle_command(line):
                break

    async def handle_command(self, line: str) -> bool:
        """
        Executes one command line.

        Returns:
            False once the user asked to quit, True otherwise.
        """
        name, _, argument = line.strip().partition(" ")
        name = name.lower()
        if not name:
            return True
        if name in ("q", "quit", "exit"):
            return False
        handler = self._commands.get(name)
        if handler is None:
            self._output(f"Unknown command '{name}'. Type 'help' for a list of commands.")
            return True
        try:
            await handler(argument.strip())
        except (NoValidGamesError, PgnSourceError) as e:
            self._output(f"Error: {e}")
        except ValueError:
            self._output(f"'{name}' expects a number.")
        except IndexError as e:
            self._output(str(e))
        except StorageError as e:
            logger.error("Shared storage operation failed.", command=name, error=str(e))
            self._output(f"Storage error: {e}")
        return True

    def _require_games(self) -> bool:
        if not self._session.games:
            self._output("No games loaded. Use 'load PATH' first.")
            return False
        return True

    async def _next(self, _: str) -> None:
        if self._require_games():
            await self._session.go_to_next()

    async def _previous(self, _: str) -> None:
        if self._require_games():
            await self._session.go_to_previous()

    async def _first(self, _: str) -> None:
        if self._require_games():
            await self._session.go_to_first()

    async def _last(self, _: str) -> None:
        if self._require_games():
            await self._session.go_to_last()

    async def _move(self, argument: str) -> None:
        # Plies are shown 1-based, so "move 0" is the start position.
        if self._require_games():
            await self._session.go_to_move(int(argument) - 1)

    async def _game(self, argument: str) -> None:
        if self._require_games():
            await self._session.select_game(int(argument) - 1)

    async def _games(self, _: str) -> None:
        if not self._require_games():
            return
        for index, game in enumerate(self._session.games):
            marker = "*" if index == self._session.game_index else " "
            self._output(f"{marker} {index + 1}. {game_display_name(game, index)} ({len(game.moves)} plies)")

    async def _flip(self, _: str) -> None:
        await self._session.flip_board()
        if not self._session.games:
            self._output(f"Board orientation: {self._session.orientation.value}")

    async def _show(self, _: str) -> None:
        if self._require_games():
            self._print_state(self._session.build_viewer_state())

    async def _load(self, argument: str) -> None:
        if not argument:
            self._output("Usage: load PATH")
            return
        await self._session.load_pgn_file(Path(argument).expanduser())

    async def _clear(self, _: str) -> None:
        await self._session.clear()

    async def _help(self, _: str) -> None:
        self._output(HELP_TEXT)

    def _print_state(self, state: ViewerState) -> None:
        highlighted = ()
        if state.last_move_squares is not None:
            highlighted = (state.last_move_squares.from_square, state.last_move_squares.to_square)
        request = RenderRequest(
            fen=state.fen,
            orientation=state.board_orientation or BoardOrientation.WHITE,
            highlighted_squares=highlighted,
            interactive=True,
        )
        self._output(render_text(request))
        self._output(describe_state(state))


class ViewerController:
    """Runs the primary surface until the user quits, stdin closes or a shutdown signal arrives."""

    def __init__(self, container: punq.Container, output: Callable[[str], None] = print):
        self._container = container
        self._output = output

    async def run(self, pgn_filepath: Optional[Path] = None,
                  lines: Optional[AsyncIterator[str]] = None) -> None:
        kv_store = self._container.resolve(SqliteKeyValueStore)
        session = self._container.resolve(ViewerSession)
        command_loop = ViewerCommandLoop(session, output=self._output)
        stop_event = asyncio.Event()

        async with kv_store, AsyncSignalManager(stop_event):
            if pgn_filepath is not None:
                try:
                    await session.load_pgn_file(pgn_filepath)
                except (NoValidGamesError, PgnSourceError) as e:
                    self._output(f"Error: {e}")
            if not session.games:
                await session.restore()

            self._output("Type 'help' for a list of commands.")
            loop_task = asyncio.create_task(command_loop.run(lines if lines is not None else stdin_lines()))
            stop_task = asyncio.create_task(stop_event.wait())
            done, pending = await asyncio.wait({loop_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            if loop_task in done:
                loop_task.result()
        logger.info("Viewer stopped.")


class PresenterController:
    """
    Runs the secondary surface until a shutdown signal arrives.

    Every displayed position is printed, and, when `svg_filepath` is given,
    also written to that file as an SVG board for a browser or image viewer.
    """

    def __init__(self, container: punq.Container, output: Callable[[str], None] = print,
                 svg_filepath: Optional[Path] = None):
        self._container = container
        self._output = output
        self._svg_filepath = svg_filepath
        self._svg_lock = asyncio.Lock()
        self._svg_writes: Set[asyncio.Task] = set()

    def _print_state(self, session: PresenterSession) -> None:
        if session.state is None:
            self._output("Waiting for the viewer...")
        else:
            self._output(render_text(session.render_request()))
            caption = session.move_caption()
            if caption:
                self._output(caption)
        if self._svg_filepath is not None:
            task = asyncio.ensure_future(self._write_svg(session.render_request()))
            self._svg_writes.add(task)
            task.add_done_callback(self._svg_writes.discard)

    async def _write_svg(self, request: RenderRequest) -> None:
        # The lock keeps writes in the order the positions arrived.
        async with self._svg_lock:
            try:
                async with aiofiles.open(self._svg_filepath, "w", encoding="utf-8") as f:
                    await f.write(render_svg(request))
            except OSError as e:
                logger.error("Could not write board SVG.", path=str(self._svg_filepath), error=str(e))

    async def run(self, show_move_info: bool = False, stop_event: Optional[asyncio.Event] = None) -> None:
        kv_store = self._container.resolve(SqliteKeyValueStore)
        session = self._container.resolve(PresenterSession)
        session.show_move_info = show_move_info
        session.state_changed.connect(lambda _state: self._print_state(session))
        stop_event = stop_event or asyncio.Event()

        async with kv_store, AsyncSignalManager(stop_event), session:
            if not session.is_synced:
                self._print_state(session)
            await stop_event.wait()
        if self._svg_writes:
            await asyncio.gather(*self._svg_writes)
        logger.info("Presenter stopped.")
