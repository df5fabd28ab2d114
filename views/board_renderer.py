# views/board_renderer.py
"""
Turns a `RenderRequest` into something a surface can show.

Both renderers are purely presentational: they read the request and never
touch the game or the shared state.
"""
import chess
import chess.svg

from chess_presenter.types import BoardOrientation, RenderRequest


def _board_and_color(request: RenderRequest):
    color = chess.BLACK if request.orientation is BoardOrientation.BLACK else chess.WHITE
    return chess.Board(request.fen), color


def render_svg(request: RenderRequest, size: int = 400) -> str:
    """SVG markup of the board, with the last move's squares highlighted."""
    board, color = _board_and_color(request)
    lastmove = None
    if len(request.highlighted_squares) == 2:
        from_square, to_square = (chess.parse_square(name) for name in request.highlighted_squares)
        lastmove = chess.Move(from_square, to_square)
    return chess.svg.board(board, orientation=color, lastmove=lastmove, size=size)


def render_text(request: RenderRequest) -> str:
    """A terminal rendering: unicode pieces, rank/file borders and the highlighted squares."""
    board, color = _board_and_color(request)
    lines = [board.unicode(borders=True, empty_square=".", orientation=color)]
    if request.highlighted_squares:
        lines.append("last move: " + " -> ".join(request.highlighted_squares))
    return "\n".join(lines)
