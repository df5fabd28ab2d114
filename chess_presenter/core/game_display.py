# chess_presenter/core/game_display.py
"""Human-readable labels for games and moves."""
from chess_presenter.types import ParsedGame

_UNKNOWN_PLAYER = "Unknown"


def game_display_name(game: ParsedGame, index: int) -> str:
    """
    Builds the label a game selector shows for one game.

    Players take precedence ("White vs Black (1-0) - Event"), then the event
    ("Event (date)"), then the game's 1-based position in the file.
    """
    white = game.headers.get("White") or _UNKNOWN_PLAYER
    black = game.headers.get("Black") or _UNKNOWN_PLAYER
    event = game.headers.get("Event")
    date = game.headers.get("Date")
    result = game.headers.get("Result") or "*"

    if white != _UNKNOWN_PLAYER or black != _UNKNOWN_PLAYER:
        name = f"{white} vs {black}"
        if result != "*":
            name += f" ({result})"
        if event and event != "?":
            name += f" - {event}"
        return name

    if event and event != "?":
        return f"{event} ({date})" if date else event

    return f"Game {index + 1}"


def format_move_number(move_number: int, is_white: bool) -> str:
    return f"{move_number}." if is_white else f"{move_number}..."
