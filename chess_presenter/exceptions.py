"""
Defines custom exceptions for the Chess Presenter application.

Centralizing exceptions in this module prevents circular dependencies between
the ingestion pipeline, the storage layer and the two display sessions. A
common `ChessPresenterError` base lets callers catch every application error
in one place, while the narrower classes let each boundary absorb exactly the
failures it owns (one game, one storage read).
"""


class ChessPresenterError(Exception):
    """Base class for all application-specific, catchable errors."""
    pass


class PgnError(ChessPresenterError):
    """Base class for errors related to PGN (Portable Game Notation) handling."""
    pass


class PgnParsingError(PgnError):
    """
    Raised for game-level PGN integrity errors, such as illegal moves.

    This never escapes a single game's boundary: the game parser absorbs it
    and resolves the game to a position-only or unparseable outcome.
    """
    pass


class NoValidGamesError(PgnError):
    """
    Raised when a whole ingestion batch produced zero games.

    This is the single user-visible, recoverable notice of the ingestion
    pipeline. Whatever session was on display before is left untouched.

    Attributes:
        segment_count: How many game segments were found in the input.
    """
    def __init__(self, message: str, segment_count: int = 0):
        super().__init__(message)
        self.segment_count = segment_count


class PgnSourceError(PgnError):
    """
    Raised when PGN source text cannot be acquired, e.g. an unreadable file.

    This typically wraps lower-level exceptions like `FileNotFoundError` or `OSError`.
    """
    pass


class StorageError(ChessPresenterError):
    """Base class for errors of the shared key-value area."""
    pass


class StorageConnectionError(StorageError):
    """Raised when the shared storage database cannot be opened or initialized."""
    pass


class StorageReadError(StorageError):
    """Raised when an error occurs while reading a key from shared storage."""
    pass


class StorageWriteError(StorageError):
    """Raised when an error occurs while writing or removing keys in shared storage."""
    pass


class StateDecodeError(StorageError):
    """
    Raised when a stored value cannot be decoded into its data contract.

    Readers treat this as "no state present"; it is never propagated past a
    storage read boundary.
    """
    pass
