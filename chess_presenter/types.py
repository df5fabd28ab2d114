# chess_presenter/types.py
"""
A central module for shared data structures and service interfaces (Protocols).
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import (AsyncIterator, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple,
                    TYPE_CHECKING, runtime_checkable, TypeAlias)

if TYPE_CHECKING:
    import asyncio

FEN: TypeAlias = str
SAN: TypeAlias = str

# Fixed keys of the shared key-value area.
PGN_DATA_KEY = "pgn-data"
VIEWER_STATE_KEY = "viewer-state"


class BoardOrientation(str, Enum):
    WHITE = "white"; BLACK = "black"

    def flipped(self) -> "BoardOrientation":
        return BoardOrientation.BLACK if self is BoardOrientation.WHITE else BoardOrientation.WHITE


class ParseStage(str, Enum):
    """States of the per-game parse strategy."""
    RAW_ATTEMPT = "raw_attempt"
    SANITIZED_ATTEMPT = "sanitized_attempt"
    POSITION_ONLY_FALLBACK = "position_only_fallback"
    UNPARSEABLE = "unparseable"
    COMPLETE = "complete"


class ParseOutcomeKind(str, Enum):
    FULL = "full"; POSITION_ONLY = "position_only"; UNPARSEABLE = "unparseable"


class DeliveryChannel(str, Enum):
    """The channel through which a state update reached a subscriber."""
    POLL = "poll"; NOTIFICATION = "notification"; BROADCAST = "broadcast"


# --- PARSING DATA CONTRACTS ---

@dataclass(frozen=True, slots=True)
class EngineMove:
    san: SAN; from_square: str; to_square: str
    nags: Tuple[int, ...] = ()


@dataclass(frozen=True)
class AppliedMoves:
    """The rules engine's view of a successfully applied movetext."""
    moves: List[EngineMove]
    rendered_movetext: str


@dataclass(frozen=True, slots=True)
class MoveNode:
    san: SAN; fen: FEN; move_number: int; is_white: bool
    from_square: str; to_square: str
    comment: Optional[str] = None
    # Reserved for nested alternatives; the mainline-only parser never fills it.
    variations: Optional[Tuple[Tuple["MoveNode", ...], ...]] = None
    nag: Optional[Tuple[int, ...]] = None


@dataclass(frozen=True)
class ParsedGame:
    headers: Mapping[str, str]; moves: Tuple[MoveNode, ...]; initial_fen: FEN

    def __post_init__(self):
        # Header tags are exposed read-only, like the rest of the game.
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    @property
    def is_position_only(self) -> bool:
        return not self.moves


@dataclass(frozen=True)
class ParseOutcome:
    kind: ParseOutcomeKind
    game: Optional[ParsedGame]
    stages: Tuple[ParseStage, ...]
    error: Optional[str] = None


@dataclass
class IngestReport:
    games: List[ParsedGame]; segment_count: int
    skipped_count: int = 0
    warnings: List[str] = field(default_factory=list)


# --- REPLICATED STATE CONTRACTS ---

@dataclass(frozen=True, slots=True)
class SquarePair:
    from_square: str; to_square: str


@dataclass(frozen=True)
class ViewerState:
    """The single "current position" snapshot written by the primary viewer."""
    game_index: int
    move_index: int
    fen: FEN
    last_move: Optional[SAN]
    last_move_squares: Optional[SquarePair]
    move_number: int
    is_white_move: bool
    board_orientation: Optional[BoardOrientation] = None


@dataclass(frozen=True, slots=True)
class StoredPgnData:
    raw: str; timestamp: int


@dataclass(frozen=True, slots=True)
class KeyChange:
    """A platform-level notification that one key of the shared area changed."""
    key: str; new_value: Optional[str]


@dataclass(frozen=True, slots=True)
class RenderRequest:
    """What a board rendering collaborator consumes. It never writes state back."""
    fen: FEN
    orientation: BoardOrientation
    highlighted_squares: Tuple[str, ...]
    interactive: bool


# --- PROTOCOLS: Abstract Interfaces for Services ---
# These define the "contracts" that concrete service implementations must adhere to.
# They enable dependency inversion and allow for easy faking in tests.

@runtime_checkable
class RulesEngine(Protocol):
    """Validates and replays moves, and renders canonical positions."""
    def load_position(self, fen: FEN) -> bool: ...
    def apply_moves(self, text: str) -> Optional[AppliedMoves]: ...
    def play(self, san: SAN) -> EngineMove: ...
    def current_position(self) -> FEN: ...


class CommentAssociator(Protocol):
    """Attaches annotation text from an engine rendering to already-extracted moves."""
    def associate(self, rendered_pgn: str, moves: Sequence[MoveNode]) -> List[MoveNode]: ...


@runtime_checkable
class KeyValueStore(Protocol):
    """The shared durable key-value area both display surfaces can reach."""
    async def get(self, key: str) -> Optional[str]: ...
    async def set(self, key: str, value: str) -> None: ...
    async def remove(self, *keys: str) -> None: ...
    async def snapshot(self) -> Dict[str, str]: ...


class ChangeNotifier(Protocol):
    """Best-effort, platform-level notifications of key changes in the shared area."""
    def changes(self, stop_event: "asyncio.Event") -> AsyncIterator[KeyChange]: ...
