# chess_presenter/core/comment_associator.py
"""
Attaches inline annotation text to the move it follows.

`RegexCommentAssociator` works positionally on the rules engine's rendered
movetext rather than walking a parse tree. Moves of variations are still
present in that rendering and are counted like mainline moves, so a comment
next to a variation, or one preceding the first move, can land on the wrong
move or be dropped. That limitation is known and kept; a structural
implementation can replace this class through the `CommentAssociator`
protocol without touching the parser.
"""
import dataclasses
import re
from typing import List, Sequence

from chess_presenter.types import MoveNode

_MOVE_TOKEN_RE = re.compile(r"^[KQRBNP]?[a-h]?[1-8]?x?[a-h][1-8](=[QRBN])?[+#]?$")
_CASTLING_TOKEN_RE = re.compile(r"^O-O(-O)?[+#]?$")
_TOKEN_RE = re.compile(r"\S+")
_BRACE_SPAN_RE = re.compile(r"\{([^}]*)\}")


def is_move_token(token: str) -> bool:
    return bool(_MOVE_TOKEN_RE.match(token) or _CASTLING_TOKEN_RE.match(token))


class RegexCommentAssociator:
    """Shape-matching comment associator over a rendered movetext."""

    def associate(self, rendered_pgn: str, moves: Sequence[MoveNode]) -> List[MoveNode]:
        """
        Returns a copy of `moves` with `comment` set where a brace comment
        follows a counted move in `rendered_pgn`.
        """
        annotated = list(moves)
        move_count = 0
        comment_end = 0

        for token_match in _TOKEN_RE.finditer(rendered_pgn):
            if token_match.start() < comment_end:
                continue
            token = token_match.group()

            if "{" in token:
                brace_offset = token_match.start() + token.index("{")
                span = _BRACE_SPAN_RE.match(rendered_pgn, brace_offset)
                if span is None:
                    # Unterminated brace: nothing after it can be a move.
                    break
                comment_end = span.end()
                if 0 < move_count <= len(annotated):
                    target = annotated[move_count - 1]
                    annotated[move_count - 1] = dataclasses.replace(target, comment=span.group(1).strip())
                continue

            if is_move_token(token):
                move_count += 1

        return annotated
