"""
Geometry/Base movement rules

Key idea: Use strategy pattern to define the movement pattern for each piece type.

* `is_pseudo_legal` answers "does the piece move like that?" (ignores check)
* `is_legal_move` additionally makes sure you do not leave your own king in check
* `is_legal_possession_move` is the restricted pattern used by Ghastly Possession
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional, Self

from src.core.exceptions import IllegalMoveError
from src.core.shared_types import Color, PieceType, PowerUpType
from src.phantom.board import Board, move_piece
from src.phantom.pieces import SLIDING_PIECES, Piece
from src.phantom.square import BOARD_DIMENSIONS, Position

COORDINATE_RE = re.compile(r"^[a-h][1-8][a-h][1-8]$")

KNIGHT_DELTAS: list[tuple[int, int]] = [
    (2, 1),
    (2, -1),
    (-2, 1),
    (-2, -1),
    (1, 2),
    (1, -2),
    (-1, 2),
    (-1, -2),
]
KING_DELTAS: list[tuple[int, int]] = [
    (d_row, d_col)
    for d_row in (-1, 0, 1)
    for d_col in (-1, 0, 1)
    if (d_row, d_col) != (0, 0)
]


@dataclass(frozen=True)
class Move:
    """basic definition of a move to be made"""

    from_pos: Position
    to_pos: Position

    @classmethod
    def from_uci(cls, uci: str) -> Self:
        """
        Coordinate notation
        ---

        examples:
        * "e2e4": move the piece that was on e2 to e4
        * "g8f6": the black knight jumps out
        """
        uci = uci.strip().lower()
        if not COORDINATE_RE.match(uci):
            raise IllegalMoveError(f"Cannot interpret {uci!r} as a move in coordinate notation.")
        return cls(Position.from_algebraic(uci[:2]), Position.from_algebraic(uci[2:4]))

    def to_uci(self) -> str:
        return f"{self.from_pos.to_algebraic()}{self.to_pos.to_algebraic()}"


def pawn_direction(color: Color) -> int:
    """White moves UP the board (towards row 0), black moves DOWN."""
    return -1 if color == Color.WHITE else 1


def pawn_start_row(color: Color) -> int:
    return BOARD_DIMENSIONS[0] - 2 if color == Color.WHITE else 1


def promotion_row(color: Color) -> int:
    return 0 if color == Color.WHITE else BOARD_DIMENSIONS[0] - 1


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


def pieces_between(board: Board, from_pos: Position, to_pos: Position) -> int:
    """
    Count occupied squares strictly between two positions on a straight line or diagonal.
    NOTE: callers make sure the squares actually share a line.
    """
    step_row = _sign(to_pos.row - from_pos.row)
    step_col = _sign(to_pos.col - from_pos.col)
    count = 0
    current = from_pos.offset(step_row, step_col)
    while current != to_pos:
        if not board.is_empty(current):
            count += 1
        current = current.offset(step_row, step_col)
    return count


def is_path_clear(
    board: Board, from_pos: Position, to_pos: Position, spectral: bool
) -> bool:
    """A spectral piece may pass through (not capture) at most one piece."""
    allowed = 1 if spectral else 0
    return pieces_between(board, from_pos, to_pos) <= allowed


# --- MOVEMENT PATTERNS ---
# Signature: (board, from, to, moving piece, spectral move active for this piece)
PatternFn = Callable[[Board, Position, Position, Piece, bool], bool]


def pawn_pattern(
    board: Board, from_pos: Position, to_pos: Position, piece: Piece, spectral: bool
) -> bool:
    """
    A pawn:
    - moves by a single square forward onto an empty square.
    - It can move by two from its starting row, if both squares are empty
    - takes diagonally (only when there is something to take)
    """
    direction = pawn_direction(piece.color)
    d_row = to_pos.row - from_pos.row
    d_col = to_pos.col - from_pos.col
    target = board.get(to_pos)

    if d_col == 0:
        if d_row == direction and target is None:
            return True
        if (
            from_pos.row == pawn_start_row(piece.color)
            and d_row == 2 * direction
            and target is None
            and board.is_empty(from_pos.offset(direction, 0))
        ):
            return True
        return False

    return abs(d_col) == 1 and d_row == direction and target is not None


def knight_pattern(
    board: Board, from_pos: Position, to_pos: Position, piece: Piece, spectral: bool
) -> bool:
    """Knights jump: |delta_row| + |delta_col| = 3, never in a straight line"""
    delta = (to_pos.row - from_pos.row, to_pos.col - from_pos.col)
    return delta in KNIGHT_DELTAS


def bishop_pattern(
    board: Board, from_pos: Position, to_pos: Position, piece: Piece, spectral: bool
) -> bool:
    """Bishops move diagonally: |delta_row| = |delta_col|"""
    if abs(to_pos.row - from_pos.row) != abs(to_pos.col - from_pos.col):
        return False
    return is_path_clear(board, from_pos, to_pos, spectral)


def rook_pattern(
    board: Board, from_pos: Position, to_pos: Position, piece: Piece, spectral: bool
) -> bool:
    """Rooks move either horizontally or vertically"""
    if from_pos.row != to_pos.row and from_pos.col != to_pos.col:
        return False
    return is_path_clear(board, from_pos, to_pos, spectral)


def queen_pattern(
    board: Board, from_pos: Position, to_pos: Position, piece: Piece, spectral: bool
) -> bool:
    """The Queen combines the rook moves and the bishop moves"""
    return rook_pattern(board, from_pos, to_pos, piece, spectral) or bishop_pattern(
        board, from_pos, to_pos, piece, spectral
    )


def king_pattern(
    board: Board, from_pos: Position, to_pos: Position, piece: Piece, spectral: bool
) -> bool:
    """The king can move by a single square at the time."""
    delta = (to_pos.row - from_pos.row, to_pos.col - from_pos.col)
    return delta in KING_DELTAS


# -- STRATEGY PATTERN: MOVEMENT RULES ---
MOVEMENT_RULES: dict[PieceType, PatternFn] = {
    PieceType.PAWN: pawn_pattern,
    PieceType.KNIGHT: knight_pattern,
    PieceType.BISHOP: bishop_pattern,
    PieceType.ROOK: rook_pattern,
    PieceType.QUEEN: queen_pattern,
    PieceType.KING: king_pattern,
}


def is_pseudo_legal(
    board: Board,
    from_pos: Position,
    to_pos: Position,
    active_power_up: Optional[PowerUpType] = None,
) -> bool:
    """
    Does the piece on `from_pos` move like this? Check-safety is ignored.
    ---

    Universal preconditions: destination on the board, not the origin, not occupied by your own piece.
    """
    if not (from_pos.is_within_bounds() and to_pos.is_within_bounds()):
        return False
    if from_pos == to_pos:
        return False

    piece = board.get(from_pos)
    if piece is None:
        return False

    target = board.get(to_pos)
    if target is not None and target.color == piece.color:
        return False

    spectral = (
        active_power_up == PowerUpType.SPECTRAL_MOVE and piece.type in SLIDING_PIECES
    )
    return MOVEMENT_RULES[piece.type](board, from_pos, to_pos, piece, spectral)


def is_king_in_check(board: Board, color: Color) -> bool:
    """
    Is the king of `color` in the line of sight of any opposing piece? (power-ups never count for attacks)
    """
    king_pos = board.locate_king(color)
    return any(
        is_pseudo_legal(board, pos, king_pos, None)
        for pos in board.squares_of(color.opponent)
    )


def is_legal_move(
    board: Board,
    from_pos: Position,
    to_pos: Position,
    active_power_up: Optional[PowerUpType] = None,
) -> bool:
    """
    Pseudo-legal AND does not leave your own king in check.
    ---

    NOTE: kings are never a legal capture target. This lives here (and not in the pattern rules) so the
    check detection can reuse `is_pseudo_legal` to look for attacks on the king square.
    """
    piece = board.get(from_pos) if from_pos.is_within_bounds() else None
    if piece is None:
        return False

    target = board.get(to_pos) if to_pos.is_within_bounds() else None
    if target is not None and target.type == PieceType.KING:
        return False

    if not is_pseudo_legal(board, from_pos, to_pos, active_power_up):
        return False

    simulated, _ = move_piece(board, from_pos, to_pos)
    return not is_king_in_check(simulated, piece.color)


def is_legal_possession_move(board: Board, from_pos: Position, to_pos: Position) -> bool:
    """
    Ghastly Possession: move an enemy pawn or knight without capturing anything.
    ---

    Pawns only get their straight forward pattern. Diagonal pawn moves are capture-only, so they are
    excluded even onto an empty square.
    """
    if not (from_pos.is_within_bounds() and to_pos.is_within_bounds()):
        return False

    piece = board.get(from_pos)
    if piece is None or piece.type not in (PieceType.PAWN, PieceType.KNIGHT):
        return False
    if not board.is_empty(to_pos):
        return False
    if piece.type == PieceType.PAWN and to_pos.col != from_pos.col:
        return False
    return is_pseudo_legal(board, from_pos, to_pos, None)


def is_pawn_on_promotion_row(board: Board, pos: Position) -> bool:
    """check if a pawn stands on the far row for its colour"""
    piece = board.get(pos)
    if piece is None or piece.type != PieceType.PAWN:
        return False
    return pos.row == promotion_row(piece.color)
