"""
Check & termination analysis: everything that needs to look at the whole board for one side.
"""

from collections import Counter
from dataclasses import dataclass
from enum import StrEnum
from typing import Optional

from src.core.shared_types import Color, PieceType, PowerUpType
from src.phantom.board import Board, move_piece
from src.phantom.moves import KING_DELTAS, Move, is_king_in_check, is_legal_move
from src.phantom.square import Position, all_positions

# pieces that can always (eventually) force mate: their presence anywhere rules out the material draw
MATING_MATERIAL: frozenset[PieceType] = frozenset(
    {PieceType.PAWN, PieceType.ROOK, PieceType.QUEEN}
)


class Termination(StrEnum):
    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"
    INSUFFICIENT_MATERIAL = "insufficient material"
    MOVE_LIMIT = "move limit"


@dataclass(frozen=True)
class Verdict:
    """Outcome of the termination check for the side that is about to move."""

    in_check: bool
    termination: Optional[Termination] = None

    @property
    def is_over(self) -> bool:
        return self.termination is not None


def get_all_legal_moves(
    board: Board, color: Color, active_power_up: Optional[PowerUpType] = None
) -> list[Move]:
    """
    List of legal moves for the player with the 'color' pieces
    ----

    Brute force: every own piece against every square of the board, filtered by `is_legal_move`.
    """
    return [
        Move(from_pos, to_pos)
        for from_pos in board.squares_of(color)
        for to_pos in all_positions()
        if is_legal_move(board, from_pos, to_pos, active_power_up)
    ]


def has_legal_move(board: Board, color: Color) -> bool:
    return any(
        is_legal_move(board, from_pos, to_pos, None)
        for from_pos in board.squares_of(color)
        for to_pos in all_positions()
    )


def get_ethereal_escape_moves(board: Board, color: Color) -> list[Position]:
    """
    Ethereal Escape: the king teleports to a neighbouring square.
    ---

    Path rules do not apply (it is a teleport, not a slide). The square must not hold one of your own pieces
    and the king must be safe once it arrives.
    NOTE: the enemy king is never a target, same as for ordinary moves.
    """
    king_pos = board.locate_king(color)
    escapes: list[Position] = []
    for d_row, d_col in KING_DELTAS:
        to_pos = king_pos.offset(d_row, d_col)
        if not to_pos.is_within_bounds():
            continue
        target = board.get(to_pos)
        if target is not None and (target.color == color or target.type == PieceType.KING):
            continue
        simulated, _ = move_piece(board, king_pos, to_pos)
        if not is_king_in_check(simulated, color):
            escapes.append(to_pos)
    return escapes


def is_insufficient_material(board: Board) -> bool:
    """
    True only when no sequence of moves can force a checkmate.
    ---

    * any pawn, rook or queen on the board: never a draw by material
    * K vs K
    * K+N vs K
    * K+B vs K
    * K+B vs K+B with both bishops on the same square colour
    """
    pieces = board.pieces()
    if any(piece.type in MATING_MATERIAL for _, piece in pieces):
        return False

    counts = {color: Counter[PieceType]() for color in Color}
    bishops: dict[Color, list[Position]] = {color: [] for color in Color}
    for pos, piece in pieces:
        counts[piece.color][piece.type] += 1
        if piece.type == PieceType.BISHOP:
            bishops[piece.color].append(pos)

    totals = {color: counts[color].total() for color in Color}

    if totals[Color.WHITE] == 1 and totals[Color.BLACK] == 1:
        return True

    for strong, weak in ((Color.WHITE, Color.BLACK), (Color.BLACK, Color.WHITE)):
        if totals[strong] == 2 and totals[weak] == 1:
            minor = counts[strong][PieceType.KNIGHT] + counts[strong][PieceType.BISHOP]
            if minor == 1:
                return True

    if (
        totals[Color.WHITE] == 2
        and totals[Color.BLACK] == 2
        and len(bishops[Color.WHITE]) == 1
        and len(bishops[Color.BLACK]) == 1
    ):
        return bishops[Color.WHITE][0].square_parity == bishops[Color.BLACK][0].square_parity

    return False


def evaluate_termination(
    board: Board, color_to_move: Color, moves_remaining: int
) -> Verdict:
    """
    Performs checks to see if the game has ended, from the perspective of the side that moves next.
    ---

    1. no legal moves: checkmate if in check, otherwise stalemate
    2. insufficient material: draw
    3. move counter ran out: draw
    """
    in_check = is_king_in_check(board, color_to_move)
    if not has_legal_move(board, color_to_move):
        termination = Termination.CHECKMATE if in_check else Termination.STALEMATE
        return Verdict(in_check, termination)

    if is_insufficient_material(board):
        return Verdict(in_check, Termination.INSUFFICIENT_MATERIAL)

    if moves_remaining <= 0:
        return Verdict(in_check, Termination.MOVE_LIMIT)

    return Verdict(in_check)
