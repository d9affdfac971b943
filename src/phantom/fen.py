"""
Board position encoding for the opponent move oracle.

A simplified FEN: piece placement + side to move + constant placeholders.
Castling and en passant do not exist in this variant and the move counters are not tracked the FEN way, so the
remaining fields are always ` KQkq - 0 1` (enough for any engine / LLM that expects six fields).
"""

from src.core.exceptions import InvalidFENError
from src.core.shared_types import Color
from src.phantom.board import Board
from src.phantom.pieces import FEN_TO_PIECE
from src.phantom.square import BOARD_DIMENSIONS

FEN_PLACEHOLDERS = "KQkq - 0 1"
COLOR_TO_FEN: dict[Color, str] = {Color.WHITE: "w", Color.BLACK: "b"}
FEN_TO_COLOR: dict[str, Color] = {value: key for key, value in COLOR_TO_FEN.items()}


def board_to_fen(board: Board, color_to_move: Color) -> str:
    return f"{board.to_fen()} {COLOR_TO_FEN[color_to_move]} {FEN_PLACEHOLDERS}"


def fen_to_board(fen: str) -> tuple[Board, Color]:
    """Reverse operation. Only placement and side to move are read, the rest is ignored."""
    parts = fen.strip().split(" ")
    if len(parts) < 2 or not is_valid_position(parts[0]) or parts[1] not in FEN_TO_COLOR:
        raise InvalidFENError(f"Cannot interpret supplied string as FEN: {fen}")
    return Board.from_fen(parts[0]), FEN_TO_COLOR[parts[1]]


def is_valid_position(position: str) -> bool:
    """Only check the part of the FEN encoding for the board position."""
    num_rows, num_cols = BOARD_DIMENSIONS
    row_fens = position.split("/")
    if len(row_fens) != num_rows:
        return False

    for row_fen in row_fens:
        file_count = 0
        for character in row_fen:
            # make sure every character is valid
            if character.isdigit():
                file_count += int(character)
            elif character.lower() in FEN_TO_PIECE:
                file_count += 1
            else:
                # immediately invalidate if the character is anything else
                return False

        # make sure you are creating a correctly sized board
        if file_count != num_cols:
            return False
    return True
