"""
The Board holds the position (the configuration of pieces on the grid).

Boards are immutable values: every update hands back a new Board. That way "simulate the move and check" helpers can
never corrupt the live game.
"""

from dataclasses import dataclass
from typing import Optional, Self

from src.core.exceptions import InvalidFENError, InvariantViolationError
from src.core.shared_types import Color, PieceType
from src.phantom.pieces import FEN_TO_PIECE, Piece
from src.phantom.square import BOARD_DIMENSIONS, Position, all_positions

# A square is either a piece or empty
Square = Optional[Piece]
Grid = tuple[tuple[Square, ...], ...]

STARTING_POSITION_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR"
EMPTY_FEN = "/".join(["8"] * BOARD_DIMENSIONS[0])


@dataclass(frozen=True)
class Board:
    grid: Grid

    @classmethod
    def from_fen(cls, fen_str: str) -> Self:
        """Construct a board from the piece placement part of a FEN string.

        ex. standard starting position:
        rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR
        means:
        * the first group is row 0 (black's home rank), read from the a-file to the h-file
        * a number denotes that many consecutive empty squares
        * capital letters are white pieces
        """
        fen_by_rows = fen_str.split("/")
        if len(fen_by_rows) != BOARD_DIMENSIONS[0]:
            raise InvalidFENError(f"Expected {BOARD_DIMENSIONS[0]} ranks: {fen_str!r}")

        rows: list[tuple[Square, ...]] = []
        for fen_one_row in fen_by_rows:
            row: list[Square] = []
            for character in fen_one_row:
                if character.isdigit():
                    row.extend([None] * int(character))
                elif character.lower() in FEN_TO_PIECE:
                    row.append(Piece.from_fen(character))
                else:
                    raise InvalidFENError(f"Unknown piece {character!r} in {fen_str!r}")
            if len(row) != BOARD_DIMENSIONS[1]:
                raise InvalidFENError(f"Rank {fen_one_row!r} does not have 8 files")
            rows.append(tuple(row))
        return cls(tuple(rows))

    @classmethod
    def starting_position(cls) -> Self:
        return cls.from_fen(STARTING_POSITION_FEN)

    @classmethod
    def empty(cls) -> Self:
        return cls.from_fen(EMPTY_FEN)

    def to_fen(self) -> str:
        """Rows are separated by slashes in FEN string."""
        return "/".join(self._row_to_fen(row) for row in self.grid)

    def _row_to_fen(self, row: tuple[Square, ...]) -> str:
        """FEN string of a single row"""
        fen_characters: list[str] = []
        empty_count = 0
        for piece in row:
            if piece is None:
                empty_count += 1
                continue
            if empty_count > 0:
                fen_characters.append(str(empty_count))
                empty_count = 0
            fen_characters.append(piece.to_fen())

        # if the entire row is empty, then we still place this number in the string
        if empty_count > 0:
            fen_characters.append(str(empty_count))
        return "".join(fen_characters)

    def get(self, pos: Position) -> Square:
        return self.grid[pos.row][pos.col]

    def set(self, pos: Position, square: Square) -> Self:
        """Copy-on-write: only the touched row is rebuilt."""
        row = list(self.grid[pos.row])
        row[pos.col] = square
        grid = self.grid[: pos.row] + (tuple(row),) + self.grid[pos.row + 1 :]
        return type(self)(grid)

    def is_empty(self, pos: Position) -> bool:
        return self.get(pos) is None

    def squares_of(self, color: Color) -> list[Position]:
        return [
            pos
            for pos in all_positions()
            if (piece := self.get(pos)) is not None and piece.color == color
        ]

    def pieces(self) -> list[tuple[Position, Piece]]:
        return [
            (pos, piece) for pos in all_positions() if (piece := self.get(pos)) is not None
        ]

    def find_king(self, color: Color) -> Optional[Position]:
        return next(
            (
                pos
                for pos, piece in self.pieces()
                if piece.type == PieceType.KING and piece.color == color
            ),
            None,
        )

    def locate_king(self, color: Color) -> Position:
        """A board without a king is not a position that can ever be reached"""
        king = self.find_king(color)
        if king is None:
            raise InvariantViolationError(f"No {color} king on board {self.to_fen()}")
        return king


def move_piece(board: Board, from_pos: Position, to_pos: Position) -> tuple[Board, Square]:
    """
    Relocate whatever stands on `from_pos` to `to_pos`.
    ---

    Returns the new board and whatever occupied `to_pos` before (the captured piece, or None).
    The input board is left untouched. Moving from an empty square changes nothing.
    NOTE: no legality checks here, callers validate first.
    """
    piece = board.get(from_pos)
    captured = board.get(to_pos)
    if piece is None:
        return board, None
    new_board = board.set(from_pos, None).set(to_pos, piece)
    return new_board, captured
