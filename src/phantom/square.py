"""
A position on the board

(placed in its own module as multiple other modules need to import it)
"""

from __future__ import annotations

from dataclasses import dataclass

# Board is always 8x8 (rows, cols)
BOARD_DIMENSIONS = (8, 8)


def is_out_of_bounds(row: int, col: int) -> bool:
    return not (0 <= row < BOARD_DIMENSIONS[0] and 0 <= col < BOARD_DIMENSIONS[1])


@dataclass(frozen=True)
class Position:
    """
    Grid coordinates.
    ---

    Row 0 is black's home rank (rank 8), row 7 is white's home rank (rank 1).
    Col 0 is the a-file.
    """

    row: int
    col: int

    @classmethod
    def from_algebraic(cls, sq: str) -> Position:
        """Algebraic notation: 'a8' -> (0, 0), 'h1' -> (7, 7)"""
        col = ord(sq[0]) - ord("a")
        row = BOARD_DIMENSIONS[0] - int(sq[1])
        return cls(row, col)

    def to_algebraic(self) -> str:
        return f"{chr(self.col + ord('a'))}{BOARD_DIMENSIONS[0] - self.row}"

    def is_within_bounds(self) -> bool:
        return not is_out_of_bounds(self.row, self.col)

    def offset(self, d_row: int, d_col: int) -> Position:
        return Position(self.row + d_row, self.col + d_col)

    @property
    def square_parity(self) -> int:
        """Light/dark square colour. Two positions with equal parity are on the same colour."""
        return (self.row + self.col) % 2


def all_positions() -> list[Position]:
    return [
        Position(row, col)
        for row in range(BOARD_DIMENSIONS[0])
        for col in range(BOARD_DIMENSIONS[1])
    ]
