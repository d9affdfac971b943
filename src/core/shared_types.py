"""
Type definitions used across layers
"""

from enum import StrEnum


class GameStatus(StrEnum):
    PLAYING = "playing"
    CHECK = "check"
    CHECKMATE = "checkmate"
    DRAW = "draw"
    TIMEOUT = "timeout"
    PROMOTION = "promotion"
    PLACING_PAWN = "placingPawn"
    POSSESSING_PIECE = "possessingPiece"
    ESCAPING_CHECK = "escapingCheck"
    PLACING_STOLEN_PIECE = "placingStolenPiece"


# statuses in which the player to move may make an ordinary move (and in which the clock runs)
ACTIVE_STATUSES: frozenset[GameStatus] = frozenset({GameStatus.PLAYING, GameStatus.CHECK})


class Color(StrEnum):
    WHITE = "white"
    BLACK = "black"

    @property
    def opponent(self) -> "Color":
        return Color.BLACK if self == Color.WHITE else Color.WHITE


class PieceType(StrEnum):
    PAWN = "pawn"
    KNIGHT = "knight"
    BISHOP = "bishop"
    ROOK = "rook"
    QUEEN = "queen"
    KING = "king"


class PowerUpType(StrEnum):
    SPECTRAL_MOVE = "spectralMove"
    TIME_TWIST = "timeTwist"
    GHOSTLY_PAWN = "ghostlyPawn"
    GHASTLY_POSSESSION = "ghastlyPossession"
    ETHEREAL_ESCAPE = "etherealEscape"
    SEANCE = "seance"
