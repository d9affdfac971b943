"""Requests (intents from the UI) and Response (snapshot) models"""

from typing import Optional

from pydantic import BaseModel, field_validator

from src.core.exceptions import InvalidRequestError
from src.core.shared_types import Color, GameStatus, PieceType, PowerUpType
from src.phantom.fen import is_valid_position
from src.phantom.pieces import PROMOTION_OPTIONS


def _is_algebraic_notation(value: str) -> bool:
    if len(value) != 2:
        return False
    return value[0] in "abcdefgh" and value[1] in "12345678"


def _validate_square(value: str) -> str:
    value = value.strip().lower()
    if not _is_algebraic_notation(value):
        raise InvalidRequestError(f"Cannot interpret {value!r} as a valid square name.")
    return value


# --- REQUEST MODELS ---
class MoveRequest(BaseModel):
    """Ordinary move, also used for the second half of a Ghastly Possession."""

    from_square: str
    to_square: str

    @field_validator(*["from_square", "to_square"])
    @classmethod
    def validate_square(cls, value: str) -> str:
        return _validate_square(value)


class SquareRequest(BaseModel):
    """Pawn placement, escape square, stolen piece restore, possession selection."""

    square: str

    @field_validator("square")
    @classmethod
    def validate_square(cls, value: str) -> str:
        return _validate_square(value)


class PromotionRequest(BaseModel):
    piece_type: PieceType

    @field_validator("piece_type")
    @classmethod
    def validate_piece_type(cls, value: PieceType) -> PieceType:
        if value not in PROMOTION_OPTIONS:
            raise InvalidRequestError(
                f"Cannot promote into {value!r}. Pick one from {', '.join(PROMOTION_OPTIONS)}"
            )
        return value


class ActivatePowerUpRequest(BaseModel):
    power_up_id: str


class StealPieceRequest(BaseModel):
    color: Color
    square: str

    @field_validator("square")
    @classmethod
    def validate_square(cls, value: str) -> str:
        return _validate_square(value)


class ResetMatchRequest(BaseModel):
    profile_id: str
    player_name: Optional[str] = None
    # piece placement + side to move only, ex. "4k3/8/8/8/8/8/8/4K3 w"
    starting_fen: Optional[str] = None

    @field_validator("starting_fen")
    @classmethod
    def validate_starting_fen(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value

        parts = value.strip().split(" ")
        if len(parts) < 2 or not is_valid_position(parts[0]) or parts[1] not in ("w", "b"):
            raise InvalidRequestError(
                "Starting FEN must contain at least a valid piece placement and a side to move."
            )
        return value.strip()


# --- RESPONSE MODELS ---
class PieceResponse(BaseModel):
    id: str
    type: PieceType
    color: Color


class PowerUpResponse(BaseModel):
    id: str
    type: PowerUpType
    name: str
    description: str


class PlayerResponse(BaseModel):
    name: str
    color: Color
    level: int
    captured_pieces: list[PieceResponse]
    power_ups: list[PowerUpResponse]
    power_ups_used: list[PowerUpType]
    stolen_piece: Optional[PieceResponse]


class ProfileResponse(BaseModel):
    profile_id: str
    name: str
    wins: int
    draws: int
    level: int


class AnnouncementResponse(BaseModel):
    message: str
    key: int


class MatchStatsResponse(BaseModel):
    """Shown on the game-over screen for the winner."""

    winner: Color
    full_moves: int
    pieces_captured: int
    time_remaining: int
    power_ups_used: list[PowerUpType]


class GameStateResponse(BaseModel):
    board: list[list[Optional[PieceResponse]]]
    fen: str
    current_player: Color
    moves_remaining: int
    status: GameStatus
    gameover: bool
    winner: Optional[Color]
    promotion_square: Optional[str]
    timers: dict[Color, int]
    active_power_up: Optional[PowerUpType]
    possession_square: Optional[str]
    move_count: int
    announcement: Optional[AnnouncementResponse]
    last_capture_square: Optional[str]
    players: dict[Color, PlayerResponse]
    opponent_thinking: bool
    stats: Optional[MatchStatsResponse]
