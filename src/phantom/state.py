"""
Game state snapshots.

Every class in here is a frozen value. The turn state machine (src/phantom/game.py) is the only place that builds new
snapshots out of old ones, so a half-applied move can never be observed.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Self

from src.core.shared_types import (
    ACTIVE_STATUSES,
    Color,
    GameStatus,
    PowerUpType,
)
from src.phantom.board import Board
from src.phantom.pieces import Piece, new_piece_id
from src.phantom.square import Position

MOVES_TO_DRAW = 50
DEFAULT_TIMER_SECONDS = 300


@dataclass(frozen=True)
class PowerUp:
    type: PowerUpType
    id: str = field(default_factory=new_piece_id)


@dataclass(frozen=True)
class PlayerState:
    name: str
    color: Color
    captured_pieces: tuple[Piece, ...] = ()
    level: int = 1
    power_ups: tuple[PowerUp, ...] = ()
    power_ups_used: tuple[PowerUpType, ...] = ()
    stolen_piece: Optional[Piece] = None

    def holds(self, power_up_type: PowerUpType) -> bool:
        return any(p.type == power_up_type for p in self.power_ups)


@dataclass(frozen=True)
class PromotionPending:
    position: Position
    color: Color


@dataclass(frozen=True)
class Announcement:
    """Transient message for the UI. The key only grows, so the UI can tell two equal messages apart."""

    message: str
    key: int


@dataclass(frozen=True)
class Timers:
    white: int
    black: int

    def get(self, color: Color) -> int:
        return self.white if color == Color.WHITE else self.black

    def with_time(self, color: Color, seconds: int) -> Self:
        if color == Color.WHITE:
            return replace(self, white=seconds)
        return replace(self, black=seconds)


@dataclass(frozen=True)
class GameState:
    board: Board
    white: PlayerState
    black: PlayerState
    timers: Timers
    current_player: Color = Color.WHITE
    moves_remaining: int = MOVES_TO_DRAW
    status: GameStatus = GameStatus.PLAYING
    gameover: bool = False
    # None while the game is running AND when it ended in a draw. Check `gameover` to tell them apart.
    winner: Optional[Color] = None
    promotion_pending: Optional[PromotionPending] = None
    active_power_up: Optional[PowerUpType] = None
    # enemy piece picked during Ghastly Possession (first half of the sub-phase)
    possession_from: Optional[Position] = None
    move_count: int = 0
    announcement: Optional[Announcement] = None
    announcement_seq: int = 0
    last_capture_position: Optional[Position] = None

    def player(self, color: Color) -> PlayerState:
        return self.white if color == Color.WHITE else self.black

    @property
    def mover(self) -> PlayerState:
        return self.player(self.current_player)

    def with_player(self, player: PlayerState) -> Self:
        if player.color == Color.WHITE:
            return replace(self, white=player)
        return replace(self, black=player)

    def announce(self, message: str) -> Self:
        key = self.announcement_seq + 1
        return replace(self, announcement=Announcement(message, key), announcement_seq=key)

    @property
    def is_active(self) -> bool:
        """Ordinary moves allowed (and the clock runs)."""
        return not self.gameover and self.status in ACTIVE_STATUSES

    @property
    def full_moves(self) -> int:
        """Half-moves rounded up to whole turns."""
        return (self.move_count + 1) // 2


def new_game_state(
    player_name: str,
    opponent_name: str,
    player_level: int = 1,
    timer_seconds: int = DEFAULT_TIMER_SECONDS,
    board: Optional[Board] = None,
    current_player: Color = Color.WHITE,
) -> GameState:
    """Fresh match: standard setup, full clocks, no power-ups. The human always plays white."""
    return GameState(
        board=board if board is not None else Board.starting_position(),
        white=PlayerState(name=player_name, color=Color.WHITE, level=player_level),
        black=PlayerState(name=opponent_name, color=Color.BLACK),
        timers=Timers(white=timer_seconds, black=timer_seconds),
        current_player=current_player,
    )
