"""
Orchestration of communication from the UI layer to the game logic and persistence layers (and the reverse direction).

* Human intents are applied through the turn state machine. Rejected intents are logged and answered with the
  unchanged snapshot (no exception crosses this boundary).
* The opponent's turn awaits the move oracle once, while human input is locked out.
* Finished matches are recorded on the player's profile.
"""

import asyncio
import logging
import random
from dataclasses import replace
from typing import Callable, Optional

from src.api.models import (
    ActivatePowerUpRequest,
    AnnouncementResponse,
    GameStateResponse,
    MatchStatsResponse,
    MoveRequest,
    PieceResponse,
    PlayerResponse,
    PowerUpResponse,
    ProfileResponse,
    PromotionRequest,
    ResetMatchRequest,
    SquareRequest,
    StealPieceRequest,
)
from src.core.config import SETTINGS, Settings
from src.core.exceptions import (
    GameError,
    GameStateError,
    InvalidRequestError,
    RepositoryError,
)
from src.core.models import ProfileModel
from src.core.shared_types import Color, GameStatus, PieceType
from src.db.repository import ProfileRepository
from src.phantom import game
from src.phantom.analysis import get_all_legal_moves
from src.phantom.fen import board_to_fen, fen_to_board
from src.phantom.opponent import OpponentMoveSelector
from src.phantom.pieces import Piece
from src.phantom.powerups import POWER_UP_INFO
from src.phantom.square import Position
from src.phantom.state import GameState, PlayerState, new_game_state

log = logging.getLogger(__name__)

HUMAN_COLOR = Color.WHITE
OPPONENT_COLOR = Color.BLACK

OPPONENT_NAMES: tuple[str, ...] = (
    "Grave Digger",
    "Specter",
    "The Phantom",
    "Warlock",
    "Bogeyman",
    "Headless Horseman",
    "Count Crypt",
    "Baron Von Bat",
    "Lord Skele-pawn",
    "The Bishop of Bones",
)

Transition = Callable[..., GameState]


class GameService:
    """Orchestration of layers for a single-player match against the opponent."""

    def __init__(
        self,
        repository: ProfileRepository,
        selector: Optional[OpponentMoveSelector] = None,
        rng: Optional[random.Random] = None,
        settings: Settings = SETTINGS,
    ) -> None:
        self.repo = repository
        self.settings = settings
        self.rng = rng or random.Random(settings.random_seed)
        self.selector = selector or OpponentMoveSelector(
            timeout_s=settings.oracle_timeout_s, rng=self.rng
        )
        self.state: Optional[GameState] = None
        self.profile: Optional[ProfileModel] = None
        self.opponent_thinking = False
        self._result_recorded = False
        self._turn_lock = asyncio.Lock()

    # -- UI intents ---
    def reset_match(self, request: ResetMatchRequest) -> GameStateResponse:
        """
        Start a new match (also "play again").
        ---

        The previous GameState is replaced wholesale, nothing carries over except the profile.
        """
        profile = self.repo.get_profile(request.profile_id) or ProfileModel.default(
            request.profile_id
        )
        if request.player_name and request.player_name != profile.name:
            profile.name = request.player_name
            profile = self.repo.save_profile(profile)
        self.profile = profile

        board, color_to_move = None, HUMAN_COLOR
        if request.starting_fen:
            board, color_to_move = fen_to_board(request.starting_fen)

        state = new_game_state(
            player_name=profile.name,
            opponent_name=self.rng.choice(OPPONENT_NAMES),
            player_level=profile.level,
            timer_seconds=self.settings.timer_seconds,
            board=board,
            current_player=color_to_move,
        )
        try:
            state = game.begin_match(state)
        except GameStateError as exc:
            raise InvalidRequestError(str(exc)) from exc

        self.state = state
        self.opponent_thinking = False
        self._result_recorded = False
        log.info("New match: %s vs %s", state.white.name, state.black.name)
        self._record_result_if_over()
        return self.snapshot()

    def submit_move(self, request: MoveRequest) -> GameStateResponse:
        return self._apply_human(
            game.submit_move,
            Position.from_algebraic(request.from_square),
            Position.from_algebraic(request.to_square),
            self.rng,
        )

    def submit_promotion_choice(self, request: PromotionRequest) -> GameStateResponse:
        return self._apply_human(game.submit_promotion_choice, request.piece_type)

    def activate_power_up(self, request: ActivatePowerUpRequest) -> GameStateResponse:
        return self._apply_human(
            game.activate_power_up,
            request.power_up_id,
            self.settings.time_twist_bonus_seconds,
        )

    def submit_pawn_placement(self, request: SquareRequest) -> GameStateResponse:
        return self._apply_human(
            game.submit_pawn_placement, Position.from_algebraic(request.square)
        )

    def select_possession_piece(self, request: SquareRequest) -> GameStateResponse:
        return self._apply_human(
            game.select_possession_piece, Position.from_algebraic(request.square)
        )

    def submit_possession_move(self, request: MoveRequest) -> GameStateResponse:
        return self._apply_human(
            game.submit_possession_move,
            Position.from_algebraic(request.from_square),
            Position.from_algebraic(request.to_square),
        )

    def submit_escape_square(self, request: SquareRequest) -> GameStateResponse:
        return self._apply_human(
            game.submit_escape_square, Position.from_algebraic(request.square)
        )

    def submit_stolen_piece_restore(self, request: SquareRequest) -> GameStateResponse:
        return self._apply_human(
            game.submit_stolen_piece_restore, Position.from_algebraic(request.square)
        )

    def steal_piece(self, request: StealPieceRequest) -> GameStateResponse:
        """Host-triggered event, allowed on either side's turn (but not while the opponent is thinking)."""
        return self._apply(
            game.steal_piece,
            request.color,
            Position.from_algebraic(request.square),
            human_only=False,
        )

    def tick(self, seconds: int = 1) -> GameStateResponse:
        """Called by the host once per elapsed second. The clock keeps running while the opponent thinks."""
        state = self._require_state()
        self._commit(game.tick_timer(state, seconds))
        return self.snapshot()

    def legal_moves(self) -> list[str]:
        """Moves the human can make right now (for highlighting). Empty when it is not their move."""
        state = self._require_state()
        if self.opponent_thinking or not state.is_active or state.current_player != HUMAN_COLOR:
            return []
        moves = get_all_legal_moves(state.board, HUMAN_COLOR, state.active_power_up)
        return [move.to_uci() for move in moves]

    # -- Profiles ---
    def get_profile(self, profile_id: str) -> ProfileResponse:
        profile = self.repo.get_profile(profile_id)
        if profile is None:
            raise RepositoryError(f"Profile with {profile_id=} not found.")
        return self._create_profile_response(profile)

    def delete_profile(self, profile_id: str) -> ProfileResponse:
        """Forget a player (wins and draws included). The running match is not affected."""
        profile = self.repo.delete_profile(profile_id)
        if profile is None:
            raise RepositoryError(f"Profile with {profile_id=} not found.")
        return self._create_profile_response(profile)

    # -- Opponent turn ---
    async def play_opponent_turn(self) -> GameStateResponse:
        """
        Let the opponent move
        ----

        1. Lock out human input (single writer)
        2. Await the selector (oracle + validation + random fallback): the only suspension point
        3. Re-check the game is still running (the clock may have run out meanwhile)
        4. Apply the move. The opponent always promotes to a queen.
        """
        async with self._turn_lock:
            state = self._require_state()
            if not state.is_active or state.current_player != OPPONENT_COLOR:
                return self.snapshot()

            self.opponent_thinking = True
            try:
                selection = await self.selector.select_move(state.board, OPPONENT_COLOR)
            finally:
                self.opponent_thinking = False

            if selection is None:
                return self.snapshot()

            current = self._require_state()
            if not current.is_active or current.current_player != OPPONENT_COLOR:
                log.info("Opponent move dropped, game state changed while thinking")
                return self.snapshot()

            try:
                new_state = game.submit_move(
                    self._clear_announcement(current),
                    selection.move.from_pos,
                    selection.move.to_pos,
                    self.rng,
                )
                if new_state.status == GameStatus.PROMOTION:
                    new_state = game.submit_promotion_choice(new_state, PieceType.QUEEN)
            except GameError as exc:
                log.warning("Opponent move %s rejected: %s", selection.move.to_uci(), exc)
                return self.snapshot()

            if selection.advisory:
                new_state = new_state.announce(selection.advisory)
            self._commit(new_state)
            return self.snapshot()

    # -- Snapshots ---
    def snapshot(self) -> GameStateResponse:
        return self._create_state_response(self._require_state())

    # -- Internal helpers --
    def _apply_human(self, transition: Transition, *args: object) -> GameStateResponse:
        return self._apply(transition, *args, human_only=True)

    def _apply(
        self, transition: Transition, *args: object, human_only: bool
    ) -> GameStateResponse:
        """Run a transition atomically. Illegal intents leave the state unchanged."""
        state = self._require_state()
        name = getattr(transition, "__name__", repr(transition))
        if self.opponent_thinking:
            log.warning("Rejected %s: opponent is thinking", name)
            return self.snapshot()
        if human_only and state.current_player != HUMAN_COLOR:
            log.warning("Rejected %s: not the human's turn", name)
            return self.snapshot()

        try:
            new_state = transition(self._clear_announcement(state), *args)
        except GameError as exc:
            log.warning("Rejected %s: %s", name, exc)
            return self.snapshot()

        self._commit(new_state)
        return self.snapshot()

    def _clear_announcement(self, state: GameState) -> GameState:
        """Announcements live for exactly one snapshot."""
        return replace(state, announcement=None) if state.announcement else state

    def _commit(self, state: GameState) -> None:
        self.state = state
        self._record_result_if_over()

    def _record_result_if_over(self) -> None:
        """On a white (human) win the profile gets a win, on a draw a draw. Only once per match."""
        state = self.state
        if state is None or not state.gameover or self._result_recorded or self.profile is None:
            return
        self._result_recorded = True
        if state.winner == HUMAN_COLOR:
            self.profile.wins += 1
        elif state.winner is None:
            self.profile.draws += 1
        else:
            return
        self.profile = self.repo.save_profile(self.profile)

    def _require_state(self) -> GameState:
        if self.state is None:
            raise GameStateError("No match in progress. Reset the match first.")
        return self.state

    def _create_state_response(self, state: GameState) -> GameStateResponse:
        """Convert the GameState snapshot into the transport model."""
        return GameStateResponse(
            board=[
                [self._piece_response(piece) if piece else None for piece in row]
                for row in state.board.grid
            ],
            fen=board_to_fen(state.board, state.current_player),
            current_player=state.current_player,
            moves_remaining=state.moves_remaining,
            status=state.status,
            gameover=state.gameover,
            winner=state.winner,
            promotion_square=(
                state.promotion_pending.position.to_algebraic()
                if state.promotion_pending
                else None
            ),
            timers={color: state.timers.get(color) for color in Color},
            active_power_up=state.active_power_up,
            possession_square=(
                state.possession_from.to_algebraic() if state.possession_from else None
            ),
            move_count=state.move_count,
            announcement=(
                AnnouncementResponse(
                    message=state.announcement.message, key=state.announcement.key
                )
                if state.announcement
                else None
            ),
            last_capture_square=(
                state.last_capture_position.to_algebraic()
                if state.last_capture_position
                else None
            ),
            players={color: self._player_response(state.player(color)) for color in Color},
            opponent_thinking=self.opponent_thinking,
            stats=self._match_stats(state),
        )

    def _create_profile_response(self, profile: ProfileModel) -> ProfileResponse:
        return ProfileResponse(
            profile_id=profile.profile_id,
            name=profile.name,
            wins=profile.wins,
            draws=profile.draws,
            level=profile.level,
        )

    def _piece_response(self, piece: Piece) -> PieceResponse:
        return PieceResponse(id=piece.id, type=piece.type, color=piece.color)

    def _player_response(self, player: PlayerState) -> PlayerResponse:
        return PlayerResponse(
            name=player.name,
            color=player.color,
            level=player.level,
            captured_pieces=[self._piece_response(p) for p in player.captured_pieces],
            power_ups=[
                PowerUpResponse(
                    id=p.id,
                    type=p.type,
                    name=POWER_UP_INFO[p.type].name,
                    description=POWER_UP_INFO[p.type].description,
                )
                for p in player.power_ups
            ],
            power_ups_used=list(player.power_ups_used),
            stolen_piece=(
                self._piece_response(player.stolen_piece) if player.stolen_piece else None
            ),
        )

    def _match_stats(self, state: GameState) -> Optional[MatchStatsResponse]:
        """Only the winner gets a stats card."""
        if not state.gameover or state.winner is None:
            return None
        winner = state.player(state.winner)
        return MatchStatsResponse(
            winner=state.winner,
            full_moves=state.full_moves,
            pieces_captured=len(winner.captured_pieces),
            time_remaining=state.timers.get(state.winner),
            power_ups_used=list(winner.power_ups_used),
        )
