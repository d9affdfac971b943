"""
The turn state machine is the entrypoint into the domain layer for the service layer.
It is responsible for orchestrating all the business logic required to play a turn of the board game.

Every transition takes the previous GameState and returns a new one. Rejected intents raise a GameError and leave
the previous snapshot untouched (it is immutable), so nothing is ever half-applied.

States:
* playing / check: ordinary moves (and power-up activation) allowed, the clock runs
* promotion: waiting for the piece type the pawn turns into
* placingPawn / possessingPiece / escapingCheck / placingStolenPiece: power-up sub-phases
* checkmate / draw / timeout: terminal
"""

import logging
import random
from dataclasses import replace
from typing import Optional

from src.core.exceptions import (
    GameStateError,
    IllegalMoveError,
    NotYourTurnError,
    PowerUpError,
)
from src.core.shared_types import Color, GameStatus, PieceType, PowerUpType
from src.phantom.analysis import (
    Termination,
    Verdict,
    evaluate_termination,
    get_ethereal_escape_moves,
)
from src.phantom.board import Board, move_piece
from src.phantom.moves import (
    is_king_in_check,
    is_legal_move,
    is_legal_possession_move,
    is_pawn_on_promotion_row,
    pawn_start_row,
)
from src.phantom.pieces import PROMOTION_OPTIONS, Piece
from src.phantom.powerups import (
    POWER_UP_INFO,
    consume_power_up,
    consume_power_up_of_type,
    find_power_up,
    grant_random_power_up,
)
from src.phantom.square import BOARD_DIMENSIONS, Position, all_positions
from src.phantom.state import MOVES_TO_DRAW, GameState, PromotionPending

log = logging.getLogger(__name__)

TIME_TWIST_BONUS_SECONDS = 30

# power-ups that open a sub-phase, and the status they open
SUB_PHASES: dict[PowerUpType, GameStatus] = {
    PowerUpType.GHOSTLY_PAWN: GameStatus.PLACING_PAWN,
    PowerUpType.GHASTLY_POSSESSION: GameStatus.POSSESSING_PIECE,
    PowerUpType.ETHEREAL_ESCAPE: GameStatus.ESCAPING_CHECK,
    PowerUpType.SEANCE: GameStatus.PLACING_STOLEN_PIECE,
}

_DEFAULT_RNG = random.Random()


# --- ORDINARY MOVES ---
def submit_move(
    state: GameState,
    from_pos: Position,
    to_pos: Position,
    rng: Optional[random.Random] = None,
) -> GameState:
    """
    Attempt an ordinary move for the side to move
    -----

    1. validate (game running, your piece, legal with the active power-up)
    2. update the board
    3. capture bookkeeping (captured list, power-up grant) and Spectral Move consumption
    4. pawn reached the far row? --> wait for the promotion choice (turn does not pass yet)
    5. otherwise: end the turn
    """
    _assert_active(state)
    piece = _own_piece(state, from_pos)
    if not is_legal_move(state.board, from_pos, to_pos, state.active_power_up):
        raise IllegalMoveError(
            f"Move not allowed: {from_pos.to_algebraic()}{to_pos.to_algebraic()}"
        )

    new_board, captured = move_piece(state.board, from_pos, to_pos)
    state = replace(
        state,
        board=new_board,
        last_capture_position=to_pos if captured else None,
    )
    if captured is not None:
        state = _record_capture(state, captured, rng or _DEFAULT_RNG)

    if state.active_power_up == PowerUpType.SPECTRAL_MOVE:
        state = state.with_player(
            consume_power_up_of_type(state.mover, PowerUpType.SPECTRAL_MOVE)
        )

    if is_pawn_on_promotion_row(new_board, to_pos):
        return replace(
            state,
            status=GameStatus.PROMOTION,
            promotion_pending=PromotionPending(to_pos, state.current_player),
            active_power_up=None,
        )

    return _end_turn(state, moved_piece=piece, captured=captured)


def submit_promotion_choice(state: GameState, piece_type: PieceType) -> GameState:
    """Promotion always counts as a pawn move: the draw counter resets."""
    _assert_status(state, GameStatus.PROMOTION)
    assert state.promotion_pending is not None
    if piece_type not in PROMOTION_OPTIONS:
        raise IllegalMoveError(f"Cannot promote into a {piece_type}.")

    position = state.promotion_pending.position
    pawn = state.board.get(position)
    if pawn is None or pawn.type != PieceType.PAWN:
        raise GameStateError(f"No pawn waiting for promotion on {position.to_algebraic()}.")

    state = replace(state, board=state.board.set(position, pawn.promoted_to(piece_type)))
    return _end_turn(state, moved_piece=pawn, captured=None)


# --- POWER-UP ACTIVATION ---
def activate_power_up(
    state: GameState,
    power_up_id: str,
    bonus_seconds: int = TIME_TWIST_BONUS_SECONDS,
) -> GameState:
    """
    Activate one of the power-ups held by the side to move
    ----

    * activating the power-up that is already active cancels it (nothing consumed)
    * Time Twist applies immediately
    * Spectral Move only arms the next queen/rook/bishop move
    * the other four open a sub-phase (if their preconditions hold)
    """
    if state.gameover:
        raise GameStateError(f"Game is over. status: {state.status}")

    power_up = find_power_up(state.mover, power_up_id)

    if state.active_power_up == power_up.type:
        return _cancel_power_up(state)

    if not state.is_active:
        raise GameStateError(f"Cannot activate a power-up now. status: {state.status}")

    match power_up.type:
        case PowerUpType.TIME_TWIST:
            color = state.current_player
            timers = state.timers.with_time(color, state.timers.get(color) + bonus_seconds)
            state = replace(state, timers=timers)
            return state.with_player(consume_power_up(state.mover, power_up.id))
        case PowerUpType.SPECTRAL_MOVE:
            return replace(state, active_power_up=power_up.type, possession_from=None)
        case PowerUpType.GHOSTLY_PAWN:
            if not pawn_placement_squares(state):
                raise PowerUpError("No empty square to summon a Ghostly Pawn on.")
        case PowerUpType.GHASTLY_POSSESSION:
            if not possessable_pieces(state):
                raise PowerUpError("No enemy pawn or knight can be possessed.")
        case PowerUpType.ETHEREAL_ESCAPE:
            if state.status != GameStatus.CHECK:
                raise PowerUpError("Ethereal Escape can only be used when in check.")
            if not get_ethereal_escape_moves(state.board, state.current_player):
                raise PowerUpError("There is no safe square to escape to.")
        case PowerUpType.SEANCE:
            if state.mover.stolen_piece is None:
                raise PowerUpError("You have no piece to bring back.")
            if not stolen_piece_squares(state):
                raise PowerUpError("No empty square to restore the stolen piece on.")

    return replace(
        state,
        status=SUB_PHASES[power_up.type],
        active_power_up=power_up.type,
        possession_from=None,
    )


def _cancel_power_up(state: GameState) -> GameState:
    in_check = is_king_in_check(state.board, state.current_player)
    return replace(
        state,
        status=GameStatus.CHECK if in_check else GameStatus.PLAYING,
        active_power_up=None,
        possession_from=None,
    )


# --- SUB-PHASE COMPLETIONS ---
def pawn_placement_squares(state: GameState) -> list[Position]:
    """Ghostly Pawn: any empty square on your own pawn row (that does not leave your king in check)."""
    row = pawn_start_row(state.current_player)
    pawn = Piece(PieceType.PAWN, state.current_player)
    return [
        Position(row, col)
        for col in range(BOARD_DIMENSIONS[1])
        if _is_safe_drop(state, Position(row, col), pawn)
    ]


def submit_pawn_placement(state: GameState, pos: Position) -> GameState:
    """Summoning a pawn is the mover's move (and a pawn move, so the draw counter resets)."""
    _assert_status(state, GameStatus.PLACING_PAWN)
    if pos not in pawn_placement_squares(state):
        raise IllegalMoveError(f"Cannot summon a pawn on {pos.to_algebraic()}.")

    pawn = Piece(PieceType.PAWN, state.current_player)
    state = replace(state, board=state.board.set(pos, pawn))
    state = state.with_player(consume_power_up_of_type(state.mover, PowerUpType.GHOSTLY_PAWN))
    return _end_turn(state, moved_piece=pawn, captured=None)


def possession_moves(state: GameState, from_pos: Position) -> list[Position]:
    """
    Destinations for a possessed enemy piece.
    ---

    On top of `is_legal_possession_move`:
    * the possessor may not leave their own king in check
    * a possessed pawn may not walk onto its promotion row (it would have to promote on the wrong turn)
    """
    piece = state.board.get(from_pos)
    if piece is None or piece.color == state.current_player:
        return []

    destinations: list[Position] = []
    for to_pos in all_positions():
        if not is_legal_possession_move(state.board, from_pos, to_pos):
            continue
        simulated, _ = move_piece(state.board, from_pos, to_pos)
        if is_king_in_check(simulated, state.current_player):
            continue
        if is_pawn_on_promotion_row(simulated, to_pos):
            continue
        destinations.append(to_pos)
    return destinations


def possessable_pieces(state: GameState) -> list[Position]:
    return [
        pos
        for pos in state.board.squares_of(state.current_player.opponent)
        if possession_moves(state, pos)
    ]


def select_possession_piece(state: GameState, pos: Position) -> GameState:
    """First half of Ghastly Possession: pick the enemy pawn/knight (can be re-picked)."""
    _assert_status(state, GameStatus.POSSESSING_PIECE)
    if pos not in possessable_pieces(state):
        raise IllegalMoveError(f"Cannot possess the piece on {pos.to_algebraic()}.")
    return replace(state, possession_from=pos)


def submit_possession_move(state: GameState, from_pos: Position, to_pos: Position) -> GameState:
    """
    Second half of Ghastly Possession: move the possessed piece.

    NOTE: this is not a pawn move or a capture of the mover, so the draw counter follows its normal cadence.
    """
    _assert_status(state, GameStatus.POSSESSING_PIECE)
    if state.possession_from is not None and state.possession_from != from_pos:
        raise IllegalMoveError(
            f"Possessed piece is on {state.possession_from.to_algebraic()}, not {from_pos.to_algebraic()}."
        )
    if to_pos not in possession_moves(state, from_pos):
        raise IllegalMoveError(
            f"Possession move not allowed: {from_pos.to_algebraic()}{to_pos.to_algebraic()}"
        )

    new_board, _ = move_piece(state.board, from_pos, to_pos)
    state = replace(state, board=new_board)
    state = state.with_player(
        consume_power_up_of_type(state.mover, PowerUpType.GHASTLY_POSSESSION)
    )
    return _end_turn(state, moved_piece=None, captured=None)


def submit_escape_square(state: GameState, pos: Position) -> GameState:
    """Ethereal Escape: the king teleports to one of the safe neighbouring squares."""
    _assert_status(state, GameStatus.ESCAPING_CHECK)
    if pos not in get_ethereal_escape_moves(state.board, state.current_player):
        raise IllegalMoveError(f"Cannot escape to {pos.to_algebraic()}.")

    king_pos = state.board.locate_king(state.current_player)
    king = state.board.get(king_pos)
    new_board, captured = move_piece(state.board, king_pos, pos)
    state = replace(
        state,
        board=new_board,
        last_capture_position=pos if captured else None,
    )
    if captured is not None:
        state = _record_capture(state, captured, _DEFAULT_RNG)
    state = state.with_player(
        consume_power_up_of_type(state.mover, PowerUpType.ETHEREAL_ESCAPE)
    )
    return _end_turn(state, moved_piece=king, captured=captured)


def stolen_piece_squares(state: GameState) -> list[Position]:
    """
    Seance: empty squares on your first or second rank (that do not leave your king in check).
    NOTE: a pawn can only come back on the second rank (pawns never stand on a home rank).
    """
    stolen = state.mover.stolen_piece
    if stolen is None:
        return []
    pawn_row = pawn_start_row(state.current_player)
    home_row = pawn_row + (1 if state.current_player == Color.WHITE else -1)
    rows = [pawn_row] if stolen.type == PieceType.PAWN else [home_row, pawn_row]
    return [
        Position(row, col)
        for row in rows
        for col in range(BOARD_DIMENSIONS[1])
        if _is_safe_drop(state, Position(row, col), stolen)
    ]


def submit_stolen_piece_restore(state: GameState, pos: Position) -> GameState:
    """Seance: the escrowed piece returns. Counts as that piece's own move for the draw counter."""
    _assert_status(state, GameStatus.PLACING_STOLEN_PIECE)
    stolen = state.mover.stolen_piece
    if stolen is None:
        raise GameStateError("No stolen piece to restore.")
    if pos not in stolen_piece_squares(state):
        raise IllegalMoveError(f"Cannot restore the stolen piece on {pos.to_algebraic()}.")

    state = replace(state, board=state.board.set(pos, stolen))
    player = consume_power_up_of_type(state.mover, PowerUpType.SEANCE)
    state = state.with_player(replace(player, stolen_piece=None))
    return _end_turn(state, moved_piece=stolen, captured=None)


# --- EVENTS THAT ARE NOT TURNS ---
def steal_piece(state: GameState, color: Color, pos: Position) -> GameState:
    """
    A phantom steals one of `color`'s pieces off the board and holds it in that player's escrow (for a Seance).
    ---

    Not a move: the turn does not pass and the counters are untouched.
    * never a king, only one piece in escrow at a time
    * may not change whether either king is in check
    """
    if not state.is_active:
        raise GameStateError(f"Cannot steal a piece now. status: {state.status}")

    piece = state.board.get(pos)
    if piece is None or piece.color != color or piece.type == PieceType.KING:
        raise IllegalMoveError(f"No stealable {color} piece on {pos.to_algebraic()}.")
    victim = state.player(color)
    if victim.stolen_piece is not None:
        raise GameStateError(f"{victim.name} already has a stolen piece in escrow.")

    new_board = state.board.set(pos, None)
    for king_color in Color:
        if is_king_in_check(new_board, king_color) != is_king_in_check(state.board, king_color):
            raise IllegalMoveError(f"Stealing the piece on {pos.to_algebraic()} would change a check.")

    state = replace(state, board=new_board)
    state = state.with_player(replace(victim, stolen_piece=piece))
    verdict = evaluate_termination(new_board, state.current_player, state.moves_remaining)
    return _apply_verdict(state, verdict)


def tick_timer(state: GameState, seconds: int = 1) -> GameState:
    """
    Clock of the side to move runs down.
    ---

    Suspended during promotion / sub-phases and once the game is over. Re-checking the status here is what lets a
    mating move that landed first preempt a timeout for the same turn.
    """
    if not state.is_active:
        return state

    color = state.current_player
    remaining = max(0, state.timers.get(color) - seconds)
    state = replace(state, timers=state.timers.with_time(color, remaining))
    if remaining > 0:
        return state

    log.info("%s ran out of time", color)
    return replace(
        state,
        status=GameStatus.TIMEOUT,
        gameover=True,
        winner=color.opponent,
        active_power_up=None,
        possession_from=None,
    )


# -- PRIVATE HELPERS ---
def _assert_active(state: GameState) -> None:
    if state.gameover:
        raise GameStateError(f"Game is over. status: {state.status}")
    if not state.is_active:
        raise GameStateError(f"Cannot make an ordinary move now. status: {state.status}")


def _assert_status(state: GameState, status: GameStatus) -> None:
    if state.gameover:
        raise GameStateError(f"Game is over. status: {state.status}")
    if state.status != status:
        raise GameStateError(f"Expected status {status}, but status is {state.status}")


def _is_safe_drop(state: GameState, pos: Position, piece: Piece) -> bool:
    """Empty square, and after putting `piece` there the mover is not in check."""
    if not state.board.is_empty(pos):
        return False
    return not is_king_in_check(state.board.set(pos, piece), state.current_player)


def _own_piece(state: GameState, pos: Position) -> Piece:
    if not pos.is_within_bounds():
        raise IllegalMoveError(f"{pos} is not on the board.")
    piece = state.board.get(pos)
    if piece is None:
        raise IllegalMoveError(f"There is no piece on {pos.to_algebraic()}.")
    if piece.color != state.current_player:
        raise NotYourTurnError(
            f"It is not your turn. Waiting for {state.current_player} to make a move first."
        )
    return piece


def _record_capture(state: GameState, captured: Piece, rng: random.Random) -> GameState:
    """Captured pieces are collected. Taking anything bigger than a pawn earns a random power-up."""
    mover = state.mover
    mover = replace(mover, captured_pieces=mover.captured_pieces + (captured,))
    granted = None
    if captured.type != PieceType.PAWN:
        mover, granted = grant_random_power_up(mover, rng)
    state = state.with_player(mover)
    if granted is not None:
        log.debug("%s gained %s", mover.name, granted.type)
        state = state.announce(f"{mover.name} gained {POWER_UP_INFO[granted.type].name}!")
    return state


def _next_moves_remaining(
    state: GameState, moved_piece: Optional[Piece], captured: Optional[Piece]
) -> int:
    """
    Draw counter.
    ---

    Reset on a pawn move or capture. Otherwise only counts down after black moved (so it counts full move pairs).
    """
    if (moved_piece is not None and moved_piece.type == PieceType.PAWN) or captured is not None:
        return MOVES_TO_DRAW
    if state.current_player == Color.BLACK:
        return state.moves_remaining - 1
    return state.moves_remaining


def _end_turn(
    state: GameState, moved_piece: Optional[Piece], captured: Optional[Piece]
) -> GameState:
    """
    Shared post-move step
    ----

    1. update the draw counter (depends on who just moved, so BEFORE flipping)
    2. flip the side to move
    3. check / termination for the side that is now to move
    4. clear the active power-up, pending promotion and possession selection
    """
    moves_remaining = _next_moves_remaining(state, moved_piece, captured)
    next_color = state.current_player.opponent
    state = replace(
        state,
        current_player=next_color,
        moves_remaining=moves_remaining,
        move_count=state.move_count + 1,
        active_power_up=None,
        promotion_pending=None,
        possession_from=None,
    )
    verdict = evaluate_termination(state.board, next_color, moves_remaining)
    return _apply_verdict(state, verdict)


def _apply_verdict(state: GameState, verdict: Verdict) -> GameState:
    """Turn the analysis of the side to move into status / gameover / winner."""
    if not verdict.is_over:
        status = GameStatus.CHECK if verdict.in_check else GameStatus.PLAYING
        return replace(state, status=status)

    if verdict.termination == Termination.CHECKMATE:
        # the side to move got mated, so the other side wins
        winner: Optional[Color] = state.current_player.opponent
        status = GameStatus.CHECKMATE
    else:
        winner = None
        status = GameStatus.DRAW

    log.info("Game over: %s (winner: %s)", verdict.termination, winner or "none")
    return replace(state, status=status, gameover=True, winner=winner)


def starting_board_is_sane(board: Board) -> bool:
    """Exactly one king per colour. Used to validate custom starting positions."""
    kings = [piece for _, piece in board.pieces() if piece.type == PieceType.KING]
    return sorted(king.color for king in kings) == sorted(Color)


def begin_match(state: GameState) -> GameState:
    """Status of a freshly created state (a custom starting position may already be check, or even over)."""
    if not starting_board_is_sane(state.board):
        raise GameStateError(f"Position needs exactly one king per colour: {state.board.to_fen()}")
    verdict = evaluate_termination(state.board, state.current_player, state.moves_remaining)
    return _apply_verdict(state, verdict)
