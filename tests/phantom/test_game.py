"""Unit tests for src/phantom/game.py (the turn state machine)"""

import random
from dataclasses import replace

import pytest

from src.core.exceptions import (
    GameStateError,
    IllegalMoveError,
    NotYourTurnError,
    PowerUpError,
)
from src.core.shared_types import Color, GameStatus, PieceType, PowerUpType
from src.phantom.board import Board
from src.phantom.game import (
    activate_power_up,
    begin_match,
    pawn_placement_squares,
    possessable_pieces,
    select_possession_piece,
    steal_piece,
    stolen_piece_squares,
    submit_escape_square,
    submit_move,
    submit_pawn_placement,
    submit_possession_move,
    submit_promotion_choice,
    submit_stolen_piece_restore,
    tick_timer,
)
from src.phantom.moves import is_king_in_check
from src.phantom.pieces import Piece
from src.phantom.square import Position
from src.phantom.state import GameState, PowerUp, Timers, new_game_state


def sq(name: str) -> Position:
    return Position.from_algebraic(name)


def make_state(
    fen: str | None = None,
    color: Color = Color.WHITE,
    power_ups: tuple[PowerUpType, ...] = (),
    stolen_piece: Piece | None = None,
) -> GameState:
    """Fresh match on a custom board. `power_ups` / `stolen_piece` are handed to the side to move."""
    board = Board.from_fen(fen) if fen else None
    state = new_game_state("Casper", "Specter", board=board, current_player=color)
    mover = replace(
        state.mover,
        power_ups=tuple(PowerUp(power_up_type) for power_up_type in power_ups),
        stolen_piece=stolen_piece,
    )
    return begin_match(state.with_player(mover))


def held(state: GameState, power_up_type: PowerUpType) -> str:
    """id of the first held power-up of that type (side to move)"""
    return next(p.id for p in state.mover.power_ups if p.type == power_up_type)


# -- ORDINARY MOVES --
def test_opening_move() -> None:
    state = make_state()
    new_state = submit_move(state, sq("e2"), sq("e4"))
    assert new_state.board.get(sq("e4")) == Piece(PieceType.PAWN, Color.WHITE)
    assert new_state.board.is_empty(sq("e2"))
    assert new_state.current_player == Color.BLACK
    assert new_state.move_count == 1
    assert new_state.status == GameStatus.PLAYING
    # the previous snapshot is untouched
    assert state.board.get(sq("e2")) == Piece(PieceType.PAWN, Color.WHITE)
    assert state.current_player == Color.WHITE


def test_cannot_move_opponent_piece() -> None:
    with pytest.raises(NotYourTurnError):
        submit_move(make_state(), sq("e7"), sq("e5"))


@pytest.mark.parametrize("uci", ["e2e5", "e4e5", "g1g3", "a1a3"])
def test_illegal_moves(uci: str) -> None:
    with pytest.raises(IllegalMoveError):
        submit_move(make_state(), sq(uci[:2]), sq(uci[2:]))


def test_draw_counter_counts_after_black() -> None:
    state = make_state("4k3/8/8/8/8/8/8/R3K3")
    state = submit_move(state, sq("a1"), sq("a2"))
    assert state.moves_remaining == 50
    state = submit_move(state, sq("e8"), sq("d8"))
    assert state.moves_remaining == 49


def test_draw_counter_resets_on_pawn_move() -> None:
    state = replace(make_state(), moves_remaining=12)
    state = submit_move(state, sq("e2"), sq("e4"))
    assert state.moves_remaining == 50


def test_move_limit_draw() -> None:
    state = replace(make_state("4k3/8/8/8/8/8/8/R3K3", color=Color.BLACK), moves_remaining=1)
    state = submit_move(state, sq("e8"), sq("e7"))
    assert state.moves_remaining == 0
    assert state.status == GameStatus.DRAW
    assert state.gameover
    assert state.winner is None


def test_capture_grants_power_up(rng: random.Random) -> None:
    state = replace(make_state("r3k3/8/8/8/8/8/8/R3K3"), moves_remaining=7)
    state = submit_move(state, sq("a1"), sq("a8"), rng)

    assert state.white.captured_pieces == (Piece(PieceType.ROOK, Color.BLACK),)
    assert len(state.white.power_ups) == 1
    granted = state.white.power_ups[0]
    assert state.announcement is not None
    assert state.announcement.message.startswith("Casper gained")
    assert state.last_capture_position == sq("a8")
    assert state.moves_remaining == 50
    # rook on a8 checks the black king along the back rank
    assert state.status == GameStatus.CHECK
    assert granted.type in PowerUpType


def test_pawn_capture_grants_nothing() -> None:
    state = make_state("4k3/8/8/3p4/4P3/8/8/4K3")
    state = submit_move(state, sq("e4"), sq("d5"))
    assert state.white.captured_pieces == (Piece(PieceType.PAWN, Color.BLACK),)
    assert state.white.power_ups == ()
    assert state.announcement is None


def test_checkmate_ends_game() -> None:
    state = make_state("6k1/5ppp/8/8/8/8/8/R5K1")
    state = submit_move(state, sq("a1"), sq("a8"))
    assert state.status == GameStatus.CHECKMATE
    assert state.gameover
    assert state.winner == Color.WHITE

    with pytest.raises(GameStateError):
        submit_move(state, sq("g7"), sq("g6"))


# -- PROMOTION --
def test_promotion_waits_for_choice() -> None:
    state = make_state("7k/P7/8/8/8/8/8/4K3")
    state = submit_move(state, sq("a7"), sq("a8"))
    assert state.status == GameStatus.PROMOTION
    assert state.current_player == Color.WHITE
    assert state.promotion_pending is not None
    assert state.promotion_pending.position == sq("a8")

    # clock is suspended and no ordinary moves in the meantime
    assert tick_timer(state) == state
    with pytest.raises(GameStateError):
        submit_move(state, sq("e1"), sq("e2"))
    with pytest.raises(IllegalMoveError):
        submit_promotion_choice(state, PieceType.KING)

    state = submit_promotion_choice(state, PieceType.QUEEN)
    assert state.board.get(sq("a8")) == Piece(PieceType.QUEEN, Color.WHITE)
    assert state.promotion_pending is None
    assert state.current_player == Color.BLACK
    assert state.status == GameStatus.CHECK


def test_capture_promotion(rng: random.Random) -> None:
    """The capture is recorded right away, the counter resets once the promotion is chosen."""
    state = replace(make_state("1r5k/P7/8/8/8/8/8/4K3"), moves_remaining=10)
    state = submit_move(state, sq("a7"), sq("b8"), rng)
    assert state.status == GameStatus.PROMOTION
    assert state.white.captured_pieces == (Piece(PieceType.ROOK, Color.BLACK),)
    assert len(state.white.power_ups) == 1
    assert state.last_capture_position == sq("b8")

    state = submit_promotion_choice(state, PieceType.QUEEN)
    assert state.board.get(sq("b8")) == Piece(PieceType.QUEEN, Color.WHITE)
    assert state.moves_remaining == 50
    assert state.status == GameStatus.CHECK


def test_promotion_choice_outside_promotion() -> None:
    with pytest.raises(GameStateError):
        submit_promotion_choice(make_state(), PieceType.QUEEN)


# -- POWER-UPS --
def test_unknown_power_up() -> None:
    with pytest.raises(PowerUpError):
        activate_power_up(make_state(), "does-not-exist")


def test_time_twist() -> None:
    state = make_state(power_ups=(PowerUpType.TIME_TWIST,))
    state = activate_power_up(state, held(state, PowerUpType.TIME_TWIST), bonus_seconds=30)
    assert state.timers.white == 330
    assert state.timers.black == 300
    assert state.white.power_ups == ()
    assert state.white.power_ups_used == (PowerUpType.TIME_TWIST,)
    # still white's turn
    assert state.current_player == Color.WHITE


def test_spectral_move() -> None:
    state = make_state("7k/8/8/8/8/8/P7/R6K", power_ups=(PowerUpType.SPECTRAL_MOVE,))
    with pytest.raises(IllegalMoveError):
        submit_move(state, sq("a1"), sq("a5"))

    state = activate_power_up(state, held(state, PowerUpType.SPECTRAL_MOVE))
    assert state.active_power_up == PowerUpType.SPECTRAL_MOVE
    assert state.status == GameStatus.PLAYING

    state = submit_move(state, sq("a1"), sq("a5"))
    assert state.board.get(sq("a5")) == Piece(PieceType.ROOK, Color.WHITE)
    assert state.active_power_up is None
    assert state.white.power_ups == ()
    assert state.white.power_ups_used == (PowerUpType.SPECTRAL_MOVE,)


def test_activating_again_cancels() -> None:
    state = make_state("4k3/8/8/8/8/8/8/R3K3", power_ups=(PowerUpType.GHOSTLY_PAWN,))
    power_up_id = held(state, PowerUpType.GHOSTLY_PAWN)
    state = activate_power_up(state, power_up_id)
    assert state.status == GameStatus.PLACING_PAWN

    state = activate_power_up(state, power_up_id)
    assert state.status == GameStatus.PLAYING
    assert state.active_power_up is None
    assert len(state.white.power_ups) == 1
    assert state.white.power_ups_used == ()


def test_ghostly_pawn() -> None:
    state = make_state("4k3/8/8/8/8/8/8/R3K3", power_ups=(PowerUpType.GHOSTLY_PAWN,))
    state = replace(state, moves_remaining=20)
    state = activate_power_up(state, held(state, PowerUpType.GHOSTLY_PAWN))
    assert len(pawn_placement_squares(state)) == 8

    with pytest.raises(GameStateError):
        submit_move(state, sq("a1"), sq("a2"))
    with pytest.raises(IllegalMoveError):
        submit_pawn_placement(state, sq("d3"))

    state = submit_pawn_placement(state, sq("d2"))
    assert state.board.get(sq("d2")) == Piece(PieceType.PAWN, Color.WHITE)
    assert state.current_player == Color.BLACK
    assert state.moves_remaining == 50
    assert state.white.power_ups_used == (PowerUpType.GHOSTLY_PAWN,)


def test_ghostly_pawn_must_block_check(e_file_check_board: Board) -> None:
    """In check, the summoned pawn may only land where it shields the king."""
    state = make_state(e_file_check_board.to_fen(), power_ups=(PowerUpType.GHOSTLY_PAWN,))
    state = activate_power_up(state, held(state, PowerUpType.GHOSTLY_PAWN))
    assert pawn_placement_squares(state) == [sq("e2")]

    with pytest.raises(IllegalMoveError):
        submit_pawn_placement(state, sq("a2"))

    state = submit_pawn_placement(state, sq("e2"))
    assert not is_king_in_check(state.board, Color.WHITE)
    assert state.current_player == Color.BLACK


def test_ghostly_pawn_without_room() -> None:
    state = make_state(power_ups=(PowerUpType.GHOSTLY_PAWN,))
    with pytest.raises(PowerUpError):
        activate_power_up(state, held(state, PowerUpType.GHOSTLY_PAWN))


def test_ghastly_possession() -> None:
    state = make_state(power_ups=(PowerUpType.GHASTLY_POSSESSION,))
    state = activate_power_up(state, held(state, PowerUpType.GHASTLY_POSSESSION))
    assert state.status == GameStatus.POSSESSING_PIECE
    # 8 pawns and 2 knights
    assert len(possessable_pieces(state)) == 10

    with pytest.raises(IllegalMoveError):
        select_possession_piece(state, sq("f8"))

    state = select_possession_piece(state, sq("e7"))
    assert state.possession_from == sq("e7")
    with pytest.raises(IllegalMoveError):
        submit_possession_move(state, sq("d7"), sq("d5"))

    state = submit_possession_move(state, sq("e7"), sq("e5"))
    assert state.board.get(sq("e5")) == Piece(PieceType.PAWN, Color.BLACK)
    assert state.current_player == Color.BLACK
    assert state.possession_from is None
    assert state.white.power_ups_used == (PowerUpType.GHASTLY_POSSESSION,)


def test_possession_by_black_counts_down() -> None:
    """Moving an enemy pawn is not a pawn move of the possessor: the counter follows its normal cadence."""
    state = make_state(
        "4k3/8/8/8/8/8/4P3/4K3", color=Color.BLACK, power_ups=(PowerUpType.GHASTLY_POSSESSION,)
    )
    state = replace(state, moves_remaining=10)
    state = activate_power_up(state, held(state, PowerUpType.GHASTLY_POSSESSION))
    state = submit_possession_move(state, sq("e2"), sq("e3"))
    assert state.board.get(sq("e3")) == Piece(PieceType.PAWN, Color.WHITE)
    assert state.current_player == Color.WHITE
    assert state.moves_remaining == 9


@pytest.mark.parametrize(
    "fen",
    [
        "4k3/8/8/8/8/8/p7/4K3",  # the pawn could only walk onto its promotion row
        "k3r3/8/8/8/8/8/4n3/4K3",  # moving the knight would expose the white king
    ],
)
def test_nothing_to_possess(fen: str) -> None:
    state = make_state(fen, power_ups=(PowerUpType.GHASTLY_POSSESSION,))
    assert possessable_pieces(state) == []
    with pytest.raises(PowerUpError):
        activate_power_up(state, held(state, PowerUpType.GHASTLY_POSSESSION))


def test_ethereal_escape(e_file_check_board: Board) -> None:
    state = make_state(e_file_check_board.to_fen(), power_ups=(PowerUpType.ETHEREAL_ESCAPE,))
    assert state.status == GameStatus.CHECK

    state = activate_power_up(state, held(state, PowerUpType.ETHEREAL_ESCAPE))
    assert state.status == GameStatus.ESCAPING_CHECK
    with pytest.raises(IllegalMoveError):
        submit_escape_square(state, sq("e2"))

    state = submit_escape_square(state, sq("d1"))
    assert state.board.get(sq("d1")) == Piece(PieceType.KING, Color.WHITE)
    assert state.current_player == Color.BLACK
    assert state.white.power_ups_used == (PowerUpType.ETHEREAL_ESCAPE,)


def test_ethereal_escape_needs_check() -> None:
    state = make_state(power_ups=(PowerUpType.ETHEREAL_ESCAPE,))
    with pytest.raises(PowerUpError):
        activate_power_up(state, held(state, PowerUpType.ETHEREAL_ESCAPE))


def test_seance() -> None:
    knight = Piece(PieceType.KNIGHT, Color.WHITE)
    state = make_state(
        "4k3/8/8/8/8/8/8/R3K3", power_ups=(PowerUpType.SEANCE,), stolen_piece=knight
    )
    state = activate_power_up(state, held(state, PowerUpType.SEANCE))
    assert state.status == GameStatus.PLACING_STOLEN_PIECE
    # 6 free squares on the first rank, 8 on the second
    assert len(stolen_piece_squares(state)) == 14

    with pytest.raises(IllegalMoveError):
        submit_stolen_piece_restore(state, sq("b3"))

    state = submit_stolen_piece_restore(state, sq("b1"))
    assert state.board.get(sq("b1")) == knight
    assert state.white.stolen_piece is None
    assert state.current_player == Color.BLACK


def test_seance_pawn_only_second_rank() -> None:
    state = make_state(
        "4k3/8/8/8/8/8/8/R3K3",
        power_ups=(PowerUpType.SEANCE,),
        stolen_piece=Piece(PieceType.PAWN, Color.WHITE),
    )
    assert {pos.row for pos in stolen_piece_squares(state)} == {sq("a2").row}


def test_seance_must_block_check(e_file_check_board: Board) -> None:
    state = make_state(
        e_file_check_board.to_fen(),
        power_ups=(PowerUpType.SEANCE,),
        stolen_piece=Piece(PieceType.KNIGHT, Color.WHITE),
    )
    state = activate_power_up(state, held(state, PowerUpType.SEANCE))
    assert stolen_piece_squares(state) == [sq("e2")]

    with pytest.raises(IllegalMoveError):
        submit_stolen_piece_restore(state, sq("a1"))

    state = submit_stolen_piece_restore(state, sq("e2"))
    assert not is_king_in_check(state.board, Color.WHITE)


@pytest.mark.parametrize(
    "power_up_type, stolen_piece",
    [
        (PowerUpType.GHOSTLY_PAWN, None),
        (PowerUpType.SEANCE, Piece(PieceType.ROOK, Color.WHITE)),
    ],
)
def test_drop_cannot_answer_knight_check(
    power_up_type: PowerUpType, stolen_piece: Piece | None
) -> None:
    """A knight check cannot be blocked, so there is nowhere to drop a piece."""
    state = make_state(
        "kr6/8/8/8/8/3n4/8/4K3", power_ups=(power_up_type,), stolen_piece=stolen_piece
    )
    assert state.status == GameStatus.CHECK
    with pytest.raises(PowerUpError):
        activate_power_up(state, held(state, power_up_type))


def test_seance_restored_piece_counts_for_draw_counter() -> None:
    """A restored knight is an ordinary piece move (counts down after black), a restored pawn resets."""
    state = make_state(
        "4k3/8/8/8/8/8/8/R3K3",
        color=Color.BLACK,
        power_ups=(PowerUpType.SEANCE,),
        stolen_piece=Piece(PieceType.KNIGHT, Color.BLACK),
    )
    state = replace(state, moves_remaining=10)
    state = activate_power_up(state, held(state, PowerUpType.SEANCE))
    state = submit_stolen_piece_restore(state, sq("b8"))
    assert state.board.get(sq("b8")) == Piece(PieceType.KNIGHT, Color.BLACK)
    assert state.moves_remaining == 9

    state = make_state(
        "4k3/8/8/8/8/8/8/R3K3",
        power_ups=(PowerUpType.SEANCE,),
        stolen_piece=Piece(PieceType.PAWN, Color.WHITE),
    )
    state = replace(state, moves_remaining=10)
    state = activate_power_up(state, held(state, PowerUpType.SEANCE))
    state = submit_stolen_piece_restore(state, sq("c2"))
    assert state.moves_remaining == 50


def test_seance_without_stolen_piece() -> None:
    state = make_state("4k3/8/8/8/8/8/8/R3K3", power_ups=(PowerUpType.SEANCE,))
    with pytest.raises(PowerUpError):
        activate_power_up(state, held(state, PowerUpType.SEANCE))


# -- EVENTS --
def test_steal_piece() -> None:
    state = make_state()
    stolen = steal_piece(state, Color.BLACK, sq("b8"))
    assert stolen.board.is_empty(sq("b8"))
    assert stolen.black.stolen_piece == Piece(PieceType.KNIGHT, Color.BLACK)
    assert stolen.current_player == Color.WHITE
    assert stolen.move_count == 0

    with pytest.raises(GameStateError):
        steal_piece(stolen, Color.BLACK, sq("g8"))


@pytest.mark.parametrize(
    "fen, color, square",
    [
        ("rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR", Color.WHITE, "e1"),  # kings are safe
        ("rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR", Color.WHITE, "e4"),  # empty square
        ("k3r3/8/8/8/8/8/4N3/4K3", Color.WHITE, "e2"),  # would expose the king
        ("k3r3/8/8/8/8/8/8/4K3", Color.BLACK, "e8"),  # would lift the check
    ],
)
def test_steal_not_allowed(fen: str, color: Color, square: str) -> None:
    with pytest.raises(IllegalMoveError):
        steal_piece(make_state(fen), color, sq(square))


def test_timer_runs_out() -> None:
    state = replace(make_state(), timers=Timers(white=2, black=300))
    state = tick_timer(state)
    assert state.timers.white == 1
    assert not state.gameover

    state = tick_timer(state)
    assert state.timers.white == 0
    assert state.status == GameStatus.TIMEOUT
    assert state.gameover
    assert state.winner == Color.BLACK
    # frozen once over
    assert tick_timer(state) == state


def test_announcement_keys_grow() -> None:
    state = make_state().announce("boo").announce("boo")
    assert state.announcement is not None
    assert state.announcement.key == 2


def test_begin_match_needs_both_kings() -> None:
    state = new_game_state("Casper", "Specter", board=Board.from_fen("8/8/8/8/8/8/8/4K3"))
    with pytest.raises(GameStateError):
        begin_match(state)
