"""
Opponent move selection.

- Computes the authoritative legal move list.
- Asks an external oracle to pick one of them (coordinate notation, ex. "e7e5").
- Never trusts the answer: anything that is not exactly one of the offered moves is replaced by a uniformly random
  legal move. Failures (timeout, transport error, garbage) do the same and produce an advisory for the UI.
"""

import asyncio
import logging
import random
import re
from dataclasses import dataclass
from typing import Optional, Protocol

from src.core.exceptions import OracleError
from src.core.shared_types import Color
from src.phantom.analysis import get_all_legal_moves
from src.phantom.board import Board
from src.phantom.fen import board_to_fen
from src.phantom.moves import Move

log = logging.getLogger(__name__)

MOVE_IN_TEXT_RE = re.compile(r"[a-h][1-8][a-h][1-8]")
DEFAULT_ORACLE_TIMEOUT_S = 10.0
ORACLE_ADVISORY = "The spirits did not answer in time. Your opponent made a move on instinct."


class MoveOracle(Protocol):
    """Anything that can suggest a move for a position (LLM, engine, remote service, ...)"""

    async def suggest_move(self, fen: str, color: Color, legal_moves: list[str]) -> str:
        """Return a single move in coordinate notation. Raise OracleError on failure."""
        ...


@dataclass(frozen=True)
class MoveSelection:
    move: Move
    from_oracle: bool
    # user-visible, non-fatal message when the oracle failed
    advisory: Optional[str] = None


def parse_oracle_reply(reply: str) -> str:
    """
    Extract the first coordinate-notation move from the reply text.
    NOTE: in a chatty reply ("e7e5 or g8f6") the first match wins. The selector still checks it against the legal moves.
    """
    match = MOVE_IN_TEXT_RE.search(reply.strip().lower())
    if match is None:
        raise OracleError(f"Oracle reply does not contain a move: {reply!r}")
    return match.group(0)


class OpponentMoveSelector:
    """Pick the move for the non-human side."""

    def __init__(
        self,
        oracle: Optional[MoveOracle] = None,
        timeout_s: float = DEFAULT_ORACLE_TIMEOUT_S,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.oracle = oracle
        self.timeout_s = timeout_s
        self.rng = rng or random.Random()

    async def select_move(self, board: Board, color: Color) -> Optional[MoveSelection]:
        """
        Returns None when there is no legal move at all.
        (Termination detection should already have ended the game in that case, so this is a no-op for the caller.)
        """
        legal_moves = get_all_legal_moves(board, color)
        if not legal_moves:
            log.warning("No legal moves for %s, nothing to select", color)
            return None

        if self.oracle is None:
            return self._fallback(legal_moves)

        legal_uci = [move.to_uci() for move in legal_moves]
        fen = board_to_fen(board, color)
        try:
            reply = await asyncio.wait_for(
                self.oracle.suggest_move(fen, color, legal_uci), timeout=self.timeout_s
            )
            suggestion = parse_oracle_reply(reply)
        except Exception:
            # Oracle failures are always recovered locally: random legal move + advisory
            log.warning("Move oracle failed for %s, falling back to a random move", fen, exc_info=True)
            return self._fallback(legal_moves, advisory=ORACLE_ADVISORY)

        if suggestion not in legal_uci:
            log.info("Oracle suggested %r which is not a legal move, picking at random", suggestion)
            return self._fallback(legal_moves)

        return MoveSelection(Move.from_uci(suggestion), from_oracle=True)

    def _fallback(self, legal_moves: list[Move], advisory: Optional[str] = None) -> MoveSelection:
        return MoveSelection(self.rng.choice(legal_moves), from_oracle=False, advisory=advisory)
