"""
Power-ups: one-shot abilities earned by capturing non-pawn pieces.

Granting and consuming only ever touch a PlayerState, and always hand back a new one.
"""

import random
from dataclasses import dataclass, replace
from typing import Optional

from src.core.exceptions import PowerUpError
from src.core.shared_types import PowerUpType
from src.phantom.state import PlayerState, PowerUp

MAX_POWER_UPS = 3


@dataclass(frozen=True)
class PowerUpInfo:
    name: str
    description: str


POWER_UP_INFO: dict[PowerUpType, PowerUpInfo] = {
    PowerUpType.SPECTRAL_MOVE: PowerUpInfo(
        "Spectral Move",
        "Your next queen, rook or bishop move may pass through one piece.",
    ),
    PowerUpType.TIME_TWIST: PowerUpInfo(
        "Time Twist",
        "Add 30 seconds to your clock.",
    ),
    PowerUpType.GHOSTLY_PAWN: PowerUpInfo(
        "Ghostly Pawn",
        "Summon a new pawn on an empty square of your pawn rank.",
    ),
    PowerUpType.GHASTLY_POSSESSION: PowerUpInfo(
        "Ghastly Possession",
        "Move one of your opponent's pawns or knights (no captures).",
    ),
    PowerUpType.ETHEREAL_ESCAPE: PowerUpInfo(
        "Ethereal Escape",
        "While in check, teleport your king to a safe adjacent square.",
    ),
    PowerUpType.SEANCE: PowerUpInfo(
        "Seance",
        "Bring back your stolen piece onto one of your first two ranks.",
    ),
}


def eligible_power_up_types(player: PlayerState) -> list[PowerUpType]:
    """A second Ethereal Escape is useless, every other type may be held twice."""
    return [
        power_up_type
        for power_up_type in PowerUpType
        if not (
            power_up_type == PowerUpType.ETHEREAL_ESCAPE
            and player.holds(PowerUpType.ETHEREAL_ESCAPE)
        )
    ]


def grant_random_power_up(
    player: PlayerState, rng: random.Random
) -> tuple[PlayerState, Optional[PowerUp]]:
    """Grants beyond capacity are silently dropped (returns the player unchanged and None)."""
    if len(player.power_ups) >= MAX_POWER_UPS:
        return player, None
    power_up = PowerUp(rng.choice(eligible_power_up_types(player)))
    return replace(player, power_ups=player.power_ups + (power_up,)), power_up


def find_power_up(player: PlayerState, power_up_id: str) -> PowerUp:
    power_up = next((p for p in player.power_ups if p.id == power_up_id), None)
    if power_up is None:
        raise PowerUpError(f"{player.name} does not hold power-up {power_up_id!r}.")
    return power_up


def find_power_up_by_type(player: PlayerState, power_up_type: PowerUpType) -> PowerUp:
    power_up = next((p for p in player.power_ups if p.type == power_up_type), None)
    if power_up is None:
        raise PowerUpError(f"{player.name} does not hold a {power_up_type} power-up.")
    return power_up


def consume_power_up(player: PlayerState, power_up_id: str) -> PlayerState:
    """Remove the instance from the held list and log its type in the audit trail (at most once per instance)."""
    power_up = find_power_up(player, power_up_id)
    return replace(
        player,
        power_ups=tuple(p for p in player.power_ups if p.id != power_up_id),
        power_ups_used=player.power_ups_used + (power_up.type,),
    )


def consume_power_up_of_type(player: PlayerState, power_up_type: PowerUpType) -> PlayerState:
    return consume_power_up(player, find_power_up_by_type(player, power_up_type).id)
