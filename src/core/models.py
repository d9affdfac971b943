"""
Boundary layer data model(s).

These objects can be used to communicate with the Service.
Both the persistence layer (lower) and the Service use the model(s) defined here, so neither depends on the other's
internal representation.
"""

from dataclasses import dataclass

# wins needed for each level (level 1 needs 0 wins)
LEVEL_THRESHOLDS: tuple[int, ...] = (0, 1, 3, 5, 10, 15, 25, 40, 60, 100)
DEFAULT_PLAYER_NAME = "Player"


def level_for_wins(wins: int) -> int:
    """Highest level reached. Levels are 1-based"""
    return max(
        (idx + 1 for idx, threshold in enumerate(LEVEL_THRESHOLDS) if wins >= threshold),
        default=1,
    )


@dataclass
class ProfileModel:
    """Transport-safe representation of a player profile."""

    profile_id: str
    name: str
    wins: int = 0
    draws: int = 0

    @property
    def level(self) -> int:
        return level_for_wins(self.wins)

    @classmethod
    def default(cls, profile_id: str) -> "ProfileModel":
        return cls(profile_id=profile_id, name=DEFAULT_PLAYER_NAME)
