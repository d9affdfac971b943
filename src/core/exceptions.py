"""
Custom exceptions used across layers.

Everything the game can reject on purpose derives from GameError, so the Service can catch a single base class.
"""


class GameError(Exception):
    """Base class for expected, recoverable failures (bad input, wrong phase, ...)."""


class IllegalMoveError(GameError):
    pass


class GameStateError(GameError):
    """The requested action does not fit the current status of the game."""


class NotYourTurnError(GameError):
    pass


class PowerUpError(GameError):
    """Power-up missing, not owned, or its activation conditions are not met."""


class InvalidFENError(GameError):
    pass


class InvalidRequestError(GameError):
    pass


class RepositoryError(GameError):
    pass


class OracleError(GameError):
    """The external move oracle failed or returned something unusable."""


class InvariantViolationError(Exception):
    """
    Programming error: the board is in a state that should be unreachable (ex. a king went missing).

    NOTE: deliberately NOT a GameError. This one should crash loudly instead of being turned into a rejected move.
    """
