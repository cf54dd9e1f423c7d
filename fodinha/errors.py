"""Rejection types reported back to the player who sent a command."""

from __future__ import annotations


class GameError(RuntimeError):
    """Base class for recoverable, per-command rejections."""

    code = "game_error"


class NotFound(GameError):
    """Unknown session or player."""

    code = "not_found"


class AlreadyStarted(GameError):
    code = "already_started"


class GameFull(GameError):
    code = "game_full"


class NotEnoughPlayers(GameError):
    code = "not_enough_players"


class PlayersNotReady(GameError):
    code = "players_not_ready"


class OutOfTurn(GameError):
    """Raised when the actor is not the seat expected to act."""

    code = "out_of_turn"


class InvalidCard(GameError):
    """Raised when the played card is not in the player's hand."""

    code = "invalid_card"


class InvalidPhase(GameError):
    """Raised when a command is not valid in the session's current phase."""

    code = "invalid_phase"


class UnknownCommand(InvalidPhase):
    code = "unknown_command"


class InvalidCommand(InvalidPhase):
    """Raised when a command payload fails validation."""

    code = "invalid_command"


class InvariantViolation(AssertionError):
    """A session reached a state the rules never allow; this is a defect, not a rejection."""
