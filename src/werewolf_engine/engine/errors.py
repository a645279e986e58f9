"""Game error taxonomy.

Every rule violation raised by the engine is a GameError carrying two
messages: ``reason`` for logs and ``user_message`` for the chat layer.
All GameErrors are recoverable; the operation that raised one is rolled
back and the session keeps running.

PersistenceError is the one fatal infrastructure failure; it is not a
GameError and callers must not treat it as a rejected command.
"""

from typing import Optional


class GameError(Exception):
    """Base class for recoverable rule violations."""

    code = "game_error"
    default_user_message = "That action is not allowed right now."

    def __init__(self, reason: str, user_message: Optional[str] = None):
        self.reason = reason
        self.user_message = user_message or self.default_user_message
        super().__init__(reason)

    def __str__(self) -> str:
        return f"{self.code}: {self.reason}"


class NotAuthorized(GameError):
    code = "not_authorized"
    default_user_message = "You are not allowed to do that."


class DeadPlayer(GameError):
    code = "dead_player"
    default_user_message = "Dead players cannot do that, and cannot be chosen."


class WrongPhase(GameError):
    code = "wrong_phase"
    default_user_message = "That cannot be done in the current phase."


class InvalidTarget(GameError):
    code = "invalid_target"
    default_user_message = "That is not a valid target."


class InvalidRole(GameError):
    code = "invalid_role"
    default_user_message = "Your role cannot perform that action."


class InvalidAction(GameError):
    code = "invalid_action"
    default_user_message = "That action is not available to you right now."


class ConflictingAttack(GameError):
    code = "conflicting_attack"
    default_user_message = "Werewolves must agree on a single target."


class AlreadyActed(GameError):
    code = "already_acted"
    default_user_message = "You have already acted this phase."


class RoleCountMismatch(GameError):
    code = "role_count_mismatch"
    default_user_message = "The selected roles do not fit the number of players."


class PhaseTransitionError(GameError):
    code = "phase_transition"
    default_user_message = "The game cannot move to that phase from here."


class PersistenceError(Exception):
    """Snapshot storage is unavailable where the engine cannot continue."""

    def __init__(self, game_id: str, reason: str):
        self.game_id = game_id
        self.reason = reason
        super().__init__(f"Persistence failed for game {game_id}: {reason}")
