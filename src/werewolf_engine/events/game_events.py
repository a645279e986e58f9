"""Event types for game logging."""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from werewolf_engine.models.player import Faction, Role


class Phase(str, Enum):
    """Phases of a game session."""

    LOBBY = "LOBBY"
    NIGHT_ZERO = "NIGHT_ZERO"
    DAY = "DAY"
    NOMINATION = "NOMINATION"
    VOTING = "VOTING"
    NIGHT = "NIGHT"
    GAME_OVER = "GAME_OVER"


NIGHT_PHASES = frozenset({Phase.NIGHT_ZERO, Phase.NIGHT})
DAY_PHASES = frozenset({Phase.DAY, Phase.NOMINATION, Phase.VOTING})


class ActionType(str, Enum):
    """Covert actions a role can submit."""

    ATTACK = "attack"
    INVESTIGATE = "investigate"
    PROTECT = "protect"
    DARK_INVESTIGATE = "dark_investigate"
    CHOOSE_LOVERS = "choose_lovers"
    HUNTER_REVENGE = "hunter_revenge"


class DeathCause(str, Enum):
    """Cause of death."""

    WEREWOLF_ATTACK = "WEREWOLF_ATTACK"
    VOTE = "VOTE"
    HEARTBREAK = "HEARTBREAK"
    HUNTER_SHOT = "HUNTER_SHOT"


class GameEvent(BaseModel):
    """Base class for all game events.

    round and phase are stamped by the EventCollector when left unset.
    """

    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
    round: int = 0
    phase: Optional[Phase] = None
    debug_info: Optional[str] = None

    @property
    def event_type(self) -> str:
        return self.__class__.__name__

    def __str__(self) -> str:
        phase = self.phase.value if self.phase else "?"
        return f"{self.event_type}(round={self.round}, phase={phase})"


# ============================================================================
# Character Actions (events with an actor)
# ============================================================================


class CharacterAction(GameEvent):
    """Base class for events with a character actor."""

    actor: str  # player id

    def __str__(self) -> str:
        return f"{self.event_type}(actor={self.actor}, round={self.round})"


class TargetAction(CharacterAction):
    """Action that selects a target player."""

    target: Optional[str] = None

    def __str__(self) -> str:
        target_str = f", target={self.target}" if self.target is not None else ""
        return f"{self.event_type}(actor={self.actor}, round={self.round}{target_str})"


class PlayerJoined(CharacterAction):
    """A player entered the lobby."""

    username: str

    def __str__(self) -> str:
        return f"PlayerJoined(actor={self.actor}, username={self.username})"


class NightActionSubmitted(TargetAction):
    """A covert action was accepted into the night ledger."""

    action_type: ActionType
    second_target: Optional[str] = None

    def __str__(self) -> str:
        second = f", second_target={self.second_target}" if self.second_target else ""
        return (
            f"NightAction(actor={self.actor}, action={self.action_type.value}, "
            f"target={self.target}{second})"
        )


class Investigation(TargetAction):
    """Seer or Sorcerer learned whether the target holds the queried role."""

    action_type: ActionType
    queried_role: Role
    detected: bool

    def __str__(self) -> str:
        verdict = "is" if self.detected else "is not"
        return (
            f"Investigation(actor={self.actor}, target={self.target} "
            f"{verdict} {self.queried_role.value})"
        )


class LoversBonded(CharacterAction):
    """Cupid bonded two players."""

    first: str
    second: str

    def __str__(self) -> str:
        return f"LoversBonded(actor={self.actor}, lovers=({self.first}, {self.second}))"


class AttackNullified(TargetAction):
    """The pack's attack hit a protected player."""


class DeathEvent(CharacterAction):
    """Single death, created once per dying player.

    actor is the player who died; caused_by names the killer when known
    (the lover for heartbreak, the Hunter for a revenge shot).
    """

    cause: DeathCause
    caused_by: Optional[str] = None

    def __str__(self) -> str:
        by = f", by={self.caused_by}" if self.caused_by else ""
        return f"Death(actor={self.actor}, cause={self.cause.value}{by})"


class Nomination(TargetAction):
    """A player nominated another for elimination."""


class NominationSeconded(CharacterAction):
    """A nomination was seconded and voting opened."""

    nominee: str


class NominationExpired(GameEvent):
    """Nobody seconded within the wait window."""

    nominee: str

    def __str__(self) -> str:
        return f"NominationExpired(nominee={self.nominee})"


class Vote(TargetAction):
    """A ballot on the open nomination."""

    guilty: bool

    def __str__(self) -> str:
        verdict = "guilty" if self.guilty else "innocent"
        return f"Vote(actor={self.actor}, target={self.target}, {verdict})"


class VoteOutcome(GameEvent):
    """Tally of a closed vote."""

    nominee: str
    guilty: int
    innocent: int
    eliminated: bool

    def __str__(self) -> str:
        result = "eliminated" if self.eliminated else "spared"
        return f"VoteOutcome(nominee={self.nominee}, {self.guilty}-{self.innocent}, {result})"


class LastStandOpened(CharacterAction):
    """A dead Hunter may take one player with them."""


class HunterShot(TargetAction):
    """The Hunter used their last stand."""


class LastStandExpired(CharacterAction):
    """The Hunter let the last stand lapse."""


# ============================================================================
# Non-Character Events
# ============================================================================


class RolesAssigned(GameEvent):
    """Roles were dealt when the game left the lobby (secret)."""

    roles: dict[str, Role]

    def __str__(self) -> str:
        return f"RolesAssigned(players={len(self.roles)})"


class PhaseChanged(GameEvent):
    """The phase state machine took a transition."""

    from_phase: Phase
    to_phase: Phase

    def __str__(self) -> str:
        return f"PhaseChanged({self.from_phase.value} -> {self.to_phase.value}, round={self.round})"


class GameOver(GameEvent):
    """Final result of a game. winner is None for a draw."""

    phase: Optional[Phase] = Phase.GAME_OVER
    winner: Optional[Faction] = None
    winners: list[str] = Field(default_factory=list)
    rounds: int = 0
    eliminations: int = 0
    duration_seconds: float = 0.0

    def __str__(self) -> str:
        if self.winner is None:
            return f"GameOver(draw, rounds={self.rounds})"
        return f"GameOver(winner={self.winner.value}, rounds={self.rounds})"
