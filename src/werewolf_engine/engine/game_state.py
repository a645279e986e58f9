"""Game state - the mutable aggregate for one session.

Everything that changes during a game lives here so that a single deep
copy captures it and a single write-back restores it (see snapshot.py).
The player registry operations are methods on the aggregate.
"""

from datetime import datetime
from typing import Iterable, Optional
from pydantic import BaseModel, Field

from werewolf_engine.engine.night_action_store import NightActionStore
from werewolf_engine.events.game_events import ActionType, DeathCause, Phase
from werewolf_engine.models.player import Faction, Player, Role


class NominationState(BaseModel):
    """The open nomination, if any."""

    nominee_id: Optional[str] = None
    nominator_id: Optional[str] = None
    seconder_id: Optional[str] = None
    is_open: bool = False
    votes: dict[str, bool] = Field(default_factory=dict)  # voter id -> guilty

    def clear(self) -> None:
        self.nominee_id = None
        self.nominator_id = None
        self.seconder_id = None
        self.is_open = False
        self.votes = {}

    @property
    def is_empty(self) -> bool:
        return (
            self.nominee_id is None
            and self.nominator_id is None
            and self.seconder_id is None
            and not self.is_open
            and not self.votes
        )


class InvestigationRecord(BaseModel):
    """One Seer or Sorcerer result, kept for the rest of the game."""

    round: int
    actor_id: str
    target_id: str
    action_type: ActionType
    queried_role: Role
    detected: bool


class DeathRecord(BaseModel):
    round: int
    phase: Phase
    player_id: str
    cause: DeathCause
    caused_by: Optional[str] = None


class GameState(BaseModel):
    """Represents the current state of one game session."""

    game_id: str
    creator_id: Optional[str] = None
    authorized_ids: set[str] = Field(default_factory=set)

    phase: Phase = Phase.LOBBY
    round: int = 0
    phase_epoch: int = 0

    players: dict[str, Player] = Field(default_factory=dict)
    night: NightActionStore = Field(default_factory=NightActionStore)
    lovers: dict[str, str] = Field(default_factory=dict)
    pending_last_stand_actor_id: Optional[str] = None
    resume_phase: Optional[Phase] = None
    nomination: NominationState = Field(default_factory=NominationState)
    selected_roles: dict[Role, int] = Field(default_factory=dict)

    game_over: bool = False
    winning_faction: Optional[Faction] = None

    investigations: list[InvestigationRecord] = Field(default_factory=list)
    deaths: list[DeathRecord] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    # =========================================================================
    # Player Registry
    # =========================================================================

    def add_player(self, player_id: str, username: str) -> Player:
        player = Player(id=player_id, username=username)
        self.players[player_id] = player
        return player

    def get_player(self, player_id: Optional[str]) -> Optional[Player]:
        if player_id is None:
            return None
        return self.players.get(player_id)

    def has_player(self, player_id: str) -> bool:
        return player_id in self.players

    def alive_players(self) -> list[Player]:
        return [p for p in self.players.values() if p.is_alive]

    def alive_ids(self) -> set[str]:
        return {p.id for p in self.players.values() if p.is_alive}

    def is_alive(self, player_id: Optional[str]) -> bool:
        player = self.get_player(player_id)
        return player is not None and player.is_alive

    def players_with_role(self, role: Role, alive_only: bool = True) -> list[Player]:
        return [
            p for p in self.players.values()
            if p.role == role and (p.is_alive or not alive_only)
        ]

    def alive_faction_counts(self) -> tuple[int, int]:
        """Return (werewolf-aligned, others) counts among living players."""
        werewolves = 0
        others = 0
        for player in self.alive_players():
            if player.is_werewolf_aligned:
                werewolves += 1
            else:
                others += 1
        return werewolves, others

    def members_of(self, faction: Faction) -> list[Player]:
        return [p for p in self.players.values() if p.faction == faction]

    def display_name(self, player_id: Optional[str]) -> str:
        player = self.get_player(player_id)
        return player.username if player else str(player_id)

    def clear_players(self) -> None:
        """Drop every player (session shutdown)."""
        self.players = {}
        self.lovers = {}

    # =========================================================================
    # Lovers
    # =========================================================================

    def bond(self, first_id: str, second_id: str) -> None:
        self.lovers[first_id] = second_id
        self.lovers[second_id] = first_id

    def partner_of(self, player_id: str) -> Optional[str]:
        return self.lovers.get(player_id)

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def last_stand_pending(self) -> bool:
        return self.pending_last_stand_actor_id is not None

    @property
    def eliminations(self) -> int:
        return len(self.deaths)

    def investigations_by(self, actor_id: str) -> list[InvestigationRecord]:
        return [r for r in self.investigations if r.actor_id == actor_id]

    def clear_protections(self) -> None:
        for player in self.players.values():
            player.is_protected = False

    def roles_in_play(self) -> Iterable[Role]:
        return (p.role for p in self.players.values() if p.role is not None)
