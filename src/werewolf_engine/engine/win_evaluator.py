"""Win evaluation and the end-of-game summary."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from werewolf_engine.engine.game_state import GameState
from werewolf_engine.models.player import Faction


class GameSummary(BaseModel):
    """Final result handed to the notification collaborator."""

    game_id: str
    winner: Optional[Faction] = None  # None = draw or ended by an operator
    winner_ids: list[str] = Field(default_factory=list)
    winner_names: list[str] = Field(default_factory=list)
    rounds: int = 0
    eliminations: int = 0
    duration_seconds: float = 0.0
    reason: str = ""

    def describe(self) -> str:
        if self.winner is None:
            headline = self.reason or "The game ended in a draw."
        else:
            side = "werewolves" if self.winner == Faction.WEREWOLF else "village"
            headline = f"The {side} win!"
        minutes, seconds = divmod(int(self.duration_seconds), 60)
        return (
            f"{headline} Rounds: {self.rounds}, eliminations: {self.eliminations}, "
            f"duration: {minutes}m{seconds:02d}s."
        )


def is_game_over(state: GameState) -> tuple[bool, Optional[Faction]]:
    """Check faction parity.

    Returns:
        tuple: (is_game_over, winner) where winner is None for a draw.

    Rules, in order:
    - nobody alive: draw
    - no werewolf-aligned player alive: village wins
    - werewolf-aligned >= everyone else alive: werewolf faction wins
    """
    werewolves, others = state.alive_faction_counts()
    if werewolves == 0 and others == 0:
        return True, None
    if werewolves == 0:
        return True, Faction.VILLAGE
    if werewolves >= others:
        return True, Faction.WEREWOLF
    return False, None


def summarize(
    state: GameState,
    winner: Optional[Faction],
    ended_at: Optional[datetime] = None,
    reason: str = "",
) -> GameSummary:
    """Build the summary for a finished game."""
    ended_at = ended_at or state.ended_at or datetime.now()
    started_at = state.started_at or state.created_at
    winners = state.members_of(winner) if winner is not None else []
    return GameSummary(
        game_id=state.game_id,
        winner=winner,
        winner_ids=[p.id for p in winners],
        winner_names=[p.username for p in winners],
        rounds=state.round,
        eliminations=state.eliminations,
        duration_seconds=max(0.0, (ended_at - started_at).total_seconds()),
        reason=reason,
    )
