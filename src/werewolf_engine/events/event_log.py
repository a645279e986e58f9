"""Chronological event log organized by round and phase."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, SerializeAsAny

import yaml

from .game_events import GameEvent, GameOver, Phase


# ============================================================================
# Phase Grouping
# ============================================================================

class PhaseLog(BaseModel):
    """Events that happened during one visit to a phase."""

    round: int
    kind: Phase
    events: list[SerializeAsAny[GameEvent]] = Field(default_factory=list)

    def describe(self) -> str:
        header = f"=== {self.kind.name} (round {self.round}) ==="
        if not self.events:
            return f"{header}\n  (no events)"
        lines = [header]
        for event in self.events:
            lines.append(f"  {event}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.describe()


# ============================================================================
# Full Game Event Log
# ============================================================================

class GameEventLog(BaseModel):
    """
    Chronological event log for one session.

    Structure:
    - events: flat list in the order they were recorded
    - phases: the same events grouped by consecutive (round, phase)
    - game_over: final result, if the game ended
    """

    game_id: str
    created_at: str = Field(default_factory=lambda: datetime.now().isoformat())
    player_count: int = 0
    events: list[SerializeAsAny[GameEvent]] = Field(default_factory=list)

    @property
    def phases(self) -> list[PhaseLog]:
        groups: list[PhaseLog] = []
        for event in self.events:
            kind = event.phase or Phase.LOBBY
            if not groups or groups[-1].kind != kind or groups[-1].round != event.round:
                groups.append(PhaseLog(round=event.round, kind=kind))
            groups[-1].events.append(event)
        return groups

    @property
    def game_over(self) -> Optional[GameOver]:
        for event in reversed(self.events):
            if isinstance(event, GameOver):
                return event
        return None

    def events_of(self, event_type: type) -> list[GameEvent]:
        """Return all events of the given class (or its subclasses)."""
        return [e for e in self.events if isinstance(e, event_type)]

    def __str__(self) -> str:
        lines = [f"Game {self.game_id} ({self.player_count} players)"]
        for i, phase in enumerate(self.phases):
            if i > 0:
                lines.append("")
            lines.extend(phase.describe().split("\n"))
        return "\n".join(lines)

    def to_yaml(self) -> str:
        """Serialize the event log to a YAML string."""
        data = {
            "game_id": self.game_id,
            "created_at": self.created_at,
            "player_count": self.player_count,
            "events": [
                {"event_type": event.event_type, **event.model_dump(mode="json")}
                for event in self.events
            ],
        }
        return yaml.safe_dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)

    def save_to_file(self, filepath: str) -> None:
        """Serialize the event log to a YAML file."""
        yaml_content = self.to_yaml()
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(yaml_content)
