"""Models package."""

from werewolf_engine.models.player import (
    Role,
    Faction,
    Player,
    WEREWOLF_ALIGNED_ROLES,
    faction_of,
)

__all__ = [
    "Role",
    "Faction",
    "Player",
    "WEREWOLF_ALIGNED_ROLES",
    "faction_of",
]
