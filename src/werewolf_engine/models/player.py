"""Player, Role and Faction models."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel


class Role(str, Enum):
    """Player roles in the game.

    Declaration order is also the order in which optional roles are dealt
    into the role pool at game start.
    """

    WEREWOLF = "WEREWOLF"
    SEER = "SEER"
    BODYGUARD = "BODYGUARD"
    CUPID = "CUPID"
    HUNTER = "HUNTER"
    MINION = "MINION"
    SORCERER = "SORCERER"
    VILLAGER = "VILLAGER"


class Faction(str, Enum):
    """Factions for victory conditions."""

    WEREWOLF = "WEREWOLF"  # Werewolf, Minion, Sorcerer
    VILLAGE = "VILLAGE"  # Everyone else


WEREWOLF_ALIGNED_ROLES = frozenset({Role.WEREWOLF, Role.MINION, Role.SORCERER})


def faction_of(role: Optional[Role]) -> Faction:
    """Return the faction a role belongs to (unassigned counts as village)."""
    if role in WEREWOLF_ALIGNED_ROLES:
        return Faction.WEREWOLF
    return Faction.VILLAGE


class Player(BaseModel):
    """Represents a participant in the game.

    The id is the chat-platform identifier; username is for display only.
    Role stays None until the game leaves the lobby.
    """

    id: str
    username: str
    role: Optional[Role] = None
    is_alive: bool = True
    is_protected: bool = False

    @property
    def faction(self) -> Faction:
        return faction_of(self.role)

    @property
    def is_werewolf_aligned(self) -> bool:
        return self.faction == Faction.WEREWOLF

    def assign_role(self, role: Role) -> None:
        """Assign the player's role. Roles are dealt once and never reassigned."""
        if self.role is not None:
            raise ValueError(f"Player {self.id} already has role {self.role.value}")
        self.role = role

    def reset(self) -> None:
        """Return the player to lobby state."""
        self.role = None
        self.is_alive = True
        self.is_protected = False

    def to_dict(self, reveal_role: bool = False) -> dict:
        """Convert to dictionary, hiding the role unless asked."""
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role.value if reveal_role and self.role else None,
            "is_alive": self.is_alive,
        }
