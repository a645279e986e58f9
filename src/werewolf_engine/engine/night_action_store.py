"""Night action storage - the per-night submission ledger."""

from typing import Optional
from pydantic import BaseModel, Field

from werewolf_engine.events.game_events import ActionType


class NightAction(BaseModel):
    """One accepted submission."""

    action_type: ActionType
    target_id: str
    second_target_id: Optional[str] = None

    def same_as(self, action_type: ActionType, target_id: str, second_target_id: Optional[str]) -> bool:
        return (
            self.action_type == action_type
            and self.target_id == target_id
            and self.second_target_id == second_target_id
        )


class NightActionStore(BaseModel):
    """Tracks submissions for the current night plus the protection memory.

    Persistent state (survives reset_for_new_night):
    - last_protected_target_id: forbids protecting the same player on the
      next night. Cleared when a night passes without any protection.

    Ephemeral state (cleared each night):
    - actions: actor id -> accepted NightAction
    - expected: actors the night waits for
    - completed: actors that have acted
    - protected_tonight: players protected this night
    - protection_notice_sent: the "protection succeeded" broadcast went out
    - attack_target_id: the single attack resolved at dawn
    """

    last_protected_target_id: Optional[str] = None

    actions: dict[str, NightAction] = Field(default_factory=dict)
    expected: set[str] = Field(default_factory=set)
    completed: set[str] = Field(default_factory=set)
    protected_tonight: set[str] = Field(default_factory=set)
    protection_notice_sent: bool = False
    # The first accepted attack fixes the pack's target for the night.
    attack_target_id: Optional[str] = None
    attack_leader_id: Optional[str] = None

    def record(self, actor_id: str, action: NightAction) -> None:
        """Record an accepted action and mark the actor complete."""
        self.actions[actor_id] = action
        self.completed.add(actor_id)
        if action.action_type == ActionType.ATTACK and self.attack_target_id is None:
            self.attack_target_id = action.target_id
            self.attack_leader_id = actor_id

    def action_of(self, actor_id: str) -> Optional[NightAction]:
        return self.actions.get(actor_id)

    def actions_of_type(self, action_type: ActionType) -> dict[str, NightAction]:
        return {
            actor: action
            for actor, action in self.actions.items()
            if action.action_type == action_type
        }

    @property
    def pending(self) -> set[str]:
        """Expected actors that have not acted yet."""
        return self.expected - self.completed

    def all_complete(self) -> bool:
        return not self.pending

    def drop_actor(self, actor_id: str) -> None:
        """Stop waiting for an actor (they died or left)."""
        self.expected.discard(actor_id)

    def reset_for_new_night(self) -> None:
        """Clear the ledger, keeping the protection memory."""
        if not self.protected_tonight:
            self.last_protected_target_id = None
        self.actions = {}
        self.expected = set()
        self.completed = set()
        self.protected_tonight = set()
        self.protection_notice_sent = False
        self.attack_target_id = None
        self.attack_leader_id = None
