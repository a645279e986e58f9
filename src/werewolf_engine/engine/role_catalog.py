"""Role catalog - static description of what each role may do.

The resolvers never branch on role names. They look up the actor's
RoleCapability and follow it: which action the role owns, in which phases
it may be used, whether the actor may target themself, and which extra
target rules apply. A new role is a new catalog entry.
"""

from typing import Callable, Optional, TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from werewolf_engine.engine.errors import InvalidTarget
from werewolf_engine.events.game_events import ActionType, Phase
from werewolf_engine.models.player import Faction, Player, Role, faction_of

if TYPE_CHECKING:
    from werewolf_engine.engine.game_state import GameState


# Called as rule(state, actor, target); raises InvalidTarget to reject.
TargetRule = Callable[..., None]


# ============================================================================
# Target Rules
# ============================================================================


def not_fellow_werewolf(state: "GameState", actor: Player, target: Player) -> None:
    if target.role == Role.WEREWOLF:
        raise InvalidTarget(
            f"{actor.id} tried to attack fellow werewolf {target.id}",
            "Werewolves cannot attack other werewolves.",
        )


def not_last_protected(state: "GameState", actor: Player, target: Player) -> None:
    if state.night.last_protected_target_id == target.id:
        raise InvalidTarget(
            f"{actor.id} tried to protect {target.id} on consecutive nights",
            "You cannot protect the same player two nights in a row.",
        )


# ============================================================================
# Capabilities
# ============================================================================


class RoleCapability(BaseModel):
    """What a role can do at night.

    action is None for roles without a covert action. eligible_phases lists
    the phases in which the action may be submitted; an empty set with
    last_stand=True means the action is only usable from the last-stand slot.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    role: Role
    action: Optional[ActionType] = None
    eligible_phases: frozenset[Phase] = frozenset()
    allow_self_target: bool = False
    unique: bool = True
    last_stand: bool = False
    max_targets: int = 1
    # Role an investigation asks about.
    query_role: Optional[Role] = None
    target_rules: tuple[TargetRule, ...] = ()
    description: str = ""

    @property
    def faction(self) -> Faction:
        return faction_of(self.role)

    def can_act_in(self, phase: Phase) -> bool:
        return self.action is not None and phase in self.eligible_phases

    def check_target(self, state: "GameState", actor: Player, target: Player) -> None:
        """Apply the self-target and role-specific target rules."""
        if not self.allow_self_target and actor.id == target.id:
            raise InvalidTarget(
                f"{actor.id} targeted themself with {self.action.value if self.action else 'nothing'}",
                "You cannot target yourself.",
            )
        for rule in self.target_rules:
            rule(state, actor, target)


ROLE_CATALOG: dict[Role, RoleCapability] = {
    Role.WEREWOLF: RoleCapability(
        role=Role.WEREWOLF,
        action=ActionType.ATTACK,
        eligible_phases=frozenset({Phase.NIGHT}),
        unique=False,
        target_rules=(not_fellow_werewolf,),
        description="Hunts with the pack each night. The pack must agree on one victim.",
    ),
    Role.SEER: RoleCapability(
        role=Role.SEER,
        action=ActionType.INVESTIGATE,
        eligible_phases=frozenset({Phase.NIGHT}),
        query_role=Role.WEREWOLF,
        description="Learns whether a player is a werewolf each night.",
    ),
    Role.BODYGUARD: RoleCapability(
        role=Role.BODYGUARD,
        action=ActionType.PROTECT,
        eligible_phases=frozenset({Phase.NIGHT}),
        target_rules=(not_last_protected,),
        description="Protects one player each night, never the same one twice in a row.",
    ),
    Role.CUPID: RoleCapability(
        role=Role.CUPID,
        action=ActionType.CHOOSE_LOVERS,
        eligible_phases=frozenset({Phase.NIGHT_ZERO}),
        max_targets=2,
        description="Bonds two lovers on the first night. Lovers die together.",
    ),
    Role.HUNTER: RoleCapability(
        role=Role.HUNTER,
        action=ActionType.HUNTER_REVENGE,
        last_stand=True,
        description="When killed, may take one player down with them.",
    ),
    Role.MINION: RoleCapability(
        role=Role.MINION,
        description="Knows the werewolves and wins with them.",
    ),
    Role.SORCERER: RoleCapability(
        role=Role.SORCERER,
        action=ActionType.DARK_INVESTIGATE,
        eligible_phases=frozenset({Phase.NIGHT}),
        query_role=Role.SEER,
        description="Hunts for the seer on behalf of the werewolves.",
    ),
    Role.VILLAGER: RoleCapability(
        role=Role.VILLAGER,
        unique=False,
        description="No special ability.",
    ),
}


def capability_for(role: Role) -> RoleCapability:
    return ROLE_CATALOG[role]


def role_for_action(action: ActionType) -> Role:
    """Return the role that owns an action type."""
    for capability in ROLE_CATALOG.values():
        if capability.action == action:
            return capability.role
    raise KeyError(action)


def roles_acting_in(phase: Phase) -> set[Role]:
    """Roles with an action usable in the given phase."""
    return {c.role for c in ROLE_CATALOG.values() if c.can_act_in(phase)}


def unique_roles() -> set[Role]:
    return {c.role for c in ROLE_CATALOG.values() if c.unique}
