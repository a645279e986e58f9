"""NightActionResolver - collects, validates and resolves covert actions.

Submission checks run in a fixed order and the first failure raises a
typed GameError without recording anything:

    1. actor is in the game            NotAuthorized
    2. actor is alive                  DeadPlayer
    3. phase is NIGHT or NIGHT_ZERO    WrongPhase
    4. actor's role owns the action    InvalidRole
    5. action is usable this phase     InvalidAction
    6. actor has not acted yet         AlreadyActed (identical resubmission is a no-op success)
    7. actor is expected this phase    InvalidAction
    8. target(s) are valid             InvalidTarget
    9. pack agrees on the attack       ConflictingAttack

Investigations resolve at submission time. Protections take effect at
submission time. The attack resolves at the end of the night, after
protections, through the DeathResolver.
"""

import logging
import random
from typing import Optional

from pydantic import BaseModel

from werewolf_engine.engine.death_resolver import DeathResolver
from werewolf_engine.engine.errors import (
    AlreadyActed,
    ConflictingAttack,
    DeadPlayer,
    InvalidAction,
    InvalidRole,
    InvalidTarget,
    NotAuthorized,
    WrongPhase,
)
from werewolf_engine.engine.event_collector import EventCollector
from werewolf_engine.engine.game_state import GameState, InvestigationRecord
from werewolf_engine.engine.night_action_store import NightAction
from werewolf_engine.engine.role_catalog import RoleCapability, capability_for, role_for_action
from werewolf_engine.events.game_events import (
    NIGHT_PHASES,
    ActionType,
    AttackNullified,
    DeathCause,
    Investigation,
    LoversBonded,
    NightActionSubmitted,
    Phase,
)
from werewolf_engine.models.player import Player, Role
from werewolf_engine.notifications import Notice, NoticeKind, NotificationDispatcher

logger = logging.getLogger(__name__)


class NightActionResult(BaseModel):
    """Outcome of one accepted submission."""

    actor_id: str
    action_type: ActionType
    target_id: str
    second_target_id: Optional[str] = None
    duplicate: bool = False
    investigation: Optional[InvestigationRecord] = None


class NightActionResolver:
    """Runs the night half of the rules."""

    def __init__(
        self,
        state: GameState,
        collector: EventCollector,
        notices: NotificationDispatcher,
        deaths: DeathResolver,
        rng: Optional[random.Random] = None,
    ):
        self._state = state
        self._collector = collector
        self._notices = notices
        self._deaths = deaths
        self._rng = rng or random.Random()

    # =========================================================================
    # Night setup
    # =========================================================================

    async def begin_night_zero(self) -> None:
        """Deliver the setup knowledge and decide who Night Zero waits for."""
        state = self._state
        werewolves = state.players_with_role(Role.WEREWOLF)
        pack_names = ", ".join(w.username for w in werewolves)

        for wolf in werewolves:
            await self._notices.notify(wolf.id, Notice(
                kind=NoticeKind.ROLE,
                title="Your pack",
                body=f"The werewolves are: {pack_names}.",
            ))
        for minion in state.players_with_role(Role.MINION):
            await self._notices.notify(minion.id, Notice(
                kind=NoticeKind.ROLE,
                title="Your masters",
                body=f"The werewolves are: {pack_names}.",
            ))

        for seer in state.players_with_role(Role.SEER):
            await self._reveal_to_seer(seer)

        state.night.expected = self._actors_for(Phase.NIGHT_ZERO)
        logger.info(
            "Game %s: night zero waiting on %d actor(s)", state.game_id, len(state.night.expected)
        )

    async def _reveal_to_seer(self, seer: Player) -> None:
        candidates = sorted(
            (p for p in self._state.alive_players() if p.id != seer.id and p.role != Role.WEREWOLF),
            key=lambda p: p.id,
        )
        if not candidates:
            return
        revealed = self._rng.choice(candidates)
        await self._record_investigation(seer, revealed, ActionType.INVESTIGATE, Role.WEREWOLF)

    def begin_night(self) -> None:
        """Reset the ledger for a regular night and compute expected actors."""
        self._state.night.expected = self._actors_for(Phase.NIGHT)
        self._state.night.completed = set()
        self._state.night.actions = {}

    def _actors_for(self, phase: Phase) -> set[str]:
        return {
            p.id for p in self._state.alive_players()
            if p.role is not None and capability_for(p.role).can_act_in(phase)
        }

    def all_complete(self) -> bool:
        return self._state.night.all_complete()

    # =========================================================================
    # Submission
    # =========================================================================

    async def submit(
        self,
        actor_id: str,
        action_type: ActionType,
        target_id: str,
        second_target_id: Optional[str] = None,
    ) -> NightActionResult:
        """Validate and record one covert action."""
        state = self._state
        actor = state.get_player(actor_id)
        if actor is None:
            raise NotAuthorized(f"{actor_id} is not in game {state.game_id}", "You are not in this game.")
        if not actor.is_alive:
            raise DeadPlayer(f"{actor_id} is dead", "Dead players cannot act.")
        if state.phase not in NIGHT_PHASES:
            raise WrongPhase(
                f"{action_type.value} submitted during {state.phase.value}",
                "Night actions can only be submitted at night.",
            )

        capability = self._capability_for(actor, action_type)

        if actor_id in state.night.completed:
            previous = state.night.action_of(actor_id)
            if previous is not None and previous.same_as(action_type, target_id, second_target_id):
                return NightActionResult(
                    actor_id=actor_id,
                    action_type=action_type,
                    target_id=target_id,
                    second_target_id=second_target_id,
                    duplicate=True,
                )
            raise AlreadyActed(f"{actor_id} already acted this phase", "Action already performed.")
        if actor_id not in state.night.expected:
            raise InvalidAction(
                f"{actor_id} is not expected to act in {state.phase.value}",
                "You have no action to take right now.",
            )

        target = self._require_target(capability, actor, target_id)
        second_target = None
        if second_target_id is not None:
            if capability.max_targets < 2:
                raise InvalidAction(
                    f"{action_type.value} takes a single target",
                    "This action takes only one target.",
                )
            second_target = self._require_target(capability, actor, second_target_id)
            if second_target.id == target.id:
                raise InvalidTarget(
                    f"Both targets are {target.id}",
                    "You must choose two different players.",
                )

        if action_type == ActionType.ATTACK:
            await self._check_pack_agreement(actor, target)

        action = NightAction(
            action_type=action_type,
            target_id=target.id,
            second_target_id=second_target.id if second_target else None,
        )
        state.night.record(actor_id, action)
        self._collector.add_event(NightActionSubmitted(
            actor=actor_id,
            target=target.id,
            action_type=action_type,
            second_target=action.second_target_id,
        ))
        logger.info(
            "Game %s: %s submitted %s on %s", state.game_id, actor_id, action_type.value, target.id
        )

        result = NightActionResult(
            actor_id=actor_id,
            action_type=action_type,
            target_id=target.id,
            second_target_id=action.second_target_id,
        )
        if capability.query_role is not None:
            result.investigation = await self._record_investigation(
                actor, target, action_type, capability.query_role
            )
        elif action_type == ActionType.PROTECT:
            self._protect(target)
            await self._notices.notify(actor_id, Notice(
                kind=NoticeKind.PROTECTION,
                title="Protection set",
                body=f"You are watching over {target.username} tonight.",
            ))
        elif action_type == ActionType.CHOOSE_LOVERS:
            first = target if second_target is not None else actor
            second = second_target if second_target is not None else target
            await self._bond(actor, first, second)
        else:
            await self._notices.notify(actor_id, Notice(
                kind=NoticeKind.INFO,
                title="Action recorded",
                body=f"Your pack will attack {target.username}.",
            ))
        return result

    def _capability_for(self, actor: Player, action_type: ActionType) -> RoleCapability:
        if actor.role is None:
            raise InvalidRole(f"{actor.id} has no role", "You have not been given a role.")
        capability = capability_for(actor.role)
        if capability.action != action_type:
            owner = role_for_action(action_type)
            raise InvalidRole(
                f"{actor.role.value} cannot {action_type.value}",
                f"Only the {owner.value.title()} can do that.",
            )
        if capability.last_stand and not capability.eligible_phases:
            raise InvalidAction(
                f"{action_type.value} is only usable from the last stand",
                "You can only use this when you die.",
            )
        if not capability.can_act_in(self._state.phase):
            raise InvalidAction(
                f"{action_type.value} is not allowed during {self._state.phase.value}",
                "You cannot do that tonight.",
            )
        return capability

    def _require_target(self, capability: RoleCapability, actor: Player, target_id: str) -> Player:
        target = self._state.get_player(target_id)
        if target is None:
            raise InvalidTarget(f"Unknown target {target_id}", "That player is not in this game.")
        if not target.is_alive:
            raise InvalidTarget(f"Target {target_id} is dead", f"{target.username} is already dead.")
        capability.check_target(self._state, actor, target)
        return target

    async def _check_pack_agreement(self, actor: Player, target: Player) -> None:
        night = self._state.night
        if night.attack_target_id is None or night.attack_target_id == target.id:
            return
        leader_id = night.attack_leader_id
        chosen = self._state.display_name(night.attack_target_id)
        notice = Notice(
            kind=NoticeKind.WARNING,
            title="Conflicting attack",
            body=(
                f"The pack already chose {chosen}, but {actor.username} wanted "
                f"{target.username}. Werewolves must agree on a single target."
            ),
        )
        # Sent now: the rejection rolls back everything queued with it.
        await self._notices.notify_many(
            [i for i in (leader_id, actor.id) if i is not None], notice, immediate=True,
        )
        raise ConflictingAttack(
            f"{actor.id} chose {target.id} but the pack chose {night.attack_target_id}",
            f"Conflicting Attack: the pack has already chosen {chosen}. Werewolves must agree on a target.",
        )

    def _protect(self, target: Player) -> None:
        target.is_protected = True
        self._state.night.protected_tonight.add(target.id)
        self._state.night.last_protected_target_id = target.id

    async def _record_investigation(
        self,
        actor: Player,
        target: Player,
        action_type: ActionType,
        queried_role: Role,
    ) -> InvestigationRecord:
        detected = target.role == queried_role
        record = InvestigationRecord(
            round=self._state.round,
            actor_id=actor.id,
            target_id=target.id,
            action_type=action_type,
            queried_role=queried_role,
            detected=detected,
        )
        self._state.investigations.append(record)
        self._collector.add_event(Investigation(
            actor=actor.id,
            target=target.id,
            action_type=action_type,
            queried_role=queried_role,
            detected=detected,
        ))
        role_name = queried_role.value.lower()
        verdict = f"IS the {role_name}" if detected else f"is NOT the {role_name}"
        if queried_role == Role.WEREWOLF:
            verdict = "IS a werewolf" if detected else "is NOT a werewolf"
        await self._notices.notify(actor.id, Notice(
            kind=NoticeKind.INVESTIGATION,
            title="Vision",
            body=f"{target.username} {verdict}.",
        ))
        return record

    async def _bond(self, cupid: Player, first: Player, second: Player) -> None:
        self._state.bond(first.id, second.id)
        self._collector.add_event(LoversBonded(actor=cupid.id, first=first.id, second=second.id))
        for lover, partner in ((first, second), (second, first)):
            await self._notices.notify(lover.id, Notice(
                kind=NoticeKind.LOVERS,
                title="You are in love",
                body=f"You are bonded to {partner.username}. If one of you dies, so does the other.",
            ))
        if cupid.id not in (first.id, second.id):
            await self._notices.notify(cupid.id, Notice(
                kind=NoticeKind.LOVERS,
                title="Arrow loosed",
                body=f"{first.username} and {second.username} are now lovers.",
            ))

    # =========================================================================
    # Targets
    # =========================================================================

    def valid_targets(self, actor_id: str, action_type: ActionType) -> list[Player]:
        """Players the actor could currently name for the action."""
        actor = self._state.get_player(actor_id)
        if actor is None or actor.role is None:
            return []
        capability = capability_for(actor.role)
        if capability.action != action_type:
            return []
        # The last stand opens outside the night; its window is the pending actor.
        if action_type != ActionType.HUNTER_REVENGE and not capability.can_act_in(self._state.phase):
            return []

        targets = []
        for candidate in self._state.alive_players():
            try:
                capability.check_target(self._state, actor, candidate)
            except InvalidTarget:
                continue
            targets.append(candidate)
        return targets

    # =========================================================================
    # Resolution
    # =========================================================================

    async def resolve_night(self) -> list[str]:
        """Apply the night's outcome and reset the ledger.

        Order: protections, investigations (already delivered), attack.
        Returns the ids of players who died.
        """
        state = self._state
        night = state.night

        for protected_id in night.protected_tonight:
            player = state.get_player(protected_id)
            if player is not None and player.is_alive:
                player.is_protected = True

        died: list[str] = []
        target_id = night.attack_target_id
        if target_id is not None and state.is_alive(target_id):
            target = state.players[target_id]
            if target.is_protected:
                self._collector.add_event(AttackNullified(actor=night.attack_leader_id or "", target=target_id))
                logger.info("Game %s: attack on %s was blocked", state.game_id, target_id)
                if not night.protection_notice_sent:
                    night.protection_notice_sent = True
                    await self._notices.broadcast(Notice(
                        kind=NoticeKind.PROTECTION,
                        title="A quiet night",
                        body="Someone was attacked, but a protector kept them safe.",
                    ))
            else:
                died = await self._deaths.kill(target_id, DeathCause.WEREWOLF_ATTACK)
        elif target_id is None:
            logger.info("Game %s: no attack tonight", state.game_id)

        state.clear_protections()
        night.reset_for_new_night()
        return died
