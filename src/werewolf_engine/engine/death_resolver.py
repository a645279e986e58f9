"""DeathResolver - the single path by which a player dies.

kill() marks the victim dead and follows the lover cascade: a bonded
partner who is still alive dies of heartbreak in the same chain, and so on
until the chain runs out (a visited set stops mutual re-triggering). A
dying Hunter opens the last-stand slot; the phase machine suspends
advancement until the Hunter shoots or the slot expires.
"""

import logging
from collections import deque
from typing import Optional

from werewolf_engine.engine.errors import InvalidAction, InvalidRole, InvalidTarget, NotAuthorized
from werewolf_engine.engine.event_collector import EventCollector
from werewolf_engine.engine.game_state import DeathRecord, GameState
from werewolf_engine.engine.role_catalog import capability_for
from werewolf_engine.events.game_events import (
    DeathCause,
    DeathEvent,
    HunterShot,
    LastStandExpired,
    LastStandOpened,
)
from werewolf_engine.notifications import Notice, NoticeKind, NotificationDispatcher

logger = logging.getLogger(__name__)

DEATH_MESSAGES = {
    DeathCause.WEREWOLF_ATTACK: "{name} was killed during the night.",
    DeathCause.VOTE: "{name} was eliminated by the village.",
    DeathCause.HEARTBREAK: "{name} died of heartbreak.",
    DeathCause.HUNTER_SHOT: "{name} was shot by the Hunter.",
}


class DeathResolver:
    """Kills players and manages the last-stand slot."""

    def __init__(self, state: GameState, collector: EventCollector, notices: NotificationDispatcher):
        self._state = state
        self._collector = collector
        self._notices = notices

    async def kill(
        self,
        player_id: str,
        cause: DeathCause,
        caused_by: Optional[str] = None,
    ) -> list[str]:
        """Kill a player and everyone bonded to them.

        Returns the ids that died, in order. Killing a player who is
        already dead is a no-op.
        """
        died: list[str] = []
        queue = deque([(player_id, cause, caused_by)])
        seen: set[str] = set()

        while queue:
            victim_id, victim_cause, killer_id = queue.popleft()
            if victim_id in seen:
                continue
            seen.add(victim_id)

            victim = self._state.get_player(victim_id)
            if victim is None or not victim.is_alive:
                continue

            victim.is_alive = False
            victim.is_protected = False
            self._state.night.drop_actor(victim_id)
            self._state.deaths.append(DeathRecord(
                round=self._state.round,
                phase=self._state.phase,
                player_id=victim_id,
                cause=victim_cause,
                caused_by=killer_id,
            ))
            self._collector.add_event(DeathEvent(actor=victim_id, cause=victim_cause, caused_by=killer_id))
            died.append(victim_id)
            logger.info("Game %s: %s died (%s)", self._state.game_id, victim_id, victim_cause.value)

            partner_id = self._state.partner_of(victim_id)
            if partner_id is not None and self._state.is_alive(partner_id):
                queue.append((partner_id, DeathCause.HEARTBREAK, victim_id))

            if (
                victim.role is not None
                and capability_for(victim.role).last_stand
                and self._state.pending_last_stand_actor_id is None
            ):
                self._state.pending_last_stand_actor_id = victim_id
                self._collector.add_event(LastStandOpened(actor=victim_id))

        for victim_id in died:
            await self._announce(victim_id)
        if self._state.pending_last_stand_actor_id in died:
            await self._notices.notify(self._state.pending_last_stand_actor_id, Notice(
                kind=NoticeKind.LAST_STAND,
                title="Last stand",
                body="You have fallen. Choose one living player to take with you.",
            ))
        return died

    async def _announce(self, victim_id: str) -> None:
        record = next(r for r in reversed(self._state.deaths) if r.player_id == victim_id)
        victim = self._state.players[victim_id]
        fields = {"Role": victim.role.value.title()} if victim.role else {}
        await self._notices.broadcast(Notice(
            kind=NoticeKind.DEATH,
            title="A player has died",
            body=DEATH_MESSAGES[record.cause].format(name=victim.username),
            fields=fields,
        ))

    # =========================================================================
    # Last stand
    # =========================================================================

    async def resolve_last_stand(self, actor_id: str, target_id: str) -> list[str]:
        """The pending Hunter takes ``target_id`` down with them."""
        actor = self._state.get_player(actor_id)
        if actor is None:
            raise NotAuthorized(f"{actor_id} is not in game {self._state.game_id}", "You are not in this game.")
        if self._state.pending_last_stand_actor_id != actor_id:
            if actor.role is not None and capability_for(actor.role).last_stand:
                raise InvalidAction(
                    f"{actor_id} has no open last stand",
                    "You can only use your last stand right after you die.",
                )
            raise InvalidRole(
                f"{actor_id} ({actor.role}) tried a last-stand action",
                "Only the Hunter can take revenge.",
            )

        target = self._state.get_player(target_id)
        if target is None:
            raise InvalidTarget(f"Unknown target {target_id}", "That player is not in this game.")
        if target_id == actor_id or not target.is_alive:
            raise InvalidTarget(
                f"Last-stand target {target_id} is not a living other player",
                "You must choose a living player.",
            )

        self._state.pending_last_stand_actor_id = None
        self._collector.add_event(HunterShot(actor=actor_id, target=target_id))
        await self._notices.broadcast(Notice(
            kind=NoticeKind.LAST_STAND,
            title="The Hunter fires",
            body=f"With their last breath, {actor.username} shoots {target.username}.",
        ))
        return await self.kill(target_id, DeathCause.HUNTER_SHOT, caused_by=actor_id)

    async def expire_last_stand(self) -> Optional[str]:
        """Close the last-stand slot without a kill."""
        actor_id = self._state.pending_last_stand_actor_id
        if actor_id is None:
            return None
        self._state.pending_last_stand_actor_id = None
        self._collector.add_event(LastStandExpired(actor=actor_id))
        await self._notices.broadcast(Notice(
            kind=NoticeKind.LAST_STAND,
            title="The Hunter hesitated",
            body=f"{self._state.display_name(actor_id)} did not take anyone with them.",
        ))
        return actor_id
