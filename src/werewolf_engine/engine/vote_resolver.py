"""VoteResolver - nomination, second, ballots and tally.

The resolver validates and mutates; it does not move the phase. The phase
state machine calls it and then takes the matching transition.
"""

import logging
from typing import Optional

from pydantic import BaseModel, Field

from werewolf_engine.config import GameSettings, TiePolicy
from werewolf_engine.engine.death_resolver import DeathResolver
from werewolf_engine.engine.errors import DeadPlayer, InvalidAction, InvalidTarget, NotAuthorized, WrongPhase
from werewolf_engine.engine.event_collector import EventCollector
from werewolf_engine.engine.game_state import GameState
from werewolf_engine.events.game_events import (
    DeathCause,
    Nomination,
    NominationExpired,
    NominationSeconded,
    Phase,
    Vote,
    VoteOutcome,
)
from werewolf_engine.models.player import Player
from werewolf_engine.notifications import Notice, NoticeKind, NotificationDispatcher

logger = logging.getLogger(__name__)


class VoteResult(BaseModel):
    nominee_id: str
    guilty: int
    innocent: int
    eliminated: bool
    deaths: list[str] = Field(default_factory=list)


class VoteResolver:
    """Runs the day half of the rules."""

    def __init__(
        self,
        state: GameState,
        collector: EventCollector,
        notices: NotificationDispatcher,
        deaths: DeathResolver,
        settings: GameSettings,
    ):
        self._state = state
        self._collector = collector
        self._notices = notices
        self._deaths = deaths
        self._settings = settings

    def _require_living(self, player_id: str) -> Player:
        player = self._state.get_player(player_id)
        if player is None:
            raise NotAuthorized(f"{player_id} is not in game {self._state.game_id}", "You are not in this game.")
        if not player.is_alive:
            raise DeadPlayer(f"{player_id} is dead", "Dead players cannot take part in the vote.")
        return player

    def _require_phase(self, phase: Phase, what: str) -> None:
        if self._state.phase != phase:
            raise WrongPhase(
                f"{what} during {self._state.phase.value}",
                f"You can only do that during {phase.value.lower()}.",
            )

    # =========================================================================
    # Nomination
    # =========================================================================

    async def nominate(self, nominator_id: str, target_id: str) -> None:
        self._require_phase(Phase.DAY, "nominate")
        nominator = self._require_living(nominator_id)
        target = self._state.get_player(target_id)
        if target is None:
            raise InvalidTarget(f"Unknown nominee {target_id}", "That player is not in this game.")
        if not target.is_alive:
            raise InvalidTarget(f"Nominee {target_id} is dead", f"{target.username} is already dead.")
        if nominator_id == target_id:
            raise InvalidTarget(f"{nominator_id} nominated themself", "You cannot nominate yourself.")
        if not self._state.nomination.is_empty:
            raise InvalidAction(
                f"Nomination of {self._state.nomination.nominee_id} still open",
                "There is already an open nomination.",
            )

        nomination = self._state.nomination
        nomination.nominee_id = target_id
        nomination.nominator_id = nominator_id
        self._collector.add_event(Nomination(actor=nominator_id, target=target_id))
        logger.info("Game %s: %s nominated %s", self._state.game_id, nominator_id, target_id)
        await self._notices.broadcast(Notice(
            kind=NoticeKind.NOMINATION,
            title="Nomination",
            body=(
                f"{nominator.username} nominated {target.username}. "
                f"Someone must second within {int(self._settings.nomination_timeout)} seconds."
            ),
        ))

    async def second(self, seconder_id: str) -> None:
        self._require_phase(Phase.NOMINATION, "second")
        seconder = self._require_living(seconder_id)
        nomination = self._state.nomination
        if seconder_id == nomination.nominee_id:
            raise InvalidAction(f"{seconder_id} seconded their own nomination", "You cannot second your own nomination.")
        if seconder_id == nomination.nominator_id:
            raise InvalidAction(f"{seconder_id} seconded their own nomination", "You cannot second a nomination you made.")

        nomination.seconder_id = seconder_id
        nomination.is_open = True
        nomination.votes = {}
        nominee_name = self._state.display_name(nomination.nominee_id)
        self._collector.add_event(NominationSeconded(actor=seconder_id, nominee=nomination.nominee_id))
        await self._notices.broadcast(Notice(
            kind=NoticeKind.VOTE,
            title="Voting is open",
            body=f"{seconder.username} seconded. Vote guilty or innocent on {nominee_name}.",
        ))

    async def expire_nomination(self) -> Optional[str]:
        """The second never came: clear the nomination."""
        self._require_phase(Phase.NOMINATION, "expire nomination")
        nominee_id = self._state.nomination.nominee_id
        self._state.nomination.clear()
        if nominee_id is not None:
            self._collector.add_event(NominationExpired(nominee=nominee_id))
        await self._notices.broadcast(Notice(
            kind=NoticeKind.NOMINATION,
            title="Nomination failed",
            body=f"Nobody seconded the nomination of {self._state.display_name(nominee_id)}.",
        ))
        return nominee_id

    def discard_nomination(self) -> None:
        self._state.nomination.clear()

    # =========================================================================
    # Voting
    # =========================================================================

    def eligible_voters(self) -> set[str]:
        return self._state.alive_ids() - {self._state.nomination.nominee_id}

    def all_voted(self) -> bool:
        return self.eligible_voters() <= set(self._state.nomination.votes)

    async def submit_vote(self, voter_id: str, guilty: bool) -> None:
        """Cast or replace a ballot."""
        self._require_phase(Phase.VOTING, "vote")
        self._require_living(voter_id)
        nomination = self._state.nomination
        if not nomination.is_open:
            raise WrongPhase("Vote submitted with voting closed", "Voting is not open.")
        if voter_id == nomination.nominee_id:
            raise InvalidAction(f"{voter_id} voted on their own nomination", "You cannot vote on your own nomination.")

        changed = voter_id in nomination.votes
        nomination.votes[voter_id] = guilty
        self._collector.add_event(Vote(actor=voter_id, target=nomination.nominee_id, guilty=guilty))
        verdict = "guilty" if guilty else "innocent"
        await self._notices.notify(voter_id, Notice(
            kind=NoticeKind.VOTE,
            title="Vote changed" if changed else "Vote recorded",
            body=f"You voted {verdict}.",
        ))

    def tally(self) -> tuple[int, int]:
        """Return (guilty, innocent) among ballots from living eligible voters."""
        eligible = self.eligible_voters()
        ballots = [v for voter, v in self._state.nomination.votes.items() if voter in eligible]
        guilty = sum(1 for v in ballots if v)
        return guilty, len(ballots) - guilty

    def _is_eliminated(self, guilty: int, innocent: int) -> bool:
        if guilty > innocent:
            return True
        if guilty == innocent and guilty > 0:
            return self._settings.tie_policy == TiePolicy.ELIMINATE
        return False

    async def process_votes(self) -> VoteResult:
        """Close voting, tally, and eliminate the nominee on a guilty verdict."""
        self._require_phase(Phase.VOTING, "process votes")
        nominee_id = self._state.nomination.nominee_id
        if nominee_id is None:
            raise InvalidAction("Voting without a nominee", "There is nothing to vote on.")

        guilty, innocent = self.tally()
        eliminated = self._is_eliminated(guilty, innocent) and self._state.is_alive(nominee_id)
        self._state.nomination.clear()
        self._collector.add_event(VoteOutcome(
            nominee=nominee_id, guilty=guilty, innocent=innocent, eliminated=eliminated,
        ))
        logger.info(
            "Game %s: vote on %s closed %d-%d (%s)",
            self._state.game_id, nominee_id, guilty, innocent,
            "eliminated" if eliminated else "spared",
        )
        name = self._state.display_name(nominee_id)
        await self._notices.broadcast(Notice(
            kind=NoticeKind.VOTE,
            title="The village has decided",
            body=f"{name} is {'eliminated' if eliminated else 'spared'}.",
            fields={"Guilty": str(guilty), "Innocent": str(innocent)},
        ))

        result = VoteResult(nominee_id=nominee_id, guilty=guilty, innocent=innocent, eliminated=eliminated)
        if eliminated:
            result.deaths = await self._deaths.kill(nominee_id, DeathCause.VOTE)
        return result
