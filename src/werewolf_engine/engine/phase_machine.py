"""PhaseStateMachine - the top-level controller of a session.

Phases and legal edges:

    LOBBY       -> NIGHT_ZERO, GAME_OVER
    NIGHT_ZERO  -> DAY, GAME_OVER
    DAY         -> NOMINATION, NIGHT, GAME_OVER
    NOMINATION  -> DAY, VOTING, NIGHT, GAME_OVER
    VOTING      -> NIGHT, DAY, GAME_OVER
    NIGHT       -> DAY, GAME_OVER
    GAME_OVER   -> (terminal)

Any other move raises PhaseTransitionError. Every transition bumps
``phase_epoch`` so that timers scheduled for an earlier phase can tell
they are stale.

The machine dispatches commands to the night and vote resolvers, runs the
win check after every death chain, and suspends advancement while a
Hunter's last stand is open (``resume_phase`` remembers where to go next).

Timers are derived from state, not scheduled ad hoc: wanted_timers()
describes which timeouts the current state needs, and sync_timers()
reconciles the registry with that description after every operation.
"""

import functools
import logging
from datetime import datetime
from typing import Awaitable, Callable, Hashable, Optional

from werewolf_engine.config import GameSettings
from werewolf_engine.engine.death_resolver import DeathResolver
from werewolf_engine.engine.errors import PhaseTransitionError, WrongPhase
from werewolf_engine.engine.event_collector import EventCollector
from werewolf_engine.engine.game_state import GameState
from werewolf_engine.engine.night_action_resolver import NightActionResolver, NightActionResult
from werewolf_engine.engine.timers import TimerRegistry
from werewolf_engine.engine.vote_resolver import VoteResolver, VoteResult
from werewolf_engine.engine.win_evaluator import GameSummary, is_game_over, summarize
from werewolf_engine.events.game_events import ActionType, GameOver, Phase, PhaseChanged
from werewolf_engine.models.player import Faction
from werewolf_engine.notifications import Notice, NoticeKind, NotificationDispatcher

logger = logging.getLogger(__name__)

TRANSITIONS: dict[Phase, frozenset[Phase]] = {
    Phase.LOBBY: frozenset({Phase.NIGHT_ZERO, Phase.GAME_OVER}),
    Phase.NIGHT_ZERO: frozenset({Phase.DAY, Phase.GAME_OVER}),
    Phase.DAY: frozenset({Phase.NOMINATION, Phase.NIGHT, Phase.GAME_OVER}),
    Phase.NOMINATION: frozenset({Phase.DAY, Phase.VOTING, Phase.NIGHT, Phase.GAME_OVER}),
    Phase.VOTING: frozenset({Phase.NIGHT, Phase.DAY, Phase.GAME_OVER}),
    Phase.NIGHT: frozenset({Phase.DAY, Phase.GAME_OVER}),
    Phase.GAME_OVER: frozenset(),
}

# Timer names
NIGHT_ZERO_TIMER = "night_zero"
NIGHT_TIMER = "night"
NOMINATION_TIMER = "nomination"
LAST_STAND_TIMER = "last_stand"

TimerDispatch = Callable[[str, Hashable], Awaitable[None]]


class PhaseStateMachine:
    """Owns phase, round and the session's timers."""

    def __init__(
        self,
        state: GameState,
        collector: EventCollector,
        notices: NotificationDispatcher,
        settings: GameSettings,
        timers: TimerRegistry,
        night: NightActionResolver,
        votes: VoteResolver,
        deaths: DeathResolver,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._state = state
        self._collector = collector
        self._notices = notices
        self._settings = settings
        self.timers = timers
        self._night = night
        self._votes = votes
        self._deaths = deaths
        self.clock = clock

    @property
    def phase(self) -> Phase:
        return self._state.phase

    # =========================================================================
    # Transitions
    # =========================================================================

    @staticmethod
    def can_transition(from_phase: Phase, to_phase: Phase) -> bool:
        return to_phase in TRANSITIONS[from_phase]

    async def transition(self, to_phase: Phase) -> None:
        from_phase = self._state.phase
        if not self.can_transition(from_phase, to_phase):
            raise PhaseTransitionError(
                f"Illegal transition {from_phase.value} -> {to_phase.value}",
                f"The game cannot move from {from_phase.value.lower()} to {to_phase.value.lower()}.",
            )
        self._state.phase = to_phase
        self._state.phase_epoch += 1
        self._collector.add_event(PhaseChanged(from_phase=from_phase, to_phase=to_phase))
        logger.info(
            "Game %s: %s -> %s (round %d)",
            self._state.game_id, from_phase.value, to_phase.value, self._state.round,
        )
        await self._announce(to_phase)

    async def _announce(self, phase: Phase) -> None:
        if phase == Phase.NIGHT_ZERO:
            notice = Notice(
                kind=NoticeKind.PHASE,
                title="The first night",
                body="Night falls for the first time. Those with setup duties, act now.",
            )
        elif phase == Phase.NIGHT:
            notice = Notice(
                kind=NoticeKind.PHASE,
                title=f"Night {self._state.round}",
                body="Night falls. Werewolves, choose your prey. Others with night powers, act now.",
            )
        elif phase == Phase.DAY:
            alive = ", ".join(sorted(p.username for p in self._state.alive_players()))
            notice = Notice(
                kind=NoticeKind.PHASE,
                title=f"Day {self._state.round}",
                body="The sun rises. Discuss, and nominate a suspect.",
                fields={"Alive": alive},
            )
        else:
            return
        await self._notices.broadcast(notice)

    async def _go(self, phase: Phase) -> None:
        if phase == Phase.NIGHT:
            await self.enter_night()
        elif phase == Phase.DAY:
            await self.enter_day()
        else:
            await self.transition(phase)

    # =========================================================================
    # Night
    # =========================================================================

    async def start(self) -> None:
        """Leave the lobby and run Night Zero setup."""
        await self.transition(Phase.NIGHT_ZERO)
        await self._night.begin_night_zero()
        if self._night.all_complete():
            await self.finish_night_zero()

    async def finish_night_zero(self) -> None:
        if self._state.phase != Phase.NIGHT_ZERO:
            raise WrongPhase(f"finish night zero during {self._state.phase.value}")
        pending = self._state.night.pending
        if pending:
            logger.info("Game %s: night zero ended without %s", self._state.game_id, sorted(pending))
        self._state.night.reset_for_new_night()
        await self.enter_day()

    async def enter_day(self) -> None:
        await self.transition(Phase.DAY)

    async def enter_night(self) -> None:
        self._votes.discard_nomination()
        self._state.round += 1
        await self.transition(Phase.NIGHT)
        self._night.begin_night()
        if self._night.all_complete():
            await self.end_night()

    async def end_night(self) -> None:
        """Resolve the night and move on to day (or suspend for a last stand)."""
        if self._state.phase != Phase.NIGHT:
            raise WrongPhase(f"end night during {self._state.phase.value}")
        pending = self._state.night.pending
        if pending:
            logger.info("Game %s: night ended without %s", self._state.game_id, sorted(pending))
        await self._night.resolve_night()
        await self._after_deaths(resume=Phase.DAY)

    async def submit_night_action(
        self,
        actor_id: str,
        action_type: ActionType,
        target_id: str,
        second_target_id: Optional[str] = None,
    ) -> Optional[NightActionResult]:
        if action_type == ActionType.HUNTER_REVENGE:
            await self.resolve_last_stand(actor_id, target_id)
            return None
        if self._state.last_stand_pending:
            raise WrongPhase(
                "Night action while a last stand is open",
                "Waiting for the Hunter's last stand.",
            )
        result = await self._night.submit(actor_id, action_type, target_id, second_target_id)
        if not result.duplicate and self._night.all_complete():
            if self._state.phase == Phase.NIGHT_ZERO:
                await self.finish_night_zero()
            elif self._state.phase == Phase.NIGHT:
                await self.end_night()
        return result

    # =========================================================================
    # Deaths and the last stand
    # =========================================================================

    async def _after_deaths(self, resume: Phase) -> None:
        if await self.check_winner():
            return
        if self._state.last_stand_pending:
            self._state.resume_phase = resume
            logger.info(
                "Game %s: suspended for %s's last stand (resume %s)",
                self._state.game_id, self._state.pending_last_stand_actor_id, resume.value,
            )
            return
        await self._go(resume)

    async def _resume(self) -> None:
        resume, self._state.resume_phase = self._state.resume_phase, None
        if resume is not None:
            await self._go(resume)

    async def resolve_last_stand(self, actor_id: str, target_id: str) -> list[str]:
        died = await self._deaths.resolve_last_stand(actor_id, target_id)
        if not await self.check_winner():
            await self._resume()
        return died

    async def expire_last_stand(self) -> None:
        await self._deaths.expire_last_stand()
        await self._resume()

    # =========================================================================
    # Day
    # =========================================================================

    async def nominate(self, nominator_id: str, target_id: str) -> None:
        await self._votes.nominate(nominator_id, target_id)
        await self.transition(Phase.NOMINATION)

    async def second(self, seconder_id: str) -> None:
        await self._votes.second(seconder_id)
        await self.transition(Phase.VOTING)

    async def expire_nomination(self) -> None:
        await self._votes.expire_nomination()
        await self.transition(Phase.DAY)

    async def submit_vote(self, voter_id: str, guilty: bool) -> Optional[VoteResult]:
        await self._votes.submit_vote(voter_id, guilty)
        if self._settings.close_voting_when_complete and self._votes.all_voted():
            return await self.process_votes()
        return None

    async def process_votes(self) -> VoteResult:
        result = await self._votes.process_votes()
        if result.eliminated:
            await self._after_deaths(resume=Phase.NIGHT)
        elif self._settings.continue_day_after_acquittal:
            await self.transition(Phase.DAY)
        else:
            await self.enter_night()
        return result

    # =========================================================================
    # Game over
    # =========================================================================

    async def check_winner(self) -> bool:
        """Run the win evaluator; finish the game if a side has won."""
        if self._state.game_over:
            return True
        if self._state.phase in (Phase.LOBBY, Phase.NIGHT_ZERO):
            return False
        over, winner = is_game_over(self._state)
        if over:
            await self.finish_game(winner)
        return over

    async def finish_game(self, winner: Optional[Faction], reason: str = "") -> GameSummary:
        state = self._state
        state.game_over = True
        state.winning_faction = winner
        state.pending_last_stand_actor_id = None
        state.resume_phase = None
        state.nomination.clear()
        state.ended_at = self.clock()
        await self.transition(Phase.GAME_OVER)

        summary = summarize(state, winner, state.ended_at, reason)
        self._collector.add_event(GameOver(
            winner=winner,
            winners=summary.winner_ids,
            rounds=summary.rounds,
            eliminations=summary.eliminations,
            duration_seconds=summary.duration_seconds,
        ))
        logger.info("Game %s over: %s", state.game_id, summary.describe())
        roles = {
            p.username: p.role.value.title()
            for p in state.players.values() if p.role is not None
        }
        await self._notices.broadcast(Notice(
            kind=NoticeKind.GAME_OVER,
            title="Game over",
            body=summary.describe(),
            fields={"Winners": ", ".join(summary.winner_names) or "nobody", **roles},
        ))
        return summary

    # =========================================================================
    # Operator
    # =========================================================================

    async def advance(self) -> None:
        """Skip the current wait and move the game along."""
        phase = self._state.phase
        if self._state.last_stand_pending:
            raise WrongPhase("Advance during a last stand", "Waiting for the Hunter's last stand.")
        if phase == Phase.LOBBY:
            raise WrongPhase("Advance from the lobby", "Start the game instead.")
        if phase == Phase.GAME_OVER:
            raise PhaseTransitionError("Advance after game over", "The game is over.")
        if phase == Phase.NIGHT_ZERO:
            await self.finish_night_zero()
        elif phase == Phase.NIGHT:
            await self.end_night()
        elif phase == Phase.VOTING:
            await self.process_votes()
        else:
            await self.enter_night()

    # =========================================================================
    # Timers
    # =========================================================================

    def wanted_timers(self) -> dict[str, tuple[float, Hashable]]:
        """Timeouts the current state needs: name -> (delay, token)."""
        state = self._state
        if state.game_over or state.phase in (Phase.LOBBY, Phase.GAME_OVER):
            return {}
        if state.last_stand_pending:
            token = (state.phase_epoch, state.pending_last_stand_actor_id)
            return {LAST_STAND_TIMER: (self._settings.last_stand_timeout, token)}
        token = (state.phase_epoch,)
        if state.phase == Phase.NIGHT_ZERO and state.night.pending:
            return {NIGHT_ZERO_TIMER: (self._settings.night_zero_timeout, token)}
        if state.phase == Phase.NIGHT:
            return {NIGHT_TIMER: (self._settings.night_action_timeout, token)}
        if state.phase == Phase.NOMINATION:
            return {NOMINATION_TIMER: (self._settings.nomination_timeout, token)}
        return {}

    def sync_timers(self, dispatch: TimerDispatch) -> None:
        """Cancel timers the state no longer needs and schedule missing ones."""
        wanted = self.wanted_timers()
        for name in self.timers.active_names() - set(wanted):
            self.timers.cancel(name)
        for name, (delay, token) in wanted.items():
            current = self.timers.get(name)
            if current is not None and current.token == token:
                continue
            self.timers.schedule(name, delay, functools.partial(dispatch, name, token), token)

    def is_current(self, name: str, token: Hashable) -> bool:
        wanted = self.wanted_timers().get(name)
        return wanted is not None and wanted[1] == token

    async def on_timeout(self, name: str) -> None:
        logger.info("Game %s: %s timer elapsed", self._state.game_id, name)
        if name == LAST_STAND_TIMER:
            await self.expire_last_stand()
        elif name == NIGHT_ZERO_TIMER:
            await self.finish_night_zero()
        elif name == NIGHT_TIMER:
            await self._notices.broadcast(Notice(
                kind=NoticeKind.WARNING,
                title="Time is up",
                body="The night is over. Actions not submitted are lost.",
            ))
            await self.end_night()
        elif name == NOMINATION_TIMER:
            await self.expire_nomination()
        else:
            raise ValueError(f"Unknown timer {name}")
