"""WerewolfGame - the command surface of one game session.

Every command follows the same path:

    1. take the session lock (one operation at a time per session)
    2. open a snapshot transaction
    3. dispatch through the phase state machine to the resolvers
    4. optionally check state invariants (rolls back on violation)
    5. commit, or restore the snapshot if anything raised
    6. reconcile the timers with the resulting state
    7. persist the committed state (best effort)

Timer callbacks go through the same path, so a timeout can never
interleave with a command or fire against a superseded phase.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Hashable, Optional, TypeVar, Union

from pydantic import BaseModel, Field

from werewolf_engine.config import GameSettings
from werewolf_engine.engine.death_resolver import DeathResolver
from werewolf_engine.engine.errors import (
    GameError,
    InvalidAction,
    InvalidRole,
    NotAuthorized,
    PersistenceError,
    RoleCountMismatch,
    WrongPhase,
)
from werewolf_engine.engine.event_collector import EventCollector
from werewolf_engine.engine.game_state import GameState
from werewolf_engine.engine.night_action_resolver import NightActionResolver, NightActionResult
from werewolf_engine.engine.phase_machine import PhaseStateMachine
from werewolf_engine.engine.role_catalog import capability_for
from werewolf_engine.engine.snapshot import SnapshotManager
from werewolf_engine.engine.timers import AsyncioTimerRegistry, TimerRegistry
from werewolf_engine.engine.vote_resolver import VoteResolver, VoteResult
from werewolf_engine.engine.win_evaluator import GameSummary
from werewolf_engine.events import ActionType, GameEvent, GameEventLog, Phase, PlayerJoined, RolesAssigned
from werewolf_engine.models.player import Role, WEREWOLF_ALIGNED_ROLES
from werewolf_engine.notifications import Notice, NoticeKind, NotificationDispatcher, Notifier
from werewolf_engine.persistence import SnapshotStore, deserialize_state, serialize_state
from werewolf_engine.validation import ensure_valid

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TargetOption(BaseModel):
    """One autocomplete choice."""

    id: str
    display_name: str


class GameStatus(BaseModel):
    """Public view of a session."""

    game_id: str
    phase: Phase
    round: int
    alive: list[str] = Field(default_factory=list)
    dead: list[str] = Field(default_factory=list)
    nominee: Optional[str] = None
    votes_cast: int = 0
    waiting_on: int = 0
    last_stand_pending: bool = False
    game_over: bool = False
    winner: Optional[str] = None


class WerewolfGame:
    """One game session.

    Game Flow:
        1. Lobby: players join, the creator configures optional roles
        2. Night Zero: pack and Minion briefings, Seer reveal, Cupid pairing
        3. Day: nominate -> second -> vote -> tally
        4. Night: attack, protect, investigate -> resolution at dawn
        5. ... until a faction reaches parity or extinction
    """

    def __init__(
        self,
        game_id: str,
        creator_id: str,
        settings: Optional[GameSettings] = None,
        notifier: Optional[Notifier] = None,
        store: Optional[SnapshotStore] = None,
        timers: Optional[TimerRegistry] = None,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
        on_event: Optional[Callable[[GameEvent], None]] = None,
        operators: Optional[set[str]] = None,
        state: Optional[GameState] = None,
    ):
        """Initialize the session.

        Args:
            game_id: Session key (e.g. the chat channel id).
            creator_id: Player who created the game; may configure and operate it.
            settings: Rules and timeouts. Defaults to GameSettings().
            notifier: Where notices go. None sends nothing.
            store: Snapshot store; the state is saved after every commit.
            timers: Timer registry. Defaults to the asyncio loop clock.
            rng: Random source for role dealing and the Seer reveal.
            seed: Seed for a fresh random source when rng is not given.
            on_event: Callback fired for each recorded event. If it raises,
                      the operation that recorded the event is rolled back.
            operators: Extra player ids allowed to advance or end the game.
            state: Existing state to resume (see restore()).
        """
        self.settings = settings or GameSettings()
        self._state = state or GameState(game_id=game_id, creator_id=creator_id)
        self._state.authorized_ids |= {i for i in (creator_id, *(operators or ())) if i}
        self._collector = EventCollector(game_id=game_id, on_event=on_event)
        self._collector.bind(self._state)
        self._notices = NotificationDispatcher(notifier, game_id)
        self._snapshots = SnapshotManager(self._state, self._collector, self._notices)
        self._store = store
        self._rng = rng or random.Random(seed)
        self._lock = asyncio.Lock()
        self._closed = False

        self._deaths = DeathResolver(self._state, self._collector, self._notices)
        self._night = NightActionResolver(self._state, self._collector, self._notices, self._deaths, self._rng)
        self._votes = VoteResolver(self._state, self._collector, self._notices, self._deaths, self.settings)
        self._machine = PhaseStateMachine(
            self._state,
            self._collector,
            self._notices,
            self.settings,
            timers or AsyncioTimerRegistry(),
            self._night,
            self._votes,
            self._deaths,
        )

    @property
    def game_id(self) -> str:
        return self._state.game_id

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def phase(self) -> Phase:
        return self._state.phase

    @property
    def timers(self) -> TimerRegistry:
        return self._machine.timers

    @property
    def closed(self) -> bool:
        return self._closed

    # =========================================================================
    # Execution
    # =========================================================================

    async def _execute(
        self,
        operation: str,
        action: Callable[[], Awaitable[T]],
        allow_during_last_stand: bool = False,
    ) -> T:
        async with self._lock:
            try:
                async with self._snapshots.transaction(operation):
                    self._check_open(operation, allow_during_last_stand)
                    result = await action()
                    if self.settings.validate_invariants:
                        ensure_valid(self._state)
            except GameError as e:
                logger.warning("Game %s rejected %s: %s", self.game_id, operation, e.reason)
                raise
            finally:
                self._machine.sync_timers(self._on_timer)
            await self._persist()
            return result

    def _check_open(self, operation: str, allow_during_last_stand: bool) -> None:
        if self._closed:
            raise WrongPhase(f"{operation} after shutdown", "This game has been shut down.")
        if self._state.game_over:
            raise WrongPhase(f"{operation} after game over", "The game is over.")
        if self._state.last_stand_pending and not allow_during_last_stand:
            raise WrongPhase(
                f"{operation} during last stand of {self._state.pending_last_stand_actor_id}",
                "Waiting for the Hunter's last stand.",
            )

    async def _on_timer(self, name: str, token: Hashable) -> None:
        async with self._lock:
            if self._closed or not self._machine.is_current(name, token):
                logger.debug("Game %s: discarding stale %s timer %s", self.game_id, name, token)
                return
            try:
                async with self._snapshots.transaction(f"timeout:{name}"):
                    await self._machine.on_timeout(name)
                    if self.settings.validate_invariants:
                        ensure_valid(self._state)
            except GameError as e:
                logger.warning("Game %s: %s timeout failed: %s", self.game_id, name, e.reason)
                return
            finally:
                self._machine.sync_timers(self._on_timer)
            await self._persist()

    async def _persist(self) -> None:
        if self._store is None:
            return
        try:
            await self._store.save_snapshot(self.game_id, serialize_state(self._state))
        except Exception:
            logger.exception("Game %s: failed to save snapshot", self.game_id)

    def _require_operator(self, requester_id: str) -> None:
        if requester_id not in self._state.authorized_ids:
            raise NotAuthorized(
                f"{requester_id} is not an operator of game {self.game_id}",
                "Only the game creator can do that.",
            )

    def _require_lobby(self, operation: str) -> None:
        if self._state.phase != Phase.LOBBY:
            raise WrongPhase(f"{operation} during {self._state.phase.value}", "The game has already started.")

    # =========================================================================
    # Lobby
    # =========================================================================

    async def add_player(self, player_id: str, username: str) -> None:
        async def action() -> None:
            self._require_lobby("add_player")
            if self._state.has_player(player_id):
                raise InvalidAction(f"{player_id} already joined", "You have already joined this game.")
            if len(self._state.players) >= self.settings.max_players:
                raise InvalidAction(
                    f"Game full at {self.settings.max_players}",
                    f"The game is full ({self.settings.max_players} players).",
                )
            self._state.add_player(player_id, username)
            self._collector.add_event(PlayerJoined(actor=player_id, username=username))
            logger.info("Game %s: %s joined", self.game_id, player_id)
            await self._notices.broadcast(Notice(
                kind=NoticeKind.INFO,
                title="Player joined",
                body=f"{username} joined the game ({len(self._state.players)} players).",
            ))

        await self._execute("add_player", action)

    async def add_role(self, requester_id: str, role: Union[Role, str], count: int = 1) -> dict[Role, int]:
        role = self._coerce_role(role)

        async def action() -> dict[Role, int]:
            self._require_operator(requester_id)
            self._require_lobby("add_role")
            if count < 1:
                raise RoleCountMismatch(f"add_role count {count}", "Role count must be at least 1.")
            if role == Role.VILLAGER:
                raise InvalidRole("Villagers are not configurable", "Villagers fill the remaining seats automatically.")
            new_count = self._state.selected_roles.get(role, 0) + count
            if capability_for(role).unique and new_count > 1:
                raise RoleCountMismatch(
                    f"{role.value} is unique, requested {new_count}",
                    f"There can only be one {role.value.title()}.",
                )
            if sum(self._state.selected_roles.values()) + count > self.settings.max_players:
                raise RoleCountMismatch("More roles than seats", "There are more roles than seats.")
            self._state.selected_roles[role] = new_count
            return dict(self._state.selected_roles)

        return await self._execute("add_role", action)

    async def remove_role(self, requester_id: str, role: Union[Role, str], count: int = 1) -> dict[Role, int]:
        role = self._coerce_role(role)

        async def action() -> dict[Role, int]:
            self._require_operator(requester_id)
            self._require_lobby("remove_role")
            current = self._state.selected_roles.get(role, 0)
            if current == 0:
                raise InvalidRole(f"{role.value} not selected", f"{role.value.title()} is not in the game.")
            remaining = current - count
            if remaining > 0:
                self._state.selected_roles[role] = remaining
            else:
                del self._state.selected_roles[role]
            return dict(self._state.selected_roles)

        return await self._execute("remove_role", action)

    @staticmethod
    def _coerce_role(role: Union[Role, str]) -> Role:
        try:
            return Role(role.upper() if isinstance(role, str) else role)
        except ValueError:
            raise InvalidRole(f"Unknown role {role!r}", f"There is no role called {role}.") from None

    def build_role_pool(self) -> list[Role]:
        """Configured roles in catalog order, padded with villagers, unshuffled."""
        player_count = len(self._state.players)
        pool: list[Role] = []
        for role in Role:
            pool.extend([role] * self._state.selected_roles.get(role, 0))
        pool.extend([Role.VILLAGER] * (player_count - len(pool)))
        return pool

    def _check_role_setup(self) -> None:
        player_count = len(self._state.players)
        selected = self._state.selected_roles
        if player_count < self.settings.min_players:
            raise RoleCountMismatch(
                f"{player_count} players, need {self.settings.min_players}",
                f"At least {self.settings.min_players} players are needed to start.",
            )
        if selected.get(Role.WEREWOLF, 0) < 1:
            raise RoleCountMismatch("No werewolves selected", "Add at least one werewolf before starting.")
        if sum(selected.values()) > player_count:
            raise RoleCountMismatch(
                f"{sum(selected.values())} roles for {player_count} players",
                "There are more roles than players.",
            )
        evil = sum(count for role, count in selected.items() if role in WEREWOLF_ALIGNED_ROLES)
        cap = self.settings.max_werewolf_faction(player_count)
        if evil > cap:
            raise RoleCountMismatch(
                f"{evil} werewolf-aligned roles exceed cap {cap} for {player_count} players",
                f"Too many werewolf-aligned roles: at most {cap} for {player_count} players.",
            )
        # Night Zero has no win check, so the deal itself must leave W < V.
        if evil >= player_count - evil:
            raise RoleCountMismatch(
                f"{evil} werewolf-aligned roles vs {player_count - evil} others",
                "The werewolves would win before the first day. Add players or remove werewolf roles.",
            )

    async def start_game(self, requester_id: str) -> None:
        """Deal roles and enter Night Zero."""
        async def action() -> None:
            self._require_operator(requester_id)
            self._require_lobby("start_game")
            self._check_role_setup()

            pool = self.build_role_pool()
            self._rng.shuffle(pool)
            for player, role in zip(self._state.players.values(), pool):
                player.assign_role(role)
            self._state.started_at = self._machine.clock()
            self._collector.add_event(RolesAssigned(
                roles={p.id: p.role for p in self._state.players.values()},
            ))
            logger.info("Game %s: roles dealt to %d players", self.game_id, len(pool))

            for player in self._state.players.values():
                capability = capability_for(player.role)
                await self._notices.notify(player.id, Notice(
                    kind=NoticeKind.ROLE,
                    title=f"You are the {player.role.value.title()}",
                    body=capability.description,
                ))
            await self._machine.start()

        await self._execute("start_game", action)

    # =========================================================================
    # Night
    # =========================================================================

    async def submit_night_action(
        self,
        actor_id: str,
        action_type: Union[ActionType, str],
        target_id: str,
        second_target_id: Optional[str] = None,
    ) -> Optional[NightActionResult]:
        """Submit a covert action (or the Hunter's revenge).

        Returns the NightActionResult, or None for a last-stand shot.
        """
        try:
            action_type = ActionType(action_type)
        except ValueError:
            raise InvalidAction(f"Unknown action {action_type!r}", "That is not a known action.") from None

        async def action() -> Optional[NightActionResult]:
            return await self._machine.submit_night_action(actor_id, action_type, target_id, second_target_id)

        return await self._execute(
            f"night_action:{action_type.value}",
            action,
            allow_during_last_stand=action_type == ActionType.HUNTER_REVENGE,
        )

    # =========================================================================
    # Day
    # =========================================================================

    async def nominate(self, nominator_id: str, target_id: str) -> None:
        await self._execute("nominate", lambda: self._machine.nominate(nominator_id, target_id))

    async def second(self, seconder_id: str) -> None:
        await self._execute("second", lambda: self._machine.second(seconder_id))

    async def submit_vote(self, voter_id: str, guilty: bool) -> Optional[VoteResult]:
        """Cast a ballot. Returns the VoteResult if this ballot closed the vote."""
        return await self._execute("submit_vote", lambda: self._machine.submit_vote(voter_id, guilty))

    async def process_votes(self, requester_id: str) -> VoteResult:
        async def action() -> VoteResult:
            self._require_operator(requester_id)
            return await self._machine.process_votes()

        return await self._execute("process_votes", action)

    # =========================================================================
    # Operator
    # =========================================================================

    async def advance_phase(self, requester_id: str) -> Phase:
        async def action() -> Phase:
            self._require_operator(requester_id)
            await self._machine.advance()
            return self._state.phase

        return await self._execute("advance_phase", action)

    async def end_game(self, requester_id: str) -> GameSummary:
        async def action() -> GameSummary:
            self._require_operator(requester_id)
            return await self._machine.finish_game(None, reason="The game was ended early.")

        return await self._execute("end_game", action, allow_during_last_stand=True)

    async def shutdown(self) -> None:
        """Cancel timers, save the final state and clear the registry.

        Raises:
            PersistenceError: if the final snapshot cannot be saved. The
                session is left intact so shutdown can be retried.
        """
        async with self._lock:
            if self._closed:
                return
            self._machine.timers.cancel_all()
            if self._store is not None:
                try:
                    await self._store.save_snapshot(self.game_id, serialize_state(self._state))
                except Exception as e:
                    logger.critical("Game %s: could not save final snapshot", self.game_id, exc_info=True)
                    raise PersistenceError(self.game_id, str(e)) from e
            self._state.clear_players()
            self._closed = True
            logger.info("Game %s shut down", self.game_id)

    # =========================================================================
    # Queries
    # =========================================================================

    def list_valid_targets(self, actor_id: str, action_type: Union[ActionType, str]) -> list[TargetOption]:
        """Autocomplete choices for an action, sorted by display name."""
        try:
            action_type = ActionType(action_type)
        except ValueError:
            return []
        state = self._state
        actor = state.get_player(actor_id)
        if actor is None or state.game_over:
            return []
        if action_type == ActionType.HUNTER_REVENGE:
            if state.pending_last_stand_actor_id != actor_id:
                return []
        elif not actor.is_alive:
            return []

        targets = self._night.valid_targets(actor_id, action_type)
        options = [TargetOption(id=p.id, display_name=p.username) for p in targets]
        return sorted(options, key=lambda o: (o.display_name.casefold(), o.id))

    def status(self) -> GameStatus:
        state = self._state
        nominee = state.nomination.nominee_id
        return GameStatus(
            game_id=state.game_id,
            phase=state.phase,
            round=state.round,
            alive=[p.username for p in state.players.values() if p.is_alive],
            dead=[p.username for p in state.players.values() if not p.is_alive],
            nominee=state.display_name(nominee) if nominee else None,
            votes_cast=len(state.nomination.votes),
            waiting_on=len(state.night.pending),
            last_stand_pending=state.last_stand_pending,
            game_over=state.game_over,
            winner=state.winning_faction.value if state.winning_faction else None,
        )

    def get_event_log(self) -> GameEventLog:
        return self._collector.get_event_log()

    # =========================================================================
    # Restore
    # =========================================================================

    @classmethod
    async def restore(
        cls,
        game_id: str,
        store: SnapshotStore,
        **kwargs,
    ) -> Optional["WerewolfGame"]:
        """Rehydrate a session from its last snapshot and re-arm its timers.

        Returns None if the store has no snapshot for game_id. The event
        log is not part of the snapshot and starts empty.
        """
        data = await store.load_snapshot(game_id)
        if data is None:
            return None
        state = deserialize_state(data)
        game = cls(game_id=game_id, creator_id=state.creator_id or "", store=store, state=state, **kwargs)
        game._machine.sync_timers(game._on_timer)
        logger.info("Game %s restored in %s (round %d)", game_id, state.phase.value, state.round)
        return game
