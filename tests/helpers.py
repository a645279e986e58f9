"""Shared builders for engine tests.

Roles are dealt by WerewolfGame.build_role_pool() in Role declaration order
(WEREWOLF, SEER, BODYGUARD, CUPID, HUNTER, MINION, SORCERER, then villagers).
With NoShuffle the pool is handed out unshuffled to players in join order,
so a test picks its seating by choosing which roles to add.
"""

import random
from typing import Optional

from werewolf_engine.config import GameSettings
from werewolf_engine.engine import (
    DeathResolver,
    EventCollector,
    GameState,
    ManualTimerRegistry,
    NightActionResolver,
    PhaseStateMachine,
    VoteResolver,
    WerewolfGame,
)
from werewolf_engine.events import Phase
from werewolf_engine.models import Role
from werewolf_engine.notifications import NotificationDispatcher, RecordingNotifier

NAMES = ["Alice", "Bob", "Carol", "Dave", "Erin", "Frank", "Grace", "Heidi", "Ivan", "Judy"]


class NoShuffle(random.Random):
    """Random source that leaves the role pool in order."""

    def shuffle(self, x, *args, **kwargs) -> None:
        return None


def player_ids(count: int) -> list[str]:
    return [f"p{i}" for i in range(1, count + 1)]


# ============================================================================
# Whole sessions
# ============================================================================

async def make_lobby(
    player_count: int = 6,
    roles: Optional[list[Role]] = None,
    settings: Optional[GameSettings] = None,
    **kwargs,
) -> tuple[WerewolfGame, RecordingNotifier, ManualTimerRegistry]:
    """Create a session in LOBBY with players p1..pN and the given roles added."""
    notifier = RecordingNotifier()
    timers = ManualTimerRegistry()
    game = WerewolfGame(
        game_id="g1",
        creator_id="p1",
        settings=settings,
        notifier=notifier,
        timers=timers,
        rng=kwargs.pop("rng", NoShuffle(7)),
        **kwargs,
    )
    for i, player_id in enumerate(player_ids(player_count)):
        await game.add_player(player_id, NAMES[i])
    for role in roles or []:
        await game.add_role("p1", role)
    return game, notifier, timers


async def make_game(
    roles: list[Role],
    player_count: int = 6,
    settings: Optional[GameSettings] = None,
    **kwargs,
) -> tuple[WerewolfGame, RecordingNotifier, ManualTimerRegistry]:
    """Create and start a session; the game is in NIGHT_ZERO or DAY afterwards."""
    game, notifier, timers = await make_lobby(player_count, roles, settings, **kwargs)
    await game.start_game("p1")
    return game, notifier, timers


async def to_night(game: WerewolfGame) -> None:
    """Skip whatever is pending until the game is in NIGHT."""
    while game.phase != Phase.NIGHT:
        await game.advance_phase("p1")


async def to_day(game: WerewolfGame) -> None:
    """Skip whatever is pending until the game is in DAY."""
    while game.phase != Phase.DAY:
        await game.advance_phase("p1")


# ============================================================================
# Bare components
# ============================================================================

def make_state(roles: list[Role], phase: Phase = Phase.DAY, round: int = 1) -> GameState:
    """Create a started GameState; player i gets roles[i-1]."""
    state = GameState(game_id="g1", creator_id="p1", phase=phase, round=round)
    for i, role in enumerate(roles):
        player = state.add_player(f"p{i + 1}", NAMES[i])
        player.assign_role(role)
    return state


class Components:
    """Resolvers and machine wired around one GameState, without the session wrapper."""

    def __init__(self, state: GameState, settings: Optional[GameSettings] = None, rng: Optional[random.Random] = None):
        self.state = state
        self.settings = settings or GameSettings()
        self.notifier = RecordingNotifier()
        self.collector = EventCollector(game_id=state.game_id)
        self.collector.bind(state)
        self.notices = NotificationDispatcher(self.notifier, state.game_id)
        self.timers = ManualTimerRegistry()
        self.deaths = DeathResolver(state, self.collector, self.notices)
        self.night = NightActionResolver(state, self.collector, self.notices, self.deaths, rng or NoShuffle(7))
        self.votes = VoteResolver(state, self.collector, self.notices, self.deaths, self.settings)
        self.machine = PhaseStateMachine(
            state,
            self.collector,
            self.notices,
            self.settings,
            self.timers,
            self.night,
            self.votes,
            self.deaths,
        )

    def events_of(self, event_type: type) -> list:
        return [e for e in self.collector.get_events() if isinstance(e, event_type)]
