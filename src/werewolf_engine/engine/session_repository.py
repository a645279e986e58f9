"""SessionRepository - explicit lifecycle for concurrent game sessions.

Sessions share nothing; the repository only maps game ids to live
WerewolfGame objects and builds new ones with shared collaborators.
"""

import logging
from typing import Callable, Optional

from werewolf_engine.config import GameSettings
from werewolf_engine.engine.errors import InvalidAction
from werewolf_engine.engine.timers import TimerRegistry
from werewolf_engine.engine.werewolf_game import WerewolfGame
from werewolf_engine.notifications import Notifier
from werewolf_engine.persistence import SnapshotStore

logger = logging.getLogger(__name__)


class SessionRepository:
    """create / get / remove for game sessions."""

    def __init__(
        self,
        settings: Optional[GameSettings] = None,
        notifier_factory: Optional[Callable[[str], Notifier]] = None,
        store: Optional[SnapshotStore] = None,
        timers_factory: Optional[Callable[[], TimerRegistry]] = None,
    ):
        self._settings = settings or GameSettings()
        self._notifier_factory = notifier_factory
        self._store = store
        self._timers_factory = timers_factory
        self._sessions: dict[str, WerewolfGame] = {}

    def _collaborators(self, game_id: str) -> dict:
        return {
            "settings": self._settings,
            "notifier": self._notifier_factory(game_id) if self._notifier_factory else None,
            "timers": self._timers_factory() if self._timers_factory else None,
        }

    def create(self, game_id: str, creator_id: str, **kwargs) -> WerewolfGame:
        """Start a new session. Raises InvalidAction if one is already running."""
        existing = self._sessions.get(game_id)
        if existing is not None and not existing.closed:
            raise InvalidAction(
                f"Game {game_id} already exists",
                "A game is already running here.",
            )
        options = {**self._collaborators(game_id), "store": self._store, **kwargs}
        game = WerewolfGame(game_id=game_id, creator_id=creator_id, **options)
        self._sessions[game_id] = game
        logger.info("Created game %s for %s", game_id, creator_id)
        return game

    def get(self, game_id: str) -> Optional[WerewolfGame]:
        game = self._sessions.get(game_id)
        if game is None or game.closed:
            return None
        return game

    async def remove(self, game_id: str) -> bool:
        """Shut the session down and forget it.

        Raises PersistenceError (and keeps the session) if the final
        snapshot cannot be saved.
        """
        game = self._sessions.get(game_id)
        if game is None:
            return False
        await game.shutdown()
        del self._sessions[game_id]
        logger.info("Removed game %s", game_id)
        return True

    async def restore(self, game_id: str, **kwargs) -> Optional[WerewolfGame]:
        """Rehydrate a session from the snapshot store after a restart."""
        if self._store is None:
            return None
        options = {**self._collaborators(game_id), **kwargs}
        game = await WerewolfGame.restore(game_id, self._store, **options)
        if game is not None:
            self._sessions[game_id] = game
        return game

    def __contains__(self, game_id: str) -> bool:
        return self.get(game_id) is not None

    def __len__(self) -> int:
        return sum(1 for game in self._sessions.values() if not game.closed)
