"""Snapshot manager - all-or-nothing mutation of the game aggregate.

Every mutating operation runs inside a Transaction:

    async with snapshots.transaction("submit_vote"):
        ...mutate state, record events, queue notices...

On entry the outermost transaction captures a GameSnapshot (a deep value
copy of GameState plus the event-log length). If anything raises before
the block exits, the snapshot is written back into the live state object,
the event log is truncated and queued notices are dropped, then the
exception propagates. On a clean exit the queued notices are sent. Nested
transactions are pass-through so a command that calls another command
rolls back as one unit.
"""

import logging
from typing import Optional

from pydantic import BaseModel

from werewolf_engine.engine.event_collector import EventCollector
from werewolf_engine.engine.game_state import GameState
from werewolf_engine.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)


class GameSnapshot(BaseModel):
    """Immutable value copy of a session at one point in time."""

    state: GameState
    event_count: int = 0

    @classmethod
    def capture(cls, state: GameState, collector: Optional[EventCollector] = None) -> "GameSnapshot":
        return cls(
            state=state.model_copy(deep=True),
            event_count=len(collector) if collector is not None else 0,
        )

    def restore(self, state: GameState, collector: Optional[EventCollector] = None) -> None:
        """Write the captured values back into ``state`` in place.

        The live object keeps its identity so collaborators holding a
        reference to it see the restored values. The snapshot itself is
        left untouched and can be restored again.
        """
        copy = self.state.model_copy(deep=True)
        for name in GameState.model_fields:
            setattr(state, name, getattr(copy, name))
        if collector is not None:
            collector.truncate(self.event_count)


class Transaction:
    """Scoped snapshot acquisition. Commit on clean exit, restore on error."""

    def __init__(self, manager: "SnapshotManager", operation: str):
        self._manager = manager
        self.operation = operation

    async def __aenter__(self) -> "Transaction":
        self._manager._enter(self.operation)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self._manager._exit(self.operation, exc)
        return False


class SnapshotManager:
    """Owns the snapshot for the session's current outermost transaction.

    When given the session's NotificationDispatcher, notices raised inside
    a transaction are held and only sent once the outermost scope commits.
    """

    def __init__(
        self,
        state: GameState,
        collector: EventCollector,
        notices: Optional[NotificationDispatcher] = None,
    ):
        self._state = state
        self._collector = collector
        self._notices = notices
        self._depth = 0
        self._snapshot: Optional[GameSnapshot] = None

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def transaction(self, operation: str) -> Transaction:
        return Transaction(self, operation)

    def _enter(self, operation: str) -> None:
        if self._depth == 0:
            self._snapshot = GameSnapshot.capture(self._state, self._collector)
            if self._notices is not None:
                self._notices.hold()
        self._depth += 1

    async def _exit(self, operation: str, exc: Optional[BaseException]) -> None:
        self._depth -= 1
        if self._depth > 0:
            return
        snapshot, self._snapshot = self._snapshot, None
        if exc is None:
            if self._notices is not None:
                await self._notices.release()
            return
        logger.warning(
            "Rolling back %s in game %s: %s", operation, self._state.game_id, exc
        )
        if self._notices is not None:
            self._notices.discard()
        if snapshot is not None:
            snapshot.restore(self._state, self._collector)
