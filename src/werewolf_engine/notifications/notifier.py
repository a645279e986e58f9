"""Notification contract and the best-effort dispatcher the engine uses."""

import logging
from enum import Enum
from typing import Optional, Protocol

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class NoticeKind(str, Enum):
    """What a notice is about, for renderers that style by kind."""

    INFO = "INFO"
    ROLE = "ROLE"
    PHASE = "PHASE"
    INVESTIGATION = "INVESTIGATION"
    LOVERS = "LOVERS"
    PROTECTION = "PROTECTION"
    DEATH = "DEATH"
    NOMINATION = "NOMINATION"
    VOTE = "VOTE"
    LAST_STAND = "LAST_STAND"
    WARNING = "WARNING"
    GAME_OVER = "GAME_OVER"


class Notice(BaseModel):
    """Platform-neutral message content."""

    kind: NoticeKind = NoticeKind.INFO
    title: str
    body: str = ""
    fields: dict[str, str] = Field(default_factory=dict)

    def __str__(self) -> str:
        body = f": {self.body}" if self.body else ""
        return f"[{self.kind.value}] {self.title}{body}"


class Notifier(Protocol):
    """Sends notices to one player or to the whole game channel.

    Implementations return True when the notice was delivered. They may
    raise; the engine never lets a notification failure abort a mutation.
    """

    async def notify_player(self, player_id: str, notice: Notice) -> bool:
        ...

    async def broadcast(self, notice: Notice) -> bool:
        ...


class NotificationDispatcher:
    """Wraps a Notifier so failures are logged instead of raised.

    While held (see hold()), notices are queued instead of sent. The
    session holds the dispatcher for the length of a transaction and
    releases the queue on commit or discards it on rollback, so players
    are never told about changes that were undone. ``immediate=True``
    bypasses the queue for notices that belong to a rejection.
    """

    def __init__(self, notifier: Optional[Notifier] = None, game_id: str = ""):
        self._notifier = notifier
        self._game_id = game_id
        self._pending: Optional[list[tuple[Optional[str], Notice]]] = None
        self.failures = 0

    @property
    def held(self) -> bool:
        return self._pending is not None

    def hold(self) -> None:
        """Queue notices until release() or discard()."""
        if self._pending is None:
            self._pending = []

    def discard(self) -> int:
        """Drop queued notices and stop holding. Returns the number dropped."""
        dropped = len(self._pending or [])
        self._pending = None
        if dropped:
            logger.debug("Game %s: discarded %d queued notices", self._game_id, dropped)
        return dropped

    async def release(self) -> int:
        """Send queued notices in order and stop holding. Returns the number delivered."""
        pending, self._pending = self._pending or [], None
        delivered = 0
        for player_id, notice in pending:
            if player_id is None:
                sent = await self._broadcast(notice)
            else:
                sent = await self._notify(player_id, notice)
            if sent:
                delivered += 1
        return delivered

    async def notify(self, player_id: str, notice: Notice, immediate: bool = False) -> bool:
        """Send (or queue) a private notice. Queued notices count as accepted."""
        if self._notifier is None:
            return False
        if self._pending is not None and not immediate:
            self._pending.append((player_id, notice))
            return True
        return await self._notify(player_id, notice)

    async def notify_many(self, player_ids, notice: Notice, immediate: bool = False) -> int:
        delivered = 0
        for player_id in player_ids:
            if await self.notify(player_id, notice, immediate=immediate):
                delivered += 1
        return delivered

    async def broadcast(self, notice: Notice, immediate: bool = False) -> bool:
        if self._notifier is None:
            return False
        if self._pending is not None and not immediate:
            self._pending.append((None, notice))
            return True
        return await self._broadcast(notice)

    async def _notify(self, player_id: str, notice: Notice) -> bool:
        try:
            delivered = await self._notifier.notify_player(player_id, notice)
        except Exception:
            self.failures += 1
            logger.exception(
                "Failed to notify player %s in game %s: %s", player_id, self._game_id, notice.title
            )
            return False
        if not delivered:
            logger.warning("Notice to %s in game %s was not delivered: %s", player_id, self._game_id, notice.title)
        return bool(delivered)

    async def _broadcast(self, notice: Notice) -> bool:
        try:
            delivered = await self._notifier.broadcast(notice)
        except Exception:
            self.failures += 1
            logger.exception("Failed to broadcast in game %s: %s", self._game_id, notice.title)
            return False
        return bool(delivered)
