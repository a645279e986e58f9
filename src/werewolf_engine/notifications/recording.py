"""In-memory notifiers."""

from typing import Optional

from .notifier import Notice, NoticeKind


class NullNotifier:
    """Drops every notice."""

    async def notify_player(self, player_id: str, notice: Notice) -> bool:
        return True

    async def broadcast(self, notice: Notice) -> bool:
        return True


class RecordingNotifier:
    """Keeps every notice for inspection.

    Set ``fail_with`` to an exception to make every send raise it, which is
    how tests check that notification failures do not abort a mutation.
    """

    def __init__(self) -> None:
        self.sent: list[tuple[Optional[str], Notice]] = []
        self.fail_with: Optional[Exception] = None

    async def notify_player(self, player_id: str, notice: Notice) -> bool:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((player_id, notice))
        return True

    async def broadcast(self, notice: Notice) -> bool:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((None, notice))
        return True

    @property
    def broadcasts(self) -> list[Notice]:
        return [notice for target, notice in self.sent if target is None]

    def to(self, player_id: str) -> list[Notice]:
        return [notice for target, notice in self.sent if target == player_id]

    def of_kind(self, kind: NoticeKind, player_id: Optional[str] = None) -> list[Notice]:
        if player_id is None:
            return [notice for _, notice in self.sent if notice.kind == kind]
        return [notice for notice in self.to(player_id) if notice.kind == kind]

    def clear(self) -> None:
        self.sent.clear()
