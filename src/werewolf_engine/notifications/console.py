"""Rich console notifier for the hot-seat CLI."""

from typing import Callable, Optional

from rich.console import Console
from rich.panel import Panel

from .notifier import Notice, NoticeKind

KIND_STYLES = {
    NoticeKind.INFO: "white",
    NoticeKind.ROLE: "magenta",
    NoticeKind.PHASE: "bold cyan",
    NoticeKind.INVESTIGATION: "blue",
    NoticeKind.LOVERS: "bold magenta",
    NoticeKind.PROTECTION: "green",
    NoticeKind.DEATH: "bold red",
    NoticeKind.NOMINATION: "yellow",
    NoticeKind.VOTE: "yellow",
    NoticeKind.LAST_STAND: "red",
    NoticeKind.WARNING: "bold yellow",
    NoticeKind.GAME_OVER: "bold green",
}


class ConsoleNotifier:
    """Prints broadcasts and private notices as rich panels.

    Private notices are labelled with the recipient's display name so a
    shared terminal can be used by several players in turn.
    """

    def __init__(
        self,
        console: Optional[Console] = None,
        name_of: Optional[Callable[[str], str]] = None,
        show_private: bool = True,
    ):
        self.console = console or Console()
        self._name_of = name_of or (lambda player_id: player_id)
        self.show_private = show_private

    def _render(self, notice: Notice, subtitle: Optional[str] = None) -> None:
        body = notice.body
        if notice.fields:
            extra = "\n".join(f"[bold]{k}:[/bold] {v}" for k, v in notice.fields.items())
            body = f"{body}\n{extra}" if body else extra
        self.console.print(Panel(
            body or notice.title,
            title=notice.title,
            subtitle=subtitle,
            border_style=KIND_STYLES.get(notice.kind, "white"),
        ))

    async def notify_player(self, player_id: str, notice: Notice) -> bool:
        if self.show_private:
            self._render(notice, subtitle=f"private to {self._name_of(player_id)}")
        return True

    async def broadcast(self, notice: Notice) -> bool:
        self._render(notice)
        return True
