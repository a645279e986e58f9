"""Tests for notifiers and the best-effort dispatcher."""

import io

import pytest
from rich.console import Console

from werewolf_engine.notifications import (
    ConsoleNotifier,
    Notice,
    NoticeKind,
    NotificationDispatcher,
    NullNotifier,
    RecordingNotifier,
)


def make_console() -> tuple[Console, io.StringIO]:
    output = io.StringIO()
    return Console(file=output, width=80, force_terminal=False, color_system=None), output


class TestNotice:
    """Tests for the Notice model."""

    def test_str(self):
        notice = Notice(kind=NoticeKind.DEATH, title="Dawn", body="Carol was killed.")
        assert str(notice) == "[DEATH] Dawn: Carol was killed."
        assert str(Notice(title="Hello")) == "[INFO] Hello"


class TestNotificationDispatcher:
    """Tests for failure isolation."""

    @pytest.mark.asyncio
    async def test_delivers(self):
        """Test that notices reach the notifier."""
        notifier = RecordingNotifier()
        dispatcher = NotificationDispatcher(notifier, "g1")
        assert await dispatcher.notify("p1", Notice(title="Role"))
        assert await dispatcher.broadcast(Notice(title="Day"))
        assert [n.title for n in notifier.to("p1")] == ["Role"]
        assert [n.title for n in notifier.broadcasts] == ["Day"]

    @pytest.mark.asyncio
    async def test_failures_are_counted(self, caplog):
        """Test that a raising notifier is logged, not propagated."""
        notifier = RecordingNotifier()
        notifier.fail_with = ConnectionError("down")
        dispatcher = NotificationDispatcher(notifier, "g1")

        assert not await dispatcher.notify("p1", Notice(title="Role"))
        assert not await dispatcher.broadcast(Notice(title="Day"))
        assert dispatcher.failures == 2
        assert "Failed to notify player p1" in caplog.text

    @pytest.mark.asyncio
    async def test_without_notifier(self):
        """Test that a missing notifier delivers nothing."""
        dispatcher = NotificationDispatcher(None, "g1")
        assert not await dispatcher.notify("p1", Notice(title="Role"))
        assert not await dispatcher.broadcast(Notice(title="Day"))
        assert dispatcher.failures == 0

    @pytest.mark.asyncio
    async def test_notify_many(self):
        """Test counting deliveries to a group."""
        notifier = RecordingNotifier()
        dispatcher = NotificationDispatcher(notifier, "g1")
        delivered = await dispatcher.notify_many(["p1", "p2"], Notice(title="Pack"))
        assert delivered == 2
        assert notifier.of_kind(NoticeKind.INFO, "p2")[0].title == "Pack"

    @pytest.mark.asyncio
    async def test_held_notices_wait_for_release(self):
        """Test that held notices are sent in order on release."""
        notifier = RecordingNotifier()
        dispatcher = NotificationDispatcher(notifier, "g1")
        dispatcher.hold()
        assert await dispatcher.broadcast(Notice(title="Dawn"))
        assert await dispatcher.notify("p1", Notice(title="Vision"))
        assert notifier.sent == []

        assert await dispatcher.release() == 2
        assert [(target, n.title) for target, n in notifier.sent] == [(None, "Dawn"), ("p1", "Vision")]
        assert not dispatcher.held

    @pytest.mark.asyncio
    async def test_discarded_notices_are_never_sent(self):
        """Test that discard drops the queue but immediate notices still go out."""
        notifier = RecordingNotifier()
        dispatcher = NotificationDispatcher(notifier, "g1")
        dispatcher.hold()
        await dispatcher.broadcast(Notice(title="Dawn"))
        await dispatcher.notify("p1", Notice(title="Rejected"), immediate=True)
        assert dispatcher.discard() == 1
        assert await dispatcher.release() == 0
        assert [n.title for _, n in notifier.sent] == ["Rejected"]

    @pytest.mark.asyncio
    async def test_null_notifier(self):
        dispatcher = NotificationDispatcher(NullNotifier(), "g1")
        assert await dispatcher.notify("p1", Notice(title="Role"))


class TestConsoleNotifier:
    """Tests for the rich renderer."""

    @pytest.mark.asyncio
    async def test_broadcast(self):
        """Test that a broadcast prints its title and body."""
        console, output = make_console()
        notifier = ConsoleNotifier(console=console)
        await notifier.broadcast(Notice(kind=NoticeKind.PHASE, title="Night falls", body="Close your eyes."))
        text = output.getvalue()
        assert "Night falls" in text
        assert "Close your eyes." in text

    @pytest.mark.asyncio
    async def test_private_notice_is_labelled(self):
        """Test that private notices name their recipient."""
        console, output = make_console()
        notifier = ConsoleNotifier(console=console, name_of={"p2": "Bob"}.get)
        notice = Notice(kind=NoticeKind.INVESTIGATION, title="Vision", fields={"Alice": "Werewolf"})
        assert await notifier.notify_player("p2", notice)
        text = output.getvalue()
        assert "private to Bob" in text
        assert "Alice:" in text

    @pytest.mark.asyncio
    async def test_hide_private(self):
        """Test that private notices can be suppressed on shared screens."""
        console, output = make_console()
        notifier = ConsoleNotifier(console=console, show_private=False)
        assert await notifier.notify_player("p2", Notice(title="You are the Seer"))
        assert output.getvalue() == ""
