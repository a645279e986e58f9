"""Notifications package - how the engine talks to players."""

from .notifier import Notice, NoticeKind, Notifier, NotificationDispatcher
from .recording import NullNotifier, RecordingNotifier
from .console import ConsoleNotifier

__all__ = [
    "Notice",
    "NoticeKind",
    "Notifier",
    "NotificationDispatcher",
    "NullNotifier",
    "RecordingNotifier",
    "ConsoleNotifier",
]
