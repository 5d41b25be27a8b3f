"""Operator notification channels."""

from lesson_automation_framework.notify.base import (
    Notifier,
    NullNotifier,
    ConsoleNotifier,
    RecordingNotifier,
    render_progress_bar,
)
from lesson_automation_framework.notify.telegram import TelegramClient, TelegramNotifier

__all__ = [
    "Notifier",
    "NullNotifier",
    "ConsoleNotifier",
    "RecordingNotifier",
    "render_progress_bar",
    "TelegramClient",
    "TelegramNotifier",
]
