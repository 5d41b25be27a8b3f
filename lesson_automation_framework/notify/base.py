"""Notification port and the notifiers that need no external service."""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from rich.console import Console
from rich.markup import escape

logger = logging.getLogger(__name__)

PROGRESS_BAR_SEGMENTS = 5
FILLED_SEGMENT = "🟢"
EMPTY_SEGMENT = "⚪"


def render_progress_bar(
    percentage: float,
    segments: int = PROGRESS_BAR_SEGMENTS,
    filled: str = FILLED_SEGMENT,
    empty: str = EMPTY_SEGMENT,
) -> str:
    """
    Render a percentage as a discretized bar with a numeric suffix.

    >>> render_progress_bar(50)
    '🟢🟢⚪⚪⚪ 50%'
    """
    percentage = max(0.0, min(100.0, float(percentage)))
    filled_count = int(round(percentage / 100 * segments))
    return f"{filled * filled_count}{empty * (segments - filled_count)} {percentage:.0f}%"


def format_progress_message(label: str, percentage: float) -> str:
    return f"*{label}*\n{render_progress_bar(percentage)}"


class Notifier(ABC):
    """
    Operator notification channel.

    Implementations must not raise on delivery failures: a notification
    that cannot be sent is logged and dropped so it never masks the error
    being reported.
    """

    @abstractmethod
    async def send_text(self, message: str) -> None:
        ...

    @abstractmethod
    async def send_image(self, image: bytes, caption: str = "") -> None:
        ...

    async def send_progress(self, label: str, percentage: float) -> None:
        await self.send_text(format_progress_message(label, percentage))


class NullNotifier(Notifier):
    """Drops every notification."""

    async def send_text(self, message: str) -> None:
        return None

    async def send_image(self, image: bytes, caption: str = "") -> None:
        return None


class ConsoleNotifier(Notifier):
    """Echoes notifications to a rich console."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    async def send_text(self, message: str) -> None:
        self.console.print(f"[bold magenta]»[/bold magenta] {escape(message)}", highlight=False)

    async def send_image(self, image: bytes, caption: str = "") -> None:
        self.console.print(f"[dim]🖼  {escape(caption or 'screenshot')} ({len(image)} bytes)[/dim]")


class RecordingNotifier(Notifier):
    """Keeps every notification in memory. Used by tests and dry runs."""

    def __init__(self):
        self.messages: List[str] = []
        self.images: List[Tuple[bytes, str]] = []
        self.progress: List[Tuple[str, float]] = []

    async def send_text(self, message: str) -> None:
        self.messages.append(message)

    async def send_image(self, image: bytes, caption: str = "") -> None:
        self.images.append((image, caption))

    async def send_progress(self, label: str, percentage: float) -> None:
        self.progress.append((label, percentage))
