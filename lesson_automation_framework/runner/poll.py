"""Completion poll - waits for one video lesson to reach 100%."""

import logging
from typing import Awaitable, Callable, Optional

from lesson_automation_framework.core.config import TimingConfig
from lesson_automation_framework.core.exceptions import LessonStalledError
from lesson_automation_framework.core.logging import log_lesson_progress
from lesson_automation_framework.runner.progress import extract_width_percentage
from lesson_automation_framework.runner.views import LessonProgress

logger = logging.getLogger(__name__)

COMPLETE = 100.0

ReadProgress = Callable[[], Awaitable[Optional[str]]]
Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]
Checkpoint = Callable[[], None]
ProgressCallback = Callable[[str, float], Awaitable[None]]
StallCallback = Callable[[LessonStalledError], Awaitable[None]]


class CompletionPoll:
    """
    Polls a lesson's progress indicator until it reports 100%.

    Every tick sleeps ``poll_interval`` seconds, calls ``checkpoint`` (which
    raises when the run has been cancelled), then re-reads the indicator.
    A reading that stays within ``progress_epsilon`` of the last moving
    reading for longer than ``stall_timeout`` raises ``LessonStalledError``.
    A progress callback fires each time the percentage has climbed
    ``notify_step`` points since the last one.
    """

    def __init__(
        self,
        read_progress: ReadProgress,
        timing: TimingConfig,
        sleep: Sleep,
        clock: Clock,
        checkpoint: Checkpoint,
        on_progress: Optional[ProgressCallback] = None,
        on_stall: Optional[StallCallback] = None,
    ):
        self.read_progress = read_progress
        self.timing = timing
        self._sleep = sleep
        self._clock = clock
        self._checkpoint = checkpoint
        self._on_progress = on_progress
        self._on_stall = on_stall

    async def _read(self) -> Optional[float]:
        return extract_width_percentage(await self.read_progress())

    async def wait(self, label: str) -> bool:
        """
        Block until ``label`` completes.

        Returns False when the first reading cannot be parsed, meaning the
        lesson cannot be monitored; True once it reaches 100%.
        """
        logger.info(f"Monitoring progress of {label}...")

        percentage = await self._read()
        if percentage is None:
            logger.warning(f"Unable to read progress for {label}; not waiting for it")
            return False

        log_lesson_progress(label, percentage)
        progress = LessonProgress(last_percentage=percentage, last_change=self._clock())

        while percentage < COMPLETE:
            await self._sleep(self.timing.poll_interval)
            self._checkpoint()

            reading = await self._read()
            now = self._clock()
            if reading is None:
                # an unreadable bar counts as no progress
                logger.debug(f"Unparseable progress reading for {label}")
                moved = False
            else:
                percentage = reading
                moved = progress.record(percentage, now, self.timing.progress_epsilon)

            if moved:
                log_lesson_progress(label, percentage)
            else:
                stalled_for = progress.stalled_for(now)
                log_lesson_progress(label, percentage, stalled_for)
                if stalled_for >= self.timing.stall_timeout:
                    await self._stall(label, percentage)

            if percentage - progress.last_notified >= self.timing.notify_step:
                progress.last_notified = percentage
                if self._on_progress:
                    await self._on_progress(label, percentage)

        logger.info(f"{label} completed at 100%")
        return True

    async def _stall(self, label: str, percentage: float) -> None:
        error = LessonStalledError(label, percentage, self.timing.stall_timeout)
        logger.error(error.message)
        if self._on_stall:
            await self._on_stall(error)
        raise error
