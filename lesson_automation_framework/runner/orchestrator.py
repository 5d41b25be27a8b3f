"""Lesson orchestrator - drives one run from login to the last video lesson."""

import asyncio
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Optional

from lesson_automation_framework.core.config import BrowserConfig, RunnerConfig
from lesson_automation_framework.core.exceptions import (
    AuthenticationError,
    CourseNotFoundError,
    LessonAutomationError,
    LessonStalledError,
    RunAlreadyActiveError,
    RunCancelledError,
)
from lesson_automation_framework.core.logging import log_phase
from lesson_automation_framework.browser.port import (
    BrowserSessionPort,
    ElementSet,
    PageAutomation,
)
from lesson_automation_framework.browser.session import BrowserSession
from lesson_automation_framework.notify.base import Notifier, NullNotifier
from lesson_automation_framework.runner.credentials import (
    CredentialSource,
    MappingCredentialSource,
)
from lesson_automation_framework.runner.poll import CompletionPoll
from lesson_automation_framework.runner.views import (
    Credentials,
    LessonEntry,
    RunOutcome,
    RunPhase,
    RunResult,
    RunState,
)

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], BrowserSessionPort]


class LessonOrchestrator:
    """
    Runs the lesson completion state machine for one subject.

    The orchestrator moves through connect, login, overlay dismissal,
    subject selection, course lookup, lesson list reset, opening every
    lesson group and finally playing each unfinished video lesson until
    its progress bar reaches 100%.

    It talks to the outside world only through three ports: a browser
    session (page automation), a notifier and a credential source. One
    instance serves one run; all browser handles are dropped when the
    run ends.

    Usage:
        orchestrator = LessonOrchestrator(
            notifier=ConsoleNotifier(),
            credential_source=ConsoleCredentialSource(),
        )
        result = await orchestrator.run()
    """

    def __init__(
        self,
        notifier: Optional[Notifier] = None,
        credential_source: Optional[CredentialSource] = None,
        config: Optional[RunnerConfig] = None,
        browser_config: Optional[BrowserConfig] = None,
        session_factory: Optional[SessionFactory] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.notifier = notifier or NullNotifier()
        self.credential_source = credential_source or MappingCredentialSource()
        self.config = config or RunnerConfig.from_env()
        self.selectors = self.config.selectors
        self.timing = self.config.timing

        self._session_factory = session_factory or (lambda: BrowserSession(browser_config))
        self._sleep = sleep
        self._clock = clock

        self.state = RunState()
        self._session: Optional[BrowserSessionPort] = None
        self._page: Optional[PageAutomation] = None

        self._played = 0
        self._skipped = 0
        self._failed = 0

    # Public surface

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    def get_status(self) -> str:
        return self.state.describe()

    def request_stop(self) -> bool:
        """Ask the active run to stop at its next checkpoint. No-op when idle."""
        if not self.state.is_running:
            return False
        if not self.state.cancellation_requested:
            logger.warning("Stop requested, the run will halt at the next checkpoint...")
        self.state.cancellation_requested = True
        return True

    async def capture_screenshot(self) -> Optional[bytes]:
        """PNG of the live page, or None without a page or on failure."""
        page = self._page
        if page is None:
            return None
        try:
            return await page.screenshot()
        except Exception as e:
            logger.error(f"Screenshot failed: {e}")
            return None

    async def close(self) -> None:
        """Request a stop and tear the browser down right away."""
        self.request_stop()
        await self._teardown()

    async def run(self, credentials: Optional[Credentials] = None) -> RunResult:
        """
        Execute one run.

        Returns a ``RunResult`` on completion or operator stop. Fatal errors
        are reported to the operator, then re-raised after cleanup.
        """
        if self.state.is_running:
            raise RunAlreadyActiveError()

        self.state = RunState(is_running=True)
        self._played = self._skipped = self._failed = 0

        try:
            await self._notify("Starting university automation...")

            await self._connect()
            credentials = await self._authenticate(credentials)
            await self._dismiss_overlay()
            credentials = await self._select_subject(credentials)
            await self._locate_course(credentials.subject)
            await self._reset_lesson_list()
            await self._open_lessons()
            await self._play_video_lessons()

            self._enter(RunPhase.COMPLETED)
            await self._notify("Automation completed successfully!")
            return self._result(RunOutcome.COMPLETED)

        except RunCancelledError:
            return await self._stopped()

        except asyncio.CancelledError:
            self._enter(RunPhase.CANCELLING)
            logger.warning("Run task cancelled, closing the browser")
            raise

        except LessonStalledError as e:
            # the completion poll has already notified and sent a screenshot
            self._enter(RunPhase.FAILED, error=e.message)
            raise

        except Exception as e:
            if self.state.cancellation_requested:
                # the browser went away under a stop request
                logger.info(f"Run interrupted after stop request: {e}")
                return await self._stopped()
            self._enter(RunPhase.FAILED, error=str(e))
            logger.error(f"Automation failed: {e}")
            await self._notify(f"ERROR: {e}")
            await self._report_screenshot(f"Error: {e}")
            raise

        finally:
            await self._teardown()
            self.state.is_running = False

    # Checkpoints and helpers

    def _check_cancelled(self) -> None:
        if self.state.cancellation_requested:
            raise RunCancelledError()

    def _enter(self, phase: RunPhase, error: Optional[str] = None) -> None:
        if not phase.is_terminal:
            self._check_cancelled()
        self.state.phase = phase
        log_phase(phase.value, subject=self.state.current_subject or None, error=error)

    async def _stopped(self) -> RunResult:
        self._enter(RunPhase.CANCELLING)
        logger.warning("Automation stopped by the operator")
        await self._notify("Automation stopped by operator")
        await self._report_screenshot("Automation stopped")
        return self._result(RunOutcome.CANCELLED)

    def _result(self, outcome: RunOutcome) -> RunResult:
        return RunResult(
            outcome=outcome,
            subject=self.state.current_subject,
            lessons_played=self._played,
            lessons_skipped=self._skipped,
            lessons_failed=self._failed,
        )

    @property
    def page(self) -> PageAutomation:
        if self._page is None:
            raise LessonAutomationError("Browser page not initialized", recoverable=False)
        return self._page

    async def _notify(self, message: str) -> None:
        try:
            await self.notifier.send_text(message)
        except Exception as e:
            logger.error(f"Notification failed: {e}")

    async def _notify_progress(self, label: str, percentage: float) -> None:
        try:
            await self.notifier.send_progress(label, percentage)
        except Exception as e:
            logger.error(f"Progress notification failed: {e}")

    async def _report_screenshot(self, caption: str) -> None:
        try:
            screenshot = await self.capture_screenshot()
            if screenshot is None:
                return
            if self.config.save_screenshots:
                self._save_screenshot(screenshot)
            logger.info("Sending error screenshot...")
            await self.notifier.send_image(screenshot, caption)
        except Exception as e:
            logger.error(f"Unable to send screenshot: {e}")

    def _save_screenshot(self, screenshot: bytes) -> None:
        directory = Path(self.config.screenshots_dir)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"run_{datetime.now():%Y%m%d_%H%M%S}.png"
        path.write_bytes(screenshot)
        logger.info(f"Screenshot saved: {path}")

    async def _settle(self, delay: float, ready_selector: Optional[str] = None) -> None:
        """Wait for a ready selector when there is one, then a minimum delay."""
        if ready_selector:
            await self.page.wait_for_selector(ready_selector, self.timing.ready_timeout)
        await self._sleep(delay)

    async def _teardown(self) -> None:
        session, self._session = self._session, None
        self._page = None
        if session is None:
            return
        try:
            logger.info("Closing browser...")
            await session.stop()
            logger.info("Browser closed")
        except Exception as e:
            logger.error(f"Error while closing the browser: {e}")

    # Phases

    async def _connect(self) -> None:
        self._enter(RunPhase.CONNECTING)
        self._session = self._session_factory()
        self._page = await self._session.start()

        logger.info(f"Navigating to {self.config.university_url}")
        await self._page.navigate(self.config.university_url, wait_until="networkidle")

    async def _authenticate(self, credentials: Optional[Credentials]) -> Credentials:
        self._enter(RunPhase.AUTHENTICATING)

        if credentials is None:
            logger.warning("Credentials required...")
            credentials = await asyncio.to_thread(self.credential_source.get_credentials)

        try:
            logger.info("Entering username...")
            username = self.page.locate(self.selectors.username_input).first
            await username.clear()
            await username.fill(credentials.username)

            logger.info("Entering password...")
            password = self.page.locate(self.selectors.password_input).first
            await password.clear()
            await password.fill(credentials.password)

            logger.info("Submitting login form...")
            await self.page.locate(self.selectors.login_button).first.click()
            await self.page.wait_for_load("domcontentloaded")
        except Exception as e:
            logger.error(f"Login failed: {e}")
            raise AuthenticationError(f"Login failed: {e}") from e

        await self._settle(self.timing.login_settle, ready_selector=self.selectors.to_complete_filter)
        await self._notify("Login successful")
        return credentials

    async def _dismiss_overlay(self) -> None:
        self._enter(RunPhase.DISMISSING_OVERLAY)
        logger.info("Checking for onboarding overlay...")

        try:
            if await self.page.locate(self.selectors.overlay_marker).count() == 0:
                logger.info("No onboarding overlay found")
                return
            await self.page.locate(self.selectors.overlay_close).first.click()
            await self.page.wait_for_load("domcontentloaded")
            logger.info("Onboarding overlay closed")
        except Exception as e:
            logger.warning(f"Unable to dismiss onboarding overlay: {e}")

    async def _select_subject(self, credentials: Credentials) -> Credentials:
        self._enter(RunPhase.SELECTING_SUBJECT)

        if not credentials.subject:
            subject = await asyncio.to_thread(self.credential_source.get_subject)
            credentials = credentials.with_subject(subject.strip())
        if not credentials.subject:
            raise LessonAutomationError("No subject provided", recoverable=False)

        self.state.current_subject = credentials.subject
        await self._notify(f"Selected subject: {credentials.subject}")
        return credentials

    async def _locate_course(self, subject: str) -> None:
        self._enter(RunPhase.LOCATING_COURSE)

        try:
            await self._apply_filter(self.selectors.to_complete_filter)
            logger.info("Filter 'to complete' applied")
        except Exception as e:
            logger.warning(f"'To complete' filter not found: {e}")

        logger.info(f"Looking for course '{subject}' under 'to complete'...")
        if await self._open_course(subject):
            logger.info(f"Opened course: {subject}")
            return

        logger.warning(f"Course '{subject}' not found under 'to complete'")
        try:
            await self._apply_filter(self.selectors.to_start_filter)
        except Exception as e:
            raise CourseNotFoundError(subject, details=f"'To start' filter not found: {e}") from e
        await self._notify("Searching course under 'to start'...")

        logger.info(f"Looking for course '{subject}' under 'to start'...")
        if await self._open_course(subject):
            logger.info(f"Course '{subject}' found under 'to start' and opened")
            await self._notify("Course found under 'to start'")
            return

        raise CourseNotFoundError(subject)

    async def _apply_filter(self, selector: str) -> None:
        await self.page.locate(selector).first.click()
        await self.page.wait_for_load("domcontentloaded")
        await self._settle(self.timing.filter_settle)

    async def _open_course(self, subject: str) -> bool:
        links = self.page.locate(self.selectors.course_link_for(subject))
        if await links.count() == 0:
            return False
        await links.first.click()
        await self.page.wait_for_load("networkidle")
        await self._settle(self.timing.course_settle)
        return True

    async def _reset_lesson_list(self) -> None:
        self._enter(RunPhase.RESETTING_LESSON_LIST)
        logger.info("Resetting lesson list")

        toggle = self.page.locate(self.selectors.lesson_group_toggle).first
        for action in ("closed", "reopened"):
            await toggle.click()
            await self.page.wait_for_load("networkidle")
            await self._settle(self.timing.lesson_toggle_settle)
            logger.info(f"Lesson list {action}")

    async def _open_lessons(self) -> None:
        self._enter(RunPhase.OPENING_LESSONS)
        logger.info("Opening all lessons")

        rows = self.page.locate(self.selectors.lesson_group_rows)
        total = await rows.count()
        logger.info(f"Found {total} lesson groups")

        for i in range(total):
            self._check_cancelled()
            try:
                logger.info(f"Opening lesson group {i + 1} of {total}")
                await rows.nth(i).click()
                await self.page.wait_for_load("networkidle")
                await self._settle(self.timing.lesson_open_settle)
            except Exception as e:
                logger.warning(f"Failed to open lesson group {i + 1}: {e}")

        logger.info("Finished opening lesson groups")

    async def _play_video_lessons(self) -> None:
        self._enter(RunPhase.PLAYING_VIDEO_LESSONS)
        await self._notify("Starting video lessons...")

        rows = self.page.locate(self.selectors.video_lesson_rows)
        total = await rows.count()
        logger.info(f"Found {total} video lessons")
        await self._notify(f"Found {total} lessons in total")

        for i in range(total):
            self._check_cancelled()
            entry = LessonEntry(index=i, total=total)
            row = rows.nth(i)

            try:
                entry.text = await row.inner_text()
                if entry.is_complete:
                    logger.info(f"{entry.label} already at 100%, skipping")
                    self._skipped += 1
                    continue
                await self._play_lesson(row, entry)
            except (RunCancelledError, LessonStalledError):
                raise
            except Exception as e:
                if self.state.cancellation_requested:
                    raise
                logger.warning(f"Error in {entry.label}: {e}")
                await self._notify(f"Error in {entry.label}: {e}")
                if self.config.abort_on_lesson_error:
                    raise
                self._failed += 1

        self.state.current_lesson_label = ""
        logger.info("All video lessons processed")

    async def _play_lesson(self, row: ElementSet, entry: LessonEntry) -> None:
        self.state.current_lesson_label = entry.label
        logger.info(f"{entry.label} needs watching")
        await self._notify(f"Starting {entry.label}")

        await row.click()
        await self.page.wait_for_load("networkidle")
        await self._settle(self.timing.lesson_open_settle)

        progress_bar = self.page.locate(self.selectors.progress_bar).first
        poll = CompletionPoll(
            read_progress=lambda: progress_bar.get_attribute("style"),
            timing=self.timing,
            sleep=self._sleep,
            clock=self._clock,
            checkpoint=self._check_cancelled,
            on_progress=self._notify_progress,
            on_stall=self._on_stall,
        )

        if await poll.wait(entry.label):
            self._played += 1
            await self._notify(f"Completed {entry.label}")
        else:
            self._failed += 1
            await self._notify(f"{entry.label}: progress unavailable, moving on")

    async def _on_stall(self, error: LessonStalledError) -> None:
        await self._notify(error.message)
        await self._report_screenshot(f"Video stuck at {error.percentage:g}%")
