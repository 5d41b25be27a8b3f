"""End-to-end tests for the lesson orchestrator against an in-memory page."""

import unittest
from typing import Callable, List, Optional

from lesson_automation_framework.core.config import SelectorConfig
from lesson_automation_framework.core.exceptions import (
    AuthenticationError,
    CourseNotFoundError,
    LessonAutomationError,
    LessonStalledError,
    RunAlreadyActiveError,
)
from lesson_automation_framework.notify.base import RecordingNotifier
from lesson_automation_framework.runner.credentials import (
    PASSWORD_PROMPT,
    SUBJECT_PROMPT,
    USERNAME_PROMPT,
    MappingCredentialSource,
)
from lesson_automation_framework.runner.orchestrator import LessonOrchestrator
from lesson_automation_framework.runner.views import Credentials, RunOutcome, RunPhase

from tests.fakes import (
    FakeClock,
    FakeElement,
    FakePage,
    FakeSession,
    fast_runner_config,
    style_sequence,
)

URL = "https://lms.example.test/"
SELECTORS = SelectorConfig()


class CoursePage:
    """A course page whose progress bar follows the last lesson row clicked."""

    def __init__(
        self,
        subject: str = "Algebra",
        rows: Optional[List[str]] = None,
        progress: Optional[List[float]] = None,
        course_under: str = "to_complete",
    ):
        self.page = FakePage()
        self.subject = subject
        self.progress = progress if progress is not None else [0, 50, 100]
        self._read: Callable[[], Optional[str]] = lambda: None
        self.on_read: Optional[Callable[[], None]] = None

        self.username = self.page.add(SELECTORS.username_input, FakeElement())[0]
        self.password = self.page.add(SELECTORS.password_input, FakeElement())[0]
        self.login = self.page.add(SELECTORS.login_button, FakeElement())[0]

        self.to_complete = self.page.add(SELECTORS.to_complete_filter, FakeElement())[0]
        self.to_start = self.page.add(
            SELECTORS.to_start_filter,
            FakeElement(on_click=self._reveal_course if course_under == "to_start" else None),
        )[0]
        if course_under == "to_complete":
            self._reveal_course()

        self.toggle = self.page.add(SELECTORS.lesson_group_toggle, FakeElement())[0]
        self.groups = self.page.add(SELECTORS.lesson_group_rows, FakeElement(), FakeElement())

        texts = rows if rows is not None else ["Lesson 1 100%", "Lesson 2 0%", "Lesson 3 0%"]
        self.rows = self.page.add(
            SELECTORS.video_lesson_rows,
            *[FakeElement(text=text, on_click=self._start_video) for text in texts],
        )
        self.page.add(
            SELECTORS.progress_bar,
            FakeElement(attributes={"style": self._read_style}),
        )

    def _reveal_course(self) -> None:
        self.page.add(SELECTORS.course_link_for(self.subject), FakeElement())

    def _start_video(self) -> None:
        self._read = style_sequence(self.progress)

    def _read_style(self) -> Optional[str]:
        if self.on_read:
            self.on_read()
        return self._read()

    def clicked_rows(self) -> List[int]:
        return [index for selector, index in self.page.click_log if selector == SELECTORS.video_lesson_rows]


class OrchestratorTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.notifier = RecordingNotifier()
        self.credentials = Credentials(username="jdoe", password="secret", subject="Algebra")

    def make(self, course: CoursePage, source=None, session=None, **config) -> LessonOrchestrator:
        self.session = session or FakeSession(course.page)
        return LessonOrchestrator(
            notifier=self.notifier,
            credential_source=source or MappingCredentialSource(),
            config=fast_runner_config(university_url=URL, **config),
            session_factory=lambda: self.session,
            sleep=self.clock.sleep,
            clock=self.clock,
        )


class TestHappyPath(OrchestratorTestCase):

    async def test_plays_unfinished_lessons_in_order(self):
        course = CoursePage()
        orchestrator = self.make(course)

        result = await orchestrator.run(self.credentials)

        self.assertEqual(result.outcome, RunOutcome.COMPLETED)
        self.assertEqual(result.subject, "Algebra")
        self.assertEqual(result.lessons_played, 2)
        self.assertEqual(result.lessons_skipped, 1)
        self.assertEqual(result.lessons_failed, 0)
        self.assertEqual(course.clicked_rows(), [1, 2])

        self.assertEqual(self.notifier.messages, [
            "Starting university automation...",
            "Login successful",
            "Selected subject: Algebra",
            "Starting video lessons...",
            "Found 3 lessons in total",
            "Starting Lesson 2/3",
            "Completed Lesson 2/3",
            "Starting Lesson 3/3",
            "Completed Lesson 3/3",
            "Automation completed successfully!",
        ])
        self.assertEqual(self.notifier.progress, [
            ("Lesson 2/3", 50),
            ("Lesson 2/3", 100),
            ("Lesson 3/3", 50),
            ("Lesson 3/3", 100),
        ])
        self.assertEqual(self.notifier.images, [])

    async def test_fills_login_form_and_opens_every_group(self):
        course = CoursePage()
        orchestrator = self.make(course)

        await orchestrator.run(self.credentials)

        self.assertEqual(self.session.starts, 1)
        self.assertEqual(self.session.stops, 1)
        self.assertEqual(course.page.visited, [URL])
        self.assertEqual(course.username.value, "jdoe")
        self.assertEqual(course.password.value, "secret")
        self.assertEqual(course.username.cleared, 1)
        self.assertEqual(course.login.clicks, 1)
        self.assertEqual(course.toggle.clicks, 2)
        self.assertEqual([group.clicks for group in course.groups], [1, 1])
        self.assertEqual(course.to_start.clicks, 0)

    async def test_state_is_reset_after_run(self):
        course = CoursePage()
        orchestrator = self.make(course)
        seen = []
        course.on_read = lambda: seen.append(
            (orchestrator.is_running, orchestrator.state.phase, orchestrator.get_status())
        )

        await orchestrator.run(self.credentials)

        running, phase, status = seen[0]
        self.assertTrue(running)
        self.assertEqual(phase, RunPhase.PLAYING_VIDEO_LESSONS)
        self.assertIn("Subject: Algebra", status)
        self.assertIn("Current lesson: Lesson 2/3", status)

        self.assertFalse(orchestrator.is_running)
        self.assertEqual(orchestrator.get_status(), "Automation not active")
        self.assertIsNone(await orchestrator.capture_screenshot())

    async def test_all_lessons_complete(self):
        course = CoursePage(rows=["Lesson 1 100%", "Lesson 2 100 %"])
        result = await self.make(course).run(self.credentials)

        self.assertEqual(result.lessons_played, 0)
        self.assertEqual(result.lessons_skipped, 2)
        self.assertEqual(course.clicked_rows(), [])
        self.assertEqual(self.notifier.messages[-1], "Automation completed successfully!")

    async def test_prompts_for_missing_values(self):
        course = CoursePage(subject="Diritto privato")
        source = MappingCredentialSource({
            USERNAME_PROMPT: "jdoe",
            PASSWORD_PROMPT: "secret",
            SUBJECT_PROMPT: "  Diritto privato ",
        })

        result = await self.make(course, source=source).run()

        self.assertEqual(result.outcome, RunOutcome.COMPLETED)
        self.assertEqual(result.subject, "Diritto privato")
        self.assertEqual(course.username.value, "jdoe")
        self.assertIn("Selected subject: Diritto privato", self.notifier.messages)

    async def test_second_run_while_active_is_rejected(self):
        course = CoursePage()
        orchestrator = self.make(course)
        orchestrator.state.is_running = True

        with self.assertRaises(RunAlreadyActiveError):
            await orchestrator.run(self.credentials)
        self.assertEqual(self.session.starts, 0)
        self.assertEqual(self.notifier.messages, [])


class TestCourseLookup(OrchestratorTestCase):

    async def test_falls_back_to_to_start_filter(self):
        course = CoursePage(course_under="to_start")
        result = await self.make(course).run(self.credentials)

        self.assertEqual(result.outcome, RunOutcome.COMPLETED)
        self.assertEqual(course.to_start.clicks, 1)
        messages = self.notifier.messages
        self.assertIn("Searching course under 'to start'...", messages)
        self.assertIn("Course found under 'to start'", messages)
        self.assertLess(
            messages.index("Course found under 'to start'"),
            messages.index("Starting video lessons..."),
        )

    async def test_missing_course_fails_the_run(self):
        course = CoursePage(course_under="nowhere")
        orchestrator = self.make(course)

        with self.assertRaises(CourseNotFoundError) as ctx:
            await orchestrator.run(self.credentials)

        self.assertEqual(ctx.exception.subject, "Algebra")
        self.assertIn("ERROR: Course 'Algebra' not found", self.notifier.messages)
        self.assertEqual(len(self.notifier.images), 1)
        self.assertEqual(self.session.stops, 1)
        self.assertFalse(orchestrator.is_running)

    async def test_missing_to_start_filter_fails_the_run(self):
        course = CoursePage(course_under="nowhere")
        del course.page.elements[SELECTORS.to_start_filter]

        with self.assertRaises(CourseNotFoundError) as ctx:
            await self.make(course).run(self.credentials)
        self.assertIn("'To start' filter not found", ctx.exception.details)

    async def test_missing_to_complete_filter_is_not_fatal(self):
        course = CoursePage()
        del course.page.elements[SELECTORS.to_complete_filter]

        result = await self.make(course).run(self.credentials)
        self.assertEqual(result.outcome, RunOutcome.COMPLETED)


class TestTolerance(OrchestratorTestCase):

    async def test_overlay_failure_is_not_fatal(self):
        course = CoursePage()
        # marker matches but the close button is missing
        course.page.add(SELECTORS.overlay_marker, FakeElement())

        result = await self.make(course).run(self.credentials)
        self.assertEqual(result.outcome, RunOutcome.COMPLETED)

    async def test_overlay_is_closed_when_present(self):
        course = CoursePage()
        course.page.add(SELECTORS.overlay_marker, FakeElement())
        close = course.page.add(SELECTORS.overlay_close, FakeElement())[0]

        await self.make(course).run(self.credentials)
        self.assertEqual(close.clicks, 1)

    async def test_lesson_group_click_failure_continues(self):
        course = CoursePage()
        course.groups[0].fail_click = True

        result = await self.make(course).run(self.credentials)

        self.assertEqual(result.outcome, RunOutcome.COMPLETED)
        self.assertEqual(course.groups[1].clicks, 1)

    async def test_unmonitorable_lesson_moves_on(self):
        course = CoursePage(rows=["Lesson 1 0%", "Lesson 2 0%"])
        course.page.elements[SELECTORS.progress_bar][0].attributes["style"] = "display: none"

        result = await self.make(course).run(self.credentials)

        self.assertEqual(result.outcome, RunOutcome.COMPLETED)
        self.assertEqual(result.lessons_failed, 2)
        self.assertEqual(course.clicked_rows(), [0, 1])
        self.assertIn("Lesson 1/2: progress unavailable, moving on", self.notifier.messages)

    async def test_lesson_error_aborts_by_default(self):
        course = CoursePage()
        course.rows[1].fail_click = True

        with self.assertRaises(RuntimeError):
            await self.make(course).run(self.credentials)

        self.assertTrue(any(m.startswith("Error in Lesson 2/3:") for m in self.notifier.messages))
        self.assertTrue(any(m.startswith("ERROR:") for m in self.notifier.messages))
        self.assertEqual(course.clicked_rows(), [])

    async def test_lesson_error_skipped_when_configured(self):
        course = CoursePage()
        course.rows[1].fail_click = True

        result = await self.make(course, abort_on_lesson_error=False).run(self.credentials)

        self.assertEqual(result.outcome, RunOutcome.COMPLETED)
        self.assertEqual(result.lessons_failed, 1)
        self.assertEqual(result.lessons_played, 1)
        self.assertEqual(course.clicked_rows(), [2])


class TestFailures(OrchestratorTestCase):

    async def test_browser_start_failure_tears_down_and_reraises(self):
        course = CoursePage()
        session = FakeSession(course.page, fail_start=True)
        orchestrator = self.make(course, session=session)

        with self.assertRaises(RuntimeError):
            await orchestrator.run(self.credentials)

        self.assertEqual(session.stops, 1)
        self.assertEqual(self.notifier.images, [])
        self.assertEqual(self.notifier.messages[-1], "ERROR: Executable doesn't exist")
        self.assertEqual(orchestrator.state.phase, RunPhase.FAILED)
        self.assertFalse(orchestrator.is_running)

    async def test_navigation_failure_sends_screenshot(self):
        course = CoursePage()
        course.page.fail_navigation = True

        with self.assertRaises(ConnectionError):
            await self.make(course).run(self.credentials)

        self.assertEqual(len(self.notifier.images), 1)
        self.assertTrue(self.notifier.images[0][1].startswith("Error:"))
        self.assertEqual(self.session.stops, 1)

    async def test_login_failure_is_authentication_error(self):
        course = CoursePage()
        del course.page.elements[SELECTORS.login_button]

        with self.assertRaises(AuthenticationError):
            await self.make(course).run(self.credentials)
        self.assertNotIn("Login successful", self.notifier.messages)

    async def test_empty_subject_is_rejected(self):
        course = CoursePage()
        source = MappingCredentialSource({SUBJECT_PROMPT: "   "})

        with self.assertRaises(LessonAutomationError) as ctx:
            await self.make(course, source=source).run(self.credentials.model_copy(update={"subject": ""}))
        self.assertEqual(ctx.exception.message, "No subject provided")

    async def test_stall_aborts_with_single_timeout_report(self):
        course = CoursePage(progress=[0, 40])
        orchestrator = self.make(course)

        with self.assertRaises(LessonStalledError):
            await orchestrator.run(self.credentials)

        timeouts = [m for m in self.notifier.messages if m.startswith("TIMEOUT")]
        self.assertEqual(timeouts, ["TIMEOUT: no video progress for 5 minutes (stuck at 40%)"])
        self.assertFalse(any(m.startswith(("ERROR:", "Error in")) for m in self.notifier.messages))
        self.assertNotIn("Automation completed successfully!", self.notifier.messages)
        self.assertEqual(self.notifier.images[0][1], "Video stuck at 40%")
        self.assertEqual(len(self.notifier.images), 1)
        self.assertEqual(orchestrator.state.phase, RunPhase.FAILED)
        self.assertEqual(self.session.stops, 1)


class TestCancellation(OrchestratorTestCase):

    async def test_stop_during_poll(self):
        course = CoursePage(progress=[0, 10, 20, 30, 40, 50, 60, 70, 80, 90, 100])
        orchestrator = self.make(course)
        reads = []

        def stop_on_third_read():
            reads.append(1)
            if len(reads) == 3:
                self.assertTrue(orchestrator.request_stop())

        course.on_read = stop_on_third_read

        result = await orchestrator.run(self.credentials)

        self.assertEqual(result.outcome, RunOutcome.CANCELLED)
        self.assertEqual(result.lessons_played, 0)
        self.assertEqual(len(reads), 3)
        self.assertIn("Automation stopped by operator", self.notifier.messages)
        self.assertNotIn("Automation completed successfully!", self.notifier.messages)
        self.assertEqual(self.notifier.images[-1][1], "Automation stopped")
        self.assertEqual(self.session.stops, 1)
        self.assertFalse(orchestrator.is_running)

    async def test_stop_before_lessons(self):
        course = CoursePage()
        orchestrator = self.make(course)
        course.toggle.on_click = orchestrator.request_stop

        result = await orchestrator.run(self.credentials)

        self.assertEqual(result.outcome, RunOutcome.CANCELLED)
        self.assertEqual(course.clicked_rows(), [])
        self.assertEqual([group.clicks for group in course.groups], [0, 0])

    async def test_browser_closed_after_stop_is_reported_as_stop(self):
        course = CoursePage()
        orchestrator = self.make(course)

        def close_under_stop():
            orchestrator.request_stop()
            raise RuntimeError("Target page, context or browser has been closed")

        course.toggle.on_click = close_under_stop

        result = await orchestrator.run(self.credentials)

        self.assertEqual(result.outcome, RunOutcome.CANCELLED)
        self.assertEqual(orchestrator.state.phase, RunPhase.CANCELLING)
        self.assertIn("Automation stopped by operator", self.notifier.messages)
        self.assertFalse(any(m.startswith("ERROR:") for m in self.notifier.messages))
        self.assertEqual(self.session.stops, 1)

    async def test_stop_when_idle_is_noop(self):
        orchestrator = self.make(CoursePage())
        self.assertFalse(orchestrator.request_stop())
        self.assertFalse(orchestrator.state.cancellation_requested)

    async def test_close_tears_down_once(self):
        course = CoursePage()
        orchestrator = self.make(course)
        await orchestrator.run(self.credentials)
        await orchestrator.close()
        self.assertEqual(self.session.stops, 1)


if __name__ == "__main__":
    unittest.main()
