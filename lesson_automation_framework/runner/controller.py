"""Run controller - single-run gate between a command surface and the orchestrator."""

import asyncio
import logging
from typing import Callable, Optional

from lesson_automation_framework.core.exceptions import (
    LessonStalledError,
    RunAlreadyActiveError,
)
from lesson_automation_framework.runner.orchestrator import LessonOrchestrator
from lesson_automation_framework.runner.views import Credentials, RunResult

logger = logging.getLogger(__name__)

NOT_ACTIVE_STATUS = "No active automation"


class RunController:
    """
    Starts, stops and inspects at most one run at a time.

    A fresh orchestrator is built for every run so no browser handle or
    run state outlives the run that created it. Callers never touch the
    orchestrator's browser session; they can only request a stop, read
    the status text, or ask for a screenshot.
    """

    def __init__(
        self,
        orchestrator_factory: Callable[[], LessonOrchestrator],
        stop_wait: float = 30.0,
    ):
        self._orchestrator_factory = orchestrator_factory
        self.stop_wait = stop_wait

        self._orchestrator: Optional[LessonOrchestrator] = None
        self._task: Optional["asyncio.Task[Optional[RunResult]]"] = None
        self.last_result: Optional[RunResult] = None
        self.last_error: Optional[BaseException] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def task(self) -> Optional["asyncio.Task[Optional[RunResult]]"]:
        return self._task

    async def start(self, credentials: Optional[Credentials] = None) -> "asyncio.Task[Optional[RunResult]]":
        """
        Launch a run in the background.

        Raises ``RunAlreadyActiveError`` while another run is active; the
        active run is left untouched.
        """
        if self.is_running:
            raise RunAlreadyActiveError()

        orchestrator = self._orchestrator_factory()
        self._orchestrator = orchestrator
        self.last_result = None
        self.last_error = None
        self._task = asyncio.create_task(self._run(orchestrator, credentials))

        # let the run mark itself active before anyone can ask it to stop
        await asyncio.sleep(0)
        return self._task

    async def _run(
        self,
        orchestrator: LessonOrchestrator,
        credentials: Optional[Credentials],
    ) -> Optional[RunResult]:
        try:
            result = await orchestrator.run(credentials)
            self.last_result = result
            logger.info(
                f"Run finished: {result.outcome.value} "
                f"(played={result.lessons_played}, skipped={result.lessons_skipped})"
            )
            return result
        except LessonStalledError as e:
            self.last_error = e
            logger.error(f"Run timed out: {e.message}")
        except Exception as e:
            self.last_error = e
            logger.error(f"Run failed: {e}")
        finally:
            logger.info("Automation task finished")
        return None

    def request_stop(self) -> bool:
        """Flip the cancellation flag and return at once. No-op when idle."""
        if not self.is_running or self._orchestrator is None:
            return False
        return self._orchestrator.request_stop()

    async def stop(self, timeout: Optional[float] = None) -> bool:
        """
        Request a stop and wait for the run to unwind.

        After ``timeout`` seconds (default ``stop_wait``) the run task is
        cancelled and the browser is torn down regardless. Returns False
        when no run was active.
        """
        if not self.request_stop():
            return False

        timeout = self.stop_wait if timeout is None else timeout
        task = self._task
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Timed out waiting for the run to stop, forcing cleanup")
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        finally:
            if self._orchestrator is not None:
                await self._orchestrator.close()
        return True

    async def wait(self) -> Optional[RunResult]:
        """Wait for the current run, if any, and return its result."""
        if self._task is None:
            return None
        return await asyncio.shield(self._task)

    def get_status(self) -> str:
        if self._orchestrator is None:
            return NOT_ACTIVE_STATUS
        status = self._orchestrator.get_status()
        task_state = "running" if self.is_running else "finished"
        return f"{status}\n\nTask: {task_state}"

    async def get_screenshot(self) -> Optional[bytes]:
        if self._orchestrator is None or not self.is_running:
            return None
        return await self._orchestrator.capture_screenshot()
