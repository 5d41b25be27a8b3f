"""Browser session management - one browser per run."""

import logging
from datetime import datetime
from typing import Optional
from uuid import uuid4

from lesson_automation_framework.core.config import BrowserConfig
from lesson_automation_framework.core.exceptions import BrowserError, SessionExpiredError
from lesson_automation_framework.browser.driver import BrowserDriver
from lesson_automation_framework.browser.port import BrowserSessionPort, PageAutomation

logger = logging.getLogger(__name__)


class BrowserSession(BrowserSessionPort):
    """
    High-level browser session manager.

    Provides:
    - Launch and teardown of the Playwright driver
    - Guaranteed single cleanup, whichever path ends the run
    - Async context manager support
    """

    def __init__(self, config: Optional[BrowserConfig] = None):
        self.config = config or BrowserConfig.from_env()
        self.session_id = str(uuid4())[:8]

        self._driver: Optional[BrowserDriver] = None
        self._is_active = False
        self._start_time: Optional[datetime] = None

    async def start(self) -> PageAutomation:
        """Start the browser session and return its page."""
        if self._is_active:
            logger.warning("Session already active")
            return self.page

        logger.info(f"Starting browser session {self.session_id}")

        driver = BrowserDriver(self.config)
        try:
            await driver.launch()
        except Exception as e:
            await driver.close()
            raise BrowserError(f"Failed to launch browser: {e}", recoverable=False)

        self._driver = driver
        self._is_active = True
        self._start_time = datetime.now()
        return driver

    async def stop(self) -> None:
        """Stop the browser session."""
        if not self._is_active:
            return

        logger.info(f"Stopping browser session {self.session_id} after {self.uptime_seconds:.0f}s")
        self._is_active = False

        if self._driver:
            driver, self._driver = self._driver, None
            await driver.close()

    async def __aenter__(self) -> PageAutomation:
        return await self.start()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    def _ensure_active(self) -> None:
        if not self._is_active or not self._driver:
            raise SessionExpiredError(self.session_id)

    @property
    def page(self) -> PageAutomation:
        """The live page of this session."""
        self._ensure_active()
        return self._driver

    @property
    def is_active(self) -> bool:
        return self._is_active

    @property
    def uptime_seconds(self) -> float:
        if not self._start_time:
            return 0.0
        return (datetime.now() - self._start_time).total_seconds()
