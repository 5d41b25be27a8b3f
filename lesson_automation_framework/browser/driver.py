"""Browser driver using Playwright for browser automation."""

import logging
from typing import Any, Dict, Optional
from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Locator,
    Page,
    Playwright,
)

from lesson_automation_framework.core.config import BrowserConfig
from lesson_automation_framework.core.exceptions import (
    BrowserError,
    ElementNotFoundError,
    NavigationError,
)
from lesson_automation_framework.browser.port import ElementSet, PageAutomation

logger = logging.getLogger(__name__)


def _playwright_selector(selector: str) -> str:
    """Prefix bare XPath expressions so Playwright does not read them as CSS."""
    if selector.startswith("/") or selector.startswith("("):
        return f"xpath={selector}"
    return selector


class PlaywrightElementSet(ElementSet):
    """``ElementSet`` backed by a Playwright ``Locator``."""

    def __init__(self, locator: Locator, selector: str, timeout: int):
        self._locator = locator
        self._selector = selector
        self._timeout = timeout

    def _wrap(self, locator: Locator) -> "PlaywrightElementSet":
        return PlaywrightElementSet(locator, self._selector, self._timeout)

    @property
    def first(self) -> "PlaywrightElementSet":
        return self._wrap(self._locator.first)

    def nth(self, index: int) -> "PlaywrightElementSet":
        return self._wrap(self._locator.nth(index))

    async def count(self) -> int:
        return await self._locator.count()

    async def click(self) -> None:
        try:
            await self._locator.first.click(timeout=self._timeout)
            logger.debug(f"Clicked {self._selector}")
        except Exception as e:
            raise ElementNotFoundError(
                self._selector,
                f"Failed to click {self._selector}: {e}"
            )

    async def clear(self) -> None:
        await self._locator.first.clear(timeout=self._timeout)

    async def fill(self, text: str) -> None:
        await self._locator.first.fill(text, timeout=self._timeout)
        logger.debug(f"Typed {len(text)} chars into {self._selector}")

    async def inner_text(self) -> str:
        return await self._locator.first.inner_text(timeout=self._timeout)

    async def get_attribute(self, name: str) -> Optional[str]:
        return await self._locator.first.get_attribute(name, timeout=self._timeout)


class BrowserDriver(PageAutomation):
    """
    Low-level browser driver using Playwright.

    Owns the Playwright instance, browser, context and the single page
    a run works on.
    """

    def __init__(self, config: Optional[BrowserConfig] = None):
        self.config = config or BrowserConfig.from_env()
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    async def launch(self) -> None:
        """Launch the browser instance."""
        logger.info("Launching browser...")

        self._playwright = await async_playwright().start()

        args = []
        if self.config.mute_audio:
            args.append("--mute-audio")
        if self.config.start_maximized:
            args.append("--start-maximized")

        launch_options: Dict[str, Any] = {
            "headless": self.config.headless,
            "slow_mo": self.config.slow_mo,
            "args": args,
        }
        if self.config.channel:
            launch_options["channel"] = self.config.channel

        self._browser = await self._playwright.chromium.launch(**launch_options)

        context_options: Dict[str, Any] = {
            "ignore_https_errors": self.config.ignore_https_errors,
        }
        if self.config.start_maximized:
            context_options["no_viewport"] = True
        else:
            context_options["viewport"] = {
                "width": self.config.viewport_width,
                "height": self.config.viewport_height,
            }

        if self.config.user_agent:
            context_options["user_agent"] = self.config.user_agent

        self._context = await self._browser.new_context(**context_options)
        self._context.set_default_timeout(self.config.timeout)
        self._page = await self._context.new_page()

        logger.info(f"Browser launched (headless={self.config.headless})")

    async def close(self) -> None:
        """Close the browser instance."""
        logger.info("Closing browser...")

        if self._context:
            await self._context.close()
            self._context = None

        if self._browser:
            await self._browser.close()
            self._browser = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

        self._page = None
        logger.info("Browser closed")

    @property
    def page(self) -> Page:
        """Get the current page."""
        if not self._page:
            raise BrowserError("Browser not launched")
        return self._page

    async def navigate(
        self,
        url: str,
        wait_until: str = "networkidle",
        timeout: Optional[int] = None
    ) -> None:
        """Navigate to a URL."""
        timeout = timeout or self.config.timeout

        try:
            logger.info(f"Navigating to: {url}")
            await self.page.goto(
                url,
                wait_until=wait_until,
                timeout=timeout
            )
            logger.debug(f"Navigation complete: {url}")
        except Exception as e:
            raise NavigationError(f"Failed to navigate to {url}: {e}")

    def locate(self, selector: str) -> PlaywrightElementSet:
        locator = self.page.locator(_playwright_selector(selector))
        return PlaywrightElementSet(locator, selector, self.config.timeout)

    async def wait_for_load(self, state: str = "domcontentloaded") -> None:
        """Wait for a specific load state."""
        await self.page.wait_for_load_state(state)

    async def wait_for_selector(self, selector: str, timeout: float) -> bool:
        try:
            await self.page.wait_for_selector(
                _playwright_selector(selector),
                timeout=timeout * 1000,
            )
            return True
        except Exception as e:
            logger.debug(f"Selector {selector} not ready after {timeout}s: {e}")
            return False

    async def screenshot(self) -> bytes:
        return await self.page.screenshot(type="png")
