"""Browser automation module - Playwright driver, page port, and sessions."""

from lesson_automation_framework.browser.port import (
    BrowserSessionPort,
    ElementSet,
    PageAutomation,
)
from lesson_automation_framework.browser.driver import BrowserDriver, PlaywrightElementSet
from lesson_automation_framework.browser.session import BrowserSession

__all__ = [
    "BrowserSessionPort",
    "ElementSet",
    "PageAutomation",
    "BrowserDriver",
    "PlaywrightElementSet",
    "BrowserSession",
]
