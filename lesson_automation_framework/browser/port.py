"""Page automation port - the narrow browser surface the orchestrator drives."""

from abc import ABC, abstractmethod
from typing import Optional


class ElementSet(ABC):
    """
    A lazily evaluated set of elements matching one selector.

    Mirrors the subset of Playwright's ``Locator`` the orchestrator needs.
    Actions on a set with several matches act on the first one.
    """

    @property
    @abstractmethod
    def first(self) -> "ElementSet":
        """Narrow to the first match."""

    @abstractmethod
    def nth(self, index: int) -> "ElementSet":
        """Narrow to the match at ``index`` (document order)."""

    @abstractmethod
    async def count(self) -> int:
        """Number of current matches."""

    @abstractmethod
    async def click(self) -> None:
        ...

    @abstractmethod
    async def clear(self) -> None:
        ...

    @abstractmethod
    async def fill(self, text: str) -> None:
        ...

    @abstractmethod
    async def inner_text(self) -> str:
        ...

    @abstractmethod
    async def get_attribute(self, name: str) -> Optional[str]:
        ...


class PageAutomation(ABC):
    """One live page of a browser session."""

    @abstractmethod
    async def navigate(self, url: str, wait_until: str = "networkidle") -> None:
        """Navigate and wait for the given load state."""

    @abstractmethod
    def locate(self, selector: str) -> ElementSet:
        """Resolve a CSS or XPath selector into an element set."""

    @abstractmethod
    async def wait_for_load(self, state: str = "domcontentloaded") -> None:
        """Wait for a page load state (``domcontentloaded``, ``networkidle``...)."""

    @abstractmethod
    async def wait_for_selector(self, selector: str, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for a selector; True if it appeared."""

    @abstractmethod
    async def screenshot(self) -> bytes:
        """PNG bytes of the visible page."""


class BrowserSessionPort(ABC):
    """Lifecycle of the browser backing one run."""

    @abstractmethod
    async def start(self) -> PageAutomation:
        """Launch the browser and return its page."""

    @abstractmethod
    async def stop(self) -> None:
        """Tear the browser down. Safe to call more than once."""
