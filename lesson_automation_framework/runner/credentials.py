"""Credential sources - where a run gets username, password and subject."""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Mapping, Optional

from rich.console import Console
from rich.prompt import Prompt

from lesson_automation_framework.runner.views import Credentials

logger = logging.getLogger(__name__)

USERNAME_PROMPT = "Enter your username:"
PASSWORD_PROMPT = "Enter your password:"
SUBJECT_PROMPT = "Enter the subject of interest:"


class CredentialSource(ABC):
    """Answers prompts for credential values."""

    @abstractmethod
    def get_value(self, prompt: str) -> str:
        ...

    def get_credentials(self) -> Credentials:
        return Credentials(
            username=self.get_value(USERNAME_PROMPT),
            password=self.get_value(PASSWORD_PROMPT),
        )

    def get_subject(self) -> str:
        return self.get_value(SUBJECT_PROMPT)


class ConsoleCredentialSource(CredentialSource):
    """Asks a human at the terminal. Passwords are not echoed."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def get_value(self, prompt: str) -> str:
        return Prompt.ask(
            f"[magenta]{prompt}[/magenta]",
            console=self.console,
            password=prompt == PASSWORD_PROMPT,
        ).strip()


class MappingCredentialSource(CredentialSource):
    """Serves pre-populated answers for non-interactive front-ends."""

    def __init__(self, responses: Optional[Mapping[str, str]] = None):
        self._responses: Dict[str, str] = dict(responses or {})

    def get_value(self, prompt: str) -> str:
        if prompt in self._responses:
            return self._responses[prompt]
        logger.warning(f"No answer available for prompt: {prompt}")
        return ""
