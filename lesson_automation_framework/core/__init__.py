"""Core framework components - configuration, logging, and exceptions."""

from lesson_automation_framework.core.config import Config
from lesson_automation_framework.core.exceptions import (
    LessonAutomationError,
    BrowserError,
    ConfigurationError,
    CourseNotFoundError,
    LessonStalledError,
    RunCancelledError,
    RunAlreadyActiveError,
)
from lesson_automation_framework.core.logging import setup_logging, get_logger

__all__ = [
    "Config",
    "LessonAutomationError",
    "BrowserError",
    "ConfigurationError",
    "CourseNotFoundError",
    "LessonStalledError",
    "RunCancelledError",
    "RunAlreadyActiveError",
    "setup_logging",
    "get_logger",
]
