"""Lesson runner - orchestrator, completion poll, and run controller."""

from lesson_automation_framework.runner.views import (
    Credentials,
    LessonEntry,
    LessonProgress,
    RunOutcome,
    RunPhase,
    RunResult,
    RunState,
)
from lesson_automation_framework.runner.progress import extract_width_percentage
from lesson_automation_framework.runner.credentials import (
    CredentialSource,
    ConsoleCredentialSource,
    MappingCredentialSource,
)
from lesson_automation_framework.runner.poll import CompletionPoll
from lesson_automation_framework.runner.orchestrator import LessonOrchestrator
from lesson_automation_framework.runner.controller import RunController

__all__ = [
    "Credentials",
    "LessonEntry",
    "LessonProgress",
    "RunOutcome",
    "RunPhase",
    "RunResult",
    "RunState",
    "extract_width_percentage",
    "CredentialSource",
    "ConsoleCredentialSource",
    "MappingCredentialSource",
    "CompletionPoll",
    "LessonOrchestrator",
    "RunController",
]
