"""
Lesson Automation Framework
===========================

Drives a university learning-management site through Playwright: logs in,
opens a course, plays every unfinished video lesson until it reaches 100%,
and reports progress to an operator over the console or Telegram.

Main Components:
- LessonOrchestrator: the run state machine and completion poll
- RunController: single-run gate with start/stop/status/screenshot
- BrowserSession: Playwright-backed page automation
- TelegramBotService: chat command surface

Quick Start:
    >>> from lesson_automation_framework import LessonOrchestrator, Credentials
    >>> from lesson_automation_framework.notify import ConsoleNotifier
    >>>
    >>> async def main():
    ...     orchestrator = LessonOrchestrator(notifier=ConsoleNotifier())
    ...     return await orchestrator.run(
    ...         Credentials(username="jdoe", password="secret", subject="Algebra")
    ...     )
"""

__version__ = "1.0.0"
__author__ = "Lesson Automation Team"

# Lazy imports for better performance
_LAZY_IMPORTS = {
    "LessonOrchestrator": ("lesson_automation_framework.runner.orchestrator", "LessonOrchestrator"),
    "RunController": ("lesson_automation_framework.runner.controller", "RunController"),
    "CompletionPoll": ("lesson_automation_framework.runner.poll", "CompletionPoll"),
    "Credentials": ("lesson_automation_framework.runner.views", "Credentials"),
    "RunResult": ("lesson_automation_framework.runner.views", "RunResult"),
    "extract_width_percentage": ("lesson_automation_framework.runner.progress", "extract_width_percentage"),
    "BrowserSession": ("lesson_automation_framework.browser.session", "BrowserSession"),
    "BrowserDriver": ("lesson_automation_framework.browser.driver", "BrowserDriver"),
    "TelegramBotService": ("lesson_automation_framework.bot.service", "TelegramBotService"),
    "Config": ("lesson_automation_framework.core.config", "Config"),
}


def __getattr__(name: str):
    """Lazy import mechanism for main components."""
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        from importlib import import_module
        module = import_module(module_path)
        attr = getattr(module, attr_name)
        globals()[name] = attr
        return attr
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = [
    "LessonOrchestrator",
    "RunController",
    "CompletionPoll",
    "Credentials",
    "RunResult",
    "extract_width_percentage",
    "BrowserSession",
    "BrowserDriver",
    "TelegramBotService",
    "Config",
    "__version__",
]
