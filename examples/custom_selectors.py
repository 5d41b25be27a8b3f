"""
Custom Selectors Example
========================

The selectors for the login form, course filters and lesson rows track
the platform's current markup. When the site changes, override them in a
JSON config file instead of editing code:

    {
        "runner": {
            "university_url": "https://lms.example.edu/",
            "selectors": {
                "login_button": "//button[@type='submit']",
                "to_complete_filter": "//button[normalize-space()='To complete']"
            },
            "timing": {"stall_timeout": 600}
        }
    }

Usage:
    python examples/custom_selectors.py my_config.json "Linear Algebra"
"""

import asyncio
import sys

from lesson_automation_framework import Config, LessonOrchestrator
from lesson_automation_framework.notify import ConsoleNotifier
from lesson_automation_framework.runner.credentials import ConsoleCredentialSource


async def run_with_selectors(config_path: str, subject: str):
    config = Config.from_file(config_path)
    selectors = config.runner.selectors

    print("🔎 Effective selectors:")
    for name, value in selectors.model_dump().items():
        print(f"   {name:<22} {value}")
    print(f"\n📚 Course link for '{subject}':\n   {selectors.course_link_for(subject)}\n")

    source = ConsoleCredentialSource()
    credentials = source.get_credentials().with_subject(subject)

    orchestrator = LessonOrchestrator(
        notifier=ConsoleNotifier(),
        credential_source=source,
        config=config.runner,
        browser_config=config.browser,
    )
    return await orchestrator.run(credentials)


if __name__ == "__main__":
    asyncio.run(run_with_selectors(sys.argv[1], " ".join(sys.argv[2:])))
