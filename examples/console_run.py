"""
Console Run Example
===================

This example runs one automation from a script: it logs in with the
credentials from the environment, opens the given course and plays every
unfinished video lesson, printing notifications to the terminal.

Usage:
    UNIVERSITY_USERNAME=jdoe UNIVERSITY_PASSWORD=... python examples/console_run.py "Diritto privato"
"""

import asyncio
import os
import sys
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from lesson_automation_framework import Config, Credentials, LessonOrchestrator
from lesson_automation_framework.core.logging import setup_logging
from lesson_automation_framework.notify import ConsoleNotifier
from lesson_automation_framework.runner.credentials import ConsoleCredentialSource


async def console_run(subject: str):
    """
    Play every unfinished lesson of one course.
    """
    config = Config.from_env()
    setup_logging(config.log_level, config.log_file)

    credentials = None
    if os.getenv("UNIVERSITY_USERNAME") and os.getenv("UNIVERSITY_PASSWORD"):
        credentials = Credentials(
            username=os.environ["UNIVERSITY_USERNAME"],
            password=os.environ["UNIVERSITY_PASSWORD"],
            subject=subject,
        )

    print(f"🎯 Subject: {subject or 'asked at login'}\n")

    orchestrator = LessonOrchestrator(
        notifier=ConsoleNotifier(),
        credential_source=ConsoleCredentialSource(),
        config=config.runner,
        browser_config=config.browser,
    )
    result = await orchestrator.run(credentials)

    # Display results
    print("\n" + "=" * 50)
    print("📋 RESULTS")
    print("=" * 50)

    print(f"\n✅ Outcome: {result.outcome.value}")
    print(f"🎬 Lessons played: {result.lessons_played}")
    print(f"⏭️  Already complete: {result.lessons_skipped}")
    if result.lessons_failed:
        print(f"⚠️  Not monitored: {result.lessons_failed}")

    return result


if __name__ == "__main__":
    asyncio.run(console_run(" ".join(sys.argv[1:])))
