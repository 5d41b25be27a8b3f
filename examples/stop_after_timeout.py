"""
Stop After Timeout Example
==========================

This example drives a run through the ``RunController`` the way the
Telegram bot does: start it in the background, print the status while it
works, then stop it cooperatively after a fixed time.

Usage:
    python examples/stop_after_timeout.py Algebra 120
"""

import asyncio
import os
import sys
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from lesson_automation_framework import Config, Credentials, LessonOrchestrator, RunController
from lesson_automation_framework.notify import ConsoleNotifier


async def stop_after_timeout(subject: str, seconds: float):
    config = Config.from_env()
    notifier = ConsoleNotifier()

    controller = RunController(
        lambda: LessonOrchestrator(
            notifier=notifier,
            config=config.runner,
            browser_config=config.browser,
        ),
        stop_wait=config.runner.timing.stop_wait,
    )

    await controller.start(Credentials(
        username=os.environ["UNIVERSITY_USERNAME"],
        password=os.environ["UNIVERSITY_PASSWORD"],
        subject=subject,
    ))

    elapsed = 0.0
    while controller.is_running and elapsed < seconds:
        await asyncio.sleep(15)
        elapsed += 15
        print(f"\n📊 {controller.get_status()}\n")

    if controller.is_running:
        print("⏹️  Time is up, stopping...")
        await controller.stop()

    if controller.last_error:
        print(f"❌ Run failed: {controller.last_error}")
    elif controller.last_result:
        print(f"✅ Outcome: {controller.last_result.outcome.value}")


if __name__ == "__main__":
    asyncio.run(stop_after_timeout(sys.argv[1], float(sys.argv[2])))
