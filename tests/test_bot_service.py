"""Tests for the Telegram command surface."""

import unittest
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

from lesson_automation_framework.bot.commands import (
    HELP_TEXT,
    INVALID_RUN_FORMAT,
    UNAUTHORIZED,
    UNKNOWN_COMMAND,
)
from lesson_automation_framework.bot.service import TelegramBotService
from lesson_automation_framework.core.config import (
    BrowserConfig,
    Config,
    TelegramConfig,
    UniversityConfig,
)
from lesson_automation_framework.core.exceptions import TelegramApiError
from lesson_automation_framework.runner.controller import NOT_ACTIVE_STATUS

from tests.fakes import fast_runner_config

CHAT_ID = 42


class FakeTelegramClient:
    """Records outgoing calls and serves scripted updates."""

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []
        self.photos: List[Dict[str, Any]] = []
        self.update_batches: List[List[Dict[str, Any]]] = []
        self.offsets: List[Optional[int]] = []
        self.me_error: Optional[TelegramApiError] = None
        self.send_errors: List[TelegramApiError] = []
        self.on_exhausted = None

    async def get_me(self) -> Dict[str, Any]:
        if self.me_error:
            raise self.me_error
        return {"id": 1, "username": "lesson_bot"}

    async def get_updates(self, offset=None, timeout=30):
        self.offsets.append(offset)
        if self.update_batches:
            return self.update_batches.pop(0)
        if self.on_exhausted:
            await self.on_exhausted()
        return []

    async def send_message(self, chat_id, text, parse_mode="Markdown"):
        if self.send_errors:
            raise self.send_errors.pop(0)
        self.sent.append({"chat_id": chat_id, "text": text, "parse_mode": parse_mode})
        return {}

    async def send_photo(self, chat_id, photo, caption="", filename="screenshot.png"):
        self.photos.append({"chat_id": chat_id, "photo": photo, "caption": caption})
        return {}

    def texts(self) -> List[str]:
        return [message["text"] for message in self.sent]


class StubController:
    def __init__(self):
        self.is_running = False
        self.started = []
        self.stopped = 0
        self.status = "Automation active\nPhase: playing_video_lessons"
        self.screenshot: Optional[bytes] = b"png"

    async def start(self, credentials):
        self.started.append(credentials)
        self.is_running = True

    async def stop(self, timeout=None):
        self.stopped += 1
        self.is_running = False
        return True

    def get_status(self):
        return self.status

    async def get_screenshot(self):
        return self.screenshot


def make_config(saved: bool = True) -> Config:
    university = UniversityConfig(
        username="jdoe",
        password="pw",
        default_subject="Algebra",
        save_credentials=saved,
    )
    return Config(
        browser=BrowserConfig(),
        runner=fast_runner_config(),
        telegram=TelegramConfig(bot_token="123:abc", chat_id=CHAT_ID),
        university=university,
    )


def message(text: str, chat_id: int = CHAT_ID, update_id: int = 1) -> Dict[str, Any]:
    return {"update_id": update_id, "message": {"chat": {"id": chat_id}, "text": text}}


class BotTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.client = FakeTelegramClient()
        self.controller = StubController()
        self.service = TelegramBotService(self.client, make_config(), controller=self.controller)

    async def send(self, text: str, chat_id: int = CHAT_ID) -> None:
        await self.service.handle_update(message(text, chat_id))


class TestCommands(BotTestCase):

    async def test_unauthorized_chat_is_denied(self):
        await self.send("/run", chat_id=999)

        self.assertEqual(self.client.sent, [
            {"chat_id": 999, "text": UNAUTHORIZED, "parse_mode": None},
        ])
        self.assertEqual(self.controller.started, [])

    async def test_denial_survives_send_failure(self):
        self.client.send_errors = [TelegramApiError("Telegram connection error: timeout")]

        await self.send("/run", chat_id=999)

        self.assertEqual(self.client.sent, [])
        self.assertEqual(self.controller.started, [])

    async def test_run_with_saved_credentials(self):
        await self.send("/run")

        credentials = self.controller.started[0]
        self.assertEqual(credentials.username, "jdoe")
        self.assertEqual(credentials.subject, "Algebra")
        self.assertIn("Automation started", self.client.texts()[0])
        self.assertIn("Subject: Algebra", self.client.texts()[0])

    async def test_start_is_an_alias_for_run(self):
        await self.send("/start Chimica")
        self.assertEqual(self.controller.started[0].subject, "Chimica")

    async def test_run_with_full_credentials(self):
        await self.send("/run mrossi secret Diritto privato")

        credentials = self.controller.started[0]
        self.assertEqual(credentials.username, "mrossi")
        self.assertEqual(credentials.subject, "Diritto privato")
        self.assertNotIn("secret", self.client.texts()[0])

    async def test_run_bad_format(self):
        await self.send("/run jdoe pw")
        self.assertEqual(self.client.texts(), [INVALID_RUN_FORMAT])
        self.assertEqual(self.controller.started, [])

    async def test_run_while_running(self):
        self.controller.is_running = True
        await self.send("/run")

        self.assertIn("already running", self.client.texts()[0])
        self.assertEqual(self.controller.started, [])

    async def test_status(self):
        await self.send("/status")
        self.assertEqual(self.client.texts(), [self.controller.status])

    async def test_status_error_is_reported(self):
        def broken():
            raise RuntimeError("boom")

        self.controller.get_status = broken
        await self.send("/status")
        self.assertEqual(self.client.texts(), ["Error: boom"])

    async def test_screenshot_when_idle(self):
        await self.send("/screenshot")
        self.assertEqual(self.client.texts(), [NOT_ACTIVE_STATUS])
        self.assertEqual(self.client.photos, [])

    async def test_screenshot_while_running(self):
        self.controller.is_running = True
        await self.send("/screenshot")

        self.assertEqual(self.client.photos[0]["photo"], b"png")
        self.assertTrue(self.client.photos[0]["caption"].startswith("Screenshot - "))

    async def test_screenshot_failure(self):
        self.controller.is_running = True
        self.controller.screenshot = None
        await self.send("/screenshot")
        self.assertEqual(self.client.texts(), ["Unable to take a screenshot"])

    async def test_stop_when_idle(self):
        await self.send("/stop")
        self.assertEqual(self.client.texts(), ["No automation to stop"])
        self.assertEqual(self.controller.stopped, 0)

    async def test_stop_while_running(self):
        self.controller.is_running = True
        await self.send("/stop")

        self.assertEqual(self.controller.stopped, 1)
        self.assertEqual(self.client.texts(), [
            "⏹️ Stopping automation...",
            "✅ Automation stopped. Use /run to start it again",
        ])

    async def test_help_and_unknown(self):
        await self.send("/help")
        await self.send("/dance")
        self.assertEqual(self.client.texts(), [HELP_TEXT, UNKNOWN_COMMAND])

    async def test_non_text_updates_are_ignored(self):
        await self.service.handle_update({"update_id": 3, "message": {"chat": {"id": CHAT_ID}}})
        await self.service.handle_update({"update_id": 4, "edited_message": {}})
        self.assertEqual(self.client.sent, [])


class TestLifecycle(BotTestCase):

    async def test_polls_until_shutdown(self):
        self.client.update_batches = [
            [message("/status", update_id=10), message("/help", update_id=11)],
        ]
        self.client.on_exhausted = self.service.shutdown

        await self.service.run_forever()

        texts = self.client.texts()
        self.assertIn("University bot started", texts[0])
        self.assertEqual(texts[1:], [self.controller.status, HELP_TEXT])
        self.assertEqual(self.client.offsets, [None, 12])

    async def test_reply_failures_do_not_end_polling(self):
        self.client.update_batches = [
            [message("/status", update_id=10), message("/help", update_id=11)],
        ]
        self.client.send_errors = [
            TelegramApiError("Telegram connection error: timeout"),
            TelegramApiError("Telegram connection error: timeout"),
        ]
        self.client.on_exhausted = self.service.shutdown

        await self.service._poll_updates()

        self.assertEqual(self.client.texts(), [HELP_TEXT])
        self.assertEqual(self.client.offsets, [None, 12])

    async def test_handler_crash_does_not_end_polling(self):
        self.client.update_batches = [
            [message("/status", update_id=10)],
            [message("/help", update_id=11)],
        ]
        self.client.on_exhausted = self.service.shutdown
        self.service.handle_update = AsyncMock(side_effect=[RuntimeError("boom"), None])

        await self.service._poll_updates()

        self.assertEqual(self.service.handle_update.await_count, 2)
        self.assertEqual(self.client.offsets, [None, 11, 12])

    async def test_shutdown_stops_active_run(self):
        self.controller.is_running = True
        await self.service.shutdown()
        self.assertEqual(self.controller.stopped, 1)

    async def test_welcome_tolerates_unknown_chat(self):
        self.client.send_errors = [TelegramApiError("Bad Request: chat not found", error_code=400)]
        self.client.on_exhausted = self.service.shutdown

        await self.service.run_forever()
        self.assertEqual(self.client.offsets, [None])

    async def test_invalid_token_is_fatal(self):
        self.client.me_error = TelegramApiError("Unauthorized", error_code=401)

        with self.assertRaises(TelegramApiError):
            await self.service.run_forever()
        self.assertEqual(self.client.offsets, [])

    async def test_other_welcome_errors_are_fatal(self):
        self.client.send_errors = [TelegramApiError("Forbidden: bot was blocked by the user", error_code=403)]

        with self.assertRaises(TelegramApiError):
            await self.service.run_forever()


if __name__ == "__main__":
    unittest.main()
