"""Telegram command surface for the run controller."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from lesson_automation_framework.core.config import Config
from lesson_automation_framework.core.exceptions import (
    CommandError,
    RunAlreadyActiveError,
    TelegramApiError,
)
from lesson_automation_framework.bot.commands import (
    BotCommand,
    UNAUTHORIZED,
    UNKNOWN_COMMAND,
    HELP_TEXT,
    parse_command,
    resolve_run_credentials,
    welcome_message,
)
from lesson_automation_framework.notify.telegram import TelegramClient, TelegramNotifier
from lesson_automation_framework.runner.controller import RunController, NOT_ACTIVE_STATUS
from lesson_automation_framework.runner.orchestrator import LessonOrchestrator

logger = logging.getLogger(__name__)

RETRY_DELAY_SECONDS = 5.0


class TelegramBotService:
    """
    Long-polls Telegram for commands from the one authorized chat and
    forwards them to a ``RunController``.

    Usage:
        async with TelegramClient(config.telegram.bot_token) as client:
            service = TelegramBotService(client, config)
            await service.run_forever()
    """

    def __init__(
        self,
        client: TelegramClient,
        config: Config,
        controller: Optional[RunController] = None,
    ):
        self.client = client
        self.config = config
        self.chat_id = config.telegram.chat_id
        self.notifier = TelegramNotifier(client, self.chat_id)
        self.controller = controller or RunController(
            self._build_orchestrator,
            stop_wait=config.runner.timing.stop_wait,
        )
        self._stopping = asyncio.Event()

    def _build_orchestrator(self) -> LessonOrchestrator:
        return LessonOrchestrator(
            notifier=self.notifier,
            config=self.config.runner,
            browser_config=self.config.browser,
        )

    async def reply(self, chat_id: int, text: str, markdown: bool = True) -> None:
        await self.client.send_message(chat_id, text, parse_mode="Markdown" if markdown else None)

    async def _reply_quietly(self, chat_id: int, text: str) -> None:
        try:
            await self.reply(chat_id, text, markdown=False)
        except TelegramApiError as e:
            logger.error(f"Unable to reply to chat {chat_id}: {e}")

    # Lifecycle

    async def run_forever(self) -> None:
        """Connect, greet the operator and process updates until ``shutdown``."""
        logger.info("Starting Telegram bot...")

        try:
            me = await self.client.get_me()
        except TelegramApiError as e:
            self._explain_api_error(e)
            raise

        logger.info(f"Bot @{me.get('username')} connected (id {me.get('id')})")
        logger.info(f"Authorized chat id: {self.chat_id}")

        try:
            await self.reply(self.chat_id, welcome_message(self.config.university))
            logger.info("Welcome message sent")
        except TelegramApiError as e:
            if not e.is_chat_not_found:
                raise
            logger.info("Welcome message not sent: open the bot in Telegram and send /start")

        logger.info("Bot ready to receive commands")
        await self._poll_updates()

    async def _poll_updates(self) -> None:
        offset: Optional[int] = None

        while not self._stopping.is_set():
            try:
                updates = await self.client.get_updates(
                    offset=offset,
                    timeout=self.config.telegram.poll_timeout,
                )
            except TelegramApiError as e:
                if e.is_unauthorized:
                    self._explain_api_error(e)
                    raise
                logger.error(f"Telegram polling error: {e}")
                await asyncio.sleep(RETRY_DELAY_SECONDS)
                continue

            for update in updates:
                offset = update["update_id"] + 1
                try:
                    await self.handle_update(update)
                except Exception as e:
                    logger.error(f"Failed to handle update {update['update_id']}: {e}")

    async def shutdown(self) -> None:
        self._stopping.set()
        if self.controller.is_running:
            await self.controller.stop()

    def _explain_api_error(self, error: TelegramApiError) -> None:
        logger.error(f"Telegram API error: {error}")
        if error.is_unauthorized:
            logger.error(
                "The bot token is invalid or was revoked; ask @BotFather for a new one "
                "and update TELEGRAM_BOT_TOKEN"
            )
        elif error.is_not_found:
            logger.error("Bot not found; check the token format (1234567890:ABCdefGHI...)")
        elif error.is_chat_not_found:
            logger.error(
                "Chat not found; start a conversation with the bot and check "
                "TELEGRAM_CHAT_ID with @userinfobot"
            )

    # Updates

    async def handle_update(self, update: Dict[str, Any]) -> None:
        message = update.get("message") or {}
        text = message.get("text")
        chat_id = (message.get("chat") or {}).get("id")
        if not text or chat_id is None:
            return

        if chat_id != self.chat_id:
            logger.warning(f"Rejected message from unauthorized chat {chat_id}")
            await self._reply_quietly(chat_id, UNAUTHORIZED)
            return

        logger.info(f"Received: {text.split()[0] if text.split() else text} from {chat_id}")

        try:
            await self.process_command(chat_id, text)
        except Exception as e:
            logger.error(f"Error processing command: {e}")
            await self._reply_quietly(chat_id, f"Error: {e}")

    async def process_command(self, chat_id: int, text: str) -> None:
        parsed = parse_command(text)
        if parsed is None:
            return

        if not parsed.is_known:
            await self.reply(chat_id, UNKNOWN_COMMAND)
            return

        command = parsed.command
        if command.starts_run:
            await self._start_run(chat_id, parsed.args)
        elif command == BotCommand.STATUS:
            await self.reply(chat_id, self.controller.get_status(), markdown=False)
        elif command == BotCommand.SCREENSHOT:
            await self._send_screenshot(chat_id)
        elif command == BotCommand.STOP:
            await self._stop_run(chat_id)
        elif command == BotCommand.HELP:
            await self.reply(chat_id, HELP_TEXT, markdown=False)

    async def _start_run(self, chat_id: int, args) -> None:
        if self.controller.is_running:
            await self.reply(chat_id, "⚠️ *Automation already running.* Use /stop first.")
            return

        try:
            credentials = resolve_run_credentials(args, self.config.university)
        except CommandError as e:
            await self.reply(chat_id, e.message)
            return

        await self.reply(
            chat_id,
            f"🚀 Automation started\n\n👤 User: {credentials.username}\n📚 Subject: {credentials.subject}",
            markdown=False,
        )
        try:
            await self.controller.start(credentials)
        except RunAlreadyActiveError:
            await self.reply(chat_id, "⚠️ *Automation already running.* Use /stop first.")

    async def _send_screenshot(self, chat_id: int) -> None:
        if not self.controller.is_running:
            await self.reply(chat_id, NOT_ACTIVE_STATUS, markdown=False)
            return

        screenshot = await self.controller.get_screenshot()
        if screenshot is None:
            await self.reply(chat_id, "Unable to take a screenshot", markdown=False)
            return

        await self.client.send_photo(
            chat_id,
            screenshot,
            caption=f"Screenshot - {datetime.now():%H:%M:%S}",
        )

    async def _stop_run(self, chat_id: int) -> None:
        if not self.controller.is_running:
            await self.reply(chat_id, "No automation to stop", markdown=False)
            return

        await self.reply(chat_id, "⏹️ Stopping automation...", markdown=False)
        try:
            await self.controller.stop()
        finally:
            await self.reply(chat_id, "✅ Automation stopped. Use /run to start it again", markdown=False)
