"""Chat bot front-end - command parsing and the Telegram service."""

from lesson_automation_framework.bot.commands import (
    BotCommand,
    ParsedCommand,
    parse_command,
    resolve_run_credentials,
    welcome_message,
)
from lesson_automation_framework.bot.service import TelegramBotService

__all__ = [
    "BotCommand",
    "ParsedCommand",
    "parse_command",
    "resolve_run_credentials",
    "welcome_message",
    "TelegramBotService",
]
