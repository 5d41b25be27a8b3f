"""Operator command parsing for chat front-ends."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from lesson_automation_framework.core.config import UniversityConfig
from lesson_automation_framework.core.exceptions import CommandError
from lesson_automation_framework.runner.views import Credentials


class BotCommand(str, Enum):
    """Commands the bot understands."""
    START = "/start"
    RUN = "/run"
    STATUS = "/status"
    SCREENSHOT = "/screenshot"
    STOP = "/stop"
    HELP = "/help"

    @property
    def starts_run(self) -> bool:
        return self in (BotCommand.START, BotCommand.RUN)


@dataclass
class ParsedCommand:
    """A command word plus its whitespace-separated arguments."""

    command: Optional[BotCommand]
    raw: str
    args: List[str] = field(default_factory=list)

    @property
    def is_known(self) -> bool:
        return self.command is not None


def parse_command(text: str) -> Optional[ParsedCommand]:
    """
    Split a chat message into command and arguments.

    The command word is matched case-insensitively and may carry the
    ``@botname`` suffix Telegram adds in group chats. Returns None for
    blank messages.
    """
    parts = text.split()
    if not parts:
        return None

    word = parts[0].lower().split("@", 1)[0]
    try:
        command: Optional[BotCommand] = BotCommand(word)
    except ValueError:
        command = None
    return ParsedCommand(command=command, raw=word, args=parts[1:])


USAGE_FULL = "`/run <username> <password> <subject>`"

INVALID_RUN_FORMAT = (
    "❌ *Invalid `/run` format.* Supported forms:\n"
    "• `/run`\n• `/run <subject>`\n• `/run <user> <pass> <subject>`"
)
MISSING_DEFAULT_SUBJECT = (
    "❌ *Default subject missing.* Pass one with `/run <subject>` "
    "or set it in the configuration."
)
NO_SAVED_CREDENTIALS = (
    "❌ *No saved credentials.* All parameters are required:\n"
    f"{USAGE_FULL}"
)


def resolve_run_credentials(args: List[str], university: UniversityConfig) -> Credentials:
    """
    Work out the credentials for a start command.

    With trusted saved credentials:
        no args          -> saved username/password and default subject
        one arg          -> saved username/password, subject from the arg
        three+ args      -> username, password, subject (rest joined)
    Without them only the three+ form is accepted.

    Raises ``CommandError`` with an operator-facing message otherwise.
    """
    if len(args) >= 3:
        return Credentials(
            username=args[0],
            password=args[1],
            subject=" ".join(args[2:]),
        )

    if not university.has_saved_credentials:
        raise CommandError(NO_SAVED_CREDENTIALS)

    if not args:
        if not university.default_subject:
            raise CommandError(MISSING_DEFAULT_SUBJECT)
        subject = university.default_subject
    elif len(args) == 1:
        subject = args[0]
    else:
        raise CommandError(INVALID_RUN_FORMAT)

    return Credentials(
        username=university.username,
        password=university.password,
        subject=subject,
    )


HELP_TEXT = (
    "Available commands:\n"
    "• /run (or /start) - start the automation\n"
    "• /status - current status\n"
    "• /screenshot - screenshot of the browser page\n"
    "• /stop - stop the running automation\n"
    "• /help - show this message"
)

UNKNOWN_COMMAND = f"❓ *Unrecognized command.*\n\n{HELP_TEXT}"
UNAUTHORIZED = "You are not authorized to use this bot"


def welcome_message(university: UniversityConfig) -> str:
    """Startup/help message, including how to start with or without saved credentials."""
    lines = [
        "🤖 *University bot started!*",
        "",
        HELP_TEXT,
        "",
    ]

    if university.has_saved_credentials:
        lines += [
            "💾 *Saved credentials*",
            f"Username: `{university.username}`",
            f"Default subject: *{university.default_subject or '-'}*",
            "",
            "To *start* the automation:",
            "• `/run` - saved credentials and default subject",
            "• `/run <subject>` - saved credentials, another subject",
            f"• {USAGE_FULL} - custom credentials for this run only",
        ]
    else:
        lines += [
            "⚠️ *No saved credentials*",
            "The automation can only be started with all parameters.",
            "",
            f"Syntax: {USAGE_FULL}",
        ]

    return "\n".join(lines)
