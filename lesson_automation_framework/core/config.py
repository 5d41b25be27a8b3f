"""Configuration management for the lesson automation framework."""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field
from dotenv import load_dotenv

from lesson_automation_framework.core.exceptions import ConfigurationError

# Load environment variables from .env file
load_dotenv()

DEFAULT_UNIVERSITY_URL = "https://lms.mercatorum.multiversity.click/"
BOT_TOKEN_PLACEHOLDER = "INSERT_BOT_TOKEN_HERE"


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class BrowserConfig(BaseModel):
    """Browser-specific configuration."""

    headless: bool = Field(
        default=False,
        description="Run browser in headless mode"
    )
    timeout: int = Field(
        default=30000,
        description="Default timeout in milliseconds"
    )
    channel: Optional[str] = Field(
        default=None,
        description="Chromium distribution channel (e.g. 'msedge', 'chrome')"
    )
    mute_audio: bool = Field(
        default=True,
        description="Launch the browser with audio muted"
    )
    start_maximized: bool = Field(
        default=True,
        description="Maximize the window and let the page use its full size"
    )
    viewport_width: int = Field(
        default=1280,
        description="Browser viewport width (ignored when maximized)"
    )
    viewport_height: int = Field(
        default=720,
        description="Browser viewport height (ignored when maximized)"
    )
    user_agent: Optional[str] = Field(
        default=None,
        description="Custom user agent string"
    )
    ignore_https_errors: bool = Field(
        default=True,
        description="Ignore HTTPS certificate errors"
    )
    slow_mo: int = Field(
        default=0,
        description="Slow down operations by specified milliseconds"
    )

    @classmethod
    def from_env(cls) -> "BrowserConfig":
        """Create config from environment variables."""
        return cls(
            headless=_env_bool("BROWSER_HEADLESS"),
            timeout=int(os.getenv("BROWSER_TIMEOUT", "30000")),
            channel=os.getenv("BROWSER_CHANNEL") or None,
            mute_audio=_env_bool("BROWSER_MUTE_AUDIO", "true"),
            start_maximized=_env_bool("BROWSER_START_MAXIMIZED", "true"),
            viewport_width=int(os.getenv("BROWSER_VIEWPORT_WIDTH", "1280")),
            viewport_height=int(os.getenv("BROWSER_VIEWPORT_HEIGHT", "720")),
            user_agent=os.getenv("BROWSER_USER_AGENT"),
            ignore_https_errors=_env_bool("BROWSER_IGNORE_HTTPS_ERRORS", "true"),
            slow_mo=int(os.getenv("BROWSER_SLOW_MO", "0")),
        )


class SelectorConfig(BaseModel):
    """
    Structural selectors for the target LMS.

    These track the site's current markup and break whenever it changes,
    so they live here instead of in the orchestration code. The course
    link selector is a template: ``{subject}`` is replaced by an XPath
    string literal built from the subject name.
    """

    username_input: str = Field(default="#username")
    password_input: str = Field(default="#password")
    login_button: str = Field(default="//button/span[text()='Accedi']")
    overlay_marker: str = Field(default="div[id*='walkme-visual-design']")
    overlay_close: str = Field(
        default="//*[@id='border-49e0cc4f-5895-5af9-52ab-b19efc02d195']"
    )
    to_complete_filter: str = Field(default="//button[text()='Da Completare ']")
    to_start_filter: str = Field(default="//button[text()='Da Iniziare ']")
    course_link: str = Field(
        default=(
            "//span[contains(normalize-space(.), {subject})]"
            "/ancestor::div[.//a[contains(@href, \"/videolezioni/\")]][1]"
            "//a[contains(@href, \"/videolezioni/\")]"
        )
    )
    lesson_group_toggle: str = Field(
        default=(
            "//div[contains(@class, \"align-left flex items-center h-full leading-normal font-medium\")"
            " and (contains(., \"lezioni\"))]"
        )
    )
    lesson_group_rows: str = Field(
        default=(
            "//div[contains(@class, \"align-left flex items-center h-full leading-normal font-medium\")"
            " and not(contains(., \"lezioni\"))]"
        )
    )
    video_lesson_rows: str = Field(
        default="//div[contains(@class, \"w-1/12 text-xs md:text-xs\")]"
    )
    progress_bar: str = Field(
        default="//div[contains(@class, \"bg-platform-primary h-1 rounded-full absolute\")]"
    )

    def course_link_for(self, subject: str) -> str:
        """Render the course link selector for a subject."""
        return self.course_link.replace("{subject}", xpath_literal(subject))


def xpath_literal(value: str) -> str:
    """Quote a string as an XPath 1.0 literal."""
    if '"' not in value:
        return f'"{value}"'
    if "'" not in value:
        return f"'{value}'"
    parts = value.split('"')
    return "concat(" + ", '\"', ".join(f'"{part}"' for part in parts) + ")"


class TimingConfig(BaseModel):
    """Settle delays, polling cadence and timeouts, in seconds."""

    login_settle: float = Field(default=6.0, description="Wait after submitting the login form")
    filter_settle: float = Field(default=3.0, description="Wait after clicking a course filter")
    course_settle: float = Field(default=6.0, description="Wait after opening a course")
    lesson_toggle_settle: float = Field(default=6.0, description="Wait after toggling the lesson group")
    lesson_open_settle: float = Field(default=2.0, description="Wait after opening a lesson row")
    ready_timeout: float = Field(default=10.0, description="Upper bound when waiting for a ready selector")
    poll_interval: float = Field(default=10.0, description="Completion poll tick")
    stall_timeout: float = Field(default=300.0, description="Max time without video progress")
    progress_epsilon: float = Field(default=0.01, description="Smallest change counted as progress")
    notify_step: float = Field(default=25.0, description="Percentage points between progress messages")
    stop_wait: float = Field(default=30.0, description="Max wait for a run to unwind after stop")

    @classmethod
    def from_env(cls) -> "TimingConfig":
        """Create config from environment variables."""
        return cls(
            poll_interval=float(os.getenv("LESSON_POLL_INTERVAL", "10")),
            stall_timeout=float(os.getenv("LESSON_STALL_TIMEOUT", "300")),
            stop_wait=float(os.getenv("RUN_STOP_WAIT", "30")),
        )


class RunnerConfig(BaseModel):
    """Orchestrator behaviour."""

    university_url: str = Field(
        default=DEFAULT_UNIVERSITY_URL,
        description="Entry URL of the learning platform"
    )
    abort_on_lesson_error: bool = Field(
        default=True,
        description="Abort the run when a lesson fails instead of skipping it"
    )
    save_screenshots: bool = Field(
        default=False,
        description="Save error and stop screenshots to disk"
    )
    screenshots_dir: str = Field(
        default="./screenshots",
        description="Directory for saved screenshots"
    )
    selectors: SelectorConfig = Field(default_factory=SelectorConfig)
    timing: TimingConfig = Field(default_factory=TimingConfig.from_env)

    @classmethod
    def from_env(cls) -> "RunnerConfig":
        """Create config from environment variables."""
        return cls(
            university_url=os.getenv("UNIVERSITY_URL", DEFAULT_UNIVERSITY_URL),
            abort_on_lesson_error=_env_bool("ABORT_ON_LESSON_ERROR", "true"),
            save_screenshots=_env_bool("SAVE_SCREENSHOTS"),
            screenshots_dir=os.getenv("SCREENSHOTS_DIR", "./screenshots"),
            timing=TimingConfig.from_env(),
        )


class TelegramConfig(BaseModel):
    """Telegram bot configuration."""

    bot_token: str = Field(default="", description="Token issued by @BotFather")
    chat_id: int = Field(default=0, description="The only chat allowed to command the bot")
    poll_timeout: int = Field(default=30, description="Long-polling timeout in seconds")

    @classmethod
    def from_env(cls) -> "TelegramConfig":
        """Create config from environment variables."""
        return cls(
            bot_token=os.getenv("TELEGRAM_BOT_TOKEN", ""),
            chat_id=int(os.getenv("TELEGRAM_CHAT_ID", "0") or 0),
            poll_timeout=int(os.getenv("TELEGRAM_POLL_TIMEOUT", "30")),
        )

    def validate_for_startup(self) -> None:
        """Refuse to start the bot with missing or placeholder values."""
        if not self.bot_token or self.bot_token == BOT_TOKEN_PLACEHOLDER:
            raise ConfigurationError(
                "Telegram bot token is not configured",
                details=(
                    "Set TELEGRAM_BOT_TOKEN (or telegram.bot_token in the config file) "
                    "to the token issued by @BotFather, e.g. 1234567890:ABCdefGHI..."
                ),
            )
        if self.chat_id == 0:
            raise ConfigurationError(
                "Telegram chat id is not configured",
                details="Set TELEGRAM_CHAT_ID; @userinfobot reports your chat id.",
            )


class UniversityConfig(BaseModel):
    """Saved account defaults for non-interactive front-ends."""

    username: str = Field(default="")
    password: str = Field(default="")
    default_subject: str = Field(default="")
    save_credentials: bool = Field(
        default=False,
        description="Trust the saved username/password"
    )

    @classmethod
    def from_env(cls) -> "UniversityConfig":
        """Create config from environment variables."""
        return cls(
            username=os.getenv("UNIVERSITY_USERNAME", ""),
            password=os.getenv("UNIVERSITY_PASSWORD", ""),
            default_subject=os.getenv("UNIVERSITY_DEFAULT_SUBJECT", ""),
            save_credentials=_env_bool("UNIVERSITY_SAVE_CREDENTIALS"),
        )

    @property
    def has_saved_credentials(self) -> bool:
        return self.save_credentials and bool(self.username)


class Config(BaseModel):
    """Main configuration container."""

    browser: BrowserConfig = Field(default_factory=BrowserConfig.from_env)
    runner: RunnerConfig = Field(default_factory=RunnerConfig.from_env)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig.from_env)
    university: UniversityConfig = Field(default_factory=UniversityConfig.from_env)

    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Log file path"
    )

    @classmethod
    def from_env(cls) -> "Config":
        """Create complete config from environment variables."""
        return cls(
            browser=BrowserConfig.from_env(),
            runner=RunnerConfig.from_env(),
            telegram=TelegramConfig.from_env(),
            university=UniversityConfig.from_env(),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE"),
        )

    @classmethod
    def from_file(cls, path: str) -> "Config":
        """
        Load a JSON config file on top of the environment defaults.

        Sections present in the file replace individual keys of the
        environment-derived config; everything else keeps its env value.
        """
        file_path = Path(path)
        if not file_path.exists():
            raise ConfigurationError(f"Config file not found: {path}")

        try:
            overrides = json.loads(file_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}", details=str(e))

        merged = _deep_merge(cls.from_env().model_dump(), overrides)
        return cls.model_validate(merged)

    def ensure_directories(self) -> None:
        """Ensure required directories exist."""
        if self.runner.save_screenshots:
            Path(self.runner.screenshots_dir).mkdir(parents=True, exist_ok=True)


def _deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result
