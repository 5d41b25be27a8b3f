"""CLI runner for lesson automation."""

import asyncio
import logging
import signal
import sys
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from lesson_automation_framework import __version__
from lesson_automation_framework.core.config import Config
from lesson_automation_framework.core.exceptions import (
    ConfigurationError,
    LessonAutomationError,
    TelegramApiError,
)
from lesson_automation_framework.core.logging import (
    add_file_handler,
    configure_structlog,
    quiet_noisy_loggers,
    setup_logging,
)
from lesson_automation_framework.notify.base import ConsoleNotifier
from lesson_automation_framework.notify.telegram import TelegramClient
from lesson_automation_framework.runner.controller import RunController
from lesson_automation_framework.runner.credentials import ConsoleCredentialSource
from lesson_automation_framework.runner.orchestrator import LessonOrchestrator
from lesson_automation_framework.runner.views import Credentials, RunOutcome, RunResult

console = Console()


def setup_cli_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """Set up logging for CLI."""
    level = "DEBUG" if verbose else "INFO"

    logging.basicConfig(
        level=level,
        format="%(message)s",
        force=True,
        handlers=[RichHandler(
            console=console,
            rich_tracebacks=True,
            show_time=False,
        )]
    )

    if log_file:
        add_file_handler(log_file, logging.getLevelName(level))

    configure_structlog(colors=False)
    quiet_noisy_loggers()


def load_config(config_path: Optional[str]) -> Config:
    if config_path:
        return Config.from_file(config_path)
    return Config.from_env()


def _install_stop_handler(controller: RunController) -> None:
    """Map Ctrl+C to a cooperative stop instead of killing the event loop."""
    loop = asyncio.get_running_loop()

    def _on_interrupt() -> None:
        if controller.request_stop():
            console.print("\n[yellow]Stopping after the current step... (Ctrl+C again to force)[/yellow]")
            loop.remove_signal_handler(signal.SIGINT)

    try:
        loop.add_signal_handler(signal.SIGINT, _on_interrupt)
    except NotImplementedError:
        # Windows event loops have no signal handlers; Ctrl+C aborts
        pass


async def run_console(config: Config, credentials: Optional[Credentials]) -> Optional[RunResult]:
    """Run one automation with console prompts and console notifications."""
    notifier = ConsoleNotifier(console)
    source = ConsoleCredentialSource(console)

    controller = RunController(
        lambda: LessonOrchestrator(
            notifier=notifier,
            credential_source=source,
            config=config.runner,
            browser_config=config.browser,
        ),
        stop_wait=config.runner.timing.stop_wait,
    )

    await controller.start(credentials)
    _install_stop_handler(controller)
    result = await controller.wait()

    if controller.last_error is not None:
        raise controller.last_error
    return result


def display_result(result: Optional[RunResult]) -> None:
    """Display the run summary."""
    if result is None:
        return

    table = Table(title="Run Summary", border_style="blue")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    outcome_label = {
        RunOutcome.COMPLETED: "✅ Completed",
        RunOutcome.CANCELLED: "⏹️ Stopped by operator",
        RunOutcome.FAILED: "❌ Failed",
    }[result.outcome]

    table.add_row("Outcome", outcome_label)
    table.add_row("Subject", result.subject or "-")
    table.add_row("Lessons played", str(result.lessons_played))
    table.add_row("Lessons skipped", str(result.lessons_skipped))
    if result.lessons_failed:
        table.add_row("Lessons failed", str(result.lessons_failed))

    console.print(table)


@click.group()
@click.version_option(version=__version__)
def cli():
    """🎓 Lesson Automation - watches your university video lessons for you"""
    pass


@cli.command()
@click.option("--username", "-u", default=None, help="Account username (prompted if missing)")
@click.option("--password", "-p", default=None, help="Account password (prompted if missing)")
@click.option("--subject", "-s", default=None, help="Course subject to complete")
@click.option("--headless", is_flag=True, help="Run browser in headless mode")
@click.option("--continue-on-error", is_flag=True, help="Skip a failing lesson instead of aborting")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="JSON config file")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def run(
    username: Optional[str],
    password: Optional[str],
    subject: Optional[str],
    headless: bool,
    continue_on_error: bool,
    config_path: Optional[str],
    verbose: bool,
):
    """Log in, open the course and play every unfinished lesson.

    Examples:

        lesson-automation run

        lesson-automation run -u jdoe -s "Diritto privato"

        lesson-automation run --headless --continue-on-error
    """
    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {escape(str(e))}[/red]")
        sys.exit(2)

    setup_cli_logging(verbose, config.log_file)

    if headless:
        config.browser.headless = True
    if continue_on_error:
        config.runner.abort_on_lesson_error = False
    config.ensure_directories()

    credentials = None
    if username and password:
        credentials = Credentials(username=username, password=password, subject=subject or "")
    elif subject or username or password:
        console.print("[yellow]Both --username and --password are needed; prompting instead.[/yellow]")

    console.print(Panel(
        f"[bold blue]Target:[/bold blue] {config.runner.university_url}\n"
        f"[bold blue]Subject:[/bold blue] {(credentials and credentials.subject) or 'asked later'}",
        title="🎓 Lesson Automation",
        border_style="blue"
    ))

    try:
        result = asyncio.run(run_console(config, credentials))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n[red]Error: {escape(str(e))}[/red]")
        if verbose:
            console.print_exception()
        sys.exit(1)

    display_result(result)
    if result is None or result.outcome != RunOutcome.COMPLETED:
        sys.exit(1)


@cli.command()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="JSON config file")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def bot(config_path: Optional[str], verbose: bool):
    """Start the Telegram bot and wait for operator commands."""
    from lesson_automation_framework.bot.service import TelegramBotService

    try:
        config = load_config(config_path)
        config.telegram.validate_for_startup()
    except ConfigurationError as e:
        console.print(Panel(
            f"[red]{escape(e.message)}[/red]\n\n{escape(e.details or '')}",
            title="❌ Configuration",
            border_style="red"
        ))
        sys.exit(2)

    setup_logging("DEBUG" if verbose else config.log_level, config.log_file)
    config.ensure_directories()

    logger = logging.getLogger(__name__)
    logger.info(f"Authorized chat id: {config.telegram.chat_id}")
    if config.university.has_saved_credentials:
        logger.info(f"Saved credentials for: {config.university.username}")

    async def serve():
        async with TelegramClient(config.telegram.bot_token) as client:
            service = TelegramBotService(client, config)
            try:
                await service.run_forever()
            finally:
                await service.shutdown()

    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        console.print("\n[yellow]Bot stopped[/yellow]")
    except (TelegramApiError, LessonAutomationError) as e:
        console.print(f"\n[red]Fatal error: {escape(str(e))}[/red]")
        sys.exit(1)


@cli.command()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="JSON config file")
def info(config_path: Optional[str]):
    """Show the effective configuration."""
    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {escape(str(e))}[/red]")
        sys.exit(2)

    table = Table(title="Configuration", border_style="blue")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("University URL", config.runner.university_url)
    table.add_row("Abort on lesson error", "Yes" if config.runner.abort_on_lesson_error else "No")
    table.add_row("Poll interval", f"{config.runner.timing.poll_interval:g}s")
    table.add_row("Stall timeout", f"{config.runner.timing.stall_timeout:g}s")

    table.add_row("Headless", "Yes" if config.browser.headless else "No")
    table.add_row("Browser channel", config.browser.channel or "chromium")

    table.add_row("Telegram token set", "✅ Yes" if config.telegram.bot_token else "❌ No")
    table.add_row("Telegram chat id", str(config.telegram.chat_id or "-"))
    table.add_row(
        "Saved credentials",
        config.university.username if config.university.has_saved_credentials else "No",
    )
    table.add_row("Default subject", config.university.default_subject or "-")

    console.print(table)

    try:
        config.telegram.validate_for_startup()
    except ConfigurationError as e:
        console.print(f"\n[yellow]⚠️  {e.message} - the bot command will refuse to start.[/yellow]")


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
