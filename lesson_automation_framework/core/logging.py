"""Logging configuration for the lesson automation framework."""

import logging
import sys
from pathlib import Path
from typing import Optional
import structlog

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    json_logs: bool = False
) -> logging.Logger:
    """
    Set up logging configuration for the framework.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for logging
        json_logs: Whether to output JSON formatted logs

    Returns:
        Configured logger instance
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    configure_structlog(json_logs=json_logs)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)

    if not json_logs:
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    root_logger.addHandler(console_handler)

    if log_file:
        add_file_handler(log_file, numeric_level)

    quiet_noisy_loggers()

    logger = logging.getLogger("lesson_automation")
    logger.setLevel(numeric_level)

    return logger


def configure_structlog(json_logs: bool = False, colors: bool = True) -> None:
    """Render structlog events and hand them to the stdlib logging tree."""
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso" if json_logs else DATE_FORMAT),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=colors))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def add_file_handler(log_file: str, level: int = logging.INFO) -> None:
    """Mirror the root logger into a file."""
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logging.getLogger().addHandler(file_handler)


def quiet_noisy_loggers() -> None:
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("playwright").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str = "lesson_automation") -> structlog.stdlib.BoundLogger:
    """
    Get a structlog logger instance.

    Args:
        name: Logger name (usually module name)

    Returns:
        Bound logger instance
    """
    return structlog.get_logger(name)


def log_phase(phase: str, subject: Optional[str] = None, error: Optional[str] = None) -> None:
    """
    Log an orchestrator phase transition.

    Args:
        phase: Name of the phase being entered
        subject: Subject of the current run, if known
        error: Error message when the phase is a failure state
    """
    logger = get_logger("lesson_automation.runner")

    if error:
        logger.error(f"Run phase: {phase}", phase=phase, subject=subject, error=error)
    else:
        logger.info(f"Run phase: {phase}", phase=phase, subject=subject)


def log_lesson_progress(lesson: str, percentage: float, stalled_for: float = 0.0) -> None:
    """Log one completion poll reading."""
    logger = get_logger("lesson_automation.runner")
    logger.info(
        f"Lesson progress: {percentage}%",
        lesson=lesson,
        percentage=percentage,
        stalled_for_s=round(stalled_for, 1),
    )
