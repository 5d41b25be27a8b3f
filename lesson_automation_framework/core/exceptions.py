"""Custom exceptions for the lesson automation framework."""

from typing import Optional


class LessonAutomationError(Exception):
    """Base exception for all lesson automation errors."""

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        recoverable: bool = True
    ):
        self.message = message
        self.details = details
        self.recoverable = recoverable
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}\nDetails: {self.details}"
        return self.message


class ConfigurationError(LessonAutomationError):
    """Missing or invalid configuration; startup must halt."""

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message, details, recoverable=False)


class BrowserError(LessonAutomationError):
    """Errors related to browser operations."""
    pass


class NavigationError(BrowserError):
    """Errors during page navigation."""
    pass


class ElementNotFoundError(BrowserError):
    """Element could not be found in the DOM."""

    def __init__(
        self,
        selector: str,
        message: Optional[str] = None,
        **kwargs
    ):
        self.selector = selector
        msg = message or f"Element not found: {selector}"
        super().__init__(msg, **kwargs)


class SessionError(LessonAutomationError):
    """Errors related to session management."""
    pass


class SessionExpiredError(SessionError):
    """Browser session has expired or been closed."""

    def __init__(self, session_id: str, **kwargs):
        self.session_id = session_id
        super().__init__(
            f"Session '{session_id}' has expired or been closed",
            recoverable=False,
            **kwargs
        )


class AuthenticationError(LessonAutomationError):
    """Login form could not be filled or submitted."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, recoverable=False, **kwargs)


class CourseNotFoundError(LessonAutomationError):
    """No course card matched the subject under any filter."""

    def __init__(self, subject: str, **kwargs):
        self.subject = subject
        super().__init__(
            f"Course '{subject}' not found",
            recoverable=False,
            **kwargs
        )


class LessonError(LessonAutomationError):
    """Errors while playing a single lesson."""

    def __init__(self, lesson_label: str, message: str, **kwargs):
        self.lesson_label = lesson_label
        super().__init__(message, **kwargs)


class LessonStalledError(LessonError):
    """Video progress did not advance within the stall timeout."""

    def __init__(self, lesson_label: str, percentage: float, timeout: float, **kwargs):
        self.percentage = percentage
        self.timeout = timeout
        minutes = timeout / 60
        super().__init__(
            lesson_label,
            f"TIMEOUT: no video progress for {minutes:g} minutes (stuck at {percentage:g}%)",
            recoverable=False,
            **kwargs
        )


class RunCancelledError(LessonAutomationError):
    """The operator asked the run to stop. Not a failure."""

    def __init__(self, message: str = "Run stopped by operator"):
        super().__init__(message, recoverable=False)


class RunAlreadyActiveError(LessonAutomationError):
    """A run was started while another one is still active."""

    def __init__(self, message: str = "An automation run is already active"):
        super().__init__(message, recoverable=True)


class NotificationError(LessonAutomationError):
    """Errors delivering operator notifications."""
    pass


class TelegramApiError(NotificationError):
    """Telegram Bot API returned an error or could not be reached."""

    def __init__(
        self,
        message: str,
        error_code: Optional[int] = None,
        **kwargs
    ):
        self.error_code = error_code
        super().__init__(message, **kwargs)

    @property
    def is_unauthorized(self) -> bool:
        return self.error_code == 401 or "Unauthorized" in self.message

    @property
    def is_not_found(self) -> bool:
        return self.error_code == 404 and not self.is_chat_not_found

    @property
    def is_chat_not_found(self) -> bool:
        return "chat not found" in self.message.lower()

    @property
    def is_markup_error(self) -> bool:
        return "can't parse entities" in self.message.lower()


class CommandError(LessonAutomationError):
    """An operator command was malformed; the message is shown to the operator."""
    pass
