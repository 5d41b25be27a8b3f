"""Data models for a lesson automation run."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RunPhase(str, Enum):
    """Orchestrator state machine."""
    IDLE = "idle"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    DISMISSING_OVERLAY = "dismissing_overlay"
    SELECTING_SUBJECT = "selecting_subject"
    LOCATING_COURSE = "locating_course"
    RESETTING_LESSON_LIST = "resetting_lesson_list"
    OPENING_LESSONS = "opening_lessons"
    PLAYING_VIDEO_LESSONS = "playing_video_lessons"
    COMPLETED = "completed"
    CANCELLING = "cancelling"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunPhase.COMPLETED, RunPhase.CANCELLING, RunPhase.FAILED)


class RunOutcome(str, Enum):
    """How a run ended."""
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class Credentials(BaseModel):
    """
    Account credentials for one run.

    Only ``subject`` may change after construction, and only to fill it
    in when it was left empty.
    """

    username: str
    password: str = Field(repr=False)
    subject: str = ""

    def with_subject(self, subject: str) -> "Credentials":
        if self.subject:
            return self
        return self.model_copy(update={"subject": subject})


class RunState(BaseModel):
    """Observable state of the active run. Written only by the run itself."""

    is_running: bool = False
    phase: RunPhase = RunPhase.IDLE
    current_subject: str = ""
    current_lesson_label: str = ""
    cancellation_requested: bool = False

    def describe(self) -> str:
        if not self.is_running:
            return "Automation not active"
        return (
            f"Automation active\n"
            f"Phase: {self.phase.value}\n"
            f"Subject: {self.current_subject or '-'}\n"
            f"Current lesson: {self.current_lesson_label or '-'}"
        )


@dataclass
class LessonProgress:
    """Stall tracking for one lesson inside the completion poll."""

    last_percentage: float
    last_change: float
    last_notified: float = 0.0

    def record(self, percentage: float, now: float, epsilon: float) -> bool:
        """Register a reading; True (and the stall clock resets) if it moved past epsilon."""
        if abs(percentage - self.last_percentage) > epsilon:
            self.last_percentage = percentage
            self.last_change = now
            return True
        return False

    def stalled_for(self, now: float) -> float:
        return now - self.last_change


@dataclass
class LessonEntry:
    """One row of the video lesson list."""

    index: int
    total: int
    text: str = ""

    @property
    def label(self) -> str:
        return f"Lesson {self.index + 1}/{self.total}"

    @property
    def is_complete(self) -> bool:
        """Rows carry their completion inline; any '100' marks them done."""
        return "100" in self.text.replace(" ", "").lower()


@dataclass
class RunResult:
    """Summary handed back to the caller once a run ends."""

    outcome: RunOutcome
    subject: str = ""
    lessons_played: int = 0
    lessons_skipped: int = 0
    lessons_failed: int = 0
    error: Optional[str] = None
    finished_at: datetime = field(default_factory=datetime.now)
