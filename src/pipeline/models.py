"""Data models shared by the pipeline stages."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

ActivityBatch = list[dict[str, object]]


class RunWindow(BaseModel):
    """Time range and filters for one activity query."""

    model_config = ConfigDict(frozen=True)

    start_time: datetime
    end_time: datetime
    window_name: str = ""
    limit: int = 100
    content_type: str = "ocr"

    @classmethod
    def ending_at(
        cls,
        now: datetime,
        interval_seconds: int,
        *,
        window_name: str = "",
        limit: int = 100,
        content_type: str = "ocr",
    ) -> RunWindow:
        """Build the window ``[now - interval, now]``."""
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        return cls(
            start_time=now - timedelta(seconds=interval_seconds),
            end_time=now,
            window_name=window_name,
            limit=limit,
            content_type=content_type,
        )

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time


class DailyLogEntry(BaseModel):
    """Structured output of the summary stage. Written once per run."""

    model_config = ConfigDict(extra="allow")

    category: str
    activity: str = ""
    tags: list[str] = Field(default_factory=list)
    timestamp: str = ""


class RunState(BaseModel):
    """One-time action flags shared across runs."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    welcome_message_sent: bool = Field(default=False, alias="welcomeMessageSent")
    welcome_attempts: int = Field(default=0, alias="welcomeAttempts")
    last_welcome_error: str = Field(default="", alias="lastWelcomeError")

    def to_json(self) -> str:
        return self.model_dump_json(indent=2, by_alias=True)


class NotificationStatus(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


class NotificationResult(BaseModel):
    """Outcome of one channel's delivery attempt."""

    channel: str
    status: NotificationStatus
    reason: str = ""

    @classmethod
    def sent(cls, channel: str) -> NotificationResult:
        return cls(channel=channel, status=NotificationStatus.SENT)

    @classmethod
    def skipped(cls, channel: str, reason: str) -> NotificationResult:
        return cls(channel=channel, status=NotificationStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, channel: str, error: str) -> NotificationResult:
        return cls(channel=channel, status=NotificationStatus.FAILED, reason=error)


class PipelineStatus(str, Enum):
    SUCCESS = "success"
    EMPTY_WINDOW = "empty-window"
    ERROR = "error"


SUCCESS_MESSAGE = "pipe executed successfully"
EMPTY_WINDOW_MESSAGE = "query is empty, please wait and try again"


class PipelineResult(BaseModel):
    """Terminal outcome of a single run."""

    status: PipelineStatus
    message: str = ""
    summary: DailyLogEntry | None = None
    questions: str | None = None
    notifications: list[NotificationResult] = Field(default_factory=list)
    error: str = ""
    error_type: str = ""
    log_path: str = ""
    state: RunState = Field(default_factory=RunState)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def ok(self) -> bool:
        return self.status is not PipelineStatus.ERROR

    @property
    def http_status(self) -> int:
        return 200 if self.ok else 500

    def to_response(self) -> dict[str, object]:
        """Build the JSON body returned by the HTTP trigger."""
        if not self.ok:
            return {"error": self.error}
        return {"message": self.message, "suggestedQuestions": self.questions}

    def summary_text(self) -> str:
        """Human-readable summary of the run."""
        duration = ""
        if self.finished_at and self.started_at:
            secs = (self.finished_at - self.started_at).total_seconds()
            duration = f" in {secs:.0f}s" if secs < 60 else f" in {secs / 60:.1f}m"

        lines = [f"Run {self.status.value}{duration}"]
        if self.summary is not None:
            lines.append(f"Category: {self.summary.category}")
        if self.log_path:
            lines.append(f"Log: {self.log_path}")
        for n in self.notifications:
            suffix = f" ({n.reason})" if n.reason else ""
            lines.append(f"  {n.channel}: {n.status.value}{suffix}")
        if self.error:
            lines.append(f"Error [{self.error_type}]: {self.error}")
        return "\n".join(lines)
