"""Pipeline orchestration for the daily log run.

Pipeline Flow:
    1. CONFIG: Read the [ai] and [pipeline] settings
    2. STORAGE: Ensure the logs directory exists and load the run state
    3. WELCOME: Send the one-time welcome email if it hasn't been sent
    4. FETCH: Query the activity window, retrying while it is empty or failing
    5. ACCESS: Check the provider's credential precondition
    6. SUMMARY: Generate the daily log entry and persist it
    7. QUESTIONS: Generate discussion questions from the same batch
    8. NOTIFY: Fan the questions out to email and inbox
    9. RESULT: Return the aggregate PipelineResult

Configuration, storage, fetch, access and generation failures abort the run.
An empty activity window is a normal outcome, not an error. Whether a failed
notification channel aborts the run is set by ``channel_failure_policy``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from daylog.channels import InboxSender, MailSender
from daylog.config import AISectionConfig, ChannelFailurePolicy, DaylogConfig
from daylog.errors import (
    AccessPreconditionError,
    DaylogError,
    GenerationError,
    NotificationError,
    TransientFetchError,
    save_report,
)
from daylog.generation.prompts import (
    INBOX_TITLE,
    QUESTIONS_SUBJECT,
    WELCOME_SUBJECT,
    render_welcome,
)
from daylog.logstore import LogStore
from daylog.pipeline.models import (
    EMPTY_WINDOW_MESSAGE,
    SUCCESS_MESSAGE,
    ActivityBatch,
    DailyLogEntry,
    NotificationResult,
    PipelineResult,
    PipelineStatus,
    RunState,
    RunWindow,
)
from daylog.retry import DEFAULT_DELAY_MS, DEFAULT_MAX_ATTEMPTS, retry
from daylog.state import RunLock, RunStateStore, StateStore

logger = logging.getLogger(__name__)


class ActivitySource(Protocol):
    def query(self, window: RunWindow) -> dict[str, object]: ...


class SummaryProducer(Protocol):
    def generate(
        self, batch: ActivityBatch, prompt: str, params: AISectionConfig
    ) -> DailyLogEntry: ...


class QuestionProducer(Protocol):
    def generate(self, batch: ActivityBatch, prompt: str, params: AISectionConfig) -> str: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Run:
    """Mutable bookkeeping for one run."""

    started_at: datetime
    state: RunState = field(default_factory=RunState)
    notifications: list[NotificationResult] = field(default_factory=list)
    log_path: str = ""


class PipelineOrchestrator:
    """Sequences the pipeline stages and owns the failure policy."""

    def __init__(
        self,
        config: DaylogConfig,
        *,
        source: ActivitySource,
        summary_generator: SummaryProducer,
        question_generator: QuestionProducer,
        email_channel: MailSender,
        inbox_channel: InboxSender,
        state_store: StateStore,
        log_store: LogStore,
        run_lock: RunLock | None = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
        fetch_attempts: int = DEFAULT_MAX_ATTEMPTS,
        fetch_delay_ms: int = DEFAULT_DELAY_MS,
    ) -> None:
        self._config = config
        self._source = source
        self._summary_generator = summary_generator
        self._question_generator = question_generator
        self._email = email_channel
        self._inbox = inbox_channel
        self._state_store = state_store
        self._log_store = log_store
        self._run_lock = run_lock
        self._clock = clock
        self._sleep = sleep
        self._fetch_attempts = fetch_attempts
        self._fetch_delay_ms = fetch_delay_ms

    @classmethod
    def from_config(cls, config: DaylogConfig) -> PipelineOrchestrator:
        """Wire the production collaborators from ``config``."""
        from daylog.channels import EmailChannel, InboxChannel
        from daylog.generation import LLMClient, QuestionGenerator, SummaryGenerator
        from daylog.sources import ScreenpipeClient

        root = config.storage.path
        client = LLMClient()
        run_lock = None
        if config.pipeline.use_run_lock:
            run_lock = RunLock(root, stale_seconds=config.pipeline.lock_stale_seconds)

        return cls(
            config,
            source=ScreenpipeClient(config.screenpipe),
            summary_generator=SummaryGenerator(client),
            question_generator=QuestionGenerator(client),
            email_channel=EmailChannel(config.smtp),
            inbox_channel=InboxChannel(config.screenpipe),
            state_store=RunStateStore(root),
            log_store=LogStore(root),
            run_lock=run_lock,
        )

    def run(self, *, user_triggered: bool = False, state: RunState | None = None) -> PipelineResult:
        """Execute one pipeline run.

        Args:
            user_triggered: True when an explicit user action started the run.
                Suppresses the email channel, since the user sees the result.
            state: Run state to start from. Loaded from the state store if None.

        Returns:
            The run's PipelineResult. Errors are reported in the result, never raised.
        """
        run = _Run(started_at=self._clock(), state=state if state is not None else RunState())
        logger.info("Starting daily log pipeline (user_triggered=%s)", user_triggered)

        try:
            self._log_store.ensure()
            if self._run_lock is not None:
                self._run_lock.acquire()
        except DaylogError as exc:
            return self._error(run, exc)

        try:
            return self._run(run, user_triggered=user_triggered, load_state=state is None)
        except DaylogError as exc:
            return self._error(run, exc)
        finally:
            if self._run_lock is not None:
                self._run_lock.release()

    def _run(self, run: _Run, *, user_triggered: bool, load_state: bool) -> PipelineResult:
        if load_state:
            run.state = self._state_store.load()

        self._send_welcome(run)

        batch = self._fetch(self._window(run.started_at))
        if not batch:
            logger.info("Activity window is empty, nothing to summarize")
            return self._finish(run, PipelineStatus.EMPTY_WINDOW, EMPTY_WINDOW_MESSAGE)

        logger.info("Fetched %d activity record(s)", len(batch))
        self._check_access()

        summary = self._generate_summary(batch)
        run.log_path = str(self._log_store.save(summary, self._clock()))

        questions = self._generate_questions(batch)
        self._notify(run, questions, user_triggered=user_triggered)

        return self._finish(
            run,
            PipelineStatus.SUCCESS,
            SUCCESS_MESSAGE,
            summary=summary,
            questions=questions,
        )

    def _send_welcome(self, run: _Run) -> None:
        settings = self._config.pipeline
        if not settings.email_enabled or run.state.welcome_message_sent:
            return

        cap = settings.max_welcome_attempts
        if cap and run.state.welcome_attempts >= cap:
            logger.warning(
                "Welcome email failed %d time(s), not retrying until the state is reset",
                run.state.welcome_attempts,
            )
            return

        logger.info("Sending welcome email")
        body = render_welcome(settings.schedule_description())
        try:
            self._email.send(
                settings.email_address, settings.email_password, WELCOME_SUBJECT, body
            )
        except Exception as exc:
            run.state = run.state.model_copy(
                update={
                    "welcome_message_sent": False,
                    "welcome_attempts": run.state.welcome_attempts + 1,
                    "last_welcome_error": str(exc),
                }
            )
            self._state_store.save(run.state)
            raise NotificationError("email", f"Error in sending welcome email: {exc}") from exc

        run.state = run.state.model_copy(
            update={
                "welcome_message_sent": True,
                "welcome_attempts": 0,
                "last_welcome_error": "",
            }
        )
        self._state_store.save(run.state)
        logger.info("Welcome email sent")

    def _window(self, now: datetime) -> RunWindow:
        settings = self._config.pipeline
        return RunWindow.ending_at(
            now,
            settings.interval_seconds,
            window_name=settings.window_name,
            limit=settings.page_size,
            content_type=settings.effective_content_type,
        )

    def _fetch(self, window: RunWindow) -> ActivityBatch:
        logger.info(
            "Querying activity from %s to %s (content_type=%s)",
            window.start_time.isoformat(),
            window.end_time.isoformat(),
            window.content_type,
        )

        def query() -> ActivityBatch:
            response = self._source.query(window)
            data = response.get("data") if isinstance(response, dict) else None
            return list(data) if data else []

        try:
            return retry(query, self._fetch_attempts, self._fetch_delay_ms, sleep=self._sleep)
        except DaylogError:
            raise
        except Exception as exc:
            raise TransientFetchError(f"activity query failed: {exc}") from exc

    def _check_access(self) -> None:
        ai = self._config.ai
        if ai.provider.requires_user_token and not ai.user_token:
            raise AccessPreconditionError(
                f"seems like you don't have {ai.provider.value} access"
            )

    def _generate_summary(self, batch: ActivityBatch) -> DailyLogEntry:
        logger.info("Generating daily log entry")
        try:
            summary = self._summary_generator.generate(
                batch, self._config.pipeline.dailylog_prompt, self._config.ai
            )
        except DaylogError:
            raise
        except Exception as exc:
            raise GenerationError(f"daily log generation failed: {exc}") from exc
        if summary is None:
            raise GenerationError("no log entry to save")
        return summary

    def _generate_questions(self, batch: ActivityBatch) -> str:
        logger.info("Generating questions")
        try:
            questions = self._question_generator.generate(
                batch, self._config.pipeline.custom_prompt, self._config.ai
            )
        except DaylogError:
            raise
        except Exception as exc:
            raise GenerationError(f"question generation failed: {exc}") from exc
        return questions or ""

    def _notify(self, run: _Run, questions: str, *, user_triggered: bool) -> None:
        settings = self._config.pipeline

        if not settings.email_enabled:
            run.notifications.append(NotificationResult.skipped("email", "email disabled"))
        elif user_triggered:
            run.notifications.append(NotificationResult.skipped("email", "user triggered"))
        elif not questions:
            run.notifications.append(NotificationResult.skipped("email", "no questions"))
        else:
            self._deliver(
                run,
                "email",
                lambda: self._email.send(
                    settings.email_address,
                    settings.email_password,
                    QUESTIONS_SUBJECT,
                    questions,
                ),
            )

        if not questions:
            logger.warning("No questions generated, skipping inbox notification")
            run.notifications.append(NotificationResult.skipped("inbox", "no questions"))
        else:
            self._deliver(
                run,
                "inbox",
                lambda: self._inbox.send({"title": INBOX_TITLE, "body": questions}),
            )

    def _deliver(self, run: _Run, channel: str, send: Callable[[], None]) -> None:
        logger.info("Sending %s notification", channel)
        try:
            send()
        except Exception as exc:
            error = exc if isinstance(exc, NotificationError) else NotificationError(channel, str(exc))
            run.notifications.append(NotificationResult.failed(channel, str(error)))
            logger.error("Failed to send %s notification: %s", channel, error)
            if self._config.pipeline.channel_failure_policy is ChannelFailurePolicy.FATAL:
                if error is exc:
                    raise
                raise error from exc
            return
        run.notifications.append(NotificationResult.sent(channel))

    def _finish(
        self,
        run: _Run,
        status: PipelineStatus,
        message: str,
        *,
        summary: DailyLogEntry | None = None,
        questions: str | None = None,
    ) -> PipelineResult:
        logger.info("Pipeline finished: %s", status.value)
        return PipelineResult(
            status=status,
            message=message,
            summary=summary,
            questions=questions,
            notifications=run.notifications,
            log_path=run.log_path,
            state=run.state,
            started_at=run.started_at,
            finished_at=self._clock(),
        )

    def _error(self, run: _Run, exc: DaylogError) -> PipelineResult:
        logger.error("Pipeline failed (%s): %s", type(exc).__name__, exc)
        return PipelineResult(
            status=PipelineStatus.ERROR,
            error=str(exc),
            error_type=type(exc).__name__,
            notifications=run.notifications,
            log_path=run.log_path,
            state=run.state,
            started_at=run.started_at,
            finished_at=self._clock(),
        )


def run_pipeline(config: DaylogConfig, *, user_triggered: bool = False) -> PipelineResult:
    """Run once with production collaborators and record the last-run report."""
    result = PipelineOrchestrator.from_config(config).run(user_triggered=user_triggered)
    report_dir: Path = config.storage.path
    try:
        save_report(result, report_dir)
    except OSError as exc:
        logger.warning("Failed to save run report to %s: %s", report_dir, exc)
    return result
