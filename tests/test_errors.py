"""Tests for src/errors.py: error taxonomy and the last-run report."""

from datetime import datetime, timedelta, timezone

import pytest
from daylog.errors import (
    REPORT_FILENAME,
    AccessPreconditionError,
    ConfigurationError,
    DaylogError,
    GenerationError,
    NotificationError,
    RunInProgressError,
    StorageError,
    TransientFetchError,
    load_report,
    save_report,
)
from daylog.pipeline.models import (
    DailyLogEntry,
    NotificationResult,
    PipelineResult,
    PipelineStatus,
)


class TestErrorTaxonomy:
    @pytest.mark.parametrize(
        "cls",
        [
            ConfigurationError,
            StorageError,
            RunInProgressError,
            TransientFetchError,
            AccessPreconditionError,
            GenerationError,
        ],
    )
    def test_all_errors_are_daylog_errors(self, cls):
        assert issubclass(cls, DaylogError)

    def test_notification_error_carries_channel(self):
        err = NotificationError("inbox", "connection refused")
        assert err.channel == "inbox"
        assert str(err) == "connection refused"
        assert isinstance(err, DaylogError)


class TestReport:
    def _result(self) -> PipelineResult:
        start = datetime(2026, 3, 14, 9, 0, tzinfo=timezone.utc)
        return PipelineResult(
            status=PipelineStatus.SUCCESS,
            message="pipe executed successfully",
            summary=DailyLogEntry(category="work", activity="wrote tests"),
            questions="[1] [TITLE]t[/TITLE]",
            notifications=[NotificationResult.sent("inbox")],
            started_at=start,
            finished_at=start + timedelta(seconds=12),
        )

    def test_save_and_load(self, tmp_path):
        path = save_report(self._result(), tmp_path)
        assert path == tmp_path / REPORT_FILENAME

        loaded = load_report(tmp_path)
        assert loaded is not None
        assert loaded.status is PipelineStatus.SUCCESS
        assert loaded.summary.category == "work"
        assert loaded.notifications[0].channel == "inbox"

    def test_load_missing(self, tmp_path):
        assert load_report(tmp_path) is None

    def test_load_corrupt(self, tmp_path):
        (tmp_path / REPORT_FILENAME).write_text("not json")
        assert load_report(tmp_path) is None

    def test_save_creates_directory(self, tmp_path):
        save_report(self._result(), tmp_path / "nested")
        assert (tmp_path / "nested" / REPORT_FILENAME).exists()
