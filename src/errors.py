"""Error taxonomy and last-run reporting for pipeline runs."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from daylog.pipeline.models import PipelineResult

logger = logging.getLogger(__name__)

REPORT_FILENAME = ".daylog-last-run.json"


class DaylogError(Exception):
    """Base class for errors that abort a pipeline run."""


class ConfigurationError(DaylogError):
    """Missing or invalid settings."""


class StorageError(DaylogError):
    """Directory or file I/O failed."""


class RunInProgressError(StorageError):
    """Another run holds the run lock."""


class TransientFetchError(DaylogError):
    """The activity data source failed to answer a query."""


class AccessPreconditionError(DaylogError):
    """The configured AI provider requires a credential that is missing."""


class GenerationError(DaylogError):
    """Summary or question generation failed."""


class NotificationError(DaylogError):
    """A notification channel failed to deliver."""

    def __init__(self, channel: str, message: str) -> None:
        self.channel = channel
        super().__init__(message)


def save_report(result: PipelineResult, output_dir: Path) -> Path:
    """Save the result of the last run to disk."""
    report_path = output_dir / REPORT_FILENAME
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(result.model_dump_json(indent=2), encoding="utf-8")
    return report_path


def load_report(output_dir: Path) -> PipelineResult | None:
    """Load the last run result from disk."""
    from daylog.pipeline.models import PipelineResult

    report_path = output_dir / REPORT_FILENAME
    if not report_path.exists():
        return None
    try:
        data = json.loads(report_path.read_text(encoding="utf-8"))
        return PipelineResult.model_validate(data)
    except (json.JSONDecodeError, ValueError):
        logger.warning("Corrupt report at %s", report_path)
        return None
