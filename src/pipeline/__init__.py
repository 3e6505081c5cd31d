"""Daily log pipeline data models."""

from daylog.pipeline.models import (
    ActivityBatch,
    DailyLogEntry,
    NotificationResult,
    NotificationStatus,
    PipelineResult,
    PipelineStatus,
    RunState,
    RunWindow,
)

__all__ = [
    "ActivityBatch",
    "DailyLogEntry",
    "NotificationResult",
    "NotificationStatus",
    "PipelineResult",
    "PipelineStatus",
    "RunState",
    "RunWindow",
]
