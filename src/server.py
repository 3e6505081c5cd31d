"""HTTP trigger for the pipeline.

``GET /api/pipeline`` runs the pipeline once. Pass ``fromButton=true`` when
a person pressed a button to start the run; email delivery is skipped then.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse

from daylog import __version__
from daylog.config import DaylogConfig, load_config
from daylog.logstore import LogStore
from daylog.pipeline.models import PipelineResult
from daylog.pipeline.orchestrator import run_pipeline

logger = logging.getLogger(__name__)

Runner = Callable[[DaylogConfig, bool], PipelineResult]


def _default_runner(config: DaylogConfig, user_triggered: bool) -> PipelineResult:
    return run_pipeline(config, user_triggered=user_triggered)


def create_app(
    config: DaylogConfig | None = None,
    runner: Runner = _default_runner,
) -> FastAPI:
    """Build the FastAPI app bound to ``config``."""
    settings = config or load_config()
    app = FastAPI(
        title="daylog",
        description="Daily activity log and discussion questions from screen activity.",
        version=__version__,
    )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/pipeline")
    def trigger_pipeline(
        from_button: bool = Query(False, alias="fromButton"),
    ) -> JSONResponse:
        try:
            result = runner(settings, from_button)
        except Exception as exc:
            logger.exception("Error in pipeline handler")
            return JSONResponse({"error": str(exc)}, status_code=400)
        return JSONResponse(result.to_response(), status_code=result.http_status)

    @app.get("/api/logs")
    def recent_logs(limit: int = Query(10, ge=1, le=100)) -> list[dict[str, Any]]:
        store = LogStore(settings.storage.path)
        return [
            {"file": path.name, **entry.model_dump()}
            for path, entry in store.recent(limit)
        ]

    return app
