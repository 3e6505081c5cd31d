"""Summary and question generation from an activity batch."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from pydantic import ValidationError

from daylog.config import AISectionConfig
from daylog.errors import GenerationError
from daylog.generation.llm import LLMClient
from daylog.generation.prompts import build_dailylog_prompt, build_questions_prompt
from daylog.pipeline.models import ActivityBatch, DailyLogEntry

logger = logging.getLogger(__name__)


def _strip_fences(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith("```"):
        raw = raw.split("\n", 1)[1] if "\n" in raw else raw[3:]
    if raw.endswith("```"):
        raw = raw[:-3].rstrip()
    return raw


class SummaryGenerator:
    """Turns an activity batch into a DailyLogEntry."""

    def __init__(self, client: LLMClient | None = None) -> None:
        self._client = client or LLMClient()

    def generate(
        self, batch: ActivityBatch, prompt: str, params: AISectionConfig
    ) -> DailyLogEntry:
        """Generate the daily log entry for ``batch``.

        Raises:
            GenerationError: If the model call fails or returns invalid JSON.
        """
        raw = self._client.complete(build_dailylog_prompt(batch, prompt), params)
        try:
            data = json.loads(_strip_fences(raw))
        except json.JSONDecodeError as e:
            raise GenerationError(f"Daily log generation returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise GenerationError("Daily log generation did not return a JSON object")

        data.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        try:
            return DailyLogEntry.model_validate(data)
        except ValidationError as e:
            raise GenerationError(f"Daily log entry is missing fields: {e}") from e


class QuestionGenerator:
    """Turns an activity batch into a list of discussion questions."""

    def __init__(self, client: LLMClient | None = None) -> None:
        self._client = client or LLMClient()

    def generate(self, batch: ActivityBatch, prompt: str, params: AISectionConfig) -> str:
        """Return the questions as text, or ``""`` when the model produced none."""
        questions = self._client.complete(build_questions_prompt(batch, prompt), params)
        logger.debug("Generated %d chars of questions", len(questions))
        return questions
