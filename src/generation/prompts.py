"""Prompt templates for the summary and question stages."""

from __future__ import annotations

import json

from daylog.pipeline.models import ActivityBatch

MAX_RECORD_TEXT_CHARS = 1500

DEFAULT_DAILYLOG_PROMPT = """\
You are summarizing what someone did on their computer from OCR and audio \
captured on their screen."""

DEFAULT_CUSTOM_PROMPT = """\
You help someone turn what they have been working on into good questions \
to ask an online community."""

DAILYLOG_INSTRUCTIONS = """\
Based on the following screen data, write a concise daily log entry.

Screen data:
{screen_data}

Return ONLY valid JSON with this exact structure (no markdown fences, no commentary):
{{
  "activity": "brief description of the activity",
  "category": "category of the activity, like work, email, slack, research",
  "tags": ["3-8 lowercase tags"]
}}"""

QUESTIONS_INSTRUCTIONS = """\
Based on the following screen data, write a short list of questions this \
person could ask the community about what they are working on.

Screen data:
{screen_data}

Rules:
- be specific and concise, with a casual tone
- number each question like [1], [2], ...
- each question has a [TITLE]...[/TITLE] and a [BODY]...[/BODY]
- after each question, suggest where to post it, like [r/python]
- you may use context from the screen data, but never personal data
- return only the list"""

WELCOME_SUBJECT = "daily questions"
QUESTIONS_SUBJECT = "your questions"
INBOX_TITLE = "questions"

WELCOME_TEMPLATE = """\
Welcome to the daily questions pipeline!

This pipeline sends you a list of discussion questions based on your screen activity.
{schedule}
"""


def render_welcome(schedule: str) -> str:
    return WELCOME_TEMPLATE.format(schedule=schedule)


def _compact_record(record: dict[str, object]) -> dict[str, object]:
    """Keep the fields a model needs from a Screenpipe record."""
    content = record.get("content")
    if not isinstance(content, dict):
        return record
    compact: dict[str, object] = {"type": record.get("type", "")}
    for key in ("timestamp", "app_name", "window_name", "browser_url", "speaker"):
        if content.get(key):
            compact[key] = content[key]
    text = content.get("text") or content.get("transcription") or ""
    if isinstance(text, str) and len(text) > MAX_RECORD_TEXT_CHARS:
        text = text[:MAX_RECORD_TEXT_CHARS] + "..."
    compact["text"] = text
    return compact


def render_screen_data(batch: ActivityBatch) -> str:
    return json.dumps([_compact_record(r) for r in batch], ensure_ascii=False, default=str)


def build_dailylog_prompt(batch: ActivityBatch, template: str) -> str:
    preamble = template.strip() or DEFAULT_DAILYLOG_PROMPT
    body = DAILYLOG_INSTRUCTIONS.format(screen_data=render_screen_data(batch))
    return f"{preamble}\n\n{body}"


def build_questions_prompt(batch: ActivityBatch, template: str) -> str:
    preamble = template.strip() or DEFAULT_CUSTOM_PROMPT
    body = QUESTIONS_INSTRUCTIONS.format(screen_data=render_screen_data(batch))
    return f"{preamble}\n\n{body}"
