"""Append-only store of daily log entries, one JSON file per run.

Filenames embed a second-resolution UTC timestamp and the entry's
category, both stripped of characters that are unsafe in filenames.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from daylog.errors import StorageError
from daylog.pipeline.models import DailyLogEntry

logger = logging.getLogger(__name__)

LOGS_DIRNAME = "logs"
LOG_SUFFIX = ".json"

_UNSAFE_CHARS = re.compile(r"[/\\?%*:|\"<>'\x00-\x1f\x7f]")
MAX_SAME_NAME = 100


def atomic_write(path: Path, content: str, *, overwrite: bool = True) -> None:
    """Write ``content`` to ``path`` via a temp file and ``os.replace``.

    Readers see either the previous file or the full new content. The temp
    file is removed if anything fails. With ``overwrite=False`` the temp file
    is hard-linked into place instead, and an existing ``path`` raises
    FileExistsError.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        if overwrite:
            os.replace(tmp_name, path)
        else:
            os.link(tmp_name, path)
            os.unlink(tmp_name)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def sanitize(value: str) -> str:
    """Replace filesystem-unsafe characters with ``-``."""
    return _UNSAFE_CHARS.sub("-", value)


def log_filename(entry: DailyLogEntry, now: datetime) -> str:
    """Derive the storage filename for ``entry`` written at ``now``."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    stamp = now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
    category = sanitize(entry.category.strip()) or "uncategorized"
    return f"{stamp}-{category}{LOG_SUFFIX}"


class LogStore:
    """Daily log entries under ``{root}/logs``."""

    def __init__(self, root: Path) -> None:
        self._dir = root / LOGS_DIRNAME

    @property
    def directory(self) -> Path:
        return self._dir

    def ensure(self) -> None:
        """Create the logs directory. An existing directory is fine."""
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"failed to create logs directory {self._dir}: {exc}") from exc

    def save(self, entry: DailyLogEntry, now: datetime) -> Path:
        """Persist ``entry`` atomically and return its path.

        An existing entry is never overwritten: a second entry with the same
        timestamp and category is saved as ``...-2.json``, ``...-3.json``.

        Raises:
            StorageError: If the file cannot be written.
        """
        stem = log_filename(entry, now)[: -len(LOG_SUFFIX)]
        content = entry.model_dump_json(indent=2)
        for n in range(1, MAX_SAME_NAME + 1):
            name = stem if n == 1 else f"{stem}-{n}"
            path = self._dir / f"{name}{LOG_SUFFIX}"
            try:
                atomic_write(path, content, overwrite=False)
            except FileExistsError:
                continue
            except (OSError, ValueError) as exc:
                raise StorageError(f"failed to write log file: {exc}") from exc
            logger.info("Saved log entry (category=%s) to %s", entry.category, path.name)
            return path
        raise StorageError(f"failed to write log file: {MAX_SAME_NAME} entries named {stem}")

    def recent(self, limit: int = 10) -> list[tuple[Path, DailyLogEntry]]:
        """Return up to ``limit`` entries, newest first. Corrupt files are skipped."""
        if not self._dir.exists():
            return []
        paths = sorted(self._dir.glob(f"*{LOG_SUFFIX}"), key=lambda p: p.name, reverse=True)
        entries: list[tuple[Path, DailyLogEntry]] = []
        for path in paths:
            if len(entries) >= limit:
                break
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                entries.append((path, DailyLogEntry.model_validate(data)))
            except (OSError, json.JSONDecodeError, ValidationError):
                logger.warning("Skipping corrupt log entry %s", path)
        return entries
