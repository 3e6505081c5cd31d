"""Run state tracking for one-time actions.

Persists which one-time actions (the welcome email) have completed so that
repeated runs do not repeat them. The run lock in this module keeps two
overlapping triggers from running the pipeline at the same time.
"""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from daylog.errors import RunInProgressError, StorageError
from daylog.logstore import atomic_write
from daylog.pipeline.models import RunState

logger = logging.getLogger(__name__)

STATE_FILENAME = ".run-state.json"
LOCK_FILENAME = ".run.lock"


class StateStore(Protocol):
    def load(self) -> RunState: ...

    def save(self, state: RunState) -> None: ...


class RunStateStore:
    """RunState persisted as JSON under the storage directory."""

    def __init__(self, root: Path) -> None:
        self._path = root / STATE_FILENAME

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> RunState:
        """Load run state from disk.

        Returns a fresh RunState if the file doesn't exist or is corrupt.

        Raises:
            StorageError: If the file exists but cannot be read.
        """
        if not self._path.exists():
            return RunState()
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"failed to read run state {self._path}: {exc}") from exc
        try:
            return RunState.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError):
            logger.warning("Corrupt run state at %s, starting fresh", self._path)
            return RunState()

    def save(self, state: RunState) -> None:
        """Save run state to disk.

        Raises:
            StorageError: If the file cannot be written.
        """
        try:
            atomic_write(self._path, state.to_json())
        except OSError as exc:
            raise StorageError(f"failed to write run state {self._path}: {exc}") from exc


class InMemoryStateStore:
    """RunState held in memory, for tests and embedding without a filesystem."""

    def __init__(self, state: RunState | None = None) -> None:
        self.state = state or RunState()
        self.saves = 0

    def load(self) -> RunState:
        return self.state.model_copy()

    def save(self, state: RunState) -> None:
        self.state = state.model_copy()
        self.saves += 1


class RunLock:
    """Exclusive lock file guarding a single active run.

    A lock older than ``stale_seconds`` is treated as left behind by a
    crashed run and reclaimed.
    """

    def __init__(self, root: Path, stale_seconds: int = 3600) -> None:
        self._path = root / LOCK_FILENAME
        self._stale_seconds = stale_seconds
        self._held = False

    @property
    def path(self) -> Path:
        return self._path

    def acquire(self) -> None:
        """Take the lock.

        Raises:
            RunInProgressError: If a live lock is held by another run.
            StorageError: If the lock file cannot be created.
        """
        self._reclaim_stale()
        try:
            fd = os.open(self._path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError as exc:
            raise RunInProgressError(
                f"another run is in progress (lock at {self._path})"
            ) from exc
        except OSError as exc:
            raise StorageError(f"failed to create run lock {self._path}: {exc}") from exc
        with os.fdopen(fd, "w") as f:
            f.write(str(os.getpid()))
        self._held = True

    def release(self) -> None:
        if not self._held:
            return
        try:
            self._path.unlink()
        except FileNotFoundError:
            pass
        self._held = False

    def _reclaim_stale(self) -> None:
        try:
            age = time.time() - self._path.stat().st_mtime
        except FileNotFoundError:
            return
        if age > self._stale_seconds:
            logger.warning("Reclaiming stale run lock %s (age %.0fs)", self._path, age)
            try:
                self._path.unlink()
            except FileNotFoundError:
                pass

    def __enter__(self) -> RunLock:
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()
