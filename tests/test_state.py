"""Tests for src/state.py: run state persistence and the run lock."""

import json
import os
import time
from unittest.mock import patch

import pytest
from daylog.errors import RunInProgressError, StorageError
from daylog.pipeline.models import RunState
from daylog.state import (
    LOCK_FILENAME,
    STATE_FILENAME,
    InMemoryStateStore,
    RunLock,
    RunStateStore,
)


class TestRunStateStore:
    def test_missing_file_gives_fresh_state(self, tmp_path):
        state = RunStateStore(tmp_path).load()
        assert state.welcome_message_sent is False
        assert state.welcome_attempts == 0

    def test_save_and_load(self, tmp_path):
        store = RunStateStore(tmp_path)
        store.save(RunState(welcome_message_sent=True))
        assert store.load().welcome_message_sent is True

    def test_file_uses_camel_case_keys(self, tmp_path):
        store = RunStateStore(tmp_path)
        store.save(RunState(welcome_message_sent=True, welcome_attempts=2))
        data = json.loads((tmp_path / STATE_FILENAME).read_text())
        assert data["welcomeMessageSent"] is True
        assert data["welcomeAttempts"] == 2

    def test_reads_legacy_file_and_keeps_unknown_flags(self, tmp_path):
        (tmp_path / STATE_FILENAME).write_text(
            json.dumps({"welcomeMessageSent": True, "tourCompleted": True})
        )
        store = RunStateStore(tmp_path)
        state = store.load()
        assert state.welcome_message_sent is True
        assert state.welcome_attempts == 0

        store.save(state)
        data = json.loads((tmp_path / STATE_FILENAME).read_text())
        assert data["tourCompleted"] is True

    def test_corrupt_file_gives_fresh_state(self, tmp_path):
        (tmp_path / STATE_FILENAME).write_text("{{{")
        assert RunStateStore(tmp_path).load() == RunState()

    def test_save_failure_raises_storage_error(self, tmp_path):
        with patch("daylog.state.atomic_write", side_effect=OSError("disk full")):
            with pytest.raises(StorageError, match="run state"):
                RunStateStore(tmp_path).save(RunState())

    def test_read_failure_raises_storage_error(self, tmp_path):
        (tmp_path / STATE_FILENAME).write_text("{}")
        with patch("pathlib.Path.read_text", side_effect=PermissionError("denied")):
            with pytest.raises(StorageError):
                RunStateStore(tmp_path).load()


class TestInMemoryStateStore:
    def test_load_returns_copy(self):
        store = InMemoryStateStore()
        state = store.load()
        state.welcome_message_sent = True
        assert store.load().welcome_message_sent is False

    def test_save_counts(self):
        store = InMemoryStateStore()
        store.save(RunState(welcome_message_sent=True))
        assert store.saves == 1
        assert store.state.welcome_message_sent is True


class TestRunLock:
    def test_acquire_and_release(self, tmp_path):
        lock = RunLock(tmp_path)
        lock.acquire()
        assert (tmp_path / LOCK_FILENAME).exists()
        assert (tmp_path / LOCK_FILENAME).read_text() == str(os.getpid())
        lock.release()
        assert not (tmp_path / LOCK_FILENAME).exists()

    def test_second_acquire_fails(self, tmp_path):
        with RunLock(tmp_path):
            with pytest.raises(RunInProgressError):
                RunLock(tmp_path).acquire()

    def test_run_in_progress_is_storage_error(self):
        assert issubclass(RunInProgressError, StorageError)

    def test_stale_lock_is_reclaimed(self, tmp_path):
        lock_path = tmp_path / LOCK_FILENAME
        lock_path.write_text("12345")
        old = time.time() - 7200
        os.utime(lock_path, (old, old))

        with RunLock(tmp_path, stale_seconds=3600):
            assert lock_path.read_text() == str(os.getpid())
        assert not lock_path.exists()

    def test_release_without_acquire_leaves_foreign_lock(self, tmp_path):
        lock_path = tmp_path / LOCK_FILENAME
        lock_path.write_text("12345")
        RunLock(tmp_path).release()
        assert lock_path.exists()
