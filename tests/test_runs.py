"""Tests for the in-memory run store.

HOW: Lifecycle times come from time.time(); TTL tests patch it in the
runs module instead of sleeping.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from clearnotes.server.runs import RunConflictError, RunStore, is_valid_run_id


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestRunLifecycle:

    def test_start_generates_id(self):
        store = RunStore()
        run = store.start_run()
        assert len(run.id) == 32
        assert run.progress == 0
        assert run.active is True
        assert store.get_run(run.id) is run

    def test_client_supplied_id(self):
        run = RunStore().start_run("lecture-42_a")
        assert run.id == "lecture-42_a"

    @pytest.mark.parametrize("bad", ["", "has space", "../etc", "x" * 65])
    def test_malformed_id_rejected(self, bad):
        with pytest.raises(ValueError):
            RunStore().start_run(bad)

    def test_active_duplicate_conflicts(self):
        store = RunStore()
        store.start_run("run1")
        with pytest.raises(RunConflictError):
            store.start_run("run1")

    def test_finished_id_can_be_reused(self):
        store = RunStore()
        store.start_run("run1")
        store.update_progress("run1", 80)
        store.finish_run("run1")
        run = store.start_run("run1")
        assert run.active is True
        assert run.progress == 0

    def test_progress_is_clamped(self):
        store = RunStore()
        store.start_run("run1")
        assert store.update_progress("run1", 150).progress == 100
        assert store.update_progress("run1", -5).progress == 0

    def test_finish_records_error(self):
        store = RunStore()
        store.start_run("run1")
        run = store.finish_run("run1", error="boom")
        assert run.active is False
        assert run.error == "boom"
        assert run.finished_at is not None

    def test_unknown_ids_return_none(self):
        store = RunStore()
        assert store.get_run("nope") is None
        assert store.update_progress("nope", 10) is None
        assert store.finish_run("nope") is None


def test_is_valid_run_id():
    assert is_valid_run_id("abc-DEF_123")
    assert not is_valid_run_id("abc/def")
    assert not is_valid_run_id("")


# ---------------------------------------------------------------------------
# Capacity and TTL
# ---------------------------------------------------------------------------


class TestCapacityAndTtl:

    def test_full_store_evicts_oldest_finished(self):
        store = RunStore(max_runs=2)
        store.start_run("a")
        store.finish_run("a")
        store.start_run("b")
        store.start_run("c")
        assert store.get_run("a") is None
        assert store.get_run("c") is not None

    def test_full_store_of_active_runs_rejects(self):
        store = RunStore(max_runs=1)
        store.start_run("a")
        with pytest.raises(ValueError, match="Maximum number"):
            store.start_run("b")

    def test_cleanup_removes_only_expired_finished_runs(self):
        store = RunStore(ttl_seconds=60)
        with patch("clearnotes.server.runs.time.time", return_value=1000.0):
            store.start_run("old")
            store.finish_run("old")
            store.start_run("active")
        with patch("clearnotes.server.runs.time.time", return_value=1050.0):
            store.start_run("recent")
            store.finish_run("recent")

        with patch("clearnotes.server.runs.time.time", return_value=1100.0):
            removed = store.cleanup_expired()

        assert removed == 1
        assert store.get_run("old") is None
        assert store.get_run("recent") is not None
        assert store.get_run("active") is not None
