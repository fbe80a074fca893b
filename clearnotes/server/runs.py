"""In-memory run store with run-scoped progress and TTL cleanup.

WHY: Browser clients poll a progress endpoint while a transcript is
being processed. Progress has to belong to one run, otherwise two
concurrent uploads overwrite each other's percentage. An in-memory
store is enough for a single-process study tool with no persistence.

HOW: Two components work together:
  RunState  : dataclass holding one run's progress and lifecycle times
  RunStore  : thread-safe dict-based store with start/update/finish/get
              and TTL cleanup of finished runs

RULES:
- All store mutations are protected by threading.Lock
- Run IDs are client-supplied ([A-Za-z0-9_-], 1-64 chars) or UUID4 hex
- Starting a run whose ID is still active raises RunConflictError
- Progress is clamped to 0-100
- Only finished runs expire; TTL is measured from finished_at
- Default TTL is 1 hour (3600 seconds)
"""

from __future__ import annotations

import logging
import re
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

# Default time-to-live for finished runs (seconds)
DEFAULT_TTL_SECONDS = 3600

RUN_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class RunConflictError(ValueError):
    """Raised when a run ID is already in use by an active run."""


@dataclass
class RunState:
    """Progress and lifecycle of one pipeline run.

    RULES:
    - id: run identifier, unique among live runs
    - progress: 0-100, updated after each enhanced paragraph
    - active: True from start_run() until finish_run()
    - finished_at: epoch timestamp when the run ended, or None
    - error: failure message when the run ended in error, else None
    """

    id: str
    progress: int
    active: bool
    created_at: float
    updated_at: float
    finished_at: Optional[float] = None
    error: Optional[str] = None


def is_valid_run_id(run_id: str) -> bool:
    return bool(RUN_ID_RE.match(run_id))


class RunStore:
    """Thread-safe in-memory store for pipeline runs.

    RULES:
    - All public methods that mutate state acquire self._lock
    - get_run() returns None for unknown IDs (no exceptions)
    - update_progress() and finish_run() on unknown IDs return None
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_runs: int = 100,
    ) -> None:
        self._runs: Dict[str, RunState] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self.max_runs = max_runs

    def start_run(self, run_id: Optional[str] = None) -> RunState:
        """Register a new active run at 0% progress.

        Args:
            run_id: Client-chosen ID, or None to generate one.

        Raises:
            ValueError: If run_id is malformed or the store is full.
            RunConflictError: If run_id belongs to an active run.
        """
        if run_id is not None and not is_valid_run_id(run_id):
            raise ValueError(
                "Invalid run id '{}': use 1-64 letters, digits, '-' or '_'".format(run_id)
            )

        with self._lock:
            run_id = run_id or uuid.uuid4().hex
            existing = self._runs.get(run_id)
            if existing is not None and existing.active:
                raise RunConflictError("Run {} is already active".format(run_id))

            active_count = sum(1 for r in self._runs.values() if r.active)
            if existing is None and len(self._runs) >= self.max_runs:
                if active_count >= self.max_runs:
                    raise ValueError(
                        "Maximum number of concurrent runs ({}) reached".format(self.max_runs)
                    )
                self._evict_oldest_finished()

            now = time.time()
            run = RunState(
                id=run_id,
                progress=0,
                active=True,
                created_at=now,
                updated_at=now,
            )
            self._runs[run_id] = run

        logger.info("Started run %s", run_id)
        return run

    def get_run(self, run_id: str) -> Optional[RunState]:
        with self._lock:
            return self._runs.get(run_id)

    def update_progress(self, run_id: str, progress: int) -> Optional[RunState]:
        with self._lock:
            run = self._runs.get(run_id)
            if run is None:
                return None
            run.progress = max(0, min(100, int(progress)))
            run.updated_at = time.time()
            return run

    def finish_run(self, run_id: str, error: Optional[str] = None) -> Optional[RunState]:
        """Mark a run inactive; it becomes eligible for TTL cleanup."""
        with self._lock:
            run = self._runs.get(run_id)
            if run is None:
                return None
            now = time.time()
            run.active = False
            run.error = error
            run.updated_at = now
            run.finished_at = now

        if error:
            logger.info("Run %s finished with error: %s", run_id, error)
        else:
            logger.info("Run %s finished", run_id)
        return run

    def cleanup_expired(self) -> int:
        """Remove finished runs older than the TTL; return how many."""
        now = time.time()
        expired: List[RunState] = []

        with self._lock:
            for run_id, run in list(self._runs.items()):
                if run.active or run.finished_at is None:
                    continue
                if now - run.finished_at > self._ttl_seconds:
                    expired.append(self._runs.pop(run_id))

        for run in expired:
            logger.info("Expired run %s (finished %.0fs ago)", run.id, now - run.finished_at)

        return len(expired)

    def _evict_oldest_finished(self) -> None:
        finished = [r for r in self._runs.values() if not r.active]
        if finished:
            oldest = min(finished, key=lambda r: r.finished_at or r.created_at)
            del self._runs[oldest.id]
