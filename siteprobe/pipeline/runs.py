"""Run state and the in-process registry of runs."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from .errors import RunInProgress
from .models import FailureRecord, ProbeResult, utcnow
from .presets import ProbeKind

logger = logging.getLogger(__name__)

Phase = Literal["idle", "running", "done"]


class CancelToken:
    """Cooperative cancellation flag checked by the scheduler between batches."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def sleep(self, seconds: float) -> bool:
        """Wait up to *seconds*; return True if cancelled before the time ran out."""
        if seconds <= 0:
            return self.cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True


@dataclass
class RunState:
    """Progress and results of one batched run.

    Only the run that created it writes to it. Once ``phase`` is ``done`` the
    state is frozen and every mutator raises ``RuntimeError``.
    """

    kind: ProbeKind
    total_urls: int
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    phase: Phase = "idle"
    current_url: str | None = None
    current_index: int = 0
    completed: list[ProbeResult] = field(default_factory=list)
    failed: list[FailureRecord] = field(default_factory=list)
    all_results: list[ProbeResult] = field(default_factory=list)
    cancelled: bool = False
    created_at: datetime = field(default_factory=utcnow)
    finished_at: datetime | None = None
    cancel_token: CancelToken = field(default_factory=CancelToken, repr=False)

    def _check_writable(self) -> None:
        if self.phase == "done":
            raise RuntimeError(f"run {self.run_id} is finished and can no longer change")

    def start(self) -> None:
        self._check_writable()
        self.phase = "running"

    def mark_current(self, url: str, index: int) -> None:
        self._check_writable()
        self.current_url = url
        self.current_index = index

    def merge_batch(self, results: list[ProbeResult]) -> None:
        """Append one batch's results, in input order, after the batch barrier."""
        self._check_writable()
        for result in results:
            if isinstance(result, FailureRecord):
                self.failed.append(result)
            else:
                self.completed.append(result)
        self.all_results.extend(results)

    def finish(self, cancelled: bool = False) -> None:
        self._check_writable()
        self.cancelled = cancelled
        self.current_url = None
        self.phase = "done"
        self.finished_at = utcnow()


class RunRegistry:
    """Holds the most recent run.

    At most one run may be active. Starting a new run discards every
    finished run, so results live until the next run or an explicit clear.
    """

    def __init__(self) -> None:
        self._runs: dict[str, RunState] = {}

    def active(self) -> RunState | None:
        for state in self._runs.values():
            if state.phase != "done":
                return state
        return None

    def create(self, kind: ProbeKind, total_urls: int) -> RunState:
        current = self.active()
        if current is not None:
            raise RunInProgress(current.run_id)
        if self._runs:
            logger.debug("finished runs discarded", extra={"run_ids": list(self._runs)})
            self._runs.clear()
        state = RunState(kind=kind, total_urls=total_urls)
        self._runs[state.run_id] = state
        logger.debug("run registered", extra={"run_id": state.run_id, "kind": kind})
        return state

    def get(self, run_id: str) -> RunState | None:
        return self._runs.get(run_id)

    def discard(self, run_id: str) -> bool:
        """Forget a finished run. Active runs are kept."""
        state = self._runs.get(run_id)
        if state is None:
            return False
        if state.phase != "done":
            raise RunInProgress(run_id)
        del self._runs[run_id]
        return True
