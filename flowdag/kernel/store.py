"""In-memory execution store: run records addressable by id and pipeline."""

from __future__ import annotations

import threading

from flowdag.kernel.domain.run import PipelineRun, RunStatus


class ExecutionStore:
    """Keeps run records for their lifetime beyond the run.

    Records are kept in the order they were first saved; saving a record again
    (the engines save at start and at finish) updates it in place.

    Examples
    --------
    >>> store = ExecutionStore()
    >>> run = PipelineRun(pipeline_id="etl")
    >>> store.save(run)
    >>> store.get(run.id) is run
    True
    """

    def __init__(self) -> None:
        self._runs: dict[str, PipelineRun] = {}
        self._lock = threading.Lock()

    def save(self, run: PipelineRun) -> None:
        with self._lock:
            self._runs[run.id] = run

    def get(self, run_id: str) -> PipelineRun | None:
        with self._lock:
            return self._runs.get(run_id)

    def get_for_pipeline(self, pipeline_id: str) -> list[PipelineRun]:
        """Runs of ``pipeline_id``, oldest first."""
        with self._lock:
            return [r for r in self._runs.values() if r.pipeline_id == pipeline_id]

    def list_all(self) -> list[PipelineRun]:
        with self._lock:
            return list(self._runs.values())

    def history(
        self,
        pipeline_id: str | None = None,
        status: RunStatus | str | None = None,
        limit: int | None = None,
    ) -> list[PipelineRun]:
        """Runs newest first, optionally filtered by pipeline and status."""
        wanted = RunStatus(status) if status is not None else None
        with self._lock:
            runs = list(reversed(self._runs.values()))
        runs = [
            r
            for r in runs
            if (pipeline_id is None or r.pipeline_id == pipeline_id)
            and (wanted is None or r.status is wanted)
        ]
        return runs[:limit] if limit is not None else runs

    def latest(self, pipeline_id: str) -> PipelineRun | None:
        runs = self.history(pipeline_id=pipeline_id, limit=1)
        return runs[0] if runs else None

    def remove(self, run_id: str) -> bool:
        with self._lock:
            return self._runs.pop(run_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._runs.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._runs)
