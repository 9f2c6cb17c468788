"""Parallel per-file batch runner.

`BatchWorker` maps a per-file task over an immutable list of paths using a
ProcessPoolExecutor, one task per file, and reports through Qt signals. Tasks
share no state; each returns a `FileResult`, and a task that raises is turned
into a failed result so one broken file never stops the batch.
"""

from __future__ import annotations

import multiprocessing
import os
from collections import Counter
from collections.abc import Callable, Iterable
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from pathlib import Path

from PySide6.QtCore import QObject, Signal

from imgbatch.file_result import FAILED, FileResult
from imgbatch.image_engine.metrics import metrics
from imgbatch.logger import get_logger

_logger = get_logger("batch_worker")

Task = Callable[[Path], FileResult]


def resolve_workers(max_workers: int | None) -> int:
    if max_workers and max_workers > 0:
        return int(max_workers)
    return max(1, os.cpu_count() or 1)


class BatchWorker(QObject):
    """Runs `task` for every path in `paths`.

    `run()` blocks until the batch is done; call it directly or from a thread.
    """

    progress = Signal(int, int)  # completed, total
    log = Signal(str)
    file_done = Signal(object)  # FileResult
    finished = Signal(int, int)  # succeeded, total
    canceled = Signal()

    def __init__(
        self,
        task: Task,
        paths: Iterable[Path],
        max_workers: int | None = None,
        use_processes: bool = True,
    ):
        super().__init__()
        self.task = task
        self.paths: tuple[Path, ...] = tuple(paths)
        self.max_workers = resolve_workers(max_workers)
        self.use_processes = use_processes
        self.results: list[FileResult] = []
        self._cancel_requested = False

    def _executor(self) -> Executor:
        workers = min(self.max_workers, len(self.paths))
        if self.use_processes:
            # libvips and Qt are not fork-safe once their threads are running
            return ProcessPoolExecutor(max_workers=workers, mp_context=multiprocessing.get_context("spawn"))
        return ThreadPoolExecutor(max_workers=workers)

    def _record(self, result: FileResult) -> None:
        self.results.append(result)
        metrics.inc(f"batch.{result.status}")
        metrics.observe("batch.task_duration", result.elapsed)
        self.log.emit(result.describe())
        self.file_done.emit(result)

    def run(self) -> None:
        self.results = []
        total = len(self.paths)
        if total == 0:
            self.finished.emit(0, 0)
            return

        completed = 0
        with metrics.timed("batch.duration"):
            executor = self._executor()
            try:
                future_to_path = {executor.submit(self.task, path): path for path in self.paths}

                for future in as_completed(future_to_path):
                    path = future_to_path[future]
                    try:
                        result = future.result()
                    except Exception as ex:
                        _logger.debug("task raised for %s: %r", path, ex)
                        result = FileResult(str(path), FAILED, message=str(ex) or type(ex).__name__)

                    self._record(result)
                    completed += 1
                    self.progress.emit(completed, total)

                    if self._cancel_requested:
                        for f in future_to_path:
                            f.cancel()
                        self.canceled.emit()
                        return
            finally:
                executor.shutdown(wait=True, cancel_futures=True)

        self.finished.emit(self.succeeded, total)

    def cancel(self) -> None:
        self._cancel_requested = True

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    def summary(self) -> dict[str, int]:
        return dict(Counter(r.status for r in self.results))
