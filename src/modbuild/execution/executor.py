"""Task execution engine.

Walks an immutable Task tree:

- a leaf runs its ToolCall; exit code 0 is success
- a sequential composite runs children in declared order and stops at the
  first failure; later siblings are reported as skipped and never run
- a parallel composite dispatches every child to a thread pool, waits for
  all of them, and collects every failure; running siblings are never
  interrupted
- a composite without children is a no-op success

Each parallel group gets its own pool of at most ``workers`` threads, and a
shared semaphore caps the number of tools running at once at ``workers``.
Threads waiting on child groups never hold a slot, so nested parallel
groups cannot starve each other.
"""

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional

from modbuild.errors import BuildError, TaskExecutionError

from .callbacks import NullCallback, TaskCallback
from .models import ExecutionOutcome, Task, TaskFailure, TaskPhase
from .tools import ToolRunner

logger = logging.getLogger(__name__)


@dataclass
class _Report:
    failures: list[TaskFailure] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    def merge(self, other: "_Report") -> None:
        self.failures.extend(other.failures)
        self.skipped.extend(other.skipped)


class TaskExecutor:
    """Executes task trees.

    Args:
        runner: Runs the tool call of each leaf.
        workers: Maximum number of concurrently running tools (defaults to
            the CPU count).
        callback: Receives task lifecycle updates.
    """

    def __init__(
        self,
        runner: ToolRunner,
        workers: Optional[int] = None,
        callback: Optional[TaskCallback] = None,
    ) -> None:
        self.runner = runner
        self.workers = max(1, workers or os.cpu_count() or 1)
        self.callback: TaskCallback = callback if callback is not None else NullCallback()
        self._slots = threading.BoundedSemaphore(self.workers)

    def execute(self, task: Task) -> ExecutionOutcome:
        """Execute a task tree.

        Returns:
            Outcome listing every failed leaf, empty on success.
        """
        start = time.monotonic()
        report = self._execute(task)
        duration = time.monotonic() - start
        if report.failures:
            logger.warning(f"Task '{task.title}' failed with {len(report.failures)} failure(s) in {duration:.2f}s")
        else:
            logger.debug(f"Task '{task.title}' succeeded in {duration:.2f}s")
        return ExecutionOutcome(
            title=task.title,
            failures=tuple(report.failures),
            duration=duration,
            skipped=tuple(report.skipped),
        )

    def run(self, task: Task) -> ExecutionOutcome:
        """Execute a task tree, raising on failure.

        Raises:
            BuildError: Carrying the root task title, caused by a
                TaskExecutionError listing every failure.
        """
        outcome = self.execute(task)
        if not outcome.success:
            raise BuildError(task.title, TaskExecutionError(outcome.failures))
        return outcome

    def _execute(self, task: Task) -> _Report:
        if task.call is not None:
            return self._run_leaf(task)
        if not task.children:
            self.callback.on_task(task, TaskPhase.DONE, "empty")
            return _Report()
        self.callback.on_task(task, TaskPhase.RUNNING, "")
        if task.parallel:
            report = self._run_parallel(task)
        else:
            report = self._run_sequence(task)
        phase = TaskPhase.FAILED if report.failures else TaskPhase.DONE
        self.callback.on_task(task, phase, "")
        return report

    def _run_sequence(self, task: Task) -> _Report:
        report = _Report()
        for index, child in enumerate(task.children):
            report.merge(self._execute(child))
            if report.failures:
                for remaining in task.children[index + 1 :]:
                    report.skipped.extend(self._skip(remaining))
                break
        return report

    def _run_parallel(self, task: Task) -> _Report:
        report = _Report()
        max_workers = min(self.workers, len(task.children))
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="task") as pool:
            futures = [pool.submit(self._execute, child) for child in task.children]
            # Collected in declaration order once every child has returned
            for future in futures:
                report.merge(future.result())
        return report

    def _run_leaf(self, task: Task) -> _Report:
        assert task.call is not None
        self.callback.on_task(task, TaskPhase.RUNNING, "")
        with self._slots:
            try:
                result = self.runner.run(task.call)
            except Exception as e:
                logger.error(f"Task '{task.title}' raised {type(e).__name__}: {e}")
                self.callback.on_task(task, TaskPhase.FAILED, str(e))
                return _Report(failures=[TaskFailure(task.title, f"{type(e).__name__}: {e}", error=e)])
        if result.is_error:
            self.callback.on_task(task, TaskPhase.FAILED, f"exit code {result.code}")
            failure = TaskFailure(task.title, f"{result.name} exited with code {result.code}", result=result)
            return _Report(failures=[failure])
        self.callback.on_task(task, TaskPhase.DONE, f"{result.duration:.2f}s")
        return _Report()

    def _skip(self, task: Task) -> list[str]:
        skipped = []
        for node in task.walk():
            self.callback.on_task(node, TaskPhase.SKIPPED, "")
            if node.call is not None:
                skipped.append(node.title)
        return skipped
