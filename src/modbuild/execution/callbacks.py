"""Progress callback protocol for the task execution engine.

The executor reports every task transition through this interface; the
Rich display layer implements it to render a live table of running tasks.
"""

from typing import Protocol, runtime_checkable

from .models import Task, TaskPhase


@runtime_checkable
class TaskCallback(Protocol):
    """Protocol for receiving task lifecycle updates from the executor.

    Calls arrive from worker threads; implementations must be thread-safe.
    """

    def on_task(self, task: Task, phase: TaskPhase, detail: str) -> None:
        """Called when a task changes phase.

        Args:
            task: The tree node that changed phase. Titles may repeat within
                one tree, so implementations tracking tasks key them by node.
            phase: New phase of the task.
            detail: Human-readable detail (e.g. exit code, failure reason).
        """
        ...


class NullCallback:
    """No-op callback for tests and non-interactive runs."""

    def on_task(self, task: Task, phase: TaskPhase, detail: str) -> None:
        """Discard task update."""
        pass
