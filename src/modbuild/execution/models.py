"""Data models for the task execution engine.

Defines:
- ToolCall: one external tool invocation (name + arguments)
- Task: an immutable tree node, sequential or parallel, leaves carry a ToolCall
- ToolResult: captured outcome of one ToolCall
- TaskPhase: lifecycle of a task as reported to progress callbacks
- TaskFailure / ExecutionOutcome: what execute() returns
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional


@dataclass(frozen=True)
class ToolCall:
    """An external tool invocation.

    Attributes:
        name: Tool name ("javac", "jar", ...)
        args: Argument list, excluding the tool name
        prepare: Directories created before the tool starts
        clean: Directories deleted before the tool starts
    """

    name: str
    args: tuple[str, ...] = ()
    prepare: tuple[Path, ...] = ()
    clean: tuple[Path, ...] = ()

    def command_line(self) -> str:
        return " ".join([self.name, *self.args])


@dataclass(frozen=True)
class Task:
    """A node of a task tree.

    A leaf carries a ToolCall and has no children. A composite runs its
    children in declared order (sequential) or all at once (parallel).

    Attributes:
        title: Human-readable title, used in progress and error reports
        parallel: Run children concurrently
        children: Child tasks
        call: Tool invocation of a leaf task
    """

    title: str
    parallel: bool = False
    children: tuple["Task", ...] = ()
    call: Optional[ToolCall] = None

    def __post_init__(self) -> None:
        if self.call is not None and self.children:
            raise ValueError(f"Task '{self.title}' cannot carry a tool call and children")

    @classmethod
    def sequence(cls, title: str, *children: "Task") -> "Task":
        return cls(title=title, parallel=False, children=tuple(children))

    @classmethod
    def parallel_group(cls, title: str, *children: "Task") -> "Task":
        return cls(title=title, parallel=True, children=tuple(children))

    @classmethod
    def run(
        cls,
        name: str,
        *args: str,
        prepare: tuple[Path, ...] = (),
        clean: tuple[Path, ...] = (),
        title: Optional[str] = None,
    ) -> "Task":
        """Create a leaf task invoking ``name`` with ``args``."""
        call = ToolCall(name=name, args=tuple(args), prepare=tuple(prepare), clean=tuple(clean))
        return cls(title=title or call.command_line(), call=call)

    @property
    def is_leaf(self) -> bool:
        return self.call is not None

    def leaves(self) -> Iterator["Task"]:
        """All leaf tasks in declaration order."""
        if self.call is not None:
            yield self
            return
        for child in self.children:
            yield from child.leaves()

    def walk(self) -> Iterator["Task"]:
        """This task and all descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True)
class ToolResult:
    """Captured outcome of one tool invocation.

    Attributes:
        name: Tool name
        args: Argument list
        out: Captured standard output
        err: Captured standard error
        duration: Wall-clock duration in seconds
        code: Exit code, 0 means success
        thread: Name of the thread that ran the tool
        sequence: Start order of the invocation within one build
    """

    name: str
    args: tuple[str, ...]
    out: str
    err: str
    duration: float
    code: int
    thread: str = ""
    sequence: int = 0

    @property
    def is_error(self) -> bool:
        return self.code != 0


class TaskPhase(Enum):
    """Lifecycle phase of a task, as reported to callbacks."""

    WAITING = "waiting"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class TaskFailure:
    """A failed leaf task.

    Attributes:
        title: Title of the failed task
        reason: Short description of the failure
        result: Tool result, if the tool ran
        error: Exception raised while running the tool, if any
    """

    title: str
    reason: str
    result: Optional[ToolResult] = None
    error: Optional[BaseException] = None

    def format(self, limit: int = 500) -> str:
        """Format as one human-readable block, stderr truncated to ``limit``."""
        text = f"{self.title}: {self.reason}"
        if self.result is not None and self.result.err:
            preview = self.result.err.strip()[:limit]
            if len(self.result.err.strip()) > limit:
                preview += "... (truncated)"
            text += f"\n      stderr: {preview}"
        return text


@dataclass(frozen=True)
class ExecutionOutcome:
    """Result of executing a task tree.

    Attributes:
        title: Title of the executed root task
        failures: Every failed leaf (empty on success)
        duration: Wall-clock duration in seconds
    """

    title: str
    failures: tuple[TaskFailure, ...] = ()
    duration: float = 0.0
    skipped: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return not self.failures
