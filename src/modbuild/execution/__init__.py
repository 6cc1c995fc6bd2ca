"""Task execution engine: task trees, tool invocation and the build record."""

from .callbacks import NullCallback, TaskCallback
from .executor import TaskExecutor
from .logbook import LogEntry, Logbook
from .models import ExecutionOutcome, Task, TaskFailure, TaskPhase, ToolCall, ToolResult
from .progress_display import TaskProgressDisplay
from .tools import ToolProvider, ToolRunner

__all__ = [
    "ExecutionOutcome",
    "LogEntry",
    "Logbook",
    "NullCallback",
    "Task",
    "TaskCallback",
    "TaskExecutor",
    "TaskFailure",
    "TaskPhase",
    "TaskProgressDisplay",
    "ToolCall",
    "ToolProvider",
    "ToolResult",
    "ToolRunner",
]
