"""Rich-based live display of a running task tree.

Renders one line per task, indented by tree depth, that transitions through
phases:

    Build project demo 1.0            Running  ⠹
      Compile main realm              Running  ⠼
        javac --module a,b ...        Done     ✓ 1.8s
        jar --create ...              Waiting

Rows are keyed by task node, so equal titles in different branches (the
same module archived in two realms) keep separate rows. Thread-safe:
executor worker threads call on_task() concurrently while the display
renders in the main thread.
"""

import threading
import time
from typing import Any

from rich.console import Console, Group
from rich.live import Live
from rich.table import Table
from rich.text import Text

from .models import Task, TaskPhase

_SPINNER_FRAMES = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")

_PHASE_LABELS = {
    TaskPhase.WAITING: ("Waiting", "dim"),
    TaskPhase.RUNNING: ("Running", "cyan"),
    TaskPhase.DONE: ("Done", "green"),
    TaskPhase.FAILED: ("Failed", "red bold"),
    TaskPhase.SKIPPED: ("Skipped", "yellow"),
}


class _TaskDisplayState:
    """Display state of one task line."""

    __slots__ = ("title", "depth", "phase", "detail", "elapsed", "start_time")

    def __init__(self, title: str, depth: int) -> None:
        self.title = title
        self.depth = depth
        self.phase = TaskPhase.WAITING
        self.detail: str = ""
        self.elapsed: float = 0.0
        self.start_time: float | None = None


class TaskProgressDisplay:
    """Live task table implementing the TaskCallback protocol.

    Args:
        console: Rich Console instance for rendering. If None, creates a new one.
        title: Header line shown above the table.
        refresh_per_second: Display refresh rate.
    """

    def __init__(self, console: Console | None, title: str, refresh_per_second: int = 8) -> None:
        self._console = console if console is not None else Console()
        self._title = title
        self._refresh_per_second = refresh_per_second
        self._states: dict[int, _TaskDisplayState] = {}
        self._order: list[Task] = []
        self._lock = threading.Lock()
        self._live: Live | None = None

    def register_tree(self, task: Task, depth: int = 0) -> None:
        """Register a task and its descendants so they show up as waiting."""
        with self._lock:
            if id(task) not in self._states:
                self._states[id(task)] = _TaskDisplayState(task.title, depth)
                self._order.append(task)
        for child in task.children:
            self.register_tree(child, depth + 1)

    def on_task(self, task: Task, phase: TaskPhase, detail: str) -> None:
        """Update the display state for a task. Thread-safe."""
        with self._lock:
            state = self._states.get(id(task))
            if state is None:
                state = _TaskDisplayState(task.title, 0)
                self._states[id(task)] = state
                self._order.append(task)
            if state.start_time is None and phase is TaskPhase.RUNNING:
                state.start_time = time.monotonic()
            state.phase = phase
            state.detail = detail
            if state.start_time is not None:
                state.elapsed = time.monotonic() - state.start_time
        if self._live is not None:
            self._live.update(self._render_display())

    def start(self) -> None:
        self._live = Live(
            self._render_display(),
            console=self._console,
            refresh_per_second=self._refresh_per_second,
            transient=False,
        )
        self._live.start()

    def stop(self) -> None:
        if self._live is not None:
            self._live.update(self._render_display())
            self._live.stop()
            self._live = None

    def _render_display(self) -> Group:
        header = Text(f"{self._title}\n", style="bold")
        return Group(header, self._render_table(), self._render_footer())

    def _render_table(self) -> Table:
        table = Table(show_header=False, show_edge=False, show_lines=False, box=None, padding=(0, 1), expand=False)
        table.add_column("Task", no_wrap=True, min_width=40, max_width=80)
        table.add_column("Phase", no_wrap=True, min_width=8)
        table.add_column("Status", no_wrap=True, min_width=16)
        with self._lock:
            for task in self._order:
                state = self._states[id(task)]
                label, style = _PHASE_LABELS[state.phase]
                name_style = "bold" if state.phase is TaskPhase.RUNNING else style
                table.add_row(
                    Text(f"{'  ' * state.depth}{state.title}", style=name_style),
                    Text(label, style=style),
                    self._format_status(state),
                )
        return table

    def _render_footer(self) -> Text:
        with self._lock:
            phases = [state.phase for state in self._states.values()]
        parts = [f"{len(phases)} tasks"]
        for phase in (TaskPhase.RUNNING, TaskPhase.DONE, TaskPhase.FAILED, TaskPhase.SKIPPED):
            count = phases.count(phase)
            if count:
                parts.append(f"{count} {phase.value}")
        return Text(f"\n  {', '.join(parts)}", style="dim")

    def _format_status(self, state: _TaskDisplayState) -> Text:
        if state.phase is TaskPhase.RUNNING:
            spinner = _SPINNER_FRAMES[int(time.monotonic() * 8) % len(_SPINNER_FRAMES)]
            return Text(f"{spinner} {state.detail}".rstrip(), style="cyan")
        if state.phase is TaskPhase.DONE:
            return Text(f"✓ {state.elapsed:.1f}s", style="green")
        if state.phase is TaskPhase.FAILED:
            return Text(f"✗ {state.detail or 'Error'}", style="red")
        return Text("")

    def get_snapshot(self) -> list[dict[str, Any]]:
        """Get a snapshot of current display states for testing."""
        with self._lock:
            return [
                {
                    "title": state.title,
                    "depth": state.depth,
                    "phase": state.phase,
                    "detail": state.detail,
                }
                for state in (self._states[id(task)] for task in self._order)
            ]

    def __enter__(self) -> "TaskProgressDisplay":
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()
