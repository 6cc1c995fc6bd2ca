"""Build record.

The Logbook collects every tool result and log line of one build. It is
the only state shared between worker threads during execution, so every
mutation happens under a lock and nothing is ever removed or rewritten.
"""

import itertools
import logging
import threading
import time
from dataclasses import dataclass, field

from .models import ToolResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LogEntry:
    """One log line.

    Attributes:
        thread: Name of the thread that logged the line
        level: Standard logging level (logging.INFO, ...)
        text: Message text
        timestamp: Wall-clock time of the entry
    """

    thread: str
    level: int
    text: str
    timestamp: float = field(default_factory=time.time)


class Logbook:
    """Thread-safe, append-only record of a build."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: list[LogEntry] = []
        self._results: list[ToolResult] = []
        self._sequence = itertools.count()

    def next_sequence(self) -> int:
        """Reserve the start number of a tool invocation."""
        with self._lock:
            return next(self._sequence)

    def log(self, level: int, message: str) -> LogEntry:
        entry = LogEntry(thread=threading.current_thread().name, level=level, text=message)
        with self._lock:
            self._entries.append(entry)
        logger.log(level, message)
        return entry

    def debug(self, message: str) -> LogEntry:
        return self.log(logging.DEBUG, message)

    def info(self, message: str) -> LogEntry:
        return self.log(logging.INFO, message)

    def warning(self, message: str) -> LogEntry:
        return self.log(logging.WARNING, message)

    def error(self, message: str) -> LogEntry:
        return self.log(logging.ERROR, message)

    def add(self, result: ToolResult) -> None:
        """Record the result of one tool invocation."""
        with self._lock:
            self._results.append(result)
        logger.debug(f"{result.name} finished with code {result.code} in {result.duration:.3f}s")

    def entries(self) -> list[LogEntry]:
        with self._lock:
            return list(self._entries)

    def messages(self, min_level: int = logging.NOTSET) -> list[str]:
        return [entry.text for entry in self.entries() if entry.level >= min_level]

    def results(self) -> list[ToolResult]:
        """Tool results in the order their invocations started."""
        with self._lock:
            return sorted(self._results, key=lambda result: result.sequence)

    def errors(self) -> list[ToolResult]:
        return [result for result in self.results() if result.is_error]

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)
