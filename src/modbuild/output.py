"""
Timestamped console output for modbuild.

Every line is prefixed with the time elapsed since the program started, in
MM:SS.cc format (minutes:seconds.centiseconds), so a build transcript shows
where the time went.

Example output:
    00:00.04 modbuild v0.3.0
    00:00.05 [1/3] Validating project demo...
    00:00.91 [2/3] Resolving missing modules...
    00:01.62       Fetched org.example.lib-1.2.jar
    00:04.10 [3/3] Build project demo 1.0...

Usage:
    from modbuild.output import log, log_phase, log_detail

    log_phase(2, 3, "Resolving missing modules...")
    log_detail("Fetched org.example.lib-1.2.jar")
"""

import sys
import time
from types import TracebackType
from typing import Optional, TextIO

_start_time: Optional[float] = None
_output_stream: TextIO = sys.stdout
_verbose: bool = True


def init_timer(output_stream: Optional[TextIO] = None) -> None:
    """
    Initialize the program timer.

    Called automatically on first use if not called explicitly.

    Args:
        output_stream: Optional output stream (defaults to sys.stdout)
    """
    global _start_time, _output_stream
    _start_time = time.time()
    if output_stream is not None:
        _output_stream = output_stream


def set_verbose(verbose: bool) -> None:
    """
    Set verbose mode for logging.

    Args:
        verbose: If False, messages flagged verbose_only are dropped.
    """
    global _verbose
    _verbose = verbose


def get_elapsed() -> float:
    """
    Get elapsed time since timer initialization.

    Returns:
        Elapsed time in seconds
    """
    if _start_time is None:
        init_timer()
    return time.time() - _start_time  # type: ignore


def format_timestamp() -> str:
    """
    Format the current elapsed time as MM:SS.cc.

    Returns:
        Formatted timestamp string
    """
    elapsed = get_elapsed()
    minutes = int(elapsed // 60)
    seconds = elapsed % 60
    return f"{minutes:02d}:{seconds:05.2f}"


def _print(message: str) -> None:
    line = f"{format_timestamp()} {message}\n"
    _output_stream.write(line)
    _output_stream.flush()


def log(message: str, verbose_only: bool = False) -> None:
    """
    Log a message with timestamp.

    Args:
        message: Message to log
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(message)


def log_phase(phase: int, total: int, message: str, verbose_only: bool = False) -> None:
    """
    Log a build phase message in the form ``[N/M] message``.

    Args:
        phase: Current phase number
        total: Total number of phases
        message: Phase description
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(f"[{phase}/{total}] {message}")


def log_detail(message: str, indent: int = 6, verbose_only: bool = False) -> None:
    """
    Log an indented detail message.

    Args:
        message: Detail message
        indent: Number of spaces to indent (default 6)
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(f"{' ' * indent}{message}")


def log_header(title: str, version: str) -> None:
    _print(f"{title} v{version}")


def log_tool(name: str, args: list[str], code: int, duration: float, verbose_only: bool = True) -> None:
    """
    Log one finished tool invocation.

    Format: ``[tool] arg1 arg2 ... -> code (1.23s)``; long argument lists are
    shortened to their first few entries.
    """
    if verbose_only and not _verbose:
        return
    shown = " ".join(args[:6])
    if len(args) > 6:
        shown += f" ... (+{len(args) - 6})"
    _print(f"      [{name}] {shown} -> {code} ({duration:.2f}s)")


def log_build_complete(title: str, build_time: float, verbose_only: bool = False) -> None:
    if verbose_only and not _verbose:
        return
    _print(f"{title} succeeded in {build_time:.2f}s")


def log_error(message: str) -> None:
    _print(f"ERROR: {message}")


class TimedLogger:
    """
    Context manager for logging with elapsed time tracking.

    Usage:
        with TimedLogger("Resolving missing modules", phase=(2, 3)) as timed:
            timed.detail("Fetched 3 modules")
        # Logs "Done (1.23s)" when the block completes without error
    """

    def __init__(self, operation: str, phase: Optional[tuple[int, int]] = None, verbose_only: bool = False):
        self.operation = operation
        self.phase = phase
        self.verbose_only = verbose_only
        self.start_time = 0.0

    def __enter__(self) -> "TimedLogger":
        self.start_time = time.time()
        if self.phase:
            log_phase(self.phase[0], self.phase[1], f"{self.operation}...", self.verbose_only)
        else:
            log(f"{self.operation}...", self.verbose_only)
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        del exc_val, exc_tb  # Unused
        elapsed = time.time() - self.start_time
        if exc_type is None:
            log_detail(f"Done ({elapsed:.2f}s)", verbose_only=self.verbose_only)
        return None

    def detail(self, message: str) -> None:
        """Log a detail message within this operation."""
        log_detail(message, verbose_only=self.verbose_only)
