"""Tool invocation.

A ToolRunner turns a ToolCall into a ToolResult. Tools registered as
in-process providers take precedence; every other tool is spawned as a
subprocess with captured output. Each invocation is recorded in the
Logbook exactly once, stamped with its start order.
"""

import logging
import shutil
import threading
import time
from pathlib import Path
from typing import Optional, Protocol, Sequence, runtime_checkable

from modbuild.output import log_tool
from modbuild.subprocess_utils import COMMAND_NOT_FOUND, find_executable, run_captured

from .logbook import Logbook
from .models import ToolCall, ToolResult

logger = logging.getLogger(__name__)

# Exit code recorded when a tool raises instead of returning
RAISED = 1


@runtime_checkable
class ToolProvider(Protocol):
    """A tool that runs inside this process."""

    name: str

    def run(self, args: Sequence[str]) -> tuple[int, str, str]:
        """Run the tool.

        Args:
            args: Argument list, excluding the tool name.

        Returns:
            Tuple of (exit code, stdout, stderr).
        """
        ...


class ToolRunner:
    """Runs tool calls and records their results.

    Args:
        logbook: Build record receiving one result per invocation.
        java_home: Optional JDK home searched before JAVA_HOME and PATH.
        providers: In-process tools, keyed by their name.
        dry_run: Record invocations as successful without running anything.
    """

    def __init__(
        self,
        logbook: Logbook,
        java_home: Optional[Path] = None,
        providers: Sequence[ToolProvider] = (),
        dry_run: bool = False,
    ) -> None:
        self.logbook = logbook
        self.java_home = java_home
        self.dry_run = dry_run
        self._providers: dict[str, ToolProvider] = {}
        for provider in providers:
            self.register(provider)

    def register(self, provider: ToolProvider) -> None:
        self._providers[provider.name] = provider

    def run(self, call: ToolCall) -> ToolResult:
        """Run one tool call to completion.

        Directories listed in ``call.clean`` are deleted (except in dry-run
        mode) and those listed in ``call.prepare`` are created first. If the
        directory handling or an in-process provider raises, an errored
        result holding the exception is recorded before the exception
        propagates to the caller.

        Returns:
            The recorded result.
        """
        sequence = self.logbook.next_sequence()
        start = time.perf_counter()
        args = list(call.args)
        try:
            self._prepare_directories(call)
            if self.dry_run:
                code, out, err = 0, "", ""
            elif call.name in self._providers:
                code, out, err = self._providers[call.name].run(args)
            else:
                code, out, err = self._spawn(call.name, args)
        except Exception as e:
            logger.error(f"Tool {call.name} raised: {e}")
            self._record(call.name, args, RAISED, "", f"{type(e).__name__}: {e}", start, sequence)
            raise
        return self._record(call.name, args, code, out, err, start, sequence)

    def _prepare_directories(self, call: ToolCall) -> None:
        for directory in call.clean:
            if directory.exists() and not self.dry_run:
                shutil.rmtree(directory)
        for directory in call.prepare:
            directory.mkdir(parents=True, exist_ok=True)

    def _record(self, name: str, args: list[str], code: int, out: str, err: str, start: float, sequence: int) -> ToolResult:
        duration = time.perf_counter() - start
        result = ToolResult(
            name=name,
            args=tuple(args),
            out=out,
            err=err,
            duration=duration,
            code=code,
            thread=threading.current_thread().name,
            sequence=sequence,
        )
        self.logbook.add(result)
        log_tool(name, args, code, duration)
        return result

    def _spawn(self, name: str, args: list[str]) -> tuple[int, str, str]:
        executable = find_executable(name, self.java_home)
        if executable is None:
            logger.warning(f"Tool {name} not found on JAVA_HOME or PATH")
            return COMMAND_NOT_FOUND, "", f"{name}: command not found"
        logger.debug(f"Running {executable} with {len(args)} arguments")
        return run_captured([executable, *args])
