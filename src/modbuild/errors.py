"""
Exception hierarchy for modbuild.

Failures are never retried. A build reports the outermost error, which
carries the title of the failing task and chains the original cause.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Optional

if TYPE_CHECKING:
    from modbuild.execution.models import TaskFailure


class ModbuildError(Exception):
    """Base class for every error raised by modbuild."""


class ProjectValidationError(ModbuildError):
    """The project model is structurally unusable; nothing was executed."""


class DeclarationSyntaxError(ProjectValidationError):
    """A module declaration could not be parsed."""

    def __init__(self, message: str, line: int, column: int, source: Optional[str] = None):
        self.line = line
        self.column = column
        self.source = source
        where = f"{source}:" if source else ""
        super().__init__(f"{where}{line}:{column}: {message}")


class TaskExecutionError(ModbuildError):
    """One or more tasks of a tree failed.

    Attributes:
        failures: Every failed leaf, in the order the failures were observed
    """

    def __init__(self, failures: Iterable[TaskFailure]):
        self.failures = list(failures)
        count = len(self.failures)
        lines = [f"{count} task{'s' if count != 1 else ''} failed"]
        lines.extend(f"  - {failure.format()}" for failure in self.failures)
        super().__init__("\n".join(lines))


class BuildError(ModbuildError):
    """Build-level failure carrying the title of the failed task.

    The original failure is chained as ``__cause__`` and kept in ``cause``.
    """

    def __init__(self, title: str, cause: BaseException):
        self.title = title
        self.cause = cause
        super().__init__(f"Task '{title}' failed")
        self.__cause__ = cause

    def __str__(self) -> str:
        return f"Task '{self.title}' failed: {self.cause}"


class ResolutionError(ModbuildError):
    """A missing module could not be located or fetched."""

    def __init__(self, message: str, module: Optional[str] = None, uri: Optional[str] = None):
        self.module = module
        self.uri = uri
        super().__init__(message)


class UnmappedModuleError(ResolutionError):
    """No remote coordinate or version is known for a required module."""

    def __init__(self, module: str, reason: str):
        super().__init__(f"Module {module} is not mapped: {reason}", module=module)


class VersionConflictError(ResolutionError):
    """Distinct versions of the same unpinned module were requested."""

    def __init__(self, module: str, versions: Iterable[str]):
        self.versions = sorted(versions)
        super().__init__(
            f"Conflicting versions requested for module {module}: {', '.join(self.versions)}",
            module=module,
        )
