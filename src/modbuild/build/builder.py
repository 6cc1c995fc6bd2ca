"""Build driver.

Runs one build of a project in three phases:

1. validate the project model
2. resolve missing external modules (skipped when offline)
3. create and execute the task tree

Any failure surfaces as a BuildError carrying the title of the failed task
or phase, with the original failure chained as its cause.
"""

import logging
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

from rich.console import Console

from modbuild import __version__
from modbuild.config import BuildOptions
from modbuild.errors import BuildError, ResolutionError, TaskExecutionError
from modbuild.execution.callbacks import NullCallback, TaskCallback
from modbuild.execution.executor import TaskExecutor
from modbuild.execution.logbook import Logbook
from modbuild.execution.models import ExecutionOutcome, Task
from modbuild.execution.progress_display import TaskProgressDisplay
from modbuild.execution.tools import ToolProvider, ToolRunner
from modbuild.output import TimedLogger, log_build_complete, log_error, log_header, set_verbose
from modbuild.project.models import Project
from modbuild.project.validation import validate_project
from modbuild.project.workspace import Workspace
from modbuild.resolver.repository import Repository
from modbuild.resolver.resolver import FetchPlan, Resolver

from .factory import BuildTaskFactory

logger = logging.getLogger(__name__)

RESOLVE_TITLE = "Resolve missing modules"


@dataclass(frozen=True)
class BuildSummary:
    """Outcome of a successful build.

    Attributes:
        project: The built project
        outcome: Execution outcome of the task tree
        fetched: Modules fetched by the resolver
        logbook: Complete build record
        duration: Wall-clock duration in seconds
    """

    project: Project
    outcome: ExecutionOutcome
    fetched: tuple[FetchPlan, ...]
    logbook: Logbook
    duration: float


class Builder:
    """Builds a project.

    Args:
        project: Project model, as produced by a scanner.
        workspace: Workspace or project base directory.
        options: Build options (defaults to the environment).
        repository: Artifact source for the resolver.
        providers: In-process tools used instead of subprocesses.
        platform_modules: Host module set for the resolver.
        console: Rich console for the live progress display.
    """

    def __init__(
        self,
        project: Project,
        workspace: Union[Workspace, Path],
        options: Optional[BuildOptions] = None,
        repository: Optional[Repository] = None,
        providers: Sequence[ToolProvider] = (),
        platform_modules: Optional[frozenset[str]] = None,
        console: Optional[Console] = None,
    ) -> None:
        self.project = project
        self.workspace = workspace if isinstance(workspace, Workspace) else Workspace.of(workspace)
        self.options = options if options is not None else BuildOptions.from_environment()
        self.repository = repository
        self.platform_modules = platform_modules
        self.console = console
        self.logbook = Logbook()
        self.runner = ToolRunner(
            self.logbook,
            java_home=self.options.java_home,
            providers=providers,
            dry_run=self.options.dry_run,
        )

    def create_task(self) -> Task:
        return BuildTaskFactory(self.project, self.workspace, self.options).build()

    def build(self) -> BuildSummary:
        """Validate, resolve and build the project.

        Raises:
            ProjectValidationError: If the project model is unusable
            BuildError: If resolution or any task fails
        """
        set_verbose(self.options.verbose)
        start = time.monotonic()
        log_header("modbuild", __version__)

        with TimedLogger(f"Validating project {self.project.name}", phase=(1, 3)):
            validate_project(self.project)

        fetched: tuple[FetchPlan, ...] = ()
        if self.options.offline:
            self.logbook.info("Offline mode, skipping resolution of missing modules")
        else:
            with TimedLogger(RESOLVE_TITLE, phase=(2, 3)) as timed:
                fetched = self.resolve()
                timed.detail(f"{len(fetched)} module(s) fetched")

        task = self.create_task()
        with TimedLogger(task.title, phase=(3, 3)):
            outcome = self.execute(task)

        duration = time.monotonic() - start
        log_build_complete(task.title, duration)
        return BuildSummary(self.project, outcome, fetched, self.logbook, duration)

    def resolve(self) -> tuple[FetchPlan, ...]:
        resolver = Resolver(
            self.project,
            self.workspace,
            self.options,
            repository=self.repository,
            logbook=self.logbook,
            platform_modules=self.platform_modules,
        )
        try:
            return tuple(resolver.resolve())
        except ResolutionError as e:
            log_error(f"{RESOLVE_TITLE}: {e}")
            raise BuildError(RESOLVE_TITLE, e) from e

    def execute(self, task: Task) -> ExecutionOutcome:
        display: Optional[TaskProgressDisplay] = None
        callback: TaskCallback = NullCallback()
        if self.options.progress and sys.stdout.isatty():
            display = TaskProgressDisplay(self.console, task.title)
            display.register_tree(task)
            callback = display
        executor = TaskExecutor(self.runner, workers=self.options.workers, callback=callback)
        if display is not None:
            display.start()
        try:
            outcome = executor.execute(task)
        finally:
            if display is not None:
                display.stop()
        if not outcome.success:
            for failure in outcome.failures:
                log_error(failure.format())
            raise BuildError(task.title, TaskExecutionError(outcome.failures))
        return outcome
