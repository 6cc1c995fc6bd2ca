"""Dependency resolver.

Computes which externally required modules are missing and fetches them
into the library directory, repeating until nothing is missing:

    SCANNING -> FETCHING -> SCANNING -> ... -> CONVERGED | FAILED

Each scan rebuilds the missing set from scratch:

    missing = required - (declared by project | library | platform)

where "required" collects every ``requires`` of project units and of
modules already present in the library. An empty missing set is the only
successful end state. An unmapped module, a version conflict, or any
failed fetch moves the resolver to FAILED and raises.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from modbuild.config import BuildOptions
from modbuild.errors import ResolutionError, UnmappedModuleError, VersionConflictError
from modbuild.execution.logbook import Logbook
from modbuild.output import log_detail
from modbuild.project.archive import ARCHIVE_ERRORS, describe_archive
from modbuild.project.models import Coordinate, Library, Project
from modbuild.project.workspace import Workspace

from .maven import (
    MODULE_MAVEN_PROPERTIES,
    MODULE_URI_PROPERTIES,
    MODULE_VERSION_PROPERTIES,
    LazyMapping,
    Lookup,
    repository_uri,
)
from .properties import parse_properties, read_properties
from .repository import RemoteRepository, Repository, fetch_cached, write_atomically
from .survey import MissingModuleSet, ModuleSurvey, list_platform_modules

logger = logging.getLogger(__name__)

JUNIT_JUPITER_ENGINE = "org.junit.jupiter.engine"
JUNIT_VINTAGE_ENGINE = "org.junit.vintage.engine"
JUNIT_PLATFORM_CONSOLE = "org.junit.platform.console"


class ResolverState(Enum):
    """State of the resolution loop."""

    SCANNING = "scanning"
    FETCHING = "fetching"
    CONVERGED = "converged"
    FAILED = "failed"


@dataclass(frozen=True)
class FetchPlan:
    """Where a missing module comes from and where it goes.

    Attributes:
        module: Module name
        uri: Download URI
        target: File in the library directory
        coordinate: Maven coordinate, None for pinned direct URIs
    """

    module: str
    uri: str
    target: Path
    coordinate: Optional[Coordinate] = None


def add_test_support_modules(required: MissingModuleSet, library: Library) -> None:
    """Add JUnit engines and launcher modules implied by required test APIs."""
    if library.add_missing_test_engines:
        if "org.junit.jupiter" in required or "org.junit.jupiter.api" in required:
            required.setdefault(JUNIT_JUPITER_ENGINE, set())
        if "junit" in required:
            required.setdefault(JUNIT_VINTAGE_ENGINE, set())
    if library.add_missing_console_launcher and JUNIT_PLATFORM_CONSOLE not in required:
        if JUNIT_JUPITER_ENGINE in required or JUNIT_VINTAGE_ENGINE in required:
            required[JUNIT_PLATFORM_CONSOLE] = set()


class Resolver:
    """Fetches missing external modules into the library directory.

    Args:
        project: Project whose requirements are resolved.
        workspace: Addressing scheme; fetched modules go to its library dir.
        options: Build options (cache home, index URI, mirror, workers).
        repository: Source of artifacts (defaults to a RemoteRepository).
        logbook: Build record receiving one entry per fetch.
        platform_modules: Host module set (defaults to options, then probing
            the host JDK).
    """

    def __init__(
        self,
        project: Project,
        workspace: Workspace,
        options: BuildOptions,
        repository: Optional[Repository] = None,
        logbook: Optional[Logbook] = None,
        platform_modules: Optional[frozenset[str]] = None,
    ) -> None:
        self.project = project
        self.library = project.library
        self.workspace = workspace
        self.options = options
        self.repository: Repository = (
            repository if repository is not None else RemoteRepository(timeout=options.network_timeout)
        )
        self.logbook = logbook if logbook is not None else Logbook()
        self._platform_modules = platform_modules if platform_modules is not None else options.platform_modules
        self.state = ResolverState.SCANNING
        self.fetched: list[FetchPlan] = []
        lib = workspace.library_dir()
        self._coordinates = Lookup(
            "group:artifact",
            self.library.coordinate_mapper,
            LazyMapping(lambda: read_properties(lib / MODULE_MAVEN_PROPERTIES)),
            LazyMapping(lambda: self._remote_index(MODULE_MAVEN_PROPERTIES)),
        )
        self._versions = Lookup(
            "version",
            self.library.version_mapper,
            LazyMapping(lambda: read_properties(lib / MODULE_VERSION_PROPERTIES)),
            LazyMapping(lambda: self._remote_index(MODULE_VERSION_PROPERTIES)),
        )
        self._direct_uris = Lookup(
            "uri",
            self.library.module_uris,
            LazyMapping(lambda: read_properties(lib / MODULE_URI_PROPERTIES)),
        )

    # ─── Inventories ───

    def platform_modules(self) -> frozenset[str]:
        if self._platform_modules is None:
            self._platform_modules = list_platform_modules(self.options.java_home)
        return self._platform_modules

    def library_directories(self) -> list[Path]:
        return [self.workspace.library_dir(), *self.library.search_paths]

    def find_missing(self) -> MissingModuleSet:
        """Rebuild the set of missing modules from fresh surveys."""
        project_survey = ModuleSurvey.of_declarations(self.project.declarations())
        directories = self.library_directories()
        try:
            library_survey = ModuleSurvey.of_directories(directories)
        except ARCHIVE_ERRORS as e:
            locations = ", ".join(str(directory) for directory in directories)
            raise ResolutionError(f"Surveying library modules in {locations} failed: {e}") from e

        missing: MissingModuleSet = {}
        project_survey.put_requires_to(missing)
        library_survey.put_requires_to(missing)
        add_test_support_modules(missing, self.library)
        for declared in (project_survey.declared, library_survey.declared, self.platform_modules()):
            for name in declared:
                missing.pop(name, None)

        logger.debug(
            f"Survey: project declares {sorted(project_survey.declared)}, "
            f"library declares {sorted(library_survey.declared)}, missing {sorted(missing)}"
        )
        return missing

    # ─── Planning ───

    def select_version(self, module: str, versions: set[str]) -> str:
        """Pick the version to fetch for an unpinned module.

        Raises:
            VersionConflictError: If distinct versions were requested
            UnmappedModuleError: If no version was requested and none is known
        """
        if len(versions) > 1:
            raise VersionConflictError(module, versions)
        if versions:
            return next(iter(versions))
        version = self._versions.find(module)
        if version is None:
            raise UnmappedModuleError(module, "no version requested and no default version known")
        return version

    def plan(self, module: str, versions: set[str]) -> FetchPlan:
        """Determine where a missing module is fetched from.

        Raises:
            UnmappedModuleError: If no coordinate or version is known
            VersionConflictError: If distinct versions were requested
        """
        lib = self.workspace.library_dir()
        direct = self._direct_uris.find(module)
        if direct is not None:
            return FetchPlan(module=module, uri=direct, target=lib / f"{module}.jar")

        version = self.select_version(module, versions)
        group_artifact = self._coordinates.find(module)
        if group_artifact is None:
            raise UnmappedModuleError(module, "no Maven group:artifact known")
        try:
            coordinate = Coordinate.parse(group_artifact, version)
        except ValueError as e:
            raise UnmappedModuleError(module, str(e)) from e
        uri = repository_uri(coordinate, self.library.repository_mapper, self.options.repository_mirror)
        return FetchPlan(module=module, uri=uri, target=lib / f"{module}-{version}.jar", coordinate=coordinate)

    # ─── Loop ───

    def resolve(self) -> list[FetchPlan]:
        """Fetch missing modules until none is missing.

        Returns:
            Every fetch performed, in order.

        Raises:
            ResolutionError: If a module cannot be mapped or fetched, or a
                fetched artifact does not satisfy the module it was fetched for
        """
        self.state = ResolverState.SCANNING
        try:
            while True:
                missing = self.find_missing()
                if not missing:
                    self.state = ResolverState.CONVERGED
                    self.logbook.debug(f"All required modules are locatable ({len(self.fetched)} fetched)")
                    return list(self.fetched)
                self._check_progress(missing)
                self.state = ResolverState.FETCHING
                plans = [self.plan(module, missing[module]) for module in sorted(missing)]
                self._fetch_all(plans)
                self.fetched.extend(plans)
                self.state = ResolverState.SCANNING
        except Exception:
            self.state = ResolverState.FAILED
            raise

    def _check_progress(self, missing: MissingModuleSet) -> None:
        for plan in self.fetched:
            if plan.module in missing:
                raise ResolutionError(
                    f"Module {plan.module} is still missing after fetching {plan.uri}",
                    module=plan.module,
                    uri=plan.uri,
                )

    def _fetch_all(self, plans: list[FetchPlan]) -> None:
        workers = min(self.options.workers or 4, len(plans))
        with ThreadPoolExecutor(max_workers=max(1, workers), thread_name_prefix="fetch") as pool:
            futures = [pool.submit(self._fetch, plan) for plan in plans]
            errors = []
            for plan, future in zip(plans, futures):
                error = future.exception()
                if error is not None:
                    self.logbook.error(f"Fetching {plan.module} from {plan.uri} failed: {error}")
                    errors.append((plan, error))
        if errors:
            plan, error = errors[0]
            if isinstance(error, ResolutionError):
                raise error
            raise ResolutionError(
                f"Fetching module {plan.module} from {plan.uri} failed: {error}",
                module=plan.module,
                uri=plan.uri,
            ) from error

    def _fetch(self, plan: FetchPlan) -> None:
        data = self.repository.fetch(plan.uri)
        try:
            write_atomically(plan.target, data, check=describe_archive)
        except ARCHIVE_ERRORS as e:
            raise ResolutionError(
                f"Artifact fetched for module {plan.module} from {plan.uri} is not a module archive: {e}",
                module=plan.module,
                uri=plan.uri,
            ) from e
        self.logbook.info(f"Fetched {plan.module} from {plan.uri} ({len(data)} bytes)")
        log_detail(f"Fetched {plan.target.name}")

    def _remote_index(self, file_name: str) -> dict[str, str]:
        uri = f"{self.options.index_uri.rstrip('/')}/{file_name}"
        target = self.options.modules_cache / file_name
        try:
            path = fetch_cached(self.repository, uri, target)
        except Exception as e:
            raise ResolutionError(f"Loading module index {uri} failed: {e}", uri=uri) from e
        return parse_properties(path.read_text(encoding="utf-8", errors="replace"))
