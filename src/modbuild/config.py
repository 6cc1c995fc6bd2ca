"""
Build configuration.

BuildOptions collects every knob of a build. Defaults suit an interactive
build; from_environment() overlays MODBUILD_* environment variables:

- MODBUILD_WORKERS: maximum number of concurrently running tools
- MODBUILD_VERBOSE=1: print every tool invocation
- MODBUILD_DRY_RUN=1: record tool invocations without running them
- MODBUILD_OFFLINE=1: skip resolving missing modules
- MODBUILD_HOME: user cache directory (default ~/.modbuild)
- MODBUILD_REPOSITORY: mirror replacing Maven Central in download URIs
- MODBUILD_INDEX_URI: base URI of the module-maven/module-version indices
- MODBUILD_NETWORK_TIMEOUT: seconds before a download attempt fails
"""

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_INDEX_URI = "https://github.com/sormuras/modules/raw/master"
DEFAULT_NETWORK_TIMEOUT = 30.0

_TRUE_VALUES = ("1", "true", "yes", "on")


def default_home() -> Path:
    """User cache directory, honoring MODBUILD_HOME."""
    home = os.environ.get("MODBUILD_HOME")
    return Path(home) if home else Path.home() / ".modbuild"


@dataclass(frozen=True)
class BuildOptions:
    """Options of one build.

    Attributes:
        workers: Maximum number of concurrently running tools (None = CPU count)
        verbose: Print every tool invocation and pass verbose flags to tools
        dry_run: Record tool invocations as successful without running them
        offline: Skip the resolution of missing modules
        progress: Render a live task table while building
        home: User cache directory; index files are cached in ``home/modules``
        repository_mirror: Replaces Maven Central in download URIs
        index_uri: Base URI of module-maven.properties and module-version.properties
        network_timeout: Seconds before a download attempt fails
        java_home: JDK used to run tools (None = JAVA_HOME, then PATH)
        platform_modules: Host module set (None = ask ``java --list-modules``)
        document: Generate API documentation for the main realm
        link_image: Link a custom runtime image for the main realm
        print_tool_versions: Print the versions of the foundation tools first
        launcher: Name of the image launcher (defaults to the project name)
    """

    workers: Optional[int] = None
    verbose: bool = False
    dry_run: bool = False
    offline: bool = False
    progress: bool = False
    home: Path = field(default_factory=default_home)
    repository_mirror: Optional[str] = None
    index_uri: str = DEFAULT_INDEX_URI
    network_timeout: float = DEFAULT_NETWORK_TIMEOUT
    java_home: Optional[Path] = None
    platform_modules: Optional[frozenset[str]] = None
    document: bool = False
    link_image: bool = False
    print_tool_versions: bool = False
    launcher: Optional[str] = None

    @property
    def modules_cache(self) -> Path:
        return self.home / "modules"

    def with_overrides(self, **overrides: Any) -> "BuildOptions":
        return replace(self, **overrides)

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> "BuildOptions":
        """Create options from MODBUILD_* environment variables.

        Args:
            environ: Environment mapping (defaults to os.environ)
            **overrides: Values taking precedence over the environment

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        workers = env.get("MODBUILD_WORKERS")
        if workers:
            try:
                values["workers"] = int(workers)
            except ValueError as e:
                raise ValueError(f"MODBUILD_WORKERS must be an integer, got {workers!r}") from e
            if values["workers"] < 1:
                raise ValueError(f"MODBUILD_WORKERS must be at least 1, got {workers!r}")

        for name, attribute in (
            ("MODBUILD_VERBOSE", "verbose"),
            ("MODBUILD_DRY_RUN", "dry_run"),
            ("MODBUILD_OFFLINE", "offline"),
        ):
            if name in env:
                values[attribute] = env[name].strip().lower() in _TRUE_VALUES

        if env.get("MODBUILD_HOME"):
            values["home"] = Path(env["MODBUILD_HOME"])
        if env.get("MODBUILD_REPOSITORY"):
            values["repository_mirror"] = env["MODBUILD_REPOSITORY"].rstrip("/")
        if env.get("MODBUILD_INDEX_URI"):
            values["index_uri"] = env["MODBUILD_INDEX_URI"].rstrip("/")

        timeout = env.get("MODBUILD_NETWORK_TIMEOUT")
        if timeout:
            try:
                values["network_timeout"] = float(timeout)
            except ValueError as e:
                raise ValueError(f"MODBUILD_NETWORK_TIMEOUT must be a number, got {timeout!r}") from e

        values.update(overrides)
        options = cls(**values)
        logger.debug(f"Build options: {options}")
        return options
