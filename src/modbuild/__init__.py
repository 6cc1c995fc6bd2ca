"""modbuild - build orchestrator for modular Java source trees."""

__version__ = "0.3.0"

from modbuild.build import Builder, BuildSummary  # noqa: E402
from modbuild.config import BuildOptions  # noqa: E402
from modbuild.errors import (  # noqa: E402
    BuildError,
    ModbuildError,
    ProjectValidationError,
    ResolutionError,
    TaskExecutionError,
    UnmappedModuleError,
    VersionConflictError,
)

__all__ = [
    "BuildError",
    "BuildOptions",
    "BuildSummary",
    "Builder",
    "ModbuildError",
    "ProjectValidationError",
    "ResolutionError",
    "TaskExecutionError",
    "UnmappedModuleError",
    "VersionConflictError",
    "__version__",
]
