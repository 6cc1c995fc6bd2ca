"""Module surveys.

A survey answers two questions about a set of modules: which module names
they declare, and which module names (with which versions) they require.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from modbuild.errors import ResolutionError
from modbuild.project.archive import find_modules
from modbuild.project.models import ModuleDeclaration
from modbuild.subprocess_utils import find_executable, run_captured

logger = logging.getLogger(__name__)

# Module name to the concrete versions requested for it
MissingModuleSet = dict[str, set[str]]


@dataclass
class ModuleSurvey:
    """Declared and required modules of a module set.

    Attributes:
        declared: Names of the surveyed modules
        requires: Required module names mapped to requested versions
    """

    declared: set[str] = field(default_factory=set)
    requires: MissingModuleSet = field(default_factory=dict)

    def add(self, declaration: ModuleDeclaration, follow_static: bool = True) -> None:
        """Add one module to the survey.

        Args:
            declaration: Declaration of the module
            follow_static: Whether ``requires static`` counts as required.
                Project sources need those at compile time; modules found in
                the library do not pull them in.
        """
        self.declared.add(declaration.name)
        for requirement in declaration.requires:
            if requirement.is_mandated or (requirement.is_static and not follow_static):
                continue
            versions = self.requires.setdefault(requirement.name, set())
            if requirement.version:
                versions.add(requirement.version)

    @classmethod
    def of_declarations(cls, declarations: Iterable[ModuleDeclaration]) -> "ModuleSurvey":
        """Survey project declarations."""
        survey = cls()
        for declaration in declarations:
            survey.add(declaration)
        return survey

    @classmethod
    def of_directories(cls, directories: Iterable[Path]) -> "ModuleSurvey":
        """Survey modules found in directories (archives and exploded modules).

        Automatic modules declare their name but require nothing.
        """
        survey = cls()
        for reference in find_modules(directories):
            if reference.declaration is None:
                survey.declared.add(reference.name)
            else:
                survey.add(reference.declaration, follow_static=False)
        return survey

    def put_requires_to(self, target: MissingModuleSet) -> None:
        """Merge the required modules of this survey into ``target``."""
        for name, versions in self.requires.items():
            target.setdefault(name, set()).update(versions)


def list_platform_modules(java_home: Optional[Path] = None) -> frozenset[str]:
    """Ask the host JDK for its system modules (``java --list-modules``).

    Raises:
        ResolutionError: If the launcher cannot be found or fails
    """
    executable = find_executable("java", java_home)
    if executable is None:
        raise ResolutionError("Cannot list platform modules: java launcher not found")
    code, out, err = run_captured([executable, "--list-modules"])
    if code != 0:
        raise ResolutionError(f"Cannot list platform modules: java exited with code {code}: {err.strip()}")
    modules = frozenset(line.strip().split("@", 1)[0] for line in out.splitlines() if line.strip())
    logger.debug(f"Platform declares {len(modules)} modules")
    return modules
