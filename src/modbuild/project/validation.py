"""Structural validation of a project model.

Runs before anything is resolved or executed. Every problem found is
collected and reported together in one ProjectValidationError.
"""

import logging
from collections import Counter

from modbuild.errors import ProjectValidationError

from .models import ModuleUnit, Project, Realm

logger = logging.getLogger(__name__)


def find_problems(project: Project) -> list[str]:
    """Collect structural problems of a project.

    Returns:
        Human-readable problem descriptions, empty if the project is valid
    """
    if not any(realm.units for realm in project.realms):
        return ["no unit present"]

    problems: list[str] = []
    duplicated_realms = [name for name, count in Counter(r.name for r in project.realms).items() if count > 1]
    for name in duplicated_realms:
        problems.append(f"realm {name} is declared more than once")

    seen: set[str] = set()
    for realm in project.realms:
        for upstream in realm.upstreams:
            if upstream not in seen:
                problems.append(f"realm {realm.name} reads upstream realm {upstream} which is not built before it")
        seen.add(realm.name)
        problems.extend(_realm_problems(realm))
    return problems


def _realm_problems(realm: Realm) -> list[str]:
    problems = []
    counts = Counter(unit.name for unit in realm.units)
    for name, count in counts.items():
        if count > 1:
            problems.append(f"module {name} is declared {count} times in realm {realm.name}")
    for unit in realm.units:
        problems.extend(f"{unit.name} ({realm.name}): {problem}" for problem in _unit_problems(unit))
    return problems


def _unit_problems(unit: ModuleUnit) -> list[str]:
    if not unit.sources:
        return ["no source directory"]
    problems = []
    if unit.is_multi_release():
        releases = Counter(source.release for source in unit.sources)
        for release, count in sorted(releases.items()):
            if count > 1:
                problems.append(f"release {release} is targeted by {count} sources")
        declaring = unit.declaring_sources()
        if len(declaring) != 1:
            problems.append(f"expected exactly one source holding {unit.info.name}, found {len(declaring)}")
    duplicating = [source for source in unit.sources if source.duplicate_descriptor]
    if len(duplicating) > 1:
        problems.append(f"{len(duplicating)} sources duplicate the module descriptor, at most one may")
    return problems


def validate_project(project: Project) -> None:
    """Check the project model before building it.

    Raises:
        ProjectValidationError: If any structural problem is found
    """
    problems = find_problems(project)
    if problems:
        for problem in problems:
            logger.error(f"Project {project.name}: {problem}")
        raise ProjectValidationError("project validation failed: " + "; ".join(problems))
    logger.debug(f"Project {project.name} is valid ({len(project.unit_names())} units)")
