"""Project model - immutable description of what to build.

This module defines:
- Requirement / Provision / ModuleDeclaration: the parsed content of a
  module declaration file (module-info.java)
- Source: one source directory compiled against one release level
- ModuleUnit: a named compilation unit with its declaration and sources
- Realm: an ordered build phase (e.g. "main", "test") grouping units
- Coordinate / Library: where missing external modules come from
- Project: the root of the model

Design:
    Every type is a frozen dataclass. Realms name their upstream realms
    instead of holding references to them, and units are found by name
    through the owning Realm, so the model is a plain tree that never
    refers back to its parents.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, Mapping, Optional

MAVEN_CENTRAL = "https://repo1.maven.org/maven2"


@dataclass(frozen=True)
class Requirement:
    """A ``requires`` directive.

    Attributes:
        name: Required module name
        version: Optional version noted after the name (``requires a /*1.2*/;``)
        modifiers: Any of "transitive", "static", "mandated"
    """

    name: str
    version: Optional[str] = None
    modifiers: frozenset[str] = frozenset()

    @property
    def is_static(self) -> bool:
        return "static" in self.modifiers

    @property
    def is_mandated(self) -> bool:
        return "mandated" in self.modifiers


@dataclass(frozen=True)
class Provision:
    """A ``provides <service> with <impl>, ...`` directive."""

    service: str
    implementations: tuple[str, ...]


@dataclass(frozen=True)
class ModuleDeclaration:
    """Structured content of a module declaration.

    Attributes:
        name: Module name
        open: Whether the module is declared ``open``
        requires: Required modules, in declaration order
        exports: Exported package names
        opens: Opened package names
        uses: Used service type names
        provides: Provided service implementations
        main_class: Entry point class, if declared
        version: Module version, if recorded (compiled descriptors only)
    """

    name: str
    open: bool = False
    requires: tuple[Requirement, ...] = ()
    exports: tuple[str, ...] = ()
    opens: tuple[str, ...] = ()
    uses: tuple[str, ...] = ()
    provides: tuple[Provision, ...] = ()
    main_class: Optional[str] = None
    version: Optional[str] = None

    def required_names(self) -> list[str]:
        return [requirement.name for requirement in self.requires]


@dataclass(frozen=True)
class Source:
    """A source directory targeting one release level.

    Attributes:
        path: Directory holding the sources
        release: Target release level, 0 means untargeted (realm default)
        duplicate_descriptor: Copy the compiled module-info.class of this
            release into the root of the archive as well
    """

    path: Path
    release: int = 0
    duplicate_descriptor: bool = False

    def is_targeted(self) -> bool:
        return self.release != 0


@dataclass(frozen=True)
class ModuleUnit:
    """A compilation unit producing one module.

    Attributes:
        info: Path of the module declaration file
        declaration: Parsed module declaration
        sources: One or more source directories
        resources: Resource directories copied into the archive root
        version: Module version, overriding the project version
        pom: External packaging metadata (Maven POM file)
    """

    info: Path
    declaration: ModuleDeclaration
    sources: tuple[Source, ...]
    resources: tuple[Path, ...] = ()
    version: Optional[str] = None
    pom: Optional[Path] = None

    @property
    def name(self) -> str:
        return self.declaration.name

    @property
    def main_class(self) -> Optional[str]:
        return self.declaration.main_class

    def releases(self) -> list[int]:
        """Sorted, distinct release levels of all sources."""
        return sorted({source.release for source in self.sources})

    def is_multi_release(self) -> bool:
        return len(self.releases()) > 1

    def sources_by_release(self) -> dict[int, Source]:
        """Map release level to its source directory, ascending by release."""
        mapping: dict[int, Source] = {}
        for source in sorted(self.sources, key=lambda s: s.release):
            mapping.setdefault(source.release, source)
        return mapping

    def declaring_sources(self) -> list[Source]:
        """Sources whose directory holds the module declaration file."""
        return [source for source in self.sources if source.path == self.info.parent]

    def declaring_source(self) -> Source:
        """The single source authoritative for the module declaration.

        Raises:
            ValueError: If zero or several sources hold the declaration
        """
        declaring = self.declaring_sources()
        if len(declaring) != 1:
            raise ValueError(
                f"Unit {self.name} needs exactly one source holding {self.info.name}, found {len(declaring)}"
            )
        return declaring[0]

    def base_declaration_release(self) -> int:
        return self.declaring_source().release


@dataclass(frozen=True)
class Realm:
    """An ordered build phase grouping units with shared compiler settings.

    Attributes:
        name: Realm name ("main", "test", ...)
        units: Compilation units of this realm
        upstreams: Names of realms whose compiled modules this realm reads
        compiler_options: Extra options passed to every compiler call
        release: Default release level, 0 means host platform default
        test: Whether this realm holds tests
    """

    name: str
    units: tuple[ModuleUnit, ...] = ()
    upstreams: tuple[str, ...] = ()
    compiler_options: tuple[str, ...] = ()
    release: int = 0
    test: bool = False

    def find_unit(self, name: str) -> Optional[ModuleUnit]:
        for unit in self.units:
            if unit.name == name:
                return unit
        return None

    def unit(self, name: str) -> ModuleUnit:
        unit = self.find_unit(name)
        if unit is None:
            raise KeyError(f"Unit {name} not found in realm {self.name}")
        return unit

    def unit_names(self) -> list[str]:
        return [unit.name for unit in self.units]

    def to_release(self, release: int) -> int:
        """Effective release level of a source: its own, else the realm's."""
        return release if release != 0 else self.release

    def single_release_units(self) -> list[ModuleUnit]:
        return [unit for unit in self.units if not unit.is_multi_release()]

    def multi_release_units(self) -> list[ModuleUnit]:
        return [unit for unit in self.units if unit.is_multi_release()]

    def main_unit(self) -> Optional[ModuleUnit]:
        """First unit declaring a main class, if any."""
        for unit in self.units:
            if unit.main_class:
                return unit
        return None


@dataclass(frozen=True)
class Coordinate:
    """A Maven 2 repository coordinate.

    Attributes:
        group: Group id ("org.junit.jupiter")
        artifact: Artifact id ("junit-jupiter-api")
        version: Version string
        classifier: Optional classifier appended to the file name
    """

    group: str
    artifact: str
    version: str
    classifier: str = ""

    @classmethod
    def parse(cls, group_colon_artifact: str, version: str) -> "Coordinate":
        """Create a coordinate from ``group:artifact`` and a version.

        Raises:
            ValueError: If the string is not of the form ``group:artifact``
        """
        group, sep, artifact = group_colon_artifact.strip().partition(":")
        if not sep or not group or not artifact:
            raise ValueError(f"Expected group:artifact, but got: {group_colon_artifact!r}")
        return cls(group=group, artifact=artifact, version=version)

    def file_name(self, extension: str = "jar") -> str:
        classifier = f"-{self.classifier}" if self.classifier else ""
        return f"{self.artifact}-{self.version}{classifier}.{extension}"

    def to_uri(self, repository: str = MAVEN_CENTRAL, extension: str = "jar") -> str:
        """Render the download URI below a Maven 2 repository base URI."""
        group_path = self.group.replace(".", "/")
        base = repository.rstrip("/")
        return f"{base}/{group_path}/{self.artifact}/{self.version}/{self.file_name(extension)}"

    def __str__(self) -> str:
        return f"{self.group}:{self.artifact}:{self.version}"


def _no_mapping(module: str) -> Optional[str]:
    del module  # Unused
    return None


def _maven_central(group: str, version: str) -> str:
    del group, version  # Unused
    return MAVEN_CENTRAL


@dataclass(frozen=True)
class Library:
    """Where and how missing external modules are obtained.

    Attributes:
        search_paths: Directories holding already available modules
        module_uris: Pinned direct URIs, keyed by module name
        coordinate_mapper: Module name to ``group:artifact`` (or None)
        version_mapper: Module name to default version (or None)
        repository_mapper: (group, version) to Maven repository base URI
        add_missing_test_engines: Add JUnit engines when their APIs are required
        add_missing_console_launcher: Add the JUnit console launcher too
    """

    search_paths: tuple[Path, ...] = ()
    module_uris: Mapping[str, str] = field(default_factory=dict)
    coordinate_mapper: Callable[[str], Optional[str]] = _no_mapping
    version_mapper: Callable[[str], Optional[str]] = _no_mapping
    repository_mapper: Callable[[str, str], str] = _maven_central
    add_missing_test_engines: bool = True
    add_missing_console_launcher: bool = True


@dataclass(frozen=True)
class Project:
    """Root of the project model.

    Attributes:
        name: Project name
        version: Project version, used for every unit without its own
        realms: Ordered build realms
        library: External module configuration
    """

    name: str
    version: str
    realms: tuple[Realm, ...] = ()
    library: Library = field(default_factory=Library)

    def find_realm(self, name: str) -> Optional[Realm]:
        for realm in self.realms:
            if realm.name == name:
                return realm
        return None

    def realm(self, name: str) -> Realm:
        realm = self.find_realm(name)
        if realm is None:
            raise KeyError(f"Realm {name} not found in project {self.name}")
        return realm

    def main_realm(self) -> Optional[Realm]:
        """First realm that is not a test realm."""
        for realm in self.realms:
            if not realm.test:
                return realm
        return None

    def units(self) -> Iterator[tuple[Realm, ModuleUnit]]:
        for realm in self.realms:
            for unit in realm.units:
                yield realm, unit

    def unit_names(self) -> set[str]:
        return {unit.name for _, unit in self.units()}

    def declarations(self) -> list[ModuleDeclaration]:
        return [unit.declaration for _, unit in self.units()]

    def module_version(self, unit: ModuleUnit) -> str:
        return unit.version or self.version

    def name_and_version(self) -> str:
        return f"{self.name} {self.version}"
