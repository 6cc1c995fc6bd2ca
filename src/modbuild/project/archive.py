"""Artifact inspection.

Describes modules found on disk, either packaged as ``.jar`` archives or as
exploded directories holding a compiled ``module-info.class``:

- explicit modules are read from their compiled descriptor
  (root entry first, then the highest ``META-INF/versions/<n>/`` entry)
- automatic modules take their name from the manifest
  ``Automatic-Module-Name`` attribute or, failing that, from the file name

Also provides MultiReleaseArchive, which answers which entry a reader at a
given platform level observes inside a multi-release archive.
"""

import logging
import re
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from .classfile import ClassFormatError, read_module_descriptor
from .models import ModuleDeclaration

logger = logging.getLogger(__name__)

DESCRIPTOR = "module-info.class"
MANIFEST = "META-INF/MANIFEST.MF"
VERSIONS_PREFIX = "META-INF/versions/"

_VERSION_START = re.compile(r"-(\d+(\.|$))")
_NON_ALPHANUMERIC = re.compile(r"[^A-Za-z0-9]")
_REPEATING_DOTS = re.compile(r"\.{2,}")

# Raised when a file is not a readable module archive
ARCHIVE_ERRORS = (zipfile.BadZipFile, ClassFormatError)


@dataclass(frozen=True)
class ModuleReference:
    """A module located on disk.

    Attributes:
        name: Module name
        location: Archive file or exploded directory
        declaration: Compiled declaration, None for automatic modules
    """

    name: str
    location: Path
    declaration: Optional[ModuleDeclaration] = None

    @property
    def automatic(self) -> bool:
        return self.declaration is None


def automatic_module_name(file_name: str) -> str:
    """Derive an automatic module name from an archive file name.

    Examples:
        "foo-bar-1.2.3.jar" -> "foo.bar"
        "commons_io.jar" -> "commons.io"
    """
    name = file_name[:-4] if file_name.endswith(".jar") else file_name
    match = _VERSION_START.search(name)
    if match:
        name = name[: match.start()]
    name = _NON_ALPHANUMERIC.sub(".", name)
    name = _REPEATING_DOTS.sub(".", name)
    return name.strip(".")


def parse_manifest(text: str) -> dict[str, str]:
    """Parse main attributes of a JAR manifest (continuation lines joined)."""
    attributes: dict[str, str] = {}
    key: Optional[str] = None
    for raw in text.splitlines():
        if not raw:
            break  # End of the main section
        if raw.startswith(" ") and key is not None:
            attributes[key] += raw[1:]
            continue
        key, sep, value = raw.partition(":")
        if not sep:
            key = None
            continue
        key = key.strip()
        attributes[key] = value.strip()
    return attributes


def _versioned_descriptors(names: Iterable[str]) -> list[tuple[int, str]]:
    found = []
    for name in names:
        if not name.startswith(VERSIONS_PREFIX) or not name.endswith("/" + DESCRIPTOR):
            continue
        level = name[len(VERSIONS_PREFIX) :].split("/", 1)[0]
        if level.isdigit():
            found.append((int(level), name))
    return sorted(found)


def describe_archive(path: Path) -> ModuleReference:
    """Describe the module packaged in a ``.jar`` archive.

    Raises:
        zipfile.BadZipFile: If the file is not a zip archive
        ClassFormatError: If the packaged descriptor is malformed
    """
    with zipfile.ZipFile(path) as archive:
        names = set(archive.namelist())
        if DESCRIPTOR in names:
            declaration = read_module_descriptor(archive.read(DESCRIPTOR))
            return ModuleReference(declaration.name, path, declaration)
        versioned = _versioned_descriptors(names)
        if versioned:
            declaration = read_module_descriptor(archive.read(versioned[-1][1]))
            return ModuleReference(declaration.name, path, declaration)
        if MANIFEST in names:
            manifest = parse_manifest(archive.read(MANIFEST).decode("utf-8", errors="replace"))
            name = manifest.get("Automatic-Module-Name")
            if name:
                return ModuleReference(name, path)
    return ModuleReference(automatic_module_name(path.name), path)


def describe_directory(path: Path) -> Optional[ModuleReference]:
    """Describe an exploded module directory, None if it holds no descriptor."""
    descriptor = path / DESCRIPTOR
    if not descriptor.is_file():
        return None
    declaration = read_module_descriptor(descriptor.read_bytes())
    return ModuleReference(declaration.name, path, declaration)


def find_modules(directories: Iterable[Path]) -> list[ModuleReference]:
    """Describe every module found directly inside the given directories.

    Missing directories are skipped. Within one directory, archives and
    exploded modules are visited in file name order.
    """
    references: list[ModuleReference] = []
    for directory in directories:
        if not directory.is_dir():
            logger.debug(f"Skipping missing module directory {directory}")
            continue
        for entry in sorted(directory.iterdir()):
            if entry.is_file() and entry.suffix == ".jar":
                references.append(describe_archive(entry))
            elif entry.is_dir():
                reference = describe_directory(entry)
                if reference is not None:
                    references.append(reference)
    return references


class MultiReleaseArchive:
    """Read-side view of a (possibly) multi-release archive.

    An entry name such as ``com/example/Foo.class`` resolves, for a reader
    running at platform level N, to the entry under the highest
    ``META-INF/versions/<v>/`` with v <= N, else to the root entry.
    """

    def __init__(self, path: Path):
        self.path = path
        with zipfile.ZipFile(path) as archive:
            self.names = set(archive.namelist())
            manifest = archive.read(MANIFEST).decode("utf-8", errors="replace") if MANIFEST in self.names else ""
        self.multi_release = parse_manifest(manifest).get("Multi-Release", "").lower() == "true"

    def versions(self) -> list[int]:
        """Release levels that have a versioned layer, ascending."""
        levels = set()
        for name in self.names:
            if name.startswith(VERSIONS_PREFIX):
                level = name[len(VERSIONS_PREFIX) :].split("/", 1)[0]
                if level.isdigit():
                    levels.add(int(level))
        return sorted(levels)

    def resolve(self, entry: str, level: int) -> Optional[str]:
        """Name of the archive entry a reader at ``level`` observes, or None."""
        if self.multi_release:
            for version in reversed(self.versions()):
                if version <= level:
                    candidate = f"{VERSIONS_PREFIX}{version}/{entry}"
                    if candidate in self.names:
                        return candidate
        return entry if entry in self.names else None

    def read(self, entry: str, level: int) -> bytes:
        """Read the content a reader at ``level`` observes for ``entry``.

        Raises:
            KeyError: If no layer holds the entry
        """
        resolved = self.resolve(entry, level)
        if resolved is None:
            raise KeyError(f"{entry} not found in {self.path.name} at level {level}")
        with zipfile.ZipFile(self.path) as archive:
            return archive.read(resolved)
