"""Multi-release packager.

Plans the tasks that build one module from sources targeting several
release levels:

1. one compile task per release, ascending. The source holding the module
   declaration compiles in module form; every other source compiles in
   class-path form. Releases above the lowest ("base") one read the base
   output, as ``--patch-module`` or on the class path.
2. one module archive: base output and resources at the root, every
   further release as a ``--release <r>`` layer. A source flagged to
   duplicate its descriptor also contributes its ``module-info.class`` to
   the root; its layer is dropped when the declaration is all it holds.
3. one sources archive with the same layering over the source directories.

Readers at platform level N see the root entries overridden by every layer
up to N, the highest one last (see ArchiveLayout.select).
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from modbuild.config import BuildOptions
from modbuild.execution.models import Task
from modbuild.project.models import ModuleUnit, Project, Realm, Source
from modbuild.project.workspace import Workspace

logger = logging.getLogger(__name__)

DECLARATION_FILE = "module-info.java"
DESCRIPTOR_FILE = "module-info.class"


def join_paths(paths: Iterable[Path]) -> str:
    return os.pathsep.join(str(path) for path in paths)


def java_files(directory: Path) -> list[Path]:
    """All ``.java`` files below a directory, sorted."""
    if not directory.is_dir():
        return []
    return sorted(path for path in directory.rglob("*.java") if path.is_file())


def jar_files(directories: Iterable[Path]) -> list[Path]:
    """All ``.jar`` files directly inside the given directories, sorted per directory."""
    jars: list[Path] = []
    for directory in directories:
        if directory.is_file() and directory.suffix == ".jar":
            jars.append(directory)
        elif directory.is_dir():
            jars.extend(sorted(path for path in directory.iterdir() if path.suffix == ".jar"))
    return jars


def holds_only_declaration(directory: Path) -> bool:
    if not directory.is_dir():
        return False
    return [path.name for path in directory.iterdir()] == [DECLARATION_FILE]


@dataclass(frozen=True)
class ArchiveLayer:
    """One ``-C <directory> <entry>`` contribution to an archive.

    Attributes:
        directory: Directory the entries are taken from
        release: Release tag of the layer, 0 for the archive root
        entry: "." for the whole directory, or a single file name
    """

    directory: Path
    release: int = 0
    entry: str = "."


@dataclass(frozen=True)
class ArchiveLayout:
    """Root entries and release-tagged layers of one archive."""

    root: tuple[ArchiveLayer, ...]
    layers: tuple[ArchiveLayer, ...] = ()

    def releases(self) -> list[int]:
        return sorted({layer.release for layer in self.layers})

    def select(self, level: int) -> list[ArchiveLayer]:
        """Layers a reader at platform ``level`` observes, lowest precedence first."""
        return [*self.root, *(layer for layer in self.layers if layer.release <= level)]

    def to_arguments(self) -> list[str]:
        """Archiver arguments placing every layer (``-C``/``--release`` pairs)."""
        args: list[str] = []
        for layer in self.root:
            args += ["-C", str(layer.directory), layer.entry]
        current = None
        for layer in self.layers:
            if layer.release != current:
                args += ["--release", str(layer.release)]
                current = layer.release
            args += ["-C", str(layer.directory), layer.entry]
        return args


class MultiReleasePackager:
    """Plans compile and archive tasks for multi-release units of one realm.

    Args:
        project: Project being built (for module versions).
        realm: Realm owning the units.
        workspace: Addressing scheme for classes and archives.
        options: Build options (verbose flag).
        module_path: Module path of the realm (upstream modules + library).
    """

    def __init__(
        self,
        project: Project,
        realm: Realm,
        workspace: Workspace,
        options: BuildOptions,
        module_path: Sequence[Path] = (),
    ) -> None:
        self.project = project
        self.realm = realm
        self.workspace = workspace
        self.options = options
        self.module_path = list(module_path)

    def plan(self, unit: ModuleUnit) -> list[Task]:
        """Plan all tasks of a multi-release unit.

        Returns:
            [sequential compile group, parallel archive group]

        Raises:
            ValueError: If the unit targets a single release only
        """
        return [self.compile_task(unit), self.archive_task(unit)]

    def _require_multi_release(self, unit: ModuleUnit) -> None:
        if not unit.is_multi_release():
            raise ValueError(f"Unit {unit.name} targets a single release; compile it as an ordinary unit")

    def classes(self, unit: ModuleUnit, release: int) -> Path:
        return self.workspace.classes_dir(self.realm.name, release, unit.name)

    # ─── Compilation ───

    def compile_task(self, unit: ModuleUnit) -> Task:
        """Sequential group compiling every release, base first."""
        self._require_multi_release(unit)
        releases = unit.releases()
        base = releases[0]
        logger.debug(f"{unit.name}: releases {releases}, base {base}")
        sources = unit.sources_by_release()
        compilations = [self.compile_release(unit, sources[release], base) for release in releases]
        return Task.sequence(f"Compile {unit.name} for releases {', '.join(map(str, releases))}", *compilations)

    def compile_release(self, unit: ModuleUnit, source: Source, base: int) -> Task:
        release = source.release
        module = unit.name
        base_classes = self.classes(unit, base)
        destination = self.classes(unit, release)
        args: list[str] = []
        if release:
            args += ["--release", str(release)]
        if source.path == unit.info.parent:
            args += ["-d", str(destination.parent)]
            args += ["--module-version", self.project.module_version(unit)]
            if self.module_path:
                args += ["--module-path", join_paths(self.module_path)]
            args += ["--module-source-path", f"{module}={source.path}"]
            if release != base:
                args += ["--patch-module", f"{module}={base_classes}"]
            args += list(self.realm.compiler_options)
            args += ["--module", module]
        else:
            args += ["-d", str(destination)]
            class_path = [base_classes] if release != base else []
            class_path += jar_files(self.module_path)
            if class_path:
                args += ["--class-path", join_paths(class_path)]
            args += list(self.realm.compiler_options)
            args += [str(path) for path in java_files(source.path)]
        return Task.run(
            "javac",
            *args,
            prepare=(destination,),
            title=f"Compile {module} for release {release}",
        )

    # ─── Archives ───

    def module_layout(self, unit: ModuleUnit) -> ArchiveLayout:
        releases = unit.releases()
        sources = unit.sources_by_release()
        root = [ArchiveLayer(self.classes(unit, releases[0]))]
        root += [ArchiveLayer(resource) for resource in unit.resources]
        layers = []
        for release in releases[1:]:
            source = sources[release]
            classes = self.classes(unit, release)
            if source.duplicate_descriptor:
                root.append(ArchiveLayer(classes, entry=DESCRIPTOR_FILE))
                if holds_only_declaration(source.path):
                    continue
            layers.append(ArchiveLayer(classes, release))
        return ArchiveLayout(tuple(root), tuple(layers))

    def sources_layout(self, unit: ModuleUnit) -> ArchiveLayout:
        releases = unit.releases()
        sources = unit.sources_by_release()
        root = [ArchiveLayer(sources[releases[0]].path)]
        root += [ArchiveLayer(resource) for resource in unit.resources]
        layers = [ArchiveLayer(sources[release].path, release) for release in releases[1:]]
        return ArchiveLayout(tuple(root), tuple(layers))

    def archive_task(self, unit: ModuleUnit) -> Task:
        """Parallel group creating the module archive and the sources archive."""
        self._require_multi_release(unit)
        version = self.project.module_version(unit)
        modules = self.workspace.modules_dir(self.realm.name)
        module_file = self.workspace.module_file(self.realm.name, unit.name, version)
        sources_file = self.workspace.sources_file(self.realm.name, unit.name, version)
        verbose = ["--verbose"] if self.options.verbose else []

        jar = ["--create", "--file", str(module_file), *verbose, "--module-version", version]
        if unit.main_class:
            jar += ["--main-class", unit.main_class]
        jar += self.module_layout(unit).to_arguments()

        sources = ["--create", "--file", str(sources_file), *verbose, "--no-manifest"]
        sources += self.sources_layout(unit).to_arguments()

        return Task.parallel_group(
            f"Package {unit.name}",
            Task.run("jar", *jar, prepare=(modules,), title=f"Create module archive {module_file.name}"),
            Task.run("jar", *sources, prepare=(modules,), title=f"Create sources archive {sources_file.name}"),
        )
