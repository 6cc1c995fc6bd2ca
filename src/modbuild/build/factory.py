"""Build task factory.

Turns a validated project into the task tree of one build:

    Build project <name> <version>                     sequence
      Print version of foundation tools               parallel   (optional)
      Compile all realms                              sequence
        Compile <realm> realm                         sequence
          javac (one call per release of single-release units)
          Compile <realm> multi-release modules       parallel
          Package <realm> modules                     parallel
      Create API documentation                        sequence   (optional)
      Create custom runtime image                     sequence   (optional)

Realms compile in declaration order so that downstream realms find the
archives of their upstream realms on the module path.
"""

import logging
from collections import defaultdict
from pathlib import Path
from typing import Optional

from modbuild.config import BuildOptions
from modbuild.execution.models import Task
from modbuild.project.models import ModuleUnit, Project, Realm
from modbuild.project.workspace import Workspace

from .multi_release import MultiReleasePackager, join_paths

logger = logging.getLogger(__name__)

FOUNDATION_TOOLS = ("javac", "jar", "javadoc", "jlink")


class BuildTaskFactory:
    """Creates the task tree that builds all realms of a project.

    Args:
        project: A validated project.
        workspace: Addressing scheme for generated files.
        options: Build options.
    """

    def __init__(self, project: Project, workspace: Workspace, options: BuildOptions) -> None:
        self.project = project
        self.workspace = workspace
        self.options = options

    def build(self) -> Task:
        children = []
        if self.options.print_tool_versions:
            children.append(self.print_tool_versions())
        children.append(self.compile_all_realms())
        if self.options.document:
            documentation = self.create_api_documentation()
            if documentation is not None:
                children.append(documentation)
        if self.options.link_image:
            image = self.create_custom_runtime_image()
            if image is not None:
                children.append(image)
        return Task.sequence(f"Build project {self.project.name_and_version()}", *children)

    def print_tool_versions(self) -> Task:
        versions = [Task.run(tool, "--version", title=f"Print version of {tool}") for tool in FOUNDATION_TOOLS]
        return Task.parallel_group("Print version of foundation tools", *versions)

    # ─── Paths ───

    def module_path(self, realm: Realm) -> list[Path]:
        """Upstream realm archives first, then the library directories."""
        paths = [self.workspace.modules_dir(upstream) for upstream in realm.upstreams]
        paths.append(self.workspace.library_dir())
        paths.extend(self.project.library.search_paths)
        return paths

    def upstream_classes(self, realm: Realm, module: str) -> list[Path]:
        """Compiled classes of same-named modules in upstream realms."""
        found = []
        for upstream in realm.upstreams:
            other = self.project.realm(upstream)
            unit = other.find_unit(module)
            if unit is None:
                continue
            release = other.to_release(unit.releases()[0])
            found.append(self.workspace.classes_dir(other.name, release, module))
        return found

    # ─── Compilation ───

    def compile_all_realms(self) -> Task:
        return Task.sequence("Compile all realms", *(self.compile_realm(realm) for realm in self.project.realms))

    def compile_realm(self, realm: Realm) -> Task:
        children = list(self.compile_single_release_units(realm))
        packager = MultiReleasePackager(self.project, realm, self.workspace, self.options, self.module_path(realm))
        multi = realm.multi_release_units()
        if multi:
            children.append(
                Task.parallel_group(
                    f"Compile {realm.name} multi-release modules",
                    *(packager.compile_task(unit) for unit in multi),
                )
            )
        archives = [self.create_archive(realm, unit) for unit in realm.single_release_units()]
        archives += [packager.archive_task(unit) for unit in multi]
        if archives:
            children.append(Task.parallel_group(f"Package {realm.name} modules", *archives))
        return Task.sequence(f"Compile {realm.name} realm", *children)

    def compile_single_release_units(self, realm: Realm) -> list[Task]:
        """One javac call per effective release level of single-release units."""
        groups: dict[int, list[ModuleUnit]] = defaultdict(list)
        for unit in realm.single_release_units():
            groups[realm.to_release(unit.releases()[0])].append(unit)
        return [self.javac(realm, release, units) for release, units in sorted(groups.items())]

    def javac(self, realm: Realm, release: int, units: list[ModuleUnit]) -> Task:
        destination = self.workspace.classes_root(realm.name, release)
        modules = [unit.name for unit in units]
        args = ["-d", str(destination)]
        if release:
            args += ["--release", str(release)]
        args += ["--module", ",".join(modules)]
        # One javac call records one version; differing unit versions are
        # recorded by the archiver instead
        versions = {self.project.module_version(unit) for unit in units}
        if len(versions) == 1:
            args += ["--module-version", versions.pop()]
        for unit in units:
            args += ["--module-source-path", f"{unit.name}={join_paths(s.path for s in unit.sources)}"]
        args += ["--module-path", join_paths(self.module_path(realm))]
        for unit in units:
            patches = self.upstream_classes(realm, unit.name)
            if patches:
                args += ["--patch-module", f"{unit.name}={join_paths(patches)}"]
        args += list(realm.compiler_options)
        title = f"Compile {realm.name} modules {', '.join(modules)}"
        if release:
            title += f" for release {release}"
        return Task.run("javac", *args, prepare=(destination,), title=title)

    def create_archive(self, realm: Realm, unit: ModuleUnit) -> Task:
        version = self.project.module_version(unit)
        file = self.workspace.module_file(realm.name, unit.name, version)
        classes = self.workspace.classes_dir(realm.name, realm.to_release(unit.releases()[0]), unit.name)
        args = ["--create", "--file", str(file)]
        if self.options.verbose:
            args.append("--verbose")
        args += ["--module-version", version]
        if unit.main_class:
            args += ["--main-class", unit.main_class]
        args += ["-C", str(classes), "."]
        for resource in unit.resources:
            args += ["-C", str(resource), "."]
        for upstream in self.upstream_classes(realm, unit.name):
            args += ["-C", str(upstream), "."]
        return Task.run(
            "jar",
            *args,
            prepare=(self.workspace.modules_dir(realm.name),),
            title=f"Create module archive {file.name}",
        )

    # ─── Documentation and image ───

    def create_api_documentation(self) -> Optional[Task]:
        realm = self.project.main_realm()
        if realm is None or not realm.units:
            logger.info("No main realm, no API documentation")
            return None
        args = ["-d", str(self.workspace.api_dir())]
        args += ["--module", ",".join(realm.unit_names())]
        for unit in realm.units:
            declaring = [s.path for s in unit.sources if s.path == unit.info.parent] or [unit.sources[0].path]
            args += ["--module-source-path", f"{unit.name}={join_paths(declaring)}"]
        args += ["--module-path", join_paths(self.module_path(realm))]
        if not self.options.verbose:
            args.append("-quiet")
        return Task.sequence(
            "Create API documentation",
            Task.run("javadoc", *args, prepare=(self.workspace.api_dir(),), title=f"Document {realm.name} modules"),
        )

    def create_custom_runtime_image(self) -> Optional[Task]:
        realm = self.project.main_realm()
        if realm is None:
            logger.info("No main realm, no image")
            return None
        main = realm.main_unit()
        if main is None:
            logger.info(f"No main module in realm {realm.name}, no image")
            return None
        launcher = self.options.launcher or self.project.name.lower().replace(" ", "-")
        module_path = [self.workspace.modules_dir(realm.name), *self.module_path(realm)]
        args = [
            "--output",
            str(self.workspace.image_dir()),
            "--launcher",
            f"{launcher}={main.name}",
            "--add-modules",
            ",".join(realm.unit_names()),
            "--module-path",
            join_paths(module_path),
            "--compress",
            "2",
            "--no-header-files",
        ]
        return Task.sequence(
            "Create custom runtime image",
            Task.run("jlink", *args, clean=(self.workspace.image_dir(),), title=f"Link image with launcher {launcher}"),
        )
