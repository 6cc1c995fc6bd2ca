"""Workspace addressing scheme.

All generated files live below ``<base>/.modbuild/workspace``; fetched
external modules live in ``<base>/lib``:

    .modbuild/workspace/
        classes/<realm>/<release or "default">/<module>/   compiled classes
        modules/<realm>/<module>-<version>.jar              module archives
        modules/<realm>/<module>-<version>-sources.jar      sources archives
        api/                                                API documentation
        image/                                              runtime image
    lib/                                                    library modules
"""

from dataclasses import dataclass
from pathlib import Path

DEFAULT_RELEASE_DIRECTORY = "default"


@dataclass(frozen=True)
class Workspace:
    """Stable paths for everything a build reads or writes.

    Attributes:
        base: Project base directory
        workspace: Root of generated files
        lib: Directory receiving fetched external modules
    """

    base: Path
    workspace: Path
    lib: Path

    @classmethod
    def of(cls, base: Path) -> "Workspace":
        return cls(base=base, workspace=base / ".modbuild" / "workspace", lib=base / "lib")

    def classes_dir(self, realm: str, release: int, module: str) -> Path:
        release_dir = str(release) if release else DEFAULT_RELEASE_DIRECTORY
        return self.workspace / "classes" / realm / release_dir / module

    def classes_root(self, realm: str, release: int) -> Path:
        """Directory holding the per-module class directories of one release."""
        return self.classes_dir(realm, release, "_").parent

    def modules_dir(self, realm: str) -> Path:
        return self.workspace / "modules" / realm

    def library_dir(self) -> Path:
        return self.lib

    def module_file(self, realm: str, module: str, version: str) -> Path:
        return self.modules_dir(realm) / f"{module}-{version}.jar"

    def sources_file(self, realm: str, module: str, version: str) -> Path:
        return self.modules_dir(realm) / f"{module}-{version}-sources.jar"

    def api_dir(self) -> Path:
        return self.workspace / "api"

    def image_dir(self) -> Path:
        return self.workspace / "image"
