"""Pytest configuration and shared fixtures for modbuild tests.

Provides in-process fakes for the external collaborators of a build:

- FakeJavac / FakeJar: tool providers standing in for ``javac`` and ``jar``.
  FakeJavac "compiles" every ``Foo.java`` into ``Foo.class`` holding the
  source text; FakeJar writes real zip archives honoring ``-C`` and
  ``--release`` the way the JDK archiver lays out multi-release archives.
- FakeRepository: a ``fetch(uri) -> bytes`` repository backed by a dict.
- encode_module_descriptor / module_jar_bytes: compiled module descriptors
  and module archives for library surveys.

Also keeps the stdout/stderr restoration hooks needed on Python 3.13.
"""

import io
import os
import re
import struct
import sys
import threading
import warnings
import zipfile
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence, Union

import pytest

from modbuild.project.declaration import read_declaration
from modbuild.project.models import ModuleUnit, Source

# Suppress ResourceWarnings from file cleanup in Python 3.13
if sys.version_info >= (3, 13):
    warnings.filterwarnings("ignore", category=ResourceWarning)


@pytest.fixture(autouse=True)
def _restore_stdio():  # noqa: PT004
    """Ensure stdout/stderr are always restored after each test."""
    yield
    if sys.stdout.closed:
        sys.stdout = sys.__stdout__
    if sys.stderr.closed:
        sys.stderr = sys.__stderr__


# ─── Compiled module descriptors ──────────────────────────────────────────────

RequiresSpec = Union[str, tuple[str, int, Optional[str]]]


def encode_module_descriptor(
    name: str,
    requires: Iterable[RequiresSpec] = (),
    version: Optional[str] = None,
    main_class: Optional[str] = None,
) -> bytes:
    """Encode a minimal module-info.class.

    ``requires`` items are module names or (name, flags, version) tuples.
    """
    pool: list[bytes] = []
    index: dict[tuple[str, str], int] = {}

    def entry(key: tuple[str, str], data: bytes) -> int:
        if key not in index:
            pool.append(data)
            index[key] = len(pool)
        return index[key]

    def utf8(text: str) -> int:
        raw = text.encode("utf-8")
        return entry(("utf8", text), struct.pack(">BH", 1, len(raw)) + raw)

    def module(text: str) -> int:
        return entry(("module", text), struct.pack(">BH", 19, utf8(text)))

    def klass(text: str) -> int:
        return entry(("class", text), struct.pack(">BH", 7, utf8(text.replace(".", "/"))))

    this_class = klass("module-info")
    body = struct.pack(">HHH", module(name), 0, utf8(version) if version else 0)
    items = [(item, 0, None) if isinstance(item, str) else item for item in requires]
    body += struct.pack(">H", len(items))
    for required, flags, required_version in items:
        body += struct.pack(">HHH", module(required), flags, utf8(required_version) if required_version else 0)
    body += struct.pack(">HHHH", 0, 0, 0, 0)  # exports, opens, uses, provides

    attributes = [(utf8("Module"), body)]
    if main_class:
        attributes.append((utf8("ModuleMainClass"), struct.pack(">H", klass(main_class))))

    data = struct.pack(">IHH", 0xCAFEBABE, 0, 55)
    data += struct.pack(">H", len(pool) + 1) + b"".join(pool)
    data += struct.pack(">HHH", 0x8000, this_class, 0)
    data += struct.pack(">HHH", 0, 0, 0)  # interfaces, fields, methods
    data += struct.pack(">H", len(attributes))
    for name_index, content in attributes:
        data += struct.pack(">HI", name_index, len(content)) + content
    return data


def module_jar_bytes(name: str, requires: Iterable[RequiresSpec] = (), version: Optional[str] = None) -> bytes:
    """Zip archive holding a compiled descriptor of module ``name``."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("META-INF/MANIFEST.MF", "Manifest-Version: 1.0\r\n\r\n")
        archive.writestr("module-info.class", encode_module_descriptor(name, requires, version))
    return buffer.getvalue()


@pytest.fixture
def descriptor() -> Callable[..., bytes]:
    return encode_module_descriptor


@pytest.fixture
def module_jar() -> Callable[..., bytes]:
    return module_jar_bytes


# ─── Fake tools ───────────────────────────────────────────────────────────────

_PACKAGE = re.compile(r"^\s*package\s+([\w.]+)\s*;", re.MULTILINE)


class FakeJavac:
    """Stand-in for javac that copies sources to ``.class`` files."""

    name = "javac"

    def __init__(self, fail_modules: Sequence[str] = ()) -> None:
        self.fail_modules = set(fail_modules)
        self.calls: list[list[str]] = []
        self._lock = threading.Lock()

    def run(self, args: Sequence[str]) -> tuple[int, str, str]:
        args = list(args)
        with self._lock:
            self.calls.append(args)
        destination: Optional[Path] = None
        modules: list[str] = []
        source_paths: dict[str, list[Path]] = {}
        files: list[Path] = []
        i = 0
        while i < len(args):
            arg = args[i]
            value = args[i + 1] if i + 1 < len(args) else ""
            if arg == "-d":
                destination = Path(value)
                i += 2
            elif arg == "--module":
                modules = value.split(",")
                i += 2
            elif arg == "--module-source-path":
                module, _, paths = value.partition("=")
                source_paths[module] = [Path(p) for p in paths.split(os.pathsep) if p]
                i += 2
            elif arg in _JAVAC_OPTIONS_WITH_VALUE:
                i += 2
            elif arg.startswith("-"):
                i += 1
            else:
                files.append(Path(arg))
                i += 1

        failing = self.fail_modules.intersection(modules)
        if failing:
            return 1, "", f"error: cannot compile {', '.join(sorted(failing))}"
        assert destination is not None, "javac needs -d"
        if modules:
            for module in modules:
                for root in source_paths.get(module, []):
                    for source in sorted(root.rglob("*.java")):
                        target = destination / module / source.relative_to(root).with_suffix(".class")
                        target.parent.mkdir(parents=True, exist_ok=True)
                        target.write_bytes(source.read_bytes())
        else:
            for source in files:
                text = source.read_text(encoding="utf-8")
                match = _PACKAGE.search(text)
                package = Path(*match.group(1).split(".")) if match else Path()
                target = destination / package / source.with_suffix(".class").name
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(text, encoding="utf-8")
        return 0, "", ""


_JAVAC_OPTIONS_WITH_VALUE = {
    "--release",
    "--module-version",
    "--module-path",
    "--patch-module",
    "--class-path",
    "-encoding",
}


class FakeJar:
    """Stand-in for jar that writes real (multi-release) zip archives."""

    name = "jar"

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self._lock = threading.Lock()

    def run(self, args: Sequence[str]) -> tuple[int, str, str]:
        args = list(args)
        with self._lock:
            self.calls.append(args)
        file: Optional[Path] = None
        manifest = True
        release = 0
        entries: dict[str, bytes] = {}
        i = 0
        while i < len(args):
            arg = args[i]
            if arg == "--file":
                file = Path(args[i + 1])
                i += 2
            elif arg == "--no-manifest":
                manifest = False
                i += 1
            elif arg == "--release":
                release = int(args[i + 1])
                i += 2
            elif arg == "-C":
                directory, entry = Path(args[i + 1]), args[i + 2]
                prefix = f"META-INF/versions/{release}/" if release else ""
                if entry == ".":
                    for path in sorted(directory.rglob("*")):
                        if path.is_file():
                            entries[prefix + path.relative_to(directory).as_posix()] = path.read_bytes()
                else:
                    entries[prefix + entry] = (directory / entry).read_bytes()
                i += 3
            elif arg in ("--module-version", "--main-class"):
                i += 2
            else:
                i += 1
        assert file is not None, "jar needs --file"
        file.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(file, "w") as archive:
            if manifest:
                lines = ["Manifest-Version: 1.0"]
                if any(name.startswith("META-INF/versions/") for name in entries):
                    lines.append("Multi-Release: true")
                archive.writestr("META-INF/MANIFEST.MF", "\r\n".join(lines) + "\r\n\r\n")
            for name, data in entries.items():
                archive.writestr(name, data)
        return 0, "", ""


@pytest.fixture
def fake_javac() -> FakeJavac:
    return FakeJavac()


@pytest.fixture
def fake_jar() -> FakeJar:
    return FakeJar()


# ─── Fake repository ──────────────────────────────────────────────────────────


class FakeRepository:
    """Dict-backed repository recording every fetched URI."""

    def __init__(self, content: Optional[dict[str, bytes]] = None) -> None:
        self.content = dict(content or {})
        self.fetched: list[str] = []
        self._lock = threading.Lock()

    def fetch(self, uri: str) -> bytes:
        with self._lock:
            self.fetched.append(uri)
        if uri not in self.content:
            raise FileNotFoundError(f"404 Not Found: {uri}")
        return self.content[uri]


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


# ─── Project sources ──────────────────────────────────────────────────────────


def write_module_sources(
    directory: Path,
    declaration: Optional[str] = None,
    classes: Optional[dict[str, str]] = None,
) -> Path:
    """Write a module-info.java and Java sources below ``directory``.

    ``classes`` maps a qualified class name to a marker string embedded in
    the generated source, so tests can tell releases apart.
    """
    directory.mkdir(parents=True, exist_ok=True)
    if declaration is not None:
        (directory / "module-info.java").write_text(declaration, encoding="utf-8")
    for qualified, marker in (classes or {}).items():
        package, _, simple = qualified.rpartition(".")
        path = directory / Path(*package.split(".")) / f"{simple}.java"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"package {package};\n// {marker}\nclass {simple} {{}}\n", encoding="utf-8")
    return directory


def make_unit(
    info_directory: Path,
    sources: Sequence[Source],
    resources: Sequence[Path] = (),
    version: Optional[str] = None,
) -> ModuleUnit:
    """ModuleUnit whose declaration is read from ``info_directory``."""
    info = info_directory / "module-info.java"
    return ModuleUnit(
        info=info,
        declaration=read_declaration(info),
        sources=tuple(sources),
        resources=tuple(resources),
        version=version,
    )


@pytest.fixture
def module_sources() -> Callable[..., Path]:
    return write_module_sources


@pytest.fixture
def unit_factory() -> Callable[..., ModuleUnit]:
    return make_unit
