"""Unit tests for artifact inspection and multi-release archive reads."""

import zipfile

import pytest

from modbuild.project.archive import (
    MultiReleaseArchive,
    automatic_module_name,
    describe_archive,
    describe_directory,
    find_modules,
    parse_manifest,
)

# ─── Helpers ───


def _write_zip(path, entries):
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as archive:
        for name, data in entries.items():
            archive.writestr(name, data)
    return path


MR_MANIFEST = "Manifest-Version: 1.0\r\nMulti-Release: true\r\n\r\n"


class TestAutomaticModuleName:
    """Deriving names from archive file names."""

    @pytest.mark.parametrize(
        ("file_name", "expected"),
        [
            ("foo-bar-1.2.3.jar", "foo.bar"),
            ("commons_io.jar", "commons.io"),
            ("guava-31.1-jre.jar", "guava"),
            ("x--y.jar", "x.y"),
            ("lib-2.jar", "lib"),
        ],
    )
    def test_names(self, file_name, expected):
        assert automatic_module_name(file_name) == expected


class TestParseManifest:
    """Manifest main section parsing."""

    def test_continuation_lines_are_joined(self):
        text = "Manifest-Version: 1.0\r\nAutomatic-Module-Name: org.exa\r\n mple.lib\r\n\r\nName: x\r\nFoo: bar\r\n"
        manifest = parse_manifest(text)
        assert manifest["Automatic-Module-Name"] == "org.example.lib"
        assert "Foo" not in manifest


class TestDescribeArchive:
    """Naming modules packaged in archives."""

    def test_explicit_module(self, tmp_path, descriptor):
        path = _write_zip(tmp_path / "a.jar", {"module-info.class": descriptor("org.a", requires=["org.b"])})
        reference = describe_archive(path)
        assert reference.name == "org.a"
        assert not reference.automatic
        assert reference.declaration.required_names() == ["org.b"]

    def test_versioned_descriptor_uses_highest_level(self, tmp_path, descriptor):
        path = _write_zip(
            tmp_path / "a.jar",
            {
                "META-INF/MANIFEST.MF": MR_MANIFEST,
                "META-INF/versions/9/module-info.class": descriptor("org.a", requires=["old"]),
                "META-INF/versions/11/module-info.class": descriptor("org.a", requires=["new"]),
            },
        )
        assert describe_archive(path).declaration.required_names() == ["new"]

    def test_manifest_automatic_module_name(self, tmp_path):
        path = _write_zip(
            tmp_path / "whatever-1.0.jar",
            {"META-INF/MANIFEST.MF": "Manifest-Version: 1.0\r\nAutomatic-Module-Name: org.named\r\n\r\n"},
        )
        reference = describe_archive(path)
        assert reference.name == "org.named"
        assert reference.automatic

    def test_name_from_file_name(self, tmp_path):
        path = _write_zip(tmp_path / "plain-lib-3.0.jar", {"a/A.class": b""})
        assert describe_archive(path).name == "plain.lib"


class TestFindModules:
    """Scanning directories for archives and exploded modules."""

    def test_archives_and_exploded_directories(self, tmp_path, descriptor, module_jar):
        lib = tmp_path / "lib"
        lib.mkdir()
        (lib / "b.jar").write_bytes(module_jar("b"))
        exploded = lib / "a"
        exploded.mkdir()
        (exploded / "module-info.class").write_bytes(descriptor("a"))
        (lib / "notes").mkdir()
        (lib / "readme.txt").write_text("ignored")

        names = [reference.name for reference in find_modules([lib, tmp_path / "missing"])]
        assert names == ["a", "b"]

    def test_directory_without_descriptor(self, tmp_path):
        assert describe_directory(tmp_path) is None


class TestMultiReleaseArchive:
    """Per-level entry resolution."""

    @pytest.fixture
    def archive(self, tmp_path):
        path = _write_zip(
            tmp_path / "mr.jar",
            {
                "META-INF/MANIFEST.MF": MR_MANIFEST,
                "a/Foo.class": b"base",
                "a/Only.class": b"only",
                "META-INF/versions/11/a/Foo.class": b"eleven",
                "META-INF/versions/17/a/Foo.class": b"seventeen",
            },
        )
        return MultiReleaseArchive(path)

    def test_versions(self, archive):
        assert archive.multi_release
        assert archive.versions() == [11, 17]

    @pytest.mark.parametrize(("level", "expected"), [(8, b"base"), (11, b"eleven"), (16, b"eleven"), (21, b"seventeen")])
    def test_reader_level_selects_layer(self, archive, level, expected):
        assert archive.read("a/Foo.class", level) == expected

    def test_root_entry_visible_at_every_level(self, archive):
        assert archive.read("a/Only.class", 17) == b"only"

    def test_missing_entry(self, archive):
        assert archive.resolve("a/Missing.class", 17) is None
        with pytest.raises(KeyError):
            archive.read("a/Missing.class", 17)

    def test_versioned_layers_ignored_without_manifest_attribute(self, tmp_path):
        path = _write_zip(
            tmp_path / "plain.jar",
            {"a/Foo.class": b"base", "META-INF/versions/11/a/Foo.class": b"eleven"},
        )
        assert MultiReleaseArchive(path).read("a/Foo.class", 17) == b"base"
