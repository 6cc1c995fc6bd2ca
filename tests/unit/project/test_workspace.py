"""Unit tests for workspace paths."""

from pathlib import Path

from modbuild.project.workspace import Workspace


class TestWorkspace:
    """Path scheme below the project base directory."""

    def test_of_base(self):
        workspace = Workspace.of(Path("/p"))
        assert workspace.workspace == Path("/p/.modbuild/workspace")
        assert workspace.library_dir() == Path("/p/lib")

    def test_classes_directories(self):
        workspace = Workspace.of(Path("/p"))
        assert workspace.classes_dir("main", 0, "a") == Path("/p/.modbuild/workspace/classes/main/default/a")
        assert workspace.classes_dir("main", 11, "a") == Path("/p/.modbuild/workspace/classes/main/11/a")
        assert workspace.classes_root("test", 17) == Path("/p/.modbuild/workspace/classes/test/17")

    def test_archive_files(self):
        workspace = Workspace.of(Path("/p"))
        assert workspace.module_file("main", "a", "1.0") == Path("/p/.modbuild/workspace/modules/main/a-1.0.jar")
        assert workspace.sources_file("main", "a", "1.0").name == "a-1.0-sources.jar"
        assert workspace.api_dir().name == "api"
        assert workspace.image_dir().name == "image"
