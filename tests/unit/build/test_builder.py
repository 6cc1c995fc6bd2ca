"""Unit tests for the Builder driver."""

from dataclasses import replace
from unittest.mock import patch

import pytest

from modbuild.build.builder import RESOLVE_TITLE, Builder
from modbuild.config import BuildOptions
from modbuild.errors import BuildError, ProjectValidationError, ResolutionError, TaskExecutionError
from modbuild.project.models import MAVEN_CENTRAL, Library, Project, Realm, Requirement, Source

PLATFORM = frozenset({"java.base"})

# ─── Helpers ───


@pytest.fixture
def project(tmp_path, module_sources, unit_factory):
    source = module_sources(tmp_path / "src" / "app", "module app {}", classes={"app.Main": "main"})
    unit = unit_factory(source, [Source(source)])
    return Project("demo", "1.0", realms=(Realm("main", units=(unit,)),))


def _make_builder(tmp_path, project, *providers, repository=None, **options):
    options.setdefault("home", tmp_path / "home")
    options.setdefault("workers", 2)
    return Builder(
        project,
        tmp_path,
        BuildOptions(**options),
        repository=repository,
        providers=providers,
        platform_modules=PLATFORM,
    )


def _needy_project(project):
    """The same project, with app requiring a module nobody maps."""
    unit = project.realms[0].units[0]
    declaration = replace(unit.declaration, requires=(Requirement("org.missing"),))
    realm = replace(project.realms[0], units=(replace(unit, declaration=declaration),))
    return replace(project, realms=(realm,))


class TestBuilder:
    """Validate, resolve, execute."""

    def test_successful_build(self, tmp_path, project, fake_javac, fake_jar, repository):
        summary = _make_builder(tmp_path, project, fake_javac, fake_jar, repository=repository).build()
        assert summary.outcome.success
        assert summary.fetched == ()
        assert [result.name for result in summary.logbook.results()] == ["javac", "jar"]
        assert (tmp_path / ".modbuild" / "workspace" / "modules" / "main" / "app-1.0.jar").is_file()

    def test_invalid_project_is_not_built(self, tmp_path, fake_javac):
        builder = _make_builder(tmp_path, Project("empty", "1.0", realms=(Realm("main"),)), fake_javac)
        with pytest.raises(ProjectValidationError, match="no unit present"):
            builder.build()
        assert fake_javac.calls == []

    def test_failed_task_raises_build_error(self, tmp_path, project, fake_javac, fake_jar, repository):
        fake_javac.fail_modules = {"app"}
        builder = _make_builder(tmp_path, project, fake_javac, fake_jar, repository=repository)
        with pytest.raises(BuildError) as info:
            builder.build()
        assert info.value.title == "Build project demo 1.0"
        cause = info.value.__cause__
        assert isinstance(cause, TaskExecutionError)
        assert [failure.title for failure in cause.failures] == ["Compile main modules app"]
        assert "cannot compile app" in str(info.value)
        assert fake_jar.calls == []

    def test_resolution_failure_names_the_phase(self, tmp_path, project, repository, fake_javac, fake_jar):
        needy = _needy_project(project)
        builder = _make_builder(tmp_path, needy, fake_javac, fake_jar, repository=repository)
        with pytest.raises(BuildError) as info:
            builder.build()
        assert info.value.title == RESOLVE_TITLE
        assert isinstance(info.value.__cause__, ResolutionError)
        assert fake_javac.calls == []

    def test_invalid_fetched_artifact_names_the_phase(self, tmp_path, project, repository, fake_javac, fake_jar):
        library = Library(coordinate_mapper={"org.missing": "com.example:missing"}.get, version_mapper={"org.missing": "1.0"}.get)
        needy = replace(_needy_project(project), library=library)
        uri = f"{MAVEN_CENTRAL}/com/example/missing/1.0/missing-1.0.jar"
        repository.content[uri] = b"<html>not a jar</html>"
        builder = _make_builder(tmp_path, needy, fake_javac, fake_jar, repository=repository)
        with pytest.raises(BuildError) as info:
            builder.build()
        assert str(info.value).startswith(f"Task '{RESOLVE_TITLE}' failed")
        cause = info.value.__cause__
        assert isinstance(cause, ResolutionError)
        assert (cause.module, cause.uri) == ("org.missing", uri)
        assert not (tmp_path / "lib" / "org.missing-1.0.jar").exists()
        assert fake_javac.calls == []

    def test_offline_skips_resolution(self, tmp_path, project, repository, fake_javac, fake_jar):
        builder = _make_builder(tmp_path, _needy_project(project), fake_javac, fake_jar, repository=repository, offline=True)
        summary = builder.build()
        assert repository.fetched == []
        assert any("Offline" in message for message in summary.logbook.messages())

    def test_dry_run_runs_no_tools(self, tmp_path, project, fake_javac, fake_jar):
        summary = _make_builder(tmp_path, project, fake_javac, fake_jar, dry_run=True).build()
        assert fake_javac.calls == fake_jar.calls == []
        assert len(summary.logbook) == 2

    @patch("modbuild.build.builder.TaskProgressDisplay")
    @patch("modbuild.build.builder.sys")
    def test_progress_display_on_terminals(self, mock_sys, mock_display, tmp_path, project, fake_javac, fake_jar):
        mock_sys.stdout.isatty.return_value = True
        _make_builder(tmp_path, project, fake_javac, fake_jar, progress=True, offline=True).build()
        display = mock_display.return_value
        display.register_tree.assert_called_once()
        display.start.assert_called_once()
        display.stop.assert_called_once()
