"""End-to-end build of a small project.

One realm with one unit requiring a module that is neither part of the
project nor of the platform. The resolver fetches it from a fake
repository, then javac and jar run as in-process fakes.
"""

import zipfile

import pytest

from modbuild import Builder, BuildOptions
from modbuild.project.models import MAVEN_CENTRAL, Library, Project, Realm, Source

PLATFORM = frozenset({"java.base", "java.logging"})
LIB_URI = f"{MAVEN_CENTRAL}/org/example/lib/1.2/lib-1.2.jar"

DECLARATION = """\
// --main-class com.example.app.Main
module com.example.app {
  requires org.example.lib;
  requires java.logging;
}
"""


@pytest.fixture
def project(tmp_path, module_sources, unit_factory):
    source = module_sources(tmp_path / "src" / "com.example.app", DECLARATION, classes={"com.example.app.Main": "main"})
    unit = unit_factory(source, [Source(source)])
    library = Library(
        coordinate_mapper={"org.example.lib": "org.example:lib"}.get,
        version_mapper={"org.example.lib": "1.2"}.get,
    )
    return Project("demo", "1.0", realms=(Realm("main", units=(unit,)),), library=library)


def test_build_fetches_missing_module_and_packages(tmp_path, project, repository, module_jar, fake_javac, fake_jar):
    """Resolution, compilation and packaging of one unit."""
    repository.content[LIB_URI] = module_jar("org.example.lib", requires=["java.logging"])
    builder = Builder(
        project,
        tmp_path,
        BuildOptions(home=tmp_path / "home", workers=2),
        repository=repository,
        providers=[fake_javac, fake_jar],
        platform_modules=PLATFORM,
    )

    summary = builder.build()

    assert summary.outcome.success
    assert [plan.module for plan in summary.fetched] == ["org.example.lib"]
    assert repository.fetched == [LIB_URI]
    assert (tmp_path / "lib" / "org.example.lib-1.2.jar").is_file()
    assert any(f"Fetched org.example.lib from {LIB_URI}" in message for message in summary.logbook.messages())

    results = summary.logbook.results()
    assert [result.name for result in results] == ["javac", "jar"]
    assert all(result.code == 0 for result in results)
    javac_args = results[0].args
    assert javac_args[javac_args.index("--module") + 1] == "com.example.app"
    assert str(tmp_path / "lib") in javac_args[javac_args.index("--module-path") + 1]

    archive = tmp_path / ".modbuild" / "workspace" / "modules" / "main" / "com.example.app-1.0.jar"
    with zipfile.ZipFile(archive) as jar:
        names = set(jar.namelist())
    assert "module-info.class" in names
    assert "com/example/app/Main.class" in names
    assert "--main-class" in results[1].args


def test_second_build_fetches_nothing(tmp_path, project, repository, module_jar, fake_javac, fake_jar):
    """Modules fetched once stay in the library directory."""
    repository.content[LIB_URI] = module_jar("org.example.lib")
    options = BuildOptions(home=tmp_path / "home", workers=2)

    def build():
        return Builder(project, tmp_path, options, repository=repository, providers=[fake_javac, fake_jar], platform_modules=PLATFORM).build()

    build()
    summary = build()
    assert summary.fetched == ()
    assert repository.fetched == [LIB_URI]
