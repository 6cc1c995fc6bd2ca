"""Tests for BuildOptions and environment configuration."""

from pathlib import Path

import pytest

from modbuild.config import DEFAULT_INDEX_URI, DEFAULT_NETWORK_TIMEOUT, BuildOptions, default_home


class TestBuildOptions:
    """Defaults and overrides."""

    def test_defaults_from_empty_environment(self):
        options = BuildOptions.from_environment({}, home=Path("/h"))
        assert options.workers is None
        assert not options.verbose
        assert not options.dry_run
        assert not options.offline
        assert options.index_uri == DEFAULT_INDEX_URI
        assert options.network_timeout == DEFAULT_NETWORK_TIMEOUT
        assert options.modules_cache == Path("/h/modules")

    def test_environment_variables(self):
        options = BuildOptions.from_environment(
            {
                "MODBUILD_WORKERS": "3",
                "MODBUILD_VERBOSE": "yes",
                "MODBUILD_DRY_RUN": "1",
                "MODBUILD_OFFLINE": "false",
                "MODBUILD_HOME": "/cache",
                "MODBUILD_REPOSITORY": "https://mirror.example.com/maven2/",
                "MODBUILD_INDEX_URI": "https://index.example.com/",
                "MODBUILD_NETWORK_TIMEOUT": "2.5",
            }
        )
        assert options.workers == 3
        assert options.verbose
        assert options.dry_run
        assert not options.offline
        assert options.home == Path("/cache")
        assert options.repository_mirror == "https://mirror.example.com/maven2"
        assert options.index_uri == "https://index.example.com"
        assert options.network_timeout == 2.5

    def test_overrides_win(self):
        options = BuildOptions.from_environment({"MODBUILD_WORKERS": "3"}, workers=8)
        assert options.workers == 8

    @pytest.mark.parametrize(
        ("variable", "value", "message"),
        [
            ("MODBUILD_WORKERS", "many", "must be an integer"),
            ("MODBUILD_WORKERS", "0", "at least 1"),
            ("MODBUILD_NETWORK_TIMEOUT", "soon", "must be a number"),
        ],
    )
    def test_invalid_values(self, variable, value, message):
        with pytest.raises(ValueError, match=message):
            BuildOptions.from_environment({variable: value})

    def test_with_overrides_returns_copy(self):
        options = BuildOptions(home=Path("/h"))
        offline = options.with_overrides(offline=True)
        assert offline.offline
        assert not options.offline


def test_default_home(monkeypatch, tmp_path):
    """MODBUILD_HOME replaces ~/.modbuild."""
    monkeypatch.setenv("MODBUILD_HOME", str(tmp_path))
    assert default_home() == tmp_path
    monkeypatch.delenv("MODBUILD_HOME")
    assert default_home() == Path.home() / ".modbuild"
