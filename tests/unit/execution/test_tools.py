"""Unit tests for ToolRunner."""

from pathlib import Path
from unittest.mock import patch

import pytest

from modbuild.execution.logbook import Logbook
from modbuild.execution.models import ToolCall
from modbuild.execution.tools import RAISED, ToolProvider, ToolRunner
from modbuild.subprocess_utils import COMMAND_NOT_FOUND


class _Echo:
    name = "echo"

    def __init__(self):
        self.calls = []

    def run(self, args):
        self.calls.append(list(args))
        return 0, " ".join(args), ""


class TestToolRunner:
    """Running tool calls and recording results."""

    def test_provider_satisfies_protocol(self):
        assert isinstance(_Echo(), ToolProvider)

    def test_provider_result_is_recorded(self):
        logbook = Logbook()
        echo = _Echo()
        runner = ToolRunner(logbook, providers=[echo])
        result = runner.run(ToolCall("echo", ("a", "b")))
        assert result.out == "a b"
        assert result.code == 0
        assert echo.calls == [["a", "b"]]
        assert logbook.results() == [result]

    def test_sequence_numbers_increase(self):
        runner = ToolRunner(Logbook(), providers=[_Echo()])
        first = runner.run(ToolCall("echo"))
        second = runner.run(ToolCall("echo"))
        assert (first.sequence, second.sequence) == (0, 1)

    def test_prepare_and_clean_directories(self, tmp_path):
        stale = tmp_path / "image"
        (stale / "old").mkdir(parents=True)
        fresh = tmp_path / "classes" / "main"
        runner = ToolRunner(Logbook(), providers=[_Echo()])
        runner.run(ToolCall("echo", prepare=(fresh,), clean=(stale,)))
        assert fresh.is_dir()
        assert not stale.exists()

    def test_dry_run_runs_nothing(self, tmp_path):
        stale = tmp_path / "image"
        stale.mkdir()
        echo = _Echo()
        logbook = Logbook()
        runner = ToolRunner(logbook, providers=[echo], dry_run=True)
        result = runner.run(ToolCall("echo", ("x",), clean=(stale,)))
        assert result.code == 0
        assert echo.calls == []
        assert stale.exists()
        assert len(logbook) == 1

    def test_provider_exception_is_recorded_then_propagates(self):
        class _Broken:
            name = "broken"

            def run(self, args):
                raise OSError("no space left")

        logbook = Logbook()
        runner = ToolRunner(logbook, providers=[_Broken()])
        with pytest.raises(OSError, match="no space left"):
            runner.run(ToolCall("broken"))
        [result] = logbook.results()
        assert result.name == "broken"
        assert result.code == RAISED
        assert result.err == "OSError: no space left"

    def test_failed_directory_preparation_is_recorded(self, tmp_path):
        blocker = tmp_path / "classes"
        blocker.write_text("not a directory")
        echo = _Echo()
        logbook = Logbook()
        runner = ToolRunner(logbook, providers=[echo])
        with pytest.raises(OSError):
            runner.run(ToolCall("echo", prepare=(blocker / "main",)))
        assert echo.calls == []
        [result] = logbook.results()
        assert result.is_error
        assert result.err.startswith(("NotADirectoryError", "FileNotFoundError", "FileExistsError"))

    @patch("modbuild.execution.tools.find_executable", return_value=None)
    def test_missing_executable(self, mock_find):
        runner = ToolRunner(Logbook())
        result = runner.run(ToolCall("jlink", ("--help",)))
        assert result.code == COMMAND_NOT_FOUND
        assert "command not found" in result.err
        mock_find.assert_called_once_with("jlink", None)

    @patch("modbuild.execution.tools.run_captured", return_value=(0, "javac 17", ""))
    @patch("modbuild.execution.tools.find_executable", return_value="/jdk/bin/javac")
    def test_spawns_found_executable(self, mock_find, mock_run):
        runner = ToolRunner(Logbook(), java_home=Path("/jdk"))
        result = runner.run(ToolCall("javac", ("--version",)))
        assert result.out == "javac 17"
        mock_find.assert_called_once_with("javac", Path("/jdk"))
        mock_run.assert_called_once_with(["/jdk/bin/javac", "--version"])
