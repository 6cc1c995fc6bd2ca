"""Subprocess utilities for running external build tools.

Wraps the subprocess module so that every tool invocation gets the same
treatment: no inherited stdin, no console window flashing on Windows, text
capture of stdout and stderr, and executable lookup under a JDK home.
"""

import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Any

# Exit code reported when the tool executable cannot be found
COMMAND_NOT_FOUND = 127


def get_subprocess_creation_flags() -> int:
    """Get platform-specific subprocess creation flags.

    Returns:
        - Windows: subprocess.CREATE_NO_WINDOW (prevents console window)
        - Other platforms: 0 (no special flags)
    """
    if sys.platform == "win32":
        return subprocess.CREATE_NO_WINDOW
    return 0


def safe_run(cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess:
    """Execute subprocess.run with platform-specific flags.

    Automatically applies:
    - CREATE_NO_WINDOW on Windows (prevents console window)
    - stdin=DEVNULL (tools never read from the terminal)

    Args:
        cmd: Command and arguments (same as subprocess.run)
        **kwargs: Additional arguments passed to subprocess.run

    Returns:
        CompletedProcess result from subprocess.run
    """
    default_flags = get_subprocess_creation_flags()

    if "creationflags" in kwargs:
        kwargs["creationflags"] = kwargs["creationflags"] | default_flags
    elif default_flags:
        kwargs["creationflags"] = default_flags

    if "stdin" not in kwargs:
        kwargs["stdin"] = subprocess.DEVNULL

    return subprocess.run(cmd, **kwargs)


def find_executable(name: str, java_home: Path | None = None) -> str | None:
    """Locate a tool executable.

    Looks in ``<java_home>/bin`` first, then ``JAVA_HOME/bin``, then PATH.

    Args:
        name: Tool name without extension (e.g. "javac")
        java_home: Optional JDK installation directory

    Returns:
        Absolute path of the executable, or None if it cannot be found
    """
    homes = [java_home] if java_home is not None else []
    env_home = os.environ.get("JAVA_HOME")
    if env_home:
        homes.append(Path(env_home))
    suffix = ".exe" if sys.platform == "win32" else ""
    for home in homes:
        candidate = home / "bin" / f"{name}{suffix}"
        if candidate.is_file():
            return str(candidate)
    return shutil.which(name)


def run_captured(cmd: list[str], cwd: Path | None = None) -> tuple[int, str, str]:
    """Run a command to completion and capture its text output.

    A missing executable is reported as exit code 127 with an explanatory
    stderr instead of raising, so callers treat it like any tool failure.

    Args:
        cmd: Command and arguments
        cwd: Optional working directory

    Returns:
        Tuple of (exit code, stdout, stderr)
    """
    try:
        result = safe_run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except FileNotFoundError as e:
        return COMMAND_NOT_FOUND, "", f"{cmd[0]}: command not found ({e})"
    return result.returncode, result.stdout or "", result.stderr or ""
