"""Swap the running installer executable for a verified download."""

from __future__ import annotations

import logging
import os
import stat
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence

from domain.errors import RelaunchFailed, ReplaceFailed
from services.update.constants import INSTALLER_EXECUTABLE_ENV, PREVIOUS_EXECUTABLE_SUFFIX, STAGED_EXECUTABLE_SUFFIX

_LOGGER = logging.getLogger(__name__)


class SelfReplacer(Protocol):
    """Protocol describing the platform-specific replacement routine."""

    def replace(self, executable: Path, new_binary: Path) -> None:
        """Install ``new_binary`` at ``executable`` or raise :class:`ReplaceFailed`."""


class Relauncher(Protocol):
    def relaunch(self, executable: Path) -> None:
        """Start ``executable`` and end the current process.

        Raises :class:`RelaunchFailed` when the new process cannot be started;
        by then the executable has already been replaced.
        """


class PosixSelfReplacer:
    """Rename a staged sibling over the executable in a single step.

    POSIX lets a running binary be replaced by rename; the process keeps its
    open inode and the next launch picks up the new file.
    """

    def replace(self, executable: Path, new_binary: Path) -> None:
        staged = _stage_sibling(executable, new_binary)
        try:
            os.replace(staged, executable)
        except OSError as exc:
            _discard(staged)
            raise ReplaceFailed(f"Failed to replace {executable}: {exc}") from exc
        _LOGGER.info("Replaced installer executable %s", executable)


class WindowsSelfReplacer:
    """Move the locked executable aside, then move the new one into place.

    Windows refuses to overwrite a running image but allows renaming it.
    The previous binary is left as ``<name>.old`` and deleted on the next
    start.

    Between the two renames the executable path briefly does not exist.  If
    the second rename fails the old binary is renamed back, so the only
    states that outlive the call are the old executable or the new one.
    """

    def replace(self, executable: Path, new_binary: Path) -> None:
        staged = _stage_sibling(executable, new_binary)
        previous = previous_executable_path(executable)
        try:
            if previous.exists():
                previous.unlink()
            os.rename(executable, previous)
        except OSError as exc:
            _discard(staged)
            raise ReplaceFailed(f"Could not move {executable} aside: {exc}") from exc
        try:
            os.rename(staged, executable)
        except OSError as exc:
            _LOGGER.error("Moving the new installer into place failed; restoring %s", executable)
            try:
                os.rename(previous, executable)
            except OSError:
                _LOGGER.exception("Unable to restore previous installer from %s", previous)
            _discard(staged)
            raise ReplaceFailed(f"Failed to replace {executable}: {exc}") from exc
        _LOGGER.info("Replaced installer executable %s", executable)


class ProcessRelauncher:
    """Launch the replaced executable and exit the application."""

    def __init__(self, *, argv: Sequence[str] | None = None, exit_after_launch: bool = True) -> None:
        self._argv = list(sys.argv[1:] if argv is None else argv)
        self._exit_after_launch = exit_after_launch

    def relaunch(self, executable: Path) -> None:
        _LOGGER.info("Relaunching %s", executable)
        popen_kwargs: dict[str, Any] = {
            "close_fds": True,
            "stdin": subprocess.DEVNULL,
        }
        if os.name == "nt":  # pragma: no cover - exercised on Windows
            popen_kwargs["creationflags"] = getattr(subprocess, "DETACHED_PROCESS", 0) | getattr(
                subprocess, "CREATE_NEW_PROCESS_GROUP", 0
            )
        else:
            popen_kwargs["start_new_session"] = True
        try:
            subprocess.Popen([str(executable), *self._argv], **popen_kwargs)
        except OSError as exc:
            raise RelaunchFailed(
                executable,
                f"The installer was updated but could not be restarted; start {executable} manually ({exc})",
            ) from exc
        if self._exit_after_launch:
            logging.shutdown()
            os._exit(0)


def default_replacer(platform: str | None = None) -> SelfReplacer:
    current = platform or sys.platform
    if current.startswith("win"):
        return WindowsSelfReplacer()
    return PosixSelfReplacer()


def find_running_executable(environ: Mapping[str, str] | None = None) -> Path | None:
    """Return the installer binary for this process when it is a frozen build."""

    env = os.environ if environ is None else environ
    override = env.get(INSTALLER_EXECUTABLE_ENV)
    if override:
        path = Path(override).expanduser()
        if path.is_file():
            return path
        _LOGGER.debug("Configured installer executable missing: %s", path)
        return None

    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve()

    return None


def previous_executable_path(executable: Path) -> Path:
    return executable.with_name(f"{executable.name}{PREVIOUS_EXECUTABLE_SUFFIX}")


def _stage_sibling(executable: Path, new_binary: Path) -> Path:
    """Copy ``new_binary`` next to ``executable`` so the final step is a rename."""

    try:
        fd, temp_name = tempfile.mkstemp(
            prefix=f".{executable.name}.",
            suffix=STAGED_EXECUTABLE_SUFFIX,
            dir=executable.parent,
        )
    except OSError as exc:
        raise ReplaceFailed(f"Cannot write next to {executable}: {exc}") from exc
    staged = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as handle, new_binary.open("rb") as source:
            for chunk in iter(lambda: source.read(65536), b""):
                handle.write(chunk)
            handle.flush()
            os.fsync(handle.fileno())
        mode = executable.stat().st_mode if executable.exists() else 0o755
        os.chmod(staged, stat.S_IMODE(mode) | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    except OSError as exc:
        _discard(staged)
        raise ReplaceFailed(f"Failed to stage new installer next to {executable}: {exc}") from exc
    return staged


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        return
    except OSError:
        _LOGGER.debug("Unable to remove staged installer %s", path, exc_info=True)


__all__ = [
    "PosixSelfReplacer",
    "ProcessRelauncher",
    "Relauncher",
    "SelfReplacer",
    "WindowsSelfReplacer",
    "default_replacer",
    "find_running_executable",
    "previous_executable_path",
]
