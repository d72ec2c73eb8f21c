from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

from domain.errors import RelaunchFailed, ReplaceFailed
from services.update import (
    PosixSelfReplacer,
    ProcessRelauncher,
    WindowsSelfReplacer,
    default_replacer,
    find_running_executable,
)
from services.update import self_replace as self_replace_module
from services.update.recovery import cleanup_previous_executable


@pytest.fixture
def executable(tmp_path: Path) -> Path:
    path = tmp_path / "bin" / "BashcordInstaller"
    path.parent.mkdir()
    path.write_bytes(b"version one")
    os.chmod(path, 0o755)
    return path


@pytest.fixture
def new_binary(tmp_path: Path) -> Path:
    path = tmp_path / "download" / "BashcordInstaller"
    path.parent.mkdir()
    path.write_bytes(b"version two")
    return path


def _siblings(executable: Path) -> list[str]:
    return sorted(path.name for path in executable.parent.iterdir())


def test_posix_replacer_swaps_in_new_binary(executable: Path, new_binary: Path) -> None:
    PosixSelfReplacer().replace(executable, new_binary)

    assert executable.read_bytes() == b"version two"
    assert _siblings(executable) == ["BashcordInstaller"]
    if sys.platform != "win32":
        assert os.access(executable, os.X_OK)


def test_posix_replacer_leaves_executable_untouched_on_failure(executable: Path, tmp_path: Path) -> None:
    with pytest.raises(ReplaceFailed):
        PosixSelfReplacer().replace(executable, tmp_path / "missing")

    assert executable.read_bytes() == b"version one"
    assert _siblings(executable) == ["BashcordInstaller"]


def test_staging_next_to_missing_directory_fails(tmp_path: Path, new_binary: Path) -> None:
    with pytest.raises(ReplaceFailed, match="Cannot write"):
        PosixSelfReplacer().replace(tmp_path / "gone" / "BashcordInstaller", new_binary)


def test_windows_replacer_moves_running_binary_aside(executable: Path, new_binary: Path) -> None:
    WindowsSelfReplacer().replace(executable, new_binary)

    assert executable.read_bytes() == b"version two"
    assert executable.with_name("BashcordInstaller.old").read_bytes() == b"version one"

    removed = cleanup_previous_executable(executable)
    assert removed == [executable.with_name("BashcordInstaller.old")]
    assert _siblings(executable) == ["BashcordInstaller"]


def test_windows_replacer_rolls_back_when_final_rename_fails(
    executable: Path, new_binary: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    real_rename = os.rename
    calls: list[tuple[str, str]] = []

    def flaky_rename(src, dst) -> None:
        calls.append((Path(src).name, Path(dst).name))
        if len(calls) == 2:
            raise PermissionError("file in use")
        real_rename(src, dst)

    monkeypatch.setattr(self_replace_module.os, "rename", flaky_rename)

    with pytest.raises(ReplaceFailed):
        WindowsSelfReplacer().replace(executable, new_binary)

    assert len(calls) == 3
    assert executable.read_bytes() == b"version one"
    assert _siblings(executable) == ["BashcordInstaller"]


def test_cleanup_removes_stray_staged_copies(executable: Path) -> None:
    stray = executable.with_name(".BashcordInstaller.abc123.new")
    stray.write_bytes(b"partial")

    assert cleanup_previous_executable(executable) == [stray]
    assert cleanup_previous_executable(executable) == []
    assert cleanup_previous_executable(None) == []


@pytest.mark.parametrize(
    ("platform", "expected"),
    [("win32", WindowsSelfReplacer), ("linux", PosixSelfReplacer), ("darwin", PosixSelfReplacer)],
)
def test_default_replacer(platform: str, expected: type) -> None:
    assert isinstance(default_replacer(platform), expected)


def test_find_running_executable_prefers_environment(executable: Path, tmp_path: Path) -> None:
    assert find_running_executable({"BASHCORD_INSTALLER_EXECUTABLE": str(executable)}) == executable
    assert find_running_executable({"BASHCORD_INSTALLER_EXECUTABLE": str(tmp_path / "nope")}) is None
    assert find_running_executable({}) is None


def test_relauncher_starts_new_process(executable: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    launched: list[list[str]] = []

    def fake_popen(args, **kwargs):
        launched.append(args)
        return object()

    monkeypatch.setattr(self_replace_module.subprocess, "Popen", fake_popen)

    ProcessRelauncher(argv=["--update-self"], exit_after_launch=False).relaunch(executable)

    assert launched == [[str(executable), "--update-self"]]


def test_relauncher_reports_launch_failures(executable: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_popen(args, **kwargs):
        raise OSError("exec format error")

    monkeypatch.setattr(self_replace_module.subprocess, "Popen", broken_popen)

    with pytest.raises(RelaunchFailed, match="start .* manually") as excinfo:
        ProcessRelauncher(argv=[], exit_after_launch=False).relaunch(executable)

    assert not isinstance(excinfo.value, ReplaceFailed)
    assert excinfo.value.executable == executable
