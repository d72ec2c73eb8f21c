from __future__ import annotations

import os
from pathlib import Path

import pytest

from domain.installation import Branch
from services.discovery import InstallLocator, default_roots
from services.discovery import locator as locator_module
from services.discovery.locator import MACOS_DIR_NAMES


def test_locator_yields_matching_directories_with_branch_hints(tmp_path: Path) -> None:
    (tmp_path / "discord").mkdir()
    (tmp_path / "discord-canary").mkdir()
    (tmp_path / "spotify").mkdir()
    (tmp_path / "discord-ptb").write_text("not a directory", encoding="utf-8")

    found = list(InstallLocator([tmp_path], platform="linux").locate())

    assert [(item.path.name, item.branch_hint) for item in found] == [
        ("discord", "stable"),
        ("discord-canary", "canary"),
    ]


def test_locator_matches_names_case_insensitively(tmp_path: Path) -> None:
    (tmp_path / "DiscordCanary").mkdir()

    found = list(InstallLocator([tmp_path], platform="win32").locate())

    assert len(found) == 1
    assert found[0].branch_hint == Branch.CANARY.value


def test_locator_skips_missing_roots(tmp_path: Path) -> None:
    present = tmp_path / "present"
    (present / "Discord").mkdir(parents=True)

    locator = InstallLocator([tmp_path / "missing", present], platform="win32")

    assert [item.path for item in locator.locate()] == [present / "Discord"]


def test_locator_skips_unreadable_roots(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    locked = tmp_path / "locked"
    (locked / "Discord").mkdir(parents=True)
    readable = tmp_path / "readable"
    (readable / "DiscordPTB").mkdir(parents=True)
    real_scandir = os.scandir

    def guarded_scandir(path):
        if Path(path) == locked:
            raise PermissionError(13, "Permission denied", str(path))
        return real_scandir(path)

    monkeypatch.setattr(locator_module.os, "scandir", guarded_scandir)

    assert list(InstallLocator([locked], platform="win32").locate()) == []
    found = list(InstallLocator([locked, readable], platform="win32").locate())
    assert [(item.path, item.branch_hint) for item in found] == [(readable / "DiscordPTB", "ptb")]


def test_locator_is_lazy(tmp_path: Path) -> None:
    (tmp_path / "discord").mkdir()
    locator = InstallLocator([tmp_path], platform="linux")

    iterator = locator.locate()
    first = next(iterator)

    assert first.path == tmp_path / "discord"


def test_macos_names_cover_every_branch() -> None:
    assert set(MACOS_DIR_NAMES.values()) == set(Branch)


def test_default_roots_use_localappdata_on_windows(tmp_path: Path) -> None:
    roots = default_roots("win32", {"LOCALAPPDATA": str(tmp_path)})

    assert roots == (tmp_path,)


def test_default_roots_on_macos_include_applications() -> None:
    roots = default_roots("darwin", {})

    assert Path("/Applications") in roots


def test_default_roots_on_linux_include_system_and_flatpak_dirs() -> None:
    roots = default_roots("linux", {})

    assert Path("/usr/share") in roots
    assert Path("/opt") in roots
    assert any("com.discordapp.Discord" in str(root) for root in roots)
