"""Enumerate directories that may hold a client installation."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Iterable, Iterator, Mapping

from app.config import resolve_user_home
from domain.installation import Branch, LocatedPath

_LOGGER = logging.getLogger(__name__)

WINDOWS_DIR_NAMES: Mapping[str, Branch] = {
    "discord": Branch.STABLE,
    "discordptb": Branch.PTB,
    "discordcanary": Branch.CANARY,
    "discorddevelopment": Branch.DEVELOPMENT,
}

MACOS_DIR_NAMES: Mapping[str, Branch] = {
    "discord.app": Branch.STABLE,
    "discord ptb.app": Branch.PTB,
    "discord canary.app": Branch.CANARY,
    "discord development.app": Branch.DEVELOPMENT,
}

LINUX_DIR_NAMES: Mapping[str, Branch] = {
    "discord": Branch.STABLE,
    "discord-ptb": Branch.PTB,
    "discordptb": Branch.PTB,
    "discord-canary": Branch.CANARY,
    "discordcanary": Branch.CANARY,
    "discord-development": Branch.DEVELOPMENT,
    "discorddevelopment": Branch.DEVELOPMENT,
}

_FLATPAK_IDS = ("com.discordapp.Discord", "com.discordapp.DiscordCanary")


def dir_names_for(platform: str) -> Mapping[str, Branch]:
    if platform.startswith("win"):
        return WINDOWS_DIR_NAMES
    if platform == "darwin":
        return MACOS_DIR_NAMES
    return LINUX_DIR_NAMES


def default_roots(platform: str | None = None, environ: Mapping[str, str] | None = None) -> tuple[Path, ...]:
    """Return the conventional per-user and per-machine roots for ``platform``."""

    platform = platform or sys.platform
    env = os.environ if environ is None else environ
    home = resolve_user_home(env)

    if platform.startswith("win"):
        local_appdata = env.get("LOCALAPPDATA")
        if local_appdata:
            return (Path(local_appdata),)
        return (home / "AppData" / "Local",)

    if platform == "darwin":
        return (Path("/Applications"), home / "Applications")

    roots = [
        Path("/usr/share"),
        Path("/usr/lib64"),
        Path("/usr/lib"),
        Path("/opt"),
        home / ".local" / "share",
    ]
    for flatpak_root in (Path("/var/lib/flatpak/app"), home / ".local" / "share" / "flatpak" / "app"):
        for flatpak_id in _FLATPAK_IDS:
            roots.append(flatpak_root / flatpak_id / "current" / "active" / "files")
    return tuple(roots)


class InstallLocator:
    """Scan a fixed set of roots for directories named like the client."""

    def __init__(
        self,
        roots: Iterable[Path] | None = None,
        *,
        platform: str | None = None,
        dir_names: Mapping[str, Branch] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        platform = platform or sys.platform
        if roots is not None:
            self._roots = tuple(Path(root) for root in roots)
        else:
            self._roots = default_roots(platform, environ)
        names = dir_names if dir_names is not None else dir_names_for(platform)
        self._dir_names = {name.lower(): branch for name, branch in names.items()}

    @property
    def roots(self) -> tuple[Path, ...]:
        return self._roots

    def locate(self) -> Iterator[LocatedPath]:
        """Yield every matching directory below the configured roots.

        The same bundle can be reachable through two roots (``/usr/lib`` and a
        symlinked ``/usr/lib64``); callers deduplicate on the resolved path.
        """

        for root in self._roots:
            yield from self._scan_root(root)

    def _scan_root(self, root: Path) -> Iterator[LocatedPath]:
        try:
            with os.scandir(root) as entries:
                matches = [
                    (entry.name, Path(entry.path))
                    for entry in entries
                    if entry.name.lower() in self._dir_names and entry.is_dir()
                ]
        except OSError as exc:
            _LOGGER.debug("Skipping unreadable install root %s: %s", root, exc)
            return

        for name, path in sorted(matches):
            branch = self._dir_names[name.lower()]
            _LOGGER.debug("Found %s candidate at %s", branch.value, path)
            yield LocatedPath(path=path, branch_hint=branch.value)


__all__ = [
    "InstallLocator",
    "LINUX_DIR_NAMES",
    "MACOS_DIR_NAMES",
    "WINDOWS_DIR_NAMES",
    "default_roots",
    "dir_names_for",
]
