"""Detect client installs misplaced by the Windows updater.

Squirrel, the updater the Windows client ships with, occasionally installs the
client under ``%PROGRAMDATA%\\<user>\\Discord`` instead of
``%LOCALAPPDATA%\\Discord``.  The client keeps running from there, but its
self-updater can no longer find the application directory, so a patch applied
to the regular install is silently lost on the next client update.  The
condition is recognised purely from the directory layout: a client directory
name sitting one level below a per-user folder inside the machine-wide data
root.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Mapping

from domain.installation import Branch, LocatedPath
from services.discovery.locator import WINDOWS_DIR_NAMES

_LOGGER = logging.getLogger(__name__)


class ScuffedDetector:
    def __init__(
        self,
        program_data: Path | None,
        username: str | None,
        *,
        dir_names: Mapping[str, Branch] = WINDOWS_DIR_NAMES,
    ) -> None:
        self._program_data = Path(program_data) if program_data else None
        self._username = username or None
        self._dir_names = {name.lower(): branch for name, branch in dir_names.items()}

    @classmethod
    def for_platform(
        cls,
        platform: str | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "ScuffedDetector":
        """Return a detector for ``platform``; only Windows can be scuffed."""

        platform = platform or sys.platform
        env = os.environ if environ is None else environ
        if not platform.startswith("win"):
            return cls(None, None)
        program_data = env.get("PROGRAMDATA")
        return cls(Path(program_data) if program_data else None, env.get("USERNAME"))

    @property
    def location(self) -> Path | None:
        """Directory the user has to clean up, when detection is possible."""

        if self._program_data is None or self._username is None:
            return None
        return self._program_data / self._username

    def misplaced_installs(self) -> list[LocatedPath]:
        location = self.location
        if location is None:
            return []
        try:
            with os.scandir(location) as entries:
                found = [
                    LocatedPath(Path(entry.path), self._dir_names[entry.name.lower()].value)
                    for entry in entries
                    if entry.name.lower() in self._dir_names and entry.is_dir()
                ]
        except FileNotFoundError:
            return []
        except OSError as exc:
            _LOGGER.debug("Unable to inspect %s for misplaced installs: %s", location, exc)
            return []
        for misplaced in found:
            _LOGGER.warning("Found misplaced %s install at %s", misplaced.branch_hint, misplaced.path)
        return found

    def affected_branches(self) -> frozenset[Branch]:
        return frozenset(Branch(found.branch_hint) for found in self.misplaced_installs())

    def is_scuffed(self, branch: Branch) -> bool:
        return branch in self.affected_branches()


__all__ = ["ScuffedDetector"]
