"""Startup cleanup of files left behind by a previous self-update."""

from __future__ import annotations

import logging
from pathlib import Path

from services.update.constants import STAGED_EXECUTABLE_SUFFIX
from services.update.self_replace import previous_executable_path

_LOGGER = logging.getLogger(__name__)


def cleanup_previous_executable(executable: Path | None) -> list[Path]:
    """Delete ``<exe>.old`` and stray staged copies next to ``executable``."""

    if executable is None:
        return []

    leftovers = [previous_executable_path(executable)]
    try:
        leftovers.extend(
            executable.parent.glob(f".{executable.name}.*{STAGED_EXECUTABLE_SUFFIX}")
        )
    except OSError:
        _LOGGER.debug("Unable to scan %s for staged installers", executable.parent, exc_info=True)

    removed: list[Path] = []
    for path in leftovers:
        if _safe_remove(path):
            removed.append(path)
    if removed:
        _LOGGER.info("Removed %d file(s) left by a previous self-update", len(removed))
    return removed


def _safe_remove(path: Path) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError:
        _LOGGER.debug("Unable to remove %s", path, exc_info=True)
        return False
    return True


__all__ = ["cleanup_previous_executable"]
