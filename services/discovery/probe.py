"""Derive an installation's patch state from what is on disk.

This is the only place that interprets the injection marker.  Callers get a
:class:`ProbeResult` and never look at entry point bytes themselves, so the
marker scheme can be replaced without touching the classifier contract.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from domain.installation import PatchState
from services.patching.entry_point import PAYLOAD_DIRNAME, marker_version, read_head, read_payload_hash
from services.patching.secondary_mod import is_secondary_mod_installed

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbeResult:
    patch_state: PatchState
    secondary_mod_installed: bool = False
    payload_hash: str | None = None
    marker_version: int | None = None


def probe_patch_state(resources_dir: Path, app_dir: Path, entry_point: Path) -> ProbeResult:
    secondary = is_secondary_mod_installed(resources_dir)
    try:
        head = read_head(entry_point)
    except FileNotFoundError:
        _LOGGER.debug("Entry point %s does not exist", entry_point)
        head = b""
    except OSError as exc:
        _LOGGER.debug("Unable to read entry point %s: %s", entry_point, exc)
        head = b""

    version = marker_version(head)
    if version is None:
        return ProbeResult(PatchState.UNPATCHED, secondary_mod_installed=secondary)

    payload_hash = read_payload_hash(app_dir / PAYLOAD_DIRNAME)
    state = PatchState.SECONDARY_MOD_PATCHED if secondary else PatchState.PATCHED
    return ProbeResult(
        state,
        secondary_mod_installed=secondary,
        payload_hash=payload_hash,
        marker_version=version,
    )


__all__ = ["ProbeResult", "probe_patch_state"]
