"""Turn a candidate directory into an :class:`Installation` record."""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path, PurePosixPath
from typing import Any, Mapping

from packaging.version import InvalidVersion, Version

from domain.errors import NotAnInstall
from domain.installation import (
    APP_DIRNAME,
    DEFAULT_ENTRY_POINT,
    VERSION_DESCRIPTOR,
    Branch,
    Installation,
)
from services.discovery.probe import probe_patch_state
from services.discovery.scuffed import ScuffedDetector

_LOGGER = logging.getLogger(__name__)

_WINDOWS_APP_DIR = re.compile(r"^app-(?P<version>\d+(?:\.\d+)*)$", re.IGNORECASE)


class InstallClassifier:
    """Validate a bundle layout and describe what is installed there.

    A bundle is recognised by ``resources/app/package.json``.  The resources
    directory may sit directly under the candidate (Linux), under
    ``Contents/Resources`` (macOS ``.app`` bundles) or under the newest
    ``app-<version>`` directory (Windows Squirrel layout).
    """

    def __init__(self, scuffed_detector: ScuffedDetector | None = None) -> None:
        self._scuffed = scuffed_detector or ScuffedDetector(None, None)

    def classify(self, path: Path | str, branch_hint: str = "") -> Installation | None:
        """Return the installation at ``path`` or ``None`` when it is not one."""

        candidate = Path(os.path.abspath(Path(path).expanduser()))
        resources_dir, folder_version = _find_resources_dir(candidate)
        if resources_dir is None:
            _LOGGER.debug("No client bundle layout found at %s", candidate)
            return None

        app_dir = resources_dir / APP_DIRNAME
        descriptor = _read_descriptor(app_dir / VERSION_DESCRIPTOR)
        if descriptor is None:
            _LOGGER.debug("Version descriptor at %s is unreadable", app_dir / VERSION_DESCRIPTOR)
            return None

        branch = (
            Branch.parse(branch_hint)
            or Branch.parse(candidate.name)
            or Branch.parse(_as_text(descriptor.get("name")))
            or Branch.STABLE
        )
        version = _as_text(descriptor.get("version")) or folder_version
        entry_name = _entry_name(descriptor.get("main"))
        entry_point = app_dir / entry_name

        probe = probe_patch_state(resources_dir, app_dir, entry_point)
        installation = Installation(
            path=candidate,
            branch=branch,
            resources_dir=resources_dir,
            patch_state=probe.patch_state,
            version=version,
            entry_name=entry_name,
            scuffed=self._scuffed.is_scuffed(branch),
            secondary_mod_installed=probe.secondary_mod_installed,
            payload_hash=probe.payload_hash,
        )
        _LOGGER.debug("Classified %s as %s", candidate, installation.display_state.value)
        return installation

    def require(self, path: Path | str, branch_hint: str = "") -> Installation:
        installation = self.classify(path, branch_hint)
        if installation is None:
            raise NotAnInstall(Path(path))
        return installation

    def reclassify(self, installation: Installation) -> Installation:
        """Re-read ``installation`` from disk after the bundle changed."""

        return self.require(installation.path, installation.branch.value)


def _find_resources_dir(candidate: Path) -> tuple[Path | None, str | None]:
    for resources_dir in (candidate / "resources", candidate / "Contents" / "Resources"):
        if _has_bundle_layout(resources_dir):
            return resources_dir, None

    newest = _newest_windows_app_dir(candidate)
    if newest is not None:
        app_dir, version = newest
        resources_dir = app_dir / "resources"
        if _has_bundle_layout(resources_dir):
            return resources_dir, version

    if candidate.name.lower() == "resources" and _has_bundle_layout(candidate):
        return candidate, None
    return None, None


def _has_bundle_layout(resources_dir: Path) -> bool:
    app_dir = resources_dir / APP_DIRNAME
    return app_dir.is_dir() and (app_dir / VERSION_DESCRIPTOR).is_file()


def _newest_windows_app_dir(candidate: Path) -> tuple[Path, str] | None:
    best: tuple[Version, Path, str] | None = None
    try:
        with os.scandir(candidate) as entries:
            for entry in entries:
                match = _WINDOWS_APP_DIR.match(entry.name)
                if match is None or not entry.is_dir():
                    continue
                raw_version = match.group("version")
                try:
                    parsed = Version(raw_version)
                except InvalidVersion:
                    continue
                if best is None or parsed > best[0]:
                    best = (parsed, Path(entry.path), raw_version)
    except OSError:
        return None
    if best is None:
        return None
    return best[1], best[2]


def _read_descriptor(path: Path) -> Mapping[str, Any] | None:
    try:
        parsed = json.loads(path.read_text(encoding="utf-8-sig"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        return None
    if isinstance(parsed, Mapping):
        return parsed
    return None


def _entry_name(raw: Any) -> str:
    text = _as_text(raw)
    if not text:
        return DEFAULT_ENTRY_POINT
    posix = PurePosixPath(text.replace("\\", "/"))
    parts = [part for part in posix.parts if part not in {"", "."}]
    if not parts or posix.is_absolute() or ".." in parts:
        return DEFAULT_ENTRY_POINT
    name = "/".join(parts)
    if not PurePosixPath(name).suffix:
        name = f"{name}.js"
    return name


def _as_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


__all__ = ["InstallClassifier"]
