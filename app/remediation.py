"""User-facing advice for errors, looked up by platform."""

from __future__ import annotations

import shlex
import sys
from pathlib import Path

from domain.errors import InstallerError, PermissionDenied, ScuffedInstall

_DEFAULT_KEY = "default"

PERMISSION_REMEDIATION: dict[str, str] = {
    "win32": "Permission denied. Make sure Discord is fully closed (from the tray) and try again.",
    "darwin": (
        "Permission denied. Give the installer Full Disk Access in System Settings "
        "(Privacy & Security).\n\n"
        "If that still does not work, run this in a terminal:\n"
        'sudo chown -R "${{USER}}:wheel" {path}'
    ),
    "linux": (
        "Permission denied. Try running the installer with sudo.\n\n"
        "If that still does not work, run this in a terminal:\n"
        'sudo chown -R "$USER:$USER" {path}'
    ),
    _DEFAULT_KEY: "Permission denied. Try running the installer as Administrator or root.",
}

SCUFFED_REMEDIATION = (
    "This Discord install is scuffed: a copy lives in {location}. "
    "Uninstall Discord, delete that folder, then reinstall Discord before patching."
)


def platform_key(platform: str | None = None) -> str:
    current = platform or sys.platform
    if current.startswith("win"):
        return "win32"
    if current == "darwin":
        return "darwin"
    if current.startswith("linux"):
        return "linux"
    return _DEFAULT_KEY


def permission_message(path: Path | str | None, platform: str | None = None) -> str:
    template = PERMISSION_REMEDIATION[platform_key(platform)]
    quoted = shlex.quote(str(path)) if path is not None else "<install folder>"
    return template.format(path=quoted)


def describe_error(
    error: InstallerError,
    *,
    platform: str | None = None,
    scuffed_location: Path | None = None,
) -> str:
    """Render ``error`` for display, adding remediation where there is some."""

    if isinstance(error, PermissionDenied):
        return permission_message(error.path, platform)
    if isinstance(error, ScuffedInstall) and scuffed_location is not None:
        return SCUFFED_REMEDIATION.format(location=scuffed_location)
    return str(error)


__all__ = [
    "PERMISSION_REMEDIATION",
    "SCUFFED_REMEDIATION",
    "describe_error",
    "permission_message",
    "platform_key",
]
