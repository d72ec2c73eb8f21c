"""Layout of a patched entry point and the marker that identifies it."""

from __future__ import annotations

import os
import re
from pathlib import Path

MARKER_VERSION = 1
INJECTION_MARKER = f"// bashcord-injection v{MARKER_VERSION}"
PAYLOAD_DIRNAME = "_bashcord"
PAYLOAD_ENTRY = "patcher.js"

_MARKER_PATTERN = re.compile(rb"^(?:\xef\xbb\xbf)?\s*//\s*bashcord-injection v(\d+)\b")
_PAYLOAD_HEADER_PATTERN = re.compile(r"^//\s*Bashcord\s+([0-9A-Za-z._-]+)")
_HEAD_BYTES = 256


def recovery_path(entry_point: Path) -> Path:
    """Location of the byte-exact copy of the original entry point."""

    return entry_point.with_name(f"_{entry_point.name}")


def render_patched_entry(entry_point: Path, payload_dir: Path) -> bytes:
    """Return an entry point that loads the payload, then the original code.

    The marker is always the first line; the probe only looks there.
    """

    lines = [
        INJECTION_MARKER,
        f'require("{_require_path(entry_point.parent, payload_dir / PAYLOAD_ENTRY)}");',
        f'require("./{recovery_path(entry_point).name}");',
        "",
    ]
    return "\n".join(lines).encode("utf-8")


def _require_path(start: Path, target: Path) -> str:
    relative = os.path.relpath(target, start).replace(os.sep, "/")
    if not relative.startswith("."):
        relative = f"./{relative}"
    return relative


def marker_version(content: bytes) -> int | None:
    """Return the marker version on the first line of ``content``, if any."""

    match = _MARKER_PATTERN.match(content[:_HEAD_BYTES])
    if match is None:
        return None
    return int(match.group(1))


def has_injection_marker(content: bytes) -> bool:
    return marker_version(content) is not None


def read_head(path: Path, size: int = _HEAD_BYTES) -> bytes:
    with path.open("rb") as handle:
        return handle.read(size)


def read_payload_hash(payload_dir: Path) -> str | None:
    """Return the build hash from the payload header (``// Bashcord <hash>``)."""

    try:
        head = read_head(payload_dir / PAYLOAD_ENTRY).decode("utf-8", errors="replace")
    except OSError:
        return None
    first_line = head.splitlines()[0] if head else ""
    match = _PAYLOAD_HEADER_PATTERN.match(first_line.lstrip("\ufeff"))
    if match is None:
        return None
    return match.group(1)


__all__ = [
    "INJECTION_MARKER",
    "MARKER_VERSION",
    "PAYLOAD_DIRNAME",
    "PAYLOAD_ENTRY",
    "has_injection_marker",
    "marker_version",
    "read_head",
    "read_payload_hash",
    "recovery_path",
    "render_patched_entry",
]
