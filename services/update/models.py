"""Data models used by the update service."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from domain.errors import (
    FeedUnavailable,
    RelaunchFailed,
    ReplaceFailed,
    UpdateError,
    VerificationFailed,
)


class ReleaseKind(str, Enum):
    """The two artifacts that are updated independently."""

    PAYLOAD = "payload"
    INSTALLER = "installer"


@dataclass(frozen=True)
class ReleaseInfo:
    """Metadata describing the newest published build of one artifact."""

    kind: ReleaseKind
    tag: str
    commit_hash: str
    asset_name: str
    download_url: str | None = None
    source_path: Path | None = None
    hash_value: str | None = None
    hash_url: str | None = None
    hash_path: Path | None = None
    release_notes: str | None = None
    html_url: str | None = None

    @property
    def has_published_hash(self) -> bool:
        return bool(self.hash_value or self.hash_url or self.hash_path)


@dataclass(frozen=True)
class UpdateStatus:
    """Staleness of both artifacts; a feed failure only affects its own side."""

    payload_stale: bool = False
    installer_stale: bool = False
    payload_release: ReleaseInfo | None = None
    installer_release: ReleaseInfo | None = None
    payload_error: str | None = None
    installer_error: str | None = None

    @property
    def any_stale(self) -> bool:
        return self.payload_stale or self.installer_stale


class SelfUpdateOutcome(str, Enum):
    REPLACED = "replaced"
    OPENED_BROWSER = "opened_browser"
    UP_TO_DATE = "up_to_date"


__all__ = [
    "FeedUnavailable",
    "ReleaseInfo",
    "ReleaseKind",
    "RelaunchFailed",
    "ReplaceFailed",
    "SelfUpdateOutcome",
    "UpdateError",
    "UpdateStatus",
    "VerificationFailed",
]
