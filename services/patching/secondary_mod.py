"""OpenAsar, the optional secondary modification.

OpenAsar is a self-contained bundle dropped next to the client's own app
directory.  Installing or removing it only ever touches
``resources/openasar/``; the entry point stays exactly as it was.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Protocol

from domain.errors import IOFailure, VerificationFailed
from services.update.release_assets import download_file

_LOGGER = logging.getLogger(__name__)

SECONDARY_MOD_DIRNAME = "openasar"
SECONDARY_MOD_ENTRY = "app.asar"
SECONDARY_MOD_SIGNATURE = b"OpenAsar"


def secondary_mod_dir(resources_dir: Path) -> Path:
    return resources_dir / SECONDARY_MOD_DIRNAME


def has_signature(entry: Path) -> bool:
    try:
        return SECONDARY_MOD_SIGNATURE in entry.read_bytes()
    except OSError:
        return False


def is_secondary_mod_installed(resources_dir: Path) -> bool:
    return has_signature(secondary_mod_dir(resources_dir) / SECONDARY_MOD_ENTRY)


class SecondaryModSource(Protocol):
    """Supplies a local directory holding the bundle to install."""

    def bundle_dir(self) -> Path:
        """Return a directory containing ``app.asar`` ready to be copied."""


class CachedSecondaryModSource:
    """Serve the bundle from the data directory, downloading it on first use."""

    def __init__(self, cache_dir: Path, download_url: str | None, *, timeout: float = 30.0) -> None:
        self._cache_dir = Path(cache_dir)
        self._download_url = download_url
        self._timeout = timeout

    def bundle_dir(self) -> Path:
        entry = self._cache_dir / SECONDARY_MOD_ENTRY
        if has_signature(entry):
            return self._cache_dir
        if not self._download_url:
            raise IOFailure(f"OpenAsar bundle is not available at {self._cache_dir}")
        self._download(self._download_url)
        return self._cache_dir

    def _download(self, url: str) -> None:
        work_dir = Path(tempfile.mkdtemp(prefix="bashcord-openasar-"))
        try:
            downloaded = download_file(url, work_dir, SECONDARY_MOD_ENTRY, timeout=self._timeout)
            if not has_signature(downloaded):
                raise VerificationFailed("Downloaded OpenAsar bundle is missing its signature")
            try:
                self._cache_dir.mkdir(parents=True, exist_ok=True)
                staged = self._cache_dir / f".{SECONDARY_MOD_ENTRY}.download"
                shutil.copyfile(downloaded, staged)
                os.replace(staged, self._cache_dir / SECONDARY_MOD_ENTRY)
            except OSError as exc:
                raise IOFailure(f"Failed to cache OpenAsar bundle in {self._cache_dir}: {exc}") from exc
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)
        _LOGGER.info("Cached OpenAsar bundle in %s", self._cache_dir)


__all__ = [
    "CachedSecondaryModSource",
    "SECONDARY_MOD_DIRNAME",
    "SECONDARY_MOD_ENTRY",
    "SECONDARY_MOD_SIGNATURE",
    "SecondaryModSource",
    "has_signature",
    "is_secondary_mod_installed",
    "secondary_mod_dir",
]
