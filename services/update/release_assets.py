"""Utilities for acquiring release assets and their published digests."""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from urllib.request import Request, urlopen

from domain.errors import FeedUnavailable, UpdateError
from services.update.constants import USER_AGENT
from services.update.models import ReleaseInfo
from services.verification import parse_hash_text


_LOGGER = logging.getLogger(__name__)

__all__ = ["download_file", "obtain_release_asset", "resolve_expected_hash"]

_DEFAULT_TIMEOUT = 30.0


def _request(url: str) -> Request:
    return Request(url, headers={"User-Agent": USER_AGENT})


def download_file(url: str, target_dir: Path, name: str, *, timeout: float = _DEFAULT_TIMEOUT) -> Path:
    """Stream ``url`` into ``target_dir / name`` and return the written path."""

    target_path = Path(target_dir) / name
    _LOGGER.info("Downloading %s from %s", name, url)
    try:
        with urlopen(_request(url), timeout=timeout) as response, target_path.open("wb") as destination:  # nosec - HTTPS
            shutil.copyfileobj(response, destination)
    except OSError as exc:
        target_path.unlink(missing_ok=True)
        raise FeedUnavailable(f"Failed to download {name}: {exc}") from exc
    _LOGGER.debug("Downloaded %s to %s", name, target_path)
    return target_path


def obtain_release_asset(release: ReleaseInfo, *, timeout: float = _DEFAULT_TIMEOUT) -> Path:
    """Return a path in a fresh temporary directory holding ``release``'s asset."""

    target_dir = Path(tempfile.mkdtemp(prefix="bashcord-update-"))
    if release.source_path is not None:
        _LOGGER.info(
            "Copying %s %s from local source %s",
            release.kind.value,
            release.tag,
            release.source_path,
        )
        target_path = target_dir / release.asset_name
        try:
            shutil.copy2(release.source_path, target_path)
        except OSError as exc:
            shutil.rmtree(target_dir, ignore_errors=True)
            raise FeedUnavailable(f"Failed to copy {release.asset_name}: {exc}") from exc
        return target_path

    if release.download_url is None:
        shutil.rmtree(target_dir, ignore_errors=True)
        raise UpdateError(f"Release {release.tag} is missing a download URL")
    try:
        return download_file(release.download_url, target_dir, release.asset_name, timeout=timeout)
    except FeedUnavailable:
        shutil.rmtree(target_dir, ignore_errors=True)
        raise


def resolve_expected_hash(release: ReleaseInfo, *, timeout: float = _DEFAULT_TIMEOUT) -> str | None:
    """Return the published SHA-256 for ``release`` or ``None`` when none exists."""

    if release.hash_value:
        _LOGGER.debug("Using inline hash for %s %s", release.kind.value, release.tag)
        return release.hash_value.strip()
    if release.hash_path is not None:
        try:
            _LOGGER.debug("Reading hash for %s from %s", release.tag, release.hash_path)
            return parse_hash_text(release.hash_path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise FeedUnavailable(f"Failed to read hash file: {exc}") from exc
    if release.hash_url is not None:
        try:
            _LOGGER.debug("Downloading hash for %s from %s", release.tag, release.hash_url)
            with urlopen(_request(release.hash_url), timeout=timeout) as response:  # nosec - HTTPS
                text = response.read().decode("utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise FeedUnavailable(f"Failed to download hash file: {exc}") from exc
        return parse_hash_text(text)
    return None
