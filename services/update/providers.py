"""Release provider implementations."""

from __future__ import annotations

import json
import logging
import platform as _platform
import re
import sys
from pathlib import Path
from typing import Any, Iterable, Protocol
from urllib.request import Request, urlopen

from app.version import normalize_tag
from domain.errors import FeedUnavailable
from services.update.constants import HASH_ASSET_SUFFIX, PAYLOAD_ARCHIVE_EXTENSIONS, USER_AGENT
from services.update.models import ReleaseInfo, ReleaseKind


_LOGGER = logging.getLogger(__name__)

_COMMIT_PATTERN = re.compile(r"^[0-9a-f]{7,40}$", re.IGNORECASE)
_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")
_PLATFORM_TOKENS = {
    "windows": {"win", "windows", "win32", "win64"},
    "darwin": {"mac", "macos", "darwin", "osx"},
    "linux": {"linux", "x11", "wayland"},
}
_ARCH_TOKENS = {
    "x64": {"x64", "amd64", "x8664"},
    "arm64": {"arm64", "aarch64"},
}


class ReleaseProvider(Protocol):
    """Protocol describing release metadata providers."""

    def fetch_latest(self) -> ReleaseInfo:
        """Return the newest release or raise :class:`FeedUnavailable`."""


class GitHubReleaseProvider:
    """Fetch release metadata from the GitHub Releases API."""

    def __init__(
        self,
        kind: ReleaseKind,
        api_url: str,
        *,
        asset_name: str | None = None,
        asset_prefix: str | None = None,
        timeout: float = 30.0,
        platform: str | None = None,
        machine: str | None = None,
    ) -> None:
        self._kind = kind
        self._api_url = api_url
        self._asset_name = asset_name
        self._asset_prefix = asset_prefix
        self._timeout = timeout
        self._platform = _normalise_platform(platform or sys.platform)
        self._arch = _normalise_arch(machine or _platform.machine())

    @property
    def kind(self) -> ReleaseKind:
        return self._kind

    def fetch_latest(self) -> ReleaseInfo:
        data = self._request_json(self._api_url)
        if not isinstance(data, dict):
            raise FeedUnavailable(f"Release feed {self._api_url} returned unexpected data")
        return self._build_release_info(data)

    def _request_json(self, url: str) -> Any:
        request = Request(url, headers={"User-Agent": USER_AGENT, "Accept": "application/vnd.github+json"})
        try:
            with urlopen(request, timeout=self._timeout) as response:  # nosec - GitHub API over HTTPS
                return json.load(response)
        except (OSError, ValueError) as exc:
            _LOGGER.debug("Failed to query GitHub releases endpoint %s: %s", url, exc)
            raise FeedUnavailable(f"Failed to reach release feed {url}: {exc}") from exc

    def _build_release_info(self, data: dict) -> ReleaseInfo:
        tag = str(data.get("tag_name") or "").strip()
        if not tag:
            raise FeedUnavailable("Release feed entry has no tag")

        assets = [asset for asset in data.get("assets") or [] if isinstance(asset, dict)]
        if self._kind is ReleaseKind.PAYLOAD:
            asset = self._select_payload_asset(assets)
        else:
            asset = self._select_installer_asset(assets)
        if asset is None:
            raise FeedUnavailable(f"Release {tag} has no {self._kind.value} asset for this platform")

        download_url = asset.get("browser_download_url")
        if not isinstance(download_url, str) or not download_url.strip():
            raise FeedUnavailable(f"Release {tag} asset {asset.get('name')} has no download URL")

        inline_hash = self._extract_asset_digest(asset)
        hash_url: str | None = None
        if inline_hash is None:
            hash_asset = self._find_companion_hash_asset(asset, assets)
            candidate_url = hash_asset.get("browser_download_url") if hash_asset else None
            if isinstance(candidate_url, str) and candidate_url.strip():
                hash_url = candidate_url.strip()
                _LOGGER.info(
                    "GitHub release %s will retrieve SHA-256 from companion asset %s",
                    tag,
                    hash_asset.get("name") if hash_asset else None,
                )
            else:
                _LOGGER.warning(
                    "Release asset %s has no published SHA-256 digest",
                    asset.get("name"),
                )

        _LOGGER.info("GitHub release %s includes %s asset %s", tag, self._kind.value, asset.get("name"))
        html_url = data.get("html_url")
        return ReleaseInfo(
            kind=self._kind,
            tag=normalize_tag(tag),
            commit_hash=_commit_hash(data, tag),
            asset_name=str(asset.get("name")),
            download_url=download_url.strip(),
            hash_value=inline_hash,
            hash_url=hash_url,
            release_notes=_clean_release_notes(data.get("body")),
            html_url=html_url if isinstance(html_url, str) and html_url else None,
        )

    def _extract_asset_digest(self, asset: dict) -> str | None:
        digest = asset.get("digest")
        if not isinstance(digest, str):
            return None
        digest = digest.strip()
        if not digest:
            return None
        algorithm: str | None = None
        value = digest
        if ":" in digest:
            algorithm, value = digest.split(":", 1)
        elif "=" in digest:
            algorithm, value = digest.split("=", 1)
        if algorithm is not None and algorithm.strip().lower() != "sha256":
            _LOGGER.debug(
                "Ignoring unsupported asset digest algorithm '%s' for asset %s",
                algorithm.strip(),
                asset.get("name"),
            )
            return None
        value = value.strip().lower()
        if not re.fullmatch(r"[0-9a-f]{64}", value):
            _LOGGER.debug("Asset digest for %s was not a valid SHA-256 hex string", asset.get("name"))
            return None
        return value

    def _select_payload_asset(self, assets: list[dict]) -> dict | None:
        archives: list[dict] = []
        for asset in assets:
            name = str(asset.get("name") or "")
            if self._asset_name and name == self._asset_name:
                return asset
            if name.lower().endswith(PAYLOAD_ARCHIVE_EXTENSIONS):
                archives.append(asset)
        if len(archives) == 1:
            return archives[0]
        return None

    def _select_installer_asset(self, assets: Iterable[dict]) -> dict | None:
        """Return the asset built for this platform and architecture."""

        exact: list[dict] = []
        generic: list[dict] = []
        for asset in assets:
            name = str(asset.get("name") or "")
            lower = name.lower()
            if not lower or lower.endswith(HASH_ASSET_SUFFIX):
                continue
            if self._asset_prefix and not lower.startswith(self._asset_prefix.lower()):
                continue
            if _asset_platform(lower) != self._platform:
                continue
            tokens = _tokens(lower)
            if "cli" in tokens or (self._asset_prefix and lower.startswith(f"{self._asset_prefix.lower()}cli")):
                continue
            arches = {arch for arch, names in _ARCH_TOKENS.items() if tokens & names}
            if not arches:
                generic.append(asset)
            elif self._arch in arches:
                exact.append(asset)
        if exact:
            return exact[0]
        if generic:
            return generic[0]
        return None

    def _find_companion_hash_asset(self, asset: dict, assets: Iterable[dict]) -> dict | None:
        asset_name = str(asset.get("name") or "").strip()
        if not asset_name:
            return None

        expected_name = f"{asset_name}{HASH_ASSET_SUFFIX}".lower()
        fallback: dict | None = None
        for candidate in assets:
            name = str(candidate.get("name") or "").strip()
            lower_name = name.lower()
            if not lower_name.endswith(HASH_ASSET_SUFFIX):
                continue
            if lower_name == expected_name:
                return candidate
            if fallback is None and lower_name.startswith(asset_name.lower()):
                fallback = candidate
        return fallback


class LocalFolderReleaseProvider:
    """Serve release metadata from a local directory for testing.

    The folder holds ``payload.json`` and ``installer.json`` next to the
    assets they name::

        {"tag": "v1.2.0", "commit": "abc1234", "asset": "bashcord-dist.zip",
         "sha256": "...", "sha256_file": "bashcord-dist.zip.sha256"}
    """

    def __init__(self, folder: Path, kind: ReleaseKind) -> None:
        self._folder = Path(folder)
        self._kind = kind

    @property
    def kind(self) -> ReleaseKind:
        return self._kind

    def fetch_latest(self) -> ReleaseInfo:
        metadata_path = self._folder / f"{self._kind.value}.json"
        try:
            data = json.loads(metadata_path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise FeedUnavailable(f"Local release metadata missing: {metadata_path}") from exc
        except (OSError, json.JSONDecodeError) as exc:
            raise FeedUnavailable(f"Failed to read local release metadata: {exc}") from exc
        if not isinstance(data, dict):
            raise FeedUnavailable(f"Local release metadata is malformed: {metadata_path}")

        tag = str(data.get("tag", "")).strip()
        asset_name = str(data.get("asset", "")).strip()
        if not tag or not asset_name:
            raise FeedUnavailable(f"Local release metadata incomplete: tag={tag!r} asset={asset_name!r}")

        asset_path = self._folder / asset_name
        if not asset_path.is_file():
            raise FeedUnavailable(f"Local release asset missing: {asset_path}")

        hash_value = data.get("sha256")
        hash_file = data.get("sha256_file")
        commit = str(data.get("commit") or "").strip() or normalize_tag(tag)

        _LOGGER.info("Local %s release %s will supply %s", self._kind.value, tag, asset_name)
        return ReleaseInfo(
            kind=self._kind,
            tag=normalize_tag(tag),
            commit_hash=commit,
            asset_name=asset_name,
            source_path=asset_path,
            hash_value=str(hash_value) if hash_value else None,
            hash_path=(self._folder / str(hash_file)) if hash_file else None,
            release_notes=_clean_release_notes(data.get("release_notes") or data.get("notes")),
        )


def _commit_hash(data: dict, tag: str) -> str:
    """Return the commit the release was built from, falling back to its tag.

    Payload builds are named ``<something> <hash>``; the last word of the
    release name wins over ``target_commitish`` because the latter is
    usually a branch name.
    """

    name = str(data.get("name") or "").strip()
    if name:
        last = name.split()[-1]
        if _COMMIT_PATTERN.match(last):
            return last.lower()
    target = str(data.get("target_commitish") or "").strip()
    if _COMMIT_PATTERN.match(target):
        return target.lower()
    return normalize_tag(tag)


def _tokens(name: str) -> set[str]:
    return {token for token in _TOKEN_SPLIT.split(name.replace("x86_64", "x8664")) if token}


def _asset_platform(name: str) -> str | None:
    if name.endswith(".exe"):
        return "windows"
    tokens = _tokens(name)
    for platform_name, names in _PLATFORM_TOKENS.items():
        if tokens & names:
            return platform_name
    return None


def _normalise_platform(value: str) -> str:
    lowered = value.lower()
    if lowered.startswith("win"):
        return "windows"
    if lowered == "darwin":
        return "darwin"
    return "linux"


def _normalise_arch(value: str) -> str:
    lowered = value.lower().replace("_", "")
    if lowered in {"arm64", "aarch64", "armv8"}:
        return "arm64"
    return "x64"


def _clean_release_notes(raw: object) -> str | None:
    if not isinstance(raw, str):
        return None
    cleaned = raw.strip()
    return cleaned or None


__all__ = ["GitHubReleaseProvider", "LocalFolderReleaseProvider", "ReleaseProvider"]
