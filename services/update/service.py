"""Service responsible for discovering and applying payload and installer updates."""

from __future__ import annotations

import logging
import shutil
import sys
import webbrowser
from pathlib import Path
from typing import Callable, Mapping

from app.version import normalize_tag
from domain.errors import FeedUnavailable, UpdateError, VerificationFailed
from services.update.archive import extract_archive, locate_payload_root
from services.update.models import ReleaseInfo, ReleaseKind, SelfUpdateOutcome, UpdateStatus
from services.update.payload_store import PayloadMetadata, PayloadStore
from services.update.providers import ReleaseProvider
from services.update.release_assets import obtain_release_asset, resolve_expected_hash
from services.update.self_replace import ProcessRelauncher, Relauncher, SelfReplacer, default_replacer
from services.verification import fingerprint, normalise_digest, verify

_LOGGER = logging.getLogger(__name__)

_MIN_COMMIT_PREFIX = 7


class UpdateService:
    """Coordinate release discovery, download and verification.

    Both artifacts go through the same check, compare and fetch routine,
    parameterised by :class:`ReleaseKind`; only the final apply step differs.
    """

    def __init__(
        self,
        providers: Mapping[ReleaseKind, ReleaseProvider],
        store: PayloadStore,
        *,
        current_tag: str,
        executable: Path | None = None,
        replacer: SelfReplacer | None = None,
        relauncher: Relauncher | None = None,
        open_url: Callable[[str], object] = webbrowser.open,
        release_page: str | None = None,
        platform: str | None = None,
        dev_install: bool = False,
        dev_build: bool = False,
        timeout: float = 30.0,
        installed_hash: Callable[[], str | None] | None = None,
    ) -> None:
        self._providers = dict(providers)
        self._store = store
        self._current_tag = normalize_tag(current_tag)
        self._executable = executable
        self._platform = platform or sys.platform
        self._replacer = replacer or default_replacer(self._platform)
        self._relauncher = relauncher or ProcessRelauncher()
        self._open_url = open_url
        self._release_page = release_page
        self._dev_install = dev_install
        self._dev_build = dev_build
        self._timeout = timeout
        self._installed_hash = installed_hash or store.installed_hash

    @property
    def store(self) -> PayloadStore:
        return self._store

    @property
    def current_tag(self) -> str:
        return self._current_tag

    @property
    def executable(self) -> Path | None:
        return self._executable

    def latest(self, kind: ReleaseKind) -> ReleaseInfo:
        provider = self._providers.get(kind)
        if provider is None:
            raise FeedUnavailable(f"No release feed configured for the {kind.value}")
        _LOGGER.debug("Querying release provider %s for %s", type(provider).__name__, kind.value)
        release = provider.fetch_latest()
        _LOGGER.debug(
            "Latest %s release is %s (%s, asset=%s, hash %s)",
            kind.value,
            release.tag,
            release.commit_hash,
            release.asset_name,
            "available" if release.has_published_hash else "missing",
        )
        return release

    def current_identifier(self, kind: ReleaseKind) -> str | None:
        if kind is ReleaseKind.PAYLOAD:
            return self._installed_hash()
        return self._current_tag

    def is_stale(self, release: ReleaseInfo) -> bool:
        if release.kind is ReleaseKind.PAYLOAD:
            if self._dev_install:
                _LOGGER.debug("Development payload install; ignoring payload updates")
                return False
            installed = self._installed_hash()
            if installed is None:
                return True
            return not _same_commit(installed, release.commit_hash)

        if self._dev_build:
            _LOGGER.debug("Running a development build; ignoring installer updates")
            return False
        return normalize_tag(release.tag) != self._current_tag

    def check(self, kind: ReleaseKind) -> tuple[ReleaseInfo, bool]:
        release = self.latest(kind)
        stale = self.is_stale(release)
        if stale:
            _LOGGER.info(
                "%s update available: %s -> %s",
                kind.value.title(),
                self.current_identifier(kind) or "none",
                release.commit_hash if kind is ReleaseKind.PAYLOAD else release.tag,
            )
        else:
            _LOGGER.debug("%s is up to date", kind.value.title())
        return release, stale

    def check_for_updates(self) -> UpdateStatus:
        """Check both feeds; a failing feed marks only its own side unknown."""

        results: dict[ReleaseKind, tuple[ReleaseInfo | None, bool, str | None]] = {}
        for kind in (ReleaseKind.PAYLOAD, ReleaseKind.INSTALLER):
            try:
                release, stale = self.check(kind)
            except FeedUnavailable as exc:
                _LOGGER.warning("Could not check for %s updates: %s", kind.value, exc)
                results[kind] = (None, False, str(exc))
                continue
            results[kind] = (release, stale, None)

        payload_release, payload_stale, payload_error = results[ReleaseKind.PAYLOAD]
        installer_release, installer_stale, installer_error = results[ReleaseKind.INSTALLER]
        return UpdateStatus(
            payload_stale=payload_stale,
            installer_stale=installer_stale,
            payload_release=payload_release,
            installer_release=installer_release,
            payload_error=payload_error,
            installer_error=installer_error,
        )

    def fetch_verified(self, release: ReleaseInfo) -> tuple[Path, str]:
        """Download ``release``'s asset and check it against its published digest.

        Returns the local path and its SHA-256.  On failure the download is
        discarded before the error propagates.
        """

        download_path = obtain_release_asset(release, timeout=self._timeout)
        try:
            expected_hash = resolve_expected_hash(release, timeout=self._timeout)
            actual_hash = fingerprint(download_path)
            if download_path.stat().st_size == 0:
                raise VerificationFailed(f"Downloaded {release.asset_name} is empty")
            if expected_hash is None:
                _LOGGER.warning(
                    "No published digest for %s %s; accepting download %s",
                    release.kind.value,
                    release.tag,
                    actual_hash,
                )
            elif not verify(expected_hash, actual_hash):
                raise VerificationFailed(
                    f"{release.asset_name} hash mismatch: expected "
                    f"{normalise_digest(expected_hash)} but received {actual_hash}"
                )
            else:
                _LOGGER.info("Verified %s %s", release.kind.value, release.tag)
        except OSError as exc:
            _discard_download(download_path)
            raise UpdateError(f"Failed to inspect {release.asset_name}: {exc}") from exc
        except UpdateError:
            _discard_download(download_path)
            raise
        return download_path, actual_hash

    def apply_payload_update(
        self,
        release: ReleaseInfo | None = None,
        *,
        force: bool = False,
    ) -> PayloadMetadata | None:
        """Fetch, verify and cache the newest payload; ``None`` when already current."""

        if self._dev_install and not force:
            _LOGGER.info("Development payload install; skipping payload update")
            return None
        release = release or self.latest(ReleaseKind.PAYLOAD)
        if not force and not self.is_stale(release):
            _LOGGER.info("Payload %s is already installed", release.commit_hash)
            return None

        archive_path, digest = self.fetch_verified(release)
        extracted: Path | None = None
        try:
            extracted = extract_archive(archive_path)
            return self._store.install(locate_payload_root(extracted), release, digest)
        finally:
            _discard_download(archive_path)
            if extracted is not None:
                shutil.rmtree(extracted, ignore_errors=True)

    def can_update_self(self) -> bool:
        if self._platform == "darwin":
            return True
        return self._executable is not None and not self._dev_build

    def apply_installer_update(self, release: ReleaseInfo | None = None) -> SelfUpdateOutcome:
        """Replace the running installer with the newest build and relaunch it.

        On macOS the release page is opened instead.  A verification or
        replace failure leaves the running executable untouched; a
        :class:`RelaunchFailed` means the new build is already in place.
        """

        release = release or self.latest(ReleaseKind.INSTALLER)
        if not self.is_stale(release):
            _LOGGER.info("Installer %s is already current", self._current_tag)
            return SelfUpdateOutcome.UP_TO_DATE

        if self._platform == "darwin":
            url = release.html_url or self._release_page
            if not url:
                raise UpdateError("No release page is configured for manual updates")
            _LOGGER.info("Opening %s to download installer %s", url, release.tag)
            self._open_url(url)
            return SelfUpdateOutcome.OPENED_BROWSER

        if self._executable is None:
            raise UpdateError("The installer is not running from a packaged executable")

        download_path, _ = self.fetch_verified(release)
        try:
            self._replacer.replace(self._executable, download_path)
        finally:
            _discard_download(download_path)
        _LOGGER.info("Installer updated %s -> %s", self._current_tag, release.tag)
        self._relauncher.relaunch(self._executable)
        return SelfUpdateOutcome.REPLACED


def _same_commit(installed: str, latest: str) -> bool:
    left = installed.strip().lower()
    right = latest.strip().lower()
    if left == right:
        return True
    shorter, longer = sorted((left, right), key=len)
    return len(shorter) >= _MIN_COMMIT_PREFIX and longer.startswith(shorter)


def _discard_download(path: Path) -> None:
    shutil.rmtree(path.parent, ignore_errors=True)


__all__ = ["UpdateService"]
