"""Collaborator-facing API combining discovery, patching and updates.

Front-ends hold :class:`Installation` values returned from here and pass them
back in; nothing in this module keeps per-installation state.  Mutating calls
return :class:`shared.result.Result` values instead of raising engine errors.
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, TypeVar

from app.config import AppConfig, get_app_config
from app.version import get_installer_hash
from domain.errors import InstallerError, IOFailure
from domain.installation import Installation
from services.discovery import InstallClassifier, InstallLocator, ScuffedDetector
from services.patching.engine import PatchEngine
from services.patching.secondary_mod import CachedSecondaryModSource
from services.update import (
    PayloadMetadata,
    Relauncher,
    ReleaseKind,
    ReleaseProvider,
    SelfReplacer,
    SelfUpdateOutcome,
    UpdateService,
    UpdateStatus,
    build_update_service,
)
from shared.result import Result, capture

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class InstallerStatus:
    installer_tag: str
    installer_hash: str
    installer_outdated: bool
    installed_payload_hash: str | None
    latest_payload_hash: str | None
    last_error: str | None
    dev_install: bool = False


class InstallerService:
    """Entry point used by the CLI and any other front-end."""

    def __init__(
        self,
        locator: InstallLocator,
        classifier: InstallClassifier,
        engine: PatchEngine,
        updates: UpdateService,
        *,
        dev_install: bool = False,
    ) -> None:
        self._locator = locator
        self._classifier = classifier
        self._engine = engine
        self._updates = updates
        self._dev_install = dev_install
        self._last_status: UpdateStatus | None = None

    @property
    def updates(self) -> UpdateService:
        return self._updates

    def list_installs(self) -> list[Installation]:
        """Classify every candidate the locator finds, dropping non-installs."""

        installs: list[Installation] = []
        seen: set[str] = set()
        for candidate in self._locator.locate():
            installation = self._classifier.classify(candidate.path, candidate.branch_hint)
            if installation is None:
                continue
            key = os.path.realpath(installation.path)
            if key in seen:
                continue
            seen.add(key)
            installs.append(installation)
        _LOGGER.info("Found %d installation(s)", len(installs))
        return installs

    def classify_custom_path(self, path: Path | str) -> Installation | None:
        return self._classifier.classify(path)

    def patch(self, installation: Installation) -> Result[Installation, InstallerError]:
        def _patch() -> Installation:
            self._engine.ensure_patchable(installation)
            if not self._engine.has_payload():
                self._install_first_payload()
            return self._engine.patch(installation)

        return capture("patch", _patch)

    def unpatch(self, installation: Installation) -> Result[Installation, InstallerError]:
        return capture("unpatch", lambda: self._engine.unpatch(installation))

    def toggle_secondary_mod(
        self,
        installation: Installation,
        enabled: bool | None = None,
    ) -> Result[Installation, InstallerError]:
        """Install OpenAsar, or remove it; ``enabled=None`` flips the current state."""

        target = (not installation.secondary_mod_installed) if enabled is None else enabled
        return capture(
            "toggle OpenAsar",
            lambda: self._engine.toggle_secondary_mod(installation, target),
        )

    def check_for_updates(self) -> UpdateStatus:
        status = self._updates.check_for_updates()
        self._last_status = status
        return status

    def apply_payload_update(self) -> Result[PayloadMetadata | None, InstallerError]:
        return capture("update the payload", self._updates.apply_payload_update)

    def apply_installer_update(self) -> Result[SelfUpdateOutcome, InstallerError]:
        return capture("update the installer", self._updates.apply_installer_update)

    def can_update_self(self) -> bool:
        status = self._last_status or self.check_for_updates()
        return status.installer_stale and self._updates.can_update_self()

    def installed_payload_hash(self) -> str | None:
        """Hash of the cached payload, else the one embedded in a patched install."""

        cached = self._updates.store.installed_hash()
        if cached is not None:
            return cached
        for installation in self.list_installs():
            if installation.is_patched and installation.payload_hash:
                return installation.payload_hash
        return None

    def status(self) -> InstallerStatus:
        status = self._last_status
        latest = status.payload_release.commit_hash if status and status.payload_release else None
        last_error = None
        if status is not None:
            last_error = status.installer_error or status.payload_error
        return InstallerStatus(
            installer_tag=self._updates.current_tag,
            installer_hash=get_installer_hash(),
            installer_outdated=bool(status and status.installer_stale),
            installed_payload_hash=self.installed_payload_hash(),
            latest_payload_hash=latest,
            last_error=last_error,
            dev_install=self._dev_install,
        )

    def run_in_background(
        self,
        call: Callable[[], T],
        callback: Callable[[Result], None] | None = None,
    ) -> threading.Thread:
        """Run ``call`` on a daemon thread and hand its outcome to ``callback``.

        ``callback`` is invoked exactly once with a :class:`Result`.  Calls that
        already return one (``patch``, ``unpatch`` and friends) pass it through;
        other return values are wrapped, and an exception raised by ``call``
        becomes the error.
        """

        def _worker() -> None:
            outcome: Result
            try:
                value = call()
                outcome = value if isinstance(value, Result) else Result.ok(value)
            except Exception as exc:
                _LOGGER.exception("Background installer task failed")
                outcome = Result.err(exc)
            if callback is not None:
                callback(outcome)

        thread = threading.Thread(target=_worker, name="bashcord-installer-task", daemon=True)
        thread.start()
        return thread

    def _install_first_payload(self) -> None:
        if self._dev_install:
            raise IOFailure(f"No development payload found in {self._engine.payload_dir}")
        _LOGGER.info("No payload cached yet; downloading the latest build before patching")
        self._updates.apply_payload_update(force=True)


def build_installer_service(
    config: AppConfig | None = None,
    *,
    platform: str | None = None,
    environ: Mapping[str, str] | None = None,
    roots: tuple[Path, ...] | None = None,
    providers: Mapping[ReleaseKind, ReleaseProvider] | None = None,
    executable: Path | None = None,
    replacer: SelfReplacer | None = None,
    relauncher: Relauncher | None = None,
) -> InstallerService:
    """Wire the default collaborators for the current machine."""

    config = config or get_app_config()
    platform = platform or sys.platform
    env = os.environ if environ is None else environ

    locator = InstallLocator(roots, platform=platform, environ=env)
    classifier = InstallClassifier(ScuffedDetector.for_platform(platform, env))
    engine = PatchEngine(
        config.paths.payload_dir,
        classifier=classifier,
        secondary_mod_source=CachedSecondaryModSource(
            config.paths.secondary_mod_dir,
            config.secondary_mod.download_url,
            timeout=config.network_timeout,
        ),
    )

    service: InstallerService | None = None

    def _installed_hash() -> str | None:
        if service is None:
            raise RuntimeError("Installer service is not wired yet")
        return service.installed_payload_hash()

    updates = build_update_service(
        config,
        providers=providers,
        installed_hash=_installed_hash,
        executable=executable,
        replacer=replacer,
        relauncher=relauncher,
        environ=env,
        platform=platform,
    )
    service = InstallerService(
        locator,
        classifier,
        engine,
        updates,
        dev_install=config.paths.dev_install,
    )
    return service


__all__ = ["InstallerService", "InstallerStatus", "build_installer_service"]
