"""Helpers for constructing and scheduling the update service."""

from __future__ import annotations

import logging
import os
import sys
import threading
from pathlib import Path
from typing import Callable, Mapping

from app.config import AppConfig, get_app_config
from app.version import get_installer_tag, is_dev_build
from services.update.constants import LOCAL_RELEASE_ENV
from services.update.models import ReleaseKind, UpdateStatus
from services.update.payload_store import PayloadStore
from services.update.providers import GitHubReleaseProvider, LocalFolderReleaseProvider, ReleaseProvider
from services.update.recovery import cleanup_previous_executable
from services.update.self_replace import Relauncher, SelfReplacer, find_running_executable
from services.update.service import UpdateService


_LOGGER = logging.getLogger(__name__)


def build_providers(
    config: AppConfig,
    environ: Mapping[str, str] | None = None,
) -> dict[ReleaseKind, ReleaseProvider]:
    env = os.environ if environ is None else environ
    local_dir = env.get(LOCAL_RELEASE_ENV)
    if local_dir:
        folder = Path(local_dir)
        if folder.is_dir():
            _LOGGER.info("Using local update source at %s", folder)
            return {kind: LocalFolderReleaseProvider(folder, kind) for kind in ReleaseKind}
        _LOGGER.warning("Configured local update directory does not exist: %s", folder)

    feeds = config.feeds
    return {
        ReleaseKind.PAYLOAD: GitHubReleaseProvider(
            ReleaseKind.PAYLOAD,
            feeds.payload_api_url,
            asset_name=feeds.payload_asset_name,
            timeout=config.network_timeout,
        ),
        ReleaseKind.INSTALLER: GitHubReleaseProvider(
            ReleaseKind.INSTALLER,
            feeds.installer_api_url,
            asset_prefix=feeds.installer_asset_prefix,
            timeout=config.network_timeout,
        ),
    }


def build_update_service(
    config: AppConfig | None = None,
    *,
    providers: Mapping[ReleaseKind, ReleaseProvider] | None = None,
    installed_hash: Callable[[], str | None] | None = None,
    executable: Path | None = None,
    replacer: SelfReplacer | None = None,
    relauncher: Relauncher | None = None,
    environ: Mapping[str, str] | None = None,
    platform: str | None = None,
) -> UpdateService:
    """Construct an :class:`UpdateService` for the current environment."""

    config = config or get_app_config()
    paths = config.paths
    store = PayloadStore(paths.payload_dir, paths.release_metadata_path)
    executable = executable or find_running_executable(environ)
    cleanup_previous_executable(executable)

    return UpdateService(
        providers if providers is not None else build_providers(config, environ),
        store,
        current_tag=get_installer_tag(),
        executable=executable,
        replacer=replacer,
        relauncher=relauncher,
        release_page=config.feeds.installer_release_page,
        platform=platform or sys.platform,
        dev_install=paths.dev_install,
        dev_build=is_dev_build(),
        timeout=config.network_timeout,
        installed_hash=installed_hash,
    )


def _run_update_check(
    service: UpdateService,
    on_complete: Callable[[UpdateStatus | None], None] | None,
) -> None:
    status: UpdateStatus | None = None
    try:
        status = service.check_for_updates()
    except Exception:  # pragma: no cover - defensive guard
        _LOGGER.exception("Unexpected error while checking for updates")
    finally:
        if on_complete:
            on_complete(status)


def schedule_update_check(
    service: UpdateService,
    *,
    enabled: bool = True,
    on_complete: Callable[[UpdateStatus | None], None] | None = None,
) -> threading.Thread | None:
    """Check both feeds on a background thread and report through ``on_complete``."""

    if not enabled:
        _LOGGER.debug("Automatic update checks disabled")
        return None

    thread = threading.Thread(
        target=_run_update_check,
        args=(service, on_complete),
        name="bashcord-update-check",
        daemon=True,
    )
    thread.start()
    return thread


__all__ = [
    "build_providers",
    "build_update_service",
    "schedule_update_check",
]
