from __future__ import annotations

import sys
from pathlib import Path

import pytest

from app.config import reset_app_config_cache
from app.version import get_installer_hash, get_installer_tag
from shared import logging_config


def _ensure_project_root_on_path() -> None:
    """Guarantee the repository root is discoverable for absolute imports."""

    root = Path(__file__).resolve().parent.parent
    root_str = str(root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)


_ensure_project_root_on_path()


@pytest.fixture(autouse=True)
def _isolated_installer_env(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory):
    """Keep payload caches, logs and build identity away from the real user profile."""

    sandbox = tmp_path_factory.mktemp("installer_env")
    monkeypatch.setenv("BASHCORD_USER_DATA_DIR", str(sandbox / "data"))
    monkeypatch.setenv("BASHCORD_LOG_DIR", str(sandbox / "logs"))
    monkeypatch.setenv("BASHCORD_INSTALLER_TAG", "v1.4.0")
    monkeypatch.setenv("BASHCORD_INSTALLER_HASH", "abc1234")
    for name in (
        "BASHCORD_LOG_FILE",
        "BASHCORD_DEV_INSTALL",
        "BASHCORD_UPDATE_LOCAL_DIR",
        "BASHCORD_INSTALLER_EXECUTABLE",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_app_config_cache()
    get_installer_tag.cache_clear()
    get_installer_hash.cache_clear()

    yield

    logging_config._reset_for_tests()
    reset_app_config_cache()
    get_installer_tag.cache_clear()
    get_installer_hash.cache_clear()
