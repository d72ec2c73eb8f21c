"""Application-wide configuration loaded from JSON resources and the environment."""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass
from importlib import resources
from math import isfinite
from pathlib import Path
from typing import Any, Mapping

_CONFIG_RESOURCE = "app.json"
_APP_CONFIG_CACHE: AppConfig | None = None

USER_DATA_DIR_ENV = "BASHCORD_USER_DATA_DIR"
DEV_INSTALL_ENV = "BASHCORD_DEV_INSTALL"
DATA_DIRNAME = "Bashcord"
PAYLOAD_DIRNAME = "dist"
SECONDARY_MOD_CACHE_DIRNAME = "openasar"
RELEASE_METADATA_NAME = "release.json"

_DEFAULT_FEEDS = {
    "payload_api_url": "https://api.github.com/repos/Bashcord/Bashcord/releases/latest",
    "installer_api_url": "https://api.github.com/repos/Bashcord/Installer/releases/latest",
    "installer_release_page": "https://github.com/Bashcord/Installer/releases/latest",
    "payload_asset_name": "bashcord-dist.zip",
    "installer_asset_prefix": "BashcordInstaller",
}
_DEFAULT_SECONDARY_MOD_URL = "https://github.com/GooseMod/OpenAsar/releases/download/nightly/app.asar"
_DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class FeedConfig:
    """Release feed endpoints for the payload and the installer build."""

    payload_api_url: str
    installer_api_url: str
    installer_release_page: str
    payload_asset_name: str
    installer_asset_prefix: str


@dataclass(frozen=True)
class SecondaryModConfig:
    download_url: str


@dataclass(frozen=True)
class PathsConfig:
    """Local directories resolved once when the configuration is built."""

    data_dir: Path
    dev_install: bool = False

    @property
    def payload_dir(self) -> Path:
        return self.data_dir / PAYLOAD_DIRNAME

    @property
    def release_metadata_path(self) -> Path:
        return self.data_dir / RELEASE_METADATA_NAME

    @property
    def secondary_mod_dir(self) -> Path:
        return self.data_dir / SECONDARY_MOD_CACHE_DIRNAME


@dataclass(frozen=True)
class AppConfig:
    """Structured configuration values for the installer."""

    feeds: FeedConfig
    secondary_mod: SecondaryModConfig
    paths: PathsConfig
    network_timeout: float = _DEFAULT_TIMEOUT_SECONDS


def get_app_config() -> AppConfig:
    """Return the cached application configuration."""

    global _APP_CONFIG_CACHE
    if _APP_CONFIG_CACHE is None:
        _APP_CONFIG_CACHE = load_app_config()
    return _APP_CONFIG_CACHE


def reset_app_config_cache() -> None:
    """Reset the cached configuration for subsequent reloads."""

    global _APP_CONFIG_CACHE
    _APP_CONFIG_CACHE = None


def load_app_config(
    path: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load configuration from ``path`` or the bundled JSON resource.

    The environment is consulted exactly once here; later changes to
    ``BASHCORD_USER_DATA_DIR`` only apply after the cache is reset.
    """

    env = os.environ if environ is None else environ
    data = _read_config_data(path)
    feeds = _parse_feeds_section(data.get("feeds"))
    secondary_mod = _parse_secondary_mod_section(data.get("secondary_mod"))
    network = data.get("network")
    timeout = _DEFAULT_TIMEOUT_SECONDS
    if isinstance(network, Mapping):
        timeout = _coerce_positive_float(network.get("timeout_seconds"), default=_DEFAULT_TIMEOUT_SECONDS)
    paths = PathsConfig(
        data_dir=resolve_data_dir(env),
        dev_install=_is_truthy(env.get(DEV_INSTALL_ENV)),
    )
    return AppConfig(feeds=feeds, secondary_mod=secondary_mod, paths=paths, network_timeout=timeout)


def resolve_data_dir(environ: Mapping[str, str] | None = None) -> Path:
    """Return the payload data directory, honouring ``BASHCORD_USER_DATA_DIR``."""

    env = os.environ if environ is None else environ
    override = env.get(USER_DATA_DIR_ENV)
    if override and override.strip():
        return Path(override.strip()).expanduser()
    return user_config_dir(env) / DATA_DIRNAME


def user_config_dir(environ: Mapping[str, str] | None = None) -> Path:
    """Return the per-user configuration root for the current platform."""

    env = os.environ if environ is None else environ
    if sys.platform.startswith("win"):
        appdata = env.get("APPDATA")
        if appdata:
            return Path(appdata)
        return resolve_user_home(env) / "AppData" / "Roaming"
    if sys.platform == "darwin":
        return resolve_user_home(env) / "Library" / "Application Support"
    xdg = env.get("XDG_CONFIG_HOME")
    if xdg and not env.get("SUDO_USER"):
        return Path(xdg)
    return resolve_user_home(env) / ".config"


def resolve_user_home(environ: Mapping[str, str] | None = None) -> Path:
    """Return the invoking user's home, looking through ``sudo`` on POSIX."""

    env = os.environ if environ is None else environ
    sudo_user = env.get("SUDO_USER")
    if sudo_user and os.name == "posix":
        import pwd

        try:
            return Path(pwd.getpwnam(sudo_user).pw_dir)
        except KeyError:
            pass
    return Path.home()


def _read_config_data(path: str | Path | None) -> Mapping[str, Any]:
    if path is not None:
        return _load_json_from_path(Path(path).expanduser())
    return _load_default_config_data()


def _load_json_from_path(path: Path) -> Mapping[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return {}
    return _parse_json(raw)


def _load_default_config_data() -> Mapping[str, Any]:
    try:
        resource = resources.files(__package__).joinpath(_CONFIG_RESOURCE)
        raw = resource.read_text(encoding="utf-8")
    except (FileNotFoundError, OSError):
        return {}
    return _parse_json(raw)


def _parse_json(raw: str) -> Mapping[str, Any]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    if isinstance(parsed, Mapping):
        return parsed
    return {}


def _parse_feeds_section(section: Any) -> FeedConfig:
    values = dict(_DEFAULT_FEEDS)
    if isinstance(section, Mapping):
        for key in values:
            candidate = section.get(key)
            if isinstance(candidate, str) and candidate.strip():
                values[key] = candidate.strip()
    return FeedConfig(**values)


def _parse_secondary_mod_section(section: Any) -> SecondaryModConfig:
    url = _DEFAULT_SECONDARY_MOD_URL
    if isinstance(section, Mapping):
        candidate = section.get("download_url")
        if isinstance(candidate, str) and candidate.strip():
            url = candidate.strip()
    return SecondaryModConfig(download_url=url)


def _coerce_positive_float(value: Any, *, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        candidate = float(value)
    elif isinstance(value, str):
        try:
            candidate = float(value.strip())
        except ValueError:
            return default
    else:
        return default
    if not isfinite(candidate) or candidate <= 0:
        return default
    return candidate


def _is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


__all__ = [
    "AppConfig",
    "DEV_INSTALL_ENV",
    "FeedConfig",
    "PathsConfig",
    "SecondaryModConfig",
    "USER_DATA_DIR_ENV",
    "get_app_config",
    "load_app_config",
    "reset_app_config_cache",
    "resolve_data_dir",
    "resolve_user_home",
    "user_config_dir",
]
