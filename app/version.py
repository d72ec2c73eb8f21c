from __future__ import annotations

"""Build information for the running installer."""

from functools import lru_cache
import os
import subprocess
from importlib import resources

TAG_ENV = "BASHCORD_INSTALLER_TAG"
HASH_ENV = "BASHCORD_INSTALLER_HASH"

_FALLBACK_TAG = "devbuild"
_UNKNOWN_HASH = "unknown"


def _read_resource(name: str) -> str | None:
    try:
        text = resources.files("app").joinpath(name).read_text(encoding="utf-8")
    except (FileNotFoundError, ModuleNotFoundError, NotADirectoryError):
        return None
    value = text.strip()
    return value or None


def _run_git(*args: str) -> str | None:
    try:
        output = subprocess.check_output(
            ["git", *args],
            stderr=subprocess.DEVNULL,
            text=True,
        )
    except (OSError, subprocess.CalledProcessError):
        return None
    return output.strip() or None


def normalize_tag(raw_tag: str) -> str:
    """Strip whitespace and a leading ``v`` so feed and build tags compare."""

    tag = raw_tag.strip()
    if tag[:1] in {"v", "V"} and tag[1:2].isdigit():
        tag = tag[1:]
    return tag


@lru_cache(maxsize=1)
def get_installer_tag() -> str:
    """Return the release tag this build was produced from.

    The order of precedence is:
    1. The ``BASHCORD_INSTALLER_TAG`` environment variable.
    2. The ``VERSION`` file stamped into the package at release time.
    3. ``git describe`` output when running from a source checkout.
    4. ``devbuild``.
    """

    env_tag = os.environ.get(TAG_ENV)
    if env_tag and env_tag.strip():
        return normalize_tag(env_tag)
    for resolver in (lambda: _read_resource("VERSION"), lambda: _run_git("describe", "--tags", "--abbrev=0")):
        tag = resolver()
        if tag:
            return normalize_tag(tag)
    return _FALLBACK_TAG


@lru_cache(maxsize=1)
def get_installer_hash() -> str:
    """Return the short commit hash of this build."""

    env_hash = os.environ.get(HASH_ENV)
    if env_hash and env_hash.strip():
        return env_hash.strip()
    for resolver in (lambda: _read_resource("GIT_HASH"), lambda: _run_git("rev-parse", "--short", "HEAD")):
        value = resolver()
        if value:
            return value
    return _UNKNOWN_HASH


def is_dev_build() -> bool:
    return get_installer_tag() == _FALLBACK_TAG


__all__ = ["get_installer_hash", "get_installer_tag", "is_dev_build", "normalize_tag"]
