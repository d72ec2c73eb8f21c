"""Filesystem primitives for rewriting bundles and swapping local artifacts."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from domain.errors import IOFailure, PermissionDenied

_LOGGER = logging.getLogger(__name__)


@contextmanager
def translate_os_errors(action: str, path: Path) -> Iterator[None]:
    """Re-raise ``OSError`` as :class:`PermissionDenied` or :class:`IOFailure`."""

    try:
        yield
    except PermissionError as exc:
        denied = Path(exc.filename) if exc.filename else path
        raise PermissionDenied(denied, f"Permission denied while trying to {action} {path}: {exc}") from exc
    except OSError as exc:
        raise IOFailure(f"Failed to {action} {path}: {exc}") from exc


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` so readers see the old or new bytes only."""

    fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        if path.exists():
            shutil.copymode(path, temp_path)
        os.replace(temp_path, path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def replace_tree(source: Path, destination: Path) -> None:
    """Copy ``source`` over ``destination``, swapping whole trees by rename."""

    staging = Path(tempfile.mkdtemp(prefix=f".{destination.name}.", dir=destination.parent))
    staged = staging / destination.name
    try:
        shutil.copytree(source, staged)
        retired: Path | None = None
        if destination.exists():
            retired = staging / f"{destination.name}.old"
            os.replace(destination, retired)
        try:
            os.replace(staged, destination)
        except OSError:
            if retired is not None:
                os.replace(retired, destination)
            raise
    finally:
        shutil.rmtree(staging, ignore_errors=True)
    _LOGGER.debug("Copied %s to %s", source, destination)


def remove_tree(path: Path) -> bool:
    """Delete ``path`` recursively; return ``False`` when it did not exist."""

    if not path.exists() and not path.is_symlink():
        return False
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()
    return True


__all__ = [
    "atomic_write_bytes",
    "remove_tree",
    "replace_tree",
    "translate_os_errors",
]
