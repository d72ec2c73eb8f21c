"""Archive handling helpers for the payload update."""

from __future__ import annotations

import logging
import shutil
import tempfile
import zipfile
from pathlib import Path

from domain.errors import UpdateError, VerificationFailed
from services.patching.entry_point import PAYLOAD_ENTRY
from services.update import constants


_LOGGER = logging.getLogger(__name__)


def extract_archive(archive_path: Path) -> Path:
    """Unpack ``archive_path`` into a fresh temporary directory."""

    _LOGGER.info("Extracting update archive %s", archive_path)
    target_dir = Path(tempfile.mkdtemp(prefix="bashcord-update-unpacked-"))
    try:
        with zipfile.ZipFile(archive_path) as archive:
            extract_zip_safely(archive, target_dir)
    except (OSError, zipfile.BadZipFile) as exc:
        shutil.rmtree(target_dir, ignore_errors=True)
        raise UpdateError(f"Failed to extract update archive: {exc}") from exc
    except UpdateError:
        shutil.rmtree(target_dir, ignore_errors=True)
        raise
    _LOGGER.debug("Archive extracted to %s", target_dir)
    return target_dir


def locate_payload_root(root: Path) -> Path:
    """Return the directory inside ``root`` that holds ``patcher.js``.

    Release archives either contain the payload files directly or wrap them
    in a single top-level folder.
    """

    if (root / PAYLOAD_ENTRY).is_file():
        return root
    children = [child for child in root.iterdir() if not child.name.startswith(".")]
    if len(children) == 1 and children[0].is_dir() and (children[0] / PAYLOAD_ENTRY).is_file():
        return children[0]
    raise VerificationFailed(f"Payload archive does not contain {PAYLOAD_ENTRY}")


def extract_zip_safely(archive: zipfile.ZipFile, target_dir: Path) -> None:
    root = target_dir.resolve()
    total_bytes = 0
    processed_entries = 0
    for member in archive.infolist():
        name = member.filename
        if not name:
            continue
        processed_entries += 1
        if processed_entries > constants.MAX_ARCHIVE_ENTRIES:
            _LOGGER.error(
                "Archive entry count %s exceeded limit %s",
                processed_entries,
                constants.MAX_ARCHIVE_ENTRIES,
            )
            raise UpdateError("Update archive contained too many entries")
        path = Path(name)
        if path.is_absolute() or name.startswith(("/", "\\")):
            raise UpdateError("Update archive contained an absolute path entry")
        destination = (root / path).resolve()
        try:
            destination.relative_to(root)
        except ValueError:
            raise UpdateError("Update archive contained an unsafe relative path")
        if member.is_dir():
            destination.mkdir(parents=True, exist_ok=True)
            continue
        if member.file_size > constants.MAX_ARCHIVE_FILE_SIZE:
            _LOGGER.error(
                "Archive member %s exceeded file size limit (%s > %s)",
                name,
                member.file_size,
                constants.MAX_ARCHIVE_FILE_SIZE,
            )
            raise UpdateError("Update archive contained an oversized file")
        if member.compress_size == 0 and member.file_size > 0:
            _LOGGER.error("Archive member %s reported zero compression size", name)
            raise UpdateError("Update archive contained a suspiciously compressed file")
        if (
            member.compress_size > 0
            and member.file_size > member.compress_size * constants.MAX_COMPRESSION_RATIO
        ):
            _LOGGER.error(
                "Archive member %s exceeded compression ratio limit (%s > %s)",
                name,
                member.file_size,
                member.compress_size * constants.MAX_COMPRESSION_RATIO,
            )
            raise UpdateError("Update archive exceeded safe compression ratio")
        total_bytes += member.file_size
        if total_bytes > constants.MAX_ARCHIVE_TOTAL_BYTES:
            _LOGGER.error(
                "Archive expanded to %s bytes which exceeds limit %s",
                total_bytes,
                constants.MAX_ARCHIVE_TOTAL_BYTES,
            )
            raise UpdateError("Update archive expanded beyond safe limits")
        destination.parent.mkdir(parents=True, exist_ok=True)
        with archive.open(member) as source, destination.open("wb") as target:
            shutil.copyfileobj(source, target)
        _LOGGER.debug("Extracted archive member %s to %s", name, destination)

    _LOGGER.info("Extracted %s entries totalling %s bytes", processed_entries, total_bytes)


__all__ = ["extract_archive", "extract_zip_safely", "locate_payload_root"]
