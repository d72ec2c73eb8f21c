"""Content fingerprints for downloaded artifacts and bundle files."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

from domain.errors import UpdateError

_CHUNK_SIZE = 65536
_DIGEST_PREFIX = "sha256:"


def calculate_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with Path(path).open("rb") as source:
        for chunk in iter(lambda: source.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def fingerprint(source: bytes | bytearray | str | os.PathLike[str]) -> str:
    """Return a content-addressed identifier for ``source``.

    Raw bytes and files hash their contents.  Directories hash every file's
    path (relative, ``/`` separated, sorted) together with its contents, so
    timestamps, permissions and traversal order never change the result.
    """

    if isinstance(source, (bytes, bytearray)):
        return hashlib.sha256(bytes(source)).hexdigest()

    path = Path(source)
    if path.is_dir():
        return _fingerprint_directory(path)
    return calculate_sha256(path)


def verify(expected: str | None, actual: str | None) -> bool:
    """Return ``True`` when both identifiers name the same content."""

    left = normalise_digest(expected)
    right = normalise_digest(actual)
    if not left or not right:
        return False
    return left == right


def normalise_digest(value: str | None) -> str:
    if not value:
        return ""
    cleaned = value.strip().lower()
    if cleaned.startswith(_DIGEST_PREFIX):
        cleaned = cleaned[len(_DIGEST_PREFIX):]
    return cleaned.strip()


def parse_hash_text(text: str) -> str:
    """Return the digest from ``sha256sum`` style text (``<digest>  <name>``)."""

    for token in text.split():
        if token:
            return token.strip()
    raise UpdateError("Hash file did not contain a digest")


def _fingerprint_directory(root: Path) -> str:
    digest = hashlib.sha256()
    files = sorted(
        (path for path in root.rglob("*") if path.is_file()),
        key=lambda path: path.relative_to(root).as_posix(),
    )
    for path in files:
        relative = path.relative_to(root).as_posix().encode("utf-8")
        digest.update(len(relative).to_bytes(4, "big"))
        digest.update(relative)
        digest.update(bytes.fromhex(calculate_sha256(path)))
    return digest.hexdigest()


__all__ = [
    "calculate_sha256",
    "fingerprint",
    "normalise_digest",
    "parse_hash_text",
    "verify",
]
