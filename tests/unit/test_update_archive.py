from __future__ import annotations

import shutil
import zipfile
from pathlib import Path

import pytest

from domain.errors import UpdateError, VerificationFailed
from services.update import constants
from services.update.archive import extract_archive, extract_zip_safely, locate_payload_root
from tests.unit.installer_test_utils import build_payload_archive


@pytest.mark.parametrize("wrapped", [True, False])
def test_extract_archive_finds_payload_root(tmp_path: Path, wrapped: bool) -> None:
    archive = build_payload_archive(tmp_path, wrapped=wrapped)

    extracted = extract_archive(archive)
    try:
        root = locate_payload_root(extracted)
        assert (root / "patcher.js").read_text(encoding="utf-8").startswith("// Bashcord def5678")
        assert root == (extracted / "dist" if wrapped else extracted)
    finally:
        shutil.rmtree(extracted, ignore_errors=True)


def test_locate_payload_root_rejects_archives_without_patcher(tmp_path: Path) -> None:
    (tmp_path / "one").mkdir()
    (tmp_path / "two").mkdir()
    (tmp_path / "one" / "patcher.js").write_text("//", encoding="utf-8")

    with pytest.raises(VerificationFailed):
        locate_payload_root(tmp_path)


def test_extract_archive_rejects_path_traversal(tmp_path: Path) -> None:
    archive_path = tmp_path / "evil.zip"
    with zipfile.ZipFile(archive_path, "w") as archive:
        archive.writestr("../evil.js", "boom")

    with pytest.raises(UpdateError, match="unsafe"):
        extract_archive(archive_path)

    assert not (tmp_path.parent / "evil.js").exists()


def test_extract_archive_rejects_non_zip_files(tmp_path: Path) -> None:
    bogus = tmp_path / "bashcord-dist.zip"
    bogus.write_bytes(b"not a zip")

    with pytest.raises(UpdateError, match="Failed to extract"):
        extract_archive(bogus)


def test_extract_zip_safely_limits_entry_count(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(constants, "MAX_ARCHIVE_ENTRIES", 2)
    archive_path = tmp_path / "many.zip"
    with zipfile.ZipFile(archive_path, "w") as archive:
        for index in range(3):
            archive.writestr(f"file{index}.js", "x")

    target = tmp_path / "out"
    target.mkdir()
    with zipfile.ZipFile(archive_path) as archive, pytest.raises(UpdateError, match="too many"):
        extract_zip_safely(archive, target)


def test_extract_zip_safely_rejects_compression_bombs(tmp_path: Path) -> None:
    archive_path = tmp_path / "bomb.zip"
    with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("zeros.bin", b"\0" * (1024 * 1024))

    target = tmp_path / "out"
    target.mkdir()
    with zipfile.ZipFile(archive_path) as archive, pytest.raises(UpdateError, match="compression ratio"):
        extract_zip_safely(archive, target)
