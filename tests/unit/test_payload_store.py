from __future__ import annotations

import json
from pathlib import Path

import pytest

from domain.errors import IOFailure
from services.update import PayloadMetadata, PayloadStore
from tests.unit.installer_test_utils import build_payload_archive, make_payload, payload_release


@pytest.fixture
def store(tmp_path: Path) -> PayloadStore:
    return PayloadStore(tmp_path / "data" / "dist", tmp_path / "data" / "release.json")


def test_empty_store_has_no_payload(store: PayloadStore) -> None:
    assert not store.is_available()
    assert store.installed_hash() is None
    assert store.read_metadata() is None


def test_install_replaces_payload_and_records_release(tmp_path: Path, store: PayloadStore) -> None:
    make_payload(store.payload_dir, "0ld0000")
    (store.payload_dir / "stale.js").write_text("old", encoding="utf-8")
    source = make_payload(tmp_path / "incoming", "def5678")
    release = payload_release(build_payload_archive(tmp_path))

    metadata = store.install(source, release, "f" * 64)

    assert sorted(path.name for path in store.payload_dir.iterdir()) == ["patcher.js", "preload.js"]
    assert metadata.commit_hash == "def5678"
    assert metadata.sha256 == "f" * 64
    assert metadata.installed_at is not None
    assert store.read_metadata() == metadata
    assert store.installed_hash() == "def5678"


def test_install_rejects_sources_without_patcher(tmp_path: Path, store: PayloadStore) -> None:
    (tmp_path / "incoming").mkdir()
    release = payload_release(build_payload_archive(tmp_path))

    with pytest.raises(IOFailure):
        store.install(tmp_path / "incoming", release, None)

    assert not store.is_available()


def test_installed_hash_falls_back_to_payload_header(store: PayloadStore) -> None:
    make_payload(store.payload_dir, "abc1234")
    store.metadata_path.write_text("{broken", encoding="utf-8")

    assert store.read_metadata() is None
    assert store.installed_hash() == "abc1234"


@pytest.mark.parametrize(
    "data",
    [[], {"tag": "devbuild"}, {"tag": "devbuild", "commit_hash": ""}, {"tag": 1, "commit_hash": "abc"}],
)
def test_metadata_from_mapping_rejects_incomplete_records(data: object) -> None:
    assert PayloadMetadata.from_mapping(data) is None


def test_metadata_from_mapping_ignores_wrong_optional_types() -> None:
    metadata = PayloadMetadata.from_mapping(
        json.loads('{"tag": "devbuild", "commit_hash": "abc1234", "sha256": 5}')
    )

    assert metadata == PayloadMetadata(tag="devbuild", commit_hash="abc1234")
