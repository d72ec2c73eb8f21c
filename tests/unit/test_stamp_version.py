"""Tests for the build info stamping helper script."""

from pathlib import Path

import pytest

from scripts import stamp_version


class TestNormalizeRefName:
    def test_keeps_leading_v(self):
        assert stamp_version.normalize_ref_name("v1.2.3") == "v1.2.3"

    def test_strips_refs_tags_prefix(self):
        assert stamp_version.normalize_ref_name("refs/tags/v1.2.3") == "v1.2.3"

    def test_strips_surrounding_whitespace(self):
        assert stamp_version.normalize_ref_name("  v0.9.0  ") == "v0.9.0"


class TestStampVersion:
    def test_writes_tag_to_file(self, tmp_path: Path):
        output = tmp_path / "VERSION"

        stamp_version.stamp_version("v2.5.0", output)

        assert output.read_text(encoding="utf-8") == "v2.5.0\n"

    def test_creates_parent_directories(self, tmp_path: Path):
        output = tmp_path / "nested" / "VERSION"

        stamp_version.stamp_version("1.0.1", output)

        assert output.read_text(encoding="utf-8") == "1.0.1\n"

    def test_stamp_hash_writes_short_commit(self, tmp_path: Path):
        output = tmp_path / "GIT_HASH"

        stamp_version.stamp_hash("0123456789abcdef", output)

        assert output.read_text(encoding="utf-8") == "0123456\n"


class TestMain:
    def test_main_uses_default_output_paths(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        fake_version = tmp_path / "VERSION"
        fake_hash = tmp_path / "GIT_HASH"
        monkeypatch.setattr(stamp_version, "DEFAULT_VERSION_FILE", fake_version, raising=False)
        monkeypatch.setattr(stamp_version, "DEFAULT_HASH_FILE", fake_hash, raising=False)

        exit_code = stamp_version.main(["v0.1.0", "--commit", "abcdef0123"])

        assert exit_code == 0
        assert fake_version.read_text(encoding="utf-8") == "v0.1.0\n"
        assert fake_hash.read_text(encoding="utf-8") == "abcdef0\n"
