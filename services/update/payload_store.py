"""Locally cached payload build and the metadata describing it."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from domain.errors import IOFailure
from services.patching.entry_point import PAYLOAD_ENTRY, read_payload_hash
from services.update.models import ReleaseInfo
from shared.filesystem import atomic_write_bytes, replace_tree, translate_os_errors

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PayloadMetadata:
    tag: str
    commit_hash: str
    sha256: str | None = None
    installed_at: str | None = None

    @classmethod
    def from_mapping(cls, data: Any) -> "PayloadMetadata | None":
        if not isinstance(data, dict):
            return None
        tag = data.get("tag")
        commit_hash = data.get("commit_hash")
        if not isinstance(tag, str) or not isinstance(commit_hash, str) or not commit_hash:
            return None
        sha256 = data.get("sha256")
        installed_at = data.get("installed_at")
        return cls(
            tag=tag,
            commit_hash=commit_hash,
            sha256=sha256 if isinstance(sha256, str) else None,
            installed_at=installed_at if isinstance(installed_at, str) else None,
        )


class PayloadStore:
    """The payload directory under the data dir plus its ``release.json``.

    The directory is only ever replaced whole, so a reader sees the
    previous build or the new one and nothing in between.
    """

    def __init__(self, payload_dir: Path, metadata_path: Path) -> None:
        self._payload_dir = Path(payload_dir)
        self._metadata_path = Path(metadata_path)

    @property
    def payload_dir(self) -> Path:
        return self._payload_dir

    @property
    def metadata_path(self) -> Path:
        return self._metadata_path

    def is_available(self) -> bool:
        return (self._payload_dir / PAYLOAD_ENTRY).is_file()

    def read_metadata(self) -> PayloadMetadata | None:
        try:
            data = json.loads(self._metadata_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as exc:
            _LOGGER.warning("Ignoring unreadable payload metadata %s: %s", self._metadata_path, exc)
            return None
        return PayloadMetadata.from_mapping(data)

    def installed_hash(self) -> str | None:
        """Return the commit hash of the cached build, if there is one."""

        if not self.is_available():
            return None
        metadata = self.read_metadata()
        if metadata is not None:
            return metadata.commit_hash
        return read_payload_hash(self._payload_dir)

    def install(self, source_root: Path, release: ReleaseInfo, sha256: str | None) -> PayloadMetadata:
        """Swap ``source_root`` in as the cached payload and record ``release``."""

        if not (source_root / PAYLOAD_ENTRY).is_file():
            raise IOFailure(f"{source_root} does not contain {PAYLOAD_ENTRY}")

        metadata = PayloadMetadata(
            tag=release.tag,
            commit_hash=release.commit_hash,
            sha256=sha256,
            installed_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        )
        with translate_os_errors("install the payload into", self._payload_dir):
            self._payload_dir.parent.mkdir(parents=True, exist_ok=True)
            replace_tree(source_root, self._payload_dir)
        with translate_os_errors("write", self._metadata_path):
            self._metadata_path.parent.mkdir(parents=True, exist_ok=True)
            atomic_write_bytes(
                self._metadata_path,
                json.dumps(asdict(metadata), indent=2).encode("utf-8"),
            )
        _LOGGER.info("Cached payload %s (%s) in %s", release.tag, release.commit_hash, self._payload_dir)
        return metadata


__all__ = ["PayloadMetadata", "PayloadStore"]
