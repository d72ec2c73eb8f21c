from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from pathlib import Path
from zipfile import ZIP_DEFLATED, ZipFile

from app.config import load_app_config
from domain.errors import FeedUnavailable
from services.installer_service import InstallerService, build_installer_service
from services.patching.entry_point import PAYLOAD_ENTRY
from services.patching.secondary_mod import SECONDARY_MOD_ENTRY, SECONDARY_MOD_SIGNATURE
from services.update import PosixSelfReplacer, ReleaseInfo, ReleaseKind

ORIGINAL_ENTRY = b"// original client bootstrap\nrequire('./app_bootstrap/index.js');\n"


def make_bundle(
    root: Path,
    name: str = "Discord",
    *,
    layout: str = "linux",
    package_name: str = "discord",
    version: str = "0.0.50",
    main: str | None = "index.js",
    entry_content: bytes = ORIGINAL_ENTRY,
) -> Path:
    """Create a minimal client bundle under ``root / name`` and return that path."""

    install = root / name
    if layout == "linux":
        resources = install / "resources"
    elif layout == "macos":
        resources = install / "Contents" / "Resources"
    elif layout == "windows":
        resources = install / f"app-{version}" / "resources"
    else:
        raise ValueError(layout)

    app_dir = resources / "app"
    app_dir.mkdir(parents=True)
    descriptor = {"name": package_name, "version": version}
    if main is not None:
        descriptor["main"] = main
    (app_dir / "package.json").write_text(json.dumps(descriptor), encoding="utf-8")
    entry_name = main or "index.js"
    if not entry_name.endswith(".js"):
        entry_name = f"{entry_name}.js"
    entry = app_dir / entry_name
    entry.parent.mkdir(parents=True, exist_ok=True)
    entry.write_bytes(entry_content)
    return install


def make_payload(directory: Path, commit: str = "abc1234") -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / PAYLOAD_ENTRY).write_text(
        f"// Bashcord {commit}\nconsole.log('bashcord');\n",
        encoding="utf-8",
    )
    (directory / "preload.js").write_text("// preload\n", encoding="utf-8")
    return directory


def build_payload_archive(tmp_path: Path, commit: str = "def5678", *, wrapped: bool = True) -> Path:
    source = make_payload(tmp_path / "payload-src" / "dist", commit)
    archive_path = tmp_path / "bashcord-dist.zip"
    with ZipFile(archive_path, "w", compression=ZIP_DEFLATED) as archive:
        for path in source.rglob("*"):
            if path.is_file():
                arcname = path.relative_to(source.parent if wrapped else source)
                archive.write(path, arcname)
    return archive_path


def make_secondary_mod_bundle(directory: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / SECONDARY_MOD_ENTRY).write_bytes(b"\x04\x00\x00\x00" + SECONDARY_MOD_SIGNATURE + b" asar")
    return directory


def sha256_of(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


def payload_release(archive: Path, commit: str = "def5678", *, hashed: bool = True) -> ReleaseInfo:
    return ReleaseInfo(
        kind=ReleaseKind.PAYLOAD,
        tag="devbuild-def5678",
        commit_hash=commit,
        asset_name=archive.name,
        source_path=archive,
        hash_value=sha256_of(archive) if hashed else None,
    )


def installer_release(binary: Path, tag: str = "2.0.0", *, hash_value: str | None = None) -> ReleaseInfo:
    return ReleaseInfo(
        kind=ReleaseKind.INSTALLER,
        tag=tag,
        commit_hash=tag,
        asset_name=binary.name,
        source_path=binary,
        hash_value=hash_value if hash_value is not None else sha256_of(binary),
        html_url=f"https://example.com/releases/{tag}",
    )


@dataclass
class StaticReleaseProvider:
    release: ReleaseInfo | None
    calls: int = 0

    def fetch_latest(self) -> ReleaseInfo:
        self.calls += 1
        if self.release is None:
            raise FeedUnavailable("feed offline")
        return self.release


@dataclass
class StaticSecondaryModSource:
    directory: Path

    def bundle_dir(self) -> Path:
        return self.directory


@dataclass
class RecordingRelauncher:
    launched: list[Path] = field(default_factory=list)

    def relaunch(self, executable: Path) -> None:
        self.launched.append(executable)


@dataclass
class RecordingOpener:
    urls: list[str] = field(default_factory=list)

    def __call__(self, url: str) -> bool:
        self.urls.append(url)
        return True


def build_test_service(
    tmp_path: Path,
    *,
    payload: ReleaseInfo | None = None,
    installer: ReleaseInfo | None = None,
    executable: Path | None = None,
    relauncher: RecordingRelauncher | None = None,
    platform: str = "linux",
    dev_install: bool = False,
) -> InstallerService:
    """Wire an :class:`InstallerService` over ``tmp_path / "installs"`` with static feeds."""

    environ = {"BASHCORD_USER_DATA_DIR": str(tmp_path / "data")}
    if dev_install:
        environ["BASHCORD_DEV_INSTALL"] = "1"
    config = load_app_config(environ=environ)
    make_secondary_mod_bundle(config.paths.secondary_mod_dir)
    (tmp_path / "installs").mkdir(exist_ok=True)
    return build_installer_service(
        config,
        platform=platform,
        environ=environ,
        roots=(tmp_path / "installs",),
        providers={
            ReleaseKind.PAYLOAD: StaticReleaseProvider(payload),
            ReleaseKind.INSTALLER: StaticReleaseProvider(installer),
        },
        executable=executable,
        replacer=PosixSelfReplacer(),
        relauncher=relauncher or RecordingRelauncher(),
    )


__all__ = [
    "ORIGINAL_ENTRY",
    "RecordingOpener",
    "RecordingRelauncher",
    "StaticReleaseProvider",
    "StaticSecondaryModSource",
    "build_payload_archive",
    "build_test_service",
    "installer_release",
    "make_bundle",
    "make_payload",
    "make_secondary_mod_bundle",
    "payload_release",
    "sha256_of",
]
