"""Apply and revert the injection on a single client bundle.

Every write either lands completely or not at all: the entry point is
rewritten through a temporary sibling and ``os.replace``, and the payload
directory is swapped in by rename.  The recovery copy of the original entry
point is created before anything else is touched and removed only after the
original bytes are back in place.
"""

from __future__ import annotations

import logging
from pathlib import Path

from domain.errors import IOFailure, NothingToRestore, ScuffedInstall
from domain.installation import Installation
from services.discovery.classifier import InstallClassifier
from services.patching.entry_point import (
    PAYLOAD_DIRNAME,
    PAYLOAD_ENTRY,
    has_injection_marker,
    recovery_path,
    render_patched_entry,
)
from services.patching.secondary_mod import (
    SECONDARY_MOD_ENTRY,
    SecondaryModSource,
    has_signature,
    secondary_mod_dir,
)
from services.verification import fingerprint, verify
from shared.filesystem import (
    atomic_write_bytes,
    remove_tree,
    replace_tree,
    translate_os_errors,
)

_LOGGER = logging.getLogger(__name__)


class PatchEngine:
    """Patch, unpatch and toggle OpenAsar on classified installations."""

    def __init__(
        self,
        payload_dir: Path,
        *,
        classifier: InstallClassifier | None = None,
        secondary_mod_source: SecondaryModSource | None = None,
    ) -> None:
        self._payload_dir = Path(payload_dir)
        self._classifier = classifier or InstallClassifier()
        self._secondary_mod_source = secondary_mod_source

    @property
    def payload_dir(self) -> Path:
        return self._payload_dir

    def has_payload(self) -> bool:
        return (self._payload_dir / PAYLOAD_ENTRY).is_file()

    def ensure_patchable(self, installation: Installation) -> None:
        """Raise :class:`ScuffedInstall` before anything is downloaded or written."""

        if installation.scuffed:
            raise ScuffedInstall(
                f"{installation.branch.label} at {installation.path} is scuffed; "
                "reinstall it in the default location before patching"
            )

    def patch(self, installation: Installation) -> Installation:
        """Inject the cached payload; patching a patched bundle refreshes it."""

        self.ensure_patchable(installation)
        if not self.has_payload():
            raise IOFailure(f"No payload is available in {self._payload_dir}")

        entry_point = installation.entry_point
        backup = recovery_path(entry_point)
        target_payload = installation.app_dir / PAYLOAD_DIRNAME

        with translate_os_errors("read", entry_point):
            current = entry_point.read_bytes()
        with translate_os_errors("inspect", backup):
            backup_exists = backup.is_file()

        if has_injection_marker(current):
            if not backup_exists:
                raise NothingToRestore(
                    f"{entry_point} is patched but its original copy {backup.name} is missing"
                )
            _LOGGER.info("Refreshing payload of %s", installation.path)
        else:
            if backup_exists:
                _LOGGER.warning("Replacing stale recovery copy %s", backup)
            with translate_os_errors("back up", entry_point):
                atomic_write_bytes(backup, current)
            with translate_os_errors("verify", backup):
                copied = backup.read_bytes()
            if not verify(fingerprint(current), fingerprint(copied)):
                raise IOFailure(f"Recovery copy {backup} does not match {entry_point}")

        with translate_os_errors("copy the payload into", target_payload):
            replace_tree(self._payload_dir, target_payload)
        with translate_os_errors("write", entry_point):
            atomic_write_bytes(entry_point, render_patched_entry(entry_point, target_payload))

        _LOGGER.info("Patched %s", installation.path)
        return self._classifier.reclassify(installation)

    def unpatch(self, installation: Installation) -> Installation:
        """Restore the original entry point byte for byte."""

        entry_point = installation.entry_point
        backup = recovery_path(entry_point)

        with translate_os_errors("read", entry_point):
            current = entry_point.read_bytes() if entry_point.exists() else b""
        if not has_injection_marker(current):
            raise NothingToRestore(f"{installation.path} is not patched")
        with translate_os_errors("read", backup):
            if not backup.is_file():
                raise NothingToRestore(f"Original entry point {backup} is missing")
            original = backup.read_bytes()

        with translate_os_errors("restore", entry_point):
            atomic_write_bytes(entry_point, original)
            restored = entry_point.read_bytes()
        if not verify(fingerprint(original), fingerprint(restored)):
            raise IOFailure(f"Restored entry point {entry_point} does not match its original")

        target_payload = installation.app_dir / PAYLOAD_DIRNAME
        with translate_os_errors("remove", target_payload):
            remove_tree(target_payload)
        with translate_os_errors("remove", backup):
            backup.unlink()

        _LOGGER.info("Unpatched %s", installation.path)
        return self._classifier.reclassify(installation)

    def install_secondary_mod(self, installation: Installation) -> Installation:
        target = secondary_mod_dir(installation.resources_dir)
        if has_signature(target / SECONDARY_MOD_ENTRY):
            _LOGGER.debug("OpenAsar already installed in %s", installation.path)
            return self._classifier.reclassify(installation)
        if self._secondary_mod_source is None:
            raise IOFailure("No OpenAsar source is configured")

        bundle = self._secondary_mod_source.bundle_dir()
        with translate_os_errors("install OpenAsar into", target):
            replace_tree(bundle, target)
        _LOGGER.info("Installed OpenAsar into %s", installation.path)
        return self._classifier.reclassify(installation)

    def uninstall_secondary_mod(self, installation: Installation) -> Installation:
        target = secondary_mod_dir(installation.resources_dir)
        with translate_os_errors("remove OpenAsar from", target):
            removed = remove_tree(target)
        if removed:
            _LOGGER.info("Removed OpenAsar from %s", installation.path)
        return self._classifier.reclassify(installation)

    def toggle_secondary_mod(self, installation: Installation, enabled: bool) -> Installation:
        if enabled:
            return self.install_secondary_mod(installation)
        return self.uninstall_secondary_mod(installation)


__all__ = ["PatchEngine"]
