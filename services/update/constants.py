"""Constants shared across the update service modules."""

from __future__ import annotations

USER_AGENT = "BashcordInstaller"

LOCAL_RELEASE_ENV = "BASHCORD_UPDATE_LOCAL_DIR"
INSTALLER_EXECUTABLE_ENV = "BASHCORD_INSTALLER_EXECUTABLE"

PAYLOAD_ARCHIVE_EXTENSIONS = (".zip",)
HASH_ASSET_SUFFIX = ".sha256"
PREVIOUS_EXECUTABLE_SUFFIX = ".old"
STAGED_EXECUTABLE_SUFFIX = ".new"

MAX_ARCHIVE_TOTAL_BYTES = 200 * 1024 * 1024  # 200 MiB
MAX_ARCHIVE_FILE_SIZE = 100 * 1024 * 1024  # 100 MiB per file
MAX_ARCHIVE_ENTRIES = 2000
MAX_COMPRESSION_RATIO = 100  # Uncompressed vs compressed bytes
