"""Public API for the update service package."""

from __future__ import annotations

from services.update.builder import build_providers, build_update_service, schedule_update_check
from services.update.constants import (
    INSTALLER_EXECUTABLE_ENV,
    LOCAL_RELEASE_ENV,
    MAX_ARCHIVE_ENTRIES,
    MAX_ARCHIVE_FILE_SIZE,
    MAX_ARCHIVE_TOTAL_BYTES,
    MAX_COMPRESSION_RATIO,
)
from services.update.models import (
    FeedUnavailable,
    ReleaseInfo,
    ReleaseKind,
    RelaunchFailed,
    ReplaceFailed,
    SelfUpdateOutcome,
    UpdateError,
    UpdateStatus,
    VerificationFailed,
)
from services.update.payload_store import PayloadMetadata, PayloadStore
from services.update.providers import GitHubReleaseProvider, LocalFolderReleaseProvider, ReleaseProvider
from services.update.self_replace import (
    PosixSelfReplacer,
    ProcessRelauncher,
    Relauncher,
    SelfReplacer,
    WindowsSelfReplacer,
    default_replacer,
    find_running_executable,
)
from services.update.service import UpdateService

__all__ = [
    "INSTALLER_EXECUTABLE_ENV",
    "LOCAL_RELEASE_ENV",
    "MAX_ARCHIVE_ENTRIES",
    "MAX_ARCHIVE_FILE_SIZE",
    "MAX_ARCHIVE_TOTAL_BYTES",
    "MAX_COMPRESSION_RATIO",
    "FeedUnavailable",
    "ReleaseInfo",
    "ReleaseKind",
    "RelaunchFailed",
    "ReplaceFailed",
    "SelfUpdateOutcome",
    "UpdateError",
    "UpdateStatus",
    "VerificationFailed",
    "PayloadMetadata",
    "PayloadStore",
    "GitHubReleaseProvider",
    "LocalFolderReleaseProvider",
    "ReleaseProvider",
    "PosixSelfReplacer",
    "ProcessRelauncher",
    "Relauncher",
    "SelfReplacer",
    "WindowsSelfReplacer",
    "default_replacer",
    "find_running_executable",
    "UpdateService",
    "build_providers",
    "build_update_service",
    "schedule_update_check",
]
