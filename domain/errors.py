"""Error taxonomy shared by the discovery, patching and update layers."""

from __future__ import annotations

from pathlib import Path


class InstallerError(RuntimeError):
    """Base class for every failure the engine reports to its callers."""


class NotAnInstall(InstallerError):
    """Raised when a path does not contain a recognisable client bundle."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"Not a Discord installation: {path}")
        self.path = Path(path)


class PermissionDenied(InstallerError):
    """Raised when the filesystem refuses access to part of a bundle."""

    def __init__(self, path: Path | str | None, message: str | None = None) -> None:
        self.path = Path(path) if path is not None else None
        super().__init__(message or f"Permission denied: {self.path}")


class ScuffedInstall(InstallerError):
    """Raised when a misplaced install would break the client's own updater."""


class NothingToRestore(InstallerError):
    """Raised when unpatching finds no recovery copy of the entry point."""


class IOFailure(InstallerError):
    """Raised for filesystem failures other than permission problems."""


class UpdateError(InstallerError):
    """Raised when an update cannot be resolved, downloaded or applied."""


class FeedUnavailable(UpdateError):
    """Raised when the release feed cannot be reached or understood."""


class VerificationFailed(UpdateError):
    """Raised when a downloaded artifact does not match its published digest."""


class ReplaceFailed(UpdateError):
    """Raised when the running executable could not be swapped in place."""


class RelaunchFailed(UpdateError):
    """Raised when the updated installer is in place but could not be started."""

    def __init__(self, executable: Path, message: str) -> None:
        super().__init__(message)
        self.executable = Path(executable)


__all__ = [
    "FeedUnavailable",
    "IOFailure",
    "InstallerError",
    "NotAnInstall",
    "NothingToRestore",
    "PermissionDenied",
    "RelaunchFailed",
    "ReplaceFailed",
    "ScuffedInstall",
    "UpdateError",
    "VerificationFailed",
]
