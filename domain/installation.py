"""Value types describing a discovered client installation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

APP_DIRNAME = "app"
VERSION_DESCRIPTOR = "package.json"
DEFAULT_ENTRY_POINT = "index.js"


class Branch(str, Enum):
    """Release channels the client ships under."""

    STABLE = "stable"
    PTB = "ptb"
    CANARY = "canary"
    DEVELOPMENT = "development"

    @property
    def label(self) -> str:
        return self.value.title()

    @classmethod
    def parse(cls, raw: str | None) -> "Branch | None":
        """Return the branch named by ``raw`` or ``None`` when unknown."""

        if not raw:
            return None
        lowered = raw.strip().lower().replace(" ", "").replace("-", "").replace("_", "")
        if lowered.endswith(".app"):
            lowered = lowered[: -len(".app")]
        if lowered.startswith("discord"):
            lowered = lowered[len("discord"):]
        if lowered in {"", "stable"}:
            return cls.STABLE
        if lowered == "ptb":
            return cls.PTB
        if lowered == "canary":
            return cls.CANARY
        if lowered in {"development", "dev"}:
            return cls.DEVELOPMENT
        return None


class PatchState(str, Enum):
    UNPATCHED = "unpatched"
    PATCHED = "patched"
    SECONDARY_MOD_PATCHED = "secondary_mod_patched"
    SCUFFED = "scuffed"

    @property
    def is_patched(self) -> bool:
        return self in (PatchState.PATCHED, PatchState.SECONDARY_MOD_PATCHED)


@dataclass(frozen=True)
class Installation:
    """Snapshot of one client bundle as it looked on disk when classified.

    Records are never updated in place.  Any operation that mutates the
    bundle returns a freshly classified record; the previous one is stale.
    """

    path: Path
    branch: Branch
    resources_dir: Path
    patch_state: PatchState = PatchState.UNPATCHED
    version: str | None = None
    entry_name: str = DEFAULT_ENTRY_POINT
    scuffed: bool = False
    secondary_mod_installed: bool = False
    payload_hash: str | None = None

    @property
    def app_dir(self) -> Path:
        return self.resources_dir / APP_DIRNAME

    @property
    def version_descriptor(self) -> Path:
        return self.app_dir / VERSION_DESCRIPTOR

    @property
    def entry_point(self) -> Path:
        return self.app_dir / self.entry_name

    @property
    def is_patched(self) -> bool:
        return self.patch_state.is_patched

    @property
    def display_state(self) -> PatchState:
        """State to show the user; a scuffed install hides its patch state."""

        if self.scuffed:
            return PatchState.SCUFFED
        return self.patch_state

    def describe(self) -> str:
        text = f"{self.branch.label} - {self.path}"
        if self.version:
            text += f" ({self.version})"
        if self.display_state is PatchState.SCUFFED:
            text += " [SCUFFED]"
        elif self.is_patched:
            text += " [PATCHED]"
        if self.secondary_mod_installed:
            text += " [OPENASAR]"
        return text


@dataclass(frozen=True)
class LocatedPath:
    """Raw discovery candidate: a directory and the branch its name suggests."""

    path: Path
    branch_hint: str = ""


__all__ = [
    "APP_DIRNAME",
    "Branch",
    "DEFAULT_ENTRY_POINT",
    "Installation",
    "LocatedPath",
    "PatchState",
    "VERSION_DESCRIPTOR",
]
