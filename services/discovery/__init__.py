"""Install discovery: locate candidate bundles and classify them."""

from __future__ import annotations

from services.discovery.classifier import InstallClassifier
from services.discovery.locator import InstallLocator, default_roots
from services.discovery.probe import ProbeResult, probe_patch_state
from services.discovery.scuffed import ScuffedDetector

__all__ = [
    "InstallClassifier",
    "InstallLocator",
    "ProbeResult",
    "ScuffedDetector",
    "default_roots",
    "probe_patch_state",
]
