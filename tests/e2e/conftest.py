from __future__ import annotations

import pytest

from tests.e2e.world import InstallerWorld


@pytest.fixture
def installer_world(tmp_path, monkeypatch: pytest.MonkeyPatch) -> InstallerWorld:
    world = InstallerWorld(tmp_path)
    for name, value in world.environ().items():
        monkeypatch.setenv(name, value)
    return world
