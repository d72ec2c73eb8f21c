from __future__ import annotations

from pytest_bdd import parsers, then

from tests.e2e.world import InstallerWorld


@then("the command succeeds")
def command_succeeds(installer_world: InstallerWorld) -> None:
    assert installer_world.exit_code == 0, installer_world.stderr


@then(parsers.parse('the command fails mentioning "{text}"'))
def command_fails(installer_world: InstallerWorld, text: str) -> None:
    assert installer_world.exit_code == 1
    assert text in installer_world.stderr


@then(parsers.parse('the output mentions "{text}"'))
def output_mentions(installer_world: InstallerWorld, text: str) -> None:
    assert text in installer_world.stdout
