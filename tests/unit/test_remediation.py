from __future__ import annotations

from pathlib import Path

import pytest

from app.remediation import describe_error, permission_message, platform_key
from domain.errors import IOFailure, PermissionDenied, ScuffedInstall


@pytest.mark.parametrize(
    ("platform", "expected"),
    [("win32", "win32"), ("cygwin", "default"), ("darwin", "darwin"), ("linux2", "linux"), ("freebsd13", "default")],
)
def test_platform_key(platform: str, expected: str) -> None:
    assert platform_key(platform) == expected


def test_linux_permission_message_quotes_path() -> None:
    message = permission_message(Path("/opt/My Discord"), "linux")

    assert "sudo" in message
    assert """sudo chown -R "$USER:$USER" '/opt/My Discord'""" in message


def test_macos_permission_message_mentions_full_disk_access() -> None:
    message = permission_message(Path("/Applications/Discord.app"), "darwin")

    assert "Full Disk Access" in message
    assert 'sudo chown -R "${USER}:wheel" /Applications/Discord.app' in message


def test_windows_permission_message_asks_to_close_client() -> None:
    message = permission_message(Path(r"C:\Users\me\AppData\Local\Discord"), "win32")

    assert "fully closed" in message
    assert "chown" not in message


def test_describe_error_adds_permission_remediation() -> None:
    error = PermissionDenied(Path("/usr/share/discord/resources/app/index.js"))

    text = describe_error(error, platform="linux")

    assert "/usr/share/discord/resources/app/index.js" in text
    assert text.startswith("Permission denied.")


def test_describe_error_adds_scuffed_remediation(tmp_path: Path) -> None:
    error = ScuffedInstall("misplaced install")

    assert str(tmp_path) in describe_error(error, scuffed_location=tmp_path)
    assert describe_error(error) == "misplaced install"


def test_describe_error_passes_other_errors_through() -> None:
    assert describe_error(IOFailure("disk full")) == "disk full"
