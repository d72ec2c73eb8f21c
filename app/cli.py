"""Command line front-end for the installer."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Callable, TextIO

from app.remediation import describe_error
from app.version import get_installer_hash, get_installer_tag
from domain.errors import InstallerError
from domain.installation import Branch, Installation
from services.discovery import ScuffedDetector
from services.installer_service import InstallerService, build_installer_service
from services.update import SelfUpdateOutcome
from shared.logging_config import LogVerbosity, ensure_app_logging, set_file_log_verbosity
from shared.result import Result

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="bashcord-installer",
        description="Patch Discord installs with Bashcord and keep the installer up to date.",
    )
    actions = parser.add_mutually_exclusive_group()
    actions.add_argument("--list", action="store_true", help="List detected Discord installs.")
    actions.add_argument("--install", action="store_true", help="Patch the selected install.")
    actions.add_argument("--uninstall", action="store_true", help="Restore the selected install.")
    actions.add_argument(
        "--toggle-openasar",
        action="store_true",
        help="Install OpenAsar on the selected install, or remove it when present.",
    )
    actions.add_argument("--update-self", action="store_true", help="Update the installer itself.")
    actions.add_argument(
        "--update-payload",
        action="store_true",
        help="Download the latest Bashcord build into the local cache.",
    )
    actions.add_argument("--version", action="store_true", help="Print the installer version.")

    target = parser.add_mutually_exclusive_group()
    target.add_argument("--location", type=Path, help="Path to a Discord install to act on.")
    target.add_argument(
        "--branch",
        choices=[branch.value for branch in Branch],
        help="Branch of the detected install to act on.",
    )
    parser.add_argument(
        "--log-verbosity",
        choices=[level.value for level in LogVerbosity],
        default=None,
        help="Minimum severity written to the log file.",
    )
    return parser.parse_args(argv)


class _Runner:
    def __init__(self, service: InstallerService, out: TextIO, err: TextIO) -> None:
        self._service = service
        self._out = out
        self._err = err

    def list_installs(self) -> int:
        installs = self._service.list_installs()
        if not installs:
            self._print("No Discord installs found.")
            return EXIT_OK
        for installation in installs:
            self._print(installation.describe())
        return EXIT_OK

    def act(self, args: argparse.Namespace) -> int:
        installation = self._select(args)
        if installation is None:
            return EXIT_FAILURE

        call: Callable[[Installation], Result[Installation, InstallerError]]
        if args.install:
            call, verb = self._service.patch, "Patched"
        elif args.uninstall:
            call, verb = self._service.unpatch, "Unpatched"
        else:
            call, verb = self._service.toggle_secondary_mod, "Toggled OpenAsar on"

        result = call(installation)
        if result.is_err():
            return self._fail(result.unwrap_err())
        self._print(f"{verb} {result.unwrap().describe()}")
        return EXIT_OK

    def update_payload(self) -> int:
        result = self._service.apply_payload_update()
        if result.is_err():
            return self._fail(result.unwrap_err())
        metadata = result.unwrap()
        if metadata is None:
            self._print("Bashcord is already up to date.")
        else:
            self._print(f"Downloaded Bashcord {metadata.tag} ({metadata.commit_hash}).")
        return EXIT_OK

    def update_self(self) -> int:
        status = self._service.check_for_updates()
        if status.installer_error:
            self._err.write(f"Could not check for installer updates: {status.installer_error}\n")
            return EXIT_FAILURE
        if not status.installer_stale:
            self._print(f"The installer is up to date ({get_installer_tag()}).")
            return EXIT_OK
        result = self._service.apply_installer_update()
        if result.is_err():
            return self._fail(result.unwrap_err())
        outcome = result.unwrap()
        if outcome is SelfUpdateOutcome.OPENED_BROWSER:
            self._print("Opened the download page for the new installer in your browser.")
        elif outcome is SelfUpdateOutcome.REPLACED:
            self._print("The installer was updated.")
        return EXIT_OK

    def status(self) -> int:
        status = self._service.check_for_updates()
        self._print(f"Installer {get_installer_tag()} ({get_installer_hash()})")
        if status.installer_stale and status.installer_release is not None:
            self._print(f"  Installer update available: {status.installer_release.tag}")
        if status.payload_stale:
            self._print("  A newer Bashcord build is available.")
        for error in (status.installer_error, status.payload_error):
            if error:
                self._print(f"  Update check failed: {error}")
        return self.list_installs()

    def _select(self, args: argparse.Namespace) -> Installation | None:
        if args.location is not None:
            installation = self._service.classify_custom_path(args.location)
            if installation is None:
                self._err.write(f"{args.location} is not a Discord install.\n")
            return installation

        installs = self._service.list_installs()
        if args.branch:
            installs = [item for item in installs if item.branch.value == args.branch]
        if len(installs) == 1:
            return installs[0]
        if not installs:
            self._err.write("No matching Discord install found; pass --location.\n")
        else:
            self._err.write("More than one Discord install found; pass --branch or --location:\n")
            for installation in installs:
                self._err.write(f"  {installation.describe()}\n")
        return None

    def _fail(self, error: InstallerError) -> int:
        detector = ScuffedDetector.for_platform()
        self._err.write(f"{describe_error(error, scuffed_location=detector.location)}\n")
        return EXIT_FAILURE

    def _print(self, text: str) -> None:
        self._out.write(f"{text}\n")


def main(
    argv: list[str] | None = None,
    *,
    service: InstallerService | None = None,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    args = parse_args(argv)
    out = out or sys.stdout
    err = err or sys.stderr

    if args.version:
        out.write(f"{get_installer_tag()} ({get_installer_hash()})\n")
        return EXIT_OK

    ensure_app_logging()
    if args.log_verbosity:
        set_file_log_verbosity(args.log_verbosity)

    runner = _Runner(service or build_installer_service(), out, err)
    if args.list:
        return runner.list_installs()
    if args.install or args.uninstall or args.toggle_openasar:
        return runner.act(args)
    if args.update_payload:
        return runner.update_payload()
    if args.update_self:
        return runner.update_self()
    if args.location is not None or args.branch:
        err.write("--location and --branch need an action such as --install.\n")
        return EXIT_USAGE
    return runner.status()


if __name__ == "__main__":
    raise SystemExit(main())
