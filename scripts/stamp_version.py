"""Stamp the installer build info files from a Git tag and commit."""

from __future__ import annotations

import argparse
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_VERSION_FILE = PROJECT_ROOT / "app" / "VERSION"
DEFAULT_HASH_FILE = PROJECT_ROOT / "app" / "GIT_HASH"


def normalize_ref_name(ref_name: str) -> str:
    """Reduce ``refs/tags/v1.2.3`` style names to the bare tag."""

    stripped = ref_name.strip()
    if stripped.startswith("refs/tags/"):
        stripped = stripped[len("refs/tags/"):]
    return stripped


def stamp_version(ref_name: str, output: Path) -> Path:
    """Write the tag derived from *ref_name* to *output*."""

    normalized = normalize_ref_name(ref_name)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(f"{normalized}\n", encoding="utf-8")
    return output


def stamp_hash(commit: str, output: Path) -> Path:
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(f"{commit.strip()[:7]}\n", encoding="utf-8")
    return output


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "ref_name",
        help="Git ref name to stamp (e.g. 'v1.2.3').",
    )
    parser.add_argument(
        "--commit",
        default=None,
        help="Commit the build was made from; its short form is written to GIT_HASH.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=DEFAULT_VERSION_FILE,
        help="Path to the VERSION file that should be stamped.",
    )
    parser.add_argument(
        "--hash-output",
        type=Path,
        default=DEFAULT_HASH_FILE,
        help="Path to the GIT_HASH file that should be stamped.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    stamp_version(args.ref_name, args.output)
    if args.commit:
        stamp_hash(args.commit, args.hash_output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
