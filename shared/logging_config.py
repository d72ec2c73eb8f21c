"""Central logging configuration for the installer.

Install paths almost always embed the user's name (``C:\\Users\\alice\\...``,
``/home/alice/...``), and log files get pasted into bug reports, so every
record written by the handlers configured here passes through a formatter
that swaps the home directory and user name for placeholders.

Two environment variables control where the log file is written:

``BASHCORD_LOG_FILE``
    Absolute path to the log file that should be created.

``BASHCORD_LOG_DIR``
    Directory where the default log file name will be created.  Ignored when
    ``BASHCORD_LOG_FILE`` is present.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from enum import Enum
from pathlib import Path
from typing import Iterable

LOG_FILE_ENV = "BASHCORD_LOG_FILE"
LOG_DIR_ENV = "BASHCORD_LOG_DIR"
_DEFAULT_DIRNAME = ".bashcord_installer"
_DEFAULT_LOGNAME = "installer.log"
_HANDLER_TAG = "_bashcord_logging_handler"

USER_PLACEHOLDER = "<user>"
USER_HOME_PLACEHOLDER = "<user_home>"

_CONFIGURED = False
_LOG_PATH: Path | None = None
_FILE_HANDLER: logging.FileHandler | None = None


class LogVerbosity(str, Enum):
    """Verbosity levels supported by the installer log file."""

    DISABLED = "disabled"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    VERBOSE = "verbose"


_VERBOSITY_LEVELS: dict[LogVerbosity, int] = {
    LogVerbosity.DISABLED: logging.CRITICAL + 1,
    LogVerbosity.ERROR: logging.ERROR,
    LogVerbosity.WARNING: logging.WARNING,
    LogVerbosity.INFO: logging.INFO,
    LogVerbosity.VERBOSE: logging.DEBUG,
}

_DEFAULT_VERBOSITY = LogVerbosity.INFO
_CURRENT_VERBOSITY = _DEFAULT_VERBOSITY


def _home_variants() -> set[str]:
    candidates = {str(Path.home())}
    for env_var in ("HOME", "USERPROFILE"):
        value = os.environ.get(env_var)
        if value:
            candidates.add(os.path.expanduser(value))

    variants: set[str] = set()
    for candidate in candidates:
        normalised = os.path.normpath(candidate)
        if normalised in {os.sep, ".", ""}:
            continue
        variants.add(normalised)
        variants.add(normalised.replace("\\", "/"))
        variants.add(normalised.replace("/", "\\"))
    return variants


def _user_names() -> set[str]:
    names = {Path.home().name}
    for env_var in ("USERNAME", "USER", "LOGNAME", "SUDO_USER"):
        value = os.environ.get(env_var)
        if value:
            names.add(value)
    # Very short names ("a", "pi") would shred unrelated words.
    return {name.strip() for name in names if name and len(name.strip()) > 2}


def _build_redaction_patterns() -> tuple[tuple[re.Pattern[str], str], ...]:
    flags = re.IGNORECASE if os.name == "nt" else 0
    patterns: list[tuple[re.Pattern[str], str]] = []
    # Longest first so ``/home/alice/x`` wins over a nested shorter variant.
    for home in sorted(_home_variants(), key=len, reverse=True):
        patterns.append((re.compile(re.escape(home), flags), USER_HOME_PLACEHOLDER))
    for name in sorted(_user_names(), key=len, reverse=True):
        patterns.append(
            (re.compile(rf"(?<![\w<]){re.escape(name)}(?![\w>])", re.IGNORECASE), USER_PLACEHOLDER)
        )
    return tuple(patterns)


_REDACTION_PATTERNS = _build_redaction_patterns()


def redact(message: str) -> str:
    """Return ``message`` with home directories and user names masked."""

    if not message:
        return message
    for pattern, replacement in _REDACTION_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


class _RedactingFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record))


def ensure_app_logging() -> Path:
    """Configure the root logger for the installer.

    The first call installs a file handler and, when stderr is a terminal, a
    console handler at INFO level.  Later calls return the same log path
    without touching the handlers again.
    """

    global _CONFIGURED, _LOG_PATH, _FILE_HANDLER

    if _CONFIGURED and _LOG_PATH is not None:
        return _LOG_PATH

    log_path = _resolve_log_path()
    log_path.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    formatter = _RedactingFormatter(
        "%(asctime)s %(levelname)s [%(threadName)s] [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(_VERBOSITY_LEVELS[_CURRENT_VERBOSITY])
    file_handler.setFormatter(formatter)
    setattr(file_handler, _HANDLER_TAG, True)
    root.addHandler(file_handler)
    _FILE_HANDLER = file_handler

    if _should_log_to_stderr(root.handlers):
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(logging.INFO)
        stream_handler.setFormatter(formatter)
        setattr(stream_handler, _HANDLER_TAG, True)
        root.addHandler(stream_handler)

    _CONFIGURED = True
    _LOG_PATH = log_path

    logging.getLogger(__name__).info(
        "Writing installer logs to %s (verbosity=%s)",
        log_path,
        _CURRENT_VERBOSITY.value,
    )
    return log_path


def set_file_log_verbosity(verbosity: LogVerbosity | str) -> None:
    """Adjust the minimum severity recorded in the log file."""

    global _CURRENT_VERBOSITY

    if isinstance(verbosity, str):
        try:
            verbosity = LogVerbosity(verbosity.lower())
        except ValueError as exc:
            raise ValueError(f"Unsupported log verbosity: {verbosity}") from exc

    ensure_app_logging()
    _CURRENT_VERBOSITY = verbosity
    if _FILE_HANDLER is not None:
        _FILE_HANDLER.setLevel(_VERBOSITY_LEVELS[verbosity])
    logging.getLogger(__name__).info("File log verbosity set to %s", verbosity.value)


def get_file_log_verbosity() -> LogVerbosity:
    return _CURRENT_VERBOSITY


def _resolve_log_path() -> Path:
    env_file = os.environ.get(LOG_FILE_ENV)
    if env_file:
        return Path(env_file).expanduser()

    env_dir = os.environ.get(LOG_DIR_ENV)
    if env_dir:
        return Path(env_dir).expanduser() / _DEFAULT_LOGNAME

    return Path.home() / _DEFAULT_DIRNAME / "logs" / _DEFAULT_LOGNAME


def _should_log_to_stderr(handlers: Iterable[logging.Handler]) -> bool:
    stderr = getattr(sys, "stderr", None)
    is_tty = getattr(stderr, "isatty", None)
    if not callable(is_tty):
        return False
    try:
        if not is_tty():
            return False
    except (OSError, ValueError):
        return False

    for handler in handlers:
        if isinstance(handler, logging.StreamHandler) and handler.stream is stderr:
            return False
    return True


def _reset_for_tests() -> None:
    """Remove handlers installed by :func:`ensure_app_logging`."""

    global _CONFIGURED, _LOG_PATH, _FILE_HANDLER, _CURRENT_VERBOSITY

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)
            handler.close()

    _CONFIGURED = False
    _LOG_PATH = None
    _FILE_HANDLER = None
    _CURRENT_VERBOSITY = _DEFAULT_VERBOSITY


__all__ = [
    "LOG_DIR_ENV",
    "LOG_FILE_ENV",
    "LogVerbosity",
    "ensure_app_logging",
    "get_file_log_verbosity",
    "redact",
    "set_file_log_verbosity",
]
