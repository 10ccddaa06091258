"""
Logging setup for the CLI and the deployment API.

``main.py`` calls ``setup_from_env`` once per process; every module logs
through ``logger = logging.getLogger(__name__)`` and inherits it.

Console level precedence:
    --debug / --verbose / --quiet  >  SITEFORGE_LOG_LEVEL  >  WARNING

A log file is added when SITEFORGE_LOG_FILE is set. It may run at its own
level (SITEFORGE_LOG_FILE_LEVEL), e.g. a DEBUG trail of every deployment
behind a quiet console.
"""

from __future__ import annotations

import logging
import os
import sys

LOG_LEVEL_ENV = "SITEFORGE_LOG_LEVEL"
LOG_FILE_ENV = "SITEFORGE_LOG_FILE"
LOG_FILE_LEVEL_ENV = "SITEFORGE_LOG_FILE_LEVEL"

_DEFAULT_LEVEL = logging.WARNING

# ── Formats ─────────────────────────────────────────────────────

# (threshold, format, datefmt): first row whose threshold >= level wins
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d: %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
)
_CONSOLE_FALLBACK = "%(message)s"

_FILE_FORMAT = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d: %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Request logs from the Flask dev server and HTTP client chatter
_NOISY_LOGGERS = ("urllib3", "werkzeug")


def _console_formatter(level: int) -> logging.Formatter:
    for threshold, fmt, datefmt in _CONSOLE_FORMATS:
        if level <= threshold:
            return logging.Formatter(fmt, datefmt=datefmt)
    return logging.Formatter(_CONSOLE_FALLBACK)


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(_console_formatter(level))
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
    return handler


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Replace the root logger's handlers.

    Args:
        level: Console level name. Unknown names mean WARNING.
        log_file: Also write to this file.
        log_file_level: Level for ``log_file`` (defaults to ``level``).
        quiet_third_party: Pin werkzeug and urllib3 at WARNING unless the
            console is at DEBUG.
    """
    console_level = _parse_level(level)
    handlers = [_console_handler(console_level)]

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        handlers.append(_file_handler(log_file, file_level))

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    # Handlers filter on their own; the root must pass the most verbose one
    root.setLevel(min(h.level for h in handlers))

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def resolve_level(cli_level: str | None = None) -> str:
    """Pick the console level: CLI flag, then env var, then WARNING."""
    if cli_level:
        return cli_level
    return os.environ.get(LOG_LEVEL_ENV, logging.getLevelName(_DEFAULT_LEVEL))


def setup_from_env(cli_level: str | None = None, quiet_third_party: bool = True) -> None:
    """``setup_logging`` with the env-var fallbacks applied."""
    setup_logging(
        level=resolve_level(cli_level),
        log_file=os.environ.get(LOG_FILE_ENV),
        log_file_level=os.environ.get(LOG_FILE_LEVEL_ENV),
        quiet_third_party=quiet_third_party,
    )


def _parse_level(name: str | None) -> int:
    numeric = logging.getLevelName(name.upper()) if name else _DEFAULT_LEVEL
    return numeric if isinstance(numeric, int) else _DEFAULT_LEVEL
