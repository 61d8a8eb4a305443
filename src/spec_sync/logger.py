"""Logging setup for spec-sync.

Two modes:

- ``cli``: records go to stderr, optionally mirrored to a file.
- ``hook``: records go to a file only.  Editor and agent hooks share the
  terminal with the tool that fired them.

``configure_logging()`` applies the ``logging`` section of a
``SyncConfig``; ``setup_logging()`` is the lower-level form.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from spec_sync.config_schema import SyncConfig

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_ENV = "SPEC_SYNC_LOG_FILE"
DEFAULT_HOOK_LOG = "/tmp/spec-sync.log"

_MODE_LEVELS = {"cli": "INFO", "hook": "WARNING"}
_QUIET_LOGGERS = ("urllib3", "requests", "charset_normalizer")


class JsonFormatter(logging.Formatter):
    """One JSON object per record: ``ts``, ``level``, ``logger``, ``msg``.

    Exception text is added under ``exc``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _formatter(debug_format: str, with_name: bool) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=DATE_FORMAT)
    name = " %(name)s" if with_name else ""
    return logging.Formatter(
        f"[%(asctime)s] [%(levelname)s]{name} %(message)s",
        datefmt=DATE_FORMAT,
    )


def resolve_level(
    mode: str, debug: bool = False, default_level: str | None = None
) -> int:
    """Effective level: ``debug`` > ``LOG_LEVEL`` env > default > mode.

    Unknown level names fall back to INFO.
    """
    if debug:
        return logging.DEBUG
    name = (
        os.getenv("LOG_LEVEL")
        or default_level
        or _MODE_LEVELS.get(mode, "INFO")
    )
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    default_level: str | None = None,
) -> None:
    """Configure the root logger.

    Args:
        mode: ``"cli"`` (stderr) or ``"hook"`` (file only).
        debug: Force DEBUG regardless of environment.
        log_file: Log file.  In hook mode it defaults to
            ``$SPEC_SYNC_LOG_FILE`` and then ``/tmp/spec-sync.log``; in cli
            mode it is an optional mirror of stderr.
        debug_format: ``"text"`` or ``"json"``.
        default_level: Level used when ``LOG_LEVEL`` is unset, in place of
            the mode default (WARNING for hooks, INFO for cli).
    """
    log_level = resolve_level(mode, debug, default_level)

    handlers: list[logging.Handler] = []
    if mode == "hook":
        path = log_file or os.getenv(LOG_FILE_ENV, DEFAULT_HOOK_LOG)
        handlers.append(logging.FileHandler(path, mode="a", delay=True))
    else:
        handlers.append(logging.StreamHandler(sys.stderr))
        if log_file:
            handlers.append(
                logging.FileHandler(log_file, mode="a", delay=True)
            )

    for handler in handlers:
        # Logger names only go to files
        with_name = isinstance(handler, logging.FileHandler)
        handler.setFormatter(_formatter(debug_format, with_name))

    logging.basicConfig(level=log_level, handlers=handlers)

    if log_level != logging.DEBUG:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def configure_logging(
    config: SyncConfig,
    mode: str = "cli",
    debug: bool = False,
    debug_format: str = "text",
) -> None:
    """Apply ``config.logging`` through ``setup_logging()``.

    ``logging.level`` replaces the mode default only when the config sets
    it; ``LOG_LEVEL`` still wins.  In hook mode ``SPEC_SYNC_LOG_FILE``
    takes precedence over ``logging.file``.
    """
    section = config.logging
    log_file = section.file
    if mode == "hook":
        log_file = os.getenv(LOG_FILE_ENV) or log_file
    level = section.level if "level" in section.model_fields_set else None
    setup_logging(
        mode=mode,
        debug=debug,
        log_file=log_file,
        debug_format=debug_format,
        default_level=level,
    )
