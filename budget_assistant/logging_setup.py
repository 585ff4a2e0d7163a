"""Logging for ``budget_assistant``.

Library modules call ``get_logger(__name__)`` and never attach handlers; until
an entry point calls :func:`configure_logging`, the package logger only has a
``NullHandler``.

``configure_logging`` picks the level from, in order: the ``level`` argument,
the ``--verbose`` count (``-v`` INFO, ``-vv`` DEBUG), the
``BUDGET_ASSISTANT_LOG_LEVEL`` environment variable, then WARNING. Command
output goes to stdout, so log lines go to stderr and stay quiet by default.
At DEBUG the ``sqlalchemy.engine`` logger is routed through the same handler
so the SQL a command runs is visible.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PACKAGE = "budget_assistant"
LEVEL_ENV = "BUDGET_ASSISTANT_LOG_LEVEL"
DEFAULT_FORMAT = "%(levelname)s %(module_path)s: %(message)s"

_SQL_LOGGER = "sqlalchemy.engine"


class _ModulePath(logging.Filter):
    """Expose the logger name without the package prefix as ``module_path``."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith(PACKAGE + "."):
            name = name[len(PACKAGE) + 1 :]
        record.module_path = name
        return True


class _PackageHandler(logging.StreamHandler):
    """The one handler ``configure_logging`` owns; replaced on reconfiguration."""


def _parse_level(level: int | str | None) -> int | None:
    if isinstance(level, int):
        return level
    if not isinstance(level, str):
        return None
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    return logging.getLevelNamesMapping().get(name)


def resolve_level(level: int | str | None = None, *, verbose: int = 0) -> int:
    explicit = _parse_level(level)
    if explicit is not None:
        return explicit
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    from_env = _parse_level(os.getenv(LEVEL_ENV))
    return from_env if from_env is not None else logging.WARNING


def configure_logging(
    level: int | str | None = None,
    *,
    verbose: int = 0,
    stream: IO[str] | None = None,
    fmt: str = DEFAULT_FORMAT,
) -> int:
    """Install the package handler and return the level chosen.

    Calling again replaces the handler from the previous call, so the CLI can
    reconfigure per invocation.
    """

    resolved = resolve_level(level, verbose=verbose)
    handler = _PackageHandler(stream if stream is not None else sys.stderr)
    handler.addFilter(_ModulePath())
    handler.setFormatter(logging.Formatter(fmt))

    pkg = logging.getLogger(PACKAGE)
    sql = logging.getLogger(_SQL_LOGGER)
    for h in list(pkg.handlers):
        pkg.removeHandler(h)
    for h in list(sql.handlers):
        if isinstance(h, _PackageHandler):
            sql.removeHandler(h)

    pkg.addHandler(handler)
    pkg.setLevel(resolved)
    pkg.propagate = False

    if resolved <= logging.DEBUG:
        sql.addHandler(handler)
        sql.setLevel(logging.INFO)
    else:
        sql.setLevel(logging.WARNING)
    return resolved


def get_logger(name: str) -> logging.Logger:
    """Return a logger inside the package tree.

    ``__name__`` passes through unchanged; a bare name such as ``"cli"``
    becomes ``"budget_assistant.cli"``.
    """

    pkg = logging.getLogger(PACKAGE)
    if not pkg.handlers:
        pkg.addHandler(logging.NullHandler())
    if name != PACKAGE and not name.startswith(PACKAGE + "."):
        name = f"{PACKAGE}.{name}"
    return logging.getLogger(name)


__all__ = ["PACKAGE", "LEVEL_ENV", "configure_logging", "get_logger", "resolve_level"]
