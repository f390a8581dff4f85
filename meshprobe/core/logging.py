"""
Logging setup for harness runs.

Everything in meshprobe logs through loguru. ``configure_logging`` installs
one stderr sink at the level from ``HarnessSettings`` and, when debug scopes
are configured, a second sink that lets DEBUG records from just those
modules through. A scope is a module prefix: ``poller`` selects
``meshprobe.core.poller``, ``sim`` selects ``meshprobe.sim.*`` and a dotted
name such as ``tests.test_stages`` is matched as written.
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterable
from typing import Any

from loguru import logger

from .config import HarnessSettings, get_settings

LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{name}:{function}:{line} - {message}"
)

PACKAGE_PREFIXES = ("meshprobe.", "meshprobe.core.")


def scope_prefixes(scope: str) -> tuple[str, ...]:
    """Module-name prefixes a debug scope selects."""
    scope = scope.strip().strip(".")
    if not scope:
        return ()
    if "." in scope:
        return (scope,)
    return (scope, *(f"{package}{scope}" for package in PACKAGE_PREFIXES))


def _in_module(name: str, prefix: str) -> bool:
    return name == prefix or name.startswith(f"{prefix}.")


def scope_filter(scopes: Iterable[str]) -> Callable[[dict[str, Any]], bool] | None:
    """Loguru filter passing DEBUG records from the given scopes, or None."""
    prefixes = tuple(prefix for scope in scopes for prefix in scope_prefixes(scope))
    if not prefixes:
        return None

    def _filter(record: dict[str, Any]) -> bool:
        if record["level"].name != "DEBUG":
            return False
        name = record["name"] or ""
        return any(_in_module(name, prefix) for prefix in prefixes)

    return _filter


def configure_logging(
    settings: HarnessSettings | None = None,
    *,
    verbose: bool = False,
    colorize: bool = False,
) -> tuple[int, ...]:
    """Replace loguru's sinks according to ``settings``.

    ``verbose`` forces DEBUG for every module. Returns the new handler ids.
    """
    settings = settings or get_settings()
    level = "DEBUG" if verbose else settings.log_level
    logger.remove()

    handler_ids = [logger.add(sys.stderr, level=level, format=LOG_FORMAT, colorize=colorize)]

    debug_filter = None if level == "DEBUG" else scope_filter(settings.debug_scopes)
    if debug_filter is not None:
        handler_ids.append(
            logger.add(
                sys.stderr,
                level="DEBUG",
                format=LOG_FORMAT,
                colorize=colorize,
                filter=debug_filter,
            )
        )
    return tuple(handler_ids)
