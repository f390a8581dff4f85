"""
Interfaces of the collaborators the harness drives.

The harness never provisions anything itself. Setup stages call a
``ComponentFactory``; tests push documents through a ``ConfigStore`` and then
observe the result through an ``Endpoint`` (see ``meshprobe.core.transport``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import ulid
from loguru import logger

from meshprobe.datastructures.type_aliases import ConfigDocument, Handle, ScopeName

CONFIG_SUFFIXES = (".json", ".yaml", ".yml")


@runtime_checkable
class ConfigStore(Protocol):
    """Accepts declarative configuration for an isolation scope.

    Propagation to the data plane is asynchronous: a successful ``apply`` only
    means the store accepted the document. ``scope=None`` targets the
    cluster-wide scope.
    """

    async def apply(self, scope: ScopeName | None, document: ConfigDocument) -> None: ...


@runtime_checkable
class ComponentFactory(Protocol):
    """Provisions one component and returns an opaque handle for later stages."""

    async def new(self, config: Any) -> Handle: ...


def new_scope_name(prefix: str) -> ScopeName:
    """Unique, DNS-label-safe scope name such as ``gateway-7k2m9x4q``."""
    suffix = str(ulid.new()).lower()[-8:]
    return f"{prefix.strip('-').lower()}-{suffix}"


async def apply_config_dir(
    store: ConfigStore, scope: ScopeName | None, directory: str | Path
) -> list[Path]:
    """Apply every config document in ``directory`` in file-name order."""
    root = Path(directory)
    if not root.is_dir():
        raise NotADirectoryError(f"config directory not found: {root}")

    applied: list[Path] = []
    for path in sorted(root.iterdir()):
        if not path.is_file() or path.suffix not in CONFIG_SUFFIXES:
            continue
        await store.apply(scope, path.read_text(encoding="utf-8"))
        applied.append(path)

    logger.info(f"Applied {len(applied)} document(s) from {root} to scope {scope or '<cluster>'}")
    return applied
