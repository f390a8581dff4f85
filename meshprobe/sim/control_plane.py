"""
In-memory configuration store with delayed propagation.

Stands in for a real control plane: ``apply`` accepts a document right away
and pushes it to subscribed data-plane listeners only after
``propagation_delay`` seconds, so a probe that runs immediately after
``apply`` will usually observe the old state.
"""

from __future__ import annotations

import asyncio
import inspect
from collections import defaultdict
from collections.abc import Awaitable, Callable

from loguru import logger

from meshprobe.core.collaborators import new_scope_name
from meshprobe.datastructures.type_aliases import (
    ConfigDocument,
    DurationSeconds,
    ScopeName,
)

type DocumentListener = Callable[[ScopeName | None, ConfigDocument], Awaitable[None] | None]
type DocumentValidator = Callable[[ConfigDocument], None]


class InMemoryConfigStore:
    """``ConfigStore`` binding that propagates documents asynchronously."""

    def __init__(
        self,
        propagation_delay: DurationSeconds = 0.0,
        *,
        validator: DocumentValidator | None = None,
    ) -> None:
        self.propagation_delay = propagation_delay
        self.validator = validator
        self.scopes: set[ScopeName] = set()
        self._documents: dict[ScopeName | None, list[ConfigDocument]] = defaultdict(list)
        self._listeners: list[DocumentListener] = []
        self._pending: set[asyncio.Task[None]] = set()

    def create_scope(self, prefix: str) -> ScopeName:
        scope = new_scope_name(prefix)
        self.scopes.add(scope)
        logger.info(f"Created scope {scope}")
        return scope

    def subscribe(self, listener: DocumentListener) -> None:
        self._listeners.append(listener)

    def documents(self, scope: ScopeName | None) -> tuple[ConfigDocument, ...]:
        return tuple(self._documents.get(scope, ()))

    async def apply(self, scope: ScopeName | None, document: ConfigDocument) -> None:
        if scope is not None and scope not in self.scopes:
            raise KeyError(f"unknown scope {scope!r}")
        if self.validator is not None:
            self.validator(document)

        self._documents[scope].append(document)
        task = asyncio.create_task(self._propagate(scope, document))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        logger.debug(
            f"Accepted document for scope {scope or '<cluster>'}; "
            f"propagating in {self.propagation_delay:.3f}s"
        )

    async def _propagate(self, scope: ScopeName | None, document: ConfigDocument) -> None:
        await asyncio.sleep(self.propagation_delay)
        for listener in list(self._listeners):
            try:
                result = listener(scope, document)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Listener rejected document for scope {scope or '<cluster>'}: {e}")

    async def settle(self) -> None:
        """Wait until every accepted document has been propagated."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def close(self) -> None:
        for task in list(self._pending):
            task.cancel()
        await asyncio.gather(*self._pending, return_exceptions=True)
        self._pending.clear()
