"""Immutable environment produced by setup stages and shared by tests."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from meshprobe.datastructures.type_aliases import Handle, HandleName, HandleUpdates


class EnvironmentKind(StrEnum):
    """Kind of environment the harness runs against."""

    NATIVE = "native"
    KUBE = "kube"


@dataclass(frozen=True, slots=True, eq=False)
class Environment:
    """Named handles accumulated by setup stages.

    Instances are never mutated; ``extend`` returns a new environment, so a
    test can only ever see the state that setup finished with. Handles are
    arbitrary objects, so environments compare and hash by identity.
    """

    kind: EnvironmentKind = EnvironmentKind.NATIVE
    handles: Mapping[HandleName, Handle] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "handles", MappingProxyType(dict(self.handles)))

    def __getitem__(self, name: HandleName) -> Handle:
        try:
            return self.handles[name]
        except KeyError:
            available = ", ".join(sorted(self.handles)) or "none"
            raise KeyError(f"no handle named {name!r} (available: {available})") from None

    def __contains__(self, name: object) -> bool:
        return name in self.handles

    def __iter__(self) -> Iterator[HandleName]:
        return iter(self.handles)

    def __len__(self) -> int:
        return len(self.handles)

    def get(self, name: HandleName, default: Any = None) -> Handle:
        return self.handles.get(name, default)

    def require[T](self, name: HandleName, expected: type[T]) -> T:
        """Fetch a handle and check its type."""
        handle = self[name]
        if not isinstance(handle, expected):
            raise TypeError(
                f"handle {name!r} is {type(handle).__name__}, expected {expected.__name__}"
            )
        return handle

    def extend(self, updates: HandleUpdates) -> Environment:
        """Return a new environment with ``updates`` added.

        Handles are written once; a later stage may not replace a handle that
        an earlier stage produced.
        """
        duplicates = sorted(set(updates) & set(self.handles))
        if duplicates:
            raise ValueError(f"handles already defined: {', '.join(duplicates)}")
        return Environment(kind=self.kind, handles={**self.handles, **updates})
