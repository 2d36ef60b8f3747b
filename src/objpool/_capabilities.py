"""Capability enum and CapabilitySet."""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING

from objpool._errors import CapabilityNotSupported

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


class Capability(enum.Enum):
    """Driver primitive families an :class:`~objpool.IOContext` may call."""

    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    TRUNCATE = "truncate"
    STAT = "stat"
    LIST = "list"
    POOL_STATS = "pool_stats"
    POOL_SNAPSHOTS = "pool_snapshots"
    MANAGED_SNAPSHOTS = "managed_snapshots"


class CapabilitySet:
    """Frozen set of capabilities declared by a backend.

    Checked by ``IOContext`` before any driver call, so an unsupported
    operation fails with ``-EOPNOTSUPP`` without touching the backend.

    :param capabilities: The supported capabilities.
    """

    __slots__ = ("_members",)
    _members: frozenset[Capability]

    def __init__(self, capabilities: Iterable[Capability]) -> None:
        object.__setattr__(self, "_members", frozenset(capabilities))

    @classmethod
    def full(cls) -> CapabilitySet:
        """Every capability; what a complete RADOS-like driver declares."""
        return cls(Capability)

    def without(self, *caps: Capability) -> CapabilitySet:
        """Return a copy with ``caps`` removed."""
        return CapabilitySet(self._members.difference(caps))

    def supports(self, cap: Capability) -> bool:
        return cap in self._members

    def require(self, cap: Capability, *, backend: str = "", oid: str | None = None) -> None:
        """Raise if ``cap`` is not declared.

        :raises CapabilityNotSupported: If the capability is missing.
        """
        if cap in self._members:
            return
        raise CapabilityNotSupported(
            f"Backend does not support {cap.value.replace('_', ' ')}",
            oid=oid,
            backend=backend or None,
            capability=cap.value,
        )

    def __contains__(self, cap: object) -> bool:
        return cap in self._members

    def __iter__(self) -> Iterator[Capability]:
        return iter(self._members)

    def __len__(self) -> int:
        return len(self._members)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CapabilitySet):
            return NotImplemented
        return self._members == other._members

    def __hash__(self) -> int:
        return hash(self._members)

    def __repr__(self) -> str:
        return f"CapabilitySet({sorted(c.value for c in self._members)!r})"

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("CapabilitySet is immutable")

    def __delattr__(self, name: str) -> None:
        raise AttributeError("CapabilitySet is immutable")
