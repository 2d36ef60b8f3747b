"""Immutable value objects returned by I/O contexts."""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime


@dataclasses.dataclass(frozen=True)
class PoolStat:
    """Point-in-time usage counters of a pool.

    :param num_bytes: Space used in bytes.
    :param num_kb: Space used in KiB.
    :param num_objects: Number of objects in the pool.
    :param num_object_clones: Number of object clones held by snapshots.
    :param num_object_copies: ``num_objects * replicas``.
    :param num_objects_missing_on_primary: Objects missing on their primary.
    :param num_objects_unfound: Objects found on no storage daemon.
    :param num_objects_degraded: Objects replicated fewer times than required.
    :param num_rd: Read operations served.
    :param num_rd_kb: KiB read.
    :param num_wr: Write operations served.
    :param num_wr_kb: KiB written.
    """

    num_bytes: int = 0
    num_kb: int = 0
    num_objects: int = 0
    num_object_clones: int = 0
    num_object_copies: int = 0
    num_objects_missing_on_primary: int = 0
    num_objects_unfound: int = 0
    num_objects_degraded: int = 0
    num_rd: int = 0
    num_rd_kb: int = 0
    num_wr: int = 0
    num_wr_kb: int = 0


@dataclasses.dataclass(frozen=True)
class ObjectStat:
    """Size and modification time of a single object.

    :param size: Object size in bytes.
    :param modified_at: Last modification time (UTC).
    """

    size: int
    modified_at: datetime


@dataclasses.dataclass(frozen=True)
class ManagedSnapshot:
    """Opaque id of a self-managed snapshot, allocated by the cluster.

    The caller owns the id and is responsible for removing it.
    """

    snap_id: int

    def __repr__(self) -> str:
        return f"ManagedSnapshot({self.snap_id})"


@dataclasses.dataclass(frozen=True)
class PoolSnapshot:
    """A named pool-wide snapshot resolved to its cluster-assigned id."""

    name: str
    snap_id: int
