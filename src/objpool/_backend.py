"""Backend abstract base class — the driver contract."""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from objpool._capabilities import CapabilitySet
    from objpool._models import ObjectStat, PoolStat
    from objpool._types import IoctxHandle, ListCursor, ReadableBuffer, WritableBuffer


class Backend(abc.ABC):
    """Abstract base class for all storage drivers.

    A backend instance stands for one cluster connection and hands out
    opaque per-pool handles from :meth:`ioctx_create`. Every primitive
    reports a librados-style status: ``>= 0`` is success (a positive value
    may carry a count or length), a negative value is ``-errno``.

    Backends never raise for storage failures; driver-native exceptions
    must be mapped to statuses. Buffers passed in are only valid for the
    duration of the call.
    """

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Unique identifier for this backend type (e.g. ``'memory'``, ``'s3'``)."""

    @property
    @abc.abstractmethod
    def capabilities(self) -> CapabilitySet:
        """Declared capabilities of this backend."""

    # region: context lifecycle
    @abc.abstractmethod
    def ioctx_create(self, pool: str) -> tuple[int, IoctxHandle]:
        """Open a handle bound to ``pool``.

        :returns: ``(status, handle)``; the handle is ``None`` on failure.
        """

    @abc.abstractmethod
    def ioctx_destroy(self, io: IoctxHandle) -> None:
        """Release a handle. Reclamation may be deferred."""

    # endregion

    # region: object I/O
    @abc.abstractmethod
    def write(self, io: IoctxHandle, oid: str, data: ReadableBuffer, offset: int) -> int:
        """Write ``data`` at ``offset``, creating the object if needed."""

    @abc.abstractmethod
    def write_full(self, io: IoctxHandle, oid: str, data: ReadableBuffer) -> int:
        """Replace the whole content of the object."""

    @abc.abstractmethod
    def append(self, io: IoctxHandle, oid: str, data: ReadableBuffer) -> int:
        """Append ``data`` to the end of the object."""

    @abc.abstractmethod
    def read(self, io: IoctxHandle, oid: str, buf: WritableBuffer, offset: int) -> int:
        """Read up to ``len(buf)`` bytes into ``buf``.

        :returns: Number of bytes read, or a negative status.
        """

    @abc.abstractmethod
    def remove(self, io: IoctxHandle, oid: str) -> int:
        """Delete the object."""

    @abc.abstractmethod
    def trunc(self, io: IoctxHandle, oid: str, size: int) -> int:
        """Resize the object to exactly ``size`` bytes, zero-filling growth."""

    @abc.abstractmethod
    def stat(self, io: IoctxHandle, oid: str) -> tuple[int, ObjectStat | None]:
        """Return ``(status, stat)`` for the object."""

    # endregion

    # region: pool queries
    @abc.abstractmethod
    def pool_stat(self, io: IoctxHandle) -> tuple[int, PoolStat | None]:
        """Return ``(status, stats)`` for the handle's pool."""

    @abc.abstractmethod
    def get_pool_name(self, io: IoctxHandle, buf: bytearray) -> int:
        """Copy the UTF-8 pool name into ``buf``.

        :returns: Name length, ``BUFFER_TOO_SMALL`` if ``buf`` cannot hold
            it, or another negative status.
        """

    @abc.abstractmethod
    def objects_list_open(self, io: IoctxHandle) -> tuple[int, ListCursor]:
        """Open a listing cursor over every object in the pool."""

    @abc.abstractmethod
    def objects_list_next(self, cursor: ListCursor) -> tuple[int, str | None]:
        """Return the next object name, or ``END_OF_SEQUENCE`` when exhausted."""

    @abc.abstractmethod
    def objects_list_close(self, cursor: ListCursor) -> None:
        """Release a listing cursor."""

    # endregion

    # region: snapshots
    @abc.abstractmethod
    def snap_create(self, io: IoctxHandle, name: str) -> int:
        """Create a pool snapshot called ``name``."""

    @abc.abstractmethod
    def snap_remove(self, io: IoctxHandle, name: str) -> int:
        """Remove the pool snapshot called ``name``."""

    @abc.abstractmethod
    def snap_rollback(self, io: IoctxHandle, oid: str, name: str) -> int:
        """Restore ``oid`` to its state in pool snapshot ``name``."""

    @abc.abstractmethod
    def snap_lookup(self, io: IoctxHandle, name: str) -> tuple[int, int]:
        """Resolve a pool snapshot name to ``(status, snap_id)``."""

    @abc.abstractmethod
    def selfmanaged_snap_create(self, io: IoctxHandle) -> tuple[int, int]:
        """Allocate a self-managed snapshot; returns ``(status, snap_id)``."""

    @abc.abstractmethod
    def selfmanaged_snap_remove(self, io: IoctxHandle, snap_id: int) -> int:
        """Release a self-managed snapshot id."""

    @abc.abstractmethod
    def selfmanaged_snap_rollback(self, io: IoctxHandle, oid: str, snap_id: int) -> int:
        """Restore ``oid`` to its state in self-managed snapshot ``snap_id``."""

    @abc.abstractmethod
    def snap_set_read(self, io: IoctxHandle, snap_id: int) -> None:
        """Make subsequent reads on ``io`` observe ``snap_id`` (``SNAP_HEAD`` for live data)."""

    # endregion

    def close(self) -> None:  # noqa: B027
        """Release the cluster connection. Default is a no-op."""
