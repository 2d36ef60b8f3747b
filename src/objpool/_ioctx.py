"""IOContext — pool-scoped object I/O over a backend."""

from __future__ import annotations

import errno
import logging
import weakref
from typing import TYPE_CHECKING, Callable, TypeVar

from objpool._capabilities import Capability
from objpool._errors import ContextDestroyed, StorageError
from objpool._models import ManagedSnapshot, PoolSnapshot
from objpool._status import BUFFER_TOO_SMALL, END_OF_SEQUENCE, SNAP_HEAD

if TYPE_CHECKING:
    from types import TracebackType

    from objpool._backend import Backend
    from objpool._models import ObjectStat, PoolStat
    from objpool._types import IoctxHandle, ListCursor, ReadableBuffer, WritableBuffer

log = logging.getLogger(__name__)

_POOL_NAME_INITIAL_BUFFER = 128
_POOL_NAME_MAX_BUFFER = 64 * 1024

ObjectVisitor = Callable[[str], "bool | None"]
_T = TypeVar("_T")


def _check_name(value: str, what: str) -> None:
    if not value or "\0" in value:
        raise StorageError(-errno.EINVAL, f"Invalid {what}: {value!r}")


class ObjectIterator:
    """Lazy iterator over the object names of a pool.

    Owns a backend listing cursor, released exactly once: when the listing
    is exhausted, when ``next`` fails, on :meth:`close`, on leaving a
    ``with`` block, when its :class:`IOContext` is destroyed, or on garbage
    collection.
    """

    def __init__(self, backend: Backend, cursor: ListCursor) -> None:
        self._backend = backend
        self._cursor = cursor
        self._closed = False

    def __iter__(self) -> ObjectIterator:
        return self

    def __next__(self) -> str:
        if self._closed:
            raise StopIteration
        ret, oid = self._backend.objects_list_next(self._cursor)
        if ret == END_OF_SEQUENCE:
            self.close()
            raise StopIteration
        if ret < 0:
            self.close()
            raise StorageError(ret, "Failed to list objects", backend=self._backend.name)
        if oid is None:
            self.close()
            raise StorageError(-errno.EIO, "Listing returned no object name", backend=self._backend.name)
        return oid

    def close(self) -> None:
        """Release the listing cursor. Safe to call more than once."""
        if not self._closed:
            self._closed = True
            self._backend.objects_list_close(self._cursor)

    def __enter__(self) -> ObjectIterator:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def __del__(self) -> None:
        self.close()


class IOContext:
    """A handle through which object operations on one pool are issued.

    Every method is a single blocking call into the backend; a negative
    status is raised as :class:`StorageError` carrying that status. The
    context is single-owner: :meth:`set_read_snapshot` is a context-wide
    mode switch, and :meth:`destroy` must not race other calls.

    :param backend: The backend to delegate I/O to.
    :param handle: Backend handle obtained from ``backend.ioctx_create``.
    :param pool: Pool name the handle was opened on (used in ``repr``).
    """

    def __init__(self, backend: Backend, handle: IoctxHandle, pool: str = "") -> None:
        self._backend = backend
        self._handle = handle
        self._pool = pool
        self._destroyed = False
        self._iterators: weakref.WeakSet[ObjectIterator] = weakref.WeakSet()

    @classmethod
    def open(cls, backend: Backend, pool: str) -> IOContext:
        """Open a context on ``pool``.

        :raises StorageError: If the backend cannot open the pool.
        """
        ret, handle = backend.ioctx_create(pool)
        if ret < 0:
            raise StorageError(ret, f"Failed to open pool {pool!r}", backend=backend.name)
        log.debug("Opened I/O context on pool %r (%s)", pool, backend.name)
        return cls(backend, handle, pool)

    def __repr__(self) -> str:
        state = "destroyed" if self._destroyed else "open"
        return f"IOContext(backend={self._backend.name!r}, pool={self._pool!r}, {state})"

    @property
    def destroyed(self) -> bool:
        """``True`` once :meth:`destroy` has been called."""
        return self._destroyed

    def supports(self, capability: Capability) -> bool:
        """Check whether the backend supports a capability."""
        return self._backend.capabilities.supports(capability)

    # region: lifecycle
    def _io(self) -> IoctxHandle:
        if self._destroyed:
            raise ContextDestroyed(backend=self._backend.name)
        return self._handle

    def _require(self, cap: Capability, oid: str | None = None) -> None:
        self._backend.capabilities.require(cap, backend=self._backend.name, oid=oid)

    def _check(self, ret: int, message: str, oid: str | None = None) -> None:
        if ret < 0:
            raise StorageError(ret, message, oid=oid, backend=self._backend.name)

    def _result(self, value: _T | None, message: str, oid: str | None = None) -> _T:
        if value is None:
            raise StorageError(-errno.EIO, message, oid=oid, backend=self._backend.name)
        return value

    def destroy(self) -> None:
        """Release the context.

        The backend may reclaim resources lazily. The context must not be
        used afterwards.

        :raises ContextDestroyed: If the context was already destroyed.
        """
        io = self._io()
        for iterator in list(self._iterators):
            iterator.close()
        self._destroyed = True
        self._handle = None
        self._backend.ioctx_destroy(io)
        log.debug("Destroyed I/O context on pool %r", self._pool)

    def close(self) -> None:
        """Destroy the context unless it already is."""
        if not self._destroyed:
            self.destroy()

    def __enter__(self) -> IOContext:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    # endregion

    # region: object I/O
    def write(self, oid: str, data: ReadableBuffer, offset: int = 0) -> None:
        """Write ``data`` at byte ``offset`` without truncating the object.

        Empty ``data`` is allowed.

        :raises StorageError: On any non-zero backend status.
        """
        io = self._io()
        _check_name(oid, "object id")
        self._require(Capability.WRITE, oid)
        ret = self._backend.write(io, oid, data, offset)
        if ret != 0:
            raise StorageError(ret, "Failed to write object", oid=oid, backend=self._backend.name)

    def write_full(self, oid: str, data: ReadableBuffer) -> None:
        """Replace the whole object with ``data``."""
        io = self._io()
        _check_name(oid, "object id")
        self._require(Capability.WRITE, oid)
        self._check(self._backend.write_full(io, oid, data), "Failed to write object", oid)

    def append(self, oid: str, data: ReadableBuffer) -> None:
        """Append ``data`` to the object."""
        io = self._io()
        _check_name(oid, "object id")
        self._require(Capability.WRITE, oid)
        self._check(self._backend.append(io, oid, data), "Failed to append to object", oid)

    def read_into(self, oid: str, buffer: WritableBuffer, offset: int = 0) -> int:
        """Read up to ``len(buffer)`` bytes from ``offset`` into ``buffer``.

        A zero-length buffer returns ``0`` without contacting the backend.

        :returns: Number of bytes read; short at the end of the object.
        :raises StorageError: If the backend reports a negative status.
        """
        io = self._io()
        if len(buffer) == 0:
            return 0
        _check_name(oid, "object id")
        self._require(Capability.READ, oid)
        ret = self._backend.read(io, oid, buffer, offset)
        self._check(ret, "Failed to read object", oid)
        return ret

    def read(self, oid: str, length: int = 8192, offset: int = 0) -> bytes:
        """Read up to ``length`` bytes from ``offset`` and return them."""
        buf = bytearray(length)
        count = self.read_into(oid, buf, offset)
        return bytes(buf[:count])

    def delete(self, oid: str) -> None:
        """Remove the object.

        :raises StorageError: If the object does not exist or removal fails.
        """
        io = self._io()
        _check_name(oid, "object id")
        self._require(Capability.DELETE, oid)
        self._check(self._backend.remove(io, oid), "Failed to delete object", oid)

    def truncate(self, oid: str, size: int) -> None:
        """Resize the object to exactly ``size`` bytes.

        Growing zero-fills the new tail, shrinking discards the excess.
        """
        io = self._io()
        _check_name(oid, "object id")
        self._require(Capability.TRUNCATE, oid)
        self._check(self._backend.trunc(io, oid, size), "Failed to truncate object", oid)

    def stat(self, oid: str) -> ObjectStat:
        """Return the object's size and modification time."""
        io = self._io()
        _check_name(oid, "object id")
        self._require(Capability.STAT, oid)
        ret, info = self._backend.stat(io, oid)
        self._check(ret, "Failed to stat object", oid)
        return self._result(info, "stat returned no result", oid)

    # endregion

    # region: pool queries
    def get_pool_stats(self) -> PoolStat:
        """Return usage counters for the pool."""
        io = self._io()
        self._require(Capability.POOL_STATS)
        ret, stats = self._backend.pool_stat(io)
        self._check(ret, "Failed to get pool stats")
        return self._result(stats, "pool stat returned no result")

    def get_pool_name(self) -> str:
        """Return the name of the pool this context is bound to.

        The name buffer starts small and doubles while the backend reports
        it is too small, up to a fixed ceiling.

        :raises StorageError: On failure, or ``-ERANGE`` past the ceiling.
        """
        io = self._io()
        size = _POOL_NAME_INITIAL_BUFFER
        while size <= _POOL_NAME_MAX_BUFFER:
            buf = bytearray(size)
            ret = self._backend.get_pool_name(io, buf)
            if ret == BUFFER_TOO_SMALL:
                size *= 2
                log.debug("Pool name does not fit in %d bytes, retrying", len(buf))
                continue
            self._check(ret, "Failed to get pool name")
            return buf[:ret].decode("utf-8")
        raise StorageError(
            BUFFER_TOO_SMALL,
            f"Pool name exceeds {_POOL_NAME_MAX_BUFFER} bytes",
            backend=self._backend.name,
        )

    def iter_objects(self) -> ObjectIterator:
        """Return a lazy iterator over every object name in the pool.

        Order is backend-defined. Breaking out early is allowed; use the
        iterator as a context manager to release the cursor promptly.

        :raises StorageError: If the listing cursor cannot be opened.
        """
        io = self._io()
        self._require(Capability.LIST)
        ret, cursor = self._backend.objects_list_open(io)
        self._check(ret, "Failed to open object listing")
        iterator = ObjectIterator(self._backend, cursor)
        self._iterators.add(iterator)
        return iterator

    def list_objects(self, visit: ObjectVisitor) -> None:
        """Call ``visit`` with each object name in the pool.

        ``visit`` runs before the next name is fetched. Returning ``False``
        stops the listing; exceptions it raises propagate.
        """
        with self.iter_objects() as names:
            for oid in names:
                if visit(oid) is False:
                    break

    # endregion

    # region: pool snapshots
    def create_pool_snapshot(self, name: str) -> None:
        """Create a pool-wide snapshot called ``name``."""
        io = self._io()
        _check_name(name, "snapshot name")
        self._require(Capability.POOL_SNAPSHOTS)
        self._check(self._backend.snap_create(io, name), f"Failed to create pool snapshot {name!r}")

    def remove_pool_snapshot(self, name: str) -> None:
        """Remove the pool-wide snapshot called ``name``."""
        io = self._io()
        _check_name(name, "snapshot name")
        self._require(Capability.POOL_SNAPSHOTS)
        self._check(self._backend.snap_remove(io, name), f"Failed to remove pool snapshot {name!r}")

    def rollback_object(self, oid: str, name: str) -> None:
        """Restore ``oid`` to its state in pool snapshot ``name``."""
        io = self._io()
        _check_name(oid, "object id")
        _check_name(name, "snapshot name")
        self._require(Capability.POOL_SNAPSHOTS, oid)
        self._check(self._backend.snap_rollback(io, oid, name), f"Failed to roll back to {name!r}", oid)

    def lookup_pool_snapshot(self, name: str) -> PoolSnapshot:
        """Resolve a pool snapshot name, e.g. for :meth:`set_read_snapshot`."""
        io = self._io()
        _check_name(name, "snapshot name")
        self._require(Capability.POOL_SNAPSHOTS)
        ret, snap_id = self._backend.snap_lookup(io, name)
        self._check(ret, f"Failed to look up pool snapshot {name!r}")
        return PoolSnapshot(name=name, snap_id=snap_id)

    # endregion

    # region: self-managed snapshots
    def create_managed_snapshot(self) -> ManagedSnapshot:
        """Allocate a self-managed snapshot id.

        The caller must eventually release it with :meth:`remove_managed_snapshot`.
        """
        io = self._io()
        self._require(Capability.MANAGED_SNAPSHOTS)
        ret, snap_id = self._backend.selfmanaged_snap_create(io)
        self._check(ret, "Failed to create self-managed snapshot")
        return ManagedSnapshot(snap_id)

    def remove_managed_snapshot(self, snap: ManagedSnapshot) -> None:
        """Release a self-managed snapshot id."""
        io = self._io()
        self._require(Capability.MANAGED_SNAPSHOTS)
        self._check(
            self._backend.selfmanaged_snap_remove(io, snap.snap_id),
            f"Failed to remove self-managed snapshot {snap.snap_id}",
        )

    def rollback_managed_object(self, oid: str, snap: ManagedSnapshot) -> None:
        """Restore ``oid`` to its state in a self-managed snapshot."""
        io = self._io()
        _check_name(oid, "object id")
        self._require(Capability.MANAGED_SNAPSHOTS, oid)
        self._check(
            self._backend.selfmanaged_snap_rollback(io, oid, snap.snap_id),
            f"Failed to roll back to self-managed snapshot {snap.snap_id}",
            oid,
        )

    def set_read_snapshot(self, snap: ManagedSnapshot | PoolSnapshot | None) -> None:
        """Make subsequent reads on this context observe ``snap``.

        ``None`` switches back to the live state. Writes are unaffected.
        Not thread-safe with concurrent reads on the same context.
        """
        io = self._io()
        if isinstance(snap, PoolSnapshot):
            self._require(Capability.POOL_SNAPSHOTS)
        elif snap is not None:
            self._require(Capability.MANAGED_SNAPSHOTS)
        snap_id = SNAP_HEAD if snap is None else snap.snap_id
        self._backend.snap_set_read(io, snap_id)

    # endregion
