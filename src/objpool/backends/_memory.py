"""In-memory backend — stdlib-only simulated cluster."""

from __future__ import annotations

import errno
import threading
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from objpool._backend import Backend
from objpool._capabilities import CapabilitySet
from objpool._models import ObjectStat, PoolStat
from objpool._status import BUFFER_TOO_SMALL, DEFAULT_MAX_OBJECT_SIZE, END_OF_SEQUENCE, SNAP_HEAD

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from objpool._types import ReadableBuffer, WritableBuffer

_ALL_CAPABILITIES = CapabilitySet.full()

_POOL_SNAPS = "pool"
_SELFMANAGED_SNAPS = "selfmanaged"


def _kb(n: int) -> int:
    return (n + 1023) // 1024


class _Object:
    __slots__ = ("data", "modified_at")

    def __init__(self, data: bytes = b"") -> None:
        self.data = bytearray(data)
        self.modified_at = datetime.now(tz=timezone.utc)

    def touch(self) -> None:
        self.modified_at = datetime.now(tz=timezone.utc)


class _Pool:
    """Objects, snapshots and counters of one simulated pool."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.objects: dict[str, _Object] = {}
        self.snap_seq = 0
        # Ceph pools are either in pool-snapshot or self-managed mode, never both.
        self.snap_mode: str | None = None
        self.snap_names: dict[str, int] = {}
        self.snap_states: dict[int, dict[str, tuple[bytes, datetime]]] = {}
        self.num_rd = 0
        self.num_rd_kb = 0
        self.num_wr = 0
        self.num_wr_kb = 0

    def capture(self) -> int:
        self.snap_seq += 1
        self.snap_states[self.snap_seq] = {
            oid: (bytes(obj.data), obj.modified_at) for oid, obj in self.objects.items()
        }
        return self.snap_seq

    def rollback(self, oid: str, snap_id: int) -> None:
        saved = self.snap_states[snap_id].get(oid)
        if saved is None:
            self.objects.pop(oid, None)
            return
        self.objects[oid] = _Object(saved[0])

    def record_write(self, nbytes: int) -> None:
        self.num_wr += 1
        self.num_wr_kb += _kb(nbytes)


class _MemoryIoctx:
    __slots__ = ("pool", "read_snap")

    def __init__(self, pool: _Pool) -> None:
        self.pool = pool
        self.read_snap = SNAP_HEAD


class _MemoryCursor:
    __slots__ = ("names",)

    def __init__(self, names: Iterable[str]) -> None:
        self.names: Iterator[str] = iter(names)


class MemoryBackend(Backend):
    """Simulated storage cluster held in process memory.

    Objects, pool snapshots and self-managed snapshots follow the Ceph
    semantics closely enough to exercise :class:`~objpool.IOContext`.
    All calls are serialized with one lock.

    :param pools: Names of pools to create up front.
    :param replicas: Replica count reported through ``num_object_copies``.
    :param max_object_size: Largest object size in bytes; larger writes get ``-EFBIG``.
    """

    def __init__(
        self,
        pools: Iterable[str] = (),
        *,
        replicas: int = 1,
        max_object_size: int = DEFAULT_MAX_OBJECT_SIZE,
    ) -> None:
        if replicas < 1:
            raise ValueError("replicas must be >= 1")
        if max_object_size < 0:
            raise ValueError("max_object_size must be >= 0")
        self._replicas = replicas
        self._max_object_size = max_object_size
        self._lock = threading.Lock()
        self._pools: dict[str, _Pool] = {}
        for pool in pools:
            self.create_pool(pool)

    @property
    def name(self) -> str:
        return "memory"

    @property
    def capabilities(self) -> CapabilitySet:
        return _ALL_CAPABILITIES

    def create_pool(self, name: str) -> None:
        """Create an empty pool.

        :raises ValueError: If the name is empty or the pool already exists.
        """
        if not name:
            raise ValueError("pool name must be non-empty")
        with self._lock:
            if name in self._pools:
                raise ValueError(f"Pool already exists: {name}")
            self._pools[name] = _Pool(name)

    # region: context lifecycle
    def ioctx_create(self, pool: str) -> tuple[int, _MemoryIoctx | None]:
        with self._lock:
            found = self._pools.get(pool)
            if found is None:
                return -errno.ENOENT, None
            return 0, _MemoryIoctx(found)

    def ioctx_destroy(self, io: _MemoryIoctx) -> None:
        pass

    # endregion

    # region: object I/O
    def _view(self, io: _MemoryIoctx) -> dict[str, bytes | bytearray] | None:
        """Object contents visible to reads on ``io``; ``None`` for an unknown snapshot."""
        pool = io.pool
        if io.read_snap == SNAP_HEAD:
            return {oid: obj.data for oid, obj in pool.objects.items()}
        state = pool.snap_states.get(io.read_snap)
        if state is None:
            return None
        return {oid: data for oid, (data, _) in state.items()}

    def write(self, io: _MemoryIoctx, oid: str, data: ReadableBuffer, offset: int) -> int:
        if offset < 0:
            return -errno.EINVAL
        if offset + len(data) > self._max_object_size:
            return -errno.EFBIG
        with self._lock:
            pool = io.pool
            obj = pool.objects.setdefault(oid, _Object())
            end = offset + len(data)
            if len(data) and end > len(obj.data):
                obj.data.extend(bytes(end - len(obj.data)))
            obj.data[offset:end] = data
            obj.touch()
            pool.record_write(len(data))
            return 0

    def write_full(self, io: _MemoryIoctx, oid: str, data: ReadableBuffer) -> int:
        if len(data) > self._max_object_size:
            return -errno.EFBIG
        with self._lock:
            io.pool.objects[oid] = _Object(bytes(data))
            io.pool.record_write(len(data))
            return 0

    def append(self, io: _MemoryIoctx, oid: str, data: ReadableBuffer) -> int:
        with self._lock:
            obj = io.pool.objects.get(oid)
            if (len(obj.data) if obj is not None else 0) + len(data) > self._max_object_size:
                return -errno.EFBIG
            if obj is None:
                obj = io.pool.objects[oid] = _Object()
            obj.data.extend(data)
            obj.touch()
            io.pool.record_write(len(data))
            return 0

    def read(self, io: _MemoryIoctx, oid: str, buf: WritableBuffer, offset: int) -> int:
        if offset < 0:
            return -errno.EINVAL
        with self._lock:
            view = self._view(io)
            if view is None or oid not in view:
                return -errno.ENOENT
            chunk = view[oid][offset : offset + len(buf)]
            buf[: len(chunk)] = chunk
            io.pool.num_rd += 1
            io.pool.num_rd_kb += _kb(len(chunk))
            return len(chunk)

    def remove(self, io: _MemoryIoctx, oid: str) -> int:
        with self._lock:
            if io.pool.objects.pop(oid, None) is None:
                return -errno.ENOENT
            return 0

    def trunc(self, io: _MemoryIoctx, oid: str, size: int) -> int:
        if size < 0:
            return -errno.EINVAL
        if size > self._max_object_size:
            return -errno.EFBIG
        with self._lock:
            obj = io.pool.objects.setdefault(oid, _Object())
            if size < len(obj.data):
                del obj.data[size:]
            else:
                obj.data.extend(bytes(size - len(obj.data)))
            obj.touch()
            io.pool.record_write(0)
            return 0

    def stat(self, io: _MemoryIoctx, oid: str) -> tuple[int, ObjectStat | None]:
        with self._lock:
            pool = io.pool
            if io.read_snap == SNAP_HEAD:
                obj = pool.objects.get(oid)
                if obj is None:
                    return -errno.ENOENT, None
                return 0, ObjectStat(size=len(obj.data), modified_at=obj.modified_at)
            saved = pool.snap_states.get(io.read_snap, {}).get(oid)
            if saved is None:
                return -errno.ENOENT, None
            return 0, ObjectStat(size=len(saved[0]), modified_at=saved[1])

    # endregion

    # region: pool queries
    def pool_stat(self, io: _MemoryIoctx) -> tuple[int, PoolStat | None]:
        with self._lock:
            pool = io.pool
            num_objects = len(pool.objects)
            num_bytes = sum(len(obj.data) for obj in pool.objects.values())
            return 0, PoolStat(
                num_bytes=num_bytes,
                num_kb=_kb(num_bytes),
                num_objects=num_objects,
                num_object_clones=sum(len(state) for state in pool.snap_states.values()),
                num_object_copies=num_objects * self._replicas,
                num_rd=pool.num_rd,
                num_rd_kb=pool.num_rd_kb,
                num_wr=pool.num_wr,
                num_wr_kb=pool.num_wr_kb,
            )

    def get_pool_name(self, io: _MemoryIoctx, buf: bytearray) -> int:
        encoded = io.pool.name.encode("utf-8")
        if len(encoded) > len(buf):
            return BUFFER_TOO_SMALL
        buf[: len(encoded)] = encoded
        return len(encoded)

    def objects_list_open(self, io: _MemoryIoctx) -> tuple[int, _MemoryCursor]:
        with self._lock:
            return 0, _MemoryCursor(list(io.pool.objects))

    def objects_list_next(self, cursor: _MemoryCursor) -> tuple[int, str | None]:
        oid = next(cursor.names, None)
        if oid is None:
            return END_OF_SEQUENCE, None
        return 0, oid

    def objects_list_close(self, cursor: _MemoryCursor) -> None:
        cursor.names = iter(())

    # endregion

    # region: pool snapshots
    def snap_create(self, io: _MemoryIoctx, name: str) -> int:
        with self._lock:
            pool = io.pool
            if pool.snap_mode == _SELFMANAGED_SNAPS:
                return -errno.EINVAL
            if name in pool.snap_names:
                return -errno.EEXIST
            pool.snap_mode = _POOL_SNAPS
            pool.snap_names[name] = pool.capture()
            return 0

    def snap_remove(self, io: _MemoryIoctx, name: str) -> int:
        with self._lock:
            pool = io.pool
            snap_id = pool.snap_names.pop(name, None)
            if snap_id is None:
                return -errno.ENOENT
            del pool.snap_states[snap_id]
            return 0

    def snap_rollback(self, io: _MemoryIoctx, oid: str, name: str) -> int:
        with self._lock:
            snap_id = io.pool.snap_names.get(name)
            if snap_id is None:
                return -errno.ENOENT
            io.pool.rollback(oid, snap_id)
            return 0

    def snap_lookup(self, io: _MemoryIoctx, name: str) -> tuple[int, int]:
        with self._lock:
            snap_id = io.pool.snap_names.get(name)
            if snap_id is None:
                return -errno.ENOENT, 0
            return 0, snap_id

    # endregion

    # region: self-managed snapshots
    def selfmanaged_snap_create(self, io: _MemoryIoctx) -> tuple[int, int]:
        with self._lock:
            pool = io.pool
            if pool.snap_mode == _POOL_SNAPS:
                return -errno.EINVAL, 0
            pool.snap_mode = _SELFMANAGED_SNAPS
            return 0, pool.capture()

    def _is_managed(self, pool: _Pool, snap_id: int) -> bool:
        return pool.snap_mode == _SELFMANAGED_SNAPS and snap_id in pool.snap_states

    def selfmanaged_snap_remove(self, io: _MemoryIoctx, snap_id: int) -> int:
        with self._lock:
            if not self._is_managed(io.pool, snap_id):
                return -errno.ENOENT
            del io.pool.snap_states[snap_id]
            return 0

    def selfmanaged_snap_rollback(self, io: _MemoryIoctx, oid: str, snap_id: int) -> int:
        with self._lock:
            if not self._is_managed(io.pool, snap_id):
                return -errno.ENOENT
            io.pool.rollback(oid, snap_id)
            return 0

    def snap_set_read(self, io: _MemoryIoctx, snap_id: int) -> None:
        io.read_snap = snap_id

    # endregion
