"""Native Ceph backend — a thin ctypes binding over librados."""

from __future__ import annotations

import ctypes
import logging
from ctypes import byref, c_char, c_char_p, c_long, c_size_t, c_uint, c_uint64, c_void_p
from ctypes.util import find_library
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from objpool._backend import Backend
from objpool._capabilities import CapabilitySet
from objpool._errors import BackendUnavailable
from objpool._models import ObjectStat, PoolStat

if TYPE_CHECKING:
    from objpool._types import ReadableBuffer, WritableBuffer

log = logging.getLogger(__name__)

_ALL_CAPABILITIES = CapabilitySet.full()

_DEFAULT_LIBRARY = "librados.so.2"


class rados_pool_stat_t(ctypes.Structure):  # noqa: N801
    """``struct rados_pool_stat_t`` from ``librados.h``."""

    _fields_ = [
        ("num_bytes", c_uint64),
        ("num_kb", c_uint64),
        ("num_objects", c_uint64),
        ("num_object_clones", c_uint64),
        ("num_object_copies", c_uint64),
        ("num_objects_missing_on_primary", c_uint64),
        ("num_objects_unfound", c_uint64),
        ("num_objects_degraded", c_uint64),
        ("num_rd", c_uint64),
        ("num_rd_kb", c_uint64),
        ("num_wr", c_uint64),
        ("num_wr_kb", c_uint64),
    ]


def _cstr(value: str) -> bytes:
    return value.encode("utf-8")


def _wrap_buffer(buf: WritableBuffer) -> Any:
    """Expose a writable Python buffer as a ``char[]`` without copying."""
    return (c_char * len(buf)).from_buffer(buf)


class LibradosBackend(Backend):
    """Ceph RADOS backend over the native ``librados`` client.

    The library is loaded and the cluster connected on the first
    :meth:`ioctx_create`; construction does no I/O.

    :param conffile: Path to ``ceph.conf``; ``""`` reads the default locations.
    :param rados_id: Client id, e.g. ``"admin"`` for ``client.admin``.
    :param cluster_name: Cluster name (default ``"ceph"``).
    :param conf: Extra configuration options set before connecting.
    :param library_path: Explicit path to ``librados``.
    :param library: An already loaded library handle (mainly for tests).
    :param connect_attempts: Attempts made by ``rados_connect`` before giving up.
    """

    def __init__(
        self,
        *,
        conffile: str | None = "",
        rados_id: str | None = None,
        cluster_name: str = "ceph",
        conf: dict[str, str] | None = None,
        library_path: str | None = None,
        library: Any = None,
        connect_attempts: int = 3,
    ) -> None:
        self._conffile = conffile
        self._rados_id = rados_id
        self._cluster_name = cluster_name
        self._conf = conf or {}
        self._library_path = library_path
        self._lib_instance = library
        self._connect_attempts = connect_attempts
        self._cluster: c_void_p | None = None

    @property
    def name(self) -> str:
        return "librados"

    @property
    def capabilities(self) -> CapabilitySet:
        return _ALL_CAPABILITIES

    # region: lazy connection

    @property
    def _lib(self) -> Any:
        if self._lib_instance is None:
            path = self._library_path or find_library("rados") or _DEFAULT_LIBRARY
            try:
                self._lib_instance = ctypes.CDLL(path)
            except OSError as exc:
                raise BackendUnavailable(f"Cannot load librados from {path!r}: {exc}", backend=self.name) from exc
        return self._lib_instance

    def _connected_cluster(self) -> c_void_p:
        if self._cluster is None:
            self._cluster = self._connect()
        return self._cluster

    def _connect(self) -> c_void_p:
        """Create, configure and connect a cluster handle, retrying ``rados_connect``."""
        from tenacity import (
            before_sleep_log,
            retry,
            retry_if_exception_type,
            stop_after_attempt,
            wait_exponential,
        )

        lib = self._lib
        cluster = c_void_p()
        client = f"client.{self._rados_id}" if self._rados_id else "client.admin"
        ret = lib.rados_create2(byref(cluster), _cstr(self._cluster_name), _cstr(client), c_uint64(0))
        if ret != 0:
            raise BackendUnavailable(f"rados_create2 failed with status {ret}", backend=self.name)
        try:
            if self._conffile is not None:
                path = _cstr(self._conffile) if self._conffile else None
                ret = lib.rados_conf_read_file(cluster, path)
                if ret != 0:
                    raise BackendUnavailable(f"Cannot read Ceph config (status {ret})", backend=self.name)
            for option, value in self._conf.items():
                ret = lib.rados_conf_set(cluster, _cstr(option), _cstr(str(value)))
                if ret != 0:
                    raise BackendUnavailable(f"Cannot set {option!r} (status {ret})", backend=self.name)

            @retry(
                retry=retry_if_exception_type(BackendUnavailable),
                stop=stop_after_attempt(self._connect_attempts),
                wait=wait_exponential(multiplier=1, min=2, max=10),
                before_sleep=before_sleep_log(log, logging.WARNING),  # type: ignore[arg-type,unused-ignore]
                reraise=True,
            )
            def _do_connect() -> None:
                log.info("Connecting to Ceph cluster %r as %s", self._cluster_name, client)
                status = lib.rados_connect(cluster)
                if status != 0:
                    raise BackendUnavailable(f"rados_connect failed with status {status}", backend=self.name)

            _do_connect()
        except BaseException:
            lib.rados_shutdown(cluster)
            raise
        log.info("Ceph cluster connection established.")
        return cluster

    # endregion

    # region: context lifecycle

    def ioctx_create(self, pool: str) -> tuple[int, c_void_p | None]:
        cluster = self._connected_cluster()
        io = c_void_p()
        ret = self._lib.rados_ioctx_create(cluster, _cstr(pool), byref(io))
        if ret < 0:
            return ret, None
        return 0, io

    def ioctx_destroy(self, io: c_void_p) -> None:
        self._lib.rados_ioctx_destroy(io)

    # endregion

    # region: object I/O

    def write(self, io: c_void_p, oid: str, data: ReadableBuffer, offset: int) -> int:
        payload = bytes(data)
        return int(self._lib.rados_write(io, _cstr(oid), c_char_p(payload), c_size_t(len(payload)), c_uint64(offset)))

    def write_full(self, io: c_void_p, oid: str, data: ReadableBuffer) -> int:
        payload = bytes(data)
        return int(self._lib.rados_write_full(io, _cstr(oid), c_char_p(payload), c_size_t(len(payload))))

    def append(self, io: c_void_p, oid: str, data: ReadableBuffer) -> int:
        payload = bytes(data)
        return int(self._lib.rados_append(io, _cstr(oid), c_char_p(payload), c_size_t(len(payload))))

    def read(self, io: c_void_p, oid: str, buf: WritableBuffer, offset: int) -> int:
        if len(buf) == 0:
            return 0
        target = _wrap_buffer(buf)
        return int(self._lib.rados_read(io, _cstr(oid), target, c_size_t(len(buf)), c_uint64(offset)))

    def remove(self, io: c_void_p, oid: str) -> int:
        return int(self._lib.rados_remove(io, _cstr(oid)))

    def trunc(self, io: c_void_p, oid: str, size: int) -> int:
        return int(self._lib.rados_trunc(io, _cstr(oid), c_uint64(size)))

    def stat(self, io: c_void_p, oid: str) -> tuple[int, ObjectStat | None]:
        size = c_uint64()
        mtime = c_long()
        ret = self._lib.rados_stat(io, _cstr(oid), byref(size), byref(mtime))
        if ret < 0:
            return ret, None
        return 0, ObjectStat(size=size.value, modified_at=datetime.fromtimestamp(mtime.value, tz=timezone.utc))

    # endregion

    # region: pool queries

    def pool_stat(self, io: c_void_p) -> tuple[int, PoolStat | None]:
        raw = rados_pool_stat_t()
        ret = self._lib.rados_ioctx_pool_stat(io, byref(raw))
        if ret < 0:
            return ret, None
        return 0, PoolStat(**{field: getattr(raw, field) for field, _ in rados_pool_stat_t._fields_})

    def get_pool_name(self, io: c_void_p, buf: bytearray) -> int:
        return int(self._lib.rados_ioctx_get_pool_name(io, _wrap_buffer(buf), c_uint(len(buf))))

    def objects_list_open(self, io: c_void_p) -> tuple[int, c_void_p | None]:
        cursor = c_void_p()
        ret = self._lib.rados_nobjects_list_open(io, byref(cursor))
        if ret < 0:
            return ret, None
        return 0, cursor

    def objects_list_next(self, cursor: c_void_p) -> tuple[int, str | None]:
        entry = c_char_p()
        ret = self._lib.rados_nobjects_list_next(cursor, byref(entry), None, None)
        if ret < 0:
            return ret, None
        return 0, (entry.value or b"").decode("utf-8")

    def objects_list_close(self, cursor: c_void_p) -> None:
        self._lib.rados_nobjects_list_close(cursor)

    # endregion

    # region: pool snapshots

    def snap_create(self, io: c_void_p, name: str) -> int:
        return int(self._lib.rados_ioctx_snap_create(io, _cstr(name)))

    def snap_remove(self, io: c_void_p, name: str) -> int:
        return int(self._lib.rados_ioctx_snap_remove(io, _cstr(name)))

    def snap_rollback(self, io: c_void_p, oid: str, name: str) -> int:
        return int(self._lib.rados_ioctx_snap_rollback(io, _cstr(oid), _cstr(name)))

    def snap_lookup(self, io: c_void_p, name: str) -> tuple[int, int]:
        snap_id = c_uint64()
        ret = self._lib.rados_ioctx_snap_lookup(io, _cstr(name), byref(snap_id))
        return int(ret), snap_id.value

    # endregion

    # region: self-managed snapshots

    def selfmanaged_snap_create(self, io: c_void_p) -> tuple[int, int]:
        snap_id = c_uint64()
        ret = self._lib.rados_ioctx_selfmanaged_snap_create(io, byref(snap_id))
        return int(ret), snap_id.value

    def selfmanaged_snap_remove(self, io: c_void_p, snap_id: int) -> int:
        return int(self._lib.rados_ioctx_selfmanaged_snap_remove(io, c_uint64(snap_id)))

    def selfmanaged_snap_rollback(self, io: c_void_p, oid: str, snap_id: int) -> int:
        return int(self._lib.rados_ioctx_selfmanaged_snap_rollback(io, _cstr(oid), c_uint64(snap_id)))

    def snap_set_read(self, io: c_void_p, snap_id: int) -> None:
        self._lib.rados_ioctx_snap_set_read(io, c_uint64(snap_id))

    # endregion

    # region: lifecycle

    def close(self) -> None:
        if self._cluster is not None:
            self._lib.rados_shutdown(self._cluster)
            self._cluster = None

    # endregion
