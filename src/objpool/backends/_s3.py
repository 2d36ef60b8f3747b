"""S3-compatible backend using s3fs — pools are buckets, objects are keys."""

from __future__ import annotations

import errno
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from objpool._backend import Backend
from objpool._capabilities import Capability, CapabilitySet
from objpool._models import ObjectStat, PoolStat
from objpool._status import BUFFER_TOO_SMALL, DEFAULT_MAX_OBJECT_SIZE, END_OF_SEQUENCE, SNAP_HEAD

if TYPE_CHECKING:
    from collections.abc import Iterator

    from objpool._types import ReadableBuffer, WritableBuffer

log = logging.getLogger(__name__)

_S3_CAPABILITIES = CapabilitySet.full().without(Capability.POOL_SNAPSHOTS, Capability.MANAGED_SNAPSHOTS)


class _S3Ioctx:
    __slots__ = ("bucket", "read_snap")

    def __init__(self, bucket: str) -> None:
        self.bucket = bucket
        self.read_snap = SNAP_HEAD


class _S3Cursor:
    __slots__ = ("keys",)

    def __init__(self, keys: list[str]) -> None:
        self.keys: Iterator[str] = iter(keys)


class S3Backend(Backend):
    """S3-compatible object storage backend using s3fs.

    Each pool is a bucket. S3 has no partial writes, so byte-range writes
    and truncation rewrite the whole object. Snapshots are not supported.

    :param endpoint_url: Custom endpoint URL (e.g. for MinIO or Ceph RGW).
    :param key: AWS access key ID.
    :param secret: AWS secret access key.
    :param region_name: AWS region name.
    :param client_options: Additional options passed to s3fs.
    :param max_object_size: Largest object size in bytes; larger writes get ``-EFBIG``.
    """

    def __init__(
        self,
        *,
        endpoint_url: str | None = None,
        key: str | None = None,
        secret: str | None = None,
        region_name: str | None = None,
        client_options: dict[str, Any] | None = None,
        max_object_size: int = DEFAULT_MAX_OBJECT_SIZE,
    ) -> None:
        self._endpoint_url = endpoint_url
        self._key = key
        self._secret = secret
        self._region_name = region_name
        self._client_options = client_options or {}
        self._max_object_size = max_object_size
        self._fs_instance: Any = None

    @property
    def name(self) -> str:
        return "s3"

    @property
    def capabilities(self) -> CapabilitySet:
        return _S3_CAPABILITIES

    # region: lazy filesystem

    @property
    def _fs(self) -> Any:
        if self._fs_instance is None:
            import s3fs  # type: ignore[import-untyped]

            opts: dict[str, Any] = dict(self._client_options)
            if self._endpoint_url is not None:
                opts["endpoint_url"] = self._endpoint_url
            if self._key is not None:
                opts["key"] = self._key
            if self._secret is not None:
                opts["secret"] = self._secret
            if self._region_name is not None:
                client_kwargs: dict[str, Any] = opts.setdefault("client_kwargs", {})
                client_kwargs["region_name"] = self._region_name
            opts.setdefault("anon", False)
            self._fs_instance = s3fs.S3FileSystem(**opts)
        return self._fs_instance

    # endregion

    # region: error mapping

    def _status_for(self, exc: Exception, oid: str = "") -> int:
        """Map an s3fs/botocore exception to a negative status.

        Unrecognized exceptions are logged and reported as ``-EIO``.
        """
        if isinstance(exc, FileNotFoundError):
            return -errno.ENOENT
        if isinstance(exc, PermissionError):  # pragma: no cover -- moto doesn't raise PermissionError
            return -errno.EACCES
        msg = str(exc).lower()
        if "404" in msg or "nosuchkey" in msg or "nosuchbucket" in msg or "not found" in msg:
            return -errno.ENOENT
        if "403" in msg or "accessdenied" in msg or "access denied" in msg:
            return -errno.EACCES
        if any(kw in msg for kw in ("endpoint", "connect", "timeout", "dns", "name or service")):
            return -errno.ENOTCONN
        log.warning("Unexpected S3 error for %r: %s", oid, exc)
        return -errno.EIO

    # endregion

    # region: helpers

    @staticmethod
    def _key_path(io: _S3Ioctx, oid: str) -> str:
        return f"{io.bucket}/{oid}"

    @staticmethod
    def _bad_key(oid: str) -> bool:
        """Ids s3fs would normalize into a different key, or into a directory."""
        return oid.startswith("/") or oid.endswith("/") or "//" in oid

    def _load(self, path: str) -> bytearray:
        """Current object content, empty if the object does not exist."""
        try:
            return bytearray(self._fs.cat_file(path))
        except FileNotFoundError:
            return bytearray()

    @staticmethod
    def _modified_at(info: dict[str, Any]) -> datetime:
        modified = info.get("LastModified", info.get("last_modified"))
        if isinstance(modified, str):
            modified = datetime.fromisoformat(modified)
        if modified is None:
            return datetime.now(tz=timezone.utc)
        if modified.tzinfo is None:
            modified = modified.replace(tzinfo=timezone.utc)
        return modified

    def _file_infos(self, bucket: str) -> dict[str, dict[str, Any]]:
        self._fs.invalidate_cache(bucket)
        found: dict[str, dict[str, Any]] = self._fs.find(bucket, detail=True)
        return {key: info for key, info in found.items() if info.get("type") == "file"}

    # endregion

    # region: context lifecycle

    def ioctx_create(self, pool: str) -> tuple[int, _S3Ioctx | None]:
        try:
            if not self._fs.exists(pool):
                return -errno.ENOENT, None
        except Exception as exc:  # noqa: BLE001
            return self._status_for(exc), None
        return 0, _S3Ioctx(pool)

    def ioctx_destroy(self, io: _S3Ioctx) -> None:
        pass

    # endregion

    # region: object I/O

    def write(self, io: _S3Ioctx, oid: str, data: ReadableBuffer, offset: int) -> int:
        if offset < 0:
            return -errno.EINVAL
        if self._bad_key(oid):
            return -errno.EINVAL
        if offset + len(data) > self._max_object_size:
            return -errno.EFBIG
        path = self._key_path(io, oid)
        try:
            content = self._load(path)
            end = offset + len(data)
            if len(data) and end > len(content):
                content.extend(bytes(end - len(content)))
            content[offset:end] = data
            self._fs.pipe_file(path, bytes(content))
        except Exception as exc:  # noqa: BLE001
            return self._status_for(exc, oid)
        return 0

    def write_full(self, io: _S3Ioctx, oid: str, data: ReadableBuffer) -> int:
        if self._bad_key(oid):
            return -errno.EINVAL
        if len(data) > self._max_object_size:
            return -errno.EFBIG
        try:
            self._fs.pipe_file(self._key_path(io, oid), bytes(data))
        except Exception as exc:  # noqa: BLE001
            return self._status_for(exc, oid)
        return 0

    def append(self, io: _S3Ioctx, oid: str, data: ReadableBuffer) -> int:
        if self._bad_key(oid):
            return -errno.EINVAL
        path = self._key_path(io, oid)
        try:
            content = self._load(path)
            if len(content) + len(data) > self._max_object_size:
                return -errno.EFBIG
            content.extend(data)
            self._fs.pipe_file(path, bytes(content))
        except Exception as exc:  # noqa: BLE001
            return self._status_for(exc, oid)
        return 0

    def read(self, io: _S3Ioctx, oid: str, buf: WritableBuffer, offset: int) -> int:
        if io.read_snap != SNAP_HEAD:
            return -errno.EOPNOTSUPP
        if offset < 0:
            return -errno.EINVAL
        if self._bad_key(oid):
            return -errno.EINVAL
        path = self._key_path(io, oid)
        try:
            info = self._fs.info(path)
            if info.get("type") != "file":
                return -errno.ENOENT
            size = int(info.get("size", info.get("Size", 0)) or 0)
            if offset >= size:
                return 0
            end = min(offset + len(buf), size)
            chunk = self._fs.cat_file(path, start=offset, end=end)
        except Exception as exc:  # noqa: BLE001
            return self._status_for(exc, oid)
        buf[: len(chunk)] = chunk
        return len(chunk)

    def remove(self, io: _S3Ioctx, oid: str) -> int:
        if self._bad_key(oid):
            return -errno.EINVAL
        path = self._key_path(io, oid)
        try:
            if not self._fs.isfile(path):
                return -errno.ENOENT
            self._fs.rm_file(path)
        except Exception as exc:  # noqa: BLE001
            return self._status_for(exc, oid)
        return 0

    def trunc(self, io: _S3Ioctx, oid: str, size: int) -> int:
        if size < 0:
            return -errno.EINVAL
        if self._bad_key(oid):
            return -errno.EINVAL
        if size > self._max_object_size:
            return -errno.EFBIG
        path = self._key_path(io, oid)
        try:
            content = self._load(path)
            if size < len(content):
                del content[size:]
            else:
                content.extend(bytes(size - len(content)))
            self._fs.pipe_file(path, bytes(content))
        except Exception as exc:  # noqa: BLE001
            return self._status_for(exc, oid)
        return 0

    def stat(self, io: _S3Ioctx, oid: str) -> tuple[int, ObjectStat | None]:
        if self._bad_key(oid):
            return -errno.EINVAL, None
        try:
            info = self._fs.info(self._key_path(io, oid))
        except Exception as exc:  # noqa: BLE001
            return self._status_for(exc, oid), None
        if info.get("type") != "file":
            return -errno.ENOENT, None
        size = int(info.get("size", info.get("Size", 0)) or 0)
        return 0, ObjectStat(size=size, modified_at=self._modified_at(info))

    # endregion

    # region: pool queries

    def pool_stat(self, io: _S3Ioctx) -> tuple[int, PoolStat | None]:
        try:
            files = self._file_infos(io.bucket)
        except Exception as exc:  # noqa: BLE001
            return self._status_for(exc), None
        num_bytes = sum(int(info.get("size", 0) or 0) for info in files.values())
        return 0, PoolStat(
            num_bytes=num_bytes,
            num_kb=(num_bytes + 1023) // 1024,
            num_objects=len(files),
            num_object_copies=len(files),
        )

    def get_pool_name(self, io: _S3Ioctx, buf: bytearray) -> int:
        encoded = io.bucket.encode("utf-8")
        if len(encoded) > len(buf):
            return BUFFER_TOO_SMALL
        buf[: len(encoded)] = encoded
        return len(encoded)

    def objects_list_open(self, io: _S3Ioctx) -> tuple[int, _S3Cursor | None]:
        prefix = f"{io.bucket}/"
        try:
            files = self._file_infos(io.bucket)
        except Exception as exc:  # noqa: BLE001
            return self._status_for(exc), None
        return 0, _S3Cursor([key[len(prefix) :] if key.startswith(prefix) else key for key in files])

    def objects_list_next(self, cursor: _S3Cursor) -> tuple[int, str | None]:
        key = next(cursor.keys, None)
        if key is None:
            return END_OF_SEQUENCE, None
        return 0, key

    def objects_list_close(self, cursor: _S3Cursor) -> None:
        cursor.keys = iter(())

    # endregion

    # region: snapshots (unsupported)

    def snap_create(self, io: _S3Ioctx, name: str) -> int:
        return -errno.EOPNOTSUPP

    def snap_remove(self, io: _S3Ioctx, name: str) -> int:
        return -errno.EOPNOTSUPP

    def snap_rollback(self, io: _S3Ioctx, oid: str, name: str) -> int:
        return -errno.EOPNOTSUPP

    def snap_lookup(self, io: _S3Ioctx, name: str) -> tuple[int, int]:
        return -errno.EOPNOTSUPP, 0

    def selfmanaged_snap_create(self, io: _S3Ioctx) -> tuple[int, int]:
        return -errno.EOPNOTSUPP, 0

    def selfmanaged_snap_remove(self, io: _S3Ioctx, snap_id: int) -> int:
        return -errno.EOPNOTSUPP

    def selfmanaged_snap_rollback(self, io: _S3Ioctx, oid: str, snap_id: int) -> int:
        return -errno.EOPNOTSUPP

    def snap_set_read(self, io: _S3Ioctx, snap_id: int) -> None:
        io.read_snap = snap_id

    # endregion

    # region: lifecycle

    def close(self) -> None:
        if self._fs_instance is not None:
            self._fs_instance.clear_instance_cache()
            self._fs_instance = None

    # endregion
