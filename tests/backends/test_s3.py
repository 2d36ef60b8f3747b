"""S3 backend tests -- bucket-backed pools against a moto server.

Requires: moto[server,s3], s3fs, boto3 (test dependencies).
All tests are skipped if dependencies are not installed.
"""

from __future__ import annotations

import errno
from typing import TYPE_CHECKING

import pytest

# Guard: skip entire module if dependencies are missing
pytest.importorskip("moto", reason="moto not installed")
pytest.importorskip("s3fs", reason="s3fs not installed")
pytest.importorskip("boto3", reason="boto3 not installed")

from objpool._capabilities import Capability  # noqa: E402
from objpool._errors import CapabilityNotSupported, StorageError  # noqa: E402
from objpool._ioctx import IOContext  # noqa: E402
from objpool._models import ManagedSnapshot  # noqa: E402
from objpool.backends._s3 import S3Backend  # noqa: E402

if TYPE_CHECKING:
    from collections.abc import Iterator

REGION = "us-east-1"


@pytest.fixture()
def s3_backend(moto_server: str) -> Iterator[S3Backend]:
    backend = S3Backend(
        key="testing",
        secret="testing",
        region_name=REGION,
        endpoint_url=moto_server,
    )
    yield backend
    backend.close()


@pytest.fixture()
def bucket(s3_bucket: str) -> str:
    return s3_bucket


class TestConstruction:
    def test_name(self) -> None:
        assert S3Backend().name == "s3"

    def test_construction_is_lazy(self) -> None:
        backend = S3Backend(endpoint_url="http://127.0.0.1:1")
        assert backend._fs_instance is None

    def test_close_resets_filesystem(self, s3_backend: S3Backend, bucket: str) -> None:
        with IOContext.open(s3_backend, bucket) as ctx:
            ctx.write("obj", b"x")
        s3_backend.close()
        assert s3_backend._fs_instance is None

    def test_close_without_use(self) -> None:
        S3Backend().close()


class TestCapabilities:
    def test_snapshots_unsupported(self, s3_backend: S3Backend) -> None:
        caps = s3_backend.capabilities
        assert caps.supports(Capability.READ)
        assert caps.supports(Capability.LIST)
        assert not caps.supports(Capability.POOL_SNAPSHOTS)
        assert not caps.supports(Capability.MANAGED_SNAPSHOTS)

    def test_snapshot_operations_raise(self, s3_backend: S3Backend, bucket: str) -> None:
        with IOContext.open(s3_backend, bucket) as ctx:
            with pytest.raises(CapabilityNotSupported) as exc_info:
                ctx.create_managed_snapshot()
            assert exc_info.value.capability == Capability.MANAGED_SNAPSHOTS.value
            with pytest.raises(CapabilityNotSupported):
                ctx.create_pool_snapshot("s1")
            with pytest.raises(CapabilityNotSupported):
                ctx.set_read_snapshot(ManagedSnapshot(1))


class TestPools:
    def test_missing_bucket(self, s3_backend: S3Backend) -> None:
        with pytest.raises(StorageError) as exc_info:
            IOContext.open(s3_backend, "no-such-bucket-objpool")
        assert exc_info.value.code == -errno.ENOENT

    def test_pool_name_is_bucket(self, s3_backend: S3Backend, bucket: str) -> None:
        with IOContext.open(s3_backend, bucket) as ctx:
            assert ctx.get_pool_name() == bucket

    def test_objects_visible_through_boto3(self, s3_backend: S3Backend, bucket: str, moto_server: str) -> None:
        import boto3

        with IOContext.open(s3_backend, bucket) as ctx:
            ctx.write("dir/obj", b"payload")
        client = boto3.client(
            "s3",
            endpoint_url=moto_server,
            aws_access_key_id="testing",
            aws_secret_access_key="testing",
            region_name=REGION,
        )
        body = client.get_object(Bucket=bucket, Key="dir/obj")["Body"].read()
        assert body == b"payload"

    def test_nested_keys_listed_by_full_name(self, s3_backend: S3Backend, bucket: str) -> None:
        with IOContext.open(s3_backend, bucket) as ctx:
            ctx.write("a/b/c", b"1")
            ctx.write("top", b"1")
            assert sorted(ctx.iter_objects()) == ["a/b/c", "top"]


class TestStatusMapping:
    @pytest.mark.parametrize(
        ("exc", "code"),
        [
            (FileNotFoundError("gone"), -errno.ENOENT),
            (PermissionError("nope"), -errno.EACCES),
            (OSError("An error occurred (NoSuchKey)"), -errno.ENOENT),
            (OSError("An error occurred (AccessDenied)"), -errno.EACCES),
            (OSError("Could not connect to the endpoint URL"), -errno.ENOTCONN),
            (ValueError("something else"), -errno.EIO),
        ],
    )
    def test_exception_to_status(self, exc: Exception, code: int) -> None:
        assert S3Backend()._status_for(exc, "obj") == code


class TestObjectKeys:
    @pytest.mark.parametrize("oid", ["dir/", "/lead", "a//b"])
    def test_ambiguous_keys_rejected(self, s3_backend: S3Backend, bucket: str, oid: str) -> None:
        with IOContext.open(s3_backend, bucket) as ctx:
            with pytest.raises(StorageError) as exc_info:
                ctx.write(oid, b"x")
            assert exc_info.value.code == -errno.EINVAL
            with pytest.raises(StorageError) as stat_info:
                ctx.stat(oid)
            assert stat_info.value.code == -errno.EINVAL
            with pytest.raises(StorageError) as read_info:
                ctx.read(oid, 1)
            assert read_info.value.code == -errno.EINVAL
            assert list(ctx.iter_objects()) == []

    def test_nested_key_round_trips(self, s3_backend: S3Backend, bucket: str) -> None:
        with IOContext.open(s3_backend, bucket) as ctx:
            ctx.write("a/b", b"nested")
            assert ctx.read("a/b") == b"nested"
            assert list(ctx.iter_objects()) == ["a/b"]

    @pytest.mark.parametrize(("oid", "bad"), [("a/b", False), ("plain", False), ("x/", True), ("/x", True), ("a//b", True)])
    def test_bad_key(self, oid: str, bad: bool) -> None:
        assert S3Backend._bad_key(oid) is bad


class TestObjectSizeLimit:
    def test_configured_limit(self, moto_server: str, bucket: str) -> None:
        backend = S3Backend(
            key="testing",
            secret="testing",
            region_name=REGION,
            endpoint_url=moto_server,
            max_object_size=4,
        )
        try:
            with IOContext.open(backend, bucket) as ctx:
                ctx.write("obj", b"1234")
                with pytest.raises(StorageError) as exc_info:
                    ctx.append("obj", b"5")
                assert exc_info.value.code == -errno.EFBIG
                assert ctx.read("obj") == b"1234"
        finally:
            backend.close()
