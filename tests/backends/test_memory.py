"""Memory backend tests — snapshot semantics and counters of the simulated cluster."""

from __future__ import annotations

import errno
from typing import TYPE_CHECKING

import pytest

from objpool._capabilities import Capability
from objpool._errors import StorageError
from objpool._ioctx import IOContext
from objpool.backends._memory import MemoryBackend

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture()
def backend() -> MemoryBackend:
    return MemoryBackend(pools=["data", "other"], replicas=3)


@pytest.fixture()
def ioctx(backend: MemoryBackend) -> Iterator[IOContext]:
    with IOContext.open(backend, "data") as ctx:
        yield ctx


class TestConstruction:
    def test_name_and_capabilities(self, backend: MemoryBackend) -> None:
        assert backend.name == "memory"
        for cap in Capability:
            assert backend.capabilities.supports(cap)

    def test_invalid_replicas(self) -> None:
        with pytest.raises(ValueError, match="replicas"):
            MemoryBackend(replicas=0)

    def test_create_pool(self, backend: MemoryBackend) -> None:
        backend.create_pool("late")
        with IOContext.open(backend, "late") as ctx:
            assert ctx.get_pool_name() == "late"

    def test_invalid_max_object_size(self) -> None:
        with pytest.raises(ValueError, match="max_object_size"):
            MemoryBackend(max_object_size=-1)

    def test_duplicate_pool(self, backend: MemoryBackend) -> None:
        with pytest.raises(ValueError, match="exists"):
            backend.create_pool("data")

    def test_pools_are_isolated(self, backend: MemoryBackend, ioctx: IOContext) -> None:
        ioctx.write("obj", b"x")
        with IOContext.open(backend, "other") as other:
            assert list(other.iter_objects()) == []


class TestObjectSemantics:
    def test_zero_length_write_creates_empty_object(self, ioctx: IOContext) -> None:
        ioctx.write("obj", b"", 10)
        assert ioctx.stat("obj").size == 0

    def test_truncate_creates_missing_object(self, ioctx: IOContext) -> None:
        ioctx.truncate("obj", 4)
        assert ioctx.read("obj") == bytes(4)

    def test_negative_offset_rejected(self, ioctx: IOContext) -> None:
        with pytest.raises(StorageError) as exc_info:
            ioctx.write("obj", b"x", -1)
        assert exc_info.value.code == -errno.EINVAL

    def test_stats_counters(self, ioctx: IOContext) -> None:
        ioctx.write("a", b"x" * 2048)
        ioctx.read("a", 10)
        stats = ioctx.get_pool_stats()
        assert stats.num_wr == 1
        assert stats.num_wr_kb == 2
        assert stats.num_rd == 1
        assert stats.num_rd_kb == 1
        assert stats.num_object_copies == 3


class TestManagedSnapshots:
    def test_ids_are_distinct(self, ioctx: IOContext) -> None:
        first = ioctx.create_managed_snapshot()
        second = ioctx.create_managed_snapshot()
        assert first != second

    def test_rollback_restores_content(self, ioctx: IOContext) -> None:
        ioctx.write("obj", b"v1")
        snap = ioctx.create_managed_snapshot()
        ioctx.write("obj", b"v2-longer")
        ioctx.rollback_managed_object("obj", snap)
        assert ioctx.read("obj") == b"v1"

    def test_rollback_of_object_created_later_removes_it(self, ioctx: IOContext) -> None:
        snap = ioctx.create_managed_snapshot()
        ioctx.write("new", b"data")
        ioctx.rollback_managed_object("new", snap)
        with pytest.raises(StorageError):
            ioctx.stat("new")

    def test_removed_snapshot_cannot_be_used(self, ioctx: IOContext) -> None:
        ioctx.write("obj", b"v1")
        snap = ioctx.create_managed_snapshot()
        ioctx.remove_managed_snapshot(snap)
        with pytest.raises(StorageError) as exc_info:
            ioctx.rollback_managed_object("obj", snap)
        assert exc_info.value.code == -errno.ENOENT

    def test_read_snapshot_affects_reads_only(self, ioctx: IOContext) -> None:
        ioctx.write("obj", b"old")
        snap = ioctx.create_managed_snapshot()
        ioctx.set_read_snapshot(snap)
        ioctx.write("obj", b"new")
        assert ioctx.read("obj") == b"old"
        ioctx.set_read_snapshot(None)
        assert ioctx.read("obj") == b"new"

    def test_read_snapshot_is_per_context(self, backend: MemoryBackend, ioctx: IOContext) -> None:
        ioctx.write("obj", b"old")
        snap = ioctx.create_managed_snapshot()
        ioctx.write("obj", b"new")
        with IOContext.open(backend, "data") as other:
            other.set_read_snapshot(snap)
            assert other.read("obj") == b"old"
            assert ioctx.read("obj") == b"new"

    def test_read_from_unknown_snapshot(self, ioctx: IOContext) -> None:
        from objpool._models import ManagedSnapshot

        ioctx.write("obj", b"x")
        ioctx.set_read_snapshot(ManagedSnapshot(42))
        with pytest.raises(StorageError) as exc_info:
            ioctx.read("obj")
        assert exc_info.value.code == -errno.ENOENT

    def test_clones_counted(self, ioctx: IOContext) -> None:
        ioctx.write("a", b"1")
        ioctx.write("b", b"2")
        ioctx.create_managed_snapshot()
        assert ioctx.get_pool_stats().num_object_clones == 2

    def test_cannot_mix_with_pool_snapshots(self, ioctx: IOContext) -> None:
        ioctx.create_managed_snapshot()
        with pytest.raises(StorageError) as exc_info:
            ioctx.create_pool_snapshot("s1")
        assert exc_info.value.code == -errno.EINVAL


class TestPoolSnapshots:
    def test_rollback_restores_content(self, ioctx: IOContext) -> None:
        ioctx.write("obj", b"v1")
        ioctx.create_pool_snapshot("s1")
        ioctx.write("obj", b"v2")
        ioctx.rollback_object("obj", "s1")
        assert ioctx.read("obj") == b"v1"

    def test_duplicate_name(self, ioctx: IOContext) -> None:
        ioctx.create_pool_snapshot("s1")
        with pytest.raises(StorageError) as exc_info:
            ioctx.create_pool_snapshot("s1")
        assert exc_info.value.code == -errno.EEXIST

    def test_remove_unknown(self, ioctx: IOContext) -> None:
        with pytest.raises(StorageError) as exc_info:
            ioctx.remove_pool_snapshot("ghost")
        assert exc_info.value.code == -errno.ENOENT

    def test_created_removed_then_rollback_fails(self, ioctx: IOContext) -> None:
        ioctx.write("obj", b"v1")
        ioctx.create_pool_snapshot("s1")
        ioctx.remove_pool_snapshot("s1")
        with pytest.raises(StorageError) as exc_info:
            ioctx.rollback_object("obj", "s1")
        assert exc_info.value.code == -errno.ENOENT

    def test_lookup_and_read(self, ioctx: IOContext) -> None:
        ioctx.write("obj", b"v1")
        ioctx.create_pool_snapshot("s1")
        ioctx.write("obj", b"v2")
        snap = ioctx.lookup_pool_snapshot("s1")
        assert snap.name == "s1"
        ioctx.set_read_snapshot(snap)
        assert ioctx.read("obj") == b"v1"
        assert ioctx.stat("obj").size == 2

    def test_lookup_unknown(self, ioctx: IOContext) -> None:
        with pytest.raises(StorageError) as exc_info:
            ioctx.lookup_pool_snapshot("ghost")
        assert exc_info.value.code == -errno.ENOENT

    def test_cannot_mix_with_managed_snapshots(self, ioctx: IOContext) -> None:
        ioctx.create_pool_snapshot("s1")
        with pytest.raises(StorageError) as exc_info:
            ioctx.create_managed_snapshot()
        assert exc_info.value.code == -errno.EINVAL

    def test_invalid_snapshot_name(self, ioctx: IOContext) -> None:
        with pytest.raises(StorageError) as exc_info:
            ioctx.create_pool_snapshot("")
        assert exc_info.value.code == -errno.EINVAL


class TestObjectSizeLimit:
    @pytest.fixture()
    def small(self) -> Iterator[IOContext]:
        with IOContext.open(MemoryBackend(pools=["data"], max_object_size=8), "data") as ctx:
            yield ctx

    def test_write_up_to_limit(self, small: IOContext) -> None:
        small.write("obj", b"12345678")
        assert small.stat("obj").size == 8

    @pytest.mark.parametrize(
        "op",
        [
            lambda ctx: ctx.write("obj", b"xyz", 6),
            lambda ctx: ctx.write_full("obj", b"123456789"),
            lambda ctx: ctx.truncate("obj", 9),
        ],
    )
    def test_past_limit(self, small: IOContext, op) -> None:  # type: ignore[no-untyped-def]
        with pytest.raises(StorageError) as exc_info:
            op(small)
        assert exc_info.value.code == -errno.EFBIG

    def test_append_past_limit_keeps_content(self, small: IOContext) -> None:
        small.append("log", b"123456")
        with pytest.raises(StorageError) as exc_info:
            small.append("log", b"789")
        assert exc_info.value.code == -errno.EFBIG
        assert small.read("log") == b"123456"

    def test_rejected_append_creates_nothing(self, small: IOContext) -> None:
        with pytest.raises(StorageError):
            small.append("new", b"123456789")
        assert list(small.iter_objects()) == []
