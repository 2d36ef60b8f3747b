"""Tests for capabilities and CapabilitySet."""

from __future__ import annotations

import errno

import pytest

from objpool._capabilities import Capability, CapabilitySet
from objpool._errors import CapabilityNotSupported, StorageError


class TestCapabilityEnum:
    def test_members(self) -> None:
        expected = {
            "READ",
            "WRITE",
            "DELETE",
            "TRUNCATE",
            "STAT",
            "LIST",
            "POOL_STATS",
            "POOL_SNAPSHOTS",
            "MANAGED_SNAPSHOTS",
        }
        actual = {c.name for c in Capability}
        assert actual == expected


class TestCapabilitySetSupports:
    def test_construction(self) -> None:
        cs = CapabilitySet({Capability.READ, Capability.WRITE})
        assert len(cs) == 2

    def test_supports_true(self) -> None:
        cs = CapabilitySet({Capability.READ})
        assert cs.supports(Capability.READ) is True

    def test_supports_false(self) -> None:
        cs = CapabilitySet({Capability.READ})
        assert cs.supports(Capability.WRITE) is False


class TestCapabilitySetRequire:
    def test_require_passes(self) -> None:
        cs = CapabilitySet({Capability.READ})
        cs.require(Capability.READ)

    def test_require_raises_storage_error(self) -> None:
        cs = CapabilitySet({Capability.READ})
        with pytest.raises(CapabilityNotSupported) as exc_info:
            cs.require(Capability.POOL_SNAPSHOTS, backend="test", oid="obj")
        err = exc_info.value
        assert isinstance(err, StorageError)
        assert err.code == -errno.EOPNOTSUPP
        assert err.capability == "pool_snapshots"
        assert err.backend == "test"
        assert err.oid == "obj"


class TestCapabilitySetIterationMembership:
    def test_contains(self) -> None:
        cs = CapabilitySet({Capability.READ, Capability.WRITE})
        assert Capability.READ in cs
        assert Capability.DELETE not in cs

    def test_iteration(self) -> None:
        caps = {Capability.READ, Capability.LIST}
        assert set(CapabilitySet(caps)) == caps

    def test_repr_sorted(self) -> None:
        cs = CapabilitySet({Capability.WRITE, Capability.READ})
        assert repr(cs) == "CapabilitySet(['read', 'write'])"


class TestCapabilitySetImmutability:
    def test_immutable_setattr(self) -> None:
        cs = CapabilitySet({Capability.READ})
        with pytest.raises(AttributeError, match="immutable"):
            cs.x = 1  # type: ignore[attr-defined]

    def test_immutable_delattr(self) -> None:
        cs = CapabilitySet({Capability.READ})
        with pytest.raises(AttributeError, match="immutable"):
            del cs._members  # type: ignore[attr-defined]


class TestCapabilitySetDerivation:
    def test_full(self) -> None:
        assert set(CapabilitySet.full()) == set(Capability)

    def test_without(self) -> None:
        cs = CapabilitySet.full().without(Capability.POOL_SNAPSHOTS, Capability.MANAGED_SNAPSHOTS)
        assert Capability.READ in cs
        assert Capability.POOL_SNAPSHOTS not in cs
        assert len(cs) == len(Capability) - 2

    def test_without_leaves_original(self) -> None:
        full = CapabilitySet.full()
        full.without(Capability.READ)
        assert Capability.READ in full

    def test_equality_and_hash(self) -> None:
        a = CapabilitySet({Capability.READ, Capability.WRITE})
        b = CapabilitySet([Capability.WRITE, Capability.READ])
        assert a == b
        assert hash(a) == hash(b)
        assert a != CapabilitySet({Capability.READ})
        assert a != {Capability.READ, Capability.WRITE}

    def test_error_message_names_capability(self) -> None:
        with pytest.raises(CapabilityNotSupported, match="managed snapshots"):
            CapabilitySet(()).require(Capability.MANAGED_SNAPSHOTS)
