"""Configuration model — immutable data containers describing backends and pools."""

from __future__ import annotations

import dataclasses
from typing import Any


@dataclasses.dataclass(frozen=True)
class BackendConfig:
    """Describes a backend instance (one cluster connection).

    :param type: Backend type identifier (e.g. ``"memory"``, ``"librados"``).
    :param options: Backend constructor keyword arguments.
    """

    type: str
    options: dict[str, object] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass(frozen=True)
class PoolProfile:
    """A named recipe for opening an I/O context.

    :param backend: Name of the backend config to use.
    :param pool: Pool to open; empty means the profile's own name.
    """

    backend: str
    pool: str = ""


@dataclasses.dataclass(frozen=True)
class RegistryConfig:
    """Top-level configuration container.

    :param backends: Mapping of backend names to their configs.
    :param pools: Mapping of profile names to pool profiles.
    """

    backends: dict[str, BackendConfig] = dataclasses.field(default_factory=dict)
    pools: dict[str, PoolProfile] = dataclasses.field(default_factory=dict)

    def pool_name(self, profile: str) -> str:
        """Resolve the pool a profile opens."""
        return self.pools[profile].pool or profile

    def validate(self) -> None:
        """Check that every profile names a known backend and a usable pool.

        :raises ValueError: On the first inconsistent profile.
        """
        for profile_name, profile in self.pools.items():
            if profile.backend not in self.backends:
                raise ValueError(
                    f"Pool profile '{profile_name}' references unknown backend '{profile.backend}'. "
                    f"Available backends: {sorted(self.backends)}"
                )
            if "\0" in self.pool_name(profile_name):
                raise ValueError(f"Pool profile '{profile_name}' has an invalid pool name")

    def to_dict(self) -> dict[str, Any]:
        """Inverse of :meth:`from_dict`, with defaulted pool names filled in."""
        return {
            "backends": {name: {"type": b.type, "options": dict(b.options)} for name, b in self.backends.items()},
            "pools": {name: {"backend": p.backend, "pool": self.pool_name(name)} for name, p in self.pools.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RegistryConfig:
        """Construct from a plain dict (e.g. parsed TOML/JSON).

        A pool profile may be given as just the backend name::

            {"backends": {"ceph": {"type": "librados"}}, "pools": {"rbd": "ceph"}}

        :raises TypeError: If a section or entry has the wrong shape.
        """
        raw_backends = data.get("backends", {})
        raw_pools = data.get("pools", {})
        if not isinstance(raw_backends, dict) or not isinstance(raw_pools, dict):
            raise TypeError("Expected 'backends' and 'pools' to be dicts")
        return cls(
            backends={str(name): _parse_backend(str(name), raw) for name, raw in raw_backends.items()},
            pools={str(name): _parse_pool(str(name), raw) for name, raw in raw_pools.items()},
        )


def _parse_backend(name: str, raw: object) -> BackendConfig:
    if not isinstance(raw, dict) or "type" not in raw:
        raise TypeError(f"Backend config for '{name}' must be a dict with a 'type' key")
    options = raw.get("options", {})
    if not isinstance(options, dict):
        raise TypeError(f"Options of backend '{name}' must be a dict")
    return BackendConfig(type=str(raw["type"]), options=dict(options))


def _parse_pool(name: str, raw: object) -> PoolProfile:
    if isinstance(raw, str):
        return PoolProfile(backend=raw, pool=name)
    if not isinstance(raw, dict) or "backend" not in raw:
        raise TypeError(f"Pool profile for '{name}' must be a backend name or a dict with a 'backend' key")
    return PoolProfile(backend=str(raw["backend"]), pool=str(raw.get("pool", name)))
