"""Error handling — status codes, capability errors, and destroyed contexts.

Every failure surfaces as a StorageError carrying the backend's negative
errno status, so callers can branch on ``exc.code`` or ``exc.errno_name``.
"""

from __future__ import annotations

import errno

from objpool import (
    BackendConfig,
    CapabilityNotSupported,
    ContextDestroyed,
    PoolProfile,
    Registry,
    RegistryConfig,
    StorageError,
)

if __name__ == "__main__":
    config = RegistryConfig(
        backends={"mem": BackendConfig(type="memory", options={"pools": ["data"]})},
        pools={
            "data": PoolProfile(backend="mem"),
            "ghost": PoolProfile(backend="mem", pool="does-not-exist"),
        },
    )

    with Registry(config) as registry:
        # --- Missing pool ---
        try:
            registry.open_ioctx("ghost")
        except StorageError as exc:
            print(f"Open failed: {exc}")

        ioctx = registry.open_ioctx("data")

        # --- Missing object ---
        try:
            ioctx.read("nonexistent")
        except StorageError as exc:
            print(f"\nRead failed: {exc}")
            if exc.code == -errno.ENOENT:
                print(f"  oid={exc.oid}, backend={exc.backend}, errno={exc.errno_name}")

        # --- Invalid object id ---
        try:
            ioctx.write("bad\0name", b"x")
        except StorageError as exc:
            print(f"\nInvalid id: {exc.errno_name}")

        # --- Unsupported capability (S3 has no snapshots) ---
        exc = CapabilityNotSupported("snapshots are not available", backend="s3", capability="managed_snapshots")
        print(f"\nCapability error example: {exc}")

        # --- Use after destroy ---
        ioctx.destroy()
        try:
            ioctx.stat("anything")
        except ContextDestroyed as exc:
            print(f"\nDestroyed: {exc!r}")
