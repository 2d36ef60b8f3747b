"""Quickstart — open a pool, write, read, stat, and list objects with objpool.

Demonstrates:
- Creating a RegistryConfig with an in-memory backend
- Opening an IOContext on a pool profile
- Byte-range writes and reads into a caller-supplied buffer
"""

from __future__ import annotations

from objpool import BackendConfig, PoolProfile, Registry, RegistryConfig

if __name__ == "__main__":
    config = RegistryConfig(
        backends={"mem": BackendConfig(type="memory", options={"pools": ["data"]})},
        pools={"data": PoolProfile(backend="mem")},
    )

    with Registry(config) as registry, registry.open_ioctx("data") as ioctx:
        print(f"Pool: {ioctx.get_pool_name()}")

        # Write an object, then patch a range inside it
        ioctx.write("greeting", b"Hello, world!")
        ioctx.write("greeting", b"RADOS", 7)
        print(f"Content: {ioctx.read('greeting')}")

        # Read into a preallocated buffer
        buf = bytearray(5)
        count = ioctx.read_into("greeting", buf, offset=7)
        print(f"Read {count} bytes: {bytes(buf[:count])}")

        # Append and stat
        ioctx.append("log", b"line 1\n")
        ioctx.append("log", b"line 2\n")
        info = ioctx.stat("log")
        print(f"log: {info.size} bytes, modified {info.modified_at}")

        # Enumerate the pool
        print("Objects:", sorted(ioctx.iter_objects()))

        stats = ioctx.get_pool_stats()
        print(f"{stats.num_objects} objects, {stats.num_bytes} bytes")

    print("Done! The context is destroyed on leaving the with block.")
