"""Snapshots — self-managed and pool snapshots, rollback, and snapshot reads.

Demonstrates:
- Allocating a self-managed snapshot and rolling an object back to it
- Reading old data through set_read_snapshot while writes go to head
- Named pool snapshots and lookup by name
"""

from __future__ import annotations

from objpool import IOContext
from objpool.backends import MemoryBackend

if __name__ == "__main__":
    backend = MemoryBackend(pools=["vm-images", "backups"])

    # --- Self-managed snapshots ---
    with IOContext.open(backend, "vm-images") as ioctx:
        ioctx.write("disk0", b"version 1")
        snap = ioctx.create_managed_snapshot()
        print(f"Created {snap!r}")

        ioctx.write_full("disk0", b"version 2")

        ioctx.set_read_snapshot(snap)
        print(f"As of snapshot: {ioctx.read('disk0')}")
        ioctx.set_read_snapshot(None)
        print(f"Head:           {ioctx.read('disk0')}")

        ioctx.rollback_managed_object("disk0", snap)
        print(f"After rollback: {ioctx.read('disk0')}")
        ioctx.remove_managed_snapshot(snap)

    # --- Pool snapshots ---
    with IOContext.open(backend, "backups") as ioctx:
        ioctx.write("catalog", b"monday")
        ioctx.create_pool_snapshot("nightly")
        ioctx.write_full("catalog", b"tuesday")

        nightly = ioctx.lookup_pool_snapshot("nightly")
        print(f"\nLooked up {nightly!r}")
        ioctx.rollback_object("catalog", "nightly")
        print(f"Restored: {ioctx.read('catalog')}")
        ioctx.remove_pool_snapshot("nightly")

    backend.close()
