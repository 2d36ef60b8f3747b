"""Configuration — config-as-code, from_dict(), and backend options.

Demonstrates different ways to create a RegistryConfig, including
option sets for the S3 and librados backends.
"""

from __future__ import annotations

from objpool import BackendConfig, PoolProfile, Registry, RegistryConfig

if __name__ == "__main__":
    # --- Option 1: Config-as-code with Python objects ---
    config = RegistryConfig(
        backends={
            "mem": BackendConfig(type="memory", options={"pools": ["images", "logs"], "replicas": 3}),
        },
        pools={
            "images": PoolProfile(backend="mem"),
            "audit": PoolProfile(backend="mem", pool="logs"),
        },
    )

    with Registry(config) as registry:
        with registry.open_ioctx("images") as images, registry.open_ioctx("audit") as audit:
            images.write("cat.jpg", b"\xff\xd8\xff\xe0fake-jpeg-data")
            audit.append("access", b"GET cat.jpg\n")
            print("images ->", images.get_pool_name())
            print("audit  ->", audit.get_pool_name())
            print("copies:", images.get_pool_stats().num_object_copies)

    # --- Option 2: from_dict() — e.g. loaded from TOML or JSON ---
    raw = {
        "backends": {
            "mem": {"type": "memory", "options": {"pools": ["events"]}},
        },
        "pools": {
            "events": {"backend": "mem"},
        },
    }
    config = RegistryConfig.from_dict(raw)
    with Registry(config) as registry, registry.open_ioctx("events") as ioctx:
        ioctx.write_full("first", b"{}")
        print("\nFrom dict:", list(ioctx.iter_objects()))

    # --- Other backends (not connected here) ---
    s3_config = BackendConfig(
        type="s3",
        options={
            "endpoint_url": "http://localhost:9000",
            "key": "minioadmin",
            "secret": "minioadmin",
            "region_name": "us-east-1",
        },
    )
    print(f"\nS3 config: type={s3_config.type}")

    rados_config = BackendConfig(
        type="librados",
        options={
            "conffile": "/etc/ceph/ceph.conf",
            "rados_id": "admin",
            "conf": {"rados_osd_op_timeout": "30"},
        },
    )
    print(f"librados config: type={rados_config.type}")
