"""Backend test fixtures -- parameterized for conformance testing."""

from __future__ import annotations

import socket
import uuid
from typing import TYPE_CHECKING

import pytest

from objpool._ioctx import IOContext
from objpool.backends._memory import MemoryBackend

if TYPE_CHECKING:
    from collections.abc import Iterator


def _s3_available() -> bool:
    try:
        import moto  # noqa: F401
        import s3fs  # noqa: F401

        return True
    except ImportError:
        return False


def _free_port() -> int:
    with socket.socket() as s:
        s.bind(("", 0))
        return s.getsockname()[1]


@pytest.fixture(scope="session")
def moto_server() -> Iterator[str | None]:
    """Start a moto HTTP server for the test session.

    Uses server mode instead of mock_aws() to avoid Python 3.13
    PEP 667 f_locals incompatibility with s3fs/aiobotocore.
    """
    if not _s3_available():
        yield None
        return
    from moto.moto_server.threaded_moto_server import ThreadedMotoServer

    port = _free_port()
    server = ThreadedMotoServer(port=port, verbose=False)
    server.start()
    yield f"http://127.0.0.1:{port}"
    server.stop()


def make_bucket(endpoint: str) -> str:
    """Create a fresh bucket on the moto server and return its name."""
    import boto3

    bucket = f"pool-{uuid.uuid4().hex[:8]}"
    client = boto3.client(
        "s3",
        endpoint_url=endpoint,
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        region_name="us-east-1",
    )
    client.create_bucket(Bucket=bucket)
    return bucket


_s3_param = pytest.param(
    "s3",
    marks=pytest.mark.skipif(not _s3_available(), reason="moto/s3fs not installed"),
)


@pytest.fixture(params=["memory", _s3_param])
def ioctx(request: pytest.FixtureRequest, moto_server: str | None) -> Iterator[IOContext]:
    """Parameterized I/O context fixture. Add new backends here."""
    if request.param == "memory":
        backend = MemoryBackend(pools=["conformance"])
        ctx = IOContext.open(backend, "conformance")
        yield ctx
        ctx.close()
        backend.close()
    elif request.param == "s3":
        from objpool.backends._s3 import S3Backend

        assert moto_server is not None
        bucket = make_bucket(moto_server)
        s3 = S3Backend(
            key="testing",
            secret="testing",
            region_name="us-east-1",
            endpoint_url=moto_server,
        )
        ctx = IOContext.open(s3, bucket)
        yield ctx
        ctx.close()
        s3.close()
    else:
        pytest.skip(f"Unknown backend: {request.param}")


@pytest.fixture()
def s3_bucket(moto_server: str | None) -> str:
    """A fresh, empty bucket on the moto server."""
    if moto_server is None:
        pytest.skip("moto/s3fs not installed")
    return make_bucket(moto_server)
