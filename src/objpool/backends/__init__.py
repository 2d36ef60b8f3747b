"""Backend implementations."""

from objpool.backends._librados import LibradosBackend
from objpool.backends._memory import MemoryBackend
from objpool.backends._s3 import S3Backend

__all__ = ["LibradosBackend", "MemoryBackend", "S3Backend"]
