"""Type aliases used throughout objpool."""

from __future__ import annotations

from typing import Any

ReadableBuffer = bytes | bytearray | memoryview
WritableBuffer = bytearray | memoryview
IoctxHandle = Any
ListCursor = Any
