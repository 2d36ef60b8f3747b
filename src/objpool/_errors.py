"""Error hierarchy for objpool — every failure carries the driver status."""

from __future__ import annotations

import errno as _errno
import os
from typing import Optional


class StorageError(Exception):
    """Raised when a driver call reports a negative status.

    The status is kept verbatim in :attr:`code`; objpool never reinterprets it.

    :param code: Negative ``errno``-style status returned by the driver.
    :param message: Human-readable error description.
    :param oid: The object involved in the error, if any.
    :param backend: The backend name involved, if any.
    """

    def __init__(
        self,
        code: int,
        message: str = "",
        *,
        oid: Optional[str] = None,
        backend: Optional[str] = None,
    ) -> None:
        self.code = code
        self.oid = oid
        self.backend = backend
        super().__init__(message)

    @property
    def errno(self) -> int:
        """Positive ``errno`` value of :attr:`code`."""
        return abs(self.code)

    @property
    def errno_name(self) -> str:
        """Symbolic name of the status (``'ENOENT'``), or ``''`` if unknown."""
        return _errno.errorcode.get(self.errno, "")

    def _code_repr(self) -> str:
        name = self.errno_name
        return f"{self.code} ({name})" if name else str(self.code)

    def __str__(self) -> str:
        message = super().__str__() or os.strerror(self.errno)
        parts = [message, f"code={self._code_repr()}"]
        if self.oid is not None:
            parts.append(f"oid={self.oid!r}")
        if self.backend is not None:
            parts.append(f"backend={self.backend!r}")
        return " | ".join(parts)

    def __repr__(self) -> str:
        cls = type(self).__name__
        args = [str(self.code), repr(super().__str__())]
        if self.oid is not None:
            args.append(f"oid={self.oid!r}")
        if self.backend is not None:
            args.append(f"backend={self.backend!r}")
        return f"{cls}({', '.join(args)})"


class ContextDestroyed(StorageError):
    """Raised when an I/O context is used after :meth:`~objpool.IOContext.destroy`."""

    def __init__(self, message: str = "I/O context has been destroyed", *, backend: Optional[str] = None) -> None:
        super().__init__(-_errno.EBADF, message, backend=backend)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.args[0]!r})"


class CapabilityNotSupported(StorageError):
    """Raised when an operation requires a capability the backend lacks.

    :param capability: The name of the unsupported capability.
    """

    def __init__(
        self,
        message: str = "",
        *,
        oid: Optional[str] = None,
        backend: Optional[str] = None,
        capability: str = "",
    ) -> None:
        self.capability = capability
        super().__init__(-_errno.EOPNOTSUPP, message, oid=oid, backend=backend)

    def __str__(self) -> str:
        base = super().__str__()
        if self.capability:
            return f"{base} | capability={self.capability!r}"
        return base


class BackendUnavailable(StorageError):
    """Raised when the backend cannot be loaded or connected."""

    def __init__(self, message: str = "", *, backend: Optional[str] = None) -> None:
        super().__init__(-_errno.ENOTCONN, message, backend=backend)
