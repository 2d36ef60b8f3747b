"""Registry — backend lifecycle management and I/O context access."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from objpool._config import RegistryConfig
from objpool._ioctx import IOContext

if TYPE_CHECKING:
    from types import TracebackType

    from objpool._backend import Backend

log = logging.getLogger(__name__)

# Global backend factory registry: maps type strings to backend classes.
_BACKEND_FACTORIES: dict[str, type[Backend]] = {}


def register_backend(type_name: str, cls: type[Backend]) -> None:
    """Register a backend class for a given type string.

    :param type_name: The type identifier (e.g. ``"memory"``).
    :param cls: The backend class to instantiate.
    """
    _BACKEND_FACTORIES[type_name] = cls


def _register_builtin_backends() -> None:
    """Register the built-in backends."""
    from objpool.backends._librados import LibradosBackend
    from objpool.backends._memory import MemoryBackend
    from objpool.backends._s3 import S3Backend

    for type_name, cls in (("memory", MemoryBackend), ("s3", S3Backend), ("librados", LibradosBackend)):
        if type_name not in _BACKEND_FACTORIES:
            register_backend(type_name, cls)


class Registry:
    """Manages backend lifecycle and opens I/O contexts on named pool profiles.

    :param config: Optional configuration. Validates immediately.
    :raises ValueError: If config is invalid.
    """

    def __init__(self, config: RegistryConfig | None = None) -> None:
        _register_builtin_backends()
        self._config = config or RegistryConfig()
        self._config.validate()
        self._backends: dict[str, Backend] = {}

    def __repr__(self) -> str:
        pools = sorted(self._config.pools.keys())
        return f"Registry(pools={pools!r})"

    def open_ioctx(self, name: str) -> IOContext:
        """Open a new I/O context for a pool profile.

        The caller owns the returned context and must destroy it.

        :param name: The pool profile name.
        :raises KeyError: If no pool profile with this name exists.
        :raises StorageError: If the backend cannot open the pool.
        """
        if name not in self._config.pools:
            available = sorted(self._config.pools.keys())
            raise KeyError(f"Unknown pool profile '{name}'. Available profiles: {available}")

        profile = self._config.pools[name]
        backend = self._get_backend(profile.backend)
        return IOContext.open(backend, self._config.pool_name(name))

    def get_backend(self, name: str) -> Backend:
        """Return the (lazily created) backend configured under ``name``.

        :raises KeyError: If no backend with this name is configured.
        """
        if name not in self._config.backends:
            raise KeyError(f"Unknown backend '{name}'. Available backends: {sorted(self._config.backends.keys())}")
        return self._get_backend(name)

    def _get_backend(self, name: str) -> Backend:
        """Instantiate the backend configured under ``name`` on first use."""
        backend = self._backends.get(name)
        if backend is not None:
            return backend
        cfg = self._config.backends[name]
        factory = _BACKEND_FACTORIES.get(cfg.type)
        if factory is None:
            raise ValueError(
                f"Backend '{name}' has unknown type '{cfg.type}'. Registered types: {sorted(_BACKEND_FACTORIES)}"
            )
        try:
            backend = factory(**cfg.options)
        except TypeError as exc:
            raise ValueError(
                f"Cannot create backend '{name}' (type={cfg.type!r}) from options {sorted(cfg.options)}: {exc}"
            ) from exc
        log.debug("Created %s backend %r", cfg.type, name)
        self._backends[name] = backend
        return backend

    def close(self) -> None:
        """Close every instantiated backend.

        All backends are closed even if one fails; the first failure is re-raised.
        """
        first_error: Exception | None = None
        for name, backend in self._backends.items():
            try:
                backend.close()
            except Exception as exc:
                log.warning("Failed to close backend %r: %s", name, exc)
                if first_error is None:
                    first_error = exc
        self._backends.clear()
        if first_error is not None:
            raise first_error

    def __enter__(self) -> Registry:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
