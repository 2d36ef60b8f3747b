"""Pool-scoped object I/O contexts over pluggable storage backends."""

from objpool._backend import Backend
from objpool._capabilities import Capability, CapabilitySet
from objpool._config import BackendConfig, PoolProfile, RegistryConfig
from objpool._errors import (
    BackendUnavailable,
    CapabilityNotSupported,
    ContextDestroyed,
    StorageError,
)
from objpool._ioctx import IOContext, ObjectIterator
from objpool._models import ManagedSnapshot, ObjectStat, PoolSnapshot, PoolStat
from objpool._registry import Registry, register_backend
from objpool._status import BUFFER_TOO_SMALL, END_OF_SEQUENCE, SNAP_HEAD

__version__ = "0.1.0"

__all__ = [
    # Core
    "IOContext",
    "ObjectIterator",
    "Registry",
    "Backend",
    "register_backend",
    # Models
    "PoolStat",
    "ObjectStat",
    "ManagedSnapshot",
    "PoolSnapshot",
    # Status codes
    "BUFFER_TOO_SMALL",
    "END_OF_SEQUENCE",
    "SNAP_HEAD",
    # Capabilities
    "Capability",
    "CapabilitySet",
    # Config
    "BackendConfig",
    "PoolProfile",
    "RegistryConfig",
    # Errors
    "StorageError",
    "ContextDestroyed",
    "CapabilityNotSupported",
    "BackendUnavailable",
    # Version
    "__version__",
]
