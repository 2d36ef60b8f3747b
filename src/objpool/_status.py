"""Driver status conventions.

Drivers return librados-style statuses: zero or positive means success (a
positive value may carry a byte count or length), negative is ``-errno``.
Only two negative statuses have a local meaning, both named here.
"""

from __future__ import annotations

import errno
from typing import Final

OK: Final = 0

#: ``get_pool_name`` buffer was too small for the name.
BUFFER_TOO_SMALL: Final = -errno.ERANGE

#: ``objects_list_next`` has no further entries.
END_OF_SEQUENCE: Final = -errno.ENOENT

#: Reserved snapshot id for the live object state (``LIBRADOS_SNAP_HEAD``).
SNAP_HEAD: Final = 2**64 - 2

#: Object size cap of the simulated drivers, Ceph's ``osd_max_object_size``.
#: Writes ending past it get ``-EFBIG``.
DEFAULT_MAX_OBJECT_SIZE: Final = 128 * 1024 * 1024
