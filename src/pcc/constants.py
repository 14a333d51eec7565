from __future__ import annotations

import errno

U32_FORMAT = "!I"  # length header and result count
U32_SIZE = 4
U32_MAX = 0xFFFFFFFF

PRINTABLE_MIN = 32
PRINTABLE_MAX = 126

DEFAULT_HOST = "0.0.0.0"
DEFAULT_BACKLOG = 10
DEFAULT_CHUNK_SIZE = 1_000_000

DISCONNECT_ERRNOS = frozenset({errno.ECONNRESET, errno.EPIPE, errno.ETIMEDOUT, errno.ECONNABORTED})
