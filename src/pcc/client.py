from __future__ import annotations

import ipaddress
import logging
import os
from dataclasses import dataclass
from typing import BinaryIO

from .constants import DEFAULT_CHUNK_SIZE, U32_MAX, U32_SIZE
from .framing import LengthHeader, ResultMessage
from .net import TcpEndpoint

log = logging.getLogger(__name__)


class TransferError(Exception):
    pass


def file_size(f: BinaryIO) -> int:
    size = os.fstat(f.fileno()).st_size
    if size > U32_MAX:
        raise TransferError(f"file too large for a u32 length header: {size} bytes")
    return size


@dataclass(slots=True)
class Client:
    """Sends one file and returns the server's printable-character count.

    Every failure is raised to the caller; there is no retry.
    """

    host: str
    port: int
    path: str
    chunk_size: int = DEFAULT_CHUNK_SIZE
    timeout: float | None = None

    def run(self) -> int:
        ipaddress.IPv4Address(self.host)

        with open(self.path, "rb") as f:
            size = file_size(f)
            with TcpEndpoint.connecting(self.host, self.port, timeout=self.timeout) as conn:
                log.info("connected to %s:%d; sending %d bytes", self.host, self.port, size)
                conn.send_exact(LengthHeader(size).to_bytes())
                self._stream_file(f, conn, size)
                result = ResultMessage.from_bytes(conn.recv_exact(U32_SIZE))

        log.debug("server reported %d printable characters", result.count)
        return result.count

    def _stream_file(self, f: BinaryIO, conn: TcpEndpoint, size: int) -> None:
        sent = 0
        while sent < size:
            chunk = f.read(min(self.chunk_size, size - sent))
            if not chunk:
                raise TransferError(f"{self.path} ended after {sent} of {size} bytes")
            conn.send_exact(chunk)
            sent += len(chunk)
