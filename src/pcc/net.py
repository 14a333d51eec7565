from __future__ import annotations

import socket
from typing import Protocol, Tuple

from .constants import DEFAULT_BACKLOG, DISCONNECT_ERRNOS


class Stream(Protocol):
    def send(self, data: bytes) -> int: ...

    def recv(self, bufsize: int) -> bytes: ...


class PeerDisconnected(ConnectionError):
    """The peer closed or reset the stream before the exchange finished."""


def is_disconnect(exc: OSError) -> bool:
    if isinstance(exc, (ConnectionResetError, ConnectionAbortedError, BrokenPipeError, TimeoutError)):
        return True
    return exc.errno in DISCONNECT_ERRNOS


def send_exact(stream: Stream, data: bytes) -> None:
    """Send all of ``data``, looping over short writes.

    Raises PeerDisconnected on a disconnect-class error; any other OSError
    propagates.
    """
    view = memoryview(data)
    sent = 0
    while sent < len(view):
        try:
            n = stream.send(view[sent:])
        except OSError as exc:
            if is_disconnect(exc):
                raise PeerDisconnected(f"send failed after {sent}/{len(view)} bytes: {exc}") from exc
            raise
        if n <= 0:
            raise PeerDisconnected(f"send made no progress after {sent}/{len(view)} bytes")
        sent += n


def recv_some(stream: Stream, limit: int) -> bytes:
    """One receive of at most ``limit`` bytes; never returns an empty chunk."""
    try:
        chunk = stream.recv(limit)
    except OSError as exc:
        if is_disconnect(exc):
            raise PeerDisconnected(f"recv failed: {exc}") from exc
        raise
    if not chunk:
        raise PeerDisconnected("peer closed the connection")
    return chunk


def recv_exact(stream: Stream, count: int) -> bytes:
    buf = bytearray()
    while len(buf) < count:
        try:
            buf += recv_some(stream, count - len(buf))
        except PeerDisconnected as exc:
            raise PeerDisconnected(f"{exc} after {len(buf)}/{count} bytes") from exc
    return bytes(buf)


class TcpEndpoint:
    def __init__(self, sock: socket.socket):
        self.sock = sock

    @classmethod
    def listening(cls, host: str, port: int, backlog: int = DEFAULT_BACKLOG) -> "TcpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            sock.listen(backlog)
        except OSError:
            sock.close()
            raise
        return cls(sock)

    @classmethod
    def connecting(cls, host: str, port: int, timeout: float | None = None) -> "TcpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            if timeout is not None:
                sock.settimeout(timeout)
            sock.connect((host, port))
        except OSError:
            sock.close()
            raise
        return cls(sock)

    @property
    def address(self) -> Tuple[str, int]:
        return self.sock.getsockname()

    def accept(self) -> Tuple[socket.socket, Tuple[str, int]]:
        return self.sock.accept()

    def send_exact(self, data: bytes) -> None:
        send_exact(self.sock, data)

    def recv_exact(self, count: int) -> bytes:
        return recv_exact(self.sock, count)

    def close(self) -> None:
        self.sock.close()

    def __enter__(self) -> "TcpEndpoint":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
