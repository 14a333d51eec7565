from __future__ import annotations

import socket
import threading
from typing import Callable, Iterable, Optional

import pytest

from pcc.net import TcpEndpoint
from pcc.server import ConnectionHandler, Server


class FakeStream:
    """In-memory stream; ``max_chunk=1`` makes every operation move one byte."""

    def __init__(
        self,
        incoming: bytes = b"",
        *,
        max_chunk: Optional[int] = None,
        recv_error: Optional[BaseException] = None,
        send_error: Optional[BaseException] = None,
        on_recv: Optional[Callable[[], None]] = None,
    ):
        self.incoming = bytearray(incoming)
        self.sent = bytearray()
        self.max_chunk = max_chunk
        self.recv_error = recv_error
        self.send_error = send_error
        self.on_recv = on_recv
        self.recv_calls = 0
        self.send_calls = 0
        self.closed = False

    def _limit(self, n: int) -> int:
        return n if self.max_chunk is None else min(n, self.max_chunk)

    def recv(self, bufsize: int) -> bytes:
        self.recv_calls += 1
        if self.on_recv is not None:
            self.on_recv()
        if not self.incoming:
            if self.recv_error is not None:
                raise self.recv_error
            return b""
        n = self._limit(bufsize)
        chunk = bytes(self.incoming[:n])
        del self.incoming[:n]
        return chunk

    def send(self, data: bytes) -> int:
        self.send_calls += 1
        if self.send_error is not None:
            raise self.send_error
        n = self._limit(len(data))
        self.sent += data[:n]
        return n

    def close(self) -> None:
        self.closed = True


class FakeListener:
    """Hands out queued streams; once empty, ``on_idle`` plays the blocked accept."""

    def __init__(self, streams: Iterable[FakeStream], on_idle: Callable[[], None]):
        self.pending = list(streams)
        self.accepted: list[FakeStream] = []
        self.on_idle = on_idle

    def accept(self):
        if not self.pending:
            self.on_idle()
            raise AssertionError("accept() would block forever")
        stream = self.pending.pop(0)
        self.accepted.append(stream)
        return stream, ("127.0.0.1", 40000 + len(self.accepted))


def frame(payload: bytes) -> bytes:
    return len(payload).to_bytes(4, "big") + payload


@pytest.fixture
def loopback_server():
    """Real listener on 127.0.0.1 serving ``n`` connections in a thread."""
    threads = []
    endpoints = []

    def start(n: int = 1, chunk_size: int = 4096) -> tuple[Server, int]:
        ep = TcpEndpoint.listening("127.0.0.1", 0)
        endpoints.append(ep)
        server = Server(ep, chunk_size=chunk_size)
        handler = ConnectionHandler(server.table, chunk_size)

        def runner():
            for _ in range(n):
                server.serve_one(handler)

        t = threading.Thread(target=runner, daemon=True)
        t.start()
        threads.append(t)
        return server, ep.address[1]

    yield start

    for t in threads:
        t.join(timeout=5.0)
    for ep in endpoints:
        ep.close()


@pytest.fixture
def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]
