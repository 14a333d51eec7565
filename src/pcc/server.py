from __future__ import annotations

import contextlib
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Tuple

from .constants import DEFAULT_CHUNK_SIZE, U32_SIZE
from .counts import CharCounts
from .framing import LengthHeader, ResultMessage
from .net import PeerDisconnected, Stream, recv_exact, recv_some, send_exact
from .shutdown import ServerShutdown, ShutdownCoordinator

log = logging.getLogger(__name__)


class ConnectionState(enum.Enum):
    AWAITING_LENGTH = "awaiting_length"
    RECEIVING_PAYLOAD = "receiving_payload"
    SENDING_RESULT = "sending_result"
    ACCUMULATE = "accumulate"
    CLOSED = "closed"


class ConnectionOutcome(enum.Enum):
    COMPLETED = "completed"
    ABORTED = "aborted"


class Listener(Protocol):
    def accept(self) -> Tuple[Any, Any]: ...


@dataclass(slots=True)
class ConnectionResult:
    outcome: ConnectionOutcome
    peer: Any = None
    declared_length: Optional[int] = None
    bytes_received: int = 0
    printable: int = 0
    state: ConnectionState = ConnectionState.AWAITING_LENGTH
    aborted_in: Optional[ConnectionState] = None


@dataclass(slots=True)
class ConnectionHandler:
    """Runs one connection through header -> payload -> result -> accumulate.

    ``table`` is only touched after the result reached the client, so an
    aborted connection leaves it exactly as it was.
    """

    table: CharCounts
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def handle(self, stream: Stream, peer: Any = None) -> ConnectionResult:
        result = ConnectionResult(outcome=ConnectionOutcome.ABORTED, peer=peer)
        counts = CharCounts()

        try:
            header = LengthHeader.from_bytes(recv_exact(stream, U32_SIZE))
            result.declared_length = header.length
            log.debug("%s: expecting %d payload bytes", peer, header.length)

            result.state = ConnectionState.RECEIVING_PAYLOAD
            while result.bytes_received < header.length:
                remaining = header.length - result.bytes_received
                chunk = recv_some(stream, min(self.chunk_size, remaining))
                result.bytes_received += len(chunk)
                counts.feed(chunk)
            result.printable = counts.total

            result.state = ConnectionState.SENDING_RESULT
            send_exact(stream, ResultMessage(counts.total).to_bytes())
        except PeerDisconnected as exc:
            log.warning("%s: connection aborted in %s: %s", peer, result.state.value, exc)
            result.aborted_in = result.state
            return result

        result.state = ConnectionState.ACCUMULATE
        self.table.merge(counts)
        result.outcome = ConnectionOutcome.COMPLETED
        return result


@dataclass(slots=True)
class Server:
    listener: Listener
    coordinator: ShutdownCoordinator = field(default_factory=ShutdownCoordinator)
    table: CharCounts = field(default_factory=CharCounts)
    chunk_size: int = DEFAULT_CHUNK_SIZE
    completed: int = 0
    aborted: int = 0

    def serve_one(self, handler: ConnectionHandler) -> ConnectionResult:
        conn, addr = self.listener.accept()
        with contextlib.closing(conn), self.coordinator.active():
            log.info("accepted connection from %s", addr)
            result = handler.handle(conn, addr)
            if result.outcome is ConnectionOutcome.COMPLETED:
                self.completed += 1
                log.info("%s: %d bytes, %d printable", addr, result.bytes_received, result.printable)
            else:
                self.aborted += 1
        result.state = ConnectionState.CLOSED
        return result

    def serve_forever(self) -> CharCounts:
        """Accept connections one at a time until a shutdown is requested.

        Returns the global table, which is complete and no longer mutated.
        """
        handler = ConnectionHandler(self.table, self.chunk_size)
        try:
            while True:
                self.serve_one(handler)
                self.coordinator.check()
        except ServerShutdown:
            log.info(
                "shutting down; connections completed=%d aborted=%d",
                self.completed,
                self.aborted,
            )
        return self.table
