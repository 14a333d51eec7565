"""Deferred shutdown for the single-threaded accept loop.

A stop request that arrives while a connection is being served is only
recorded; the accept loop honours it once that connection is closed. A request
that arrives while the server is idle (blocked in ``accept``) unwinds the loop
at once by raising ``ServerShutdown`` on the main thread.

The signal handler never does I/O. Reporting and exiting happen on the normal
control path after ``ServerShutdown`` is caught.
"""
from __future__ import annotations

import contextlib
import enum
import signal
from typing import Dict, Iterable, Iterator


class ShutdownState(enum.Enum):
    RUNNING = "running"
    SHUTDOWN_REQUESTED = "shutdown_requested"
    TERMINATED = "terminated"


class ServerShutdown(BaseException):
    """Raised to leave the accept loop at a safe point.

    Like KeyboardInterrupt it is not an Exception, so ``except Exception``
    handlers (logging's emit among them) let it through.
    """


class ShutdownCoordinator:
    def __init__(self) -> None:
        self.state = ShutdownState.RUNNING
        self.processing = False

    @property
    def requested(self) -> bool:
        return self.state is not ShutdownState.RUNNING

    def request(self) -> None:
        if self.processing:
            self.state = ShutdownState.SHUTDOWN_REQUESTED
            return
        self.state = ShutdownState.TERMINATED
        raise ServerShutdown()

    @contextlib.contextmanager
    def active(self) -> Iterator[None]:
        self.processing = True
        try:
            yield
        finally:
            self.processing = False

    def check(self) -> None:
        if self.state is not ShutdownState.RUNNING:
            self.state = ShutdownState.TERMINATED
            raise ServerShutdown()

    def _on_signal(self, signum: int, frame: object) -> None:
        self.request()

    def install(self, signals: Iterable[int] = (signal.SIGINT, signal.SIGTERM)) -> Dict[int, object]:
        previous = {}
        for signum in signals:
            previous[signum] = signal.signal(signum, self._on_signal)
        return previous

    def restore(self, previous: Dict[int, object]) -> None:
        for signum, handler in previous.items():
            signal.signal(signum, handler)  # type: ignore[arg-type]
