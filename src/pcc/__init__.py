"""Printable Character Counter (pcc)

A TCP client/server pair: the client sends a file framed by a u32 length
header, the server answers with the number of printable ASCII bytes in it and
keeps a per-character table across every completed connection.

- framing and exact-transfer primitives are separate from the state machines
- one connection at a time; shutdown is deferred to the gap between connections
- every piece is testable against in-memory fake streams
"""

__all__ = []
