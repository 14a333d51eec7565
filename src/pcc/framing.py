from __future__ import annotations

import struct
from dataclasses import dataclass

from .constants import U32_FORMAT, U32_MAX, U32_SIZE

_U32 = struct.Struct(U32_FORMAT)


def encode_u32(value: int) -> bytes:
    if not 0 <= value <= U32_MAX:
        raise ValueError(f"value out of range for u32: {value}")
    return _U32.pack(value)


def decode_u32(raw: bytes) -> int:
    if len(raw) != U32_SIZE:
        raise ValueError(f"expected {U32_SIZE} bytes, got {len(raw)}")
    (value,) = _U32.unpack(raw)
    return value


@dataclass(frozen=True, slots=True)
class LengthHeader:
    """Client -> server: byte length of the payload that follows."""

    length: int

    def to_bytes(self) -> bytes:
        return encode_u32(self.length)

    @staticmethod
    def from_bytes(raw: bytes) -> "LengthHeader":
        return LengthHeader(decode_u32(raw))


@dataclass(frozen=True, slots=True)
class ResultMessage:
    """Server -> client: number of printable bytes in the payload."""

    count: int

    def to_bytes(self) -> bytes:
        return encode_u32(self.count)

    @staticmethod
    def from_bytes(raw: bytes) -> "ResultMessage":
        return ResultMessage(decode_u32(raw))
