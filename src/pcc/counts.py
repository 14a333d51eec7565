from __future__ import annotations

from collections import Counter
from typing import Dict, Iterator, Tuple, Union

from .constants import PRINTABLE_MAX, PRINTABLE_MIN

PRINTABLE_CODES = range(PRINTABLE_MIN, PRINTABLE_MAX + 1)


def is_printable(byte: int) -> bool:
    return PRINTABLE_MIN <= byte <= PRINTABLE_MAX


def count_printable(chunk: bytes) -> Tuple[Counter, int]:
    """Count printable bytes in one chunk: (per-code delta, total delta)."""
    delta = Counter({b: n for b, n in Counter(chunk).items() if is_printable(b)})
    return delta, sum(delta.values())


class CharCounts:
    """Occurrence counts for character codes 32..126, in ascending order."""

    def __init__(self) -> None:
        self._counts: Dict[int, int] = dict.fromkeys(PRINTABLE_CODES, 0)
        self.total = 0

    def feed(self, chunk: bytes) -> int:
        delta, total = count_printable(chunk)
        for code, n in delta.items():
            self._counts[code] += n
        self.total += total
        return total

    def merge(self, other: "CharCounts") -> None:
        for code, n in other.items():
            self._counts[code] += n
        self.total += other.total

    def __getitem__(self, key: Union[int, str]) -> int:
        code = ord(key) if isinstance(key, str) else key
        return self._counts[code]

    def items(self) -> Iterator[Tuple[int, int]]:
        return iter(self._counts.items())

    def snapshot(self) -> Dict[int, int]:
        return dict(self._counts)

    def report_lines(self) -> Iterator[str]:
        for code, n in self._counts.items():
            yield f"char '{chr(code)}' : {n} times"
