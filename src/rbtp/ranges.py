"""Acknowledgment range scheduling.

The receiver acknowledges whole contiguous runs of received indices rather
than just the newly requested ones: re-confirming a few indices keeps the
range list short however fragmented reception is. The index space is
circular, so a run touching both ends is sent as one wrap-around range
``(start, end)`` with ``start > end``.
"""
from __future__ import annotations

from typing import AbstractSet, Iterable, NamedTuple


class AckRange(NamedTuple):
    start: int
    end: int

    @property
    def wraps(self) -> bool:
        return self.start > self.end


def flood_fill(received: AbstractSet[int], requested: Iterable[int], total: int) -> set[int]:
    out: set[int] = set()
    for seed in requested:
        if seed not in received or seed in out:
            continue

        start = end = seed
        while start - 1 >= 0 and start - 1 in received:
            start -= 1
        while end + 1 < total and end + 1 in received:
            end += 1
        out.update(range(start, end + 1))
    return out


def compress(indices: Iterable[int], total: int) -> list[AckRange]:
    ordered = sorted(indices)
    if not ordered:
        return []

    ranges: list[AckRange] = []
    start = end = ordered[0]
    for i in ordered[1:]:
        if i == end + 1:
            end = i
        else:
            ranges.append(AckRange(start, end))
            start = end = i
    ranges.append(AckRange(start, end))

    if len(ranges) > 1 and ranges[0].start == 0 and ranges[-1].end == total - 1:
        first, last = ranges.pop(0), ranges.pop()
        ranges.insert(0, AckRange(last.start, first.end))
    return ranges


def schedule_ranges(
    received: AbstractSet[int], requested: Iterable[int], total: int
) -> list[AckRange]:
    return compress(flood_fill(received, requested, total), total)


def expand_ranges(ranges: Iterable[tuple[int, int]], total: int) -> list[int]:
    """Indices covered by ``ranges``; anything outside ``0..total-1`` is dropped."""
    out: list[int] = []
    for start, end in ranges:
        if start <= end:
            out.extend(range(max(start, 0), min(end, total - 1) + 1))
        else:
            out.extend(range(max(start, 0), total))
            out.extend(range(0, min(end, total - 1) + 1))
    return out
