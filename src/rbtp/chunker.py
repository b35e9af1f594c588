from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping


@dataclass(frozen=True, slots=True)
class Chunk:
    index: int
    payload: bytes


def split(message: bytes, chunk_size: int) -> list[Chunk]:
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return [
        Chunk(index=i, payload=message[off : off + chunk_size])
        for i, off in enumerate(range(0, len(message), chunk_size))
    ]


def reassemble(chunks: Mapping[int, bytes], total: int) -> bytes | None:
    """Join payloads in index order, or return None while any index is missing."""
    if any(i not in chunks for i in range(total)):
        return None
    return b"".join(chunks[i] for i in range(total))
