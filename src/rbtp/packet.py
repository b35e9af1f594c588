from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from .constants import ACK_PATTERN, DATA_PATTERN, WIRE_ENCODING
from .ranges import AckRange
from .text import compile_text

DATA_CODEC = compile_text(DATA_PATTERN)
ACK_CODEC = compile_text(ACK_PATTERN)


@dataclass(frozen=True, slots=True)
class DataFrame:
    """One chunk on the primary channel: ``RBTP<index>/<total>:<checksum>$<payload>``."""

    index: int
    total: int
    checksum: str
    payload: bytes = b""

    def to_bytes(self) -> bytes:
        text = DATA_CODEC.encode(
            {
                "index": self.index,
                "total": self.total,
                "checksum": self.checksum,
                "payload": self.payload.decode(WIRE_ENCODING),
            }
        )
        return text.encode(WIRE_ENCODING)

    @staticmethod
    def from_bytes(raw: bytes) -> Optional["DataFrame"]:
        rec = DATA_CODEC.decode(raw.decode(WIRE_ENCODING))
        if rec is None:
            return None
        return DataFrame(
            index=rec["index"],
            total=rec["total"],
            checksum=rec["checksum"],
            payload=rec["payload"].encode(WIRE_ENCODING),
        )


@dataclass(frozen=True, slots=True)
class AckFrame:
    """Acknowledged index ranges on the backchannel: ``RB<s;e;s;e...>``."""

    ranges: tuple[AckRange, ...]

    def to_bytes(self) -> bytes:
        return ACK_CODEC.encode({"ranges": self.ranges}).encode(WIRE_ENCODING)

    @staticmethod
    def from_bytes(raw: bytes) -> Optional["AckFrame"]:
        rec = ACK_CODEC.decode(raw.decode(WIRE_ENCODING))
        if rec is None:
            return None
        return AckFrame(ranges=tuple(AckRange(s, e) for s, e in rec["ranges"]))

    @staticmethod
    def of(ranges: Sequence[tuple[int, int]]) -> "AckFrame":
        return AckFrame(ranges=tuple(AckRange(s, e) for s, e in ranges))
