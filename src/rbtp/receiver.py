from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Optional

from .checksum import checksum
from .chunker import Chunk, reassemble
from .packet import AckFrame, DataFrame
from .ranges import schedule_ranges

log = logging.getLogger(__name__)


class ReceiverState(enum.Enum):
    IDLE = "idle"
    RECEIVING = "receiving"
    COMPLETE = "complete"


@dataclass(frozen=True, slots=True)
class ChunkEvent:
    chunk: Chunk
    received: int
    total: int
    is_complete: bool
    message: Optional[bytes] = None
    checksum: Optional[str] = None


@dataclass(slots=True)
class ReceiverSession:
    """Collects chunks from the primary channel and schedules acknowledgments.

    With ``rearm_duplicates`` a repeated frame for an index we already hold
    is acknowledged again on the next tick. The sender only repeats a chunk
    while it has not seen our ack, so a repeat means that ack was lost.
    """

    rearm_duplicates: bool = True
    state: ReceiverState = field(default=ReceiverState.IDLE, init=False)
    checksum: str = field(default="", init=False)
    message: Optional[bytes] = field(default=None, init=False)
    verified: bool = field(default=False, init=False)
    _total: int = field(default=0, init=False, repr=False)
    _chunks: dict[int, bytes] = field(default_factory=dict, init=False, repr=False)
    _received: set[int] = field(default_factory=set, init=False, repr=False)
    _awaiting: set[int] = field(default_factory=set, init=False, repr=False)
    _closed: bool = field(default=False, init=False, repr=False)

    @property
    def total(self) -> int:
        return self._total

    @property
    def received(self) -> int:
        return len(self._received)

    @property
    def received_indices(self) -> list[int]:
        return sorted(self._received)

    @property
    def awaiting_ack(self) -> frozenset[int]:
        return frozenset(self._awaiting)

    @property
    def is_complete(self) -> bool:
        return self.state is ReceiverState.COMPLETE

    def on_primary_frame(self, raw: bytes) -> Optional[ChunkEvent]:
        if self._closed:
            return None

        frame = DataFrame.from_bytes(raw)
        if frame is None:
            log.debug("ignoring malformed frame (%d bytes)", len(raw))
            return None
        if frame.index >= frame.total or not frame.payload:
            return None

        if frame.checksum != self.checksum:
            if self.state is not ReceiverState.IDLE:
                log.info(
                    "checksum changed %s -> %s; discarding %d chunks",
                    self.checksum,
                    frame.checksum,
                    len(self._received),
                )
            self._restart(frame.checksum)

        if frame.total > self._total:
            self._total = frame.total

        if frame.index in self._received:
            if self.rearm_duplicates:
                self._awaiting.add(frame.index)
            return None

        self._chunks[frame.index] = frame.payload
        self._received.add(frame.index)
        self._awaiting.add(frame.index)
        log.debug("chunk %d/%d; received %d", frame.index, self._total, len(self._received))

        if len(self._received) == self._total:
            self._complete()

        return ChunkEvent(
            chunk=Chunk(frame.index, frame.payload),
            received=len(self._received),
            total=self._total,
            is_complete=self.is_complete,
            message=self.message,
            checksum=self.checksum if self.is_complete else None,
        )

    def on_ack_tick(self) -> Optional[bytes]:
        """Backchannel frame covering every index awaiting acknowledgment, if any."""
        if not self._awaiting:
            return None

        ranges = schedule_ranges(self._received, sorted(self._awaiting), self._total)
        self._awaiting.clear()
        if not ranges:
            return None
        log.debug("ack %s", ranges)
        return AckFrame(tuple(ranges)).to_bytes()

    def _complete(self) -> None:
        message = reassemble(self._chunks, self._total)
        if message is None:
            return

        self.message = message
        self.verified = checksum(message) == self.checksum
        self.state = ReceiverState.COMPLETE
        if self.verified:
            log.info("message complete; %d chunks, %d bytes", self._total, len(message))
        else:
            log.warning(
                "message complete but checksum mismatch: expected %s got %s",
                self.checksum,
                checksum(message),
            )

    def _restart(self, new_checksum: str) -> None:
        self.reset()
        self.checksum = new_checksum
        self.state = ReceiverState.RECEIVING

    def reset(self) -> None:
        self.state = ReceiverState.IDLE
        self.checksum = ""
        self.message = None
        self.verified = False
        self._total = 0
        self._chunks = {}
        self._received = set()
        self._awaiting = set()

    def dispose(self) -> None:
        self.reset()
        self._closed = True
