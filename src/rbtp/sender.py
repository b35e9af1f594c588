from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from .checksum import checksum
from .chunker import Chunk, split
from .constants import DEFAULT_CHUNK_SIZE, TEXT_ENCODING
from .errors import SessionClosedError
from .packet import AckFrame, DataFrame
from .ranges import expand_ranges

log = logging.getLogger(__name__)


class SenderState(enum.Enum):
    IDLE = "idle"
    SENDING = "sending"
    COMPLETE = "complete"


@dataclass(frozen=True, slots=True)
class SendProgress:
    index: Optional[int]
    total: int
    acknowledged: int
    is_complete: bool


@dataclass(slots=True)
class SenderSession:
    """Round-robin broadcaster of the chunks the receiver has not acknowledged.

    There are no retransmission timers: every tick re-sends the next
    unacknowledged chunk until the backchannel has confirmed all of them.
    """

    chunk_size: int = DEFAULT_CHUNK_SIZE
    state: SenderState = field(default=SenderState.IDLE, init=False)
    checksum: str = field(default="", init=False)
    _chunks: list[Chunk] = field(default_factory=list, init=False, repr=False)
    _acked: set[int] = field(default_factory=set, init=False, repr=False)
    _cursor: int = field(default=0, init=False, repr=False)
    _last_index: Optional[int] = field(default=None, init=False, repr=False)
    _closed: bool = field(default=False, init=False, repr=False)

    @property
    def total(self) -> int:
        return len(self._chunks)

    @property
    def acknowledged(self) -> frozenset[int]:
        return frozenset(self._acked)

    @property
    def is_complete(self) -> bool:
        return self.state is SenderState.COMPLETE

    @property
    def progress(self) -> SendProgress:
        return SendProgress(
            index=self._last_index,
            total=self.total,
            acknowledged=len(self._acked),
            is_complete=self.is_complete,
        )

    def send(self, message: Union[bytes, str], chunk_size: Optional[int] = None) -> None:
        if self._closed:
            raise SessionClosedError("sender session has been disposed")

        data = message.encode(TEXT_ENCODING) if isinstance(message, str) else bytes(message)
        self._chunks = split(data, self.chunk_size if chunk_size is None else chunk_size)
        self.checksum = checksum(data)
        self._acked = set()
        self._cursor = 0
        self._last_index = None
        self.state = SenderState.SENDING if self._chunks else SenderState.COMPLETE
        log.info(
            "send start; checksum=%s chunks=%d size=%d bytes",
            self.checksum,
            self.total,
            len(data),
        )

    def next_frame(self) -> Optional[bytes]:
        """Frame for the next unacknowledged chunk, or None when nothing is left to send."""
        if self.state is not SenderState.SENDING:
            return None

        total = self.total
        for step in range(total):
            index = (self._cursor + step) % total
            if index not in self._acked:
                break
        else:
            self._finish()
            return None

        self._cursor = (index + 1) % total
        self._last_index = index
        chunk = self._chunks[index]
        log.debug("frame %d/%d (%d bytes)", index, total, len(chunk.payload))
        return DataFrame(index, total, self.checksum, chunk.payload).to_bytes()

    def apply_ack(self, ranges: Iterable[tuple[int, int]]) -> int:
        if self.state is SenderState.IDLE:
            return 0

        before = len(self._acked)
        self._acked.update(expand_ranges(ranges, self.total))
        added = len(self._acked) - before
        if added:
            log.debug("ack +%d; %d/%d acknowledged", added, len(self._acked), self.total)
        if len(self._acked) == self.total:
            self._finish()
        return added

    def on_backchannel_frame(self, raw: bytes) -> bool:
        frame = AckFrame.from_bytes(raw)
        if frame is None:
            log.debug("ignoring malformed backchannel frame (%d bytes)", len(raw))
            return False
        self.apply_ack(frame.ranges)
        return True

    def _finish(self) -> None:
        if self.state is not SenderState.COMPLETE:
            log.info("all %d chunks acknowledged; checksum=%s", self.total, self.checksum)
        self.state = SenderState.COMPLETE

    def reset(self) -> None:
        self.state = SenderState.IDLE
        self.checksum = ""
        self._chunks = []
        self._acked = set()
        self._cursor = 0
        self._last_index = None

    def dispose(self) -> None:
        self.reset()
        self._closed = True
