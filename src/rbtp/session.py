"""Asyncio drivers that pace the sync sessions and wire them to transports.

The physical channels (screen/camera, speaker/microphone, sockets) are
supplied by the host through the :class:`Transport` protocol.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, Callable, Optional, Protocol, Union

from .chunker import Chunk
from .constants import DEFAULT_ACK_INTERVAL, DEFAULT_CHUNK_SIZE, DEFAULT_FRAME_RATE
from .receiver import ReceiverSession
from .sender import SenderSession, SendProgress

log = logging.getLogger(__name__)


class Transport(Protocol):
    def emit(self, frame: bytes) -> None: ...

    def on_frame(self, callback: Callable[[bytes], object]) -> None: ...


@dataclass(frozen=True, slots=True)
class TransferOptions:
    chunk_size: int = DEFAULT_CHUNK_SIZE
    frame_rate: float = DEFAULT_FRAME_RATE
    ack_interval: float = DEFAULT_ACK_INTERVAL
    rearm_duplicates: bool = True

    def __post_init__(self) -> None:
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.frame_rate <= 0:
            raise ValueError(f"frame_rate must be positive, got {self.frame_rate}")
        if self.ack_interval <= 0:
            raise ValueError(f"ack_interval must be positive, got {self.ack_interval}")


@dataclass(frozen=True, slots=True)
class SendUpdate:
    frame: bytes
    progress: SendProgress


@dataclass(frozen=True, slots=True)
class ReceiveUpdate:
    chunk: Optional[Chunk]
    received: int
    total: int
    is_complete: bool
    message: Optional[bytes] = None
    checksum: Optional[str] = None


class Sender:
    def __init__(
        self,
        backchannel: Transport,
        options: TransferOptions | None = None,
        primary: Transport | None = None,
    ):
        self.options = options or TransferOptions()
        self.session = SenderSession(chunk_size=self.options.chunk_size)
        self.primary = primary
        backchannel.on_frame(self.session.on_backchannel_frame)

    async def send(
        self, message: Union[bytes, str], chunk_size: Optional[int] = None
    ) -> AsyncIterator[SendUpdate]:
        """Yield one frame per tick until the receiver has acknowledged every chunk."""
        self.session.send(message, chunk_size)
        delay = 1.0 / self.options.frame_rate

        while True:
            frame = self.session.next_frame()
            if frame is None:
                break
            if self.primary is not None:
                self.primary.emit(frame)
            yield SendUpdate(frame=frame, progress=self.session.progress)
            await asyncio.sleep(delay)

    def dispose(self) -> None:
        self.session.dispose()


class Receiver:
    def __init__(self, backchannel: Transport, options: TransferOptions | None = None):
        self.options = options or TransferOptions()
        self.session = ReceiverSession(rearm_duplicates=self.options.rearm_duplicates)
        self.backchannel = backchannel
        self._ack_task: Optional[asyncio.Task[None]] = None

    async def receive(self, frames: AsyncIterable[bytes]) -> AsyncIterator[ReceiveUpdate]:
        """Yield an update for every new chunk read from ``frames``.

        Acknowledgments keep flowing after completion, until ``dispose()``,
        so a sender whose last acks were lost can still finish.
        """
        self.session.reset()
        self._start_acks()

        async for raw in frames:
            event = self.session.on_primary_frame(raw)
            if event is None:
                continue
            yield ReceiveUpdate(
                chunk=event.chunk,
                received=event.received,
                total=event.total,
                is_complete=event.is_complete,
                message=event.message,
                checksum=event.checksum,
            )

    def flush_ack(self) -> bool:
        frame = self.session.on_ack_tick()
        if frame is None:
            return False
        try:
            self.backchannel.emit(frame)
        except Exception:
            # same as a lost ack: duplicates re-arm the ranges later
            log.warning("backchannel emit failed, ack dropped", exc_info=True)
            return False
        return True

    def _start_acks(self) -> None:
        if self._ack_task is None or self._ack_task.done():
            self._ack_task = asyncio.get_running_loop().create_task(self._ack_loop())

    async def _ack_loop(self) -> None:
        while True:
            await asyncio.sleep(self.options.ack_interval)
            self.flush_ack()

    def dispose(self) -> None:
        if self._ack_task is not None:
            self._ack_task.cancel()
            self._ack_task = None
        self.session.dispose()
