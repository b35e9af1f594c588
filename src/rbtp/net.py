from __future__ import annotations

import asyncio
import logging
import random
from collections import deque
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Impairment:
    loss_rate: float = 0.0
    duplicate_rate: float = 0.0
    rng: random.Random = field(default_factory=random.Random, compare=False, repr=False)

    def should_drop(self) -> bool:
        return self.rng.random() < self.loss_rate

    def should_duplicate(self) -> bool:
        return self.duplicate_rate > 0 and self.rng.random() < self.duplicate_rate


class LoopbackChannel:
    """One-way in-memory channel that drops and duplicates frames.

    Frames go to registered callbacks when there are any, otherwise they are
    buffered for ``drain()`` or the ``frames()`` async iterator.
    """

    def __init__(self, impairment: Impairment | None = None, name: str = ""):
        self.impairment = impairment or Impairment()
        self.name = name
        self.emitted = 0
        self.dropped = 0
        self.delivered = 0
        self._callbacks: list[Callable[[bytes], object]] = []
        self._buffer: deque[bytes] = deque()
        self._ready = asyncio.Event()
        self._closed = False

    def on_frame(self, callback: Callable[[bytes], object]) -> None:
        self._callbacks.append(callback)

    def emit(self, frame: bytes) -> None:
        if self._closed:
            return
        self.emitted += 1
        if self.impairment.should_drop():
            self.dropped += 1
            log.debug("[%s] DROPPED %d bytes", self.name, len(frame))
            return

        copies = 2 if self.impairment.should_duplicate() else 1
        for _ in range(copies):
            self._deliver(frame)

    def _deliver(self, frame: bytes) -> None:
        self.delivered += 1
        if self._callbacks:
            for cb in self._callbacks:
                cb(frame)
            return
        self._buffer.append(frame)
        self._ready.set()

    def drain(self) -> list[bytes]:
        out = list(self._buffer)
        self._buffer.clear()
        return out

    async def frames(self) -> AsyncIterator[bytes]:
        while True:
            while self._buffer:
                yield self._buffer.popleft()
            if self._closed:
                return
            self._ready.clear()
            await self._ready.wait()

    def close(self) -> None:
        self._closed = True
        self._ready.set()
