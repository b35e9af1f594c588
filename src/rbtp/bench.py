from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Union

from .constants import TEXT_ENCODING
from .net import Impairment, LoopbackChannel
from .receiver import ReceiverSession
from .sender import SenderSession


@dataclass(frozen=True, slots=True)
class SimulationResult:
    ticks: int
    frames_sent: int
    acks_sent: int
    receiver_complete: bool
    sender_complete: bool
    matches: bool


def run_simulation(
    message: Union[bytes, str],
    *,
    chunk_size: int = 16,
    primary_loss: float = 0.2,
    backchannel_loss: float = 0.5,
    ack_every: int = 5,
    max_ticks: int = 10_000,
    seed: int = 0,
    rearm_duplicates: bool = True,
) -> SimulationResult:
    """Drive a sender and a receiver tick by tick over two lossy loopbacks.

    The sender emits one frame per tick; the receiver acks every
    ``ack_every`` ticks since the backchannel is much slower.
    """
    data = message.encode(TEXT_ENCODING) if isinstance(message, str) else message
    rng = random.Random(seed)
    primary = LoopbackChannel(Impairment(loss_rate=primary_loss, rng=rng), name="primary")
    backchannel = LoopbackChannel(Impairment(loss_rate=backchannel_loss, rng=rng), name="backchannel")

    sender = SenderSession(chunk_size=chunk_size)
    receiver = ReceiverSession(rearm_duplicates=rearm_duplicates)
    primary.on_frame(receiver.on_primary_frame)
    backchannel.on_frame(sender.on_backchannel_frame)

    sender.send(data)
    ticks = 0
    while ticks < max_ticks and not sender.is_complete:
        ticks += 1
        frame = sender.next_frame()
        if frame is not None:
            primary.emit(frame)
        if ticks % ack_every == 0:
            ack = receiver.on_ack_tick()
            if ack is not None:
                backchannel.emit(ack)

    return SimulationResult(
        ticks=ticks,
        frames_sent=primary.emitted,
        acks_sent=backchannel.emitted,
        receiver_complete=receiver.is_complete,
        sender_complete=sender.is_complete,
        matches=receiver.message == data,
    )
