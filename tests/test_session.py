from __future__ import annotations

import asyncio
import logging
import random

import pytest

from rbtp.checksum import checksum
from rbtp.net import Impairment, LoopbackChannel
from rbtp.packet import DataFrame
from rbtp.session import ReceiveUpdate, Receiver, Sender, TransferOptions

MESSAGE = "Über lossy links, one frame at a time. " * 6


def test_options_validation():
    with pytest.raises(ValueError):
        TransferOptions(chunk_size=0)
    with pytest.raises(ValueError):
        TransferOptions(frame_rate=0)
    with pytest.raises(ValueError):
        TransferOptions(ack_interval=-1)


def test_transfer_over_lossy_loopback():
    async def main() -> ReceiveUpdate | None:
        primary = LoopbackChannel(Impairment(loss_rate=0.2, rng=random.Random(1)), name="primary")
        backchannel = LoopbackChannel(Impairment(loss_rate=0.5, rng=random.Random(2)), name="back")
        opts = TransferOptions(chunk_size=16, frame_rate=1000, ack_interval=0.005)
        sender = Sender(backchannel, opts, primary=primary)
        receiver = Receiver(backchannel, opts)

        async def pump() -> int:
            n = 0
            async for update in sender.send(MESSAGE):
                n += 1
                assert update.frame
                assert update.progress.total == sender.session.total
            primary.close()
            return n

        task = asyncio.create_task(pump())
        done = None
        async for update in receiver.receive(primary.frames()):
            if update.is_complete:
                done = update
        sent = await task
        assert sent >= sender.session.total
        assert sender.session.is_complete

        receiver.dispose()
        sender.dispose()
        return done

    done = asyncio.run(asyncio.wait_for(main(), timeout=30))
    assert done is not None
    assert done.message == MESSAGE.encode("utf-8")
    assert done.received == done.total
    assert done.checksum is not None


def test_flush_ack_emits_on_backchannel():
    async def main() -> list[bytes]:
        primary = LoopbackChannel()
        backchannel = LoopbackChannel()
        sender = Sender(LoopbackChannel(), TransferOptions(chunk_size=4), primary=primary)
        receiver = Receiver(backchannel, TransferOptions(ack_interval=60))

        updates = sender.send(b"abcdefgh")
        await updates.__anext__()
        primary.close()
        async for _ in receiver.receive(primary.frames()):
            pass
        assert receiver.flush_ack()
        assert not receiver.flush_ack()
        receiver.dispose()
        await updates.aclose()
        return backchannel.drain()

    assert asyncio.run(main()) == [b"RB0;0"]


class BrokenChannel:
    def emit(self, frame: bytes) -> None:
        raise OSError("backchannel down")

    def on_frame(self, callback) -> None:
        pass


def test_failed_ack_emit_is_logged(caplog):
    receiver = Receiver(BrokenChannel(), TransferOptions(ack_interval=60))
    receiver.session.on_primary_frame(DataFrame(0, 2, checksum(b"ab"), b"a").to_bytes())

    with caplog.at_level(logging.WARNING, logger="rbtp.session"):
        assert not receiver.flush_ack()
    assert "ack dropped" in caplog.text

    # the duplicate re-arms the range once the channel is back
    receiver.backchannel = LoopbackChannel()
    receiver.session.on_primary_frame(DataFrame(0, 2, checksum(b"ab"), b"a").to_bytes())
    assert receiver.flush_ack()
    assert receiver.backchannel.drain() == [b"RB0;0"]
