from __future__ import annotations

import pytest

from rbtp.errors import SessionClosedError
from rbtp.packet import AckFrame, DataFrame
from rbtp.sender import SenderSession, SenderState


def frames(s: SenderSession, n: int) -> list[DataFrame]:
    out = []
    for _ in range(n):
        raw = s.next_frame()
        assert raw is not None
        out.append(DataFrame.from_bytes(raw))
    return out


def test_idle_sends_nothing():
    s = SenderSession()
    assert s.state is SenderState.IDLE
    assert s.next_frame() is None
    assert s.apply_ack([(0, 3)]) == 0


def test_round_robin_cycles_all_chunks():
    s = SenderSession(chunk_size=3)
    s.send(b"abcdefghij")
    assert s.state is SenderState.SENDING
    got = frames(s, 6)
    assert [f.index for f in got] == [0, 1, 2, 3, 0, 1]
    assert {f.total for f in got} == {4}
    assert got[3].payload == b"j"
    assert all(f.checksum == s.checksum for f in got)


def test_skips_acknowledged():
    s = SenderSession(chunk_size=3)
    s.send(b"abcdefghij")
    assert s.apply_ack([(1, 2)]) == 2
    assert [f.index for f in frames(s, 4)] == [0, 3, 0, 3]


def test_wrap_ack_and_completion():
    s = SenderSession(chunk_size=3)
    s.send(b"abcdefghij")
    s.apply_ack([(3, 0)])
    assert [f.index for f in frames(s, 2)] == [1, 2]
    s.apply_ack([(1, 2)])
    assert s.is_complete
    assert s.next_frame() is None
    assert s.acknowledged == frozenset(range(4))


def test_completion_detected_by_next_frame():
    s = SenderSession(chunk_size=3)
    s.send(b"abcdefghij")
    s._acked.update(range(4))
    assert s.next_frame() is None
    assert s.state is SenderState.COMPLETE


def test_stale_ranges_ignored():
    s = SenderSession(chunk_size=3)
    s.send(b"abcdefghij")
    assert s.apply_ack([(10, 20)]) == 0
    assert s.apply_ack([(3, 9)]) == 1
    assert s.progress.acknowledged == 1


def test_backchannel_frames():
    s = SenderSession(chunk_size=3)
    s.send(b"abcdefghij")
    assert s.on_backchannel_frame(AckFrame.of([(0, 1)]).to_bytes())
    assert not s.on_backchannel_frame(b"garbage")
    assert s.acknowledged == frozenset({0, 1})


def test_new_send_resets_state():
    s = SenderSession(chunk_size=3)
    s.send(b"abcdefghij")
    first = s.checksum
    s.apply_ack([(0, 3)])
    assert s.is_complete

    s.send("xyz", chunk_size=1)
    assert s.checksum != first
    assert s.state is SenderState.SENDING
    assert s.total == 3
    assert s.acknowledged == frozenset()
    assert frames(s, 1)[0].payload == b"x"


def test_empty_message_is_complete():
    s = SenderSession()
    s.send(b"")
    assert s.is_complete
    assert s.next_frame() is None


def test_progress_reports_last_index():
    s = SenderSession(chunk_size=3)
    s.send(b"abcdefghij")
    s.next_frame()
    s.next_frame()
    p = s.progress
    assert (p.index, p.total, p.acknowledged, p.is_complete) == (1, 4, 0, False)


def test_reset_and_dispose():
    s = SenderSession(chunk_size=3)
    s.send(b"abcdefghij")
    s.reset()
    assert s.state is SenderState.IDLE
    assert s.total == 0
    s.dispose()
    with pytest.raises(SessionClosedError):
        s.send(b"abc")
