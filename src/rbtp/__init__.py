"""Reliable Backchannel Transfer Protocol (RBTP)

Moves a message over a lossy one-way primary channel, with selective
acknowledgments returned over a separate, much slower backchannel:
- bit-level and delimited text field codecs for framing
- sync sender/receiver state machines driven by ticks and inbound frames
- range-compressed acks so the backchannel stays small
"""

from .bits import BitCodec, Field, FieldKind, compile_bits
from .checksum import checksum
from .chunker import Chunk, reassemble, split
from .errors import FieldValueError, RbtpError, SchemaError, SessionClosedError
from .packet import AckFrame, DataFrame
from .ranges import AckRange, expand_ranges, schedule_ranges
from .receiver import ChunkEvent, ReceiverSession, ReceiverState
from .sender import SenderSession, SenderState, SendProgress
from .session import ReceiveUpdate, Receiver, Sender, SendUpdate, TransferOptions, Transport
from .text import TextCodec, compile_text

__all__ = [
    "AckFrame",
    "AckRange",
    "BitCodec",
    "Chunk",
    "ChunkEvent",
    "DataFrame",
    "Field",
    "FieldKind",
    "FieldValueError",
    "RbtpError",
    "ReceiveUpdate",
    "Receiver",
    "ReceiverSession",
    "ReceiverState",
    "SchemaError",
    "SendProgress",
    "SendUpdate",
    "Sender",
    "SenderSession",
    "SenderState",
    "SessionClosedError",
    "TextCodec",
    "Transport",
    "TransferOptions",
    "checksum",
    "compile_bits",
    "compile_text",
    "expand_ranges",
    "reassemble",
    "schedule_ranges",
    "split",
]
