"""Bit-level field codec.

A schema is an ordered list of fixed-width fields packed MSB-first into a
big-endian bitstream. The textual form reads::

    <flag:bool-1><count:num-3><type-4>

where a field without a kind is a raw bit string. The final partial byte is
zero padded, so the encoded length is ``ceil(bit_length / 8)``.
"""
from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Mapping, Sequence, Union

from .constants import MAX_UINT_BITS
from .errors import FieldValueError, SchemaError

Value = Union[bool, int, str]
Record = dict[str, Value]

_FIELD_RE = re.compile(r"<([^:>\-]+)(?::([^>\-]+))?-(\d+)>")


class FieldKind(enum.Enum):
    BOOL = "bool"
    UINT = "num"
    RAW = "bits"


@dataclass(frozen=True, slots=True)
class Field:
    name: str
    kind: FieldKind
    width: int

    def validate(self) -> None:
        if self.width < 1:
            raise SchemaError(f"field {self.name!r} must be at least 1 bit wide")
        if self.kind is FieldKind.BOOL and self.width != 1:
            raise SchemaError(f"boolean field {self.name!r} must be 1 bit, got {self.width}")
        if self.kind is FieldKind.UINT and self.width > MAX_UINT_BITS:
            raise SchemaError(
                f"number field {self.name!r} cannot exceed {MAX_UINT_BITS} bits, got {self.width}"
            )

    def pack(self, value: Value) -> int:
        if self.kind is FieldKind.BOOL:
            if not isinstance(value, bool):
                raise FieldValueError(f"field {self.name!r} expects a bool, got {value!r}")
            return int(value)

        if self.kind is FieldKind.UINT:
            if isinstance(value, bool) or not isinstance(value, int):
                raise FieldValueError(f"field {self.name!r} expects an int, got {value!r}")
            if value < 0 or value >= 1 << self.width:
                raise FieldValueError(f"number {value} cannot be encoded in {self.width} bits")
            return value

        if (
            not isinstance(value, str)
            or len(value) != self.width
            or value.strip("01") != ""
        ):
            raise FieldValueError(f"invalid value for {self.name!r}: must be {self.width} bits")
        return int(value, 2)

    def unpack(self, raw: int) -> Value:
        if self.kind is FieldKind.BOOL:
            return raw == 1
        if self.kind is FieldKind.UINT:
            return raw
        return format(raw, f"0{self.width}b")


def parse_pattern(pattern: str) -> list[Field]:
    fields: list[Field] = []
    pos = 0
    for m in _FIELD_RE.finditer(pattern):
        if m.start() != pos:
            raise SchemaError(f"unexpected text in pattern at offset {pos}: {pattern[pos:m.start()]!r}")
        name, kind, width = m.group(1), m.group(2) or FieldKind.RAW.value, int(m.group(3))
        try:
            fields.append(Field(name, FieldKind(kind), width))
        except ValueError:
            raise SchemaError(f"unknown field kind {kind!r} for {name!r}") from None
        pos = m.end()

    if pos != len(pattern):
        raise SchemaError(f"unexpected text in pattern at offset {pos}: {pattern[pos:]!r}")
    return fields


class BitCodec:
    def __init__(self, fields: Sequence[Field]):
        if not fields:
            raise SchemaError("schema must declare at least one field")

        seen: set[str] = set()
        for f in fields:
            f.validate()
            if f.name in seen:
                raise SchemaError(f"duplicate field {f.name!r}")
            seen.add(f.name)

        self.fields = tuple(fields)
        self.bit_length = sum(f.width for f in self.fields)
        self.byte_length = (self.bit_length + 7) // 8

    def encode(self, record: Mapping[str, Value]) -> bytes:
        acc = 0
        for f in self.fields:
            if f.name not in record:
                raise FieldValueError(f"missing required field {f.name!r}")
            acc = (acc << f.width) | f.pack(record[f.name])

        acc <<= self.byte_length * 8 - self.bit_length
        return acc.to_bytes(self.byte_length, "big")

    def decode(self, data: bytes) -> Record | None:
        """Return the record packed in ``data``, or None if it is too short."""
        if len(data) * 8 < self.bit_length:
            return None

        acc = int.from_bytes(data[: self.byte_length], "big")
        shift = self.byte_length * 8
        record: Record = {}
        for f in self.fields:
            shift -= f.width
            record[f.name] = f.unpack((acc >> shift) & ((1 << f.width) - 1))
        return record


def compile_bits(schema: Union[str, Sequence[Field]]) -> BitCodec:
    if isinstance(schema, str):
        return BitCodec(parse_pattern(schema))
    return BitCodec(list(schema))


def to_binary_string(data: bytes) -> str:
    return "".join(f"{b:08b}" for b in data)


def from_binary_string(bits: str) -> bytes:
    if bits.strip("01") != "":
        raise ValueError("binary string may only contain '0' and '1'")
    n = (len(bits) + 7) // 8
    return bytes(int(bits[i * 8 : i * 8 + 8].ljust(8, "0"), 2) for i in range(n))
