from __future__ import annotations

import random

import pytest

from rbtp.bits import Field, FieldKind, compile_bits, from_binary_string, to_binary_string
from rbtp.errors import FieldValueError, SchemaError


def test_flag_count_type_packs_into_one_byte():
    codec = compile_bits("<flag:bool-1><count:num-3><type-4>")
    raw = codec.encode({"flag": True, "count": 6, "type": "0000"})
    assert raw == b"\xe0"
    assert to_binary_string(raw) == "11100000"
    assert codec.decode(b"\xe0") == {"flag": True, "count": 6, "type": "0000"}


def test_multi_byte_mixed_fields():
    codec = compile_bits("<version:num-3><flags-5><payload-16>")
    rec = {"version": 5, "flags": "11000", "payload": "1111000011110000"}
    assert codec.encode(rec) == bytes([0xB8, 0xF0, 0xF0])
    # trailing bytes are ignored
    assert codec.decode(bytes([0xB8, 0xF0, 0xF0, 0x00])) == rec


def test_partial_byte_is_zero_padded():
    codec = compile_bits("<flag:bool-1><count:num-8><type-4>")
    raw = codec.encode({"flag": True, "count": 123, "type": "1010"})
    assert codec.byte_length == 2
    assert to_binary_string(raw) == "1011110111010000"
    assert codec.decode(raw) == {"flag": True, "count": 123, "type": "1010"}


def test_sixteen_bits_of_small_fields():
    codec = compile_bits(
        "<a:num-2><b:num-3><c:bool-1><d:bool-1><e:num-3><f:num-2><g:bool-1><h:num-3>"
    )
    rec = {"a": 2, "b": 5, "c": True, "d": True, "e": 6, "f": 1, "g": False, "h": 3}
    raw = codec.encode(rec)
    assert raw == bytes([0xAF, 0x93])
    assert codec.decode(raw) == rec


def test_schema_from_fields():
    codec = compile_bits([Field("on", FieldKind.BOOL, 1), Field("n", FieldKind.UINT, 7)])
    assert codec.encode({"on": False, "n": 127}) == b"\x7f"


def test_short_input_decodes_to_none():
    assert compile_bits("<status-2><data-6>").decode(b"") is None
    assert compile_bits("<a:num-8><b:num-1>").decode(b"\xff") is None


@pytest.mark.parametrize("width,ok,bad", [(2, 3, 4), (4, 15, 16), (8, 255, 256)])
def test_uint_range(width, ok, bad):
    codec = compile_bits(f"<value:num-{width}>")
    codec.encode({"value": ok})
    with pytest.raises(FieldValueError):
        codec.encode({"value": bad})
    with pytest.raises(FieldValueError):
        codec.encode({"value": -1})


@pytest.mark.parametrize("value", [1.5, "3", True, None])
def test_uint_rejects_non_integers(value):
    with pytest.raises(FieldValueError):
        compile_bits("<value:num-3>").encode({"value": value})


@pytest.mark.parametrize("status", ["2", "1", "111", 3])
def test_raw_field_must_be_exact_bits(status):
    codec = compile_bits("<status-2><data-6>")
    with pytest.raises(FieldValueError):
        codec.encode({"status": status, "data": "000000"})


def test_missing_field_raises():
    with pytest.raises(FieldValueError):
        compile_bits("<a:bool-1><b:bool-1>").encode({"a": True})


@pytest.mark.parametrize(
    "pattern",
    [
        "<flag:bool-2>",
        "<value:num-9>",
        "<value:num-0>",
        "<x:float-4>",
        "<a:num-2><a:num-2>",
        "junk<a:num-2>",
        "",
    ],
)
def test_bad_schemas(pattern):
    with pytest.raises(SchemaError):
        compile_bits(pattern)


def test_binary_string_helpers():
    assert from_binary_string("11100000") == b"\xe0"
    assert from_binary_string("101") == b"\xa0"
    with pytest.raises(ValueError):
        from_binary_string("102")


def test_random_schemas_round_trip():
    rng = random.Random(11)
    for _ in range(300):
        fields = []
        record = {}
        for i in range(rng.randrange(1, 9)):
            kind = rng.choice(list(FieldKind))
            if kind is FieldKind.BOOL:
                width, value = 1, rng.random() < 0.5
            elif kind is FieldKind.UINT:
                width = rng.randrange(1, 9)
                value = rng.randrange(1 << width)
            else:
                width = rng.randrange(1, 20)
                value = "".join(rng.choice("01") for _ in range(width))
            fields.append(Field(f"f{i}", kind, width))
            record[f"f{i}"] = value

        codec = compile_bits(fields)
        raw = codec.encode(record)
        assert len(raw) == codec.byte_length
        assert codec.decode(raw) == record
