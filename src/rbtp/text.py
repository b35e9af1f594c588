"""Delimited text codec for frames whose length depends on the data.

Patterns interleave literal text with ``<name:type>`` placeholders::

    RBTP<index:num>/<total:num>:<checksum:text-8>$

Supported types are ``text`` (default), ``num``, ``bool``, ``list``,
``nums``, ``pairs``, ``numPairs`` and ``enum``. ``text`` and ``num`` accept
a fixed width suffix (``text-8``, ``num-3``); on ``list`` and ``nums`` the
width applies to every item and the items are written back to back
(``list-3``). An ``enum-[low,mid,high]`` field is written as one letter,
``a`` for the first choice, ``b`` for the second and so on.

A trailing ``$`` declares a free-form ``payload`` field carried after the
delimiter. A trailing ``!`` declares a fixed header instead: every field has
a fixed width, fields follow each other with no literal text in between,
and the payload starts right after the last one::

    HDR:<kind:enum-[msg,ack]><seq:num-3>!

Decoding never raises on malformed input, it returns None: truncated and
garbled frames are routine on a lossy channel.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from .constants import FIXED_HEADER_MARKER, LIST_DELIMITER, PAIRS_DELIMITER, PAYLOAD_DELIMITER
from .errors import FieldValueError, SchemaError

PAYLOAD_FIELD = "payload"
MAX_ENUM_CHOICES = 26

_PLACEHOLDER_RE = re.compile(r"<([^:>]+)(?::([A-Za-z]+)(?:-(\d+))?(?:-?\[([^\]>]*)\])?)?>")
_SIZED_TYPES = ("text", "num", "list", "nums")


def _is_uint(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _parse_uint(text: str) -> int:
    if not (text.isascii() and text.isdigit()):
        raise ValueError(f"not a number: {text!r}")
    return int(text)


def _split(text: str, sep: str) -> list[str]:
    return text.split(sep) if text else []


def _slices(text: str, size: int) -> list[str]:
    if len(text) % size:
        raise ValueError(f"length {len(text)} is not a multiple of {size}")
    return [text[i : i + size] for i in range(0, len(text), size)]


def _items(name: str, value: Any) -> list[Any]:
    if isinstance(value, (str, bytes)):
        raise FieldValueError(f"field {name!r} expects a sequence, got {value!r}")
    return list(value)


def _fmt_text(p: Placeholder, value: Any) -> str:
    if not isinstance(value, str):
        raise FieldValueError(f"field {p.name!r} expects text, got {value!r}")
    if p.size is not None and len(value) != p.size:
        raise FieldValueError(f"field {p.name!r} must be exactly {p.size} characters")
    return value


def _fmt_num(p: Placeholder, value: Any) -> str:
    if not _is_uint(value):
        raise FieldValueError(f"field {p.name!r} expects a non-negative int, got {value!r}")
    s = str(value)
    if p.size is not None:
        if len(s) > p.size:
            raise FieldValueError(f"value {value} exceeds fixed width of {p.size}")
        s = s.zfill(p.size)
    return s


def _fmt_bool(p: Placeholder, value: Any) -> str:
    if not isinstance(value, bool):
        raise FieldValueError(f"field {p.name!r} expects a bool, got {value!r}")
    return "true" if value else "false"


def _fmt_list(p: Placeholder, value: Any) -> str:
    items = _items(p.name, value)
    if p.size is not None:
        return "".join(_fmt_text(p, item) for item in items)
    for item in items:
        if not isinstance(item, str) or LIST_DELIMITER in item:
            raise FieldValueError(f"invalid list item for {p.name!r}: {item!r}")
    if items == [""]:
        # would decode as an empty list
        raise FieldValueError(f"field {p.name!r} cannot hold a single empty item")
    return LIST_DELIMITER.join(items)


def _fmt_nums(p: Placeholder, value: Any) -> str:
    items = _items(p.name, value)
    if p.size is not None:
        return "".join(_fmt_num(p, n) for n in items)
    if not all(_is_uint(n) for n in items):
        raise FieldValueError(f"field {p.name!r} expects non-negative ints, got {items!r}")
    return LIST_DELIMITER.join(map(str, items))


def _pairs(name: str, value: Any) -> list[tuple[Any, Any]]:
    pairs = []
    for pair in _items(name, value):
        if isinstance(pair, (str, bytes)) or len(pair) != 2:
            raise FieldValueError(f"field {name!r} expects pairs, got {pair!r}")
        pairs.append((pair[0], pair[1]))
    return pairs


def _fmt_pairs(p: Placeholder, value: Any) -> str:
    items = [item for pair in _pairs(p.name, value) for item in pair]
    for item in items:
        if not isinstance(item, str) or PAIRS_DELIMITER in item:
            raise FieldValueError(f"invalid pair item for {p.name!r}: {item!r}")
    return PAIRS_DELIMITER.join(items)


def _fmt_num_pairs(p: Placeholder, value: Any) -> str:
    items = [item for pair in _pairs(p.name, value) for item in pair]
    if not all(_is_uint(n) for n in items):
        raise FieldValueError(f"field {p.name!r} expects pairs of non-negative ints")
    return PAIRS_DELIMITER.join(map(str, items))


def _fmt_enum(p: Placeholder, value: Any) -> str:
    if value not in p.choices:
        raise FieldValueError(f"field {p.name!r} expects one of {list(p.choices)}, got {value!r}")
    return chr(ord("a") + p.choices.index(value))


def _parse_text(p: Placeholder, text: str) -> str:
    if p.size is not None and len(text) != p.size:
        raise ValueError("fixed width mismatch")
    return text


def _parse_num(p: Placeholder, text: str) -> int:
    if p.size is not None and len(text) != p.size:
        raise ValueError("fixed width mismatch")
    return _parse_uint(text)


def _parse_bool(p: Placeholder, text: str) -> bool:
    if text not in ("true", "false"):
        raise ValueError(f"not a bool: {text!r}")
    return text == "true"


def _parse_list(p: Placeholder, text: str) -> list[str]:
    if p.size is not None:
        return _slices(text, p.size)
    return _split(text, LIST_DELIMITER)


def _parse_nums(p: Placeholder, text: str) -> list[int]:
    items = _slices(text, p.size) if p.size is not None else _split(text, LIST_DELIMITER)
    return [_parse_uint(t) for t in items]


def _parse_pairs(p: Placeholder, text: str) -> list[tuple[str, str]]:
    items = _split(text, PAIRS_DELIMITER)
    if len(items) % 2:
        raise ValueError("odd number of pair items")
    return list(zip(items[::2], items[1::2]))


def _parse_num_pairs(p: Placeholder, text: str) -> list[tuple[int, int]]:
    return [(_parse_uint(a), _parse_uint(b)) for a, b in _parse_pairs(p, text)]


def _parse_enum(p: Placeholder, text: str) -> str:
    i = ord(text) - ord("a") if len(text) == 1 else -1
    if not 0 <= i < len(p.choices):
        raise ValueError(f"not an enum letter: {text!r}")
    return p.choices[i]


_TYPES: dict[str, tuple[Callable[..., str], Callable[..., Any]]] = {
    "text": (_fmt_text, _parse_text),
    "num": (_fmt_num, _parse_num),
    "bool": (_fmt_bool, _parse_bool),
    "list": (_fmt_list, _parse_list),
    "nums": (_fmt_nums, _parse_nums),
    "pairs": (_fmt_pairs, _parse_pairs),
    "numPairs": (_fmt_num_pairs, _parse_num_pairs),
    "enum": (_fmt_enum, _parse_enum),
}


@dataclass(frozen=True, slots=True)
class Placeholder:
    name: str
    type: str
    size: Optional[int]
    suffix: str  # literal text that follows this field
    choices: tuple[str, ...] = ()

    @property
    def width(self) -> Optional[int]:
        """Exact encoded length, or None when it depends on the value."""
        if self.type == "enum":
            return 1
        if self.type in ("text", "num"):
            return self.size
        return None

    def format(self, value: Any) -> str:
        fmt, _ = _TYPES[self.type]
        try:
            out = fmt(self, value)
        except TypeError:
            raise FieldValueError(f"field {self.name!r} got an unsupported value {value!r}") from None
        # decode cuts at the first occurrence of the suffix
        if self.suffix and (out + self.suffix).find(self.suffix) != len(out):
            raise FieldValueError(f"value for {self.name!r} runs into delimiter {self.suffix!r}")
        return out

    def parse(self, text: str) -> Any:
        _, parse = _TYPES[self.type]
        return parse(self, text)


def _choices(name: str, raw: str) -> tuple[str, ...]:
    choices = tuple(raw.split(LIST_DELIMITER)) if raw else ()
    if not choices or "" in choices:
        raise SchemaError(f"enum field {name!r} needs a list of non-empty choices")
    if len(set(choices)) != len(choices):
        raise SchemaError(f"enum field {name!r} repeats a choice")
    if len(choices) > MAX_ENUM_CHOICES:
        raise SchemaError(f"enum field {name!r} cannot have more than {MAX_ENUM_CHOICES} choices")
    return choices


class TextCodec:
    def __init__(self, pattern: str):
        self.pattern = pattern
        self.fixed_header = pattern.endswith(FIXED_HEADER_MARKER)
        self.has_payload = self.fixed_header or pattern.endswith(PAYLOAD_DELIMITER)
        body = pattern[:-1] if self.has_payload else pattern

        statics: list[str] = []
        raw: list[tuple[str, str, Optional[int], tuple[str, ...]]] = []
        pos = 0
        for m in _PLACEHOLDER_RE.finditer(body):
            statics.append(body[pos : m.start()])
            name, type_, size, choices = m.group(1), m.group(2) or "text", m.group(3), m.group(4)
            if type_ not in _TYPES:
                raise SchemaError(f"unknown field type {type_!r} for {name!r}")
            if size is not None and type_ not in _SIZED_TYPES:
                raise SchemaError(f"field {name!r} of type {type_!r} cannot have a fixed width")
            if size is not None and int(size) < 1:
                raise SchemaError(f"field {name!r} must be at least 1 character wide")
            if (choices is not None) != (type_ == "enum"):
                raise SchemaError(f"field {name!r}: enum needs a list of choices, other types take none")
            raw.append((
                name,
                type_,
                int(size) if size is not None else None,
                _choices(name, choices) if choices is not None else (),
            ))
            pos = m.end()
        statics.append(body[pos:])

        if not raw:
            raise SchemaError(f"pattern {pattern!r} declares no fields")
        if self.has_payload and not self.fixed_header and any(PAYLOAD_DELIMITER in s for s in statics):
            raise SchemaError(f"literal text may not contain the payload delimiter {PAYLOAD_DELIMITER!r}")

        names = [name for name, _, _, _ in raw]
        if len(set(names)) != len(names):
            raise SchemaError(f"duplicate field in pattern {pattern!r}")
        if self.has_payload and PAYLOAD_FIELD in names:
            raise SchemaError(f"{PAYLOAD_FIELD!r} is reserved for the trailing payload")

        self.prefix = statics[0]
        self.fields: tuple[Placeholder, ...] = tuple(
            Placeholder(name, type_, size, statics[i + 1], choices)
            for i, (name, type_, size, choices) in enumerate(raw)
        )

        if self.fixed_header:
            if any(statics[1:]):
                raise SchemaError("fixed header fields cannot be separated by literal text")
            for f in self.fields:
                if f.width is None:
                    raise SchemaError(f"field {f.name!r} needs a fixed width in a fixed header")
            self.header_length: Optional[int] = len(self.prefix) + sum(f.width for f in self.fields)
        else:
            for f in self.fields[:-1]:
                if not f.suffix and f.width is None:
                    raise SchemaError(f"field {f.name!r} needs a delimiter or a fixed width")
            self.header_length = None

    def encode(self, record: Mapping[str, Any]) -> str:
        parts = [self.prefix]
        for f in self.fields:
            if f.name not in record:
                raise FieldValueError(f"missing required field {f.name!r}")
            value = f.format(record[f.name])
            if self.has_payload and not self.fixed_header and PAYLOAD_DELIMITER in value:
                raise FieldValueError(f"value for {f.name!r} contains {PAYLOAD_DELIMITER!r}")
            parts.append(value)
            parts.append(f.suffix)

        if self.has_payload:
            if PAYLOAD_FIELD not in record:
                raise FieldValueError(f"missing required field {PAYLOAD_FIELD!r}")
            payload = record[PAYLOAD_FIELD]
            if not isinstance(payload, str):
                raise FieldValueError(f"payload must be text, got {type(payload).__name__}")
            if not self.fixed_header:
                parts.append(PAYLOAD_DELIMITER)
            parts.append(payload)
        return "".join(parts)

    def decode(self, text: str) -> Optional[dict[str, Any]]:
        record: dict[str, Any] = {}
        header = text
        if self.header_length is not None:
            if len(text) < self.header_length:
                return None
            header, payload = text[: self.header_length], text[self.header_length :]
            record[PAYLOAD_FIELD] = payload
        elif self.has_payload:
            header, sep, payload = text.partition(PAYLOAD_DELIMITER)
            if not sep:
                return None
            record[PAYLOAD_FIELD] = payload

        if not header.startswith(self.prefix):
            return None

        pos = len(self.prefix)
        for f in self.fields:
            if f.width is not None and not f.suffix:
                end = pos + f.width
                nxt = end
            elif f.suffix:
                end = header.find(f.suffix, pos)
                if end < 0:
                    return None
                nxt = end + len(f.suffix)
            else:
                end = nxt = len(header)

            try:
                record[f.name] = f.parse(header[pos:end])
            except ValueError:
                return None
            pos = nxt

        if pos != len(header):
            return None
        return record


def compile_text(pattern: str) -> TextCodec:
    return TextCodec(pattern)
