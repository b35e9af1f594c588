from __future__ import annotations


class RbtpError(Exception):
    pass


class SchemaError(RbtpError, ValueError):
    """A field schema or text pattern cannot be compiled."""


class FieldValueError(RbtpError, ValueError):
    """A record value does not fit the field it is encoded into."""


class SessionClosedError(RbtpError):
    pass
