"""Decoding of the datagrams that publishers send to the broker.

A datagram holds a topic in its first 50 bytes, padded with NUL bytes, one
byte giving the data type, and then the content in the layout of that type.
"""

from __future__ import annotations

import struct
from enum import IntEnum

TOPIC_LEN = 50
MAX_CONTENT_LEN = 1500
MAX_DATAGRAM_LEN = TOPIC_LEN + 1 + 1502

_ENCODING = "utf-8"
_ERRORS = "surrogateescape"

_INT = struct.Struct("!BI")
_SHORT_REAL = struct.Struct("!H")
_FLOAT = struct.Struct("!BIB")
_SINGLE = struct.Struct("f")


class DataType(IntEnum):
    """Data type codes carried right after the topic."""

    INT = 0
    SHORT_REAL = 1
    FLOAT = 2
    STRING = 3


def _c_string(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode(_ENCODING, _ERRORS)


def _unpack(layout: struct.Struct, payload: bytes, dtype: DataType) -> tuple:
    try:
        return layout.unpack_from(payload)
    except struct.error as exc:
        raise ValueError(f"datagram too short for {dtype.name} content") from exc


def parse_topic(datagram: bytes) -> str:
    """Return the topic held in the first 50 bytes of ``datagram``."""
    return _c_string(datagram[:TOPIC_LEN])


def _format_value(dtype: DataType, payload: bytes) -> str:
    if dtype is DataType.INT:
        sign, value = _unpack(_INT, payload, dtype)
        text = str(value)
        return f"-{text}" if sign and value else text
    if dtype is DataType.SHORT_REAL:
        (raw,) = _unpack(_SHORT_REAL, payload, dtype)
        (value,) = _SINGLE.unpack(_SINGLE.pack(raw / 100.0))
        return f"{value:.2f}"
    if dtype is DataType.FLOAT:
        sign, raw, power = _unpack(_FLOAT, payload, dtype)
        value = raw / 10.0**power
        if sign:
            value = -value
        return f"{value:f}"
    return _c_string(payload)


def format_notification(datagram: bytes) -> str:
    """Return the text delivered to subscribers for ``datagram``.

    The text is ``"<topic> - <TYPE> - <value>"``; for an unknown type code
    only ``"<topic> - "`` is produced. Raises ValueError if the datagram is
    too short for its type.
    """
    if len(datagram) <= TOPIC_LEN:
        raise ValueError("datagram too short to hold a data type")
    topic = parse_topic(datagram)
    payload = datagram[TOPIC_LEN + 1:]
    try:
        dtype = DataType(datagram[TOPIC_LEN])
    except ValueError:
        return f"{topic} - "
    return f"{topic} - {dtype.name} - {_format_value(dtype, payload)}"