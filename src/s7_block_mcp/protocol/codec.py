"""Typed value extraction from a read response.

Offsets are relative to the payload, which starts after the 25-byte read
response header. String fields carry one extra sub-header byte before
their content. Every accessor bounds-checks before indexing.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Callable

from ..errors import ErrorKind, S7Error
from .framing import READ_RESPONSE_HEADER_LEN, STRING_HEADER_LEN


@dataclass(frozen=True)
class FieldType:
    """A fixed-width big-endian field."""

    name: str
    width: int
    struct_format: str

    def unpack(self, data: bytes) -> int | float:
        return struct.unpack(self.struct_format, data)[0]


UINT8 = FieldType("uint8", 1, ">B")
INT8 = FieldType("int8", 1, ">b")
UINT16 = FieldType("uint16", 2, ">H")
INT16 = FieldType("int16", 2, ">h")
UINT32 = FieldType("uint32", 4, ">I")
INT32 = FieldType("int32", 4, ">i")
UINT64 = FieldType("uint64", 8, ">Q")
INT64 = FieldType("int64", 8, ">q")
FLOAT32 = FieldType("float32", 4, ">f")
FLOAT64 = FieldType("float64", 8, ">d")

FIELD_TYPES: dict[str, FieldType] = {
    ft.name: ft
    for ft in (UINT8, INT8, UINT16, INT16, UINT32, INT32, UINT64, INT64, FLOAT32, FLOAT64)
}


def _field_slice(buf: bytes, start: int, width: int) -> bytes:
    if start < READ_RESPONSE_HEADER_LEN or len(buf) < start + width:
        raise S7Error(
            ErrorKind.SHORT_PAYLOAD,
            f"need {start + width} bytes, buffer has {len(buf)}",
        )
    return bytes(buf[start : start + width])


def decode_field(buf: bytes, offset: int, field_type: FieldType) -> int | float:
    """Decode one fixed-width field at a payload offset."""
    data = _field_slice(buf, offset + READ_RESPONSE_HEADER_LEN, field_type.width)
    return field_type.unpack(data)


def _accessor(field_type: FieldType) -> Callable[[bytes, int], int | float]:
    def accessor(buf: bytes, offset: int) -> int | float:
        return decode_field(buf, offset, field_type)

    accessor.__name__ = f"read_{field_type.name}"
    accessor.__qualname__ = accessor.__name__
    accessor.__doc__ = (
        f"Decode a big-endian {field_type.name} ({field_type.width} bytes) "
        f"at a payload offset."
    )
    return accessor


read_uint8 = _accessor(UINT8)
read_int8 = _accessor(INT8)
read_uint16 = _accessor(UINT16)
read_int16 = _accessor(INT16)
read_uint32 = _accessor(UINT32)
read_int32 = _accessor(INT32)
read_uint64 = _accessor(UINT64)
read_int64 = _accessor(INT64)
read_float32 = _accessor(FLOAT32)
read_float64 = _accessor(FLOAT64)


def read_bool(buf: bytes, offset: int, index: int) -> bool:
    """Return bit ``index`` (0 = least significant) of the byte at ``offset``."""
    data = _field_slice(buf, offset + READ_RESPONSE_HEADER_LEN, 1)
    if not 0 <= index <= 7:
        raise S7Error(ErrorKind.INVALID_INDEX, f"bit index must be 0-7, got {index}")
    return bool(data[0] & (1 << index))


def read_string(buf: bytes, offset: int, length: int) -> str:
    """Return ``length`` raw bytes after the string sub-header as text.

    Bytes map one-to-one to characters (latin-1); nothing is trimmed or
    validated.
    """
    if length <= 0:
        raise S7Error(ErrorKind.INVALID_LENGTH, f"length must be positive, got {length}")
    start = offset + READ_RESPONSE_HEADER_LEN + STRING_HEADER_LEN
    if offset < 0 or len(buf) < start + length:
        raise S7Error(
            ErrorKind.SHORT_PAYLOAD,
            f"need {start + length} bytes, buffer has {len(buf)}",
        )
    return bytes(buf[start : start + length]).decode("latin-1")


def decode(
    buf: bytes,
    type_name: str,
    offset: int,
    *,
    index: int | None = None,
    length: int | None = None,
) -> bool | int | float | str:
    """Decode a field by type name.

    Args:
        buf: A validated read response.
        type_name: ``"bool"``, ``"string"``, or a key of ``FIELD_TYPES``.
        offset: Payload offset.
        index: Bit index, required for ``"bool"``.
        length: Character count, required for ``"string"``.
    """
    if type_name == "bool":
        if index is None:
            raise S7Error(ErrorKind.INVALID_PARAMETER, "bool fields need a bit index")
        return read_bool(buf, offset, index)
    if type_name == "string":
        if length is None:
            raise S7Error(ErrorKind.INVALID_PARAMETER, "string fields need a length")
        return read_string(buf, offset, length)
    if type_name not in FIELD_TYPES:
        raise S7Error(
            ErrorKind.INVALID_PARAMETER,
            f"Unknown field type '{type_name}'. Valid: {['bool', 'string', *FIELD_TYPES]}",
        )
    return decode_field(buf, offset, FIELD_TYPES[type_name])
