"""Tests for typed payload extraction."""

import struct

import pytest

from s7_block_mcp.errors import ErrorKind, S7Error
from s7_block_mcp.protocol.codec import (
    FIELD_TYPES,
    decode,
    decode_field,
    read_bool,
    read_float32,
    read_float64,
    read_int8,
    read_int16,
    read_int32,
    read_int64,
    read_string,
    read_uint8,
    read_uint16,
    read_uint32,
    read_uint64,
)
from s7_block_mcp.protocol.framing import READ_RESPONSE_HEADER_LEN, STRING_HEADER_LEN

HEADER = bytes(READ_RESPONSE_HEADER_LEN)

SCALAR_ACCESSORS = [
    read_uint8, read_int8, read_uint16, read_int16, read_uint32,
    read_int32, read_uint64, read_int64, read_float32, read_float64,
]


def test_short_payload_empty_buffer():
    """Every accessor refuses an empty buffer instead of indexing it."""
    for accessor in SCALAR_ACCESSORS:
        with pytest.raises(S7Error) as exc:
            accessor(b"", 0)
        assert exc.value.kind is ErrorKind.SHORT_PAYLOAD

    with pytest.raises(S7Error) as exc:
        read_bool(b"", 0, 1)
    assert exc.value.kind is ErrorKind.SHORT_PAYLOAD

    with pytest.raises(S7Error) as exc:
        read_string(b"", 0, 1)
    assert exc.value.kind is ErrorKind.SHORT_PAYLOAD


def test_short_payload_header_only():
    """A header with no payload has nothing to decode."""
    for accessor in SCALAR_ACCESSORS:
        with pytest.raises(S7Error) as exc:
            accessor(HEADER, 0)
        assert exc.value.kind is ErrorKind.SHORT_PAYLOAD


def test_short_payload_partial_field():
    """A field that runs past the end of the buffer is rejected."""
    buf = HEADER + b"\x00\x00\x00"
    assert read_uint16(buf, 1) == 0
    with pytest.raises(S7Error) as exc:
        read_uint32(buf, 0)
    assert exc.value.kind is ErrorKind.SHORT_PAYLOAD
    with pytest.raises(S7Error):
        read_uint16(buf, 2)


def test_negative_offset():
    """Negative offsets never reach back into the header."""
    buf = HEADER + b"\x01\x02"
    with pytest.raises(S7Error) as exc:
        read_uint8(buf, -1)
    assert exc.value.kind is ErrorKind.SHORT_PAYLOAD


def test_bool():
    """Bit 0 is the least-significant bit."""
    buf = HEADER + bytes([0b00000001])
    assert read_bool(buf, 0, 0) is True
    assert read_bool(buf, 0, 1) is False


def test_bool_high_bit():
    buf = HEADER + bytes([0x00, 0b10000000])
    assert read_bool(buf, 1, 7) is True
    assert read_bool(buf, 1, 6) is False


def test_bool_invalid_index():
    buf = HEADER + bytes([0xFF])
    for index in (-1, 8):
        with pytest.raises(S7Error) as exc:
            read_bool(buf, 0, index)
        assert exc.value.kind is ErrorKind.INVALID_INDEX


def test_uint8_int8():
    buf = HEADER + bytes([0xFF, 0x01])
    assert read_uint8(buf, 0) == 255
    assert read_int8(buf, 0) == -1
    assert read_int8(buf, 1) == 1


def test_uint16():
    """Bytes 00 01 decode to 1."""
    buf = HEADER + bytes([0x00, 0x01])
    assert read_uint16(buf, 0) == 1


def test_int16():
    buf = HEADER + struct.pack(">h", -12345)
    assert read_int16(buf, 0) == -12345


def test_uint32_int32():
    buf = HEADER + struct.pack(">Ii", 0xDEADBEEF, -2)
    assert read_uint32(buf, 0) == 0xDEADBEEF
    assert read_int32(buf, 4) == -2


def test_float32():
    buf = HEADER + struct.pack(">f", 1.5)
    assert read_float32(buf, 0) == 1.5


def test_64_bit_fields():
    buf = HEADER + struct.pack(">Qqd", 2**63 + 5, -(2**40), 3.141592653589793)
    assert read_uint64(buf, 0) == 2**63 + 5
    assert read_int64(buf, 8) == -(2**40)
    assert read_float64(buf, 16) == 3.141592653589793


def test_offset_is_relative_to_payload():
    buf = HEADER + bytes([0x00, 0x00, 0x12, 0x34])
    assert read_uint16(buf, 2) == 0x1234


def test_accepts_bytearray_and_memoryview():
    buf = bytearray(HEADER + bytes([0x00, 0x2A]))
    assert read_uint16(buf, 0) == 42
    assert read_uint16(memoryview(buf), 0) == 42


def test_string():
    """Strings skip one sub-header byte before their content."""
    buf = HEADER + bytes(STRING_HEADER_LEN) + b"a"
    assert read_string(buf, 0, 1) == "a"


def test_string_is_raw():
    """No trimming or NUL handling."""
    buf = HEADER + b"\x08" + b" ab\x00\xe9"
    assert read_string(buf, 0, 5) == " ab\x00\xe9"


def test_string_invalid_length():
    """Non-positive lengths fail even when the buffer is empty."""
    for length in (0, -1):
        with pytest.raises(S7Error) as exc:
            read_string(b"", 0, length)
        assert exc.value.kind is ErrorKind.INVALID_LENGTH
        with pytest.raises(S7Error) as exc:
            read_string(HEADER + b"\x00abc", 0, length)
        assert exc.value.kind is ErrorKind.INVALID_LENGTH


def test_string_short_payload():
    buf = HEADER + b"\x00ab"
    with pytest.raises(S7Error) as exc:
        read_string(buf, 0, 3)
    assert exc.value.kind is ErrorKind.SHORT_PAYLOAD


def test_field_types_table():
    """Generated accessors follow the table widths."""
    assert FIELD_TYPES["uint8"].width == 1
    assert FIELD_TYPES["int16"].width == 2
    assert FIELD_TYPES["float32"].width == 4
    assert FIELD_TYPES["float64"].width == 8
    assert read_int32.__name__ == "read_int32"
    buf = HEADER + struct.pack(">i", -7)
    assert decode_field(buf, 0, FIELD_TYPES["int32"]) == -7


def test_decode_dispatch():
    buf = HEADER + bytes([0x03, 0x00, 0x05]) + b"x"
    assert decode(buf, "bool", 0, index=1) is True
    assert decode(buf, "uint16", 1) == 5
    assert decode(buf, "string", 2, length=1) == "x"


def test_decode_bad_arguments():
    buf = HEADER + bytes(4)
    with pytest.raises(S7Error) as exc:
        decode(buf, "decimal", 0)
    assert exc.value.kind is ErrorKind.INVALID_PARAMETER
    with pytest.raises(S7Error):
        decode(buf, "bool", 0)
    with pytest.raises(S7Error):
        decode(buf, "string", 0)
