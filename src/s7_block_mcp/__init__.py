"""Client for reading S7 PLC data blocks over ISO-on-TCP."""

from .client import S7Client, SessionState
from .errors import ErrorKind, S7Error
from .protocol.codec import (
    decode,
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
