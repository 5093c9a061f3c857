"""Protocol layer: request frame templates, response checks, and payload decoding."""

from .framing import (
    build_upgrade_frame,
    build_negotiate_frame,
    build_read_frame,
    read_err,
)
from .codec import FIELD_TYPES, decode, read_bool, read_string
