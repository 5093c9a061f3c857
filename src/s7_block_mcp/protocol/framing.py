"""Request frame builders and response checks for the S7 block-read exchange.

Every request is a TPKT header (RFC1006) followed by a COTP TPDU and, for
the negotiate and read requests, an S7 job header::

    +------------+-------------------+----------------------------------+
    | TPKT       | COTP              | S7 job (negotiate / read only)   |
    | 4 bytes    | CR: 18 B, DT: 3 B | header + parameters              |
    +------------+-------------------+----------------------------------+

- Upgrade (COTP connection request): 22 bytes, destination TSAP at 20..21
- Negotiate (setup communication): fixed 25 bytes
- Read (read var, one DB item): 31 bytes, count at 23..24, DB number at 25..26

All multi-byte fields are big-endian. Templates are declared once as base
byte strings plus field substitutions; rendering never mutates the base.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import ErrorKind, S7Error

UPGRADE_RESPONSE_LEN = 22
UPGRADE_STATUS_OFFSET = 5
UPGRADE_CONNECTION_CONFIRM = 0xD0

NEGOTIATE_RESPONSE_LEN = 27
NEGOTIATE_ERROR_OFFSETS = (17, 18)

READ_RESPONSE_HEADER_LEN = 25
STRING_HEADER_LEN = 1
READ_STATUS_OFFSET = 21
READ_STATUS_OK = 0xFF

TSAP_BASE = 0x0100


@dataclass(frozen=True)
class Substitution:
    """A big-endian unsigned field written into a template."""

    offset: int
    width: int
    field: str


@dataclass(frozen=True)
class FrameTemplate:
    """A fixed request layout with named big-endian fields."""

    name: str
    base: bytes
    substitutions: tuple[Substitution, ...] = ()

    def __len__(self) -> int:
        return len(self.base)

    def render(self, **values: int) -> bytes:
        """Return a new frame with every substitution applied.

        Raises:
            S7Error: ``INVALID_PARAMETER`` if a value is missing or does not
                fit in its field width.
        """
        buf = bytearray(self.base)
        for sub in self.substitutions:
            if sub.field not in values:
                raise S7Error(
                    ErrorKind.INVALID_PARAMETER,
                    f"{self.name} frame needs '{sub.field}'",
                )
            value = values[sub.field]
            limit = 1 << (8 * sub.width)
            if not 0 <= value < limit:
                raise S7Error(
                    ErrorKind.INVALID_PARAMETER,
                    f"{sub.field} must be 0-{limit - 1}, got {value}",
                )
            buf[sub.offset : sub.offset + sub.width] = value.to_bytes(sub.width, "big")
        return bytes(buf)


UPGRADE_TEMPLATE = FrameTemplate(
    name="upgrade",
    base=bytes([
        0x03, 0x00, 0x00, 0x16,  # TPKT, length 22
        0x11, 0xE0, 0x00, 0x00,  # COTP CR
        0x00, 0x01, 0x00, 0xC0,
        0x01, 0x0A, 0xC1, 0x02,  # TPDU size, source TSAP
        0x01, 0x00, 0xC2, 0x02,  # destination TSAP
        0x00, 0x00,
    ]),
    substitutions=(Substitution(20, 2, "tsap"),),
)

NEGOTIATE_TEMPLATE = FrameTemplate(
    name="negotiate",
    base=bytes([
        0x03, 0x00, 0x00, 0x19,  # TPKT, length 25
        0x02, 0xF0, 0x80, 0x32,  # COTP DT, S7 protocol id
        0x01, 0x00, 0x00, 0x04,
        0x00, 0x00, 0x08, 0x00,
        0x00, 0xF0, 0x00, 0x00,  # setup communication
        0x01, 0x00, 0x01, 0x01,
        0xE0,                    # PDU length 480
    ]),
)

READ_TEMPLATE = FrameTemplate(
    name="read",
    base=bytes([
        0x03, 0x00, 0x00, 0x1F,  # TPKT, length 31
        0x02, 0xF0, 0x80, 0x32,
        0x01, 0x00, 0x00, 0x05,
        0x00, 0x00, 0x0E, 0x00,
        0x00, 0x04, 0x01, 0x12,  # read var, one item
        0x0A, 0x10, 0x02, 0x00,  # transport size BYTE
        0x00, 0x00, 0x00, 0x84,  # area DB
        0x00, 0x00, 0x00,
    ]),
    substitutions=(
        Substitution(23, 2, "count"),
        Substitution(25, 2, "block_number"),
    ),
)


def tsap(rack: int, slot: int) -> int:
    """Compute the destination TSAP for a rack/slot pair."""
    if rack < 0 or slot < 0:
        raise S7Error(
            ErrorKind.INVALID_PARAMETER,
            f"rack and slot must be non-negative, got rack={rack} slot={slot}",
        )
    return TSAP_BASE + (rack << 5) + slot


def build_upgrade_frame(rack: int, slot: int) -> bytes:
    """Build the 22-byte COTP connection request for a rack/slot pair.

    Raises:
        S7Error: ``INVALID_PARAMETER`` if the TSAP does not fit in 16 bits.
    """
    return UPGRADE_TEMPLATE.render(tsap=tsap(rack, slot))


def build_negotiate_frame() -> bytes:
    """Build the fixed 25-byte PDU negotiation request."""
    return NEGOTIATE_TEMPLATE.render()


def build_read_frame(block_number: int, start_address: int, count: int) -> bytes:
    """Build a 31-byte read request for ``count`` bytes of a data block.

    ``start_address`` is range-checked but not encoded: the request always
    addresses the start of the block.
    """
    if not 0 <= start_address <= 0xFFFFFFFF:
        raise S7Error(
            ErrorKind.INVALID_PARAMETER,
            f"start_address must be 0-4294967295, got {start_address}",
        )
    return READ_TEMPLATE.render(count=count, block_number=block_number)


def check_upgrade_response(data: bytes) -> None:
    """Validate a COTP connection confirm."""
    if len(data) != UPGRADE_RESPONSE_LEN:
        raise S7Error(
            ErrorKind.SHORT_RESPONSE,
            f"upgrade response is {len(data)} bytes, expected {UPGRADE_RESPONSE_LEN}",
        )
    if data[UPGRADE_STATUS_OFFSET] != UPGRADE_CONNECTION_CONFIRM:
        raise S7Error(
            ErrorKind.UPGRADE_REJECTED,
            f"PDU type 0x{data[UPGRADE_STATUS_OFFSET]:02X}",
        )


def check_negotiate_response(data: bytes) -> None:
    """Validate a setup-communication acknowledgement."""
    if len(data) != NEGOTIATE_RESPONSE_LEN:
        raise S7Error(
            ErrorKind.SHORT_RESPONSE,
            f"negotiate response is {len(data)} bytes, expected {NEGOTIATE_RESPONSE_LEN}",
        )
    for offset in NEGOTIATE_ERROR_OFFSETS:
        if data[offset] != 0x00:
            raise S7Error(
                ErrorKind.NEGOTIATION_REJECTED,
                f"error byte {offset} is 0x{data[offset]:02X}",
            )


def read_err(data: bytes) -> None:
    """Check the device status byte of a read response.

    Raises:
        S7Error: ``SHORT_RESPONSE`` if ``data`` is shorter than the response
            header, ``READ_REJECTED`` if the device reported a failure.
    """
    if len(data) < READ_RESPONSE_HEADER_LEN:
        raise S7Error(
            ErrorKind.SHORT_RESPONSE,
            f"read response is {len(data)} bytes, header needs {READ_RESPONSE_HEADER_LEN}",
        )
    if data[READ_STATUS_OFFSET] != READ_STATUS_OK:
        raise S7Error(
            ErrorKind.READ_REJECTED,
            f"return code 0x{data[READ_STATUS_OFFSET]:02X}",
        )
