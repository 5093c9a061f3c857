"""S7 client session: ISO-on-TCP handshake and single-block reads.

Connecting runs three steps, each of which must succeed before the next:

1. open the TCP transport
2. upgrade it with a COTP connection request (rack/slot TSAP)
3. negotiate PDU parameters with an S7 setup-communication job

Only after step 3 is the client ``CONNECTED``. A failure at any step closes
the half-open transport and leaves the client ``DISCONNECTED``.

A client is not thread-safe; use one per worker or serialize calls.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Protocol

from .config import ClientSettings
from .errors import ErrorKind, S7Error
from .protocol import framing
from .protocol.framing import (
    build_negotiate_frame,
    build_read_frame,
    build_upgrade_frame,
)
from .transport.tcp_connection import TCPConnection

logger = logging.getLogger(__name__)

DEFAULT_RESPONSE_BUFFER_SIZE = 512


class Transport(Protocol):
    """The byte-stream primitives the client drives."""

    def open(self, timeout: float) -> None: ...

    def set_deadline(self, deadline: float | None) -> None: ...

    def write(self, data: bytes) -> int: ...

    def read_into(self, buffer: bytearray | memoryview) -> int: ...

    def close(self) -> None: ...


class SessionState(Enum):
    DISCONNECTED = "disconnected"
    TRANSPORT_OPEN = "transport_open"
    UPGRADED = "upgraded"
    CONNECTED = "connected"


def _transport_call(fn: Callable, *args):
    """Run a transport primitive, reporting OS-level failures as TRANSPORT."""
    try:
        return fn(*args)
    except OSError as e:
        raise S7Error(ErrorKind.TRANSPORT, str(e) or type(e).__name__, cause=e) from e


class S7Client:
    """A session with one S7 PLC.

    Usage::

        client = S7Client("192.168.0.10", rack=0, slot=1, timeout=5.0)
        client.connect()
        buf = bytearray(512)
        n = client.read(buf, block_number=1, start_address=0, count=16)
        client.read_err(buf[:n])
        value = read_int16(buf[:n], 0)
        client.close()

    Args:
        address: ``host`` or ``host:port`` (port defaults to 102).
        rack: PLC rack number, used only for the connection TSAP.
        slot: CPU slot number, used only for the connection TSAP.
        timeout: Seconds allowed for dialing and for each handshake step.
        transport_factory: Builds an unopened transport for an address.
    """

    def __init__(
        self,
        address: str,
        rack: int = 0,
        slot: int = 0,
        timeout: float = 5.0,
        transport_factory: Callable[[str], Transport] = TCPConnection,
    ) -> None:
        self.address = address
        self.rack = rack
        self.slot = slot
        self.timeout = timeout
        self._transport_factory = transport_factory
        self._upgrade_frame = build_upgrade_frame(rack, slot)
        self._negotiate_frame = build_negotiate_frame()
        self._conn: Transport | None = None
        self._state = SessionState.DISCONNECTED
        self._scratch = bytearray(DEFAULT_RESPONSE_BUFFER_SIZE)

    @classmethod
    def from_settings(cls, settings: ClientSettings, **kwargs) -> S7Client:
        return cls(
            settings.address,
            rack=settings.rack,
            slot=settings.slot,
            timeout=settings.timeout,
            **kwargs,
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is SessionState.CONNECTED

    def __enter__(self) -> S7Client:
        self.connect()
        return self

    def __exit__(self, *exc_info) -> None:
        if self._conn is not None:
            self.close()

    # ─── LIFECYCLE ───────────────────────────────────────────────────

    def connect(self) -> None:
        """Dial the PLC and run the upgrade and negotiation handshake.

        Raises:
            S7Error: ``TRANSPORT`` if dialing or any write/read fails,
                ``SHORT_RESPONSE`` for a wrong-sized handshake reply,
                ``UPGRADE_REJECTED`` or ``NEGOTIATION_REJECTED`` if the PLC
                refuses a step.
        """
        if self._conn is not None:
            logger.debug("Reconnecting, closing existing transport")
            self._discard(self._conn)
            self._conn = None
            self._state = SessionState.DISCONNECTED

        try:
            conn = self._new_transport()
            _transport_call(conn.open, self.timeout)
            self._state = SessionState.TRANSPORT_OPEN

            self._upgrade_connection(conn)
            self._state = SessionState.UPGRADED

            self._negotiate_pdu(conn)
        except S7Error as e:
            if self._state is not SessionState.DISCONNECTED:
                self._discard(conn)
            self._state = SessionState.DISCONNECTED
            logger.debug("Handshake with %s failed: %s", self.address, e)
            raise

        self._conn = conn
        self._state = SessionState.CONNECTED
        logger.info(
            "Connected to %s (rack=%d, slot=%d)", self.address, self.rack, self.slot
        )

    def set_deadline(self, deadline: float | None) -> None:
        """Bound every later blocking call by a ``time.monotonic()`` timestamp."""
        conn = self._require_connection()
        _transport_call(conn.set_deadline, deadline)

    def close(self) -> None:
        """Close the transport. A new :meth:`connect` is needed afterwards."""
        conn = self._require_connection()
        self._conn = None
        self._state = SessionState.DISCONNECTED
        _transport_call(conn.close)
        logger.info("Disconnected from %s", self.address)

    # ─── READS ───────────────────────────────────────────────────────

    def read(
        self,
        buffer: bytearray | memoryview,
        block_number: int,
        start_address: int,
        count: int,
    ) -> int:
        """Request ``count`` bytes of a data block and receive one reply.

        Exactly one transport read fills ``buffer``; the reply is not
        validated. Use :meth:`read_err` before decoding.

        Returns:
            Number of bytes written into ``buffer``.
        """
        conn = self._require_connection()
        frame = build_read_frame(block_number, start_address, count)
        return self._round_trip(conn, frame, buffer)

    def read_err(self, buffer: bytes) -> None:
        """Raise if a read response is short or reports a device error."""
        framing.read_err(buffer)

    def read_block(self, block_number: int, start_address: int, count: int) -> bytes:
        """Read one data block and return the validated response bytes."""
        conn = self._require_connection()
        frame = build_read_frame(block_number, start_address, count)
        needed = framing.READ_RESPONSE_HEADER_LEN + count
        if needed <= len(self._scratch):
            buffer = self._scratch
        else:
            buffer = bytearray(needed)
        n = self._round_trip(conn, frame, buffer)
        data = bytes(buffer[:n])
        framing.read_err(data)
        return data

    # ─── HANDSHAKE STEPS ─────────────────────────────────────────────

    def _new_transport(self) -> Transport:
        try:
            return self._transport_factory(self.address)
        except ValueError as e:
            raise S7Error(ErrorKind.TRANSPORT, str(e), cause=e) from e

    def _round_trip(
        self, conn: Transport, frame: bytes, buffer: bytearray | memoryview
    ) -> int:
        _transport_call(conn.write, frame)
        return _transport_call(conn.read_into, buffer)

    def _exchange(self, conn: Transport, frame: bytes) -> bytes:
        _transport_call(conn.set_deadline, time.monotonic() + self.timeout)
        n = self._round_trip(conn, frame, self._scratch)
        return bytes(self._scratch[:n])

    def _upgrade_connection(self, conn: Transport) -> None:
        logger.debug("Sending COTP connection request (TSAP 0x%04X)",
                     framing.tsap(self.rack, self.slot))
        response = self._exchange(conn, self._upgrade_frame)
        framing.check_upgrade_response(response)

    def _negotiate_pdu(self, conn: Transport) -> None:
        logger.debug("Negotiating PDU parameters")
        response = self._exchange(conn, self._negotiate_frame)
        framing.check_negotiate_response(response)

    def _require_connection(self) -> Transport:
        if self._conn is None:
            raise S7Error(ErrorKind.NOT_CONNECTED)
        return self._conn

    def _discard(self, conn: Transport) -> None:
        try:
            conn.close()
        except OSError as e:
            logger.warning("Error closing transport: %s", e)
