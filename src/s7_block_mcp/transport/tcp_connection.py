"""TCP connection to an S7 PLC (ISO-on-TCP, port 102 by default).

The connection is a thin blocking wrapper over a stream socket. It adds
one thing sockets lack: an absolute deadline that bounds every blocking
call until it is changed or cleared.
"""

from __future__ import annotations

import logging
import socket
import time

logger = logging.getLogger(__name__)

DEFAULT_PORT = 102


def parse_address(address: str) -> tuple[str, int]:
    """Split ``host``, ``host:port`` or ``[v6]:port`` into a (host, port) pair.

    An unbracketed address with more than one ``:`` is an IPv6 host
    without a port.

    Raises:
        ValueError: If the port is not a number in 1-65535.
    """
    if address.startswith("["):
        host, _, rest = address[1:].partition("]")
        if not rest:
            return host, DEFAULT_PORT
        if not rest.startswith(":"):
            raise ValueError(f"Invalid address '{address}'")
        port = rest[1:]
    elif address.count(":") > 1:
        return address, DEFAULT_PORT
    else:
        host, sep, port = address.partition(":")
        if not sep:
            return address, DEFAULT_PORT
    if not port.isdigit() or not 0 < int(port) <= 0xFFFF:
        raise ValueError(f"Invalid port in address '{address}'")
    return host, int(port)


class TCPConnection:
    """Manages one TCP stream to the PLC.

    Usage::

        conn = TCPConnection("192.168.0.10:102")
        conn.open(timeout=5.0)
        conn.set_deadline(time.monotonic() + 5.0)
        conn.write(frame)
        n = conn.read_into(buffer)
        conn.close()

    Failures are raised as ``OSError`` subclasses; an expired deadline
    raises ``TimeoutError``.
    """

    def __init__(self, address: str) -> None:
        self._host, self._port = parse_address(address)
        self._sock: socket.socket | None = None
        self._deadline: float | None = None

    @property
    def connected(self) -> bool:
        return self._sock is not None

    @property
    def address(self) -> tuple[str, int]:
        return self._host, self._port

    def open(self, timeout: float) -> None:
        """Dial the PLC, waiting at most ``timeout`` seconds."""
        sock = socket.create_connection((self._host, self._port), timeout=timeout)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(None)
        self._sock = sock
        self._deadline = None
        logger.debug("TCP connected to %s:%d", self._host, self._port)

    def set_deadline(self, deadline: float | None) -> None:
        """Bound subsequent blocking calls by a ``time.monotonic()`` timestamp.

        ``None`` clears the deadline.
        """
        self._require_socket()
        self._deadline = deadline

    def write(self, data: bytes) -> int:
        """Send all of ``data``, returning the number of bytes written."""
        sock = self._require_socket()
        self._apply_deadline(sock)
        sock.sendall(data)
        logger.debug("TX %s", bytes(data).hex(" "))
        return len(data)

    def read_into(self, buffer: bytearray | memoryview) -> int:
        """Perform one receive into ``buffer``, returning the byte count.

        Raises:
            ConnectionError: If the peer closed the connection.
        """
        sock = self._require_socket()
        self._apply_deadline(sock)
        n = sock.recv_into(buffer)
        if n == 0 and len(buffer) > 0:
            raise ConnectionError(f"Connection closed by {self._host}:{self._port}")
        logger.debug("RX %s", bytes(buffer[:n]).hex(" "))
        return n

    def close(self) -> None:
        """Close the socket. Later calls raise until :meth:`open` is called."""
        sock = self._require_socket()
        self._sock = None
        self._deadline = None
        sock.close()
        logger.debug("TCP closed %s:%d", self._host, self._port)

    def _require_socket(self) -> socket.socket:
        if self._sock is None:
            raise ConnectionError("Not connected to device")
        return self._sock

    def _apply_deadline(self, sock: socket.socket) -> None:
        if self._deadline is None:
            sock.settimeout(None)
            return
        remaining = self._deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError("Deadline exceeded")
        sock.settimeout(remaining)
