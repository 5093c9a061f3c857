"""Error kinds raised by the protocol, codec, and session layers.

Every failure is an :class:`S7Error` carrying an :class:`ErrorKind`.
Compare on ``err.kind`` rather than on the message text.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    """Closed set of failure kinds."""

    TRANSPORT = "transport error"
    SHORT_RESPONSE = "short response error"
    UPGRADE_REJECTED = "upgrade connection error"
    NEGOTIATION_REJECTED = "negotiate pdu error"
    NOT_CONNECTED = "not connected error"
    READ_REJECTED = "read error"
    SHORT_PAYLOAD = "short payload error"
    INVALID_INDEX = "invalid index error"
    INVALID_LENGTH = "invalid length error"
    INVALID_PARAMETER = "invalid parameter error"


class S7Error(Exception):
    """A failed protocol, codec, or session operation.

    Args:
        kind: What went wrong.
        message: Optional detail appended to the kind's description.
        cause: The underlying exception for ``ErrorKind.TRANSPORT``.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.kind = kind
        self.message = message
        self.cause = cause
        text = kind.value if message is None else f"{kind.value}: {message}"
        super().__init__(text)

    def __repr__(self) -> str:
        return f"S7Error(kind={self.kind.name}, message={self.message!r})"
