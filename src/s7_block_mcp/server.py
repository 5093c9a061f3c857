"""MCP server entry point for reading S7 PLC data blocks.

Exposes one client session as tools and resources via the Model Context
Protocol using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .client import S7Client
from .config import get_settings
from .errors import S7Error
from .protocol.codec import FIELD_TYPES, decode
from .protocol.framing import (
    READ_RESPONSE_HEADER_LEN,
    READ_STATUS_OFFSET,
    STRING_HEADER_LEN,
)

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "s7-block",
    instructions="Read data blocks from a Siemens S7 PLC over ISO-on-TCP",
)

# Global connection state
_client: S7Client | None = None


def _get_client() -> S7Client:
    """Get the connected client, raising if there is none."""
    if _client is None or not _client.connected:
        raise RuntimeError(
            "Not connected to a PLC. Use the 'connect' tool first."
        )
    return _client


def _error(e: S7Error) -> dict[str, Any]:
    return {"error": str(e), "kind": e.kind.name}


def _field_width(type_name: str, length: int | None) -> int:
    if type_name == "bool":
        return 1
    if type_name == "string":
        return STRING_HEADER_LEN + max(length or 0, 0)
    if type_name in FIELD_TYPES:
        return FIELD_TYPES[type_name].width
    return 0


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    address: str | None = None,
    rack: int | None = None,
    slot: int | None = None,
    timeout: float | None = None,
) -> dict[str, Any]:
    """Connect to a PLC and run the COTP/S7 handshake.

    Unset arguments fall back to the ``S7_*`` environment settings.

    Args:
        address: ``host`` or ``host:port`` (port defaults to 102).
        rack: Rack number.
        slot: CPU slot number.
        timeout: Seconds allowed for dialing and each handshake step.
    """
    global _client
    if _client is not None and _client.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "address": _client.address,
        }

    settings = get_settings()
    try:
        _client = S7Client(
            address or settings.address,
            rack=settings.rack if rack is None else rack,
            slot=settings.slot if slot is None else slot,
            timeout=settings.timeout if timeout is None else timeout,
        )
        _client.connect()
    except S7Error as e:
        logger.warning("Connect to %s failed: %s", address or settings.address, e)
        _client = None
        return _error(e)

    return {
        "connected": True,
        "address": _client.address,
        "rack": _client.rack,
        "slot": _client.slot,
    }


@mcp.tool()
def disconnect() -> dict[str, Any]:
    """Close the connection to the PLC."""
    global _client
    if _client is None or not _client.connected:
        _client = None
        return {"disconnected": True}
    try:
        _client.close()
    except S7Error as e:
        return _error(e)
    finally:
        _client = None
    return {"disconnected": True}


@mcp.tool()
def status() -> dict[str, Any]:
    """Report the session state."""
    if _client is None:
        return {"state": "disconnected"}
    return {
        "state": _client.state.value,
        "address": _client.address,
        "rack": _client.rack,
        "slot": _client.slot,
        "timeout": _client.timeout,
    }


# ─── READ TOOLS ───────────────────────────────────────────────────────

@mcp.tool()
def read_block(block_number: int, count: int, start_address: int = 0) -> dict[str, Any]:
    """Read raw bytes from a data block.

    Args:
        block_number: Data block number (DB).
        count: Number of bytes to request.
        start_address: Byte address; the request always reads from the start
                       of the block.
    """
    client = _get_client()
    try:
        data = client.read_block(block_number, start_address, count)
    except S7Error as e:
        return _error(e)

    return {
        "block_number": block_number,
        "status": f"0x{data[READ_STATUS_OFFSET]:02X}",
        "length": len(data),
        "payload_hex": data[READ_RESPONSE_HEADER_LEN:].hex(" "),
    }


@mcp.tool()
def read_value(
    block_number: int,
    field_type: str,
    offset: int = 0,
    index: int | None = None,
    length: int | None = None,
) -> dict[str, Any]:
    """Read a data block and decode one typed field from it.

    Args:
        block_number: Data block number (DB).
        field_type: bool, string, or one of uint8/int8/uint16/int16/uint32/int32/
                    uint64/int64/float32/float64.
        offset: Byte offset within the block payload.
        index: Bit index 0-7 (bool only).
        length: Character count (string only).
    """
    width = _field_width(field_type, length)
    if width == 0:
        return {
            "error": f"Unknown field type '{field_type}'",
            "kind": "INVALID_PARAMETER",
        }

    client = _get_client()
    count = max(offset, 0) + width
    try:
        data = client.read_block(block_number, 0, count)
        value = decode(data, field_type, offset, index=index, length=length)
    except S7Error as e:
        return _error(e)

    return {
        "block_number": block_number,
        "type": field_type,
        "offset": offset,
        "value": value,
    }


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("s7://protocol/field-types")
def resource_field_types() -> str:
    """Field types understood by read_value, with byte widths."""
    types = {name: ft.width for name, ft in FIELD_TYPES.items()}
    types["bool"] = 1
    return json.dumps({
        "field_types": types,
        "string": {"sub_header": STRING_HEADER_LEN, "width": "length"},
        "response_header": READ_RESPONSE_HEADER_LEN,
        "byte_order": "big-endian",
    })


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=get_settings().log_level.upper())
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
