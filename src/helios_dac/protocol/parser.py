"""Response decoding for control-channel queries."""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import MalformedResponse, ProtocolMismatch
from .commands import Response


@dataclass
class StatusResponse:
    """Parsed status (0x83) response."""

    ready: bool


@dataclass
class FirmwareVersionResponse:
    """Parsed firmware version (0x84) response."""

    version: int


@dataclass
class NameResponse:
    """Parsed name (0x85) response."""

    name: str


def _check_code(data: bytes, expected: Response) -> None:
    if not data:
        raise ProtocolMismatch(expected, None)
    if data[0] != expected:
        raise ProtocolMismatch(expected, data[0])


def parse_status(data: bytes) -> StatusResponse:
    """Parse a status response: byte 1 is 1 when ready, 0 when busy."""
    _check_code(data, Response.STATUS)
    if len(data) < 2:
        raise MalformedResponse(f"Status response too short: {bytes(data).hex(' ')}")
    return StatusResponse(ready=data[1] != 0)


def parse_firmware_version(data: bytes) -> FirmwareVersionResponse:
    """Parse a firmware version response.

    The version is a little-endian integer starting at byte 1; the device
    sends four bytes but a single byte is accepted.
    """
    _check_code(data, Response.FIRMWARE_VERSION)
    if len(data) < 2:
        raise MalformedResponse(f"Firmware response too short: {bytes(data).hex(' ')}")
    return FirmwareVersionResponse(version=int.from_bytes(data[1:5], "little"))


def parse_name(data: bytes) -> NameResponse:
    """Parse a name response: null-terminated ASCII, at most 31 bytes."""
    _check_code(data, Response.NAME)
    if len(data) < 2:
        raise MalformedResponse(f"Name response too short: {bytes(data).hex(' ')}")
    raw = bytes(data[1:32]).split(b"\x00")[0]
    return NameResponse(name=raw.decode("ascii", errors="replace"))


_PARSERS = {
    Response.STATUS: parse_status,
    Response.FIRMWARE_VERSION: parse_firmware_version,
    Response.NAME: parse_name,
}


def decode_response(data: bytes, expected: Response):
    """Decode *data* as the response for *expected*.

    Returns the matching response dataclass.

    Raises:
        ProtocolMismatch: If the leading byte is not *expected*.
        MalformedResponse: If the payload is truncated.
    """
    return _PARSERS[Response(expected)](data)
