"""Control-channel command codes and request builders.

Requests are two bytes, the command code followed by an argument byte
(zero unless noted). Set Name is the exception: a 32-byte buffer with the
null-padded name after the code. Queries are answered with up to
:data:`RESPONSE_LENGTH` bytes whose first byte is the response code.
"""

from __future__ import annotations

from enum import IntEnum

from ..errors import EncodingError

RESPONSE_LENGTH = 32
NAME_FIELD_SIZE = 31
MAX_NAME_LENGTH = NAME_FIELD_SIZE - 1  # leave room for the terminator


class Command(IntEnum):
    """Request codes sent on the control-out path."""

    STOP = 0x01
    SET_SHUTTER = 0x02
    GET_STATUS = 0x03
    GET_FIRMWARE_VERSION = 0x04
    GET_NAME = 0x05
    SET_NAME = 0x06
    ERASE_FIRMWARE = 0x07


class Response(IntEnum):
    """Response codes expected on the control-in path."""

    STATUS = 0x83
    FIRMWARE_VERSION = 0x84
    NAME = 0x85


# Query command -> response code it must be answered with
RESPONSE_FOR: dict[Command, Response] = {
    Command.GET_STATUS: Response.STATUS,
    Command.GET_FIRMWARE_VERSION: Response.FIRMWARE_VERSION,
    Command.GET_NAME: Response.NAME,
}


def build_command(command: Command, argument: int = 0) -> bytes:
    """Build a 2-byte control request."""
    if not 0 <= argument <= 0xFF:
        raise EncodingError(f"Command argument must be 0-255, got {argument}")
    return bytes([command, argument])


def build_stop() -> bytes:
    """Build a Stop request (0x01): halt output immediately."""
    return build_command(Command.STOP)


def build_set_shutter(open_: bool) -> bytes:
    """Build a shutter request (0x02) with 1 for open, 0 for closed."""
    return build_command(Command.SET_SHUTTER, 1 if open_ else 0)


def build_get_status() -> bytes:
    return build_command(Command.GET_STATUS)


def build_get_firmware_version() -> bytes:
    return build_command(Command.GET_FIRMWARE_VERSION)


def build_get_name() -> bytes:
    return build_command(Command.GET_NAME)


def build_erase_firmware() -> bytes:
    """Build an Erase Firmware request (0x07).

    The device reboots into its bootloader afterwards.
    """
    return build_command(Command.ERASE_FIRMWARE)


def build_set_name(name: str) -> bytes:
    """Build a 32-byte Set Name request.

    Args:
        name: ASCII device name, at most 30 characters.

    Raises:
        EncodingError: If the name is not ASCII or too long.
    """
    try:
        encoded = name.encode("ascii")
    except UnicodeEncodeError as e:
        raise EncodingError(f"Device name must be ASCII: {name!r}") from e
    if len(encoded) > MAX_NAME_LENGTH:
        raise EncodingError(
            f"Device name must be at most {MAX_NAME_LENGTH} bytes, got {len(encoded)}"
        )
    if b"\x00" in encoded:
        raise EncodingError("Device name must not contain NUL")
    return bytes([Command.SET_NAME]) + encoded.ljust(NAME_FIELD_SIZE, b"\x00")
