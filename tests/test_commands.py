"""Tests for control request builders."""

import pytest

from helios_dac.errors import EncodingError
from helios_dac.protocol.commands import (
    RESPONSE_FOR,
    Command,
    Response,
    build_command,
    build_erase_firmware,
    build_get_firmware_version,
    build_get_name,
    build_get_status,
    build_set_name,
    build_set_shutter,
    build_stop,
)


def test_command_enum_values():
    """Verify command and response codes match the device firmware."""
    assert Command.STOP == 0x01
    assert Command.SET_SHUTTER == 0x02
    assert Command.GET_STATUS == 0x03
    assert Command.GET_FIRMWARE_VERSION == 0x04
    assert Command.GET_NAME == 0x05
    assert Command.SET_NAME == 0x06
    assert Command.ERASE_FIRMWARE == 0x07
    assert Response.STATUS == 0x83
    assert Response.FIRMWARE_VERSION == 0x84
    assert Response.NAME == 0x85


def test_queries_map_to_responses():
    assert RESPONSE_FOR[Command.GET_STATUS] is Response.STATUS
    assert RESPONSE_FOR[Command.GET_NAME] is Response.NAME


def test_two_byte_requests():
    """Plain requests are the command code plus a zero byte."""
    assert build_stop() == b"\x01\x00"
    assert build_get_status() == b"\x03\x00"
    assert build_get_firmware_version() == b"\x04\x00"
    assert build_get_name() == b"\x05\x00"
    assert build_erase_firmware() == b"\x07\x00"


def test_build_set_shutter():
    assert build_set_shutter(True) == b"\x02\x01"
    assert build_set_shutter(False) == b"\x02\x00"


def test_build_command_argument_bounds():
    with pytest.raises(EncodingError):
        build_command(Command.STOP, 256)


def test_build_set_name_layout():
    """Set Name is 32 bytes: code, name, null padding."""
    request = build_set_name("Stage Left")
    assert len(request) == 32
    assert request[0] == 0x06
    assert request[1:11] == b"Stage Left"
    assert request[11:] == b"\x00" * 21


def test_build_set_name_max_length():
    request = build_set_name("x" * 30)
    assert len(request) == 32
    assert request[-1] == 0


def test_build_set_name_too_long():
    with pytest.raises(EncodingError):
        build_set_name("x" * 31)


def test_build_set_name_non_ascii():
    with pytest.raises(EncodingError):
        build_set_name("Bühne")


def test_build_set_name_embedded_nul():
    with pytest.raises(EncodingError):
        build_set_name("a\x00b")
