"""Tests for the MCP tool functions, driven against fake devices."""

import asyncio

import pytest

from conftest import FakeTransport
from helios_dac import server
from helios_dac.config import DacConfig
from helios_dac.manager import DeviceManager


@pytest.fixture
def transport(monkeypatch):
    fake = FakeTransport()
    config = DacConfig(settle_delay=0, status_attempts=5)
    monkeypatch.setattr(server, "_manager", None)
    monkeypatch.setattr(
        server,
        "DeviceManager",
        lambda _config: DeviceManager(config, discover=lambda cfg: [fake]),
    )
    return fake


async def test_connect_and_list(transport):
    result = await server.connect()
    assert result["connected"] == 1
    device = result["devices"][0]
    assert device["name"] == "Helios 1"
    assert device["firmware"] == 6
    assert device["state"] == "ready"

    again = await server.connect()
    assert again["message"] == "Already connected"
    assert server.list_devices()["devices"][0]["index"] == 0
    await server.disconnect()


async def test_tools_require_connection(transport):
    with pytest.raises(RuntimeError, match="connect"):
        await server.get_status(0)
    assert server.list_devices() == {"devices": []}


async def test_bad_index(transport):
    await server.connect()
    with pytest.raises(ValueError):
        await server.get_status(3)
    await server.disconnect()


async def test_status_and_controls(transport):
    await server.connect()
    assert (await server.get_status(0))["status"] == "ready"
    assert (await server.set_shutter(0, True))["shutter"] == "open"
    assert (await server.set_name(0, "Booth"))["name"] == "Booth"
    assert "error" in await server.set_name(0, "x" * 40)
    assert (await server.stop(0))["stopped"] is True
    transport.queue(0x05, b"\x85Booth\x00")
    assert (await server.get_device_info(0))["name"] == "Booth"
    await server.disconnect()
    assert transport.close_calls == 1


@pytest.mark.parametrize("pattern", ["scanline", "bouncing", "sweep"])
async def test_play_and_stop_pattern(transport, pattern):
    await server.connect()
    result = await server.play_pattern(0, pattern, rate=20000)
    assert result["playing"] is True
    assert "error" in await server.play_pattern(0, pattern)

    for _ in range(2000):
        if len(transport.bulk_writes) >= 2:
            break
        await asyncio.sleep(0.001)
    stopped = await server.stop_playback(0)
    assert stopped["frames"] >= 2
    data = transport.bulk_writes[0][1]
    assert 19000 <= int.from_bytes(data[-5:-3], "little") <= 20000
    await server.disconnect()


async def test_unknown_pattern(transport):
    await server.connect()
    result = await server.play_pattern(0, "spiral")
    assert "Unknown pattern" in result["error"]
    await server.disconnect()
