"""Tests for multi-device discovery."""

from conftest import FakeTransport
from helios_dac.errors import DeviceConnectionError
from helios_dac.manager import DeviceManager
from helios_dac.session import SessionState


def _discover(*transports):
    return lambda config: list(transports)


async def test_open_and_close_devices(config):
    transports = [FakeTransport(), FakeTransport()]
    manager = DeviceManager(config, discover=_discover(*transports))
    assert await manager.open_devices() == 2
    assert len(manager) == 2
    assert all(s.state is SessionState.READY for s in manager)
    assert manager[1].transport is transports[1]

    await manager.close_devices()
    assert len(manager) == 0
    assert all(len(t.requests(0x01)) == 1 for t in transports)


async def test_failed_device_is_skipped(config):
    broken = FakeTransport()
    broken.open_error = DeviceConnectionError("busy")
    manager = DeviceManager(config, discover=_discover(FakeTransport(), broken))
    assert await manager.open_devices() == 1
    await manager.close_devices()


async def test_open_devices_is_idempotent(config):
    calls = []

    def discover(cfg):
        calls.append(cfg)
        return [FakeTransport()]

    manager = DeviceManager(config, discover=discover)
    await manager.open_devices()
    assert await manager.open_devices() == 1
    assert len(calls) == 1
    await manager.close_devices()


async def test_context_manager(config):
    transport = FakeTransport()
    async with DeviceManager(config, discover=_discover(transport)) as manager:
        assert manager.sessions[0].name == "Helios 1"
    assert transport.close_calls == 1


async def test_no_devices(config):
    manager = DeviceManager(config, discover=_discover())
    assert await manager.open_devices() == 0
    await manager.close_devices()
