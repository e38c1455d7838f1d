"""Shared fixtures: an in-memory transport standing in for the DAC."""

import pytest

from helios_dac.config import DacConfig
from helios_dac.session import DacSession


class FakeTransport:
    """Records every transfer and answers queries from per-request queues.

    Queued items are response bytes or exceptions to raise. When a queue
    is empty the default response for that request is returned.
    """

    def __init__(self):
        self.opened = False
        self.close_calls = 0
        self.open_error = None
        self.bulk_error = None
        self.control_out_errors = []
        self.control_out_calls = []
        self.control_in_calls = []
        self.bulk_writes = []
        self.responses = {}
        self.default_responses = {
            0x03: b"\x83\x01",
            0x04: b"\x84\x06\x00\x00\x00",
            0x05: b"\x85Helios 1\x00",
        }

    def queue(self, request, *items):
        self.responses.setdefault(request, []).extend(items)

    def open(self):
        if self.open_error is not None:
            raise self.open_error
        self.opened = True

    def close(self):
        self.opened = False
        self.close_calls += 1

    def control_out(self, request, payload, value=0):
        self.control_out_calls.append((request, bytes(payload), value))
        if self.control_out_errors:
            error = self.control_out_errors.pop(0)
            if error is not None:
                raise error

    def control_in(self, request, length):
        self.control_in_calls.append(request)
        queued = self.responses.get(request)
        item = queued.pop(0) if queued else self.default_responses[request]
        if isinstance(item, BaseException):
            raise item
        return item

    def bulk_out(self, endpoint, data):
        if self.bulk_error is not None:
            raise self.bulk_error
        self.bulk_writes.append((endpoint, bytes(data)))
        return len(data)

    def requests(self, code):
        """control_out calls carrying request *code*."""
        return [call for call in self.control_out_calls if call[0] == code]


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def config():
    return DacConfig(settle_delay=0, status_attempts=5, max_consecutive_errors=3)


@pytest.fixture
def session(transport, config):
    return DacSession(transport, config)


@pytest.fixture
async def connected(session):
    await session.connect()
    yield session
    await session.close()
