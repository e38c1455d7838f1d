"""Exception hierarchy for the Helios DAC client.

All failures are scoped to a single device session. ``Busy`` is not an
error: it is reported as :attr:`helios_dac.session.DeviceStatus.BUSY`.
"""

from __future__ import annotations


class HeliosError(Exception):
    """Base class for every error raised by this package."""


class EncodingError(HeliosError, ValueError):
    """Point or frame data cannot be encoded (out of range, oversized)."""


class ProtocolError(HeliosError):
    """The device answered a control exchange with something unexpected."""


class ProtocolMismatch(ProtocolError):
    """The leading response-code byte does not match the expected code."""

    def __init__(self, expected: int, actual: int | None) -> None:
        self.expected = expected
        self.actual = actual
        got = "nothing" if actual is None else f"0x{actual:02X}"
        super().__init__(f"Expected response 0x{expected:02X}, got {got}")


class MalformedResponse(ProtocolError):
    """The response buffer is too short or otherwise unparseable."""


class TransportError(HeliosError, OSError):
    """A control or bulk transfer failed at the USB level."""


class DeviceDisconnectedError(TransportError):
    """The transport handle is no longer valid (device unplugged)."""


class DeviceConnectionError(HeliosError, ConnectionError):
    """The device could not be opened or its interface claimed."""


class SessionStateError(HeliosError, RuntimeError):
    """An operation was attempted in a session state that forbids it."""


class TransferInProgressError(SessionStateError):
    """A frame is already in flight on this session."""
