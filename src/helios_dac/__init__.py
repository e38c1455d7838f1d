"""Async client for Helios laser DACs over USB."""

from .config import DacConfig
from .errors import (
    DeviceConnectionError,
    DeviceDisconnectedError,
    EncodingError,
    HeliosError,
    MalformedResponse,
    ProtocolError,
    ProtocolMismatch,
    SessionStateError,
    TransferInProgressError,
    TransportError,
)
from .manager import DeviceManager
from .models.frame import Frame, FrameFlags, Point
from .playback import PlaybackLoop
from .session import DacSession, DeviceStatus, SessionState
from .transport.usb_connection import USBConnection, find_devices

__version__ = "0.1.0"
