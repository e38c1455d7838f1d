"""One connected Helios DAC.

A :class:`DacSession` owns a single transport handle and serializes every
transfer on it. Blocking USB calls run in the default executor, so each
transfer (and the settle delay after Stop) is a suspension point and
sessions for different devices proceed concurrently.

Usage::

    async with DacSession(USBConnection()) as dac:
        if await dac.get_status() is DeviceStatus.READY:
            await dac.send_frame(points, rate=30000)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from enum import Enum
from typing import TYPE_CHECKING, Any

from .config import DacConfig
from .errors import (
    DeviceConnectionError,
    DeviceDisconnectedError,
    HeliosError,
    ProtocolError,
    SessionStateError,
    TransferInProgressError,
    TransportError,
)
from .models.frame import Frame, Point, check_rate
from .protocol.exchange import CommandProtocol
from .protocol.framing import FRAME_BUFFER_SIZE, encode_frame_into

if TYPE_CHECKING:
    from .playback import PlaybackLoop
    from .transport.usb_connection import Transport

logger = logging.getLogger(__name__)

FrameCallback = Callable[["DacSession"], Awaitable[Any] | Any]


class SessionState(Enum):
    """Connection lifecycle. CLOSED is terminal."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    CLOSED = "closed"


class DeviceStatus(Enum):
    """Outcome of a status poll. BUSY is a result, not a failure."""

    READY = "ready"
    BUSY = "busy"
    ERROR = "error"


class _Channel:
    """Control channel handed to the command protocol.

    Only used while the session's exchange lock is held.
    """

    def __init__(self, session: DacSession) -> None:
        self._session = session

    async def control_out(self, request: int, payload: bytes, value: int = 0) -> None:
        await self._session._call_transport(
            self._session._transport.control_out, request, payload, value
        )

    async def control_in(self, request: int, length: int) -> bytes:
        return await self._session._call_transport(
            self._session._transport.control_in, request, length
        )


class DacSession:
    """Connection state and public operations for one DAC."""

    def __init__(
        self,
        transport: Transport,
        config: DacConfig | None = None,
        protocol: CommandProtocol | None = None,
    ) -> None:
        self.config = config or DacConfig()
        self._transport = transport
        self._protocol = protocol or CommandProtocol(self.config)
        self._channel = _Channel(self)
        self._state = SessionState.DISCONNECTED
        self._default_rate = self.config.default_rate
        self._buffer = bytearray(FRAME_BUFFER_SIZE)
        self._lock = asyncio.Lock()
        self._frame_in_flight = False
        self._closing = False
        self._playback: PlaybackLoop | None = None

        self.firmware_version: int | None = None
        self.name: str | None = None
        self.last_error: BaseException | None = None

    def __repr__(self) -> str:
        return (
            f"DacSession(state={self._state.value}, name={self.name!r}, "
            f"firmware={self.firmware_version})"
        )

    async def __aenter__(self) -> DacSession:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ─── PROPERTIES ──────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def playback(self) -> PlaybackLoop | None:
        return self._playback

    @property
    def default_rate(self) -> int:
        """Points per second used when ``send_frame`` gets no rate."""
        return self._default_rate

    @default_rate.setter
    def default_rate(self, rate: int) -> None:
        check_rate(rate)
        self._default_rate = rate

    # ─── TRANSFER PLUMBING ───────────────────────────────────────────

    def _require_open(self) -> None:
        if self._state is SessionState.CLOSED:
            raise SessionStateError("Session is closed")

    def _require_ready(self) -> None:
        self._require_open()
        if self._state is not SessionState.READY:
            raise SessionStateError(f"Session is {self._state.value}, not ready")

    async def _call_transport(self, fn: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn, *args)
        except DeviceDisconnectedError as e:
            self.last_error = e
            await self._handle_gone(e)
            raise
        except TransportError as e:
            self.last_error = e
            raise

    async def _handle_gone(self, error: DeviceDisconnectedError) -> None:
        logger.warning("Device disappeared, closing session: %s", error)
        self._state = SessionState.CLOSED
        if self._playback is not None:
            self._playback.disarm()
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._transport.close)

    async def _exchange(self, fn: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        async with self._lock:
            self._require_open()
            try:
                result = await fn(self._channel, *args)
            except (ProtocolError, TransportError) as e:
                self.last_error = e
                raise
        self.last_error = None
        return result

    # ─── LIFECYCLE ───────────────────────────────────────────────────

    async def connect(self) -> None:
        """Open and claim the device, then query its firmware and name.

        The queries are best effort; the session is ready as soon as the
        interface is claimed.

        Raises:
            DeviceConnectionError: If the transport cannot be opened.
            SessionStateError: If the session is closed or connecting.
        """
        if self._state is SessionState.READY:
            return
        self._require_open()
        if self._state is SessionState.CONNECTING:
            raise SessionStateError("Connect already in progress")

        self._state = SessionState.CONNECTING
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._transport.open)
        except DeviceConnectionError as e:
            self._abandon_connect()
            self.last_error = e
            raise
        except TransportError as e:
            self._abandon_connect()
            self.last_error = e
            raise DeviceConnectionError(f"Could not open device: {e}") from e

        # close() during open marks the session CLOSED and leaves the handle to us
        if self._state is not SessionState.CONNECTING:
            await loop.run_in_executor(None, self._transport.close)
            raise SessionStateError("Session closed during connect")

        self._state = SessionState.READY
        logger.info("Session ready")

        try:
            await self.get_firmware_version()
        except (ProtocolError, TransportError) as e:
            logger.warning("Could not read firmware version: %s", e)
        try:
            await self.get_name()
        except (ProtocolError, TransportError) as e:
            logger.warning("Could not read device name: %s", e)
        logger.info("Connected to %r (firmware %s)", self.name, self.firmware_version)

    def _abandon_connect(self) -> None:
        if self._state is SessionState.CONNECTING:
            self._state = SessionState.DISCONNECTED

    async def close(self) -> None:
        """Disarm playback, stop output, and release the device.

        Safe to call repeatedly; only the first call issues Stop.
        """
        if self._state is SessionState.CLOSED or self._closing:
            return
        self._closing = True
        try:
            if self._playback is not None:
                try:
                    await self._playback.stop()
                except HeliosError as e:
                    logger.warning("Playback ended with error: %s", e)
        finally:
            await self._shutdown()

    async def _shutdown(self) -> None:
        was_ready = self._state is SessionState.READY
        if was_ready:
            try:
                await self._exchange(self._protocol.stop)
            except HeliosError as e:
                logger.warning("Stop failed during close: %s", e)

        async with self._lock:
            if self._state is not SessionState.CLOSED and was_ready:
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, self._transport.close)
            self._state = SessionState.CLOSED
        self._closing = False
        logger.info("Session closed")

    # ─── STREAMING ───────────────────────────────────────────────────

    async def send_frame(
        self,
        points: Iterable[Point],
        rate: int | None = None,
        single_shot: bool = False,
        start_immediately: bool = False,
    ) -> int:
        """Encode *points* and write them to the bulk endpoint.

        Does not poll status first; call :meth:`get_status` when the frame
        must not overwrite one still playing.

        Args:
            points: 1-4096 points.
            rate: Points per second; ``None`` or 0 uses :attr:`default_rate`.
            single_shot: Play the frame once instead of looping it.
            start_immediately: Interrupt the current frame.

        Returns:
            Number of bytes written.

        Raises:
            EncodingError: On invalid point data. Nothing is transferred.
            SessionStateError: If not ready.
            TransferInProgressError: If a frame is already being sent.
            TransportError: If the bulk transfer fails.
        """
        self._require_ready()
        if self._frame_in_flight:
            raise TransferInProgressError("A frame is already in flight")

        frame = Frame.build(
            points,
            rate or self._default_rate,
            single_shot=single_shot,
            start_immediately=start_immediately,
        )

        self._frame_in_flight = True
        try:
            async with self._lock:
                self._require_ready()
                size = encode_frame_into(self._buffer, frame)
                with memoryview(self._buffer) as view:
                    written = await self._call_transport(
                        self._transport.bulk_out, self.config.bulk_endpoint, view[:size]
                    )
        finally:
            self._frame_in_flight = False

        self.last_error = None
        logger.debug("Sent frame: %d points, %d bytes", len(frame.points), written)
        return written

    # ─── CONTROL COMMANDS ────────────────────────────────────────────

    async def get_status(self) -> DeviceStatus:
        """Poll readiness, retrying up to ``config.status_attempts`` times.

        Returns ERROR (with the cause in :attr:`last_error`) when the
        exchange keeps failing, BUSY when the device never became ready.
        """
        self._require_ready()
        try:
            response = await self._exchange(self._protocol.get_status)
        except (ProtocolError, TransportError) as e:
            logger.warning("Status poll failed: %s", e)
            return DeviceStatus.ERROR
        return DeviceStatus.READY if response.ready else DeviceStatus.BUSY

    async def stop(self) -> None:
        """Stop output and wait out the settle delay.

        Also disarms a playback loop bound to this session.
        """
        self._require_ready()
        if self._playback is not None:
            self._playback.disarm()
        await self._exchange(self._protocol.stop)
        logger.info("Output stopped")

    async def set_shutter(self, open_: bool) -> None:
        self._require_ready()
        await self._exchange(self._protocol.set_shutter, open_)

    async def get_firmware_version(self) -> int:
        self._require_ready()
        response = await self._exchange(self._protocol.get_firmware_version)
        self.firmware_version = response.version
        return response.version

    async def get_name(self) -> str:
        self._require_ready()
        response = await self._exchange(self._protocol.get_name)
        self.name = response.name
        return response.name

    async def set_name(self, name: str) -> None:
        """Rename the device. The name is stored in the DAC's flash."""
        self._require_ready()
        await self._exchange(self._protocol.set_name, name)
        self.name = name

    async def erase_firmware(self) -> None:
        """Erase the firmware; the device reboots into its bootloader."""
        self._require_ready()
        await self._exchange(self._protocol.erase_firmware)

    # ─── PLAYBACK ────────────────────────────────────────────────────

    def on_ready(self, callback: FrameCallback) -> PlaybackLoop:
        """Start a playback loop that calls *callback* whenever the DAC is ready.

        Must be called from within a running event loop.

        Raises:
            SessionStateError: If not ready or a loop is already running.
        """
        from .playback import PlaybackLoop

        self._require_ready()
        if self._playback is not None and self._playback.running:
            raise SessionStateError("A playback loop is already running")
        self._playback = PlaybackLoop(self, callback)
        self._playback.start()
        return self._playback
