"""Control exchanges and the retry policy applied to each.

:class:`CommandProtocol` holds no transport state. Every exchange is run
against a :class:`ControlChannel`, which the device session implements.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from ..config import DacConfig
from ..errors import DeviceDisconnectedError, ProtocolError, TransportError
from .commands import (
    RESPONSE_LENGTH,
    Command,
    Response,
    build_command,
    build_erase_firmware,
    build_set_name,
    build_set_shutter,
    build_stop,
)
from .parser import (
    FirmwareVersionResponse,
    NameResponse,
    StatusResponse,
    decode_response,
)
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


class ControlChannel(Protocol):
    """The two control transfer primitives an exchange needs."""

    async def control_out(self, request: int, payload: bytes, value: int = 0) -> None: ...

    async def control_in(self, request: int, length: int) -> bytes: ...


class CommandProtocol:
    """Request/response exchanges for every control command."""

    def __init__(self, config: DacConfig | None = None) -> None:
        self.config = config or DacConfig()
        self.status_policy = RetryPolicy(
            max_attempts=self.config.status_attempts,
            retry_on=(ProtocolError, TransportError),
            give_up_on=(DeviceDisconnectedError,),
            retry_if=lambda response: not response.ready,
        )
        self.query_policy = RetryPolicy(
            max_attempts=self.config.command_attempts,
            retry_on=(ProtocolError, TransportError),
            give_up_on=(DeviceDisconnectedError,),
        )
        self.stop_policy = RetryPolicy(
            max_attempts=self.config.command_attempts,
            retry_on=(TransportError,),
            give_up_on=(DeviceDisconnectedError,),
        )

    async def _query(self, channel: ControlChannel, command: Command, response: Response):
        await channel.control_out(command, build_command(command))
        data = await channel.control_in(command, RESPONSE_LENGTH)
        return decode_response(data, response)

    async def get_status(self, channel: ControlChannel) -> StatusResponse:
        """Poll status until ready or the attempt ceiling is reached.

        Returns the last response; ``ready`` is False when the ceiling was
        reached on a busy device.
        """
        return await self.status_policy.run(
            lambda: self._query(channel, Command.GET_STATUS, Response.STATUS),
            "get_status",
        )

    async def get_firmware_version(self, channel: ControlChannel) -> FirmwareVersionResponse:
        return await self.query_policy.run(
            lambda: self._query(
                channel, Command.GET_FIRMWARE_VERSION, Response.FIRMWARE_VERSION
            ),
            "get_firmware_version",
        )

    async def get_name(self, channel: ControlChannel) -> NameResponse:
        return await self.query_policy.run(
            lambda: self._query(channel, Command.GET_NAME, Response.NAME),
            "get_name",
        )

    async def stop(self, channel: ControlChannel) -> None:
        """Issue Stop, then wait out the settle delay."""
        await self.stop_policy.run(
            lambda: channel.control_out(Command.STOP, build_stop()),
            "stop",
        )
        await asyncio.sleep(self.config.settle_delay)

    async def set_shutter(self, channel: ControlChannel, open_: bool) -> None:
        await channel.control_out(
            Command.SET_SHUTTER, build_set_shutter(open_), value=1 if open_ else 0
        )

    async def set_name(self, channel: ControlChannel, name: str) -> None:
        await channel.control_out(Command.SET_NAME, build_set_name(name))

    async def erase_firmware(self, channel: ControlChannel) -> None:
        logger.warning("Erasing device firmware")
        await channel.control_out(Command.ERASE_FIRMWARE, build_erase_firmware())
