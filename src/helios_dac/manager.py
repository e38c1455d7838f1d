"""Discovery and bulk open/close of every attached DAC."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterator

from .config import DacConfig
from .errors import HeliosError
from .session import DacSession
from .transport.usb_connection import Transport, find_devices

logger = logging.getLogger(__name__)


class DeviceManager:
    """Owns one :class:`DacSession` per attached device.

    Sessions are indexed in discovery order::

        async with DeviceManager() as dacs:
            for dac in dacs:
                await dac.get_status()
    """

    def __init__(
        self,
        config: DacConfig | None = None,
        discover: Callable[[DacConfig], list[Transport]] = find_devices,
    ) -> None:
        self.config = config or DacConfig()
        self._discover = discover
        self._sessions: list[DacSession] = []

    def __len__(self) -> int:
        return len(self._sessions)

    def __getitem__(self, index: int) -> DacSession:
        return self._sessions[index]

    def __iter__(self) -> Iterator[DacSession]:
        return iter(self._sessions)

    async def __aenter__(self) -> DeviceManager:
        await self.open_devices()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close_devices()

    @property
    def sessions(self) -> list[DacSession]:
        return list(self._sessions)

    async def open_devices(self) -> int:
        """Discover and connect every device; returns how many are ready.

        Devices that fail to connect are logged and left out. Calling this
        again while devices are open is a no-op.
        """
        if self._sessions:
            return len(self._sessions)

        loop = asyncio.get_running_loop()
        transports = await loop.run_in_executor(None, self._discover, self.config)
        candidates = [DacSession(t, self.config) for t in transports]
        results = await asyncio.gather(
            *(s.connect() for s in candidates), return_exceptions=True
        )
        for session, result in zip(candidates, results):
            if isinstance(result, HeliosError):
                logger.warning("Skipping device that failed to connect: %s", result)
            elif isinstance(result, BaseException):
                raise result
            else:
                self._sessions.append(session)

        logger.info("Opened %d of %d device(s)", len(self._sessions), len(candidates))
        return len(self._sessions)

    async def close_devices(self) -> None:
        """Close every session concurrently."""
        sessions, self._sessions = self._sessions, []
        await asyncio.gather(*(s.close() for s in sessions))
