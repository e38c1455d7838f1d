"""Readiness-paced frame production.

The loop polls the DAC and hands control to a frame callback each time the
device reports ready, so the hardware (not a timer) sets the frame rate::

    async def next_frame(dac):
        await dac.send_frame(scanner.frame(time.monotonic() * 1000))

    loop = session.on_ready(next_frame)
    ...
    await loop.stop()
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING

from .errors import SessionStateError
from .session import DeviceStatus, SessionState

if TYPE_CHECKING:
    from .session import DacSession, FrameCallback

logger = logging.getLogger(__name__)


class PlaybackLoop:
    """Continuous status poll and frame dispatch bound to one session.

    Disarms when :meth:`stop` (here or on the session) is called, when the
    session closes, or after ``max_consecutive_errors`` failed polls in a
    row, in which case the last error is raised from :meth:`wait`.
    """

    def __init__(self, session: DacSession, callback: FrameCallback) -> None:
        self._session = session
        self._callback = callback
        self._max_errors = session.config.max_consecutive_errors
        self._armed = False
        self._task: asyncio.Task | None = None
        self.frames_dispatched = 0

    @property
    def armed(self) -> bool:
        return self._armed

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Arm the loop and spawn its task on the running event loop."""
        if self.running:
            raise SessionStateError("Playback loop is already running")
        self._armed = True
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"helios-playback-{id(self._session):x}"
        )
        return self._task

    def disarm(self) -> None:
        """Ask the loop to exit after the current poll or callback."""
        self._armed = False

    async def wait(self) -> None:
        """Wait for the loop task to finish, re-raising its error if any."""
        task = self._task
        if task is None or task is asyncio.current_task():
            return
        await task

    async def stop(self) -> None:
        self.disarm()
        await self.wait()

    async def _dispatch(self) -> None:
        result = self._callback(self._session)
        if inspect.isawaitable(result):
            await result
        self.frames_dispatched += 1

    async def _run(self) -> None:
        session = self._session
        errors = 0
        logger.info("Playback started")
        try:
            while self._armed and session.state is SessionState.READY:
                status = await session.get_status()
                if not self._armed:
                    break
                if status is DeviceStatus.READY:
                    errors = 0
                    await self._dispatch()
                elif status is DeviceStatus.ERROR:
                    errors += 1
                    if errors >= self._max_errors:
                        logger.warning("Playback giving up after %d failed polls", errors)
                        if session.last_error is not None:
                            raise session.last_error
                        break
                else:
                    errors = 0
                    await asyncio.sleep(0)
        finally:
            self._armed = False
            logger.info("Playback stopped after %d frames", self.frames_dispatched)
