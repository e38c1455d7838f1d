"""MCP server entry point for Helios laser DACs.

Exposes device discovery, status, naming, shutter control and pattern
playback as tools via the Model Context Protocol with stdio transport.
"""

from __future__ import annotations

import itertools
import logging
import time
from typing import Any

from mcp.server.fastmcp import FastMCP

from .config import DacConfig
from .errors import HeliosError
from .manager import DeviceManager
from .models.patterns import BouncingLine, ScanLine, horizontal_sweep_frames
from .playback import PlaybackLoop
from .session import DacSession

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "helios-dac",
    instructions="MCP server for Helios USB laser DACs",
)

# Global device state
_manager: DeviceManager | None = None

PATTERNS = ("scanline", "bouncing", "sweep")


def _get_session(index: int) -> DacSession:
    """Get an open session by index, raising if not connected."""
    if _manager is None or len(_manager) == 0:
        raise RuntimeError("No devices connected. Use the 'connect' tool first.")
    if not 0 <= index < len(_manager):
        raise ValueError(f"Device index must be 0-{len(_manager) - 1}, got {index}")
    return _manager[index]


def _describe(index: int, session: DacSession) -> dict[str, Any]:
    info = getattr(session.transport, "device_info", None)
    playback = session.playback
    return {
        "index": index,
        "name": session.name,
        "firmware": session.firmware_version,
        "state": session.state.value,
        "default_rate": session.default_rate,
        "usb_path": info.path if info else None,
        "playing": bool(playback and playback.running),
    }


def _frame_source(pattern: str):
    """Return a zero-argument callable producing the next frame of *pattern*."""
    if pattern == "scanline":
        scanner = ScanLine()
        return lambda: scanner.frame(time.monotonic() * 1000)
    if pattern == "bouncing":
        line = BouncingLine()
        return line.frame
    if pattern == "sweep":
        frames = itertools.cycle(horizontal_sweep_frames())
        return lambda: next(frames)
    raise ValueError(f"Unknown pattern '{pattern}'. Valid: {list(PATTERNS)}")


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
async def connect() -> dict[str, Any]:
    """Discover and open every attached Helios DAC (USB 0x1209:0xE500).

    Each device is queried for its firmware version and name.
    """
    global _manager
    if _manager is not None and len(_manager):
        return {"connected": len(_manager), "message": "Already connected"}

    _manager = DeviceManager(DacConfig.from_env())
    count = await _manager.open_devices()
    return {
        "connected": count,
        "devices": [_describe(i, s) for i, s in enumerate(_manager)],
    }


@mcp.tool()
async def disconnect() -> dict[str, bool]:
    """Stop playback and close every device."""
    global _manager
    if _manager is not None:
        await _manager.close_devices()
        _manager = None
    return {"disconnected": True}


@mcp.tool()
def list_devices() -> dict[str, Any]:
    """List connected devices with their cached name, firmware and state."""
    if _manager is None:
        return {"devices": []}
    return {"devices": [_describe(i, s) for i, s in enumerate(_manager)]}


@mcp.tool()
async def get_device_info(index: int = 0) -> dict[str, Any]:
    """Re-read firmware version and name from a device.

    Args:
        index: Device index from list_devices.
    """
    session = _get_session(index)
    try:
        await session.get_firmware_version()
        await session.get_name()
    except HeliosError as e:
        return {"error": str(e)}
    return _describe(index, session)


@mcp.tool()
async def get_status(index: int = 0) -> dict[str, Any]:
    """Poll whether a device is ready for its next frame.

    Args:
        index: Device index from list_devices.
    """
    session = _get_session(index)
    status = await session.get_status()
    result: dict[str, Any] = {"index": index, "status": status.value}
    if session.last_error is not None:
        result["error"] = str(session.last_error)
    return result


# ─── DEVICE CONTROL TOOLS ────────────────────────────────────────────

@mcp.tool()
async def set_name(index: int, name: str) -> dict[str, Any]:
    """Rename a device (stored in the DAC's flash).

    Args:
        index: Device index from list_devices.
        name: ASCII name, at most 30 characters.
    """
    session = _get_session(index)
    try:
        await session.set_name(name)
    except HeliosError as e:
        return {"error": str(e)}
    return {"index": index, "name": name}


@mcp.tool()
async def set_shutter(index: int, is_open: bool) -> dict[str, Any]:
    """Open or close a device's shutter.

    Args:
        index: Device index from list_devices.
        is_open: True to open the shutter, False to close it.
    """
    session = _get_session(index)
    try:
        await session.set_shutter(is_open)
    except HeliosError as e:
        return {"error": str(e)}
    return {"index": index, "shutter": "open" if is_open else "closed"}


@mcp.tool()
async def stop(index: int = 0) -> dict[str, Any]:
    """Stop output on a device, ending any playback.

    Args:
        index: Device index from list_devices.
    """
    session = _get_session(index)
    try:
        await session.stop()
    except HeliosError as e:
        return {"error": str(e)}
    return {"index": index, "stopped": True}


# ─── PLAYBACK TOOLS ──────────────────────────────────────────────────

@mcp.tool()
async def play_pattern(
    index: int = 0,
    pattern: str = "scanline",
    rate: int = 30000,
) -> dict[str, Any]:
    """Start streaming a built-in test pattern, paced by device readiness.

    Args:
        index: Device index from list_devices.
        pattern: One of "scanline", "bouncing", "sweep".
        rate: Points per second (7-65535).
    """
    session = _get_session(index)
    if session.playback is not None and session.playback.running:
        return {"error": "Device is already playing; use stop_playback first"}
    try:
        next_frame = _frame_source(pattern)
        session.default_rate = rate
    except ValueError as e:
        return {"error": str(e)}

    async def dispatch(dac: DacSession) -> None:
        await dac.send_frame(next_frame())

    session.on_ready(dispatch)
    return {"index": index, "pattern": pattern, "rate": rate, "playing": True}


@mcp.tool()
async def stop_playback(index: int = 0) -> dict[str, Any]:
    """Stop a running pattern and report how many frames were sent.

    Args:
        index: Device index from list_devices.
    """
    session = _get_session(index)
    playback: PlaybackLoop | None = session.playback
    if playback is None:
        return {"index": index, "playing": False, "frames": 0}
    try:
        await playback.stop()
    except HeliosError as e:
        return {"error": str(e), "frames": playback.frames_dispatched}
    return {"index": index, "playing": False, "frames": playback.frames_dispatched}


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
