"""Frame buffer encoder for the bulk streaming channel.

Buffer layout::

    +-----------------------------+-----+-----------------------------+
    |        point 0 (7 bytes)    | ... |        trailer (5 bytes)    |
    +-----------------------------+-----+-----------------------------+

    point:   x>>4 | (x&0xF)<<4 | y>>8 | y&0xFF | r | g | b | i
    trailer: rate lo | rate hi | count lo | count hi | flags

- x and y are 12-bit and share the middle byte
- rate and count are little-endian 16-bit values
- buffers whose point count n satisfies (n - 45) % 64 == 0 trip a
  framing fault in the firmware; those frames are sent with the last point
  dropped and the rate scaled so the frame keeps its duration
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import EncodingError
from ..models.frame import MAX_CHANNEL, MAX_COORD, MAX_POINTS, Frame, FrameFlags, check_rate

POINT_SIZE = 7
TRAILER_SIZE = 5
FRAME_BUFFER_SIZE = MAX_POINTS * POINT_SIZE + TRAILER_SIZE


@dataclass
class FrameTrailer:
    """The five bytes that close every encoded frame."""

    rate: int
    count: int
    flags: FrameFlags

    def __repr__(self) -> str:
        return (
            f"FrameTrailer(rate={self.rate}, count={self.count}, "
            f"flags={self.flags!r})"
        )


def adjust_point_count(count: int, rate: int) -> tuple[int, int]:
    """Return the (count, rate) actually written to the trailer."""
    if (count - 45) % 64 != 0:
        return count, rate
    adjusted = count - 1
    return adjusted, round(rate * adjusted / count)


def pack_coordinates(x: int, y: int) -> bytes:
    """Pack two 12-bit coordinates into 3 bytes."""
    if not 0 <= x <= MAX_COORD or not 0 <= y <= MAX_COORD:
        raise EncodingError(f"Coordinates must be 0-{MAX_COORD}, got ({x}, {y})")
    return bytes([x >> 4, ((x & 0x0F) << 4) | (y >> 8), y & 0xFF])


def unpack_coordinates(data: bytes) -> tuple[int, int]:
    """Recover (x, y) from the first 3 bytes of an encoded point."""
    if len(data) < 3:
        raise EncodingError(f"Need 3 bytes to unpack coordinates, got {len(data)}")
    x = (data[0] << 4) | (data[1] >> 4)
    y = ((data[1] & 0x0F) << 8) | data[2]
    return x, y


def _check_point(index: int, point) -> None:
    for name, upper in (("x", MAX_COORD), ("y", MAX_COORD), ("r", MAX_CHANNEL),
                        ("g", MAX_CHANNEL), ("b", MAX_CHANNEL), ("i", MAX_CHANNEL)):
        value = getattr(point, name)
        if not 0 <= value <= upper:
            raise EncodingError(f"Point {index}: {name} must be 0-{upper}, got {value}")


def encode_frame_into(buffer: bytearray, frame: Frame) -> int:
    """Encode *frame* into *buffer* and return the number of bytes used.

    The buffer must hold at least :data:`FRAME_BUFFER_SIZE` bytes when
    frames may be full size. Nothing is written if validation fails.

    Raises:
        EncodingError: On out-of-range point data, rate or point count.
    """
    points = frame.points
    if not 0 < len(points) <= MAX_POINTS:
        raise EncodingError(f"Frame must have 1-{MAX_POINTS} points, got {len(points)}")
    check_rate(frame.rate)
    for index, point in enumerate(points):
        _check_point(index, point)

    count, rate = adjust_point_count(len(points), frame.rate)
    size = count * POINT_SIZE + TRAILER_SIZE
    if len(buffer) < size:
        raise EncodingError(f"Buffer of {len(buffer)} bytes cannot hold {size}")

    pos = 0
    for point in points[:count]:
        x, y = point.x, point.y
        buffer[pos] = x >> 4
        buffer[pos + 1] = ((x & 0x0F) << 4) | (y >> 8)
        buffer[pos + 2] = y & 0xFF
        buffer[pos + 3] = point.r
        buffer[pos + 4] = point.g
        buffer[pos + 5] = point.b
        buffer[pos + 6] = point.i
        pos += POINT_SIZE

    buffer[pos:pos + 2] = rate.to_bytes(2, "little")
    buffer[pos + 2:pos + 4] = count.to_bytes(2, "little")
    buffer[pos + 4] = int(frame.flags) & 0xFF
    return size


def encode_frame(frame: Frame) -> bytes:
    """Encode *frame* into a freshly allocated buffer."""
    buffer = bytearray(len(frame.points) * POINT_SIZE + TRAILER_SIZE)
    size = encode_frame_into(buffer, frame)
    return bytes(buffer[:size])


def parse_frame_trailer(data: bytes) -> FrameTrailer:
    """Read the trailer of an encoded frame buffer.

    Raises:
        EncodingError: If the buffer length disagrees with the encoded count.
    """
    if len(data) < TRAILER_SIZE:
        raise EncodingError(f"Frame buffer too short: {len(data)} bytes")
    tail = data[-TRAILER_SIZE:]
    trailer = FrameTrailer(
        rate=int.from_bytes(tail[0:2], "little"),
        count=int.from_bytes(tail[2:4], "little"),
        flags=FrameFlags(tail[4]),
    )
    expected = trailer.count * POINT_SIZE + TRAILER_SIZE
    if len(data) != expected:
        raise EncodingError(
            f"Trailer declares {trailer.count} points ({expected} bytes), "
            f"buffer has {len(data)}"
        )
    return trailer
