"""Point and frame value types."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import IntFlag

from ..config import MAX_RATE, MIN_RATE
from ..errors import EncodingError

MAX_COORD = 0xFFF
MAX_CHANNEL = 0xFF
MAX_POINTS = 0x1000


class FrameFlags(IntFlag):
    """Playback flags carried in the last byte of the frame trailer."""

    DEFAULT = 0
    START_IMMEDIATELY = 1 << 0
    SINGLE_MODE = 1 << 1


def _check_range(name: str, value: int, upper: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodingError(f"{name} must be an int, got {type(value).__name__}")
    if not 0 <= value <= upper:
        raise EncodingError(f"{name} must be 0-{upper}, got {value}")


def check_rate(rate: int) -> None:
    """Reject a point rate that is not an int in [7, 65535]."""
    if isinstance(rate, bool) or not isinstance(rate, int):
        raise EncodingError(f"Frame rate must be an int, got {type(rate).__name__}")
    if rate == 0:
        raise EncodingError("Frame rate is 0; supply a rate or use the session default")
    if not MIN_RATE <= rate <= MAX_RATE:
        raise EncodingError(f"Frame rate must be {MIN_RATE}-{MAX_RATE}, got {rate}")


@dataclass(frozen=True)
class Point:
    """One laser point: 12-bit position, 8-bit color and intensity.

    When ``i`` is omitted it is 0 for a blanked point (r=g=b=0) and 255
    for any lit point.
    """

    x: int
    y: int
    r: int = 0
    g: int = 0
    b: int = 0
    i: int | None = None

    def __post_init__(self) -> None:
        _check_range("x", self.x, MAX_COORD)
        _check_range("y", self.y, MAX_COORD)
        for name in ("r", "g", "b"):
            _check_range(name, getattr(self, name), MAX_CHANNEL)
        if self.i is None:
            lit = self.r or self.g or self.b
            object.__setattr__(self, "i", MAX_CHANNEL if lit else 0)
        else:
            _check_range("i", self.i, MAX_CHANNEL)

    @classmethod
    def blank(cls, x: int, y: int) -> Point:
        """A dark point, used for dwell at segment ends."""
        return cls(x, y, 0, 0, 0, 0)


@dataclass(frozen=True)
class Frame:
    """A complete point sequence plus playback parameters."""

    points: tuple[Point, ...]
    rate: int
    flags: FrameFlags = field(default=FrameFlags.DEFAULT)

    def __post_init__(self) -> None:
        if not isinstance(self.points, tuple):
            object.__setattr__(self, "points", tuple(self.points))
        count = len(self.points)
        if count == 0:
            raise EncodingError("Frame must contain at least one point")
        if count > MAX_POINTS:
            raise EncodingError(f"Frame has {count} points, maximum is {MAX_POINTS}")
        check_rate(self.rate)
        object.__setattr__(self, "flags", FrameFlags(self.flags))

    @classmethod
    def build(
        cls,
        points: Iterable[Point],
        rate: int,
        *,
        single_shot: bool = False,
        start_immediately: bool = False,
    ) -> Frame:
        flags = FrameFlags.DEFAULT
        if start_immediately:
            flags |= FrameFlags.START_IMMEDIATELY
        if single_shot:
            flags |= FrameFlags.SINGLE_MODE
        return cls(tuple(points), rate, flags)
