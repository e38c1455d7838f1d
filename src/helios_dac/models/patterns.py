"""Procedural point producers used for demos and device bring-up.

Producers only yield point sequences; they know nothing about the device.
"""

from __future__ import annotations

import math
import random

from .frame import MAX_COORD, MAX_CHANNEL, Point


def _clamp(value: float) -> int:
    return min(max(int(value), 0), MAX_COORD)


def horizontal_sweep_frames(
    num_frames: int = 30,
    points_per_frame: int = 1000,
    color: tuple[int, int, int, int] = (0xD0, 0xFF, 0xD0, 0xFF),
) -> list[list[Point]]:
    """Precompute frames of a horizontal line stepping down the field.

    Each frame draws the line left-to-right and back at a fixed height;
    frame ``k`` sits at ``k/num_frames`` of the full vertical range.
    """
    if num_frames < 1 or points_per_frame < 2:
        raise ValueError("Need at least one frame of two points")
    r, g, b, i = color
    half = points_per_frame // 2
    frames = []
    for k in range(num_frames):
        y = k * MAX_COORD // num_frames
        frame = []
        for j in range(points_per_frame):
            if j < half:
                x = j * MAX_COORD // half
            else:
                x = MAX_COORD - (j - half) * MAX_COORD // half
            frame.append(Point(_clamp(x), y, r, g, b, i))
        frames.append(frame)
    return frames


class ScanLine:
    """A horizontal line that scans the field top to bottom.

    Direction alternates every frame so the galvos never jump back across
    the whole field. Blanked dwell points are emitted at both ends.
    """

    def __init__(
        self,
        duration_ms: int = 2000,
        total_points: int = 500,
        start_dwell: int = 15,
        end_dwell: int = 15,
    ) -> None:
        if total_points <= start_dwell + end_dwell:
            raise ValueError("total_points must exceed the combined dwell")
        self._duration = duration_ms
        self._total_points = total_points
        self._start_dwell = start_dwell
        self._end_dwell = end_dwell
        self._odd = False

    def frame(self, timestamp_ms: float) -> list[Point]:
        f = (timestamp_ms % self._duration) / self._duration
        self._odd = not self._odd
        y = _clamp(f * MAX_COORD)
        edge = MAX_COORD if self._odd else 0
        color = (
            int(timestamp_ms * 1.2) % MAX_CHANNEL,
            int(timestamp_ms) % MAX_CHANNEL,
            int(timestamp_ms * 1.7) % MAX_CHANNEL,
        )

        points = [Point.blank(edge, y) for _ in range(self._start_dwell)]
        lit = self._total_points - self._start_dwell - self._end_dwell
        for j in range(lit):
            x = j / self._total_points * MAX_COORD
            if self._odd:
                x = MAX_COORD - x
            points.append(Point(_clamp(x), y, *color))
        points.extend(Point.blank(edge, y) for _ in range(self._end_dwell))
        return points


class BouncingLine:
    """A line segment whose endpoints drift and bounce off the field edges.

    The color changes on every bounce. Each frame is the segment sampled
    every ``segment_length`` units with blanked dwell at both ends.
    """

    SPEED = 30.0

    def __init__(
        self,
        extent: int = MAX_COORD,
        dwell: int = 15,
        segment_length: float = 40.0,
        rng: random.Random | None = None,
    ) -> None:
        self._extent = extent
        self._dwell = dwell
        self._segment_length = segment_length
        self._rng = rng or random.Random()
        rnd = self._rng.random
        self._pos = [rnd() * extent for _ in range(4)]  # start x, start y, end x, end y
        half = self.SPEED / 2
        self._delta = [rnd() * self.SPEED - half for _ in range(4)]
        self._color = self._random_color()

    def _random_color(self) -> tuple[int, int, int]:
        return tuple(int(self._rng.random() * MAX_CHANNEL) for _ in range(3))

    def _step(self) -> None:
        half = self.SPEED / 2
        for k in range(4):
            self._pos[k] += self._delta[k]
            if self._pos[k] < 0:
                self._delta[k] = self._rng.random() * half
                self._color = self._random_color()
            elif self._pos[k] > self._extent:
                self._delta[k] = -self._rng.random() * half
                self._color = self._random_color()

    def frame(self) -> list[Point]:
        self._step()
        sx, sy, ex, ey = self._pos
        dx, dy = ex - sx, ey - sy
        steps = int(math.hypot(dx, dy) / self._segment_length) + 1
        dx /= steps
        dy /= steps

        points = [Point.blank(_clamp(sx), _clamp(sy)) for _ in range(self._dwell)]
        for j in range(steps + 1):
            points.append(Point(_clamp(sx + dx * j), _clamp(sy + dy * j), *self._color))
        points.extend(Point.blank(_clamp(ex), _clamp(ey)) for _ in range(self._dwell))
        return points
