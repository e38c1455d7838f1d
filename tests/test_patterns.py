"""Tests for the procedural point producers."""

import random

import pytest

from helios_dac.models.frame import Frame, Point
from helios_dac.models.patterns import BouncingLine, ScanLine, horizontal_sweep_frames


def test_sweep_frames_shape():
    frames = horizontal_sweep_frames(num_frames=30, points_per_frame=1000)
    assert len(frames) == 30
    assert all(len(f) == 1000 for f in frames)
    assert frames[0][0] == Point(0, 0, 0xD0, 0xFF, 0xD0, 0xFF)


def test_sweep_goes_out_and_back():
    frame = horizontal_sweep_frames(num_frames=2, points_per_frame=100)[1]
    xs = [p.x for p in frame]
    assert xs[0] == 0
    assert xs[50] == 4095
    assert xs[-1] < xs[50]
    assert {p.y for p in frame} == {4095 // 2}


def test_sweep_validation():
    with pytest.raises(ValueError):
        horizontal_sweep_frames(num_frames=0)


def test_scanline_dwell_and_length():
    scanner = ScanLine(duration_ms=2000, total_points=500, start_dwell=15, end_dwell=15)
    frame = scanner.frame(500)
    assert len(frame) == 500
    assert all(p.i == 0 for p in frame[:15])
    assert all(p.i == 0 for p in frame[-15:])
    assert {p.y for p in frame} == {int(0.25 * 4095)}


def test_scanline_alternates_direction():
    scanner = ScanLine(total_points=100, start_dwell=5, end_dwell=5)
    first = scanner.frame(0)
    second = scanner.frame(0)
    assert first[0].x == 4095
    assert second[0].x == 0
    assert first[5].x > first[-6].x
    assert second[5].x < second[-6].x


def test_scanline_needs_room_for_dwell():
    with pytest.raises(ValueError):
        ScanLine(total_points=30, start_dwell=15, end_dwell=15)


def test_bouncing_line_stays_in_range():
    line = BouncingLine(rng=random.Random(1234))
    for _ in range(500):
        frame = line.frame()
        Frame.build(frame, 30000)
        assert all(0 <= p.x <= 4095 and 0 <= p.y <= 4095 for p in frame)


def test_bouncing_line_blanked_ends():
    line = BouncingLine(dwell=10, rng=random.Random(7))
    frame = line.frame()
    assert all(p.i == 0 for p in frame[:10])
    assert all(p.i == 0 for p in frame[-10:])
    assert len(frame) > 20


def test_bouncing_line_is_seedable():
    a = BouncingLine(rng=random.Random(42))
    b = BouncingLine(rng=random.Random(42))
    assert a.frame() == b.frame()
