"""Data models for points, frames and point producers."""

from .frame import FrameFlags, Frame, Point, MAX_POINTS
from .patterns import BouncingLine, ScanLine, horizontal_sweep_frames
