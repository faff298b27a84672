"""
Frame sources for live drone feeds.

This layer hides where frames come from (stream, file, device) from the
playback loop and the detection scheduler. Every source implements the
FrameSource contract: display/intrinsic size, readiness and snapshots.
"""

from .base import FrameNotReadyError, FrameSource, FrameSourceConfig
from .opencv_source import VideoCaptureConfig, VideoCaptureSource, create_source_from_feed

__all__ = [
    "FrameNotReadyError",
    "FrameSource",
    "FrameSourceConfig",
    "VideoCaptureConfig",
    "VideoCaptureSource",
    "create_source_from_feed",
]
