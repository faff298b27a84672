"""
Pipeline module for the drone detection service.

The pipeline orchestrates the per-feed flow:
- Playback of the feed (FeedEngine)
- Rate-limited detection passes (DetectionScheduler)
- Overlay drawing (OverlayRenderer)
"""

from .clock import AsyncioFrameTimer, Clock, FrameTimer, MonotonicClock
from .engine import EngineConfig, FeedEngine
from .renderer import FrameOverlayRenderer, OverlayRenderer
from .scheduler import DetectionScheduler, SchedulerState

__all__ = [
    "AsyncioFrameTimer",
    "Clock",
    "DetectionScheduler",
    "EngineConfig",
    "FeedEngine",
    "FrameOverlayRenderer",
    "FrameTimer",
    "MonotonicClock",
    "OverlayRenderer",
    "SchedulerState",
]
