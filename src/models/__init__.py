"""
Typed models for the drone detection service.
"""

from .frame import FrameData
from .detection import BoundingBox, Detection, DetectionSet
from .status import DetectorStatus, DetectorState
from .config import Config, DetectorConfig, FeedConfig, WebConfig

__all__ = [
    # Frame
    "FrameData",
    # Detection
    "BoundingBox",
    "Detection",
    "DetectionSet",
    # Status
    "DetectorStatus",
    "DetectorState",
    # Config
    "Config",
    "DetectorConfig",
    "FeedConfig",
    "WebConfig",
]
