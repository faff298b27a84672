"""
FrameSource interface for live video feeds.

A frame source plays a video and exposes what is on screen right now:

- `intrinsic_size`: native pixel size of the decoded video
- `display_size`: size the video is currently shown at
- `is_ready()`: whether a frame has been decoded and can be sampled
- `snapshot()`: the current frame (BGR numpy array)

The detection scheduler only reads these at sample time. The playback loop
drives the source with `read()` (blocking decode, run off the event loop)
and `present()` (make a decoded frame current, on the event loop).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Tuple

import numpy as np

from models.frame import FrameData


class FrameNotReadyError(Exception):
    """The source has not buffered enough data to sample a frame."""


@dataclass
class FrameSourceConfig:
    """
    Base configuration for frame sources.

    Attributes:
        source_id: Unique identifier for this feed (e.g., "drone1").
        display_size: (width, height) the feed is shown at. None = intrinsic size.
        fps: Playback rate. None = use source default.
        metadata: Additional source-specific configuration.
    """
    source_id: str = "default"
    display_size: Optional[Tuple[int, int]] = None
    fps: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class FrameSource(ABC):
    """
    Abstract base class for playable frame sources.

    Lifecycle:
        1. Create instance with config
        2. Call open() to initialize the source
        3. Call read() + present() repeatedly to advance playback
        4. Call close() to release resources

    Can also be used as a context manager:
        with VideoCaptureSource(config) as source:
            for frame_data in source:
                source.present(frame_data)
    """

    def __init__(self, config: FrameSourceConfig):
        self._config = config
        self._is_open = False
        self._frame_index = 0
        self._current: Optional[FrameData] = None
        self._display_size: Optional[Tuple[int, int]] = (
            tuple(config.display_size) if config.display_size else None
        )

    @property
    def source_id(self) -> str:
        """Unique identifier for this source."""
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        """Whether the source is currently open and ready to read."""
        return self._is_open

    @property
    def frame_index(self) -> int:
        """Current frame index (number of frames read since open)."""
        return self._frame_index

    @property
    def current(self) -> Optional[FrameData]:
        return self._current

    @property
    def intrinsic_size(self) -> Tuple[int, int]:
        """(width, height) of the current frame; (0, 0) before the first frame."""
        if self._current is None:
            return (0, 0)
        return self._current.size

    @property
    def display_size(self) -> Tuple[int, int]:
        """(width, height) the video is shown at; falls back to intrinsic size."""
        if self._display_size is not None:
            return self._display_size
        return self.intrinsic_size

    def set_display_size(self, width: int, height: int) -> None:
        """Called when the viewer resizes the video element."""
        if width <= 0 or height <= 0:
            raise ValueError(f"Display size must be positive, got ({width}, {height})")
        self._display_size = (int(width), int(height))

    def is_ready(self) -> bool:
        """True when a frame is available to sample."""
        return self._is_open and self._current is not None

    def snapshot(self) -> np.ndarray:
        """
        Return the frame currently on screen.

        Raises:
            FrameNotReadyError: If nothing has been decoded yet.
        """
        if not self.is_ready():
            raise FrameNotReadyError(f"Source {self.source_id} has no frame to sample yet")
        return self._current.frame

    def present(self, frame_data: FrameData) -> None:
        """Make a decoded frame the one on screen."""
        self._current = frame_data

    @abstractmethod
    def open(self) -> None:
        """
        Open/initialize the source.

        Raises:
            RuntimeError: If the source cannot be opened.
        """
        pass

    @abstractmethod
    def read(self) -> Optional[FrameData]:
        """
        Decode the next frame. May block.

        Returns:
            FrameData, or None if no frame is available (end of video, stream error).
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release resources. Safe to call multiple times."""
        pass

    def __enter__(self) -> "FrameSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[FrameData]:
        if not self._is_open:
            raise RuntimeError("Source must be open before iterating")

        while True:
            frame_data = self.read()
            if frame_data is None:
                break
            yield frame_data
