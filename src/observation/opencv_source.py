"""
OpenCV-based frame source.

Supports:
- Drone/IP streams (RTMP, RTSP, HLS URLs)
- Video files (optionally looped, handy for demos and field replays)
- Local capture devices (device index as int)
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Optional, Union

import cv2
import numpy as np

from models.config import FeedConfig
from models.frame import FrameData
from .base import FrameSource, FrameSourceConfig
from .stream_utils import is_stream_url, sanitize_url


@dataclass
class VideoCaptureConfig(FrameSourceConfig):
    """
    Configuration for cv2.VideoCapture sources.

    Attributes:
        locator: Device index (int), stream URL (str) or file path (str).
        loop: Rewind files when they end instead of reporting end of video.
        buffer_size: OpenCV capture buffer size (reduces latency for live feeds).
        max_retries: Maximum attempts when opening the capture.
        swap_rb: Swap R/B channels (fixes RGB vs BGR issues).
        rotate: Rotation in degrees (0, 90, 180, 270).
        flip_horizontal: Flip frame horizontally.
        flip_vertical: Flip frame vertically.
    """
    locator: Union[int, str] = 0
    loop: bool = False
    buffer_size: int = 1
    max_retries: int = 3
    swap_rb: bool = False
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_feed_config(cls, feed: FeedConfig) -> "VideoCaptureConfig":
        """Adapter: Create VideoCaptureConfig from a feed entry of config.yaml."""
        return cls(
            source_id=feed.id,
            display_size=feed.display_tuple,
            fps=feed.fps,
            locator=feed.locator,
            loop=feed.loop,
            swap_rb=feed.swap_rb,
            rotate=feed.rotate,
            flip_horizontal=feed.flip_horizontal,
            flip_vertical=feed.flip_vertical,
        )


class VideoCaptureSource(FrameSource):
    """
    Wraps cv2.VideoCapture and reconnects dropped streams.

    Example:
        config = VideoCaptureConfig(source_id="drone1", locator="rtmp://...")
        with VideoCaptureSource(config) as source:
            for frame_data in source:
                source.present(frame_data)
    """

    def __init__(self, config: VideoCaptureConfig):
        super().__init__(config)
        self._capture_config = config
        self._cap: Optional[cv2.VideoCapture] = None
        self._consecutive_failures = 0

    @property
    def locator(self) -> Union[int, str]:
        return self._capture_config.locator

    @property
    def is_stream(self) -> bool:
        return is_stream_url(self.locator)

    @property
    def is_file(self) -> bool:
        return isinstance(self.locator, str) and not self.is_stream and os.path.exists(self.locator)

    @property
    def fps(self) -> float:
        """Configured playback rate, else the container's, else 30."""
        if self._capture_config.fps:
            return float(self._capture_config.fps)
        if self._cap is not None:
            native = self._cap.get(cv2.CAP_PROP_FPS)
            if native and native > 0:
                return float(native)
        return 30.0

    def open(self) -> None:
        if self._is_open:
            return

        self._initialize(retry_count=0)
        self._is_open = True
        self._frame_index = 0

        logging.info(
            f"VideoCaptureSource opened: source_id={self.source_id}, "
            f"locator={sanitize_url(self.locator)}, fps={self.fps}"
        )

    def _initialize(self, retry_count: int = 0) -> None:
        """Initialize or reinitialize the capture."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None

        if retry_count > 0:
            wait_time = min(2 ** retry_count, 10)
            logging.info(
                f"Retrying open of {self.source_id} (attempt {retry_count + 1}/"
                f"{self._capture_config.max_retries}) after {wait_time}s"
            )
            time.sleep(wait_time)

        self._cap = cv2.VideoCapture(self.locator)

        if not self._cap.isOpened():
            if retry_count < self._capture_config.max_retries - 1:
                logging.warning(f"Failed to open {sanitize_url(self.locator)}, retrying...")
                return self._initialize(retry_count + 1)
            raise RuntimeError(
                f"Failed to open {sanitize_url(self.locator)} after "
                f"{self._capture_config.max_retries} attempts"
            )

        if self.is_stream or isinstance(self.locator, int):
            self._cap.set(cv2.CAP_PROP_BUFFERSIZE, self._capture_config.buffer_size)

        self._consecutive_failures = 0

    def read(self) -> Optional[FrameData]:
        """Decode the next frame (blocking)."""
        if not self._is_open or self._cap is None:
            return None

        ret, frame = self._cap.read()

        if (not ret or frame is None) and self.is_file and self._capture_config.loop:
            self._cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
            ret, frame = self._cap.read()

        if not ret or frame is None:
            self._consecutive_failures += 1

            if self.is_file:
                logging.info(f"End of video file reached: {self.locator}")
                return None

            if self._consecutive_failures <= 3:
                logging.warning(
                    f"Failed to read frame from {self.source_id} "
                    f"(failures: {self._consecutive_failures}), reinitializing..."
                )
                try:
                    self._initialize()
                    ret, frame = self._cap.read()
                    if not ret or frame is None:
                        return None
                    self._consecutive_failures = 0
                except RuntimeError:
                    logging.error(f"Reinitialization of {self.source_id} failed")
                    return None
            else:
                return None
        else:
            self._consecutive_failures = 0

        frame = self._apply_transforms(frame)
        self._frame_index += 1

        return FrameData.from_numpy(
            frame,
            timestamp=time.time(),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def _apply_transforms(self, frame: np.ndarray) -> np.ndarray:
        """Apply configured image transforms (rotate, flip, swap_rb)."""
        cfg = self._capture_config

        if cfg.rotate == 90:
            frame = cv2.rotate(frame, cv2.ROTATE_90_CLOCKWISE)
        elif cfg.rotate == 180:
            frame = cv2.rotate(frame, cv2.ROTATE_180)
        elif cfg.rotate == 270:
            frame = cv2.rotate(frame, cv2.ROTATE_90_COUNTERCLOCKWISE)

        if cfg.flip_horizontal or cfg.flip_vertical:
            if cfg.flip_horizontal and cfg.flip_vertical:
                flip_code = -1
            elif cfg.flip_horizontal:
                flip_code = 1
            else:
                flip_code = 0
            frame = cv2.flip(frame, flip_code)

        if cfg.swap_rb:
            frame = frame[..., ::-1].copy()

        return frame

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        self._is_open = False
        self._current = None
        logging.info(f"VideoCaptureSource closed: source_id={self.source_id}")


def create_source_from_feed(feed: FeedConfig) -> VideoCaptureSource:
    """Factory: build the frame source for one configured feed."""
    return VideoCaptureSource(VideoCaptureConfig.from_feed_config(feed))
