"""
Feed playback engine.

Plays one frame source: decodes frames off the event loop, makes each one
current on the source (where the detection scheduler samples it), draws
the current overlay on a display-sized copy and publishes the result to the
web frame store and/or a local OpenCV window.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import cv2
import numpy as np

from models.frame import FrameData
from observation.base import FrameSource
from .renderer import FrameOverlayRenderer
from .scheduler import DetectionScheduler


@dataclass
class EngineConfig:
    """
    Configuration for a feed engine.

    Attributes:
        max_consecutive_failures: Max frame read failures before stopping.
        stats_log_interval: Seconds between status log messages.
        fps: Playback pacing. None = the source's own rate.
        display: Show the annotated feed in a cv2 window.
    """
    max_consecutive_failures: int = 10
    stats_log_interval: float = 60.0
    fps: Optional[float] = None
    display: bool = False


@dataclass
class EngineStats:
    """Runtime statistics for one feed."""
    frame_count: int = 0
    start_time: float = field(default_factory=time.time)
    last_stats_log_time: float = field(default_factory=time.time)
    last_frame_ts: Optional[float] = None
    consecutive_failures: int = 0


class FeedEngine:
    """
    Playback loop for one drone feed.

    Example:
        engine = FeedEngine(source, scheduler, renderer, EngineConfig(), frame_store)
        await engine.run()
    """

    def __init__(
        self,
        source: FrameSource,
        scheduler: DetectionScheduler,
        renderer: FrameOverlayRenderer,
        config: EngineConfig,
        frame_store: Any = None,
    ):
        self.source = source
        self.scheduler = scheduler
        self.renderer = renderer
        self.config = config
        self.frame_store = frame_store
        self.stats = EngineStats()
        self._running = False
        self._callbacks: List[Callable[[FrameData, np.ndarray], None]] = []

    @property
    def feed_id(self) -> str:
        return self.source.source_id

    @property
    def is_running(self) -> bool:
        return self._running

    def add_callback(self, callback: Callable[[FrameData, np.ndarray], None]) -> None:
        """
        Add a callback to be called after each frame is shown.

        Args:
            callback: Function taking (frame_data, annotated_frame).
        """
        self._callbacks.append(callback)

    def _frame_interval(self) -> float:
        fps = self.config.fps or getattr(self.source, "fps", None) or 30.0
        return 1.0 / fps

    async def run(self) -> None:
        """
        Play the feed until stopped, cancelled or exhausted, then release it.
        """
        loop = asyncio.get_running_loop()
        self._running = True
        self.stats = EngineStats()

        try:
            await loop.run_in_executor(None, self.source.open)
            logging.info(f"Feed started: {self.feed_id}")

            while self._running:
                started = loop.time()
                frame_data = await loop.run_in_executor(None, self.source.read)

                if frame_data is None:
                    self.stats.consecutive_failures += 1
                    if self.stats.consecutive_failures >= self.config.max_consecutive_failures:
                        logging.error(
                            f"Feed {self.feed_id}: too many consecutive failures "
                            f"({self.stats.consecutive_failures}), stopping"
                        )
                        break
                    logging.warning(
                        f"Feed {self.feed_id}: frame read failed ({self.stats.consecutive_failures}/"
                        f"{self.config.max_consecutive_failures})"
                    )
                    await asyncio.sleep(0.5)
                    continue

                self.stats.consecutive_failures = 0
                annotated = self.show_frame(frame_data)

                if self.config.display and not self._handle_display(annotated):
                    break  # User pressed 'q'

                self._handle_periodic_tasks()

                remaining = self._frame_interval() - (loop.time() - started)
                await asyncio.sleep(max(0.0, remaining))

        except asyncio.CancelledError:
            logging.info(f"Feed {self.feed_id} cancelled")
            raise
        except Exception:
            logging.exception(f"Feed {self.feed_id} error")
        finally:
            self._cleanup()

    def stop(self) -> None:
        """Signal the engine to stop after the current frame."""
        self._running = False

    def show_frame(self, frame_data: FrameData) -> np.ndarray:
        """
        Put a decoded frame on screen and return the annotated display frame.
        """
        self.source.present(frame_data)
        self.stats.frame_count += 1
        self.stats.last_frame_ts = frame_data.timestamp

        frame = frame_data.frame
        display_size = self.source.display_size
        if display_size != frame_data.size:
            frame = cv2.resize(frame, display_size, interpolation=cv2.INTER_LINEAR)

        annotated = self.renderer.draw(frame)

        if self.frame_store is not None:
            self.frame_store.set_frame(self.feed_id, annotated)

        for callback in self._callbacks:
            try:
                callback(frame_data, annotated)
            except Exception as e:
                logging.warning(f"Callback error: {e}")

        return annotated

    def _handle_display(self, frame: np.ndarray) -> bool:
        """
        Show the frame in a cv2 window.

        Returns False if user pressed 'q' to quit.
        """
        cv2.imshow(f"Drone feed - {self.feed_id}", frame)
        key = cv2.waitKey(1) & 0xFF
        return key != ord('q')

    def _handle_periodic_tasks(self) -> None:
        now = time.time()
        if now - self.stats.last_stats_log_time >= self.config.stats_log_interval:
            elapsed = max(1e-6, now - self.stats.start_time)
            state = self.scheduler.status
            logging.info(
                f"Feed {self.feed_id} stats: frames={self.stats.frame_count}, "
                f"fps={self.stats.frame_count / elapsed:.1f}, detector={state.status.value}, "
                f"passes={state.passes}, detections={state.detection_count}"
            )
            self.stats.last_stats_log_time = now

    def _cleanup(self) -> None:
        self._running = False
        self.scheduler.deactivate()

        try:
            self.source.close()
        except Exception as e:
            logging.warning(f"Error closing source {self.feed_id}: {e}")

        if self.frame_store is not None:
            self.frame_store.clear_frame(self.feed_id)

        if self.config.display and self.stats.frame_count:
            cv2.destroyWindow(f"Drone feed - {self.feed_id}")

        logging.info(f"Feed stopped: {self.feed_id}")
